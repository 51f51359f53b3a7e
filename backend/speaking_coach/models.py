from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from .db import Base


class KeyValueEntry(Base):
	__tablename__ = "kv_entries"
	# One row per storage key (e.g. "vocab-session-storage", "apiKeys")
	key = Column(String(128), primary_key=True, index=True)
	value = Column(Text, nullable=False)  # serialized blob, usually JSON
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
