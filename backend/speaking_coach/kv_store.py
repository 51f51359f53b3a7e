from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.orm import sessionmaker

from .models import KeyValueEntry

logger = logging.getLogger(__name__)


class KeyValueStore:
	"""Blob storage with load/save semantics, one row per key."""

	def __init__(self, session_factory: sessionmaker) -> None:
		self._session_factory = session_factory

	def load(self, key: str) -> Optional[str]:
		db = self._session_factory()
		try:
			row = db.get(KeyValueEntry, key)
			return row.value if row is not None else None
		finally:
			db.close()

	def save(self, key: str, value: str) -> None:
		db = self._session_factory()
		try:
			row = db.get(KeyValueEntry, key)
			if row is None:
				row = KeyValueEntry(key=key, value=value)
			else:
				row.value = value
				row.updated_at = datetime.utcnow()
			db.add(row)
			db.commit()
		except Exception:
			db.rollback()
			logger.exception("Failed to save key %s", key)
			raise
		finally:
			db.close()

	def remove(self, key: str) -> None:
		db = self._session_factory()
		try:
			db.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
			db.commit()
		finally:
			db.close()
