from __future__ import annotations
from typing import Optional
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DEFAULT_DATABASE_URL = "sqlite:///./speaking_coach.db"

Base = declarative_base()


def build_engine(database_url: Optional[str] = None) -> Engine:
	url = database_url or settings.database_url or DEFAULT_DATABASE_URL
	connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
	return create_engine(url, connect_args=connect_args, future=True)


def build_session_factory(engine: Engine) -> sessionmaker:
	return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


def ensure_schema(engine: Engine) -> None:
	# Import registers the table on Base.metadata
	from . import models  # noqa: F401

	Base.metadata.create_all(bind=engine)
