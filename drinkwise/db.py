from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from drinkwise.config import Settings
from drinkwise.models import Base

logger = logging.getLogger(__name__)


class Database:
    """Engine plus session factory, constructed once and passed around."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            future=True,
        )

    def session(self, *args: Any, **kwargs: Any) -> Session:
        return self._session_factory(*args, **kwargs)

    def dispose(self) -> None:
        self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_db(cfg: Settings) -> Database:
    """Create engine and session factory using SQLAlchemy's ``create_engine``."""
    url = cfg.database_url
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            future=True,
            connect_args={"check_same_thread": False},
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_engine(
            url,
            future=True,
            pool_size=20,
            max_overflow=0,
            pool_recycle=30,
            pool_pre_ping=True,
        )

    if cfg.db_create_all:
        Base.metadata.create_all(engine)
        logger.info("Database tables created")

    return Database(engine)


def get_database(request: Request) -> Database:
    return request.app.state.db
