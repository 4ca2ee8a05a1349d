from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

import sqlalchemy as sa

from campaign_api.db.models import Base


def get_database_url() -> str:
    """Return the database connection URL from the environment."""
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL is required to connect to the database.")
    return database_url


@lru_cache(maxsize=1)
def get_engine() -> sa.Engine:
    """Create and cache a SQLAlchemy engine for the configured URL."""
    url = get_database_url()
    if not url.startswith("sqlite"):
        return sa.create_engine(url, future=True)

    # Sync routes run in a threadpool.
    engine = sa.create_engine(url, future=True, connect_args={"check_same_thread": False})

    @sa.event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def reset_engine() -> None:
    """Dispose and forget the cached engine (used in tests)."""
    if get_engine.cache_info().currsize:
        get_engine().dispose()
    get_engine.cache_clear()


def create_schema(engine: sa.Engine) -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(engine)
