"""SQLAlchemy engine for the provider/usage database.

One engine per process, created lazily on first store access. The gateway
holds short sessions (one per store call), so the pool stays small.
"""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from llmgate.config import get_settings

PSYCOPG_SCHEME = "postgresql+psycopg://"


def normalize_database_url(database_url: str) -> str:
    """Route plain postgres URLs through the psycopg (v3) driver."""
    for prefix in ("postgresql://", "postgres://"):
        if database_url.startswith(prefix):
            return PSYCOPG_SCHEME + database_url[len(prefix) :]
    return database_url


def create_db_engine(database_url: str | None = None) -> Engine:
    """Create a SQLAlchemy engine.

    Args:
        database_url: Connection string. If None, uses DATABASE_URL from settings.
    """
    if database_url is None:
        database_url = get_settings().database_url

    return create_engine(
        normalize_database_url(database_url),
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        echo=False,
    )


@lru_cache
def get_engine() -> Engine:
    return create_db_engine()
