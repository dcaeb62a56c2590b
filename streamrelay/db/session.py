"""Database session management and engine configuration.

This module provides the SQLAlchemy engine backing the SQLite cache store and
its disposal on shutdown.
"""

from loguru import logger
from sqlmodel import create_engine
from sqlalchemy.pool import NullPool

from streamrelay.config import CACHE_DATABASE_URL, DATA_DIR

# Database URL configuration
DATABASE_URL = CACHE_DATABASE_URL or f"sqlite:///{(DATA_DIR / 'streamrelay_cache.db').as_posix()}"
logger.debug(f"DATABASE_URL: {DATABASE_URL}")

# - check_same_thread=False: sessions are opened from worker threads
# - NullPool: connections are closed when sessions end (important for SQLite)
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
    poolclass=NullPool,
    echo=False,
)
logger.debug("SQLModel engine created.")


def dispose_engine() -> None:
    """Dispose the global SQLAlchemy engine to close any pooled connections.

    This helps tests and short-lived runs avoid ResourceWarning: unclosed database.
    Should be called during application shutdown.
    """
    try:
        engine.dispose()
        logger.debug("SQLAlchemy engine disposed.")
    except Exception as e:
        logger.warning(f"Engine dispose error: {e}")


__all__ = ["engine", "dispose_engine", "DATABASE_URL"]
