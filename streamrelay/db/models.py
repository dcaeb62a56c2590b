"""Database models for StreamRelay.

This module defines the SQLModel table backing the persistent cache store.
All models inherit from ModelBase (defined in streamrelay.db.base) to keep
metadata isolated from SQLModel's global registry.

Models:
    - CacheRecord: one namespaced key/value entry with an absolute expiry
"""

from __future__ import annotations

from typing import Any, Iterable, Optional
from datetime import datetime, timezone
from loguru import logger

from sqlalchemy.exc import IntegrityError
from sqlmodel import Field, Session, select, col, Column, JSON

from streamrelay.db.base import ModelBase
from streamrelay.db.session import engine


# ---- Datetime Helpers
def utcnow() -> datetime:
    """Return current UTC datetime with timezone info."""
    return datetime.now(timezone.utc)


# ---------------- Table Models


class CacheRecord(ModelBase, table=True):
    """
    A cached value under (namespace, key). `expires_at` is an epoch timestamp in
    seconds; rows past it are treated as absent even before they are purged.
    """

    __tablename__ = "cache_entry"

    namespace: str = Field(primary_key=True)
    key: str = Field(primary_key=True)
    payload: Any = Field(default=None, sa_column=Column(JSON))
    expires_at: float = Field(index=True)
    updated_at: datetime = Field(default_factory=utcnow)


def create_db_and_tables() -> None:
    logger.debug("Creating DB and tables if not exist.")
    try:
        ModelBase.metadata.create_all(engine)
        logger.success("Database and tables created or already exist.")
    except Exception as e:
        logger.error(f"Error creating DB and tables: {e}")


# --- Cache CRUD
def get_cache_record(
    session: Session, *, namespace: str, key: str
) -> Optional[CacheRecord]:
    """
    Fetch the stored row for a namespaced key regardless of its expiry.

    Returns:
        CacheRecord | None: The row if present, `None` otherwise.
    """
    logger.trace(f"Fetching cache record {namespace}:{key}")
    return session.get(CacheRecord, (namespace, key))


def upsert_cache_record(
    session: Session,
    *,
    namespace: str,
    key: str,
    payload: Any,
    expires_at: float,
) -> CacheRecord:
    """
    Create or overwrite the cached value for a namespaced key (last writer wins).

    Parameters:
        session (Session): Database session used to read and persist the record.
        namespace (str): Cache namespace.
        key (str): Key within the namespace.
        payload (Any): JSON-serialisable value to store.
        expires_at (float): Absolute expiry as an epoch timestamp in seconds.

    Returns:
        CacheRecord: The persisted row.
    """
    logger.trace(f"Upserting cache record {namespace}:{key}")
    rec = session.get(CacheRecord, (namespace, key))
    if rec is None:
        rec = CacheRecord(
            namespace=namespace,
            key=key,
            payload=payload,
            expires_at=expires_at,
            updated_at=utcnow(),
        )
    else:
        rec.payload = payload
        rec.expires_at = expires_at
        rec.updated_at = utcnow()
    session.add(rec)
    try:
        session.commit()
    except IntegrityError:
        # A concurrent writer inserted the same key first; overwrite it.
        session.rollback()
        rec = session.get(CacheRecord, (namespace, key))
        if rec is None:
            raise
        rec.payload = payload
        rec.expires_at = expires_at
        rec.updated_at = utcnow()
        session.add(rec)
        session.commit()
    session.refresh(rec)
    return rec


def delete_cache_record(session: Session, *, namespace: str, key: str) -> bool:
    """
    Delete a namespaced key.

    Returns:
        bool: True if a row was removed, False if it did not exist.
    """
    rec = session.get(CacheRecord, (namespace, key))
    if rec is None:
        return False
    session.delete(rec)
    session.commit()
    logger.debug(f"Deleted cache record {namespace}:{key}")
    return True


def live_cache_keys(
    session: Session, *, namespace: str, keys: Iterable[str], now: float
) -> set[str]:
    """
    Return which of `keys` hold an unexpired value, using a single query.
    """
    wanted = list(dict.fromkeys(keys))
    if not wanted:
        return set()
    stmt = select(CacheRecord.key).where(
        CacheRecord.namespace == namespace,
        col(CacheRecord.key).in_(wanted),
        CacheRecord.expires_at > now,
    )
    found = set(session.exec(stmt).all())
    logger.trace(f"Batch existence check in {namespace}: {len(found)}/{len(wanted)} live")
    return found


def purge_expired_records(session: Session, *, now: float) -> int:
    """
    Physically delete rows whose expiry has passed.

    Returns:
        int: Number of rows removed.
    """
    stmt = select(CacheRecord).where(col(CacheRecord.expires_at) <= now)
    rows = session.exec(stmt).all()
    for rec in rows:
        session.delete(rec)
    session.commit()
    removed = len(rows)
    if removed:
        logger.debug(f"Purged {removed} expired cache records.")
    return removed


__all__ = [
    "CacheRecord",
    "utcnow",
    "create_db_and_tables",
    "get_cache_record",
    "upsert_cache_record",
    "delete_cache_record",
    "live_cache_keys",
    "purge_expired_records",
]
