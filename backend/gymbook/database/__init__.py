"""
Engine, session factory and declarative base.

``with_db_retry`` wraps booking units of work: concurrent bookings of the
same class row can fail with serialization errors or deadlocks, and those
are safe to replay from scratch.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Generator, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from gymbook.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

POSTGRES_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 5,
    "pool_recycle": 300,
    "pool_pre_ping": True,
}

_RETRYABLE_ERROR_SNIPPETS = (
    "could not serialize access",
    "deadlock detected",
    "database is locked",
    "server closed the connection",
)


def _is_memory_sqlite(db_url: str) -> bool:
    return ":memory:" in db_url or db_url.rstrip("/") == "sqlite:"


def _sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(db_url: str) -> Engine:
    """SQLite for local runs and tests, pooled PostgreSQL otherwise."""
    if not db_url.startswith("sqlite"):
        return create_engine(db_url, future=True, **POSTGRES_POOL_KWARGS)

    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if _is_memory_sqlite(db_url):
        # One shared connection, otherwise each session sees an empty database
        kwargs["poolclass"] = StaticPool
    sqlite_engine = create_engine(db_url, future=True, **kwargs)
    event.listen(sqlite_engine, "connect", _sqlite_pragmas)
    return sqlite_engine


engine: Engine = create_db_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; services commit their own units of work."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _is_retryable(exc: OperationalError) -> bool:
    message = str(exc).lower()
    return any(snippet in message for snippet in _RETRYABLE_ERROR_SNIPPETS)


def with_db_retry(
    op_name: str, func: Callable[[], T], *, max_attempts: int | None = None
) -> T:
    """
    Run ``func`` and replay it on a transient OperationalError.

    ``func`` must open and commit its own transaction so each attempt starts
    from a clean session. Backoff is exponential with jitter.
    """
    attempts = max_attempts or settings.db_retry_attempts
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except OperationalError as exc:
            if attempt >= attempts or not _is_retryable(exc):
                raise
            delay = 0.05 * (2 ** (attempt - 1)) + random.uniform(0, 0.05 * attempt)
            logger.warning(
                "Transient DB failure, retrying",
                extra={"event": "db_retry", "op": op_name, "attempt": attempt, "delay": delay},
            )
            time.sleep(delay)
    raise RuntimeError(f"{op_name}: no attempts made")


__all__ = [
    "Base",
    "SessionLocal",
    "create_db_engine",
    "engine",
    "get_db",
    "with_db_retry",
]
