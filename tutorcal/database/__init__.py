"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Generator, Optional, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from tutorcal.core.config import settings
from tutorcal.core.exceptions import RepositoryException

logger = logging.getLogger(__name__)

_DEFAULT_POOL_KWARGS: dict[str, Any] = {
    "pool_size": 5,
    "max_overflow": 10,
    # Fail fast when the pool is exhausted instead of queueing requests.
    "pool_timeout": 5,
    "pool_recycle": 300,
    "pool_pre_ping": True,
}


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Engine options for the configured backend."""
    kwargs: dict[str, Any] = {"echo": settings.database_echo, "future": True}
    if db_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        return kwargs

    kwargs.update(_DEFAULT_POOL_KWARGS)
    kwargs["connect_args"] = {
        # Statement timeout caps runaway queries so the API layer recovers quickly.
        "options": "-c statement_timeout=15000",
        "connect_timeout": 5,
        "application_name": "tutorcal",
    }
    return kwargs


engine: Engine = create_engine(settings.database_url, **_build_engine_kwargs(settings.database_url))


@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
    logger.debug("Database connection established")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


T = TypeVar("T")
# Only retry on dropped connections; a failed statement is never replayed.
_RETRYABLE_ERROR_SNIPPETS = (
    "server closed the connection",
    "ssl connection has been closed unexpectedly",
    "connection reset by peer",
)


def _operational_cause(exc: Optional[BaseException]) -> Optional[OperationalError]:
    """Find the driver-level failure behind a repository error."""
    while exc is not None:
        if isinstance(exc, OperationalError):
            return exc
        exc = exc.__cause__
    return None


def _is_retryable_db_error(exc: Optional[OperationalError]) -> bool:
    if exc is None:
        return False
    message = str(exc).lower()
    return any(snippet in message for snippet in _RETRYABLE_ERROR_SNIPPETS)


def _retry_delay(attempt: int) -> float:
    base = 0.1 * (2 ** (attempt - 1))
    return base + random.uniform(0, 0.05 * attempt)


def with_db_retry(op_name: str, func: Callable[[], T], *, max_attempts: int = 3) -> T:
    """
    Execute a read-only DB operation with retries for transient disconnects.

    Never wrap a check-then-write sequence in this helper: a retried stale
    overlap decision would reintroduce the double-booking race.
    """

    attempt = 1
    while True:
        try:
            return func()
        except (OperationalError, RepositoryException) as exc:
            if attempt >= max_attempts or not _is_retryable_db_error(_operational_cause(exc)):
                raise

            delay = _retry_delay(attempt)
            logger.warning(
                "Transient DB failure detected, retrying",
                extra={
                    "event": "db_retry",
                    "op": op_name,
                    "attempt": attempt,
                    "delay": delay,
                    "error": str(exc),
                },
            )
            time.sleep(delay)
            attempt += 1


__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_db",
    "with_db_retry",
]
