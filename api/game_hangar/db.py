from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import NoResultFound, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .errors import UpstreamError

logger = logging.getLogger(__name__)

# Canonical "no rows" sentinel that repositories compare against.
NoRowsError = NoResultFound

_DEFAULT_URL = "postgresql+psycopg://localhost:5432/gamehangar"


def normalize_database_url(url: str) -> str:
    """Accept libpq-style ``postgres://`` URLs and route them through psycopg 3."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def get_database_url() -> str:
    """Database URL from PSQL_CONNSTRING; the startup check makes it mandatory."""
    return normalize_database_url(os.getenv("PSQL_CONNSTRING") or _DEFAULT_URL)


DATABASE_URL = get_database_url()


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


engine = create_engine(
    DATABASE_URL,
    future=True,
    echo=os.getenv("LOG_LEVEL", "INFO").upper() == "DEBUG",
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@contextmanager
def acquire() -> Iterator[Session]:
    """
    Acquire a pooled connection wrapped in an ORM session.

    The connection goes back to the pool on every exit path; uncommitted
    work is rolled back when the block raises.
    """
    session: Session = SessionLocal()
    try:
        yield session
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Generator[Session, None, None]:
    with acquire() as session:
        yield session


def ping(timeout_ms: int = 100) -> None:
    """
    Check that the database answers ``SELECT 1`` within ``timeout_ms``.

    Only the round trip is timed; establishing the first connection is not.

    Raises:
        UpstreamError: If the query fails or is too slow.
    """
    try:
        with engine.connect() as connection:
            started = time.monotonic()
            connection.execute(text("SELECT 1"))
            elapsed_ms = (time.monotonic() - started) * 1000
    except SQLAlchemyError as e:
        raise UpstreamError(f"Database ping failed: {e}") from e

    if elapsed_ms > timeout_ms:
        raise UpstreamError(
            f"Database ping took {elapsed_ms:.1f} ms (budget {timeout_ms} ms)"
        )
    logger.info(f"Database ping ok in {elapsed_ms:.1f} ms")
