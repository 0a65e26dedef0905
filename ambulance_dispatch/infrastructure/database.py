"""
Async SQLAlchemy engine, session factory and unit-of-work helpers.

Uses ``asyncpg`` as the PostgreSQL driver for non-blocking I/O.

Every statement and every commit runs inside :func:`backend_errors`, so a
driver / network failure reaches callers as ``TransportError`` (HTTP 503)
and is never retried here.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ambulance_dispatch.config import settings
from ambulance_dispatch.domain.errors import TransportError

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


@contextmanager
def backend_errors() -> Iterator[None]:
    """Re-raise driver / network failures as ``TransportError``."""
    try:
        yield
    except DBAPIError as exc:
        raise TransportError(str(exc.orig or exc)) from exc


async def commit(session: AsyncSession) -> None:
    """Commit *session*; on failure roll back and raise ``TransportError``.

    Write paths call this before publishing anything derived from the
    write (cached snapshots, HTTP responses), so a failed commit is never
    reported as a success.
    """
    try:
        with backend_errors():
            await session.commit()
    except TransportError:
        await session.rollback()
        raise
