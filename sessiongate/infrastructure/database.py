"""Session Store Engine: async SQLAlchemy engine behind SqlStorage.

Invariants:
    - Every session rolls back on exception; a failed multi-key write leaves no rows
    - SQLAlchemy exceptions surface as StorageError (core/errors.py), original chained
    - create_schema is idempotent (create_all skips existing tables)

Design Decisions:
    - expire_on_commit=False: rows stay readable after the transaction closes
    - Engine kwargs passed through untouched: sqlite rejects pool sizing arguments
    - Error mapping is a table checked in order, most specific exception first
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import sessiongate.models  # noqa: F401  (registers tables on Base.metadata)
from sessiongate.core.errors import StorageError
from sessiongate.db.base import Base

logger = logging.getLogger(__name__)

# exception type -> (message, operation)
_STORAGE_FAILURES: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "constraint violated", "write"),
    (OperationalError, "store unavailable", "open"),
    (DBAPIError, "driver error", "query"),
    (SQLAlchemyError, "unexpected failure", "unknown"),
)


def to_storage_error(e: SQLAlchemyError) -> StorageError:
    for exc_type, message, operation in _STORAGE_FAILURES:
        if isinstance(e, exc_type):
            return StorageError(message, operation)
    return StorageError(str(e), "unknown")


class DatabaseSessionManager:
    """Owns the engine and hands out sessions with rollback on failure."""

    def __init__(self, database_url: str, **engine_kwargs: Any):
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            error = to_storage_error(e)
            logger.error(
                "Session store %s failed: %s", error.operation, e,
                extra={"error_code": error.code},
            )
            raise error from e
        finally:
            await session.close()

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def health_check(self) -> bool:
        """True when the store answers a trivial query."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except StorageError as e:
            logger.error("Session store health check failed: %s", e.message)
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()
