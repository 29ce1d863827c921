# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Engine and sessionmaker for the school database.

One engine per process, created by init_database() at startup and disposed
by close_database(). SQLAlchemyAcademicRepository takes the sessionmaker
and opens a short-lived session per read; nothing is ever committed.

Example:
    await init_database(settings)
    repository = SQLAlchemyAcademicRepository(get_sessionmaker())
    ...
    await close_database()
"""

import logging
from typing import TYPE_CHECKING, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.infrastructure.repository.base import RepositoryError

if TYPE_CHECKING:
    from src.core.config.settings import Settings

logger = logging.getLogger(__name__)

# Recycle pooled connections before typical server-side idle timeouts.
POOL_RECYCLE_SECONDS = 1800

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None


class DatabaseError(RepositoryError):
    """Raised when the engine cannot be created or is used before init."""


async def init_database(settings: "Settings") -> None:
    """Create the engine and sessionmaker from ``settings.database``.

    Raises:
        DatabaseError: If the engine cannot be created.
    """
    global _engine, _sessionmaker

    try:
        _engine = create_async_engine(
            settings.database.url,
            pool_size=settings.database.pool_size,
            max_overflow=settings.database.max_overflow,
            pool_pre_ping=True,
            pool_recycle=POOL_RECYCLE_SECONDS,
            echo=settings.debug,
        )
        _sessionmaker = async_sessionmaker(
            bind=_engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to initialize database connection", e) from e

    logger.info(
        "Database engine ready: host=%s, database=%s, pool_size=%d",
        settings.database.host,
        settings.database.database,
        settings.database.pool_size,
    )


async def close_database() -> None:
    """Dispose of the engine; a no-op when it was never created."""
    global _engine, _sessionmaker

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _sessionmaker = None


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Sessionmaker bound to the engine created by init_database().

    Raises:
        DatabaseError: If init_database() has not run.
    """
    if _sessionmaker is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _sessionmaker


async def check_database_connection() -> bool:
    """Run ``SELECT 1``; False when the engine is missing or the query fails."""
    if _engine is None:
        return False

    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database connection check failed", exc_info=True)
        return False
    return True
