# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for database connection management."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.core.config.settings import DatabaseSettings, Settings
from src.infrastructure.database import connection
from src.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    get_sessionmaker,
    init_database,
)
from src.infrastructure.repository import RepositoryError


@pytest.fixture(autouse=True)
def reset_connection_state():
    """Reset module-level engine state around each test."""
    connection._engine = None
    connection._sessionmaker = None
    yield
    connection._engine = None
    connection._sessionmaker = None


class TestConnection:
    """Tests for init/close and sessionmaker access."""

    def test_get_sessionmaker_before_init_raises(self) -> None:
        with pytest.raises(DatabaseError) as exc_info:
            get_sessionmaker()

        assert "not initialized" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_check_connection_without_engine(self) -> None:
        assert await check_database_connection() is False

    @pytest.mark.asyncio
    async def test_init_uses_database_settings(self) -> None:
        settings = Settings(
            debug=False,
            database=DatabaseSettings(host="db.internal", pool_size=3),
        )
        engine = MagicMock()
        engine.dispose = AsyncMock()

        with patch.object(connection, "create_async_engine", return_value=engine) as create:
            await init_database(settings)

        url = create.call_args.args[0]
        assert "db.internal" in url
        assert create.call_args.kwargs["pool_size"] == 3
        assert get_sessionmaker() is not None

        await close_database()

        engine.dispose.assert_awaited_once()
        with pytest.raises(DatabaseError):
            get_sessionmaker()

    @pytest.mark.asyncio
    async def test_close_without_init_is_noop(self) -> None:
        await close_database()

        assert connection._engine is None

    def test_database_error_is_repository_error(self) -> None:
        error = DatabaseError("Failed", ValueError("boom"))

        assert isinstance(error, RepositoryError)
        assert str(error) == "Failed: boom"
