# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the school PostgreSQL database.

Example:
    from src.infrastructure.database import init_database, get_sessionmaker

    await init_database(settings)
    sessionmaker = get_sessionmaker()
"""

from src.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    get_sessionmaker,
    init_database,
)

__all__ = [
    "DatabaseError",
    "check_database_connection",
    "close_database",
    "get_sessionmaker",
    "init_database",
]
