# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Data access for the grading engine.

Example:
    from src.infrastructure.repository import InMemoryAcademicRepository

    repository = InMemoryAcademicRepository.from_file(Path("school.yaml"))
"""

from src.infrastructure.repository.base import (
    AcademicRepository,
    ChainPayload,
    RepositoryError,
    first_or_none,
)
from src.infrastructure.repository.memory import InMemoryAcademicRepository
from src.infrastructure.repository.snapshot import SnapshotLoadError, load_snapshot
from src.infrastructure.repository.sql import SQLAlchemyAcademicRepository

__all__ = [
    "AcademicRepository",
    "ChainPayload",
    "InMemoryAcademicRepository",
    "RepositoryError",
    "SQLAlchemyAcademicRepository",
    "SnapshotLoadError",
    "first_or_none",
    "load_snapshot",
]
