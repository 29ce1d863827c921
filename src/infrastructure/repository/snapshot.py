# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Snapshot file loader.

A snapshot is a YAML (or JSON, which YAML parses) document whose root is a
mapping of table name to a list of rows. Snapshots feed
InMemoryAcademicRepository for offline report runs and tests.

Example:
    >>> from pathlib import Path
    >>> from src.infrastructure.repository.snapshot import load_snapshot
    >>> snapshot = load_snapshot(Path("fixtures/school.yaml"))
    >>> snapshot["courses"][0]["name"]
"""

from pathlib import Path
from typing import Any

import yaml

SNAPSHOT_TABLES = frozenset(
    {
        "courses",
        "subjects",
        "periods",
        "topics",
        "subtopics",
        "contents",
        "quizzes",
        "evaluations",
        "students",
        "enrollments",
        "teacher_assignments",
        "guardian_links",
        "quiz_attempts",
        "evaluation_attempts",
    }
)


class SnapshotLoadError(Exception):
    """Raised when a snapshot file cannot be loaded or parsed."""

    def __init__(self, path: Path | str, reason: str) -> None:
        """Initialize SnapshotLoadError.

        Args:
            path: Path to the snapshot file that failed to load.
            reason: Description of why the file failed to load.
        """
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load snapshot '{path}': {reason}")


def load_snapshot(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Load a snapshot file and return its tables.

    Args:
        path: Path to the snapshot file to load.

    Returns:
        Mapping of table name to list of rows. Empty dict if the file is
        empty.

    Raises:
        SnapshotLoadError: If the file doesn't exist, cannot be read,
            contains invalid YAML, names an unknown table, or holds a
            table that is not a list of mappings.
    """
    if not path.exists():
        raise SnapshotLoadError(path, "File does not exist")

    if not path.is_file():
        raise SnapshotLoadError(path, "Path is not a file")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SnapshotLoadError(path, f"Cannot read file: {e}") from e

    try:
        parsed = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SnapshotLoadError(path, f"Invalid YAML syntax: {e}") from e

    if parsed is None:
        return {}

    if not isinstance(parsed, dict):
        raise SnapshotLoadError(
            path, f"Snapshot root must be a mapping, got {type(parsed).__name__}"
        )

    unknown = sorted(set(parsed) - SNAPSHOT_TABLES)
    if unknown:
        raise SnapshotLoadError(path, f"Unknown tables: {', '.join(unknown)}")

    for table, rows in parsed.items():
        if rows is None:
            parsed[table] = []
            continue
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise SnapshotLoadError(path, f"Table '{table}' must be a list of mappings")

    return parsed
