# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Content import domain package."""

from src.domains.content_import.planner import (
    ContentImportError,
    ContentImportPlanner,
    ImportPlan,
    ImportRow,
    PlannedContent,
    PlannedSubtopic,
    RowError,
    parse_rows,
)

__all__ = [
    "ContentImportPlanner",
    "ContentImportError",
    "ImportPlan",
    "ImportRow",
    "PlannedContent",
    "PlannedSubtopic",
    "RowError",
    "parse_rows",
]
