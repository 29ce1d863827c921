# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared helpers of the grading engine.

- logging: structlog setup and per-report log context
"""

from src.utils.logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    "bind_context",
    "clear_context",
    "get_logger",
    "setup_logging",
]
