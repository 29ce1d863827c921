# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the grading engine.

This package provides centralized configuration management:
- Settings: Pydantic-based settings loaded from environment variables
- Grading constants: weights and thresholds used as settings defaults

Example:
    >>> from src.core.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from src.core.config.settings import (
    EVALUATION_WEIGHT,
    GRADE_SCALE_MAX,
    LOW_PERFORMANCE_THRESHOLD,
    PASS_THRESHOLD,
    QUIZ_WEIGHT,
    DatabaseSettings,
    GradingSettings,
    ReportingSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "DatabaseSettings",
    "GradingSettings",
    "ReportingSettings",
    # Grading constants
    "QUIZ_WEIGHT",
    "EVALUATION_WEIGHT",
    "PASS_THRESHOLD",
    "LOW_PERFORMANCE_THRESHOLD",
    "GRADE_SCALE_MAX",
]
