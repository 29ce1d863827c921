# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Fatal request errors of the grading engine.

These abort a single report build; no partial report is returned. Missing
ancestors, missing identity mappings and failed branch reads are not
errors at this level. They degrade the report instead.
"""


class GradingError(Exception):
    """Base exception for grading engine request errors."""

    pass


class ScopeNotResolvableError(GradingError):
    """Raised when no course scope can be resolved for a request."""

    pass


class CourseNotFoundError(GradingError):
    """Raised when a requested course does not exist."""

    pass


class StudentNotFoundError(GradingError):
    """Raised when a requested student profile does not exist."""

    pass


class StudentAccessDeniedError(GradingError):
    """Raised when a student is outside the requesting teacher's courses."""

    pass


class GuardianHasNoStudentsError(GradingError):
    """Raised when a guardian has no linked students."""

    pass
