# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Grading domain package.

This package provides the aggregation and grading engine:
- Identity mapping between student profiles and authentication identities
- Hierarchy resolution with fallback lookups
- Attempt collection for quizzes and evaluations
- Weighted final grades, participation and alerts
"""

from src.domains.grading.aggregator import (
    GradeAggregator,
    GradeBook,
    GradeResult,
    SubjectAverage,
    cohort_average,
    mean,
    percentage,
    round_half_up,
)
from src.domains.grading.alerts import AlertEngine, LowPerformer
from src.domains.grading.attempts import (
    AttemptCollector,
    AttemptSet,
    AttemptStatus,
    attempt_status,
    latest_attempt,
)
from src.domains.grading.cohort import Cohort, CohortLoader
from src.domains.grading.errors import (
    CourseNotFoundError,
    GradingError,
    GuardianHasNoStudentsError,
    ScopeNotResolvableError,
    StudentAccessDeniedError,
    StudentNotFoundError,
)
from src.domains.grading.fanout import FanOutResult, fan_out
from src.domains.grading.hierarchy import (
    Ancestors,
    AncestryResult,
    BucketKey,
    CourseTree,
    HierarchyLevel,
    HierarchyResolver,
    ResolutionGap,
    match_by_name,
    normalize_name,
    period_sort_key,
)
from src.domains.grading.identity import IdentityMapper
from src.domains.grading.participation import Participation, ParticipationCalculator
from src.domains.grading.progress import PeriodProgress, ProgressCalculator, TopicProgress

__all__ = [
    # Identity and hierarchy
    "IdentityMapper",
    "HierarchyResolver",
    "HierarchyLevel",
    "Ancestors",
    "AncestryResult",
    "ResolutionGap",
    "BucketKey",
    "CourseTree",
    "normalize_name",
    "match_by_name",
    "period_sort_key",
    # Attempts
    "AttemptCollector",
    "AttemptSet",
    "AttemptStatus",
    "attempt_status",
    "latest_attempt",
    # Aggregation
    "GradeAggregator",
    "GradeBook",
    "GradeResult",
    "SubjectAverage",
    "cohort_average",
    "mean",
    "percentage",
    "round_half_up",
    # Cohorts
    "Cohort",
    "CohortLoader",
    "Participation",
    "ParticipationCalculator",
    "AlertEngine",
    "LowPerformer",
    "PeriodProgress",
    "ProgressCalculator",
    "TopicProgress",
    # Fan-out
    "FanOutResult",
    "fan_out",
    # Errors
    "GradingError",
    "ScopeNotResolvableError",
    "CourseNotFoundError",
    "StudentNotFoundError",
    "StudentAccessDeniedError",
    "GuardianHasNoStudentsError",
]
