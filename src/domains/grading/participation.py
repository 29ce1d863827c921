# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Participation percentages of a course cohort.

An enrolled student is active when they have at least one completed
attempt (quiz or evaluation) anywhere in the course.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from src.domains.grading.aggregator import percentage
from src.domains.grading.cohort import Cohort, CohortLoader


@dataclass(frozen=True)
class Participation:
    """Participation figures of one course.

    Attributes:
        course_id: Course identifier.
        total_enrolled: Enrolled students.
        active_count: Students with any completed attempt.
        quiz_active_count: Students with a completed quiz attempt.
        evaluation_active_count: Students with a completed evaluation attempt.
        percentage: active_count / total_enrolled in percent, 1 decimal.
        quiz_percentage: Same for quiz_active_count.
        evaluation_percentage: Same for evaluation_active_count.
    """

    course_id: str
    total_enrolled: int
    active_count: int
    quiz_active_count: int
    evaluation_active_count: int
    percentage: Decimal
    quiz_percentage: Decimal
    evaluation_percentage: Decimal

    @property
    def pending_count(self) -> int:
        return self.total_enrolled - self.active_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "course_id": self.course_id,
            "total_enrolled": self.total_enrolled,
            "active_count": self.active_count,
            "pending_count": self.pending_count,
            "percentage": str(self.percentage),
        }


class ParticipationCalculator:
    """Computes course participation."""

    def __init__(self, loader: CohortLoader | None = None) -> None:
        self.loader = loader

    async def participation(self, course_id: str) -> Participation:
        """Load a course cohort and compute its participation.

        Raises:
            CourseNotFoundError: If the course does not exist.
        """
        if self.loader is None:
            raise RuntimeError("ParticipationCalculator needs a CohortLoader to read courses")
        return self.compute(await self.loader.load(course_id))

    def compute(self, cohort: Cohort) -> Participation:
        completed = cohort.completed()
        enrolled_identities = {
            cohort.identities[sid] for sid in cohort.student_ids if sid in cohort.identities
        }
        quiz_active = {a.student_id for a in completed.quiz} & enrolled_identities
        evaluation_active = {a.student_id for a in completed.evaluation} & enrolled_identities
        active = quiz_active | evaluation_active
        total = cohort.total_enrolled

        return Participation(
            course_id=cohort.course.id,
            total_enrolled=total,
            active_count=len(active),
            quiz_active_count=len(quiz_active),
            evaluation_active_count=len(evaluation_active),
            percentage=percentage(len(active), total),
            quiz_percentage=percentage(len(quiz_active), total),
            evaluation_percentage=percentage(len(evaluation_active), total),
        )
