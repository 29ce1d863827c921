# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Early-warning alerts for a course cohort.

Two signals:
- low performers: a student's per-subject average is strictly below the
  low-performance threshold. The per-subject average is the mean of the
  student's final grades over the subject's periods in which they have at
  least one graded attempt.
- never attempted: an enrolled student with no attempt of either kind, in
  any state, on any assessment of the course. Students without an identity
  mapping fall in this group.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from src.domains.grading.aggregator import GradeAggregator
from src.domains.grading.cohort import Cohort, CohortLoader
from src.models import ProfileId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LowPerformer:
    """A student below the low-performance threshold in one subject."""

    student_id: ProfileId
    course_id: str
    subject_id: str
    average: Decimal
    sample_size: int


class AlertEngine:
    """Detects low performers and students who never attempted anything."""

    def __init__(
        self,
        aggregator: GradeAggregator | None = None,
        loader: CohortLoader | None = None,
    ) -> None:
        self.aggregator = aggregator or GradeAggregator()
        self.loader = loader

    async def low_performers(self, course_id: str) -> list[LowPerformer]:
        return self.low_performers_in(await self._load(course_id))

    async def never_attempted(self, course_id: str) -> list[ProfileId]:
        return self.never_attempted_in(await self._load(course_id))

    async def _load(self, course_id: str) -> Cohort:
        if self.loader is None:
            raise RuntimeError("AlertEngine needs a CohortLoader to read courses")
        return await self.loader.load(course_id)

    def low_performers_in(self, cohort: Cohort) -> list[LowPerformer]:
        """Students whose subject average is below the threshold.

        Returns:
            Alerts ordered by student (display order), then subject name.
        """
        book = self.aggregator.build_gradebook(cohort.completed().all(), cohort.tree.buckets())
        alerts: list[LowPerformer] = []
        for student_id in cohort.ordered_students():
            identity_id = cohort.identity_of(student_id)
            if identity_id is None:
                continue
            subject_ids = sorted(
                book.subject_ids_for(identity_id),
                key=lambda sid: (cohort.tree.subject(sid).name if cohort.tree.subject(sid) else "", sid),
            )
            for subject_id in subject_ids:
                summary = book.subject_average(identity_id, subject_id)
                if not self.aggregator.is_low_performance(summary.average):
                    continue
                alerts.append(
                    LowPerformer(
                        student_id=student_id,
                        course_id=cohort.course.id,
                        subject_id=subject_id,
                        average=summary.average,
                        sample_size=summary.sample_size,
                    )
                )

        if alerts:
            logger.info(
                "Low performance alerts in course %s: %d", cohort.course.id, len(alerts)
            )
        return alerts

    def never_attempted_in(self, cohort: Cohort) -> list[ProfileId]:
        """Enrolled students without any attempt in the course, in display order."""
        attempted = cohort.attempts.students()
        return [
            student_id
            for student_id in cohort.ordered_students()
            if cohort.identity_of(student_id) not in attempted
        ]
