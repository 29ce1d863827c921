# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Weighted grade aggregation.

Grades are bucketed by (subject, period) per student. For each bucket:

    quiz_avg    = mean of completed quiz grades (0 if none)
    eval_grade  = mean of completed evaluation grades (0 if none)
    final_grade = round(quiz_avg * quiz_weight + eval_grade * evaluation_weight, 2)

The blend uses the unrounded means; quiz_avg and eval_grade are rounded to
two decimals only where they are reported.
All arithmetic is Decimal with ROUND_HALF_UP (4.175 rounds to 4.18).

Usage:
    aggregator = GradeAggregator()
    book = aggregator.build_gradebook(attempts, tree.buckets())
    result = book.final_grade(identity_id, "math", "p1")
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from src.core.config import GradingSettings, get_settings
from src.domains.grading.hierarchy import BucketKey
from src.models import AssessmentKind, Attempt, IdentityId

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
CENT = Decimal("0.01")
TENTH = Decimal("0.1")
HUNDRED = Decimal("100")


def round_half_up(value: Decimal, exponent: Decimal = CENT) -> Decimal:
    """Round half away from zero to the given exponent."""
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


def mean(values: Iterable[Decimal]) -> Decimal:
    """Arithmetic mean; 0 for no values."""
    items = list(values)
    if not items:
        return ZERO
    return sum(items, ZERO) / len(items)


def cohort_average(values: Iterable[Decimal]) -> Decimal:
    """Mean of the values strictly greater than zero, rounded to 2 decimals.

    Entities without grades report 0 and are left out of the mean rather
    than pulling it down.
    """
    return round_half_up(mean(v for v in values if v > 0))


def percentage(part: int, total: int) -> Decimal:
    """``part / total * 100`` rounded to one decimal, 0 when total is 0."""
    if total <= 0:
        return round_half_up(ZERO, TENTH)
    ratio = Decimal(min(max(part, 0), total)) * HUNDRED / Decimal(total)
    return round_half_up(ratio, TENTH)


@dataclass(frozen=True)
class GradeResult:
    """Final grade of one student in one (subject, period)."""

    quiz_avg: Decimal
    eval_grade: Decimal
    final_grade: Decimal
    passed: bool
    quiz_count: int = 0
    evaluation_count: int = 0

    @property
    def sample_size(self) -> int:
        return self.quiz_count + self.evaluation_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "quiz_avg": str(self.quiz_avg),
            "eval_grade": str(self.eval_grade),
            "final_grade": str(self.final_grade),
            "passed": self.passed,
            "sample_size": self.sample_size,
        }


@dataclass(frozen=True)
class SubjectAverage:
    """A student's average across the graded periods of one subject."""

    subject_id: str
    average: Decimal
    sample_size: int
    period_count: int


@dataclass
class _Bucket:
    quiz: list[Decimal] = field(default_factory=list)
    evaluation: list[Decimal] = field(default_factory=list)


class GradeAggregator:
    """Computes weighted final grades under a grading policy.

    Attributes:
        settings: Weights and thresholds.
    """

    def __init__(self, settings: GradingSettings | None = None) -> None:
        self.settings = settings or get_settings().grading

    def grade(
        self,
        quiz_grades: Iterable[Decimal],
        evaluation_grades: Iterable[Decimal],
    ) -> GradeResult:
        """Blend quiz and evaluation grades into a final grade.

        Args:
            quiz_grades: Completed quiz grades of one (student, subject, period).
            evaluation_grades: Completed evaluation grades of the same bucket.

        Returns:
            GradeResult with the final grade clamped to the grade scale.
        """
        quizzes = list(quiz_grades)
        evaluations = list(evaluation_grades)
        quiz_avg = mean(quizzes)
        eval_grade = mean(evaluations)

        blended = quiz_avg * self.settings.quiz_weight + eval_grade * self.settings.evaluation_weight
        final = round_half_up(min(max(blended, ZERO), self.settings.grade_scale_max))

        return GradeResult(
            quiz_avg=round_half_up(quiz_avg),
            eval_grade=round_half_up(eval_grade),
            final_grade=final,
            passed=self.is_passing(final),
            quiz_count=len(quizzes),
            evaluation_count=len(evaluations),
        )

    def is_passing(self, final_grade: Decimal) -> bool:
        return final_grade >= self.settings.pass_threshold

    def is_low_performance(self, average: Decimal) -> bool:
        return average < self.settings.low_performance_threshold

    def build_gradebook(
        self,
        attempts: Iterable[Attempt],
        buckets: Mapping[tuple[AssessmentKind, str], BucketKey | None],
    ) -> "GradeBook":
        """Bucket gradable attempts by student and (subject, period).

        Attempts that are not gradable, or whose assessment has no bucket
        key (partial ancestry, assessment outside the scope), are skipped.

        Args:
            attempts: Attempts of either stream.
            buckets: Bucket key per (kind, assessment id).

        Returns:
            Populated GradeBook.
        """
        book = GradeBook(self)
        skipped = 0
        for attempt in attempts:
            if not attempt.is_gradable:
                continue
            key = buckets.get((attempt.kind, attempt.assessment_id))
            if key is None:
                skipped += 1
                continue
            book.add(attempt, key)
        if skipped:
            logger.debug("Skipped %d graded attempts without a (subject, period) bucket", skipped)
        return book


class GradeBook:
    """Graded attempts grouped by student and (subject, period)."""

    def __init__(self, aggregator: GradeAggregator) -> None:
        self._aggregator = aggregator
        self._grades: dict[IdentityId, dict[BucketKey, _Bucket]] = {}

    def add(self, attempt: Attempt, key: BucketKey) -> None:
        if attempt.grade is None:
            return
        bucket = self._grades.setdefault(attempt.student_id, {}).setdefault(key, _Bucket())
        if attempt.kind == AssessmentKind.QUIZ:
            bucket.quiz.append(attempt.grade)
        else:
            bucket.evaluation.append(attempt.grade)

    def students(self) -> list[IdentityId]:
        return sorted(self._grades)

    def keys_for(self, identity_id: IdentityId) -> list[BucketKey]:
        """Buckets in which the student has at least one graded attempt."""
        return sorted(self._grades.get(identity_id, {}))

    def has_grades(self, identity_id: IdentityId, key: BucketKey) -> bool:
        return key in self._grades.get(identity_id, {})

    def grades(self, identity_id: IdentityId, key: BucketKey) -> tuple[list[Decimal], list[Decimal]]:
        bucket = self._grades.get(identity_id, {}).get(key)
        if bucket is None:
            return [], []
        return list(bucket.quiz), list(bucket.evaluation)

    def final_grade(
        self,
        identity_id: IdentityId,
        subject_id: str,
        period_id: str,
    ) -> GradeResult:
        """Final grade of a student in one (subject, period).

        A student without graded attempts there gets 0 for both inputs.
        """
        quiz, evaluation = self.grades(identity_id, BucketKey(subject_id, period_id))
        return self._aggregator.grade(quiz, evaluation)

    def subject_ids_for(self, identity_id: IdentityId) -> list[str]:
        return sorted({key.subject_id for key in self._grades.get(identity_id, {})})

    def subject_average(self, identity_id: IdentityId, subject_id: str) -> SubjectAverage:
        """Mean final grade over the subject's periods the student was graded in."""
        finals: list[Decimal] = []
        sample_size = 0
        for key in self.keys_for(identity_id):
            if key.subject_id != subject_id:
                continue
            result = self.final_grade(identity_id, key.subject_id, key.period_id)
            finals.append(result.final_grade)
            sample_size += result.sample_size
        return SubjectAverage(
            subject_id=subject_id,
            average=round_half_up(mean(finals)),
            sample_size=sample_size,
            period_count=len(finals),
        )
