# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for grade aggregation."""

from decimal import Decimal

import pytest

from src.core.config.settings import GradingSettings
from src.domains.grading import (
    BucketKey,
    GradeAggregator,
    cohort_average,
    mean,
    percentage,
    round_half_up,
)
from src.models import AssessmentKind, Attempt, IdentityId

D = Decimal


def _attempt(
    attempt_id: str,
    kind: AssessmentKind,
    assessment_id: str,
    grade: str | None,
    completed: bool = True,
    student: str = "id-1",
) -> Attempt:
    return Attempt(
        id=attempt_id,
        kind=kind,
        assessment_id=assessment_id,
        student_id=IdentityId(student),
        grade=grade,
        completed=completed,
    )


@pytest.fixture
def aggregator(grading_settings: GradingSettings) -> GradeAggregator:
    return GradeAggregator(grading_settings)


class TestHelpers:
    """Tests for rounding and averaging helpers."""

    def test_round_half_up(self) -> None:
        assert round_half_up(D("4.175")) == D("4.18")
        assert round_half_up(D("4.165")) == D("4.17")
        assert round_half_up(D("0.005")) == D("0.01")

    def test_mean_of_nothing_is_zero(self) -> None:
        assert mean([]) == D("0")

    def test_cohort_average_excludes_zeros(self) -> None:
        assert cohort_average([D("4.0"), D("0"), D("3.0")]) == D("3.50")

    def test_cohort_average_all_zero(self) -> None:
        assert cohort_average([D("0"), D("0")]) == D("0")

    def test_percentage(self) -> None:
        assert percentage(4, 10) == D("40.0")
        assert percentage(1, 3) == D("33.3")
        assert percentage(2, 3) == D("66.7")

    def test_percentage_without_enrollment_is_zero(self) -> None:
        assert percentage(0, 0) == D("0")

    def test_percentage_is_capped(self) -> None:
        assert percentage(12, 10) == D("100.0")


class TestGrade:
    """Tests for GradeAggregator.grade."""

    def test_quiz_and_evaluation_blend(self, aggregator: GradeAggregator) -> None:
        """Quizzes 4.0 and 4.5 with evaluation 4.0 give 4.18 and pass."""
        result = aggregator.grade([D("4.0"), D("4.5")], [D("4.0")])

        assert result.quiz_avg == D("4.25")
        assert result.eval_grade == D("4.00")
        assert result.final_grade == D("4.18")
        assert result.passed is True
        assert result.sample_size == 3

    def test_evaluation_only(self, aggregator: GradeAggregator) -> None:
        """No quizzes and evaluation 2.0 give 0.6 and fail."""
        result = aggregator.grade([], [D("2.0")])

        assert result.quiz_avg == D("0")
        assert result.final_grade == D("0.60")
        assert result.passed is False

    def test_no_grades(self, aggregator: GradeAggregator) -> None:
        result = aggregator.grade([], [])

        assert result.final_grade == D("0")
        assert result.passed is False
        assert result.sample_size == 0

    def test_pass_boundary_exact(self, aggregator: GradeAggregator) -> None:
        result = aggregator.grade([D("3.7")], [D("3.7")])

        assert result.final_grade == D("3.70")
        assert result.passed is True

    def test_pass_boundary_below(self, aggregator: GradeAggregator) -> None:
        result = aggregator.grade([D("3.7")], [D("3.67")])

        assert result.final_grade == D("3.69")
        assert result.passed is False

    def test_blend_uses_unrounded_averages(self, aggregator: GradeAggregator) -> None:
        """Quizzes 3.0, 3.0 and 3.5 average 3.1666..., which blends to 3.69 and fails."""
        result = aggregator.grade([D("3.0"), D("3.0"), D("3.5")], [D("4.92")])

        assert result.quiz_avg == D("3.17")
        assert result.eval_grade == D("4.92")
        assert result.final_grade == D("3.69")
        assert result.passed is False

    def test_final_grade_is_clamped(self, aggregator: GradeAggregator) -> None:
        result = aggregator.grade([D("6.0")], [D("6.0")])

        assert result.final_grade == D("5.00")

    def test_final_grade_stays_on_scale(self, aggregator: GradeAggregator) -> None:
        for quiz in ("0", "1.3", "2.75", "5"):
            for evaluation in ("0", "2.2", "4.9", "5"):
                result = aggregator.grade([D(quiz)], [D(evaluation)])
                expected = round_half_up(
                    result.quiz_avg * D("0.70") + result.eval_grade * D("0.30")
                )
                assert result.final_grade == expected
                assert D("0") <= result.final_grade <= D("5")

    def test_custom_weights(self) -> None:
        aggregator = GradeAggregator(
            GradingSettings(quiz_weight=D("0.5"), evaluation_weight=D("0.5"))
        )

        assert aggregator.grade([D("4.0")], [D("2.0")]).final_grade == D("3.00")


class TestThresholds:
    """Tests for the pass and low-performance thresholds."""

    def test_low_performance_boundary(self, aggregator: GradeAggregator) -> None:
        assert aggregator.is_low_performance(D("3.00")) is False
        assert aggregator.is_low_performance(D("2.99")) is True

    def test_thresholds_are_independent(self, aggregator: GradeAggregator) -> None:
        """A 3.5 average fails but raises no alert."""
        assert aggregator.is_passing(D("3.5")) is False
        assert aggregator.is_low_performance(D("3.5")) is False


class TestGradeBook:
    """Tests for GradeBook bucketing and subject averages."""

    def test_buckets_by_subject_and_period(self, aggregator: GradeAggregator) -> None:
        buckets = {
            (AssessmentKind.QUIZ, "q-1"): BucketKey("math", "p-1"),
            (AssessmentKind.QUIZ, "q-2"): BucketKey("math", "p-2"),
            (AssessmentKind.EVALUATION, "e-1"): BucketKey("math", "p-1"),
        }
        attempts = [
            _attempt("a-1", AssessmentKind.QUIZ, "q-1", "4.0"),
            _attempt("a-2", AssessmentKind.QUIZ, "q-2", "2.0"),
            _attempt("a-3", AssessmentKind.EVALUATION, "e-1", "5.0"),
        ]

        book = aggregator.build_gradebook(attempts, buckets)

        assert book.keys_for(IdentityId("id-1")) == [
            BucketKey("math", "p-1"),
            BucketKey("math", "p-2"),
        ]
        assert book.final_grade(IdentityId("id-1"), "math", "p-1").final_grade == D("4.30")
        assert book.final_grade(IdentityId("id-1"), "math", "p-2").final_grade == D("1.40")

    def test_skips_unbucketed_and_ungradable(self, aggregator: GradeAggregator) -> None:
        buckets = {(AssessmentKind.QUIZ, "q-1"): BucketKey("math", "p-1")}
        attempts = [
            _attempt("a-1", AssessmentKind.QUIZ, "q-1", "4.0"),
            _attempt("a-2", AssessmentKind.QUIZ, "q-1", None),
            _attempt("a-3", AssessmentKind.QUIZ, "q-1", "1.0", completed=False),
            _attempt("a-4", AssessmentKind.QUIZ, "q-orphan", "1.0"),
        ]

        book = aggregator.build_gradebook(attempts, buckets)

        assert book.grades(IdentityId("id-1"), BucketKey("math", "p-1")) == ([D("4.0")], [])

    def test_subject_average_over_graded_periods(self, aggregator: GradeAggregator) -> None:
        buckets = {
            (AssessmentKind.QUIZ, "q-1"): BucketKey("math", "p-1"),
            (AssessmentKind.QUIZ, "q-2"): BucketKey("math", "p-2"),
        }
        attempts = [
            _attempt("a-1", AssessmentKind.QUIZ, "q-1", "5.0"),
            _attempt("a-2", AssessmentKind.QUIZ, "q-2", "3.0"),
            _attempt("a-3", AssessmentKind.QUIZ, "q-2", "4.0"),
        ]

        book = aggregator.build_gradebook(attempts, buckets)
        summary = book.subject_average(IdentityId("id-1"), "math")

        # finals: p-1 = 3.50, p-2 = 3.50 * 0.7 = 2.45
        assert summary.average == D("2.98")
        assert summary.sample_size == 3
        assert summary.period_count == 2

    def test_subject_average_boundary(self, aggregator: GradeAggregator) -> None:
        buckets = {
            (AssessmentKind.QUIZ, "q-1"): BucketKey("math", "p-1"),
            (AssessmentKind.EVALUATION, "e-1"): BucketKey("math", "p-1"),
            (AssessmentKind.QUIZ, "q-2"): BucketKey("sci", "p-2"),
            (AssessmentKind.EVALUATION, "e-2"): BucketKey("sci", "p-2"),
        }
        attempts = [
            _attempt("a-1", AssessmentKind.QUIZ, "q-1", "3.0"),
            _attempt("a-2", AssessmentKind.EVALUATION, "e-1", "3.0"),
            _attempt("a-3", AssessmentKind.QUIZ, "q-2", "3.0"),
            _attempt("a-4", AssessmentKind.EVALUATION, "e-2", "2.97"),
        ]

        book = aggregator.build_gradebook(attempts, buckets)
        math = book.subject_average(IdentityId("id-1"), "math")
        sci = book.subject_average(IdentityId("id-1"), "sci")

        assert math.average == D("3.00")
        assert aggregator.is_low_performance(math.average) is False
        assert sci.average == D("2.99")
        assert aggregator.is_low_performance(sci.average) is True
