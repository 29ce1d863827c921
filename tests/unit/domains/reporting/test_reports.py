# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for ReportAssembler."""

import json
from collections.abc import Collection
from typing import Any

import pytest

from src.core.config.settings import Settings
from src.domains.grading import (
    CourseNotFoundError,
    GuardianHasNoStudentsError,
    ScopeNotResolvableError,
    StudentAccessDeniedError,
    StudentNotFoundError,
)
from src.domains.reporting import ReportAssembler
from src.infrastructure.repository import InMemoryAcademicRepository, RepositoryError
from src.models import Enrollment


@pytest.fixture
def two_course_snapshot(school_snapshot: dict[str, Any]) -> dict[str, Any]:
    """School snapshot plus an empty course taught by a second teacher."""
    snapshot = {table: list(rows) for table, rows in school_snapshot.items()}
    snapshot["courses"].append({"id": "c-2", "name": "Grade 6", "level": "6"})
    snapshot["teacher_assignments"].append({"teacher_id": "teacher-2", "course_id": "c-2"})
    return snapshot


class BrokenCourseRepository(InMemoryAcademicRepository):
    """Fails every enrollment read that touches course c-2."""

    async def get_enrollments(self, course_ids: Collection[str]) -> list[Enrollment]:
        if "c-2" in course_ids:
            raise RepositoryError("Failed to read enrollments")
        return await super().get_enrollments(course_ids)


class TestCourseReport:
    """Tests for course grade reports."""

    @pytest.mark.asyncio
    async def test_structure_and_order(self, assembler: ReportAssembler) -> None:
        report = await assembler.course_report("c-1")

        assert report.complete is True
        assert [s.subject.name for s in report.subjects] == ["Math", "Science"]
        math = report.subjects[0]
        assert [p.period.id for p in math.periods] == ["p-m1", "p-m2"]
        assert [r.student.first_name for r in math.periods[0].student_results] == [
            "Ana",
            "Bruno",
            "Carla",
            "Dario",
        ]

    @pytest.mark.asyncio
    async def test_weighted_final_grade(self, assembler: ReportAssembler) -> None:
        report = await assembler.course_report("c-1")

        ana = report.subjects[0].periods[0].student_results[0]
        assert ana.quiz_avg == 4.25
        assert ana.eval_grade == 4.0
        assert ana.final_grade == 4.18
        assert ana.passed is True

        bruno = report.subjects[1].periods[0].student_results[1]
        assert bruno.quiz_avg == 0.0
        assert bruno.final_grade == 0.6
        assert bruno.passed is False

    @pytest.mark.asyncio
    async def test_ungraded_students_report_zero(self, assembler: ReportAssembler) -> None:
        report = await assembler.course_report("c-1")

        for result in report.subjects[0].periods[1].student_results:
            assert result.final_grade == 0.0
            assert result.passed is False

    @pytest.mark.asyncio
    async def test_subject_stats(self, assembler: ReportAssembler) -> None:
        report = await assembler.course_report("c-1")

        math, science = report.subjects[0].stats, report.subjects[1].stats
        assert (math.total, math.completed, math.pending) == (4, 1, 3)
        assert math.average == 4.18
        assert (science.completed, science.average) == (1, 0.6)

    @pytest.mark.asyncio
    async def test_json_keys_and_idempotence(self, assembler: ReportAssembler) -> None:
        first = (await assembler.course_report("c-1")).to_json()
        second = (await assembler.course_report("c-1")).to_json()

        assert first == second
        payload = json.loads(first)
        result = payload["subjects"][0]["periods"][0]["studentResults"][0]
        assert set(result) == {"student", "quizAvg", "evalGrade", "finalGrade", "pass"}
        assert result["student"]["firstName"] == "Ana"

    @pytest.mark.asyncio
    async def test_unknown_course(self, assembler: ReportAssembler) -> None:
        with pytest.raises(CourseNotFoundError):
            await assembler.course_report("c-missing")

    @pytest.mark.asyncio
    async def test_teacher_scope(self, assembler: ReportAssembler) -> None:
        reports = await assembler.teacher_course_reports("teacher-1")

        assert [r.course.id for r in reports.courses] == ["c-1"]
        with pytest.raises(ScopeNotResolvableError):
            await assembler.teacher_course_reports("teacher-unknown")


class TestPartialFailure:
    """Tests for degraded reports when one branch fails."""

    @pytest.mark.asyncio
    async def test_failed_course_is_empty_and_marks_incomplete(
        self, two_course_snapshot: dict[str, Any], settings: Settings
    ) -> None:
        repository = BrokenCourseRepository.from_snapshot(two_course_snapshot)
        assembler = ReportAssembler(repository, settings)

        reports = await assembler.course_reports()

        assert reports.complete is False
        assert [r.course.id for r in reports.courses] == ["c-1", "c-2"]
        assert reports.courses[0].complete is True
        assert len(reports.courses[0].subjects) == 2
        assert reports.courses[1].complete is False
        assert reports.courses[1].subjects == []

    @pytest.mark.asyncio
    async def test_alerts_keep_healthy_courses(
        self, two_course_snapshot: dict[str, Any], settings: Settings
    ) -> None:
        repository = BrokenCourseRepository.from_snapshot(two_course_snapshot)
        assembler = ReportAssembler(repository, settings)

        report = await assembler.alerts_report()

        assert report.complete is False
        assert [e.student.first_name for e in report.low_performers] == ["Bruno"]


class TestAlertsReport:
    """Tests for the alerts report."""

    @pytest.mark.asyncio
    async def test_teacher_alerts(self, assembler: ReportAssembler) -> None:
        report = await assembler.alerts_report(teacher_id="teacher-1")

        assert report.complete is True
        assert len(report.low_performers) == 1
        low = report.low_performers[0]
        assert low.student.id == "stu-bruno"
        assert low.subject.name == "Science"
        assert low.average == 0.6
        assert low.sample_size == 1
        assert [e.student.id for e in report.never_attempted] == ["stu-dario"]

    @pytest.mark.asyncio
    async def test_json_uses_camel_case(self, assembler: ReportAssembler) -> None:
        payload = json.loads((await assembler.alerts_report(course_ids=["c-1"])).to_json())

        assert "lowPerformers" in payload
        assert "neverAttempted" in payload
        assert payload["lowPerformers"][0]["sampleSize"] == 1


class TestStudentTracking:
    """Tests for the student tracking report."""

    @pytest.mark.asyncio
    async def test_teacher_view(self, assembler: ReportAssembler) -> None:
        report = await assembler.student_tracking_report("stu-ana", teacher_id="teacher-1")

        assert [c.id for c in report.courses] == ["c-1"]
        assert len(report.per_subject_period) == 1
        row = report.per_subject_period[0]
        assert (row.subject.name, row.period.id, row.final_grade, row.passed) == (
            "Math",
            "p-m1",
            4.18,
            True,
        )
        stats = report.overall_stats
        assert (stats.total_quizzes, stats.completed_quizzes) == (2, 2)
        assert stats.quiz_average == 4.25
        assert stats.evaluation_average == 4.0
        assert stats.overall_average == 4.18
        assert (stats.passed_count, stats.failed_count) == (1, 0)

    @pytest.mark.asyncio
    async def test_admin_view_of_unmapped_student(self, assembler: ReportAssembler) -> None:
        report = await assembler.student_tracking_report("stu-dario")

        assert report.complete is True
        assert report.per_subject_period == []
        assert report.overall_stats.total_quizzes == 0
        assert report.overall_stats.overall_average == 0.0

    @pytest.mark.asyncio
    async def test_access_denied(
        self, two_course_snapshot: dict[str, Any], settings: Settings
    ) -> None:
        assembler = ReportAssembler(
            InMemoryAcademicRepository.from_snapshot(two_course_snapshot), settings
        )

        with pytest.raises(StudentAccessDeniedError):
            await assembler.student_tracking_report("stu-ana", teacher_id="teacher-2")

    @pytest.mark.asyncio
    async def test_unknown_student(self, assembler: ReportAssembler) -> None:
        with pytest.raises(StudentNotFoundError):
            await assembler.student_tracking_report("stu-missing")


class TestGuardianReport:
    """Tests for the guardian portal report."""

    @pytest.mark.asyncio
    async def test_children_grades(self, assembler: ReportAssembler) -> None:
        report = await assembler.guardian_report("guardian-1")

        assert [s.student.first_name for s in report.students] == ["Ana", "Bruno"]
        ana = report.students[0]
        assert [p.period.id for p in ana.periods] == ["p-m1"]
        math = ana.periods[0].subjects[0]
        assert [q.name for q in math.quizzes] == ["Fractions quiz A", "Fractions quiz B"]
        assert [e.name for e in math.evaluations] == ["Math exam 1"]
        assert math.final_grade == 4.18
        assert math.passed is True

        bruno = report.students[1].periods[0].subjects[0]
        assert bruno.subject.name == "Science"
        assert bruno.passed is False

    @pytest.mark.asyncio
    async def test_guardian_without_students(self, assembler: ReportAssembler) -> None:
        with pytest.raises(GuardianHasNoStudentsError):
            await assembler.guardian_report("guardian-unknown")


class TestAdministratorPerformance:
    """Tests for course performance."""

    @pytest.mark.asyncio
    async def test_courses_performance(self, assembler: ReportAssembler) -> None:
        report = await assembler.courses_performance()

        course = report.courses[0]
        math, science = course.subjects
        assert (math.total_quizzes, math.total_evaluations) == (3, 1)
        assert math.quiz_average == 4.25
        assert math.general_average == 4.13
        assert math.participation == 25.0
        assert science.quiz_average == 0.0
        assert science.general_average == 2.0
        assert course.general_average == 3.07
        assert (course.total_students, course.total_subjects, course.active_students) == (4, 2, 2)
        assert course.participation == 50.0

    @pytest.mark.asyncio
    async def test_general_average_uses_unrounded_subject_means(
        self, school_snapshot: dict[str, Any], settings: Settings
    ) -> None:
        """Math quizzes 4.0, 4.5, 4.0 and 4.0 average 4.125; with evaluation 4.0 that is 4.06."""
        snapshot = {table: list(rows) for table, rows in school_snapshot.items()}
        for attempt_id, student in (("qa-4", "id-carla"), ("qa-5", "id-bruno")):
            snapshot["quiz_attempts"].append(
                {
                    "id": attempt_id,
                    "student_id": student,
                    "grade": 4.0,
                    "completed": True,
                    "quiz_id": "q-m2",
                }
            )
        assembler = ReportAssembler(InMemoryAcademicRepository.from_snapshot(snapshot), settings)

        report = await assembler.courses_performance()

        math = report.courses[0].subjects[0]
        assert math.quiz_average == 4.13
        assert math.evaluation_average == 4.0
        assert math.general_average == 4.06


class TestTeacherDashboard:
    """Tests for the teacher dashboard reports."""

    @pytest.mark.asyncio
    async def test_course_participation(self, assembler: ReportAssembler) -> None:
        report = await assembler.course_participation("teacher-1")

        entry = report.courses[0]
        assert (entry.total_enrolled, entry.active, entry.pending) == (4, 2, 2)
        assert entry.percentage == 50.0
        assert entry.quiz_percentage == 25.0
        assert entry.evaluation_percentage == 50.0

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, assembler: ReportAssembler) -> None:
        stats = await assembler.teacher_dashboard_stats("teacher-1")

        assert stats.total_students == 4
        assert stats.total_courses == 1
        assert stats.total_quizzes == 4
        assert stats.total_evaluations == 2

    @pytest.mark.asyncio
    async def test_assessment_results(self, assembler: ReportAssembler) -> None:
        report = await assembler.assessment_results("teacher-1")

        assert [q.id for q in report.quizzes] == ["q-m1a", "q-m1b", "q-m2", "q-s1"]
        assert [e.id for e in report.evaluations] == ["e-m1", "e-s1"]

        quiz = report.quizzes[0]
        assert quiz.subtopic is not None and quiz.subtopic.name == "Adding"
        assert [s.status for s in quiz.students] == [
            "completed",
            "pending",
            "in_progress",
            "pending",
        ]
        assert quiz.students[0].attempt is not None
        assert quiz.students[0].attempt.grade == 4.0
        assert quiz.students[3].attempt is None
        assert (quiz.stats.total, quiz.stats.completed, quiz.stats.pending) == (4, 1, 3)
        assert quiz.stats.average == 4.0
        assert report.evaluations[0].subtopic is None

    @pytest.mark.asyncio
    async def test_unknown_teacher(self, assembler: ReportAssembler) -> None:
        with pytest.raises(ScopeNotResolvableError):
            await assembler.course_participation("teacher-unknown")


class TestStudentProgress:
    """Tests for student progress."""

    @pytest.mark.asyncio
    async def test_progress(self, assembler: ReportAssembler) -> None:
        report = await assembler.student_progress("stu-ana", "s-math")

        first, second = report.periods
        assert first.topics[0].topic.name == "Fractions"
        assert first.topics[0].completed is True
        assert first.evaluation_unlocked is True
        assert second.evaluation_unlocked is False

    @pytest.mark.asyncio
    async def test_unknown_subject(self, assembler: ReportAssembler) -> None:
        with pytest.raises(ScopeNotResolvableError):
            await assembler.student_progress("stu-ana", "s-missing")
