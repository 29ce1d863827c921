# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Report assembly for dashboards and portals.

This module provides the ReportAssembler class, which composes the grading
components into the report shapes each consumer needs:
- Course grade reports (per subject, per period, per student)
- Student tracking (one student, every subject and period)
- Performance alerts (low performers, students who never attempted)
- Administrator course performance
- Teacher dashboard participation, stats and assessment results
- Guardian portal grades
- Student progress through a subject

Course-scoped reports read one Cohort per course and locate assessments
through the downward CourseTree. Student-scoped reports resolve the
ancestry of the student's own attempts upward. Independent branches (one
per course or per student) run concurrently through fan_out; a failed
branch contributes an empty part and marks the report incomplete.

Usage:
    assembler = ReportAssembler(repository)
    report = await assembler.course_report("course-1")
    print(report.to_json())
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Collection, Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TypeVar

from src.core.config import Settings, get_settings
from src.domains.grading import (
    AlertEngine,
    AncestryResult,
    AttemptCollector,
    AttemptSet,
    AttemptStatus,
    BucketKey,
    Cohort,
    CohortLoader,
    CourseNotFoundError,
    FanOutResult,
    GradeAggregator,
    GradeBook,
    GradeResult,
    GuardianHasNoStudentsError,
    HierarchyResolver,
    IdentityMapper,
    ParticipationCalculator,
    ProgressCalculator,
    ScopeNotResolvableError,
    StudentAccessDeniedError,
    StudentNotFoundError,
    attempt_status,
    cohort_average,
    fan_out,
    latest_attempt,
    mean,
    percentage,
    period_sort_key,
    round_half_up,
)
from src.domains.reporting.schemas import (
    AlertsReport,
    AssessmentResult,
    AssessmentResultsReport,
    AssessmentStats,
    AttemptSummary,
    CourseParticipationEntry,
    CourseParticipationReport,
    CoursePerformance,
    CourseRef,
    CourseReport,
    CourseReportList,
    CoursesPerformanceReport,
    GradedItem,
    GuardianPeriodGrades,
    GuardianReport,
    GuardianStudentGrades,
    GuardianSubjectGrades,
    LowPerformerEntry,
    NeverAttemptedEntry,
    OverallStats,
    PeriodProgressEntry,
    PeriodRef,
    PeriodResults,
    StudentAssessmentStatus,
    StudentProgressReport,
    StudentRef,
    StudentResult,
    StudentTrackingReport,
    SubjectPerformance,
    SubjectPeriodGrade,
    SubjectRef,
    SubjectResults,
    SubjectStats,
    SubtopicRef,
    TeacherDashboardStats,
    TopicProgressEntry,
    TopicRef,
)
from src.infrastructure.repository import AcademicRepository
from src.models import (
    AssessmentKind,
    Attempt,
    Course,
    Evaluation,
    IdentityId,
    Period,
    ProfileId,
    Quiz,
    Student,
    Subject,
    Subtopic,
)
from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

K = TypeVar("K")
T = TypeVar("T")


# ============================================================================
# Reference builders
# ============================================================================


def _student_ref(student_id: ProfileId, students: Mapping[ProfileId, Student]) -> StudentRef:
    student = students.get(student_id)
    if student is None:
        return StudentRef(id=student_id, first_name="", last_name="")
    return StudentRef(
        id=student.id,
        first_name=student.first_name,
        last_name=student.last_name,
        photo_url=student.photo_url,
    )


def _course_ref(course: Course) -> CourseRef:
    return CourseRef(id=course.id, name=course.name, level=course.level)


def _subject_ref(subject: Subject | None, subject_id: str = "") -> SubjectRef:
    if subject is None:
        return SubjectRef(id=subject_id, name="")
    return SubjectRef(id=subject.id, name=subject.name)


def _period_ref(period: Period | None, period_id: str = "") -> PeriodRef:
    if period is None:
        return PeriodRef(id=period_id, name="")
    return PeriodRef(id=period.id, name=period.name, number=period.number)


def _by_display_name(
    student_ids: Iterable[ProfileId],
    students: Mapping[ProfileId, Student],
) -> list[ProfileId]:
    return sorted(
        set(student_ids),
        key=lambda sid: (students[sid].display_name.lower() if sid in students else "", sid),
    )


def _course_key(course: Course) -> tuple[str, str]:
    return (course.name, course.id)


def _as_float(value: Decimal) -> float:
    return float(value)


@dataclass
class _StudentGrades:
    """Attempts of one student with resolved ancestry."""

    attempts: AttemptSet
    ancestry: dict[tuple[AssessmentKind, str], AncestryResult]
    book: GradeBook
    complete: bool = True
    subjects: dict[str, Subject] = field(default_factory=dict)
    periods: dict[str, Period] = field(default_factory=dict)


class ReportAssembler:
    """Builds every report of the grading engine.

    All methods are read-only: building the same report twice from an
    unchanged store yields identical output.

    Attributes:
        repository: Academic data source.
        settings: Application settings.
    """

    def __init__(
        self,
        repository: AcademicRepository,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the assembler and its grading components.

        Args:
            repository: Academic data source.
            settings: Application settings, defaults to get_settings().
        """
        self.repository = repository
        self.settings = settings or get_settings()

        self.identity_mapper = IdentityMapper(repository)
        self.resolver = HierarchyResolver(repository)
        self.collector = AttemptCollector(repository)
        self.aggregator = GradeAggregator(self.settings.grading)
        self.loader = CohortLoader(
            repository,
            resolver=self.resolver,
            identity_mapper=self.identity_mapper,
            collector=self.collector,
        )
        self.participation = ParticipationCalculator(self.loader)
        self.alerts = AlertEngine(self.aggregator, self.loader)
        self.progress = ProgressCalculator()

    async def _fan_out(
        self,
        items: Iterable[K],
        branch: Callable[[K], Awaitable[T]],
        fallback: Callable[[K], T],
        label: str,
    ) -> FanOutResult[T]:
        return await fan_out(
            items,
            branch,
            fallback=fallback,
            max_concurrency=self.settings.reporting.max_concurrency,
            timeout=self.settings.reporting.branch_timeout_seconds,
            label=label,
        )

    # =========================================================================
    # Scope
    # =========================================================================

    async def _teacher_scope(self, teacher_id: str) -> list[str]:
        """Course ids assigned to a teacher.

        Raises:
            ScopeNotResolvableError: If the teacher has no assigned course.
        """
        assignments = await self.repository.get_teacher_assignments(teacher_id)
        course_ids = sorted({a.course_id for a in assignments})
        if not course_ids:
            raise ScopeNotResolvableError(f"No courses assigned to teacher {teacher_id}")
        return course_ids

    async def _courses(self, course_ids: Collection[str] | None) -> list[Course]:
        courses = await self.repository.get_courses(course_ids)
        return sorted(courses, key=_course_key)

    async def _student(self, student_id: ProfileId) -> Student:
        students = await self.repository.get_students([student_id])
        if not students:
            raise StudentNotFoundError(f"Student not found: {student_id}")
        return students[0]

    # =========================================================================
    # Course grade reports
    # =========================================================================

    async def course_report(self, course_id: str) -> CourseReport:
        """Grades of every enrolled student by subject and period.

        Args:
            course_id: Course to report.

        Returns:
            CourseReport.

        Raises:
            CourseNotFoundError: If the course does not exist.
        """
        bind_context(report="course", course_id=course_id)
        try:
            cohort = await self.loader.load(course_id)
            report = self._build_course_report(cohort)
            logger.info(
                "Built course report %s: subjects=%d, students=%d",
                course_id,
                len(report.subjects),
                cohort.total_enrolled,
            )
            return report
        finally:
            clear_context()

    async def course_reports(self, course_ids: Collection[str] | None = None) -> CourseReportList:
        """Course reports for many courses, every course when ``course_ids`` is None."""
        bind_context(report="courses")
        try:
            return await self._course_reports(await self._courses(course_ids))
        finally:
            clear_context()

    async def teacher_course_reports(self, teacher_id: str) -> CourseReportList:
        """Course reports for the courses assigned to a teacher.

        Raises:
            ScopeNotResolvableError: If the teacher has no assigned course.
        """
        bind_context(report="teacher_courses", teacher_id=teacher_id)
        try:
            scope = await self._teacher_scope(teacher_id)
            return await self._course_reports(await self._courses(scope))
        finally:
            clear_context()

    async def _course_reports(self, courses: list[Course]) -> CourseReportList:
        async def branch(course: Course) -> CourseReport:
            return self._build_course_report(await self.loader.load(course.id))

        result = await self._fan_out(
            courses,
            branch,
            lambda course: CourseReport(course=_course_ref(course), complete=False),
            "course report",
        )
        return CourseReportList(
            courses=result.values,
            complete=result.complete and all(r.complete for r in result.values),
        )

    def _build_course_report(self, cohort: Cohort) -> CourseReport:
        tree = cohort.tree
        book = self.aggregator.build_gradebook(cohort.completed().all(), tree.buckets())
        students = cohort.ordered_students()
        empty = self.aggregator.grade([], [])

        subjects = []
        for subject in tree.subjects_of(cohort.course.id):
            periods = []
            for period in tree.periods_of(subject.id):
                results = []
                for student_id in students:
                    identity_id = cohort.identity_of(student_id)
                    grade = (
                        book.final_grade(identity_id, subject.id, period.id)
                        if identity_id is not None
                        else empty
                    )
                    results.append(
                        StudentResult(
                            student=_student_ref(student_id, cohort.students),
                            quiz_avg=_as_float(grade.quiz_avg),
                            eval_grade=_as_float(grade.eval_grade),
                            final_grade=_as_float(grade.final_grade),
                            passed=grade.passed,
                        )
                    )
                periods.append(PeriodResults(period=_period_ref(period), student_results=results))
            subjects.append(
                SubjectResults(
                    subject=_subject_ref(subject),
                    periods=periods,
                    stats=self._subject_stats(cohort, book, subject.id),
                )
            )
        return CourseReport(course=_course_ref(cohort.course), subjects=subjects)

    def _subject_stats(self, cohort: Cohort, book: GradeBook, subject_id: str) -> SubjectStats:
        averages: list[Decimal] = []
        for student_id in cohort.student_ids:
            identity_id = cohort.identity_of(student_id)
            if identity_id is None or subject_id not in book.subject_ids_for(identity_id):
                continue
            averages.append(book.subject_average(identity_id, subject_id).average)
        total = cohort.total_enrolled
        return SubjectStats(
            total=total,
            completed=len(averages),
            pending=total - len(averages),
            average=_as_float(cohort_average(averages)),
        )

    # =========================================================================
    # Alerts
    # =========================================================================

    async def alerts_report(
        self,
        teacher_id: str | None = None,
        course_ids: Collection[str] | None = None,
    ) -> AlertsReport:
        """Low performers and students who never attempted anything.

        Args:
            teacher_id: Restrict to the teacher's courses.
            course_ids: Restrict to these courses when no teacher is given.
                Every course when both are None.

        Raises:
            ScopeNotResolvableError: If the teacher has no assigned course.
        """
        bind_context(report="alerts", teacher_id=teacher_id)
        try:
            scope = await self._teacher_scope(teacher_id) if teacher_id else course_ids
            courses = await self._courses(scope)

            async def branch(course: Course) -> tuple[list[LowPerformerEntry], list[NeverAttemptedEntry]]:
                cohort = await self.loader.load(course.id)
                course_ref = _course_ref(cohort.course)
                low = [
                    LowPerformerEntry(
                        student=_student_ref(alert.student_id, cohort.students),
                        course=course_ref,
                        subject=_subject_ref(cohort.tree.subject(alert.subject_id), alert.subject_id),
                        average=_as_float(alert.average),
                        sample_size=alert.sample_size,
                    )
                    for alert in self.alerts.low_performers_in(cohort)
                ]
                never = [
                    NeverAttemptedEntry(
                        student=_student_ref(student_id, cohort.students),
                        course=course_ref,
                    )
                    for student_id in self.alerts.never_attempted_in(cohort)
                ]
                return low, never

            result = await self._fan_out(courses, branch, lambda course: ([], []), "alerts")
            report = AlertsReport(
                low_performers=[entry for low, _ in result.values for entry in low],
                never_attempted=[entry for _, never in result.values for entry in never],
                complete=result.complete,
            )
            logger.info(
                "Built alerts report: courses=%d, low_performers=%d, never_attempted=%d",
                len(courses),
                len(report.low_performers),
                len(report.never_attempted),
            )
            return report
        finally:
            clear_context()

    # =========================================================================
    # Student-scoped grades
    # =========================================================================

    async def _student_grades(
        self,
        identity_id: IdentityId | None,
        allowed_course_ids: Collection[str] | None,
    ) -> _StudentGrades:
        """Read and bucket every attempt of one student.

        Args:
            identity_id: Student identity; None means no attempts.
            allowed_course_ids: Keep only assessments resolved into these
                courses. None keeps everything; assessments with partial
                ancestry are then counted but not bucketed.
        """
        if identity_id is None:
            return _StudentGrades(
                attempts=AttemptSet(),
                ancestry={},
                book=self.aggregator.build_gradebook([], {}),
            )

        attempts = await self.collector.attempts_for([identity_id], completed_only=False)
        quiz_ids = sorted({a.assessment_id for a in attempts.quiz})
        evaluation_ids = sorted({a.assessment_id for a in attempts.evaluation})

        async def resolve(kind: AssessmentKind) -> dict[str, AncestryResult]:
            if kind == AssessmentKind.QUIZ:
                return await self.resolver.ancestors_of_quizzes(quiz_ids)
            return await self.resolver.ancestors_of_evaluations(evaluation_ids)

        resolved = await self._fan_out(
            [AssessmentKind.QUIZ, AssessmentKind.EVALUATION],
            resolve,
            lambda kind: {},
            "ancestry resolution",
        )
        ancestry: dict[tuple[AssessmentKind, str], AncestryResult] = {}
        for kind, results in zip((AssessmentKind.QUIZ, AssessmentKind.EVALUATION), resolved.values):
            for assessment_id, result in results.items():
                ancestry[(kind, assessment_id)] = result

        allowed = set(allowed_course_ids) if allowed_course_ids is not None else None
        buckets: dict[tuple[AssessmentKind, str], BucketKey | None] = {}
        subjects: dict[str, Subject] = {}
        periods: dict[str, Period] = {}
        for key, result in ancestry.items():
            if not result.is_complete:
                continue
            course = result.ancestors.course
            if allowed is not None and (course is None or course.id not in allowed):
                continue
            buckets[key] = result.bucket_key
            subjects[result.ancestors.subject.id] = result.ancestors.subject
            periods[result.ancestors.period.id] = result.ancestors.period

        if allowed is not None:
            attempts = AttemptSet(
                quiz=[a for a in attempts.quiz if (a.kind, a.assessment_id) in buckets],
                evaluation=[a for a in attempts.evaluation if (a.kind, a.assessment_id) in buckets],
            )

        return _StudentGrades(
            attempts=attempts,
            ancestry=ancestry,
            book=self.aggregator.build_gradebook(attempts.all(), buckets),
            complete=resolved.complete,
            subjects=subjects,
            periods=periods,
        )

    def _ordered_keys(self, grades: _StudentGrades, identity_id: IdentityId) -> list[BucketKey]:
        """Bucket keys ordered by subject name, then period order."""
        return sorted(
            grades.book.keys_for(identity_id),
            key=lambda k: (
                grades.subjects[k.subject_id].name,
                k.subject_id,
                period_sort_key(grades.periods[k.period_id]),
            ),
        )

    async def student_tracking_report(
        self,
        student_id: ProfileId,
        teacher_id: str | None = None,
    ) -> StudentTrackingReport:
        """Grades of one student in every (subject, period).

        With a teacher, only the student's courses assigned to that teacher
        are reported. Without one (administrator path), every course is.

        Raises:
            StudentNotFoundError: If the student does not exist.
            ScopeNotResolvableError: If the teacher has no assigned course.
            StudentAccessDeniedError: If the student is not enrolled in any
                of the teacher's courses.
        """
        bind_context(report="student_tracking", student_id=student_id, teacher_id=teacher_id)
        try:
            student = await self._student(student_id)
            enrollments = await self.repository.get_enrollments_for_students([student_id])
            enrolled_course_ids = {e.course_id for e in enrollments}

            allowed: set[str] | None = None
            if teacher_id is not None:
                scope = await self._teacher_scope(teacher_id)
                allowed = enrolled_course_ids & set(scope)
                if not allowed:
                    raise StudentAccessDeniedError(
                        f"Student {student_id} is not enrolled in any course of teacher {teacher_id}"
                    )

            visible = allowed if allowed is not None else enrolled_course_ids
            courses = await self._courses(sorted(visible)) if visible else []
            identity_id = (await self.identity_mapper.resolve([student_id])).get(student_id)
            grades = await self._student_grades(identity_id, allowed)

            rows: list[SubjectPeriodGrade] = []
            finals: list[Decimal] = []
            passed = 0
            if identity_id is not None:
                for key in self._ordered_keys(grades, identity_id):
                    grade = grades.book.final_grade(identity_id, key.subject_id, key.period_id)
                    finals.append(grade.final_grade)
                    passed += 1 if grade.passed else 0
                    rows.append(
                        SubjectPeriodGrade(
                            subject=_subject_ref(grades.subjects[key.subject_id]),
                            period=_period_ref(grades.periods[key.period_id]),
                            quiz_avg=_as_float(grade.quiz_avg),
                            eval_grade=_as_float(grade.eval_grade),
                            final_grade=_as_float(grade.final_grade),
                            passed=grade.passed,
                        )
                    )

            quiz = grades.attempts.quiz
            evaluation = grades.attempts.evaluation
            stats = OverallStats(
                total_quizzes=len(quiz),
                completed_quizzes=sum(1 for a in quiz if a.completed),
                quiz_average=_as_float(
                    round_half_up(mean(a.grade for a in quiz if a.is_gradable))
                ),
                total_evaluations=len(evaluation),
                completed_evaluations=sum(1 for a in evaluation if a.completed),
                evaluation_average=_as_float(
                    round_half_up(mean(a.grade for a in evaluation if a.is_gradable))
                ),
                overall_average=_as_float(cohort_average(finals)),
                passed_count=passed,
                failed_count=len(finals) - passed,
            )

            logger.info(
                "Built student tracking report %s: buckets=%d, complete=%s",
                student_id,
                len(rows),
                grades.complete,
            )
            return StudentTrackingReport(
                student=_student_ref(student.id, {student.id: student}),
                courses=[_course_ref(c) for c in courses],
                per_subject_period=rows,
                overall_stats=stats,
                complete=grades.complete,
            )
        finally:
            clear_context()

    async def guardian_report(self, guardian_id: str) -> GuardianReport:
        """Grades of every student linked to a guardian, by period then subject.

        Raises:
            GuardianHasNoStudentsError: If no student is linked to the guardian.
        """
        bind_context(report="guardian", guardian_id=guardian_id)
        try:
            student_ids = await self.repository.get_guardian_student_ids(guardian_id)
            if not student_ids:
                raise GuardianHasNoStudentsError(f"No students linked to guardian {guardian_id}")

            students = {s.id: s for s in await self.repository.get_students(student_ids)}
            identities = await self.identity_mapper.resolve(student_ids)
            ordered = _by_display_name(student_ids, students)

            async def branch(student_id: ProfileId) -> tuple[GuardianStudentGrades, bool]:
                identity_id = identities.get(student_id)
                grades = await self._student_grades(identity_id, None)
                periods = self._guardian_periods(grades, identity_id) if identity_id else []
                entry = GuardianStudentGrades(
                    student=_student_ref(student_id, students),
                    periods=periods,
                )
                return entry, grades.complete

            result = await self._fan_out(
                ordered,
                branch,
                lambda student_id: (
                    GuardianStudentGrades(student=_student_ref(student_id, students)),
                    False,
                ),
                "guardian student grades",
            )
            return GuardianReport(
                guardian_id=guardian_id,
                students=[entry for entry, _ in result.values],
                complete=result.complete and all(ok for _, ok in result.values),
            )
        finally:
            clear_context()

    def _guardian_periods(
        self,
        grades: _StudentGrades,
        identity_id: IdentityId,
    ) -> list[GuardianPeriodGrades]:
        by_bucket: dict[BucketKey, list[Attempt]] = {}
        for attempt in grades.attempts.all():
            if not attempt.is_gradable:
                continue
            result = grades.ancestry.get((attempt.kind, attempt.assessment_id))
            if result is None or result.bucket_key is None:
                continue
            by_bucket.setdefault(result.bucket_key, []).append(attempt)

        period_ids = sorted(
            {key.period_id for key in by_bucket},
            key=lambda pid: period_sort_key(grades.periods[pid]),
        )
        periods = []
        for period_id in period_ids:
            keys = sorted(
                (key for key in by_bucket if key.period_id == period_id),
                key=lambda k: (grades.subjects[k.subject_id].name, k.subject_id),
            )
            subjects = []
            for key in keys:
                grade = grades.book.final_grade(identity_id, key.subject_id, key.period_id)
                items = [
                    self._graded_item(attempt, grades.ancestry[(attempt.kind, attempt.assessment_id)])
                    for attempt in by_bucket[key]
                ]
                items.sort(key=lambda item: (item.name, item.id))
                subjects.append(
                    self._guardian_subject(grades.subjects[key.subject_id], items, grade)
                )
            periods.append(
                GuardianPeriodGrades(period=_period_ref(grades.periods[period_id]), subjects=subjects)
            )
        return periods

    @staticmethod
    def _graded_item(attempt: Attempt, result: AncestryResult) -> GradedItem:
        assessment: Quiz | Evaluation | None = result.assessment
        return GradedItem(
            id=attempt.id,
            assessment_id=attempt.assessment_id,
            name=assessment.name if assessment is not None else "",
            kind=attempt.kind.value,
            grade=_as_float(attempt.grade),
            finished_at=attempt.finished_at,
        )

    @staticmethod
    def _guardian_subject(
        subject: Subject,
        items: list[GradedItem],
        grade: GradeResult,
    ) -> GuardianSubjectGrades:
        return GuardianSubjectGrades(
            subject=_subject_ref(subject),
            quizzes=[i for i in items if i.kind == AssessmentKind.QUIZ.value],
            evaluations=[i for i in items if i.kind == AssessmentKind.EVALUATION.value],
            quiz_avg=_as_float(grade.quiz_avg),
            eval_grade=_as_float(grade.eval_grade),
            final_grade=_as_float(grade.final_grade),
            passed=grade.passed,
        )

    # =========================================================================
    # Administrator dashboard
    # =========================================================================

    async def courses_performance(
        self,
        course_ids: Collection[str] | None = None,
    ) -> CoursesPerformanceReport:
        """Per-course, per-subject averages and participation.

        Args:
            course_ids: Courses to report, every course when None.
        """
        bind_context(report="courses_performance")
        try:
            courses = await self._courses(course_ids)

            async def branch(course: Course) -> CoursePerformance:
                return self._course_performance(await self.loader.load(course.id))

            result = await self._fan_out(
                courses,
                branch,
                lambda course: CoursePerformance(
                    course=_course_ref(course),
                    general_average=0.0,
                    total_students=0,
                    total_subjects=0,
                    active_students=0,
                    participation=0.0,
                ),
                "course performance",
            )
            return CoursesPerformanceReport(courses=result.values, complete=result.complete)
        finally:
            clear_context()

    def _course_performance(self, cohort: Cohort) -> CoursePerformance:
        tree = cohort.tree
        completed = cohort.completed()
        enrolled = set(cohort.identities.values())
        total = cohort.total_enrolled

        subjects = []
        generals: list[Decimal] = []
        for subject in tree.subjects_of(cohort.course.id):
            quiz_ids = {q.id for q in tree.quizzes_of_subject(subject.id)}
            evaluation_ids = {e.id for e in tree.evaluations_of_subject(subject.id)}
            quiz_attempts = [a for a in completed.quiz if a.assessment_id in quiz_ids]
            evaluation_attempts = [
                a for a in completed.evaluation if a.assessment_id in evaluation_ids
            ]
            quiz_average = mean(a.grade for a in quiz_attempts if a.is_gradable)
            evaluation_average = mean(a.grade for a in evaluation_attempts if a.is_gradable)
            general = cohort_average([quiz_average, evaluation_average])
            generals.append(general)
            active = {a.student_id for a in quiz_attempts + evaluation_attempts} & enrolled
            subjects.append(
                SubjectPerformance(
                    subject=_subject_ref(subject),
                    total_quizzes=len(quiz_ids),
                    total_evaluations=len(evaluation_ids),
                    quiz_average=_as_float(round_half_up(quiz_average)),
                    evaluation_average=_as_float(round_half_up(evaluation_average)),
                    general_average=_as_float(general),
                    active_students=len(active),
                    total_students=total,
                    participation=_as_float(percentage(len(active), total)),
                )
            )

        participation = self.participation.compute(cohort)
        return CoursePerformance(
            course=_course_ref(cohort.course),
            subjects=subjects,
            general_average=_as_float(cohort_average(generals)),
            total_students=total,
            total_subjects=len(subjects),
            active_students=participation.active_count,
            participation=_as_float(participation.percentage),
        )

    # =========================================================================
    # Teacher dashboard
    # =========================================================================

    async def course_participation(self, teacher_id: str) -> CourseParticipationReport:
        """Participation of every course assigned to a teacher.

        Raises:
            ScopeNotResolvableError: If the teacher has no assigned course.
        """
        bind_context(report="course_participation", teacher_id=teacher_id)
        try:
            courses = await self._courses(await self._teacher_scope(teacher_id))

            async def branch(course: Course) -> CourseParticipationEntry:
                cohort = await self.loader.load(course.id)
                p = self.participation.compute(cohort)
                return CourseParticipationEntry(
                    course=_course_ref(cohort.course),
                    total_enrolled=p.total_enrolled,
                    quiz_active=p.quiz_active_count,
                    evaluation_active=p.evaluation_active_count,
                    active=p.active_count,
                    pending=p.pending_count,
                    percentage=_as_float(p.percentage),
                    quiz_percentage=_as_float(p.quiz_percentage),
                    evaluation_percentage=_as_float(p.evaluation_percentage),
                )

            result = await self._fan_out(
                courses,
                branch,
                lambda course: CourseParticipationEntry(
                    course=_course_ref(course),
                    total_enrolled=0,
                    quiz_active=0,
                    evaluation_active=0,
                    active=0,
                    pending=0,
                    percentage=0.0,
                    quiz_percentage=0.0,
                    evaluation_percentage=0.0,
                ),
                "course participation",
            )
            return CourseParticipationReport(courses=result.values, complete=result.complete)
        finally:
            clear_context()

    async def teacher_dashboard_stats(self, teacher_id: str) -> TeacherDashboardStats:
        """Student, course, quiz and evaluation counts for a teacher.

        Raises:
            ScopeNotResolvableError: If the teacher has no assigned course.
        """
        bind_context(report="teacher_dashboard", teacher_id=teacher_id)
        try:
            scope = await self._teacher_scope(teacher_id)
            tree, enrollments = await asyncio.gather(
                self.resolver.load_tree(scope),
                self.repository.get_enrollments(scope),
            )
            return TeacherDashboardStats(
                total_students=len({e.student_id for e in enrollments}),
                total_courses=len(tree.courses),
                total_quizzes=len(tree.quizzes),
                total_evaluations=len(tree.evaluations),
            )
        finally:
            clear_context()

    async def assessment_results(self, teacher_id: str) -> AssessmentResultsReport:
        """Per-assessment student statuses for a teacher's courses.

        Raises:
            ScopeNotResolvableError: If the teacher has no assigned course.
        """
        bind_context(report="assessment_results", teacher_id=teacher_id)
        try:
            courses = await self._courses(await self._teacher_scope(teacher_id))

            async def branch(course: Course) -> tuple[list[AssessmentResult], list[AssessmentResult]]:
                return self._assessment_results(await self.loader.load(course.id))

            result = await self._fan_out(courses, branch, lambda course: ([], []), "assessment results")
            return AssessmentResultsReport(
                quizzes=[r for quizzes, _ in result.values for r in quizzes],
                evaluations=[r for _, evaluations in result.values for r in evaluations],
                complete=result.complete,
            )
        finally:
            clear_context()

    def _assessment_results(
        self,
        cohort: Cohort,
    ) -> tuple[list[AssessmentResult], list[AssessmentResult]]:
        tree = cohort.tree
        attempts: dict[tuple[AssessmentKind, str, IdentityId], list[Attempt]] = {}
        for attempt in cohort.attempts.all():
            attempts.setdefault((attempt.kind, attempt.assessment_id, attempt.student_id), []).append(
                attempt
            )
        students = cohort.ordered_students()

        def build(
            kind: AssessmentKind,
            assessment: Quiz | Evaluation,
            key: BucketKey,
            subtopic: Subtopic | None,
        ) -> AssessmentResult:
            statuses = []
            grades: list[Decimal] = []
            for student_id in students:
                identity_id = cohort.identity_of(student_id)
                own = attempts.get((kind, assessment.id, identity_id), []) if identity_id else []
                status = attempt_status(own)
                latest = latest_attempt(own)
                if status == AttemptStatus.COMPLETED:
                    done = latest_attempt(a for a in own if a.completed)
                    if done is not None and done.grade is not None:
                        grades.append(done.grade)
                statuses.append(
                    StudentAssessmentStatus(
                        student=_student_ref(student_id, cohort.students),
                        status=status.value,
                        attempt=AttemptSummary(
                            id=latest.id,
                            grade=_as_float(latest.grade) if latest.grade is not None else None,
                            completed=latest.completed,
                            started_at=latest.started_at,
                            finished_at=latest.finished_at,
                        )
                        if latest is not None
                        else None,
                    )
                )
            completed = sum(1 for s in statuses if s.status == AttemptStatus.COMPLETED.value)
            return AssessmentResult(
                id=assessment.id,
                kind=kind.value,
                name=assessment.name,
                course=_course_ref(cohort.course),
                subject=_subject_ref(tree.subject(key.subject_id), key.subject_id),
                period=_period_ref(tree.period(key.period_id), key.period_id),
                subtopic=SubtopicRef(id=subtopic.id, name=subtopic.name) if subtopic else None,
                students=statuses,
                stats=AssessmentStats(
                    total=len(students),
                    completed=completed,
                    pending=len(students) - completed,
                    average=_as_float(round_half_up(mean(grades))),
                ),
            )

        def order(key: BucketKey, name: str, assessment_id: str) -> tuple:
            subject = tree.subject(key.subject_id)
            period = tree.period(key.period_id)
            return (
                subject.name if subject else "",
                key.subject_id,
                period_sort_key(period) if period else (0, "", ""),
                name,
                assessment_id,
            )

        quiz_rows = []
        for quiz in tree.quizzes_of_course(cohort.course.id):
            key = tree.quiz_bucket(quiz.id)
            quiz_rows.append(
                (
                    order(key, quiz.name, quiz.id),
                    build(AssessmentKind.QUIZ, quiz, key, tree.subtopic(quiz.subtopic_id or "")),
                )
            )
        evaluation_rows = []
        for evaluation in tree.evaluations_of_course(cohort.course.id):
            key = tree.evaluation_bucket(evaluation.id)
            evaluation_rows.append(
                (
                    order(key, evaluation.name, evaluation.id),
                    build(AssessmentKind.EVALUATION, evaluation, key, None),
                )
            )
        quiz_rows.sort(key=lambda row: row[0])
        evaluation_rows.sort(key=lambda row: row[0])
        return [r for _, r in quiz_rows], [r for _, r in evaluation_rows]

    # =========================================================================
    # Student progress
    # =========================================================================

    async def student_progress(self, student_id: ProfileId, subject_id: str) -> StudentProgressReport:
        """Topic completion and evaluation unlocking in one subject.

        Raises:
            StudentNotFoundError: If the student does not exist.
            ScopeNotResolvableError: If the subject does not exist or has
                no course.
        """
        bind_context(report="student_progress", student_id=student_id, subject_id=subject_id)
        try:
            student = await self._student(student_id)
            subjects = await self.repository.get_subjects_by_id([subject_id])
            if not subjects or not subjects[0].course_id:
                raise ScopeNotResolvableError(f"Subject not found or has no course: {subject_id}")
            subject = subjects[0]

            tree = await self.resolver.load_tree([subject.course_id])
            if tree.course(subject.course_id) is None:
                raise CourseNotFoundError(f"Course not found: {subject.course_id}")
            identity_id = (await self.identity_mapper.resolve([student_id])).get(student_id)
            quiz_ids = [q.id for q in tree.quizzes_of_subject(subject_id)]
            completed = (
                await self.collector.completed_quiz_attempts([identity_id], quiz_ids)
                if identity_id is not None
                else []
            )

            periods = self.progress.progress(tree, subject_id, {a.assessment_id for a in completed})
            return StudentProgressReport(
                student=_student_ref(student.id, {student.id: student}),
                subject=_subject_ref(subject),
                periods=[
                    PeriodProgressEntry(
                        period=_period_ref(p.period),
                        topics=[
                            TopicProgressEntry(
                                topic=TopicRef(id=t.topic.id, name=t.topic.name),
                                quiz_count=t.quiz_count,
                                completed_quiz_count=t.completed_quiz_count,
                                completed=t.completed,
                            )
                            for t in p.topics
                        ],
                        evaluation_unlocked=p.evaluation_unlocked,
                    )
                    for p in periods
                ],
            )
        finally:
            clear_context()
