# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Report output models.

Reports serialize with camelCase field names (``studentResults``,
``finalGrade``, ``pass``...). Field order is fixed by the class
definitions and every list is ordered by the assembler, so to_json() is
byte-identical for an unchanged snapshot.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ReportModel(BaseModel):
    """Base for report models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_json(self) -> str:
        """Serialize with camelCase keys."""
        return self.model_dump_json(by_alias=True)


class Report(ReportModel):
    """Top-level report.

    ``complete`` is false when at least one branch read failed and its
    part of the report was replaced by an empty result.
    """

    complete: bool = Field(default=True, description="All branches succeeded")


# ============================================================================
# References
# ============================================================================


class StudentRef(ReportModel):
    id: str = Field(description="Student profile ID")
    first_name: str = Field(description="First name")
    last_name: str = Field(description="Last name")
    photo_url: str | None = Field(default=None, description="Photo URL")


class CourseRef(ReportModel):
    id: str = Field(description="Course ID")
    name: str = Field(description="Course name")
    level: str | None = Field(default=None, description="Course level")


class SubjectRef(ReportModel):
    id: str = Field(description="Subject ID")
    name: str = Field(description="Subject name")


class PeriodRef(ReportModel):
    id: str = Field(description="Period ID")
    name: str = Field(description="Period name")
    number: int | None = Field(default=None, description="Period ordinal")


class TopicRef(ReportModel):
    id: str = Field(description="Topic ID")
    name: str = Field(description="Topic name")


class SubtopicRef(ReportModel):
    id: str = Field(description="Subtopic ID")
    name: str = Field(description="Subtopic name")


# ============================================================================
# Course report
# ============================================================================


class StudentResult(ReportModel):
    """Final grade of one student in one (subject, period)."""

    student: StudentRef
    quiz_avg: float = Field(description="Mean completed quiz grade")
    eval_grade: float = Field(description="Evaluation grade")
    final_grade: float = Field(description="70/30 weighted final grade")
    passed: bool = Field(alias="pass", description="final_grade >= pass threshold")


class PeriodResults(ReportModel):
    period: PeriodRef
    student_results: list[StudentResult] = Field(default_factory=list)


class SubjectStats(ReportModel):
    """Cohort statistics of a subject."""

    total: int = Field(description="Enrolled students")
    completed: int = Field(description="Students with at least one graded attempt")
    pending: int = Field(description="total - completed")
    average: float = Field(description="Mean of student subject averages above 0")


class SubjectResults(ReportModel):
    subject: SubjectRef
    periods: list[PeriodResults] = Field(default_factory=list)
    stats: SubjectStats


class CourseReport(Report):
    course: CourseRef
    subjects: list[SubjectResults] = Field(default_factory=list)


class CourseReportList(Report):
    courses: list[CourseReport] = Field(default_factory=list)


# ============================================================================
# Student tracking
# ============================================================================


class SubjectPeriodGrade(ReportModel):
    subject: SubjectRef
    period: PeriodRef
    quiz_avg: float
    eval_grade: float
    final_grade: float
    passed: bool = Field(alias="pass")


class OverallStats(ReportModel):
    total_quizzes: int = Field(description="Quiz attempts in scope")
    completed_quizzes: int = Field(description="Completed quiz attempts")
    quiz_average: float = Field(description="Mean graded quiz attempt grade")
    total_evaluations: int = Field(description="Evaluation attempts in scope")
    completed_evaluations: int = Field(description="Completed evaluation attempts")
    evaluation_average: float = Field(description="Mean graded evaluation attempt grade")
    overall_average: float = Field(description="Mean of final grades above 0")
    passed_count: int = Field(description="(subject, period) pairs passed")
    failed_count: int = Field(description="(subject, period) pairs not passed")


class StudentTrackingReport(Report):
    student: StudentRef
    courses: list[CourseRef] = Field(default_factory=list)
    per_subject_period: list[SubjectPeriodGrade] = Field(default_factory=list)
    overall_stats: OverallStats


# ============================================================================
# Alerts
# ============================================================================


class LowPerformerEntry(ReportModel):
    student: StudentRef
    course: CourseRef
    subject: SubjectRef
    average: float = Field(description="Subject average")
    sample_size: int = Field(description="Graded attempts behind the average")


class NeverAttemptedEntry(ReportModel):
    student: StudentRef
    course: CourseRef


class AlertsReport(Report):
    low_performers: list[LowPerformerEntry] = Field(default_factory=list)
    never_attempted: list[NeverAttemptedEntry] = Field(default_factory=list)


# ============================================================================
# Administrator: course performance
# ============================================================================


class SubjectPerformance(ReportModel):
    subject: SubjectRef
    total_quizzes: int
    total_evaluations: int
    quiz_average: float
    evaluation_average: float
    general_average: float = Field(description="Mean of the two averages above 0")
    active_students: int
    total_students: int
    participation: float = Field(description="Active percentage, 1 decimal")


class CoursePerformance(ReportModel):
    course: CourseRef
    subjects: list[SubjectPerformance] = Field(default_factory=list)
    general_average: float = Field(description="Mean of subject general averages above 0")
    total_students: int
    total_subjects: int
    active_students: int
    participation: float


class CoursesPerformanceReport(Report):
    courses: list[CoursePerformance] = Field(default_factory=list)


# ============================================================================
# Teacher dashboard
# ============================================================================


class CourseParticipationEntry(ReportModel):
    course: CourseRef
    total_enrolled: int
    quiz_active: int
    evaluation_active: int
    active: int
    pending: int
    percentage: float
    quiz_percentage: float
    evaluation_percentage: float


class CourseParticipationReport(Report):
    courses: list[CourseParticipationEntry] = Field(default_factory=list)


class TeacherDashboardStats(Report):
    total_students: int = Field(description="Unique students across assigned courses")
    total_courses: int = Field(description="Assigned courses")
    total_quizzes: int = Field(description="Quizzes in assigned courses")
    total_evaluations: int = Field(description="Evaluations in assigned courses")


# ============================================================================
# Assessment results
# ============================================================================


class AttemptSummary(ReportModel):
    id: str
    grade: float | None = None
    completed: bool
    started_at: datetime | None = None
    finished_at: datetime | None = None


class StudentAssessmentStatus(ReportModel):
    student: StudentRef
    status: Literal["completed", "in_progress", "pending"]
    attempt: AttemptSummary | None = Field(default=None, description="Latest attempt")


class AssessmentStats(ReportModel):
    total: int = Field(description="Enrolled students")
    completed: int
    pending: int
    average: float = Field(description="Mean grade of completed latest attempts")


class AssessmentResult(ReportModel):
    id: str
    kind: Literal["quiz", "evaluation"]
    name: str
    course: CourseRef
    subject: SubjectRef
    period: PeriodRef
    subtopic: SubtopicRef | None = None
    students: list[StudentAssessmentStatus] = Field(default_factory=list)
    stats: AssessmentStats


class AssessmentResultsReport(Report):
    quizzes: list[AssessmentResult] = Field(default_factory=list)
    evaluations: list[AssessmentResult] = Field(default_factory=list)


# ============================================================================
# Guardian portal
# ============================================================================


class GradedItem(ReportModel):
    id: str = Field(description="Attempt ID")
    assessment_id: str
    name: str
    kind: Literal["quiz", "evaluation"]
    grade: float
    finished_at: datetime | None = None


class GuardianSubjectGrades(ReportModel):
    subject: SubjectRef
    quizzes: list[GradedItem] = Field(default_factory=list)
    evaluations: list[GradedItem] = Field(default_factory=list)
    quiz_avg: float
    eval_grade: float
    final_grade: float
    passed: bool = Field(alias="pass")


class GuardianPeriodGrades(ReportModel):
    period: PeriodRef
    subjects: list[GuardianSubjectGrades] = Field(default_factory=list)


class GuardianStudentGrades(ReportModel):
    student: StudentRef
    periods: list[GuardianPeriodGrades] = Field(default_factory=list)


class GuardianReport(Report):
    guardian_id: str
    students: list[GuardianStudentGrades] = Field(default_factory=list)


# ============================================================================
# Student progress
# ============================================================================


class TopicProgressEntry(ReportModel):
    topic: TopicRef
    quiz_count: int
    completed_quiz_count: int
    completed: bool


class PeriodProgressEntry(ReportModel):
    period: PeriodRef
    topics: list[TopicProgressEntry] = Field(default_factory=list)
    evaluation_unlocked: bool


class StudentProgressReport(Report):
    student: StudentRef
    subject: SubjectRef
    periods: list[PeriodProgressEntry] = Field(default_factory=list)
