# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""AcademicRepository over the school database using SQLAlchemy async.

Each read opens its own session from the sessionmaker. AsyncSession is
not safe for concurrent use, and the reporting layer issues independent
reads concurrently.

Example:
    from src.infrastructure.database import get_sessionmaker

    repository = SQLAlchemyAcademicRepository(get_sessionmaker())
    chains = await repository.fetch_quiz_chains(["quiz-1"])
"""

import logging
from collections.abc import Collection
from typing import Any, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from src.infrastructure.database.models import (
    ContentRow,
    CourseRow,
    EnrollmentRow,
    EvaluationAttemptRow,
    EvaluationRow,
    GuardianStudentRow,
    PeriodRow,
    QuizAttemptRow,
    QuizRow,
    StudentRow,
    SubjectRow,
    SubtopicRow,
    TeacherCourseRow,
    TopicRow,
)
from src.infrastructure.repository.base import (
    AcademicRepository,
    ChainPayload,
    RepositoryError,
)
from src.models import (
    AssessmentKind,
    Attempt,
    Content,
    Course,
    Enrollment,
    Evaluation,
    IdentityId,
    Period,
    ProfileId,
    Quiz,
    Student,
    Subject,
    Subtopic,
    TeacherAssignment,
    Topic,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _to_model(model: type[M], row: Any) -> M:
    return model.model_validate(row, from_attributes=True)


def _dump(model: type[BaseModel], row: Any) -> dict[str, Any] | None:
    if row is None:
        return None
    return _to_model(model, row).model_dump()


def _subject_payload(row: SubjectRow | None) -> dict[str, Any] | None:
    payload = _dump(Subject, row)
    if payload is not None:
        payload["course"] = _dump(Course, row.course)
    return payload


def _period_payload(row: PeriodRow | None) -> dict[str, Any] | None:
    payload = _dump(Period, row)
    if payload is not None:
        payload["subject"] = _subject_payload(row.subject)
    return payload


def _quiz_chain(row: QuizRow) -> ChainPayload:
    subtopic = _dump(Subtopic, row.subtopic)
    if subtopic is not None:
        topic = _dump(Topic, row.subtopic.topic)
        if topic is not None:
            topic["period"] = _period_payload(row.subtopic.topic.period)
        subtopic["topic"] = topic
    return {**_to_model(Quiz, row).model_dump(), "subtopic": subtopic}


def _evaluation_chain(row: EvaluationRow) -> ChainPayload:
    return {
        **_to_model(Evaluation, row).model_dump(),
        "period": _period_payload(row.period),
        "subject": _subject_payload(row.subject),
    }


def _attempt(kind: AssessmentKind, assessment_id: str, row: Any) -> Attempt:
    return Attempt(
        id=row.id,
        kind=kind,
        assessment_id=assessment_id,
        student_id=row.student_id,
        grade=row.grade,
        completed=row.completed,
        started_at=row.started_at,
        finished_at=row.finished_at,
    )


class SQLAlchemyAcademicRepository(AcademicRepository):
    """Read-only repository over the school database.

    Attributes:
        sessionmaker: Factory for per-call async sessions.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the repository.

        Args:
            sessionmaker: Async sessionmaker bound to the school database.
        """
        self.sessionmaker = sessionmaker

    async def _fetch(self, stmt: Select, what: str) -> list[Any]:
        """Run a select in a fresh session and return the scalar rows.

        Raises:
            RepositoryError: If the database read fails.
        """
        try:
            async with self.sessionmaker() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Failed to read %s: %s", what, e)
            raise RepositoryError(f"Failed to read {what}", e) from e

    # =========================================================================
    # Hierarchy (downward)
    # =========================================================================

    async def get_courses(self, course_ids: Collection[str] | None = None) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.name)
        if course_ids is not None:
            if not course_ids:
                return []
            stmt = stmt.where(CourseRow.id.in_(list(course_ids)))
        rows = await self._fetch(stmt, "courses")
        return [_to_model(Course, r) for r in rows]

    async def get_subjects(self, course_ids: Collection[str]) -> list[Subject]:
        if not course_ids:
            return []
        stmt = select(SubjectRow).where(SubjectRow.course_id.in_(list(course_ids)))
        rows = await self._fetch(stmt, "subjects")
        return [_to_model(Subject, r) for r in rows]

    async def get_periods(self, subject_ids: Collection[str]) -> list[Period]:
        if not subject_ids:
            return []
        stmt = select(PeriodRow).where(PeriodRow.subject_id.in_(list(subject_ids)))
        rows = await self._fetch(stmt, "periods")
        return [_to_model(Period, r) for r in rows]

    async def get_topics(self, period_ids: Collection[str]) -> list[Topic]:
        if not period_ids:
            return []
        stmt = select(TopicRow).where(TopicRow.period_id.in_(list(period_ids)))
        rows = await self._fetch(stmt, "topics")
        return [_to_model(Topic, r) for r in rows]

    async def get_subtopics(self, topic_ids: Collection[str]) -> list[Subtopic]:
        if not topic_ids:
            return []
        stmt = select(SubtopicRow).where(SubtopicRow.topic_id.in_(list(topic_ids)))
        rows = await self._fetch(stmt, "subtopics")
        return [_to_model(Subtopic, r) for r in rows]

    async def get_contents(self, subtopic_ids: Collection[str]) -> list[Content]:
        if not subtopic_ids:
            return []
        stmt = select(ContentRow).where(ContentRow.subtopic_id.in_(list(subtopic_ids)))
        rows = await self._fetch(stmt, "contents")
        return [_to_model(Content, r) for r in rows]

    async def get_quizzes(self, subtopic_ids: Collection[str]) -> list[Quiz]:
        if not subtopic_ids:
            return []
        stmt = select(QuizRow).where(QuizRow.subtopic_id.in_(list(subtopic_ids)))
        rows = await self._fetch(stmt, "quizzes")
        return [_to_model(Quiz, r) for r in rows]

    async def get_evaluations(
        self,
        period_ids: Collection[str],
        subject_ids: Collection[str],
    ) -> list[Evaluation]:
        if not period_ids or not subject_ids:
            return []
        stmt = select(EvaluationRow).where(
            EvaluationRow.period_id.in_(list(period_ids)),
            EvaluationRow.subject_id.in_(list(subject_ids)),
        )
        rows = await self._fetch(stmt, "evaluations")
        return [_to_model(Evaluation, r) for r in rows]

    # =========================================================================
    # Direct lookups
    # =========================================================================

    async def _by_id(
        self, row_type: Any, model: type[M], ids: Collection[str], what: str
    ) -> list[M]:
        if not ids:
            return []
        stmt = select(row_type).where(row_type.id.in_(list(ids)))
        rows = await self._fetch(stmt, what)
        return [_to_model(model, r) for r in rows]

    async def get_subjects_by_id(self, subject_ids: Collection[str]) -> list[Subject]:
        return await self._by_id(SubjectRow, Subject, subject_ids, "subjects")

    async def get_periods_by_id(self, period_ids: Collection[str]) -> list[Period]:
        return await self._by_id(PeriodRow, Period, period_ids, "periods")

    async def get_topics_by_id(self, topic_ids: Collection[str]) -> list[Topic]:
        return await self._by_id(TopicRow, Topic, topic_ids, "topics")

    async def get_subtopics_by_id(self, subtopic_ids: Collection[str]) -> list[Subtopic]:
        return await self._by_id(SubtopicRow, Subtopic, subtopic_ids, "subtopics")

    async def get_quizzes_by_id(self, quiz_ids: Collection[str]) -> list[Quiz]:
        return await self._by_id(QuizRow, Quiz, quiz_ids, "quizzes")

    async def get_evaluations_by_id(self, evaluation_ids: Collection[str]) -> list[Evaluation]:
        return await self._by_id(EvaluationRow, Evaluation, evaluation_ids, "evaluations")

    # =========================================================================
    # Nested fetch
    # =========================================================================

    async def fetch_quiz_chains(self, quiz_ids: Collection[str]) -> list[ChainPayload]:
        if not quiz_ids:
            return []
        stmt = (
            select(QuizRow)
            .options(
                selectinload(QuizRow.subtopic)
                .selectinload(SubtopicRow.topic)
                .selectinload(TopicRow.period)
                .selectinload(PeriodRow.subject)
                .selectinload(SubjectRow.course)
            )
            .where(QuizRow.id.in_(list(quiz_ids)))
        )
        rows = await self._fetch(stmt, "quiz chains")
        return [_quiz_chain(r) for r in rows]

    async def fetch_evaluation_chains(self, evaluation_ids: Collection[str]) -> list[ChainPayload]:
        if not evaluation_ids:
            return []
        stmt = (
            select(EvaluationRow)
            .options(
                selectinload(EvaluationRow.period)
                .selectinload(PeriodRow.subject)
                .selectinload(SubjectRow.course),
                selectinload(EvaluationRow.subject).selectinload(SubjectRow.course),
            )
            .where(EvaluationRow.id.in_(list(evaluation_ids)))
        )
        rows = await self._fetch(stmt, "evaluation chains")
        return [_evaluation_chain(r) for r in rows]

    # =========================================================================
    # Attempts
    # =========================================================================

    async def get_quiz_attempts(
        self,
        identity_ids: Collection[IdentityId],
        quiz_ids: Collection[str] | None,
    ) -> list[Attempt]:
        if not identity_ids or (quiz_ids is not None and not quiz_ids):
            return []
        stmt = select(QuizAttemptRow).where(QuizAttemptRow.student_id.in_(list(identity_ids)))
        if quiz_ids is not None:
            stmt = stmt.where(QuizAttemptRow.quiz_id.in_(list(quiz_ids)))
        rows = await self._fetch(stmt, "quiz attempts")
        return [_attempt(AssessmentKind.QUIZ, r.quiz_id, r) for r in rows]

    async def get_evaluation_attempts(
        self,
        identity_ids: Collection[IdentityId],
        evaluation_ids: Collection[str] | None,
    ) -> list[Attempt]:
        if not identity_ids or (evaluation_ids is not None and not evaluation_ids):
            return []
        stmt = select(EvaluationAttemptRow).where(
            EvaluationAttemptRow.student_id.in_(list(identity_ids))
        )
        if evaluation_ids is not None:
            stmt = stmt.where(EvaluationAttemptRow.evaluation_id.in_(list(evaluation_ids)))
        rows = await self._fetch(stmt, "evaluation attempts")
        return [_attempt(AssessmentKind.EVALUATION, r.evaluation_id, r) for r in rows]

    # =========================================================================
    # People
    # =========================================================================

    async def get_enrollments(self, course_ids: Collection[str]) -> list[Enrollment]:
        if not course_ids:
            return []
        stmt = select(EnrollmentRow).where(EnrollmentRow.course_id.in_(list(course_ids)))
        rows = await self._fetch(stmt, "enrollments")
        return [_to_model(Enrollment, r) for r in rows]

    async def get_enrollments_for_students(
        self,
        student_ids: Collection[ProfileId],
    ) -> list[Enrollment]:
        if not student_ids:
            return []
        stmt = select(EnrollmentRow).where(EnrollmentRow.student_id.in_(list(student_ids)))
        rows = await self._fetch(stmt, "enrollments")
        return [_to_model(Enrollment, r) for r in rows]

    async def get_students(self, student_ids: Collection[ProfileId]) -> list[Student]:
        if not student_ids:
            return []
        stmt = select(StudentRow).where(StudentRow.id.in_(list(student_ids)))
        rows = await self._fetch(stmt, "students")
        return [_to_model(Student, r) for r in rows]

    async def get_profile_to_identity_map(
        self,
        student_ids: Collection[ProfileId],
    ) -> dict[ProfileId, IdentityId | None]:
        students = await self.get_students(student_ids)
        return {s.id: s.identity_id for s in students}

    async def get_teacher_assignments(self, teacher_id: str) -> list[TeacherAssignment]:
        stmt = select(TeacherCourseRow).where(TeacherCourseRow.teacher_id == teacher_id)
        rows = await self._fetch(stmt, "teacher assignments")
        return [_to_model(TeacherAssignment, r) for r in rows]

    async def get_guardian_student_ids(self, guardian_id: str) -> list[ProfileId]:
        stmt = select(GuardianStudentRow).where(GuardianStudentRow.guardian_id == guardian_id)
        rows = await self._fetch(stmt, "guardian links")
        return [ProfileId(r.student_id) for r in rows]
