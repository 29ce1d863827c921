# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Snapshot-backed implementation of AcademicRepository.

The snapshot is a mapping of table name to a list of rows:

    courses, subjects, periods, topics, subtopics, contents, quizzes,
    evaluations, students, enrollments, teacher_assignments,
    guardian_links, quiz_attempts, evaluation_attempts

Quiz attempt rows carry ``quiz_id`` and evaluation attempt rows carry
``evaluation_id``; both carry the authentication identity in
``student_id``. Rows are validated into entity models once, when the
repository is built. Results keep snapshot order.

Example:
    >>> repository = InMemoryAcademicRepository.from_file(Path("snapshot.yaml"))
    >>> courses = await repository.get_courses()
"""

import logging
from collections.abc import Collection, Iterable, Mapping
from pathlib import Path
from typing import Any, TypeVar

from pydantic import ValidationError

from src.infrastructure.repository.base import AcademicRepository, ChainPayload
from src.infrastructure.repository.snapshot import SnapshotLoadError, load_snapshot
from src.models import (
    AssessmentKind,
    Attempt,
    Content,
    Course,
    Enrollment,
    Evaluation,
    GuardianLink,
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

T = TypeVar("T")


def _select(rows: Iterable[T], field: str, values: Collection[Any] | None) -> list[T]:
    """Filter rows whose ``field`` is in ``values`` (None keeps everything)."""
    if values is None:
        return list(rows)
    wanted = set(values)
    if not wanted:
        return []
    return [row for row in rows if getattr(row, field) in wanted]


class InMemoryAcademicRepository(AcademicRepository):
    """AcademicRepository over immutable in-memory entity lists."""

    def __init__(
        self,
        *,
        courses: Iterable[Course] = (),
        subjects: Iterable[Subject] = (),
        periods: Iterable[Period] = (),
        topics: Iterable[Topic] = (),
        subtopics: Iterable[Subtopic] = (),
        contents: Iterable[Content] = (),
        quizzes: Iterable[Quiz] = (),
        evaluations: Iterable[Evaluation] = (),
        students: Iterable[Student] = (),
        enrollments: Iterable[Enrollment] = (),
        teacher_assignments: Iterable[TeacherAssignment] = (),
        guardian_links: Iterable[GuardianLink] = (),
        attempts: Iterable[Attempt] = (),
    ) -> None:
        """Initialize the repository from entity models."""
        self._courses = list(courses)
        self._subjects = list(subjects)
        self._periods = list(periods)
        self._topics = list(topics)
        self._subtopics = list(subtopics)
        self._contents = list(contents)
        self._quizzes = list(quizzes)
        self._evaluations = list(evaluations)
        self._students = list(students)
        self._enrollments = list(enrollments)
        self._teacher_assignments = list(teacher_assignments)
        self._guardian_links = list(guardian_links)
        self._attempts = list(attempts)

        self._course_index = {c.id: c for c in self._courses}
        self._subject_index = {s.id: s for s in self._subjects}
        self._period_index = {p.id: p for p in self._periods}
        self._topic_index = {t.id: t for t in self._topics}
        self._subtopic_index = {s.id: s for s in self._subtopics}

    # =========================================================================
    # Construction from snapshots
    # =========================================================================

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, Any]) -> "InMemoryAcademicRepository":
        """Build a repository from a snapshot mapping.

        Args:
            snapshot: Mapping of table name to list of row mappings.

        Returns:
            Repository holding the validated rows.

        Raises:
            SnapshotLoadError: If a row fails validation.
        """
        try:
            attempts = [
                Attempt(
                    kind=AssessmentKind.QUIZ,
                    assessment_id=row.get("quiz_id") or row["assessment_id"],
                    **{k: v for k, v in row.items() if k not in ("quiz_id", "assessment_id", "kind")},
                )
                for row in snapshot.get("quiz_attempts") or []
            ]
            attempts += [
                Attempt(
                    kind=AssessmentKind.EVALUATION,
                    assessment_id=row.get("evaluation_id") or row["assessment_id"],
                    **{
                        k: v
                        for k, v in row.items()
                        if k not in ("evaluation_id", "assessment_id", "kind")
                    },
                )
                for row in snapshot.get("evaluation_attempts") or []
            ]
            repository = cls(
                courses=[Course(**row) for row in snapshot.get("courses") or []],
                subjects=[Subject(**row) for row in snapshot.get("subjects") or []],
                periods=[Period(**row) for row in snapshot.get("periods") or []],
                topics=[Topic(**row) for row in snapshot.get("topics") or []],
                subtopics=[Subtopic(**row) for row in snapshot.get("subtopics") or []],
                contents=[Content(**row) for row in snapshot.get("contents") or []],
                quizzes=[Quiz(**row) for row in snapshot.get("quizzes") or []],
                evaluations=[Evaluation(**row) for row in snapshot.get("evaluations") or []],
                students=[Student(**row) for row in snapshot.get("students") or []],
                enrollments=[Enrollment(**row) for row in snapshot.get("enrollments") or []],
                teacher_assignments=[
                    TeacherAssignment(**row)
                    for row in snapshot.get("teacher_assignments") or []
                ],
                guardian_links=[
                    GuardianLink(**row) for row in snapshot.get("guardian_links") or []
                ],
                attempts=attempts,
            )
        except (ValidationError, KeyError, TypeError) as e:
            raise SnapshotLoadError("<snapshot>", f"Invalid row: {e}") from e

        logger.debug(
            "Loaded snapshot: courses=%d, quizzes=%d, evaluations=%d, attempts=%d",
            len(repository._courses),
            len(repository._quizzes),
            len(repository._evaluations),
            len(repository._attempts),
        )
        return repository

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryAcademicRepository":
        """Build a repository from a YAML or JSON snapshot file.

        Raises:
            SnapshotLoadError: If the file cannot be read or is invalid.
        """
        snapshot = load_snapshot(path)
        try:
            return cls.from_snapshot(snapshot)
        except SnapshotLoadError as e:
            raise SnapshotLoadError(path, e.reason) from e

    # =========================================================================
    # Hierarchy (downward)
    # =========================================================================

    async def get_courses(self, course_ids: Collection[str] | None = None) -> list[Course]:
        return _select(self._courses, "id", course_ids)

    async def get_subjects(self, course_ids: Collection[str]) -> list[Subject]:
        return _select(self._subjects, "course_id", course_ids)

    async def get_periods(self, subject_ids: Collection[str]) -> list[Period]:
        return _select(self._periods, "subject_id", subject_ids)

    async def get_topics(self, period_ids: Collection[str]) -> list[Topic]:
        return _select(self._topics, "period_id", period_ids)

    async def get_subtopics(self, topic_ids: Collection[str]) -> list[Subtopic]:
        return _select(self._subtopics, "topic_id", topic_ids)

    async def get_contents(self, subtopic_ids: Collection[str]) -> list[Content]:
        return _select(self._contents, "subtopic_id", subtopic_ids)

    async def get_quizzes(self, subtopic_ids: Collection[str]) -> list[Quiz]:
        return _select(self._quizzes, "subtopic_id", subtopic_ids)

    async def get_evaluations(
        self,
        period_ids: Collection[str],
        subject_ids: Collection[str],
    ) -> list[Evaluation]:
        by_period = _select(self._evaluations, "period_id", period_ids)
        return _select(by_period, "subject_id", subject_ids)

    # =========================================================================
    # Direct lookups
    # =========================================================================

    async def get_subjects_by_id(self, subject_ids: Collection[str]) -> list[Subject]:
        return _select(self._subjects, "id", subject_ids)

    async def get_periods_by_id(self, period_ids: Collection[str]) -> list[Period]:
        return _select(self._periods, "id", period_ids)

    async def get_topics_by_id(self, topic_ids: Collection[str]) -> list[Topic]:
        return _select(self._topics, "id", topic_ids)

    async def get_subtopics_by_id(self, subtopic_ids: Collection[str]) -> list[Subtopic]:
        return _select(self._subtopics, "id", subtopic_ids)

    async def get_quizzes_by_id(self, quiz_ids: Collection[str]) -> list[Quiz]:
        return _select(self._quizzes, "id", quiz_ids)

    async def get_evaluations_by_id(self, evaluation_ids: Collection[str]) -> list[Evaluation]:
        return _select(self._evaluations, "id", evaluation_ids)

    # =========================================================================
    # Nested fetch
    # =========================================================================

    def _embed_subject(self, subject_id: str | None) -> dict[str, Any] | None:
        subject = self._subject_index.get(subject_id) if subject_id else None
        if subject is None:
            return None
        course = self._course_index.get(subject.course_id) if subject.course_id else None
        return {**subject.model_dump(), "course": course.model_dump() if course else None}

    def _embed_period(self, period_id: str | None) -> dict[str, Any] | None:
        period = self._period_index.get(period_id) if period_id else None
        if period is None:
            return None
        return {**period.model_dump(), "subject": self._embed_subject(period.subject_id)}

    async def fetch_quiz_chains(self, quiz_ids: Collection[str]) -> list[ChainPayload]:
        chains: list[ChainPayload] = []
        for quiz in _select(self._quizzes, "id", quiz_ids):
            subtopic = self._subtopic_index.get(quiz.subtopic_id) if quiz.subtopic_id else None
            subtopic_payload = None
            if subtopic is not None:
                topic = self._topic_index.get(subtopic.topic_id) if subtopic.topic_id else None
                topic_payload = None
                if topic is not None:
                    topic_payload = {
                        **topic.model_dump(),
                        "period": self._embed_period(topic.period_id),
                    }
                subtopic_payload = {**subtopic.model_dump(), "topic": topic_payload}
            chains.append({**quiz.model_dump(), "subtopic": subtopic_payload})
        return chains

    async def fetch_evaluation_chains(self, evaluation_ids: Collection[str]) -> list[ChainPayload]:
        return [
            {
                **evaluation.model_dump(),
                "period": self._embed_period(evaluation.period_id),
                "subject": self._embed_subject(evaluation.subject_id),
            }
            for evaluation in _select(self._evaluations, "id", evaluation_ids)
        ]

    # =========================================================================
    # Attempts
    # =========================================================================

    def _select_attempts(
        self,
        kind: AssessmentKind,
        identity_ids: Collection[IdentityId],
        assessment_ids: Collection[str] | None,
    ) -> list[Attempt]:
        of_kind = [a for a in self._attempts if a.kind == kind]
        by_student = _select(of_kind, "student_id", identity_ids)
        return _select(by_student, "assessment_id", assessment_ids)

    async def get_quiz_attempts(
        self,
        identity_ids: Collection[IdentityId],
        quiz_ids: Collection[str] | None,
    ) -> list[Attempt]:
        return self._select_attempts(AssessmentKind.QUIZ, identity_ids, quiz_ids)

    async def get_evaluation_attempts(
        self,
        identity_ids: Collection[IdentityId],
        evaluation_ids: Collection[str] | None,
    ) -> list[Attempt]:
        return self._select_attempts(AssessmentKind.EVALUATION, identity_ids, evaluation_ids)

    # =========================================================================
    # People
    # =========================================================================

    async def get_enrollments(self, course_ids: Collection[str]) -> list[Enrollment]:
        return _select(self._enrollments, "course_id", course_ids)

    async def get_enrollments_for_students(
        self,
        student_ids: Collection[ProfileId],
    ) -> list[Enrollment]:
        return _select(self._enrollments, "student_id", student_ids)

    async def get_students(self, student_ids: Collection[ProfileId]) -> list[Student]:
        return _select(self._students, "id", student_ids)

    async def get_profile_to_identity_map(
        self,
        student_ids: Collection[ProfileId],
    ) -> dict[ProfileId, IdentityId | None]:
        return {s.id: s.identity_id for s in _select(self._students, "id", student_ids)}

    async def get_teacher_assignments(self, teacher_id: str) -> list[TeacherAssignment]:
        return [a for a in self._teacher_assignments if a.teacher_id == teacher_id]

    async def get_guardian_student_ids(self, guardian_id: str) -> list[ProfileId]:
        return [link.student_id for link in self._guardian_links if link.guardian_id == guardian_id]
