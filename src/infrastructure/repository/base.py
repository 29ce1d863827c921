# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read interface of the academic data store.

The grading engine depends only on AcademicRepository. Implementations:
- SQLAlchemyAcademicRepository: async SQLAlchemy over the school database.
- InMemoryAcademicRepository: snapshot-backed, used by tests and offline runs.

Collection arguments are treated as sets; an empty collection returns an
empty result without touching the store. ``None`` for an assessment id
filter on attempt reads means every assessment of that stream.

The nested-fetch methods (fetch_quiz_chains, fetch_evaluation_chains)
return payloads shaped the way the store embeds relations. A to-one
relation may arrive as a mapping, as a one-element list, or as None; use
first_or_none() before reading it.
"""

from abc import ABC, abstractmethod
from collections.abc import Collection, Mapping
from typing import Any

from src.models import (
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

ChainPayload = Mapping[str, Any]


class RepositoryError(Exception):
    """Raised when the data store cannot serve a read.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying store error, if any.
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """Initialize the repository error.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


def first_or_none(relation: Any) -> Mapping[str, Any] | None:
    """Normalize an embedded to-one relation to a mapping or None.

    Args:
        relation: A mapping, a list/tuple of mappings, or None.

    Returns:
        The mapping itself, the first element of a non-empty sequence,
        or None for anything else.
    """
    if relation is None:
        return None
    if isinstance(relation, Mapping):
        return relation
    if isinstance(relation, (list, tuple)):
        if not relation:
            return None
        first = relation[0]
        return first if isinstance(first, Mapping) else None
    return None


class AcademicRepository(ABC):
    """Abstract read interface required by the grading engine."""

    # =========================================================================
    # Hierarchy (downward)
    # =========================================================================

    @abstractmethod
    async def get_courses(self, course_ids: Collection[str] | None = None) -> list[Course]:
        """Get courses by id, or every course when ``course_ids`` is None."""

    @abstractmethod
    async def get_subjects(self, course_ids: Collection[str]) -> list[Subject]:
        """Get subjects owned by the given courses."""

    @abstractmethod
    async def get_periods(self, subject_ids: Collection[str]) -> list[Period]:
        """Get periods owned by the given subjects."""

    @abstractmethod
    async def get_topics(self, period_ids: Collection[str]) -> list[Topic]:
        """Get topics owned by the given periods."""

    @abstractmethod
    async def get_subtopics(self, topic_ids: Collection[str]) -> list[Subtopic]:
        """Get subtopics owned by the given topics."""

    @abstractmethod
    async def get_contents(self, subtopic_ids: Collection[str]) -> list[Content]:
        """Get content items attached to the given subtopics."""

    @abstractmethod
    async def get_quizzes(self, subtopic_ids: Collection[str]) -> list[Quiz]:
        """Get quizzes attached to the given subtopics."""

    @abstractmethod
    async def get_evaluations(
        self,
        period_ids: Collection[str],
        subject_ids: Collection[str],
    ) -> list[Evaluation]:
        """Get evaluations whose period AND subject are in the given sets."""

    # =========================================================================
    # Direct lookups (fallback path)
    # =========================================================================

    @abstractmethod
    async def get_subjects_by_id(self, subject_ids: Collection[str]) -> list[Subject]:
        """Get subjects by primary key."""

    @abstractmethod
    async def get_periods_by_id(self, period_ids: Collection[str]) -> list[Period]:
        """Get periods by primary key."""

    @abstractmethod
    async def get_topics_by_id(self, topic_ids: Collection[str]) -> list[Topic]:
        """Get topics by primary key."""

    @abstractmethod
    async def get_subtopics_by_id(self, subtopic_ids: Collection[str]) -> list[Subtopic]:
        """Get subtopics by primary key."""

    @abstractmethod
    async def get_quizzes_by_id(self, quiz_ids: Collection[str]) -> list[Quiz]:
        """Get quizzes by primary key."""

    @abstractmethod
    async def get_evaluations_by_id(self, evaluation_ids: Collection[str]) -> list[Evaluation]:
        """Get evaluations by primary key."""

    # =========================================================================
    # Nested fetch (primary path)
    # =========================================================================

    @abstractmethod
    async def fetch_quiz_chains(self, quiz_ids: Collection[str]) -> list[ChainPayload]:
        """Fetch quizzes with subtopic > topic > period > subject > course embedded."""

    @abstractmethod
    async def fetch_evaluation_chains(self, evaluation_ids: Collection[str]) -> list[ChainPayload]:
        """Fetch evaluations with period > subject > course and subject > course embedded."""

    # =========================================================================
    # Attempts
    # =========================================================================

    @abstractmethod
    async def get_quiz_attempts(
        self,
        identity_ids: Collection[IdentityId],
        quiz_ids: Collection[str] | None,
    ) -> list[Attempt]:
        """Get every quiz attempt (any state) of the given identities."""

    @abstractmethod
    async def get_evaluation_attempts(
        self,
        identity_ids: Collection[IdentityId],
        evaluation_ids: Collection[str] | None,
    ) -> list[Attempt]:
        """Get every evaluation attempt (any state) of the given identities."""

    # =========================================================================
    # People
    # =========================================================================

    @abstractmethod
    async def get_enrollments(self, course_ids: Collection[str]) -> list[Enrollment]:
        """Get enrollments of the given courses."""

    @abstractmethod
    async def get_enrollments_for_students(
        self,
        student_ids: Collection[ProfileId],
    ) -> list[Enrollment]:
        """Get enrollments of the given student profiles."""

    @abstractmethod
    async def get_students(self, student_ids: Collection[ProfileId]) -> list[Student]:
        """Get student profile records."""

    @abstractmethod
    async def get_profile_to_identity_map(
        self,
        student_ids: Collection[ProfileId],
    ) -> dict[ProfileId, IdentityId | None]:
        """Map student profile ids to authentication identity ids."""

    @abstractmethod
    async def get_teacher_assignments(self, teacher_id: str) -> list[TeacherAssignment]:
        """Get the courses assigned to a teacher."""

    @abstractmethod
    async def get_guardian_student_ids(self, guardian_id: str) -> list[ProfileId]:
        """Get the student profile ids linked to a guardian."""
