# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attempt retrieval for both assessment streams.

Grade statistics use completed attempts only. The unfiltered set is
requested separately where "never started" has to be told apart from
"in progress" and "completed".
"""

import asyncio
import logging
from collections.abc import Collection, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from src.infrastructure.repository import AcademicRepository
from src.models import Attempt, IdentityId

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class AttemptStatus(str, Enum):
    """Progress of one student on one assessment."""

    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    PENDING = "pending"


@dataclass(frozen=True)
class AttemptSet:
    """Quiz and evaluation attempts fetched together."""

    quiz: list[Attempt] = field(default_factory=list)
    evaluation: list[Attempt] = field(default_factory=list)

    def all(self) -> list[Attempt]:
        return [*self.quiz, *self.evaluation]

    def gradable(self) -> list[Attempt]:
        """Attempts usable for aggregation: completed with a grade."""
        return [a for a in self.all() if a.is_gradable]

    def students(self) -> set[IdentityId]:
        return {a.student_id for a in self.all()}


def _timestamp(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def latest_attempt(attempts: Iterable[Attempt]) -> Attempt | None:
    """Most recent attempt by finish time, then start time, then id."""
    return max(
        attempts,
        key=lambda a: (_timestamp(a.finished_at or a.started_at), _timestamp(a.started_at), a.id),
        default=None,
    )


def attempt_status(attempts: Collection[Attempt]) -> AttemptStatus:
    """Status derived from a student's attempts at one assessment."""
    if any(a.completed for a in attempts):
        return AttemptStatus.COMPLETED
    if attempts:
        return AttemptStatus.IN_PROGRESS
    return AttemptStatus.PENDING


class AttemptCollector:
    """Fetches attempts of a set of students.

    A ``None`` assessment filter means every assessment of that stream; an
    empty collection means none and skips the read.

    Attributes:
        repository: Academic data source.
    """

    def __init__(self, repository: AcademicRepository) -> None:
        self.repository = repository

    async def completed_quiz_attempts(
        self,
        identity_ids: Collection[IdentityId],
        quiz_ids: Collection[str] | None,
    ) -> list[Attempt]:
        attempts = await self._quiz_attempts(identity_ids, quiz_ids)
        return [a for a in attempts if a.completed]

    async def completed_evaluation_attempts(
        self,
        identity_ids: Collection[IdentityId],
        evaluation_ids: Collection[str] | None,
    ) -> list[Attempt]:
        attempts = await self._evaluation_attempts(identity_ids, evaluation_ids)
        return [a for a in attempts if a.completed]

    async def attempts_for(
        self,
        identity_ids: Collection[IdentityId],
        quiz_ids: Collection[str] | None = None,
        evaluation_ids: Collection[str] | None = None,
        *,
        completed_only: bool = True,
    ) -> AttemptSet:
        """Fetch both streams concurrently.

        Args:
            identity_ids: Authentication identities of the students.
            quiz_ids: Quiz filter.
            evaluation_ids: Evaluation filter.
            completed_only: Drop attempts that are not completed.

        Returns:
            AttemptSet ordered by attempt id within each stream.
        """
        quiz, evaluation = await asyncio.gather(
            self._quiz_attempts(identity_ids, quiz_ids),
            self._evaluation_attempts(identity_ids, evaluation_ids),
        )
        if completed_only:
            quiz = [a for a in quiz if a.completed]
            evaluation = [a for a in evaluation if a.completed]

        logger.debug(
            "Collected attempts: students=%d, quiz=%d, evaluation=%d, completed_only=%s",
            len(identity_ids),
            len(quiz),
            len(evaluation),
            completed_only,
        )
        return AttemptSet(
            quiz=sorted(quiz, key=lambda a: a.id),
            evaluation=sorted(evaluation, key=lambda a: a.id),
        )

    async def _quiz_attempts(
        self,
        identity_ids: Collection[IdentityId],
        quiz_ids: Collection[str] | None,
    ) -> list[Attempt]:
        if not identity_ids or (quiz_ids is not None and not quiz_ids):
            return []
        return await self.repository.get_quiz_attempts(identity_ids, quiz_ids)

    async def _evaluation_attempts(
        self,
        identity_ids: Collection[IdentityId],
        evaluation_ids: Collection[str] | None,
    ) -> list[Attempt]:
        if not identity_ids or (evaluation_ids is not None and not evaluation_ids):
            return []
        return await self.repository.get_evaluation_attempts(identity_ids, evaluation_ids)
