# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for identity mapping and attempt collection."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from src.domains.grading import (
    AttemptCollector,
    AttemptStatus,
    IdentityMapper,
    attempt_status,
    latest_attempt,
)
from src.infrastructure.repository import InMemoryAcademicRepository
from src.models import AssessmentKind, Attempt, IdentityId, ProfileId


def _attempt(attempt_id: str, completed: bool, finished: int | None) -> Attempt:
    return Attempt(
        id=attempt_id,
        kind=AssessmentKind.QUIZ,
        assessment_id="q-1",
        student_id=IdentityId("id-1"),
        grade="3.0" if completed else None,
        completed=completed,
        started_at=datetime(2025, 3, 1, 9, tzinfo=timezone.utc),
        finished_at=datetime(2025, 3, finished, 10, tzinfo=timezone.utc) if finished else None,
    )


class TestIdentityMapper:
    """Tests for IdentityMapper."""

    @pytest.mark.asyncio
    async def test_resolves_mapped_profiles(self, repository: InMemoryAcademicRepository) -> None:
        mapping = await IdentityMapper(repository).resolve(
            [ProfileId("stu-bruno"), ProfileId("stu-ana")]
        )

        assert mapping == {"stu-ana": "id-ana", "stu-bruno": "id-bruno"}
        assert list(mapping) == ["stu-ana", "stu-bruno"]

    @pytest.mark.asyncio
    async def test_drops_unmapped_profiles(self, repository: InMemoryAcademicRepository) -> None:
        mapping = await IdentityMapper(repository).resolve(
            [ProfileId("stu-dario"), ProfileId("stu-ana"), ProfileId("stu-nobody")]
        )

        assert mapping == {"stu-ana": "id-ana"}

    @pytest.mark.asyncio
    async def test_empty_input_skips_read(self) -> None:
        repository = AsyncMock()

        assert await IdentityMapper(repository).resolve([]) == {}
        repository.get_profile_to_identity_map.assert_not_called()

    def test_invert(self) -> None:
        inverted = IdentityMapper.invert({ProfileId("stu-1"): IdentityId("id-1")})

        assert inverted == {"id-1": "stu-1"}


class TestAttemptStatus:
    """Tests for attempt status helpers."""

    def test_status(self) -> None:
        assert attempt_status([]) == AttemptStatus.PENDING
        assert attempt_status([_attempt("a-1", False, None)]) == AttemptStatus.IN_PROGRESS
        assert (
            attempt_status([_attempt("a-1", False, None), _attempt("a-2", True, 2)])
            == AttemptStatus.COMPLETED
        )

    def test_latest_attempt(self) -> None:
        older = _attempt("a-1", True, 2)
        newer = _attempt("a-2", True, 5)

        assert latest_attempt([newer, older]) == newer
        assert latest_attempt([]) is None


class TestAttemptCollector:
    """Tests for AttemptCollector."""

    @pytest.mark.asyncio
    async def test_completed_only_by_default(self, repository: InMemoryAcademicRepository) -> None:
        attempts = await AttemptCollector(repository).attempts_for(
            [IdentityId("id-ana"), IdentityId("id-carla")]
        )

        assert [a.id for a in attempts.quiz] == ["qa-1", "qa-2"]
        assert [a.id for a in attempts.evaluation] == ["ea-1"]

    @pytest.mark.asyncio
    async def test_unfiltered_includes_in_progress(
        self, repository: InMemoryAcademicRepository
    ) -> None:
        attempts = await AttemptCollector(repository).attempts_for(
            [IdentityId("id-carla")], completed_only=False
        )

        assert [a.id for a in attempts.quiz] == ["qa-3"]
        assert attempts.gradable() == []
        assert attempts.students() == {"id-carla"}

    @pytest.mark.asyncio
    async def test_assessment_filter(self, repository: InMemoryAcademicRepository) -> None:
        attempts = await AttemptCollector(repository).attempts_for(
            [IdentityId("id-ana")], quiz_ids=["q-m1b"], evaluation_ids=[]
        )

        assert [a.id for a in attempts.quiz] == ["qa-2"]
        assert attempts.evaluation == []

    @pytest.mark.asyncio
    async def test_empty_filters_skip_reads(self) -> None:
        repository = AsyncMock()
        collector = AttemptCollector(repository)

        attempts = await collector.attempts_for([], quiz_ids=None, evaluation_ids=None)

        assert attempts.all() == []
        repository.get_quiz_attempts.assert_not_called()
        repository.get_evaluation_attempts.assert_not_called()

    @pytest.mark.asyncio
    async def test_completed_quiz_attempts(self, repository: InMemoryAcademicRepository) -> None:
        attempts = await AttemptCollector(repository).completed_quiz_attempts(
            [IdentityId("id-carla"), IdentityId("id-ana")], ["q-m1a"]
        )

        assert [a.id for a in attempts] == ["qa-1"]
