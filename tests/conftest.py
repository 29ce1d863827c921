# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

The ``school_snapshot`` fixture describes one course with two subjects:

    Grade 5 (c-1)
      Math (s-math)
        Period 1 (p-m1): Fractions > Adding  -> quizzes q-m1a, q-m1b; evaluation e-m1
        Period 2 (p-m2): Geometry  > Angles  -> quiz q-m2
      Science (s-sci)
        Period 1 (p-s1): Plants    > Roots   -> quiz q-s1; evaluation e-s1

Students enrolled in c-1:
    Ana Diaz    quizzes 4.0 and 4.5, evaluation 4.0 in Math / Period 1
    Bruno Gil   evaluation 2.0 in Science / Period 1
    Carla Ruiz  one quiz attempt still in progress
    Dario Sol   no identity mapping
"""

from typing import Any

import pytest

from src.core.config.settings import (
    GradingSettings,
    ReportingSettings,
    Settings,
    clear_settings_cache,
)
from src.domains.reporting import ReportAssembler
from src.infrastructure.repository import InMemoryAcademicRepository


# =============================================================================
# Settings Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache() -> None:
    """Drop cached settings so environment patches take effect."""
    clear_settings_cache()


@pytest.fixture
def grading_settings() -> GradingSettings:
    """Provide the default grading policy."""
    return GradingSettings()


@pytest.fixture
def settings() -> Settings:
    """Provide application settings for tests."""
    return Settings(
        environment="development",
        grading=GradingSettings(),
        reporting=ReportingSettings(max_concurrency=4, branch_timeout_seconds=5.0),
    )


# =============================================================================
# Snapshot Fixtures
# =============================================================================


def _attempt(
    attempt_id: str,
    student: str,
    grade: Any,
    completed: bool = True,
    **assessment: str,
) -> dict[str, Any]:
    return {
        "id": attempt_id,
        "student_id": student,
        "grade": grade,
        "completed": completed,
        "started_at": "2025-03-01T10:00:00+00:00",
        "finished_at": "2025-03-01T10:30:00+00:00" if completed else None,
        **assessment,
    }


@pytest.fixture
def school_snapshot() -> dict[str, list[dict[str, Any]]]:
    """Provide the snapshot of one small school course."""
    return {
        "courses": [{"id": "c-1", "name": "Grade 5", "level": "5"}],
        "subjects": [
            {"id": "s-math", "name": "Math", "course_id": "c-1"},
            {"id": "s-sci", "name": "Science", "course_id": "c-1"},
        ],
        "periods": [
            {"id": "p-m2", "name": "Period 2", "number": 2, "subject_id": "s-math"},
            {"id": "p-m1", "name": "Period 1", "number": 1, "subject_id": "s-math"},
            {"id": "p-s1", "name": "Period 1", "number": 1, "subject_id": "s-sci"},
        ],
        "topics": [
            {"id": "t-m1", "name": "Fractions", "period_id": "p-m1", "order": 0},
            {"id": "t-m2", "name": "Geometry", "period_id": "p-m2", "order": 0},
            {"id": "t-s1", "name": "Plants", "period_id": "p-s1", "order": 0},
        ],
        "subtopics": [
            {"id": "st-m1", "name": "Adding", "topic_id": "t-m1", "order": 0},
            {"id": "st-m2", "name": "Angles", "topic_id": "t-m2", "order": 0},
            {"id": "st-s1", "name": "Roots", "topic_id": "t-s1", "order": 0},
        ],
        "contents": [
            {"id": "ct-1", "title": "Adding fractions", "kind": "video", "subtopic_id": "st-m1"},
        ],
        "quizzes": [
            {"id": "q-m1a", "name": "Fractions quiz A", "subtopic_id": "st-m1"},
            {"id": "q-m1b", "name": "Fractions quiz B", "subtopic_id": "st-m1"},
            {"id": "q-m2", "name": "Angles quiz", "subtopic_id": "st-m2"},
            {"id": "q-s1", "name": "Roots quiz", "subtopic_id": "st-s1"},
        ],
        "evaluations": [
            {"id": "e-m1", "name": "Math exam 1", "period_id": "p-m1", "subject_id": "s-math"},
            {"id": "e-s1", "name": "Science exam 1", "period_id": "p-s1", "subject_id": "s-sci"},
        ],
        "students": [
            {"id": "stu-ana", "identity_id": "id-ana", "first_name": "Ana", "last_name": "Diaz"},
            {"id": "stu-bruno", "identity_id": "id-bruno", "first_name": "Bruno", "last_name": "Gil"},
            {"id": "stu-carla", "identity_id": "id-carla", "first_name": "Carla", "last_name": "Ruiz"},
            {"id": "stu-dario", "identity_id": None, "first_name": "Dario", "last_name": "Sol"},
        ],
        "enrollments": [
            {"student_id": "stu-ana", "course_id": "c-1"},
            {"student_id": "stu-bruno", "course_id": "c-1"},
            {"student_id": "stu-carla", "course_id": "c-1"},
            {"student_id": "stu-dario", "course_id": "c-1"},
        ],
        "teacher_assignments": [{"teacher_id": "teacher-1", "course_id": "c-1"}],
        "guardian_links": [
            {"guardian_id": "guardian-1", "student_id": "stu-ana"},
            {"guardian_id": "guardian-1", "student_id": "stu-bruno"},
        ],
        "quiz_attempts": [
            _attempt("qa-1", "id-ana", 4.0, quiz_id="q-m1a"),
            _attempt("qa-2", "id-ana", 4.5, quiz_id="q-m1b"),
            _attempt("qa-3", "id-carla", None, completed=False, quiz_id="q-m1a"),
        ],
        "evaluation_attempts": [
            _attempt("ea-1", "id-ana", 4.0, evaluation_id="e-m1"),
            _attempt("ea-2", "id-bruno", 2.0, evaluation_id="e-s1"),
        ],
    }


@pytest.fixture
def repository(school_snapshot: dict[str, Any]) -> InMemoryAcademicRepository:
    """Provide an in-memory repository over the school snapshot."""
    return InMemoryAcademicRepository.from_snapshot(school_snapshot)


@pytest.fixture
def assembler(repository: InMemoryAcademicRepository, settings: Settings) -> ReportAssembler:
    """Provide a report assembler over the school snapshot."""
    return ReportAssembler(repository, settings)


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
