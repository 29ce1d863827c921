# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Read-only entity snapshots of the academic hierarchy.

The engine never mutates these records. They are validated once at the
data-access boundary (repository or snapshot loader) and passed around as
immutable values afterwards.

Students carry two identifiers that are not interchangeable:
- ProfileId: id of the student profile row, used by enrollments.
- IdentityId: id of the authentication identity, used by attempts.
IdentityMapper is the only place where one is converted into the other.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import NewType

from pydantic import BaseModel, ConfigDict, field_validator

ProfileId = NewType("ProfileId", str)
IdentityId = NewType("IdentityId", str)


class ContentKind(str, Enum):
    """Kinds of content attached to a subtopic."""

    VIDEO = "video"
    FILE = "file"
    FORUM = "forum"


class AssessmentKind(str, Enum):
    """The two parallel assessment streams."""

    QUIZ = "quiz"
    EVALUATION = "evaluation"


class Entity(BaseModel):
    """Base for immutable entity snapshots."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str


class Course(Entity):
    """A course; owns subjects."""

    name: str
    level: str | None = None


class Subject(Entity):
    """A course subject; the top grouping key for grades."""

    name: str
    course_id: str | None = None


class Period(Entity):
    """An academic term within a subject."""

    name: str
    number: int | None = None
    subject_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


class Topic(Entity):
    """Content-organization level below a period."""

    name: str
    period_id: str | None = None
    order: int = 0


class Subtopic(Entity):
    """Attachment point for content items and quizzes."""

    name: str
    topic_id: str | None = None
    order: int = 0


class Content(Entity):
    """A video, file or forum item under a subtopic."""

    title: str
    kind: ContentKind
    subtopic_id: str | None = None
    order: int = 0


class Quiz(Entity):
    """A quiz attached to exactly one subtopic."""

    name: str
    subtopic_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = True


class Evaluation(Entity):
    """A period evaluation.

    Unlike quizzes, evaluations store their period and subject directly.
    When the period's own subject disagrees with ``subject_id``, the
    evaluation's ``subject_id`` is authoritative.
    """

    name: str
    period_id: str | None = None
    subject_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = True


class Student(BaseModel):
    """Student profile record."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: ProfileId
    identity_id: IdentityId | None = None
    first_name: str = ""
    last_name: str = ""
    photo_url: str | None = None

    @property
    def display_name(self) -> str:
        """Full name used for ordering and display."""
        return f"{self.first_name} {self.last_name}".strip()


class Enrollment(BaseModel):
    """Student membership in a course cohort."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    student_id: ProfileId
    course_id: str


class TeacherAssignment(BaseModel):
    """Course assigned to a teacher."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    teacher_id: str
    course_id: str


class GuardianLink(BaseModel):
    """Guardian to student relation used by the guardian portal."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    guardian_id: str
    student_id: ProfileId


class Attempt(Entity):
    """A single pass at a quiz or an evaluation.

    ``student_id`` is always an authentication identity id.
    """

    kind: AssessmentKind
    assessment_id: str
    student_id: IdentityId
    grade: Decimal | None = None
    completed: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @field_validator("grade", mode="before")
    @classmethod
    def parse_grade(cls, value: object) -> object:
        """Parse floats through their shortest repr so 4.1 stays 4.1."""
        if isinstance(value, float):
            return str(value)
        return value

    @property
    def is_gradable(self) -> bool:
        """Whether the attempt may be used for grade aggregation."""
        return self.completed and self.grade is not None
