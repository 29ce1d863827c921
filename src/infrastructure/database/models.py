# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy ORM mapping of the school database tables read by the engine.

The engine only reads these tables. Relationships are declared so the
repository can eager-load the quiz and evaluation ancestry chains with
selectinload in a single round of queries.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Declarative base for the school database."""


# =============================================================================
# Hierarchy
# =============================================================================


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    level: Mapped[Optional[str]] = mapped_column(sa.Text)


class SubjectRow(Base):
    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    course_id: Mapped[Optional[str]] = mapped_column(
        sa.String(36), ForeignKey("courses.id", ondelete="CASCADE"), index=True
    )

    course: Mapped[Optional[CourseRow]] = relationship(lazy="raise")


class PeriodRow(Base):
    __tablename__ = "periods"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    number: Mapped[Optional[int]] = mapped_column(sa.Integer)
    subject_id: Mapped[Optional[str]] = mapped_column(
        sa.String(36), ForeignKey("subjects.id", ondelete="CASCADE"), index=True
    )
    start_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    end_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    subject: Mapped[Optional[SubjectRow]] = relationship(lazy="raise")


class TopicRow(Base):
    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    period_id: Mapped[Optional[str]] = mapped_column(
        sa.String(36), ForeignKey("periods.id", ondelete="CASCADE"), index=True
    )
    order: Mapped[int] = mapped_column("position", sa.Integer, nullable=False, default=0)

    period: Mapped[Optional[PeriodRow]] = relationship(lazy="raise")


class SubtopicRow(Base):
    __tablename__ = "subtopics"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    topic_id: Mapped[Optional[str]] = mapped_column(
        sa.String(36), ForeignKey("topics.id", ondelete="CASCADE"), index=True
    )
    order: Mapped[int] = mapped_column("position", sa.Integer, nullable=False, default=0)

    topic: Mapped[Optional[TopicRow]] = relationship(lazy="raise")


class ContentRow(Base):
    __tablename__ = "contents"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    title: Mapped[str] = mapped_column(sa.Text, nullable=False)
    kind: Mapped[str] = mapped_column(sa.String(16), nullable=False)
    subtopic_id: Mapped[Optional[str]] = mapped_column(
        sa.String(36), ForeignKey("subtopics.id", ondelete="CASCADE"), index=True
    )
    order: Mapped[int] = mapped_column("position", sa.Integer, nullable=False, default=0)


class QuizRow(Base):
    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    subtopic_id: Mapped[Optional[str]] = mapped_column(
        sa.String(36), ForeignKey("subtopics.id", ondelete="SET NULL"), index=True
    )
    start_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    end_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)

    subtopic: Mapped[Optional[SubtopicRow]] = relationship(lazy="raise")


class EvaluationRow(Base):
    __tablename__ = "evaluations"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    name: Mapped[str] = mapped_column(sa.Text, nullable=False)
    period_id: Mapped[Optional[str]] = mapped_column(
        sa.String(36), ForeignKey("periods.id", ondelete="SET NULL"), index=True
    )
    subject_id: Mapped[Optional[str]] = mapped_column(
        sa.String(36), ForeignKey("subjects.id", ondelete="SET NULL"), index=True
    )
    start_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    end_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)

    period: Mapped[Optional[PeriodRow]] = relationship(lazy="raise")
    subject: Mapped[Optional[SubjectRow]] = relationship(lazy="raise")


# =============================================================================
# People
# =============================================================================


class StudentRow(Base):
    __tablename__ = "students"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    identity_id: Mapped[Optional[str]] = mapped_column(sa.String(36), unique=True)
    first_name: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    last_name: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    photo_url: Mapped[Optional[str]] = mapped_column(sa.Text)


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    student_id: Mapped[str] = mapped_column(
        sa.String(36), ForeignKey("students.id", ondelete="CASCADE"), primary_key=True
    )
    course_id: Mapped[str] = mapped_column(
        sa.String(36), ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True
    )


class TeacherCourseRow(Base):
    __tablename__ = "teacher_courses"

    teacher_id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    course_id: Mapped[str] = mapped_column(
        sa.String(36), ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True
    )


class GuardianStudentRow(Base):
    __tablename__ = "guardian_students"

    guardian_id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    student_id: Mapped[str] = mapped_column(
        sa.String(36), ForeignKey("students.id", ondelete="CASCADE"), primary_key=True
    )


# =============================================================================
# Attempts
# =============================================================================


class QuizAttemptRow(Base):
    __tablename__ = "quiz_attempts"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    quiz_id: Mapped[str] = mapped_column(
        sa.String(36), ForeignKey("quizzes.id", ondelete="CASCADE"), index=True
    )
    student_id: Mapped[str] = mapped_column(sa.String(36), nullable=False, index=True)
    grade: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(4, 2))
    completed: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    finished_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))


class EvaluationAttemptRow(Base):
    __tablename__ = "evaluation_attempts"

    id: Mapped[str] = mapped_column(sa.String(36), primary_key=True)
    evaluation_id: Mapped[str] = mapped_column(
        sa.String(36), ForeignKey("evaluations.id", ondelete="CASCADE"), index=True
    )
    student_id: Mapped[str] = mapped_column(sa.String(36), nullable=False, index=True)
    grade: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(4, 2))
    completed: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    finished_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
