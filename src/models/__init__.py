# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Entity snapshot models shared by repositories and the grading engine."""

from src.models.academics import (
    AssessmentKind,
    Attempt,
    Content,
    ContentKind,
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

__all__ = [
    "AssessmentKind",
    "Attempt",
    "Content",
    "ContentKind",
    "Course",
    "Enrollment",
    "Evaluation",
    "GuardianLink",
    "IdentityId",
    "Period",
    "ProfileId",
    "Quiz",
    "Student",
    "Subject",
    "Subtopic",
    "TeacherAssignment",
    "Topic",
]
