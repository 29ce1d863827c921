# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Course cohort snapshot shared by the course-scoped calculators.

A Cohort bundles everything read for one course: its hierarchy, its
enrolled students, their identity mapping and every attempt they made on
the course's assessments (any state). Participation, alerts and grade
reports are then computed in memory from the same snapshot.
"""

import logging
from dataclasses import dataclass, field

from src.domains.grading.attempts import AttemptCollector, AttemptSet
from src.domains.grading.errors import CourseNotFoundError
from src.domains.grading.hierarchy import CourseTree, HierarchyResolver
from src.domains.grading.identity import IdentityMapper
from src.infrastructure.repository import AcademicRepository
from src.models import Course, IdentityId, ProfileId, Student

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cohort:
    """Read snapshot of one course."""

    course: Course
    tree: CourseTree
    student_ids: list[ProfileId]
    students: dict[ProfileId, Student]
    identities: dict[ProfileId, IdentityId]
    attempts: AttemptSet = field(default_factory=AttemptSet)

    @property
    def total_enrolled(self) -> int:
        return len(self.student_ids)

    def identity_of(self, student_id: ProfileId) -> IdentityId | None:
        return self.identities.get(student_id)

    def completed(self) -> AttemptSet:
        return AttemptSet(
            quiz=[a for a in self.attempts.quiz if a.completed],
            evaluation=[a for a in self.attempts.evaluation if a.completed],
        )

    def ordered_students(self) -> list[ProfileId]:
        """Enrolled students ordered by display name, then id."""
        return sorted(
            self.student_ids,
            key=lambda sid: (
                self.students[sid].display_name.lower() if sid in self.students else "",
                sid,
            ),
        )


class CohortLoader:
    """Reads Cohort snapshots.

    Attributes:
        repository: Academic data source.
        resolver: Hierarchy resolver.
        identity_mapper: Profile to identity mapper.
        collector: Attempt collector.
    """

    def __init__(
        self,
        repository: AcademicRepository,
        resolver: HierarchyResolver | None = None,
        identity_mapper: IdentityMapper | None = None,
        collector: AttemptCollector | None = None,
    ) -> None:
        self.repository = repository
        self.resolver = resolver or HierarchyResolver(repository)
        self.identity_mapper = identity_mapper or IdentityMapper(repository)
        self.collector = collector or AttemptCollector(repository)

    async def load(self, course_id: str, tree: CourseTree | None = None) -> Cohort:
        """Load the cohort of a course.

        Args:
            course_id: Course to load.
            tree: Already loaded tree containing the course, if any.

        Returns:
            Cohort snapshot.

        Raises:
            CourseNotFoundError: If the course does not exist.
        """
        if tree is None or tree.course(course_id) is None:
            tree = await self.resolver.load_tree([course_id])
        course = tree.course(course_id)
        if course is None:
            raise CourseNotFoundError(f"Course not found: {course_id}")

        enrollments = await self.repository.get_enrollments([course_id])
        student_ids = sorted({e.student_id for e in enrollments})
        students = {s.id: s for s in await self.repository.get_students(student_ids)}
        identities = await self.identity_mapper.resolve(student_ids)

        quiz_ids = [q.id for q in tree.quizzes_of_course(course_id)]
        evaluation_ids = [e.id for e in tree.evaluations_of_course(course_id)]
        attempts = await self.collector.attempts_for(
            list(identities.values()),
            quiz_ids,
            evaluation_ids,
            completed_only=False,
        )

        logger.debug(
            "Loaded cohort %s: enrolled=%d, mapped=%d, quizzes=%d, evaluations=%d",
            course_id,
            len(student_ids),
            len(identities),
            len(quiz_ids),
            len(evaluation_ids),
        )
        return Cohort(
            course=course,
            tree=tree,
            student_ids=student_ids,
            students=students,
            identities=identities,
            attempts=attempts,
        )
