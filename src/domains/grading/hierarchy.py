# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic hierarchy resolution.

The hierarchy is Course > Subject > Period > Topic > Subtopic, with quizzes
attached to subtopics and evaluations attached directly to a
(period, subject) pair. Two resolution directions are supported:

- Downward (load_tree): walk a set of courses top to bottom and answer
  bucket keys from the resulting CourseTree. Used by course-scoped reports.
- Upward (ancestors_of_quizzes, ancestors_of_evaluations): recover the
  ancestor chain of individual assessments. The nested-fetch payload is
  read first; every level it fails to provide is looked up directly by
  foreign key, one batched query per level. Used by student-scoped reports.

An upward resolution that cannot reach the top yields an AncestryResult
carrying a ResolutionGap that names the failed level. Callers exclude
such assessments from (subject, period) bucketing.

Example:
    >>> resolver = HierarchyResolver(repository)
    >>> results = await resolver.ancestors_of_quizzes(["quiz-1"])
    >>> results["quiz-1"].bucket_key
    BucketKey(subject_id='math', period_id='p1')
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Collection, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple, TypeVar

from pydantic import BaseModel, ValidationError

from src.infrastructure.repository import AcademicRepository, first_or_none
from src.models import (
    AssessmentKind,
    Course,
    Evaluation,
    Period,
    Quiz,
    Subject,
    Subtopic,
    Topic,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=BaseModel)

_WHITESPACE = re.compile(r"\s+")


class HierarchyLevel(str, Enum):
    """Levels an ancestor chain passes through."""

    QUIZ = "quiz"
    EVALUATION = "evaluation"
    SUBTOPIC = "subtopic"
    TOPIC = "topic"
    PERIOD = "period"
    SUBJECT = "subject"
    COURSE = "course"


class BucketKey(NamedTuple):
    """Grouping key for grade aggregation."""

    subject_id: str
    period_id: str


@dataclass(frozen=True)
class Ancestors:
    """Resolved ancestors of an assessment. Unresolved levels are None."""

    subtopic: Subtopic | None = None
    topic: Topic | None = None
    period: Period | None = None
    subject: Subject | None = None
    course: Course | None = None


@dataclass(frozen=True)
class ResolutionGap:
    """The first level of a chain that could not be resolved.

    Attributes:
        level: Level that is missing.
        missing_id: Foreign key that pointed at it, None when the child
            carried no reference at all.
    """

    level: HierarchyLevel
    missing_id: str | None = None


@dataclass(frozen=True)
class AncestryResult:
    """Outcome of resolving one assessment upward."""

    kind: AssessmentKind
    assessment_id: str
    ancestors: Ancestors
    gap: ResolutionGap | None = None
    assessment: Quiz | Evaluation | None = None

    @property
    def is_complete(self) -> bool:
        return self.gap is None

    @property
    def bucket_key(self) -> BucketKey | None:
        """(subject, period) key, or None for a partial chain."""
        if self.gap is not None:
            return None
        assert self.ancestors.subject is not None and self.ancestors.period is not None
        return BucketKey(self.ancestors.subject.id, self.ancestors.period.id)


# =============================================================================
# Ordering and name matching
# =============================================================================


def normalize_name(name: str | None) -> str:
    """Collapse whitespace runs, trim and lowercase a name.

    >>> normalize_name("  Tema   1 ")
    'tema 1'
    """
    if not name:
        return ""
    return _WHITESPACE.sub(" ", name).strip().lower()


def match_by_name(items: Iterable[E], name: str, attribute: str = "name") -> E | None:
    """Return the first item whose normalized ``attribute`` equals ``name``."""
    target = normalize_name(name)
    if not target:
        return None
    for item in items:
        if normalize_name(getattr(item, attribute)) == target:
            return item
    return None


def period_sort_key(period: Period) -> tuple[int, str, str]:
    """Order periods by ordinal number (missing counts as 0), then name."""
    return (period.number or 0, period.name, period.id)


def subject_sort_key(subject: Subject) -> tuple[str, str]:
    return (subject.name, subject.id)


# =============================================================================
# Downward tree
# =============================================================================


@dataclass
class CourseTree:
    """Hierarchy below a set of courses, loaded top to bottom.

    Every quiz in the tree is reachable from a course, so its bucket key is
    always known. Evaluations are keyed by their own subject_id, falling
    back to the period's subject only when they carry none.
    """

    courses: list[Course] = field(default_factory=list)
    subjects: list[Subject] = field(default_factory=list)
    periods: list[Period] = field(default_factory=list)
    topics: list[Topic] = field(default_factory=list)
    subtopics: list[Subtopic] = field(default_factory=list)
    quizzes: list[Quiz] = field(default_factory=list)
    evaluations: list[Evaluation] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._courses = {c.id: c for c in self.courses}
        self._subjects = {s.id: s for s in self.subjects}
        self._periods = {p.id: p for p in self.periods}
        self._topics = {t.id: t for t in self.topics}
        self._subtopics = {s.id: s for s in self.subtopics}

        self._quiz_buckets: dict[str, BucketKey] = {}
        for quiz in self.quizzes:
            key = self._quiz_key(quiz)
            if key is not None:
                self._quiz_buckets[quiz.id] = key

        self._evaluation_buckets: dict[str, BucketKey] = {}
        for evaluation in self.evaluations:
            key = self._evaluation_key(evaluation)
            if key is not None:
                self._evaluation_buckets[evaluation.id] = key

    def _quiz_key(self, quiz: Quiz) -> BucketKey | None:
        subtopic = self._subtopics.get(quiz.subtopic_id or "")
        topic = self._topics.get(subtopic.topic_id or "") if subtopic else None
        period = self._periods.get(topic.period_id or "") if topic else None
        if period is None or period.subject_id not in self._subjects:
            return None
        return BucketKey(period.subject_id, period.id)

    def _evaluation_key(self, evaluation: Evaluation) -> BucketKey | None:
        period = self._periods.get(evaluation.period_id or "")
        if period is None:
            return None
        subject_id = evaluation.subject_id or period.subject_id
        if subject_id not in self._subjects:
            return None
        if period.subject_id and period.subject_id != subject_id:
            logger.debug(
                "Evaluation %s subject %s differs from period %s subject %s",
                evaluation.id,
                subject_id,
                period.id,
                period.subject_id,
            )
        return BucketKey(subject_id, period.id)

    def course(self, course_id: str) -> Course | None:
        return self._courses.get(course_id)

    def subject(self, subject_id: str) -> Subject | None:
        return self._subjects.get(subject_id)

    def period(self, period_id: str) -> Period | None:
        return self._periods.get(period_id)

    def topic(self, topic_id: str) -> Topic | None:
        return self._topics.get(topic_id)

    def subtopic(self, subtopic_id: str) -> Subtopic | None:
        return self._subtopics.get(subtopic_id)

    def quiz_bucket(self, quiz_id: str) -> BucketKey | None:
        return self._quiz_buckets.get(quiz_id)

    def evaluation_bucket(self, evaluation_id: str) -> BucketKey | None:
        return self._evaluation_buckets.get(evaluation_id)

    def buckets(self) -> dict[tuple[AssessmentKind, str], BucketKey]:
        """Bucket key of every assessment in the tree, keyed by (kind, id)."""
        keys: dict[tuple[AssessmentKind, str], BucketKey] = {}
        for quiz_id, key in self._quiz_buckets.items():
            keys[(AssessmentKind.QUIZ, quiz_id)] = key
        for evaluation_id, key in self._evaluation_buckets.items():
            keys[(AssessmentKind.EVALUATION, evaluation_id)] = key
        return keys

    def course_id_of_subject(self, subject_id: str) -> str | None:
        subject = self._subjects.get(subject_id)
        return subject.course_id if subject else None

    def subjects_of(self, course_id: str) -> list[Subject]:
        """Subjects of a course ordered by name."""
        return sorted(
            (s for s in self.subjects if s.course_id == course_id),
            key=subject_sort_key,
        )

    def periods_of(self, subject_id: str) -> list[Period]:
        """Periods a subject's grades are reported under, in display order.

        This is the subject's own periods plus any period an evaluation of
        this subject points at.
        """
        period_ids = {p.id for p in self.periods if p.subject_id == subject_id}
        period_ids.update(
            key.period_id for key in self._evaluation_buckets.values() if key.subject_id == subject_id
        )
        return sorted((self._periods[pid] for pid in period_ids), key=period_sort_key)

    def owned_periods_of(self, subject_id: str) -> list[Period]:
        return sorted(
            (p for p in self.periods if p.subject_id == subject_id),
            key=period_sort_key,
        )

    def topics_of(self, period_id: str) -> list[Topic]:
        return sorted(
            (t for t in self.topics if t.period_id == period_id),
            key=lambda t: (t.order, t.name, t.id),
        )

    def quizzes_of_topic(self, topic_id: str) -> list[Quiz]:
        subtopic_ids = {s.id for s in self.subtopics if s.topic_id == topic_id}
        return [q for q in self.quizzes if q.subtopic_id in subtopic_ids]

    def quizzes_of_course(self, course_id: str) -> list[Quiz]:
        return [
            q
            for q in self.quizzes
            if q.id in self._quiz_buckets
            and self.course_id_of_subject(self._quiz_buckets[q.id].subject_id) == course_id
        ]

    def evaluations_of_course(self, course_id: str) -> list[Evaluation]:
        return [
            e
            for e in self.evaluations
            if e.id in self._evaluation_buckets
            and self.course_id_of_subject(self._evaluation_buckets[e.id].subject_id) == course_id
        ]

    def quizzes_of_subject(self, subject_id: str) -> list[Quiz]:
        return [
            q
            for q in self.quizzes
            if q.id in self._quiz_buckets and self._quiz_buckets[q.id].subject_id == subject_id
        ]

    def evaluations_of_subject(self, subject_id: str) -> list[Evaluation]:
        return [
            e
            for e in self.evaluations
            if e.id in self._evaluation_buckets
            and self._evaluation_buckets[e.id].subject_id == subject_id
        ]


# =============================================================================
# Upward resolution helpers
# =============================================================================

_Chain = dict[HierarchyLevel, Any]


def _parse(model: type[E], payload: Mapping[str, Any] | None) -> E | None:
    if payload is None:
        return None
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.debug("Ignoring malformed %s payload: %s", model.__name__, e)
        return None


def _embedded(
    payload: Mapping[str, Any] | None,
    relation: str,
    expected_id: str | None,
) -> Mapping[str, Any] | None:
    """Read an embedded to-one relation, rejecting one that contradicts the foreign key."""
    if payload is None:
        return None
    related = first_or_none(payload.get(relation))
    if related is None:
        return None
    if expected_id is not None and related.get("id") != expected_id:
        return None
    return related


def _fk(node: Any, attribute: str) -> str | None:
    return getattr(node, attribute) if node is not None else None


# Quiz chains walk strictly upward: (child, parent, foreign key on child).
_QUIZ_LINKS: tuple[tuple[HierarchyLevel, HierarchyLevel, str], ...] = (
    (HierarchyLevel.QUIZ, HierarchyLevel.SUBTOPIC, "subtopic_id"),
    (HierarchyLevel.SUBTOPIC, HierarchyLevel.TOPIC, "topic_id"),
    (HierarchyLevel.TOPIC, HierarchyLevel.PERIOD, "period_id"),
    (HierarchyLevel.PERIOD, HierarchyLevel.SUBJECT, "subject_id"),
    (HierarchyLevel.SUBJECT, HierarchyLevel.COURSE, "course_id"),
)


def _evaluation_subject_id(chain: _Chain) -> str | None:
    evaluation = chain.get(HierarchyLevel.EVALUATION)
    if evaluation is None:
        return None
    if evaluation.subject_id:
        return evaluation.subject_id
    return _fk(chain.get(HierarchyLevel.PERIOD), "subject_id")


_EVALUATION_LINKS: tuple[tuple[HierarchyLevel, Callable[[_Chain], str | None]], ...] = (
    (HierarchyLevel.PERIOD, lambda c: _fk(c.get(HierarchyLevel.EVALUATION), "period_id")),
    (HierarchyLevel.SUBJECT, _evaluation_subject_id),
    (HierarchyLevel.COURSE, lambda c: _fk(c.get(HierarchyLevel.SUBJECT), "course_id")),
)


class HierarchyResolver:
    """Resolves assessments to their place in the academic hierarchy.

    Attributes:
        repository: Academic data source.
    """

    def __init__(self, repository: AcademicRepository) -> None:
        self.repository = repository
        self._loaders: dict[HierarchyLevel, Callable[[list[str]], Awaitable[list[Any]]]] = {
            HierarchyLevel.SUBTOPIC: repository.get_subtopics_by_id,
            HierarchyLevel.TOPIC: repository.get_topics_by_id,
            HierarchyLevel.PERIOD: repository.get_periods_by_id,
            HierarchyLevel.SUBJECT: repository.get_subjects_by_id,
            HierarchyLevel.COURSE: repository.get_courses,
        }

    # =========================================================================
    # Downward
    # =========================================================================

    async def load_tree(self, course_ids: Collection[str]) -> CourseTree:
        """Load the hierarchy below the given courses.

        Args:
            course_ids: Courses to load. Unknown ids are ignored.

        Returns:
            CourseTree with every level down to quizzes and evaluations.
        """
        if not course_ids:
            return CourseTree()

        courses = await self.repository.get_courses(sorted(set(course_ids)))
        subjects = await self.repository.get_subjects([c.id for c in courses])
        subject_ids = [s.id for s in subjects]
        periods = await self.repository.get_periods(subject_ids)
        period_ids = [p.id for p in periods]

        async def load_quiz_levels() -> tuple[list[Topic], list[Subtopic], list[Quiz]]:
            topics = await self.repository.get_topics(period_ids)
            subtopics = await self.repository.get_subtopics([t.id for t in topics])
            quizzes = await self.repository.get_quizzes([s.id for s in subtopics])
            return topics, subtopics, quizzes

        (topics, subtopics, quizzes), evaluations = await asyncio.gather(
            load_quiz_levels(),
            self.repository.get_evaluations(period_ids, subject_ids),
        )

        logger.debug(
            "Loaded course tree: courses=%d, subjects=%d, periods=%d, quizzes=%d, evaluations=%d",
            len(courses),
            len(subjects),
            len(periods),
            len(quizzes),
            len(evaluations),
        )
        return CourseTree(
            courses=courses,
            subjects=subjects,
            periods=periods,
            topics=topics,
            subtopics=subtopics,
            quizzes=quizzes,
            evaluations=evaluations,
        )

    # =========================================================================
    # Upward
    # =========================================================================

    async def ancestors_of_quiz(self, quiz_id: str) -> AncestryResult:
        results = await self.ancestors_of_quizzes([quiz_id])
        return results[quiz_id]

    async def ancestors_of_quizzes(self, quiz_ids: Iterable[str]) -> dict[str, AncestryResult]:
        """Resolve subtopic, topic, period, subject and course of quizzes.

        Args:
            quiz_ids: Quizzes to resolve.

        Returns:
            One AncestryResult per requested id, ordered by id.
        """
        ids = sorted(set(quiz_ids))
        if not ids:
            return {}

        chains: dict[str, _Chain] = {}
        for payload in await self.repository.fetch_quiz_chains(ids):
            quiz = _parse(Quiz, payload)
            if quiz is None or quiz.id in chains:
                continue
            chain: _Chain = {HierarchyLevel.QUIZ: quiz}
            node: Any = quiz
            node_payload: Mapping[str, Any] | None = payload
            for _, parent_level, foreign_key in _QUIZ_LINKS:
                relation = parent_level.value
                node_payload = _embedded(node_payload, relation, _fk(node, foreign_key))
                node = _parse(_MODELS[parent_level], node_payload)
                if node is None:
                    break
                chain[parent_level] = node
            chains[quiz.id] = chain

        missing = [i for i in ids if i not in chains]
        if missing:
            for quiz in await self.repository.get_quizzes_by_id(missing):
                chains[quiz.id] = {HierarchyLevel.QUIZ: quiz}

        for child_level, parent_level, foreign_key in _QUIZ_LINKS:
            await self._fill_level(
                chains,
                parent_level,
                lambda c, child=child_level, fk=foreign_key: _fk(c.get(child), fk),
            )

        results = {}
        for quiz_id in ids:
            chain = chains.get(quiz_id)
            if chain is None:
                gap = ResolutionGap(HierarchyLevel.QUIZ, quiz_id)
                chain = {}
            else:
                gap = None
                for child_level, parent_level, foreign_key in _QUIZ_LINKS:
                    if chain.get(parent_level) is None:
                        gap = ResolutionGap(parent_level, _fk(chain.get(child_level), foreign_key))
                        break
            results[quiz_id] = self._result(AssessmentKind.QUIZ, quiz_id, chain, gap)
        return results

    async def ancestors_of_evaluation(self, evaluation_id: str) -> AncestryResult:
        results = await self.ancestors_of_evaluations([evaluation_id])
        return results[evaluation_id]

    async def ancestors_of_evaluations(
        self,
        evaluation_ids: Iterable[str],
    ) -> dict[str, AncestryResult]:
        """Resolve period, subject and course of evaluations.

        The evaluation's own period_id and subject_id are authoritative.
        An embedded relation that contradicts them is discarded. When the
        period's subject differs from the evaluation's subject_id, the
        evaluation's subject_id wins.

        Args:
            evaluation_ids: Evaluations to resolve.

        Returns:
            One AncestryResult per requested id, ordered by id.
        """
        ids = sorted(set(evaluation_ids))
        if not ids:
            return {}

        chains: dict[str, _Chain] = {}
        for payload in await self.repository.fetch_evaluation_chains(ids):
            evaluation = _parse(Evaluation, payload)
            if evaluation is None or evaluation.id in chains:
                continue
            chain: _Chain = {HierarchyLevel.EVALUATION: evaluation}

            period_payload = _embedded(payload, "period", evaluation.period_id)
            period = _parse(Period, period_payload)
            if period is not None:
                chain[HierarchyLevel.PERIOD] = period

            if evaluation.subject_id:
                subject_payload = _embedded(payload, "subject", evaluation.subject_id)
                if subject_payload is None:
                    subject_payload = _embedded(period_payload, "subject", evaluation.subject_id)
            else:
                subject_payload = _embedded(period_payload, "subject", _fk(period, "subject_id"))
            subject = _parse(Subject, subject_payload)
            if subject is not None:
                chain[HierarchyLevel.SUBJECT] = subject
                course = _parse(Course, _embedded(subject_payload, "course", subject.course_id))
                if course is not None:
                    chain[HierarchyLevel.COURSE] = course
            chains[evaluation.id] = chain

        missing = [i for i in ids if i not in chains]
        if missing:
            for evaluation in await self.repository.get_evaluations_by_id(missing):
                chains[evaluation.id] = {HierarchyLevel.EVALUATION: evaluation}

        for parent_level, key_of in _EVALUATION_LINKS:
            await self._fill_level(chains, parent_level, key_of)

        results = {}
        for evaluation_id in ids:
            chain = chains.get(evaluation_id)
            if chain is None:
                gap = ResolutionGap(HierarchyLevel.EVALUATION, evaluation_id)
                chain = {}
            else:
                gap = None
                for parent_level, key_of in _EVALUATION_LINKS:
                    if chain.get(parent_level) is None:
                        gap = ResolutionGap(parent_level, key_of(chain))
                        break
                self._log_subject_mismatch(chain)
            results[evaluation_id] = self._result(
                AssessmentKind.EVALUATION, evaluation_id, chain, gap
            )
        return results

    async def _fill_level(
        self,
        chains: dict[str, _Chain],
        level: HierarchyLevel,
        key_of: Callable[[_Chain], str | None],
    ) -> None:
        """Look up ``level`` directly for every chain still missing it."""
        wanted: dict[str, list[_Chain]] = {}
        for chain in chains.values():
            if chain.get(level) is not None:
                continue
            key = key_of(chain)
            if key:
                wanted.setdefault(key, []).append(chain)
        if not wanted:
            return

        found = {e.id: e for e in await self._loaders[level](sorted(wanted))}
        for key, waiting in wanted.items():
            entity = found.get(key)
            if entity is None:
                continue
            for chain in waiting:
                chain[level] = entity

        logger.debug(
            "Fallback lookup of %s: requested=%d, found=%d",
            level.value,
            len(wanted),
            len(found),
        )

    @staticmethod
    def _log_subject_mismatch(chain: _Chain) -> None:
        period = chain.get(HierarchyLevel.PERIOD)
        subject = chain.get(HierarchyLevel.SUBJECT)
        if period is None or subject is None or not period.subject_id:
            return
        if period.subject_id != subject.id:
            logger.debug(
                "Evaluation %s subject %s differs from period %s subject %s",
                chain[HierarchyLevel.EVALUATION].id,
                subject.id,
                period.id,
                period.subject_id,
            )

    @staticmethod
    def _result(
        kind: AssessmentKind,
        assessment_id: str,
        chain: _Chain,
        gap: ResolutionGap | None,
    ) -> AncestryResult:
        if gap is not None:
            logger.debug(
                "Partial ancestry for %s %s: missing %s (%s)",
                kind.value,
                assessment_id,
                gap.level.value,
                gap.missing_id,
            )
        return AncestryResult(
            kind=kind,
            assessment_id=assessment_id,
            ancestors=Ancestors(
                subtopic=chain.get(HierarchyLevel.SUBTOPIC),
                topic=chain.get(HierarchyLevel.TOPIC),
                period=chain.get(HierarchyLevel.PERIOD),
                subject=chain.get(HierarchyLevel.SUBJECT),
                course=chain.get(HierarchyLevel.COURSE),
            ),
            gap=gap,
            assessment=chain.get(
                HierarchyLevel.QUIZ if kind == AssessmentKind.QUIZ else HierarchyLevel.EVALUATION
            ),
        )


_MODELS: dict[HierarchyLevel, type[BaseModel]] = {
    HierarchyLevel.SUBTOPIC: Subtopic,
    HierarchyLevel.TOPIC: Topic,
    HierarchyLevel.PERIOD: Period,
    HierarchyLevel.SUBJECT: Subject,
    HierarchyLevel.COURSE: Course,
}
