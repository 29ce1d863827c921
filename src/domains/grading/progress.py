# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Topic completion and evaluation unlocking for one student in one subject.

A topic is completed when every quiz under it has a completed attempt.
Topics without quizzes are not reported, but count as completed when
deciding whether a period's evaluation is unlocked.
"""

from collections.abc import Collection
from dataclasses import dataclass, field

from src.domains.grading.hierarchy import CourseTree
from src.models import Period, Topic


@dataclass(frozen=True)
class TopicProgress:
    topic: Topic
    quiz_count: int
    completed_quiz_count: int

    @property
    def completed(self) -> bool:
        return self.quiz_count > 0 and self.completed_quiz_count == self.quiz_count


@dataclass(frozen=True)
class PeriodProgress:
    period: Period
    topics: list[TopicProgress] = field(default_factory=list)

    @property
    def evaluation_unlocked(self) -> bool:
        return all(t.completed for t in self.topics)


class ProgressCalculator:
    """Derives progress from a course tree and completed quiz ids."""

    def progress(
        self,
        tree: CourseTree,
        subject_id: str,
        completed_quiz_ids: Collection[str],
    ) -> list[PeriodProgress]:
        """Progress per period of a subject, in period order.

        Args:
            tree: Tree containing the subject.
            subject_id: Subject to report.
            completed_quiz_ids: Quizzes the student completed.

        Returns:
            One PeriodProgress per period owned by the subject.
        """
        done = set(completed_quiz_ids)
        periods = []
        for period in tree.owned_periods_of(subject_id):
            topics = []
            for topic in tree.topics_of(period.id):
                quiz_ids = {q.id for q in tree.quizzes_of_topic(topic.id)}
                if not quiz_ids:
                    continue
                topics.append(
                    TopicProgress(
                        topic=topic,
                        quiz_count=len(quiz_ids),
                        completed_quiz_count=len(quiz_ids & done),
                    )
                )
            periods.append(PeriodProgress(period=period, topics=topics))
        return periods
