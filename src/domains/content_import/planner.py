# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Bulk content import planning.

Teachers upload spreadsheet rows describing contents of a period:

    Tema | Subtema | Tipo | Título | Descripción | URL_Video

The planner validates the rows and resolves each one against the period's
hierarchy. Topics must already exist; a subtopic that does not exist yet is
planned for creation under its topic. Nothing is written: the returned
ImportPlan is applied by whatever owns the write path.

Rows are reported with their spreadsheet row number (first data row is 2,
the header being row 1).

Example:
    planner = ContentImportPlanner(repository)
    plan = await planner.plan("period-1", rows)
    for error in plan.errors:
        print(error.row, error.message)
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.domains.grading.hierarchy import match_by_name, normalize_name
from src.infrastructure.repository import AcademicRepository
from src.models import ContentKind, Subtopic, Topic

logger = logging.getLogger(__name__)

# First data row in the spreadsheet, after the header row.
FIRST_DATA_ROW = 2

HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    "topic": ("topic", "tema"),
    "subtopic": ("subtopic", "subtema"),
    "kind": ("kind", "type", "tipo"),
    "title": ("title", "título", "titulo"),
    "description": ("description", "descripción", "descripcion"),
    "url": ("url_video", "video_url", "url"),
}

KIND_ALIASES: dict[str, ContentKind] = {
    "video": ContentKind.VIDEO,
    "file": ContentKind.FILE,
    "archivo": ContentKind.FILE,
    "forum": ContentKind.FORUM,
    "foro": ContentKind.FORUM,
}

TEMPLATE_PLACEHOLDERS = frozenset(
    {
        "nombre del tema",
        "nombre del subtema",
        "título del contenido",
        "descripción (opcional)",
        "nombre del contenido",
        "topic name",
        "subtopic name",
        "content title",
    }
)


class ContentImportError(Exception):
    """Raised when an upload cannot be planned at all."""

    pass


class ImportRow(BaseModel):
    """One spreadsheet row with canonical field names."""

    model_config = ConfigDict(frozen=True)

    row: int = Field(description="Spreadsheet row number")
    topic: str = ""
    subtopic: str = ""
    kind: str = ""
    title: str = ""
    description: str = ""
    url: str = ""

    @property
    def is_blank(self) -> bool:
        return not (self.topic or self.subtopic or self.title)

    @property
    def is_placeholder(self) -> bool:
        return any(
            value.lower() in TEMPLATE_PLACEHOLDERS
            for value in (self.topic, self.subtopic, self.title)
        )


class PlannedSubtopic(BaseModel):
    """Subtopic to create before the contents that reference it."""

    model_config = ConfigDict(frozen=True)

    topic_id: str
    name: str
    order: int = Field(description="Position after the topic's existing subtopics")


class PlannedContent(BaseModel):
    """Content row resolved against the hierarchy."""

    model_config = ConfigDict(frozen=True)

    row: int
    topic_id: str
    subtopic_id: str | None = Field(
        default=None, description="Existing subtopic, None when planned for creation"
    )
    subtopic_name: str
    kind: ContentKind
    title: str
    description: str | None = None
    url: str | None = None
    order: int = Field(default=0, description="Position after the subtopic's existing contents")


class RowError(BaseModel):
    model_config = ConfigDict(frozen=True)

    row: int
    message: str


class ImportPlan(BaseModel):
    """Outcome of planning one upload."""

    model_config = ConfigDict(frozen=True)

    period_id: str
    contents: list[PlannedContent] = Field(default_factory=list)
    new_subtopics: list[PlannedSubtopic] = Field(default_factory=list)
    errors: list[RowError] = Field(default_factory=list)
    skipped_rows: int = Field(default=0, description="Blank or template rows")

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_rows(records: Iterable[Mapping[str, Any]]) -> list[ImportRow]:
    """Map raw records to ImportRow using case-insensitive header aliases.

    Args:
        records: One mapping per data row, keyed by header text.

    Returns:
        Rows numbered from FIRST_DATA_ROW.
    """
    rows = []
    for index, record in enumerate(records):
        headers = {normalize_name(str(k)): v for k, v in record.items()}
        values: dict[str, str] = {}
        for field_name, aliases in HEADER_ALIASES.items():
            for alias in aliases:
                text = _cell(headers.get(alias))
                if text:
                    values[field_name] = text
                    break
        rows.append(ImportRow(row=index + FIRST_DATA_ROW, **values))
    return rows


class ContentImportPlanner:
    """Validates import rows and resolves them within one period.

    Attributes:
        repository: Academic data source.
    """

    def __init__(self, repository: AcademicRepository) -> None:
        self.repository = repository

    async def plan(self, period_id: str, records: Iterable[Mapping[str, Any]]) -> ImportPlan:
        """Plan the import of spreadsheet records into a period.

        Args:
            period_id: Period the contents belong to.
            records: Raw spreadsheet records.

        Returns:
            ImportPlan with per-row errors.

        Raises:
            ContentImportError: If there are no records, or every record is
                blank or a template placeholder.
        """
        rows = parse_rows(records)
        if not rows:
            raise ContentImportError("The upload contains no rows")

        candidates = [r for r in rows if not r.is_blank and not r.is_placeholder]
        if not candidates:
            raise ContentImportError(
                "No valid rows found: every row is empty or contains template values"
            )

        topics = await self.repository.get_topics([period_id])
        subtopics = await self.repository.get_subtopics([t.id for t in topics]) if topics else []
        subtopics_by_topic: dict[str, list[Subtopic]] = {}
        for subtopic in subtopics:
            subtopics_by_topic.setdefault(subtopic.topic_id or "", []).append(subtopic)
        last_content_order: dict[str, int] = {}
        for content in await self.repository.get_contents([s.id for s in subtopics]):
            if content.subtopic_id:
                last_content_order[content.subtopic_id] = max(
                    content.order, last_content_order.get(content.subtopic_id, -1)
                )

        contents: list[PlannedContent] = []
        new_subtopics: dict[tuple[str, str], PlannedSubtopic] = {}
        next_content_order: dict[str | tuple[str, str], int] = {}
        errors: list[RowError] = []

        for row in candidates:
            message = self._validate(row)
            if message:
                errors.append(RowError(row=row.row, message=message))
                continue

            topic = match_by_name(topics, row.topic)
            if topic is None:
                errors.append(RowError(row=row.row, message=self._missing_topic(row, topics)))
                continue

            existing = subtopics_by_topic.get(topic.id, [])
            subtopic = match_by_name(existing, row.subtopic)
            if subtopic is None:
                key = (topic.id, normalize_name(row.subtopic))
                if key not in new_subtopics:
                    planned = sum(1 for k in new_subtopics if k[0] == topic.id)
                    next_order = max((s.order for s in existing), default=-1) + 1 + planned
                    new_subtopics[key] = PlannedSubtopic(
                        topic_id=topic.id,
                        name=row.subtopic,
                        order=next_order,
                    )

            slot = subtopic.id if subtopic else key
            if slot not in next_content_order:
                next_content_order[slot] = last_content_order.get(slot, -1) + 1 if subtopic else 0
            content_order = next_content_order[slot]
            next_content_order[slot] += 1

            contents.append(
                PlannedContent(
                    row=row.row,
                    topic_id=topic.id,
                    subtopic_id=subtopic.id if subtopic else None,
                    subtopic_name=subtopic.name if subtopic else new_subtopics[key].name,
                    kind=KIND_ALIASES[row.kind.lower()],
                    title=row.title,
                    description=row.description or None,
                    url=row.url if KIND_ALIASES[row.kind.lower()] == ContentKind.VIDEO else None,
                    order=content_order,
                )
            )

        plan = ImportPlan(
            period_id=period_id,
            contents=contents,
            new_subtopics=list(new_subtopics.values()),
            errors=errors,
            skipped_rows=len(rows) - len(candidates),
        )
        logger.info(
            "Planned content import for period %s: contents=%d, new_subtopics=%d, errors=%d, skipped=%d",
            period_id,
            len(plan.contents),
            len(plan.new_subtopics),
            len(plan.errors),
            plan.skipped_rows,
        )
        return plan

    @staticmethod
    def _validate(row: ImportRow) -> str | None:
        if not (row.topic and row.subtopic and row.kind and row.title):
            return "Missing required fields (topic, subtopic, kind, title)"
        kind = KIND_ALIASES.get(row.kind.lower())
        if kind is None:
            return f"Kind must be one of video, file, forum (got {row.kind!r})"
        if kind == ContentKind.VIDEO and not row.url:
            return "Video rows require a URL"
        return None

    @staticmethod
    def _missing_topic(row: ImportRow, topics: list[Topic]) -> str:
        available = ", ".join(sorted(t.name for t in topics)) or "none"
        return f"Topic {row.topic!r} not found in this period. Available topics: {available}"
