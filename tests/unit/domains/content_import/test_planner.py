# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for bulk content import planning."""

from typing import Any

import pytest

from src.domains.content_import import (
    ContentImportError,
    ContentImportPlanner,
    parse_rows,
)
from src.infrastructure.repository import InMemoryAcademicRepository
from src.models import ContentKind


def _record(
    topic: str = "Fractions",
    subtopic: str = "Adding",
    kind: str = "video",
    title: str = "Intro",
    description: str = "",
    url: str = "https://videos.example/intro",
) -> dict[str, Any]:
    return {
        "Tema": topic,
        "Subtema": subtopic,
        "Tipo": kind,
        "Título": title,
        "Descripción": description,
        "URL_Video": url,
    }


class TestParseRows:
    """Tests for parse_rows."""

    def test_header_aliases_and_numbering(self) -> None:
        rows = parse_rows(
            [
                {" TOPIC ": "Fractions", "Subtopic": "Adding", "type": "file", "Title": "Sheet"},
                _record(description="  Watch first  "),
            ]
        )

        assert [r.row for r in rows] == [2, 3]
        assert rows[0].topic == "Fractions"
        assert rows[0].kind == "file"
        assert rows[1].description == "Watch first"

    def test_blank_and_placeholder_rows(self) -> None:
        blank, placeholder = parse_rows(
            [
                {"Tema": None, "Subtema": "", "Título": "   "},
                _record(topic="Nombre del tema"),
            ]
        )

        assert blank.is_blank is True
        assert placeholder.is_placeholder is True


class TestContentImportPlanner:
    """Tests for ContentImportPlanner.plan."""

    @pytest.mark.asyncio
    async def test_existing_subtopic(self, repository: InMemoryAcademicRepository) -> None:
        plan = await ContentImportPlanner(repository).plan(
            "p-m1", [_record(topic="  fractions ", subtopic="ADDING", kind="Video")]
        )

        assert plan.has_errors is False
        assert plan.new_subtopics == []
        content = plan.contents[0]
        assert content.topic_id == "t-m1"
        assert content.subtopic_id == "st-m1"
        assert content.kind == ContentKind.VIDEO
        assert content.url == "https://videos.example/intro"
        assert content.description is None

    @pytest.mark.asyncio
    async def test_new_subtopic_is_planned_once(
        self, repository: InMemoryAcademicRepository
    ) -> None:
        plan = await ContentImportPlanner(repository).plan(
            "p-m1",
            [
                _record(subtopic="Subtracting", kind="archivo", title="Worksheet"),
                _record(subtopic="  subtracting ", kind="foro", title="Discuss", url=""),
                _record(subtopic="Multiplying", kind="file", title="Tables", url=""),
            ],
        )

        assert [(s.name, s.order) for s in plan.new_subtopics] == [
            ("Subtracting", 1),
            ("Multiplying", 2),
        ]
        assert [c.subtopic_id for c in plan.contents] == [None, None, None]
        assert [c.subtopic_name for c in plan.contents] == [
            "Subtracting",
            "Subtracting",
            "Multiplying",
        ]
        assert plan.contents[0].kind == ContentKind.FILE
        assert plan.contents[0].url is None
        assert plan.contents[1].kind == ContentKind.FORUM

    @pytest.mark.asyncio
    async def test_content_order_follows_existing_contents(
        self, school_snapshot: dict[str, Any]
    ) -> None:
        snapshot = {table: list(rows) for table, rows in school_snapshot.items()}
        snapshot["contents"].append(
            {
                "id": "ct-2",
                "title": "Like denominators",
                "kind": "file",
                "subtopic_id": "st-m1",
                "order": 4,
            }
        )
        repository = InMemoryAcademicRepository.from_snapshot(snapshot)

        plan = await ContentImportPlanner(repository).plan(
            "p-m1",
            [
                _record(title="Intro"),
                _record(subtopic="Subtracting", title="Borrowing"),
                _record(title="Practice"),
                _record(subtopic="subtracting", title="Review"),
            ],
        )

        assert [(c.title, c.order) for c in plan.contents] == [
            ("Intro", 5),
            ("Borrowing", 0),
            ("Practice", 6),
            ("Review", 1),
        ]

    @pytest.mark.asyncio
    async def test_row_errors(self, repository: InMemoryAcademicRepository) -> None:
        plan = await ContentImportPlanner(repository).plan(
            "p-m1",
            [
                _record(topic="Decimals"),
                _record(kind="podcast"),
                _record(url=""),
                _record(title=""),
                _record(),
            ],
        )

        assert plan.has_errors is True
        assert [e.row for e in plan.errors] == [2, 3, 4, 5]
        messages = [e.message for e in plan.errors]
        assert "Available topics: Fractions" in messages[0]
        assert messages[1].startswith("Kind must be one of video, file, forum")
        assert messages[2] == "Video rows require a URL"
        assert messages[3] == "Missing required fields (topic, subtopic, kind, title)"
        assert [c.row for c in plan.contents] == [6]

    @pytest.mark.asyncio
    async def test_skipped_rows(self, repository: InMemoryAcademicRepository) -> None:
        plan = await ContentImportPlanner(repository).plan(
            "p-m1",
            [{"Tema": ""}, _record(title="Título del contenido"), _record()],
        )

        assert plan.skipped_rows == 2
        assert len(plan.contents) == 1

    @pytest.mark.asyncio
    async def test_empty_upload(self, repository: InMemoryAcademicRepository) -> None:
        with pytest.raises(ContentImportError):
            await ContentImportPlanner(repository).plan("p-m1", [])

    @pytest.mark.asyncio
    async def test_template_only_upload(self, repository: InMemoryAcademicRepository) -> None:
        with pytest.raises(ContentImportError) as exc_info:
            await ContentImportPlanner(repository).plan(
                "p-m1", [_record(topic="Nombre del tema", subtopic="Nombre del subtema")]
            )

        assert "template values" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_period_without_topics(self, repository: InMemoryAcademicRepository) -> None:
        plan = await ContentImportPlanner(repository).plan("p-unknown", [_record()])

        assert plan.errors[0].message.endswith("Available topics: none")
