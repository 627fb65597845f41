"""
Tests for archive_file module.

Tests cover:
- Rendering an archive section for a batch of tasks
- Appending to a new or existing ARCHIVE.md
- Reading entries back
- Archive cutoff parsing (ISO dates and relative ages)
"""

from datetime import datetime, timezone

import pytest

from tickmd.archive_file import (
    append_to_archive,
    parse_archive,
    parse_cutoff,
    render_archive_section,
)
from tickmd.core.models import Task

ARCHIVED_AT = "2026-02-01T09:00:00.000Z"


@pytest.fixture
def done_task():
    return Task(
        id="TASK-001",
        title="Write the parser",
        status="done",
        priority="high",
        assigned_to="@alice",
        created_at="2026-01-01T00:00:00.000Z",
        updated_at="2026-01-05T00:00:00.000Z",
        tags=["core", "parser"],
        description="Parse everything.",
    )


class TestRender:
    def test_section(self, done_task):
        section = render_archive_section([done_task], ARCHIVED_AT)

        assert section.startswith("## Archived 2026-02-01\n")
        assert "### TASK-001 · Write the parser" in section
        assert "- **Assigned to:** @alice" in section
        assert "- **Completed:** 2026-01-05T00:00:00.000Z" in section
        assert f"- **Archived:** {ARCHIVED_AT}" in section
        assert "- **Tags:** core, parser" in section
        assert "Parse everything." in section

    def test_optional_fields_omitted(self):
        section = render_archive_section([Task(id="TASK-002", title="Bare", status="done")], ARCHIVED_AT)

        assert "Assigned to" not in section
        assert "Tags" not in section


class TestAppend:
    def test_new_archive_has_header(self, done_task):
        content = append_to_archive(None, "demo", [done_task], ARCHIVED_AT)

        assert content.startswith("# demo - Task Archive\n")
        assert content.endswith("\n")
        assert [e.id for e in parse_archive(content)] == ["TASK-001"]

    def test_existing_archive_kept(self, done_task):
        """Test a second run adds a section after the first."""
        first = append_to_archive(None, "demo", [done_task], ARCHIVED_AT)
        later = Task(id="TASK-007", title="Ship it", status="done")

        content = append_to_archive(first, "ignored", [later], "2026-03-01T00:00:00.000Z")

        assert content.startswith(first.rstrip())
        assert content.count("# demo - Task Archive") == 1
        entries = parse_archive(content)
        assert [(e.id, e.title) for e in entries] == [
            ("TASK-001", "Write the parser"),
            ("TASK-007", "Ship it"),
        ]
        assert [e.archived_at for e in entries] == [ARCHIVED_AT, "2026-03-01T00:00:00.000Z"]

    def test_parse_entry_without_archived_line(self):
        entries = parse_archive("# x\n\n### WEB-3 · Hand written\n\nNo bullets.\n")
        assert entries[0].id == "WEB-3"
        assert entries[0].archived_at is None


class TestParseCutoff:
    NOW = "2026-03-31T12:00:00.000Z"

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("2026-01-15", datetime(2026, 1, 15, tzinfo=timezone.utc)),
            ("30d", datetime(2026, 3, 1, 12, tzinfo=timezone.utc)),
            ("2w", datetime(2026, 3, 17, 12, tzinfo=timezone.utc)),
            ("1m", datetime(2026, 2, 28, 12, tzinfo=timezone.utc)),
            ("1y", datetime(2025, 3, 31, 12, tzinfo=timezone.utc)),
        ],
    )
    def test_values(self, value, expected):
        assert parse_cutoff(value, self.NOW) == expected

    @pytest.mark.parametrize("value", ["yesterday", "30", "5h", ""])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="Invalid date format"):
            parse_cutoff(value, self.NOW)
