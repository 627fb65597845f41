"""
Shared fixtures for the tickmd test suite.

This conftest.py provides fixtures available to every test category
(document, store, operations, cli). Category-specific fixtures live in the
test modules that use them.
"""

import pytest

from tickmd.core.models import (
    Agent,
    HistoryAction,
    HistoryEntry,
    ProjectMeta,
    Task,
    TickFile,
)
from tickmd.operations import TickProject

NOW = "2026-01-01T00:00:00.000Z"


@pytest.fixture
def now():
    """Fixed timestamp used for deterministic documents."""
    return NOW


@pytest.fixture
def project(tmp_path):
    """An initialized project with auto-commit disabled."""
    tick_project = TickProject(tmp_path, auto_commit=False)
    tick_project.init(project="demo", now=NOW)
    return tick_project


@pytest.fixture
def sample_tick_file():
    """A document exercising every serialized field."""
    return TickFile(
        meta=ProjectMeta(
            project="demo",
            title="Demo project",
            created=NOW,
            updated="2026-01-02T10:30:00.000Z",
            next_id=3,
        ),
        agents=[
            Agent(
                name="@alice",
                type="human",
                roles=["owner", "developer"],
                status="working",
                working_on="TASK-002",
                last_active="2026-01-02T10:30:00.000Z",
                trust_level="owner",
            ),
            Agent(
                name="@ci-bot",
                type="bot",
                roles=["tester"],
                status="idle",
                last_active=NOW,
                trust_level="restricted",
            ),
        ],
        tasks=[
            Task(
                id="TASK-001",
                title="Write the parser",
                status="done",
                priority="high",
                created_by="@alice",
                created_at=NOW,
                updated_at="2026-01-02T09:00:00.000Z",
                tags=["core", "parser"],
                blocks=["TASK-002"],
                estimated_hours=4.0,
                actual_hours=3.5,
                description="Parse frontmatter, agents and tasks.\n\nKeep it strict.",
                history=[
                    HistoryEntry(ts=NOW, who="@alice", action=HistoryAction.CREATED),
                    HistoryEntry(
                        ts="2026-01-02T09:00:00.000Z",
                        who="@alice",
                        action=HistoryAction.COMPLETED,
                        from_status="in_progress",
                        to_status="done",
                    ),
                ],
            ),
            Task(
                id="TASK-002",
                title="Write the serializer · canonical form",
                status="in_progress",
                priority="medium",
                assigned_to="@alice",
                claimed_by="@alice",
                created_by="@ci-bot",
                created_at=NOW,
                updated_at="2026-01-02T10:30:00.000Z",
                due_date="2026-02-01",
                depends_on=["TASK-001"],
                detail_file="docs/serializer.md",
                history=[
                    HistoryEntry(ts=NOW, who="@ci-bot", action=HistoryAction.CREATED),
                    HistoryEntry(
                        ts="2026-01-02T10:30:00.000Z",
                        who="@alice",
                        action=HistoryAction.CLAIMED,
                        note="Picking this up: next",
                        from_status="todo",
                        to_status="in_progress",
                    ),
                ],
            ),
        ],
    )
