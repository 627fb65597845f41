"""Core domain model: project metadata, agents, tasks, and their history."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from tickmd.constants import (
    DEFAULT_ID_PREFIX,
    DEFAULT_SCHEMA_VERSION,
    DEFAULT_WORKFLOW,
)
from tickmd.core.exceptions import TaskNotFoundError
from tickmd.core.naming import find_similar_ids


VALID_STATUSES = (
    "backlog",
    "todo",
    "in_progress",
    "review",
    "done",
    "blocked",
    "reopened",
)
VALID_PRIORITIES = ("urgent", "high", "medium", "low")
VALID_AGENT_TYPES = ("human", "bot")
VALID_AGENT_STATUSES = ("working", "idle", "offline")
VALID_TRUST_LEVELS = ("owner", "trusted", "restricted", "read-only")


def _normalize_choice(value: Any, valid: tuple, kind: str) -> str:
    """Normalize case and separators, then check membership."""
    if isinstance(value, str):
        if value in valid:
            return value
        normalized = value.strip().lower().replace(" ", "_").replace("-", "_")
        for candidate in valid:
            if normalized == candidate.replace("-", "_"):
                return candidate
    raise ValueError(f"Invalid {kind} '{value}'. Must be one of: {', '.join(valid)}")


def normalize_status(value: Any) -> str:
    return _normalize_choice(value, VALID_STATUSES, "status")


def normalize_priority(value: Any) -> str:
    return _normalize_choice(value, VALID_PRIORITIES, "priority")


class HistoryAction(str, Enum):
    """Action keywords recorded in a task's history log."""

    CREATED = "created"
    CLAIMED = "claimed"
    RELEASED = "released"
    COMPLETED = "completed"
    COMMENTED = "commented"
    BLOCKED = "blocked"
    UNBLOCKED = "unblocked"
    REOPENED = "reopened"
    UPDATED = "updated"
    EDITED = "edited"
    ASSIGNED = "assigned"


@dataclass
class HistoryEntry:
    """One append-only history record.

    `from_status`/`to_status` record a status transition and are written
    as `from`/`to` in the document.
    """

    ts: str
    who: str
    action: HistoryAction
    note: Optional[str] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None

    def __post_init__(self):
        # Raises ValueError for unknown actions
        self.action = HistoryAction(self.action)

    def to_dict(self) -> Dict[str, Any]:
        """Canonical mapping, empty optional fields omitted."""
        result: Dict[str, Any] = {
            "ts": self.ts,
            "who": self.who,
            "action": self.action.value,
        }
        if self.note:
            result["note"] = self.note
        if self.from_status:
            result["from"] = self.from_status
        if self.to_status:
            result["to"] = self.to_status
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        if not isinstance(data, dict):
            raise ValueError(f"History entry must be a mapping, got: {data!r}")
        return cls(
            ts=str(data.get("ts") or ""),
            who=str(data.get("who") or ""),
            action=data.get("action") or "",
            note=_optional_str(data.get("note")),
            from_status=_optional_str(data.get("from")),
            to_status=_optional_str(data.get("to")),
        )


@dataclass
class Deliverable:
    """An artifact a task is expected to produce."""

    name: str
    type: str = "other"
    path: Optional[str] = None
    completed: bool = False
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"name": self.name, "type": self.type}
        if self.path:
            result["path"] = self.path
        if self.completed:
            result["completed"] = True
        if self.notes:
            result["notes"] = self.notes
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Deliverable":
        if not isinstance(data, dict):
            raise ValueError(f"Deliverable must be a mapping, got: {data!r}")
        return cls(
            name=str(data.get("name") or ""),
            type=str(data.get("type") or "other"),
            path=_optional_str(data.get("path")),
            completed=bool(data.get("completed", False)),
            notes=_optional_str(data.get("notes")),
        )


@dataclass
class Task:
    """A unit of work in the document."""

    id: str
    title: str
    status: str = "backlog"
    priority: str = "medium"
    assigned_to: Optional[str] = None
    claimed_by: Optional[str] = None
    created_by: str = ""
    created_at: str = ""
    updated_at: str = ""
    due_date: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    depends_on: List[str] = field(default_factory=list)
    blocks: List[str] = field(default_factory=list)
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    detail_file: Optional[str] = None
    description: str = ""
    history: List[HistoryEntry] = field(default_factory=list)
    deliverables: List[Deliverable] = field(default_factory=list)

    def validate(self) -> None:
        """Validate enumerated fields at write-time."""
        if self.status not in VALID_STATUSES:
            raise ValueError(
                f"Invalid status '{self.status}'. Must be one of: {', '.join(VALID_STATUSES)}"
            )
        if self.priority not in VALID_PRIORITIES:
            raise ValueError(
                f"Invalid priority '{self.priority}'. Must be one of: {', '.join(VALID_PRIORITIES)}"
            )

    def record(
        self,
        action: HistoryAction,
        who: str,
        ts: str,
        note: Optional[str] = None,
        from_status: Optional[str] = None,
        to_status: Optional[str] = None,
    ) -> HistoryEntry:
        """Append one history entry and bump updated_at."""
        entry = HistoryEntry(
            ts=ts,
            who=who,
            action=action,
            note=note,
            from_status=from_status,
            to_status=to_status,
        )
        self.history.append(entry)
        self.updated_at = ts
        return entry

    def to_dict(self) -> Dict[str, Any]:
        """Canonical YAML mapping in fixed field order.

        The title lives in the section header, not in this mapping.
        """
        result: Dict[str, Any] = {
            "id": self.id,
            "status": self.status,
            "priority": self.priority,
        }
        if self.assigned_to:
            result["assigned_to"] = self.assigned_to
        if self.claimed_by:
            result["claimed_by"] = self.claimed_by
        result["created_by"] = self.created_by
        result["created_at"] = self.created_at
        result["updated_at"] = self.updated_at
        if self.due_date:
            result["due_date"] = self.due_date
        if self.tags:
            result["tags"] = list(self.tags)
        if self.depends_on:
            result["depends_on"] = list(self.depends_on)
        if self.blocks:
            result["blocks"] = list(self.blocks)
        if self.estimated_hours is not None:
            result["estimated_hours"] = self.estimated_hours
        if self.actual_hours is not None:
            result["actual_hours"] = self.actual_hours
        if self.detail_file:
            result["detail_file"] = self.detail_file
        if self.deliverables:
            result["deliverables"] = [d.to_dict() for d in self.deliverables]
        if self.history:
            result["history"] = [h.to_dict() for h in self.history]
        return result

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], title: str, description: str = ""
    ) -> "Task":
        """Build a Task from a parsed YAML mapping.

        Raises:
            ValueError: If an enumerated field or nested record is invalid.
        """
        return cls(
            id=str(data.get("id") or ""),
            title=title,
            status=normalize_status(data.get("status", "backlog")),
            priority=normalize_priority(data.get("priority", "medium")),
            assigned_to=_optional_str(data.get("assigned_to")),
            claimed_by=_optional_str(data.get("claimed_by")),
            created_by=str(data.get("created_by") or ""),
            created_at=str(data.get("created_at") or ""),
            updated_at=str(data.get("updated_at") or ""),
            due_date=_optional_str(data.get("due_date")),
            tags=_str_list(data.get("tags"), "tags"),
            depends_on=_str_list(data.get("depends_on"), "depends_on"),
            blocks=_str_list(data.get("blocks"), "blocks"),
            estimated_hours=_optional_number(data.get("estimated_hours"), "estimated_hours"),
            actual_hours=_optional_number(data.get("actual_hours"), "actual_hours"),
            detail_file=_optional_str(data.get("detail_file")),
            description=description,
            history=[HistoryEntry.from_dict(h) for h in _list(data.get("history"), "history")],
            deliverables=[
                Deliverable.from_dict(d) for d in _list(data.get("deliverables"), "deliverables")
            ],
        )


@dataclass
class Agent:
    """A registered human or bot participant."""

    name: str
    type: str = "bot"
    roles: List[str] = field(default_factory=list)
    status: str = "idle"
    working_on: Optional[str] = None
    last_active: str = ""
    trust_level: str = "restricted"

    def validate(self) -> None:
        if not self.name:
            raise ValueError("Agent name cannot be empty")
        if not self.roles:
            raise ValueError(f"Agent {self.name} must have at least one role")
        _normalize_choice(self.type, VALID_AGENT_TYPES, "agent type")
        _normalize_choice(self.status, VALID_AGENT_STATUSES, "agent status")
        _normalize_choice(self.trust_level, VALID_TRUST_LEVELS, "trust level")

    def mark_working(self, task_id: str, ts: str) -> None:
        self.status = "working"
        self.working_on = task_id
        self.last_active = ts

    def mark_idle(self, ts: str) -> None:
        self.status = "idle"
        self.working_on = None
        self.last_active = ts


@dataclass
class ProjectMeta:
    """Frontmatter metadata of the document."""

    project: str
    created: str
    updated: str
    title: Optional[str] = None
    schema_version: str = DEFAULT_SCHEMA_VERSION
    default_workflow: List[str] = field(default_factory=lambda: list(DEFAULT_WORKFLOW))
    id_prefix: str = DEFAULT_ID_PREFIX
    next_id: int = 1


@dataclass
class TickFile:
    """The whole document: metadata, agent roster, and task list."""

    meta: ProjectMeta
    agents: List[Agent] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def get_task(self, task_id: str) -> Task:
        """
        Get a task by ID.

        Raises:
            TaskNotFoundError: If no task has this ID.
        """
        task = self.find_task(task_id)
        if task is None:
            raise TaskNotFoundError(
                task_id, find_similar_ids(task_id, [t.id for t in self.tasks])
            )
        return task

    def find_agent(self, name: str) -> Optional[Agent]:
        for agent in self.agents:
            if agent.name == name:
                return agent
        return None

    def dependents_of(self, task_id: str) -> List[Task]:
        """Tasks whose depends_on lists task_id."""
        return [t for t in self.tasks if task_id in t.depends_on]

    def touch(self, ts: str) -> None:
        self.meta.updated = ts


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _list(value: Any, name: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"Field '{name}' must be a list, got: {value!r}")
    return value


def _str_list(value: Any, name: str) -> List[str]:
    return [str(item) for item in _list(value, name)]


def _optional_number(value: Any, name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Field '{name}' must be a number, got: {value!r}")
    return value
