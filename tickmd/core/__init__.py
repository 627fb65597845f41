"""Core package: domain model, exceptions, and naming helpers."""

from tickmd.core.models import (
    Agent,
    Deliverable,
    HistoryAction,
    HistoryEntry,
    ProjectMeta,
    Task,
    TickFile,
    VALID_PRIORITIES,
    VALID_STATUSES,
)
from tickmd.core.exceptions import (
    AlreadyLockedError,
    CircularDependencyError,
    ConcurrentModificationError,
    InvalidTransitionError,
    LockError,
    NotFoundError,
    NotLockedError,
    ParseError,
    QueueIOError,
    SymlinkWriteError,
    TaskNotFoundError,
    TickError,
    WrongHolderError,
)
from tickmd.core.naming import (
    format_task_id,
    format_timestamp,
    now_iso,
    parse_timestamp,
)

__all__ = [
    "Agent",
    "Deliverable",
    "HistoryAction",
    "HistoryEntry",
    "ProjectMeta",
    "Task",
    "TickFile",
    "VALID_PRIORITIES",
    "VALID_STATUSES",
    "AlreadyLockedError",
    "CircularDependencyError",
    "ConcurrentModificationError",
    "InvalidTransitionError",
    "LockError",
    "NotFoundError",
    "NotLockedError",
    "ParseError",
    "QueueIOError",
    "SymlinkWriteError",
    "TaskNotFoundError",
    "TickError",
    "WrongHolderError",
    "format_task_id",
    "format_timestamp",
    "now_iso",
    "parse_timestamp",
]
