"""Core exceptions: document, store, lock, and queue errors."""

from typing import List, Optional


class TickError(Exception):
    """Base exception for tick operations.

    Carries optional recovery suggestions for the presentation layer.
    """

    def __init__(self, message: str, suggestions: Optional[List[str]] = None):
        self.message = message
        self.suggestions = list(suggestions or [])
        super().__init__(message)


class ParseError(TickError):
    """Raised when a document cannot be parsed.

    Attributes:
        region: The first unparseable region (e.g. "frontmatter", "task TASK-003").
        problems: Every problem found, one message per region.
        recoverable: True when the lenient parse replaced the bad value with a
            default, so rewriting the returned model loses nothing else.
    """

    def __init__(
        self,
        message: str,
        region: str = "",
        problems: Optional[List[str]] = None,
        task_id: str = "",
        recoverable: bool = False,
    ):
        self.region = region
        self.task_id = task_id
        self.problems = list(problems or [message])
        self.recoverable = recoverable
        super().__init__(message)


class NotFoundError(TickError):
    """Raised when the document has not been initialized."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"{path} not found",
            [
                "Initialize a new project: 'tick init'",
                "Or run from a directory that contains TICK.md",
            ],
        )


class TaskNotFoundError(TickError):
    """Raised when an operation references a task that does not exist."""

    def __init__(self, task_id: str, similar: Optional[List[str]] = None):
        self.task_id = task_id
        self.similar = list(similar or [])
        suggestions = []
        if self.similar:
            suggestions.append(f"Did you mean: {', '.join(self.similar)}?")
        suggestions.append("Run 'tick status' to see available tasks")
        super().__init__(f"Task not found: {task_id}", suggestions)


class ConcurrentModificationError(TickError):
    """Raised when the target file changed after it was read."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Concurrent modification detected: {path} changed since it was read. "
            "Re-read the file and retry the operation.",
            ["Run the command again; it will re-read the latest state"],
        )


class SymlinkWriteError(TickError):
    """Raised when a write would go through a symbolic link."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Refusing to write through symlinked {path}",
            ["Set store.allow_symlink_writes: true in .tick/config.yml to allow it"],
        )


class LockError(TickError):
    """Base exception for advisory lock protocol violations."""

    pass


class AlreadyLockedError(LockError):
    """Raised when acquiring a lock that another agent holds."""

    def __init__(self, task_id: str, holder: str, pid: Optional[int] = None):
        self.task_id = task_id
        self.holder = holder
        self.pid = pid
        detail = f" (PID {pid})" if pid else ""
        super().__init__(
            f"Task {task_id} is already locked by {holder}{detail}",
            [
                f"Ask {holder} to release it: 'tick release {task_id} {holder}'",
                "Stale locks can be removed with 'tick locks cleanup'",
            ],
        )


class NotLockedError(LockError):
    """Raised when releasing a task that has no lock."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} is not locked")


class WrongHolderError(LockError):
    """Raised when releasing a lock held by a different agent."""

    def __init__(self, task_id: str, holder: str, agent: str):
        self.task_id = task_id
        self.holder = holder
        self.agent = agent
        super().__init__(f"Task {task_id} is locked by {holder}, not {agent}")


class InvalidTransitionError(TickError):
    """Raised when an action is not allowed from the task's current status."""

    HINTS = {
        ("done", "claim"): "Task is already done. Use 'tick reopen {id} @agent' to reopen it first",
        ("done", "in_progress"): "Task is completed. Use 'tick reopen {id} @agent' to work on it again",
        ("done", "edit"): "Task is completed. Use 'tick reopen {id} @agent' to change it",
    }

    def __init__(self, task_id: str, status: str, action: str, detail: str = ""):
        self.task_id = task_id
        self.status = status
        self.action = action
        hint = self.HINTS.get((status, action))
        if hint:
            suggestions = [hint.format(id=task_id)]
        else:
            suggestions = [
                f"Current status is '{status}'. Use 'tick edit {task_id} @agent --status <status>' to change it"
            ]
        message = f"Cannot {action} task {task_id} (status: {status})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, suggestions)


class CircularDependencyError(TickError):
    """Raised when an edit would introduce a dependency cycle."""

    def __init__(self, task_id: str, cycle: List[str]):
        self.task_id = task_id
        self.cycle = list(cycle)
        super().__init__(
            f"Circular dependency detected: {' → '.join(self.cycle)}",
            [
                "Remove one dependency to break the cycle",
                f"Use 'tick edit {task_id} @agent --depends-on \"\"' to clear dependencies",
            ],
        )


class QueueIOError(TickError):
    """Raised when the notification queue file cannot be read or written."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Notification queue I/O failed for {path}: {reason}")


class BackupNotFoundError(TickError):
    """Raised when a backup identifier matches no backup."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(
            f"Backup not found: {identifier}",
            ["Run 'tick backup list' to see available backups (0 is the most recent)"],
        )
