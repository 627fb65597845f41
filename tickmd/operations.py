"""
Command operations over a TICK.md project.

Every mutating operation follows the same protocol:

1. Read the document with its fingerprint.
2. Mutate the in-memory model (one history entry per mutated task).
3. Consult or update the advisory lock table where the operation needs it.
4. Write back with the captured fingerprint. A concurrent writer makes the
   write fail with ConcurrentModificationError and the caller re-runs the
   operation.
5. Queue notifications and auto-commit. Neither can fail the mutation.

Every operation takes the acting agent explicitly; identity is never
inferred from the environment.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar, Union

from tickmd.archive_file import ArchivedTask, append_to_archive, parse_archive, parse_cutoff
from tickmd.constants import (
    DEFAULT_ARCHIVE_STATUS,
    DEFAULT_ID_PREFIX,
    DEFAULT_MAX_HISTORY,
    MILESTONE_ACTIONS,
)
from tickmd.config import TickConfig, load_config, write_default_config
from tickmd.core.exceptions import (
    AlreadyLockedError,
    CircularDependencyError,
    InvalidTransitionError,
    LockError,
    NotFoundError,
    TaskNotFoundError,
    TickError,
    WrongHolderError,
)
from tickmd.core.models import (
    Agent,
    HistoryAction,
    Task,
    TickFile,
    VALID_AGENT_TYPES,
    VALID_TRUST_LEVELS,
    _normalize_choice,
    normalize_priority,
    normalize_status,
)
from tickmd.core.naming import find_similar_ids, format_task_id, now_iso, parse_timestamp
from tickmd.notify import Notifier, NotifyConfig
from tickmd.repair import RepairReport, repair_tick_file
from tickmd.runtime_git import GitSync
from tickmd.store.backup_store import BackupInfo, BackupStore
from tickmd.store.lock_store import LockManager
from tickmd.store.repository import AtomicStore
from tickmd.store.retry_queue import RetryQueue
from tickmd.support.paths import ProjectPaths
from tickmd.tick_file import create_tick_file, parse_tick_file
from tickmd.validation import ValidationResult, find_dependency_cycle, validate_tick_file

logger = logging.getLogger(__name__)

T = TypeVar("T")

REOPEN_STATUSES = ("backlog", "todo", "in_progress", "reopened")


class TickProject:
    """Operations on one project directory (TICK.md plus .tick/)."""

    def __init__(
        self,
        root: Union[str, Path],
        config: Optional[TickConfig] = None,
        store: Optional[AtomicStore] = None,
        git: Optional[GitSync] = None,
        notifier: Optional[Notifier] = None,
        auto_commit: Optional[bool] = None,
    ):
        """
        Initialize the project.

        Args:
            root: Directory holding TICK.md.
            config: Configuration (loaded from .tick/config.yml if omitted).
            store: Document store (built from config if omitted).
            git: Git sync helper (built from config if omitted).
            notifier: Notification dispatcher (built from .tick/notify.json
                if omitted).
            auto_commit: Force auto-commit on or off. None follows
                git.auto_commit and suppresses commits in batch mode.
        """
        self.paths = ProjectPaths(root)
        self.config = config or load_config(self.paths.config_file)
        self.store = store or AtomicStore(
            allow_symlink_writes=self.config.store.allow_symlink_writes
        )
        self.locks = LockManager(self.paths.lock_file)
        self.git = git or GitSync(self.paths.root, commit_prefix=self.config.git.commit_prefix)
        self.notifier = notifier or Notifier(
            RetryQueue(self.paths.queue_file),
            NotifyConfig.load(self.paths.notify_config_file),
        )
        self.auto_commit = auto_commit
        self.backups = BackupStore(self.paths.backup_dir)
        self.last_backup: Optional[BackupInfo] = None

    # ------------------------------------------------------------------
    # Protocol helpers
    # ------------------------------------------------------------------

    def read(self) -> TickFile:
        return self.store.read(self.paths.tick_file)

    def _apply(self, mutate: Callable[[TickFile], T], backup: bool = False) -> T:
        """Read, mutate, and write back under the fingerprint guard.

        With backup, the current document is copied to .tick/backup/ once
        the mutation has succeeded and before it is written.
        """
        tick_file, fingerprint = self.store.read_with_fingerprint(self.paths.tick_file)
        result = mutate(tick_file)
        if backup:
            self._backup()
        self.store.write_if_unchanged(self.paths.tick_file, tick_file, fingerprint)
        return result

    def _backup(self) -> BackupInfo:
        self.last_backup = self.backups.create(self.paths.tick_file)
        return self.last_backup

    def _after_write(self, event: str, message: str, commit_message: str, now: str) -> None:
        """Queue notifications and auto-commit; failures are logged only."""
        try:
            self.notifier.dispatch(event, message, now=now)
        except Exception as e:
            logger.warning(f"Could not queue {event} notification: {e}")
        if self.should_auto_commit():
            self.git.auto_commit(commit_message)

    def should_auto_commit(self) -> bool:
        if self.auto_commit is not None:
            return self.auto_commit
        if self.paths.batch_marker.exists():
            return False
        return self.config.git.auto_commit

    def _check_actor(self, tick_file: TickFile, actor: str) -> Optional[Agent]:
        """Return the actor's agent record, enforcing registration if configured."""
        if not actor or not actor.strip():
            raise ValueError("An acting agent is required")
        agent = tick_file.find_agent(actor)
        if agent is None and self.config.agents.require_registration:
            raise TickError(
                f"Agent {actor} is not registered",
                [f"Register it first: 'tick agent register {actor}'"],
            )
        return agent

    def _release_lock_quietly(self, task_id: str, holder: str) -> None:
        if not self.config.locking.enabled:
            return
        try:
            self.locks.release(task_id, holder)
        except LockError as e:
            logger.warning(f"Lock drift on {task_id}: {e.message}")

    def _check_references(self, tick_file: TickFile, task_ids: List[str]) -> None:
        all_ids = [t.id for t in tick_file.tasks]
        for ref in task_ids:
            if ref not in all_ids:
                raise TaskNotFoundError(ref, find_similar_ids(ref, all_ids))

    # ------------------------------------------------------------------
    # Project lifecycle
    # ------------------------------------------------------------------

    def init(
        self,
        project: Optional[str] = None,
        id_prefix: str = DEFAULT_ID_PREFIX,
        title: Optional[str] = None,
        force: bool = False,
        now: Optional[str] = None,
    ) -> TickFile:
        """
        Create TICK.md and the .tick/ directory.

        Args:
            project: Project name (defaults to the directory name).
            id_prefix: Prefix for task IDs.
            title: Optional human-readable title.
            force: Overwrite an existing TICK.md.
            now: Creation timestamp.

        Returns:
            The new document model.

        Raises:
            FileExistsError: If TICK.md exists and force is False.
        """
        now = now or now_iso()
        tick_file = create_tick_file(project or self.paths.root.name, now, id_prefix, title)
        self.store.create(self.paths.tick_file, tick_file, force=force)

        self.paths.ensure_tick_dir()
        if not self.paths.config_file.exists():
            write_default_config(self.paths.config_file)

        logger.info(f"Initialized {tick_file.meta.project} at {self.paths.tick_file}")
        if self.should_auto_commit():
            self.git.auto_commit("Initialize project")
        return tick_file

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def add_task(
        self,
        title: str,
        actor: str,
        priority: str = "medium",
        tags: Optional[List[str]] = None,
        assigned_to: Optional[str] = None,
        depends_on: Optional[List[str]] = None,
        blocks: Optional[List[str]] = None,
        description: str = "",
        estimated_hours: Optional[float] = None,
        due_date: Optional[str] = None,
        detail_file: Optional[str] = None,
        now: Optional[str] = None,
    ) -> Task:
        """
        Create a task in backlog with a single `created` history entry.

        The ID is minted from next_id, which is then incremented; IDs are
        never reused, even after deletion.

        Raises:
            ValueError: If the title is empty or multi-line, or priority is invalid.
            TaskNotFoundError: If a dependency or blocked task does not exist.
        """
        title = (title or "").strip()
        if not title:
            raise ValueError("Task title cannot be empty")
        if "\n" in title:
            raise ValueError("Task title must be a single line")
        priority = normalize_priority(priority)
        now = now or now_iso()

        def mutate(tick_file: TickFile) -> Task:
            self._check_actor(tick_file, actor)
            self._check_references(tick_file, list(depends_on or []) + list(blocks or []))

            task = Task(
                id=format_task_id(tick_file.meta.id_prefix, tick_file.meta.next_id),
                title=title,
                priority=priority,
                assigned_to=assigned_to or None,
                created_by=actor,
                created_at=now,
                updated_at=now,
                due_date=due_date or None,
                tags=list(tags or []),
                depends_on=list(depends_on or []),
                blocks=list(blocks or []),
                estimated_hours=estimated_hours,
                detail_file=detail_file or None,
                description=(description or "").strip(),
            )
            task.record(HistoryAction.CREATED, actor, now)
            tick_file.tasks.append(task)
            tick_file.meta.next_id += 1
            tick_file.touch(now)
            return task

        task = self._apply(mutate)
        logger.info(f"Created {task.id}: {task.title}")
        self._after_write("task.created", f"{task.id} created by {actor}: {task.title}", f"{task.id}: created", now)
        return task

    def claim(self, task_id: str, actor: str, now: Optional[str] = None) -> Task:
        """
        Claim a task: take its lock, set claimed_by, and start work.

        backlog/todo tasks move to in_progress. If the document write fails
        the lock is released again.

        Raises:
            TaskNotFoundError: If the task does not exist.
            AlreadyLockedError: If the task is claimed or locked by anyone.
            InvalidTransitionError: If the task is done.
            ConcurrentModificationError: If TICK.md changed during the claim.
        """
        now = now or now_iso()
        tick_file, fingerprint = self.store.read_with_fingerprint(self.paths.tick_file)
        agent = self._check_actor(tick_file, actor)
        task = tick_file.get_task(task_id)

        if task.claimed_by:
            raise AlreadyLockedError(task_id, task.claimed_by)
        if task.status == "done":
            raise InvalidTransitionError(task_id, task.status, "claim")

        if self.config.locking.enabled:
            self.locks.acquire(task_id, actor, now=now)

        try:
            previous = task.status
            if task.status in ("backlog", "todo"):
                task.status = "in_progress"
            task.claimed_by = actor
            changed = previous != task.status
            task.record(
                HistoryAction.CLAIMED,
                actor,
                now,
                from_status=previous if changed else None,
                to_status=task.status if changed else None,
            )
            if agent is not None:
                agent.mark_working(task_id, now)
            tick_file.touch(now)
            self.store.write_if_unchanged(self.paths.tick_file, tick_file, fingerprint)
        except Exception:
            self._release_lock_quietly(task_id, actor)
            raise

        logger.info(f"{task_id} claimed by {actor}")
        self._after_write("task.claimed", f"{task_id} claimed by {actor}: {task.title}", f"{task_id} claimed by {actor}", now)
        return task

    def release(self, task_id: str, actor: str, now: Optional[str] = None) -> Task:
        """
        Give up a claim. in_progress tasks go back to todo.

        Raises:
            TaskNotFoundError: If the task does not exist.
            InvalidTransitionError: If the task is not claimed.
            WrongHolderError: If another agent holds the claim.
        """
        now = now or now_iso()

        def mutate(tick_file: TickFile) -> Task:
            agent = self._check_actor(tick_file, actor)
            task = tick_file.get_task(task_id)
            if not task.claimed_by:
                raise InvalidTransitionError(task_id, task.status, "release", "task is not claimed")
            if task.claimed_by != actor:
                raise WrongHolderError(task_id, task.claimed_by, actor)

            previous = task.status
            if task.status == "in_progress":
                task.status = "todo"
            task.claimed_by = None
            changed = previous != task.status
            task.record(
                HistoryAction.RELEASED,
                actor,
                now,
                from_status=previous if changed else None,
                to_status=task.status if changed else None,
            )
            if agent is not None:
                agent.mark_idle(now)
            tick_file.touch(now)
            return task

        task = self._apply(mutate)
        self._release_lock_quietly(task_id, actor)
        logger.info(f"{task_id} released by {actor}")
        self._after_write("task.released", f"{task_id} released by {actor}: {task.title}", f"{task_id} released by {actor}", now)
        return task

    def complete(
        self, task_id: str, actor: str, now: Optional[str] = None
    ) -> Tuple[Task, List[Task]]:
        """
        Mark a task done, clear its claim, and unblock dependents.

        Completing a done task is a no-op. Dependents in `blocked` whose
        dependencies are now all done move to `todo`.

        Returns:
            Tuple of (completed task, dependents this completion moved to todo).

        Raises:
            TaskNotFoundError: If the task does not exist.
        """
        now = now or now_iso()
        tick_file = self.read()
        task = tick_file.get_task(task_id)
        if task.status == "done":
            logger.info(f"{task_id} is already done")
            return task, []

        claimants: List[str] = []

        def mutate(tick_file: TickFile) -> Tuple[Task, List[Task]]:
            agent = self._check_actor(tick_file, actor)
            task = tick_file.get_task(task_id)
            if task.status == "done":
                return task, []
            if task.claimed_by and task.claimed_by != actor:
                logger.warning(f"{task_id} is claimed by {task.claimed_by}; completing as {actor}")

            previous = task.status
            claimant = task.claimed_by
            task.status = "done"
            task.claimed_by = None
            task.record(HistoryAction.COMPLETED, actor, now, from_status=previous, to_status="done")

            if claimant:
                claimants.append(claimant)
                claimant_agent = tick_file.find_agent(claimant)
                if claimant_agent is not None and claimant_agent.working_on == task_id:
                    claimant_agent.mark_idle(now)
            if agent is not None:
                agent.last_active = now

            unblocked = _unblock_dependents(tick_file, task_id, actor, now)
            tick_file.touch(now)
            return task, unblocked

        task, unblocked = self._apply(mutate)
        for claimant in claimants:
            self._release_lock_quietly(task_id, claimant)

        logger.info(f"{task_id} completed by {actor}")
        self._after_write("task.done", f"{task_id} completed by {actor}: {task.title}", f"{task_id}: done", now)
        return task, unblocked

    def comment(self, task_id: str, actor: str, note: str, now: Optional[str] = None) -> Task:
        """
        Append a `commented` history entry.

        Raises:
            ValueError: If the note is empty.
            TaskNotFoundError: If the task does not exist.
        """
        note = (note or "").strip()
        if not note:
            raise ValueError("Comment cannot be empty")
        now = now or now_iso()

        def mutate(tick_file: TickFile) -> Task:
            agent = self._check_actor(tick_file, actor)
            task = tick_file.get_task(task_id)
            task.record(HistoryAction.COMMENTED, actor, now, note=note)
            if agent is not None:
                agent.last_active = now
            tick_file.touch(now)
            return task

        task = self._apply(mutate)
        self._after_write("task.commented", f"{actor} on {task_id}: {note}", f"{task_id}: comment by {actor}", now)
        return task

    def reopen(
        self,
        task_id: str,
        actor: str,
        status: str = "reopened",
        note: Optional[str] = None,
        now: Optional[str] = None,
    ) -> Task:
        """
        Reopen a done task and re-block its unfinished dependents.

        Args:
            status: Target status, one of backlog, todo, in_progress, reopened.

        Raises:
            ValueError: If the target status is not allowed.
            InvalidTransitionError: If the task is not done.
        """
        target = normalize_status(status)
        if target not in REOPEN_STATUSES:
            raise ValueError(
                f"Cannot reopen to '{target}'. Must be one of: {', '.join(REOPEN_STATUSES)}"
            )
        now = now or now_iso()

        def mutate(tick_file: TickFile) -> Task:
            self._check_actor(tick_file, actor)
            task = tick_file.get_task(task_id)
            if task.status != "done":
                raise InvalidTransitionError(
                    task_id, task.status, "reopen", "only done tasks can be reopened"
                )
            task.status = target
            task.record(HistoryAction.REOPENED, actor, now, note=note, from_status="done", to_status=target)

            for dependent in tick_file.dependents_of(task_id):
                if dependent.status in ("done", "blocked"):
                    continue
                previous = dependent.status
                dependent.status = "blocked"
                dependent.record(
                    HistoryAction.BLOCKED,
                    actor,
                    now,
                    note=f"Dependency {task_id} was reopened",
                    from_status=previous,
                    to_status="blocked",
                )
            tick_file.touch(now)
            return task

        task = self._apply(mutate)
        logger.info(f"{task_id} reopened by {actor} as {target}")
        self._after_write("task.reopened", f"{task_id} reopened by {actor}: {task.title}", f"{task_id}: reopened", now)
        return task

    def edit(
        self,
        task_id: str,
        actor: str,
        title: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        assigned_to: Optional[str] = None,
        tags: Optional[List[str]] = None,
        depends_on: Optional[List[str]] = None,
        blocks: Optional[List[str]] = None,
        description: Optional[str] = None,
        estimated_hours: Optional[float] = None,
        actual_hours: Optional[float] = None,
        due_date: Optional[str] = None,
        now: Optional[str] = None,
    ) -> Task:
        """
        Change task fields, recording one `edited` entry listing the changes.

        Arguments left as None are unchanged; an empty string or list
        clears the field. Setting status to done clears the claim.

        Raises:
            ValueError: If nothing changes or a value is invalid.
            TaskNotFoundError: If the task or a referenced task does not exist.
            CircularDependencyError: If new dependencies would form a cycle.
        """
        now = now or now_iso()
        new_status = normalize_status(status) if status is not None else None
        new_priority = normalize_priority(priority) if priority is not None else None
        if title is not None:
            title = title.strip()
            if not title or "\n" in title:
                raise ValueError("Task title must be a single non-empty line")
        released: List[str] = []

        def mutate(tick_file: TickFile) -> Tuple[Task, List[str]]:
            self._check_actor(tick_file, actor)
            task = tick_file.get_task(task_id)
            changes: List[str] = []

            if depends_on is not None:
                if task_id in depends_on:
                    raise ValueError(f"Task {task_id} cannot depend on itself")
                self._check_references(tick_file, depends_on)
                cycle = find_dependency_cycle(tick_file.tasks, task_id, depends_on)
                if cycle:
                    raise CircularDependencyError(task_id, cycle)
            if blocks is not None:
                if task_id in blocks:
                    raise ValueError(f"Task {task_id} cannot block itself")
                self._check_references(tick_file, blocks)

            def change(name: str, old: Any, new: Any) -> bool:
                if old == new:
                    return False
                changes.append(f"{name}: {_describe(old)} → {_describe(new)}")
                return True

            if title is not None and change("title", task.title, title):
                task.title = title
            previous_status = task.status
            if new_status is not None and change("status", task.status, new_status):
                task.status = new_status
                if new_status == "done" and task.claimed_by:
                    released.append(task.claimed_by)
                    task.claimed_by = None
            if new_priority is not None and change("priority", task.priority, new_priority):
                task.priority = new_priority
            if assigned_to is not None and change("assigned_to", task.assigned_to, assigned_to or None):
                task.assigned_to = assigned_to or None
            if tags is not None and change("tags", task.tags, list(tags)):
                task.tags = list(tags)
            if depends_on is not None and change("depends_on", task.depends_on, list(depends_on)):
                task.depends_on = list(depends_on)
            if blocks is not None and change("blocks", task.blocks, list(blocks)):
                task.blocks = list(blocks)
            if description is not None and change("description", task.description, description.strip()):
                task.description = description.strip()
            if estimated_hours is not None and change("estimated_hours", task.estimated_hours, estimated_hours):
                task.estimated_hours = estimated_hours
            if actual_hours is not None and change("actual_hours", task.actual_hours, actual_hours):
                task.actual_hours = actual_hours
            if due_date is not None and change("due_date", task.due_date, due_date or None):
                task.due_date = due_date or None

            if not changes:
                raise ValueError(f"No changes specified for {task_id}")

            status_changed = previous_status != task.status
            task.record(
                HistoryAction.EDITED,
                actor,
                now,
                note="; ".join(changes),
                from_status=previous_status if status_changed else None,
                to_status=task.status if status_changed else None,
            )
            if task.status == "done":
                _unblock_dependents(tick_file, task_id, actor, now)
            tick_file.touch(now)
            return task, changes

        task, changes = self._apply(mutate)
        for holder in released:
            self._release_lock_quietly(task_id, holder)

        logger.info(f"{task_id} edited by {actor}: {'; '.join(changes)}")
        self._after_write("task.edited", f"{task_id} edited by {actor}: {'; '.join(changes)}", f"{task_id}: edited", now)
        return task

    def delete(self, task_id: str, actor: str, force: bool = False, now: Optional[str] = None) -> Task:
        """
        Remove a task and strip references to it.

        Tasks that depended on it get an `updated` entry; blocked dependents
        left with no dependencies move to todo. next_id is not changed.

        Args:
            force: Delete even if the task is in progress, claimed, or
                depended on.

        Raises:
            InvalidTransitionError: Without force, if the task is in progress
                or claimed.
            TickError: Without force, if other tasks depend on it.
        """
        now = now or now_iso()
        holders: List[str] = []

        def mutate(tick_file: TickFile) -> Task:
            self._check_actor(tick_file, actor)
            task = tick_file.get_task(task_id)
            dependents = tick_file.dependents_of(task_id)

            if not force:
                if task.status == "in_progress":
                    raise InvalidTransitionError(
                        task_id, task.status, "delete", "task is in progress; use force to delete anyway"
                    )
                if task.claimed_by:
                    raise InvalidTransitionError(
                        task_id, task.status, "delete",
                        f"task is claimed by {task.claimed_by}; use force to delete anyway",
                    )
                if dependents:
                    raise TickError(
                        f"Cannot delete {task_id}: depended on by {', '.join(t.id for t in dependents)}",
                        [f"Use 'tick delete {task_id} {actor} --force' to delete and remove the references"],
                    )

            if task.claimed_by:
                holders.append(task.claimed_by)
            tick_file.tasks.remove(task)

            for other in tick_file.tasks:
                removed_dep = task_id in other.depends_on
                removed_block = task_id in other.blocks
                if not (removed_dep or removed_block):
                    continue
                other.depends_on = [d for d in other.depends_on if d != task_id]
                other.blocks = [b for b in other.blocks if b != task_id]
                note = (
                    f"Removed deleted dependency: {task_id}"
                    if removed_dep
                    else f"Removed deleted blocked task: {task_id}"
                )
                other.record(HistoryAction.UPDATED, actor, now, note=note)
                if removed_dep and not other.depends_on and other.status == "blocked":
                    other.status = "todo"
                    other.record(
                        HistoryAction.UNBLOCKED,
                        actor,
                        now,
                        note=f"Dependency {task_id} was deleted",
                        from_status="blocked",
                        to_status="todo",
                    )

            for agent in tick_file.agents:
                if agent.working_on == task_id:
                    agent.mark_idle(now)
            tick_file.touch(now)
            return task

        task = self._apply(mutate, backup=True)
        for holder in holders:
            self._release_lock_quietly(task_id, holder)

        logger.info(f"{task_id} deleted by {actor}")
        self._after_write("task.deleted", f"{task_id} deleted by {actor}: {task.title}", f"{task_id}: deleted", now)
        return task

    def compact_history(
        self,
        actor: str,
        max_entries: int = DEFAULT_MAX_HISTORY,
        milestones_only: bool = False,
        task_id: Optional[str] = None,
        dry_run: bool = False,
        backup: bool = True,
        now: Optional[str] = None,
    ) -> Dict[str, int]:
        """
        Trim task history, always keeping the original `created` entry.

        Args:
            actor: Agent running the compaction.
            max_entries: Maximum entries kept per task.
            milestones_only: Keep only created/completed/reopened/blocked.
            task_id: Compact one task instead of all.
            dry_run: Report without writing.
            backup: Copy TICK.md to .tick/backup/ before writing.

        Returns:
            Mapping of task ID to number of entries removed (tasks with
            nothing removed are omitted).
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        now = now or now_iso()

        def compact(tick_file: TickFile) -> Dict[str, int]:
            self._check_actor(tick_file, actor)
            tasks = [tick_file.get_task(task_id)] if task_id else tick_file.tasks
            removed: Dict[str, int] = {}
            for task in tasks:
                kept = _compacted_history(task, max_entries, milestones_only)
                if len(kept) < len(task.history):
                    removed[task.id] = len(task.history) - len(kept)
                    task.history = kept
            if removed:
                tick_file.touch(now)
            return removed

        if dry_run:
            return compact(self.read())

        tick_file, fingerprint = self.store.read_with_fingerprint(self.paths.tick_file)
        removed = compact(tick_file)
        if removed:
            if backup:
                self._backup()
            self.store.write_if_unchanged(self.paths.tick_file, tick_file, fingerprint)
            total = sum(removed.values())
            logger.info(f"Compacted {total} history entries from {len(removed)} task(s)")
            if self.should_auto_commit():
                self.git.auto_commit(f"Compact history ({total} entries)")
        return removed

    # ------------------------------------------------------------------
    # Backups, undo, archive, repair
    # ------------------------------------------------------------------

    def backup_create(self, now: Optional[str] = None) -> BackupInfo:
        """Copy the current TICK.md into .tick/backup/."""
        backup = self.backups.create(self.paths.tick_file, now=now)
        logger.info(f"Created backup {backup.filename}")
        return backup

    def list_backups(self) -> List[BackupInfo]:
        return self.backups.list_backups()

    def clean_backups(self, keep: int) -> int:
        return self.backups.clean(keep)

    def restore_backup(self, identifier: Union[int, str], now: Optional[str] = None) -> BackupInfo:
        """
        Replace TICK.md with a backup, verbatim.

        The current document is backed up first, so a restore can itself be
        restored.

        Args:
            identifier: Backup index (0 is the newest) or timestamp prefix.

        Returns:
            The restored backup.

        Raises:
            BackupNotFoundError: If no backup matches.
            ParseError: If the backup is not a valid document.
            ConcurrentModificationError: If TICK.md changed during the restore.
        """
        now = now or now_iso()
        backup = self.backups.get(identifier)
        content = self.backups.read(backup)
        parse_tick_file(content)

        fingerprint = self.store.fingerprint(self.paths.tick_file)
        if fingerprint is not None:
            self._backup()
        self.store.write_text_if_unchanged(self.paths.tick_file, content, fingerprint)

        logger.info(f"Restored {self.paths.tick_file} from {backup.filename}")
        self._after_write(
            "project.restored",
            f"TICK.md restored from backup {backup.timestamp}",
            f"Restore backup {backup.timestamp}",
            now,
        )
        return backup

    def undo(self, force: bool = False, dry_run: bool = False) -> str:
        """
        Revert the last commit if it was a tick auto-commit.

        Args:
            force: Revert even if HEAD was not made by tick.
            dry_run: Only report the commit that would be reverted.

        Returns:
            Message of the reverted (or, with dry_run, revertible) commit.

        Raises:
            RepoNotFoundError: Outside a git repository.
            TickError: If there is nothing to undo, HEAD is not a tick commit,
                or project files have uncommitted changes.
            GitSyncError: If the revert fails.
        """
        self.git.ensure_repo()
        message = self.git.last_commit_message()
        if message is None:
            raise TickError("No commits found", ["Nothing to undo"])
        if not force and not message.startswith(self.config.git.commit_prefix):
            raise TickError(
                f"Last commit was not made by tick: {message}",
                [
                    "Use 'tick undo --force' to revert it anyway",
                    "Or restore a backup: 'tick backup list'",
                ],
            )
        if dry_run:
            return message

        changed = self.git.changed_paths()
        if changed:
            raise TickError(
                f"Uncommitted changes in {', '.join(changed)}",
                ["Commit them with 'tick sync' or discard them before undoing"],
            )
        commit_hash = self.git.revert_head()
        self.store.cache.invalidate()
        logger.info(f"Reverted '{message}' with {commit_hash}")
        return message

    def archive(
        self,
        actor: str,
        status: str = DEFAULT_ARCHIVE_STATUS,
        before: Optional[str] = None,
        dry_run: bool = False,
        now: Optional[str] = None,
    ) -> List[Task]:
        """
        Move tasks out of TICK.md into ARCHIVE.md.

        ARCHIVE.md is written first; if TICK.md then fails to write, the
        archive is put back. References to archived tasks are stripped from
        the remaining tasks with an `updated` entry each.

        Args:
            actor: Agent running the archive.
            status: Status of tasks to archive.
            before: Only archive tasks last updated before this date or age
                (e.g. "2026-01-01", "30d").
            dry_run: Report without writing.

        Returns:
            Archived (or, with dry_run, archivable) tasks.

        Raises:
            ValueError: If status or before is invalid.
            ConcurrentModificationError: If either file changed during the run.
        """
        status = normalize_status(status)
        now = now or now_iso()
        cutoff = parse_cutoff(before, now) if before else None

        def select(tick_file: TickFile) -> List[Task]:
            self._check_actor(tick_file, actor)
            selected = [
                t for t in tick_file.tasks
                if t.status == status and (cutoff is None or _updated_before(t, cutoff))
            ]
            ids = {t.id for t in selected}
            if not ids:
                return selected

            tick_file.tasks = [t for t in tick_file.tasks if t.id not in ids]
            for other in tick_file.tasks:
                gone = [ref for ref in other.depends_on + other.blocks if ref in ids]
                if not gone:
                    continue
                other.depends_on = [d for d in other.depends_on if d not in ids]
                other.blocks = [b for b in other.blocks if b not in ids]
                other.record(
                    HistoryAction.UPDATED,
                    actor,
                    now,
                    note=f"Removed archived dependency: {', '.join(sorted(set(gone)))}",
                )
            tick_file.touch(now)
            return selected

        if dry_run:
            return select(self.read())

        tick_file, fingerprint = self.store.read_with_fingerprint(self.paths.tick_file)
        archived = select(tick_file)
        if not archived:
            return archived

        archive_path = self.paths.archive_file
        previous, archive_fingerprint = self.store.read_text_with_fingerprint(archive_path)
        content = append_to_archive(previous, tick_file.meta.project, archived, now)
        self.store.write_text_if_unchanged(archive_path, content, archive_fingerprint)
        try:
            self._backup()
            self.store.write_if_unchanged(self.paths.tick_file, tick_file, fingerprint)
        except Exception:
            if previous is None:
                archive_path.unlink()
            else:
                self.store.write_text_if_unchanged(archive_path, previous)
            raise

        ids = ", ".join(t.id for t in archived)
        logger.info(f"Archived {len(archived)} task(s): {ids}")
        self._after_write(
            "tasks.archived",
            f"{len(archived)} task(s) archived by {actor}: {ids}",
            f"Archive {len(archived)} tasks",
            now,
        )
        return archived

    def list_archive(self) -> List[ArchivedTask]:
        content, _ = self.store.read_text_with_fingerprint(self.paths.archive_file)
        return parse_archive(content) if content is not None else []

    def repair(self, dry_run: bool = False, now: Optional[str] = None) -> RepairReport:
        """
        Fix what can be fixed mechanically in TICK.md.

        Nothing is written when a problem would lose data on rewrite
        (see RepairReport.blocking); those must be fixed by hand first.

        Args:
            dry_run: Report without writing.

        Returns:
            The repair report.

        Raises:
            NotFoundError: If TICK.md does not exist.
            ConcurrentModificationError: If TICK.md changed during the repair.
        """
        now = now or now_iso()
        content, fingerprint = self.store.read_text_with_fingerprint(self.paths.tick_file)
        if content is None:
            raise NotFoundError(str(self.paths.tick_file))

        tick_file, report = repair_tick_file(content, now)
        if dry_run or not report.can_write:
            return report

        self._backup()
        self.store.write_if_unchanged(self.paths.tick_file, tick_file, fingerprint)
        logger.info(f"Repaired {self.paths.tick_file}: {len(report.fixed)} fix(es)")
        self._after_write(
            "project.repaired",
            f"TICK.md repaired ({len(report.fixed)} fixes)",
            f"Repair TICK.md ({len(report.fixed)} fixes)",
            now,
        )
        return report

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    def register_agent(
        self,
        name: str,
        actor: str,
        agent_type: str = "human",
        roles: Optional[List[str]] = None,
        trust_level: Optional[str] = None,
        now: Optional[str] = None,
    ) -> Agent:
        """
        Add an agent to the roster.

        Raises:
            ValueError: If the name or a field value is invalid.
            TickError: If the agent is already registered.
        """
        name = (name or "").strip()
        if not name or "|" in name or any(c.isspace() for c in name):
            raise ValueError(f"Invalid agent name '{name}': must be non-empty without spaces or '|'")
        if not actor or not actor.strip():
            raise ValueError("An acting agent is required")
        now = now or now_iso()
        agent = Agent(
            name=name,
            type=_normalize_choice(agent_type, VALID_AGENT_TYPES, "agent type"),
            roles=[r.strip() for r in (roles or ["developer"]) if r.strip()],
            status="idle",
            last_active=now,
            trust_level=_normalize_choice(
                trust_level or self.config.agents.default_trust, VALID_TRUST_LEVELS, "trust level"
            ),
        )
        agent.validate()

        def mutate(tick_file: TickFile) -> Agent:
            if tick_file.find_agent(name) is not None:
                raise TickError(f"Agent {name} is already registered", ["Run 'tick agent list' to see agents"])
            tick_file.agents.append(agent)
            tick_file.touch(now)
            return agent

        agent = self._apply(mutate)
        logger.info(f"Registered agent {name} ({agent.type})")
        self._after_write("agent.registered", f"{name} registered by {actor}", f"Register agent {name}", now)
        return agent

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def validate(self) -> ValidationResult:
        return validate_tick_file(self.read())

    def cleanup_locks(self, max_age_seconds: Optional[int] = None, now: Optional[str] = None) -> int:
        max_age = self.config.locking.timeout if max_age_seconds is None else max_age_seconds
        return self.locks.cleanup(max_age, now=now)

    def sync(
        self,
        message: Optional[str] = None,
        pull: bool = False,
        push: Optional[bool] = None,
    ) -> Optional[str]:
        """
        Commit project changes to git, optionally pulling first and pushing after.

        Returns:
            Commit hash, or None if there was nothing to commit.

        Raises:
            GitSyncError: If a git step fails.
        """
        if message is None:
            message = sync_commit_message(self.read(), self.config.git.commit_prefix)
        if push is None:
            push = self.config.git.push_on_sync
        return self.git.sync(message, pull=pull, push=push)

    def start_batch(self) -> None:
        """Suppress auto-commits until end_batch."""
        self.paths.ensure_tick_dir()
        self.paths.batch_marker.touch(exist_ok=True)

    def end_batch(self, message: Optional[str] = None, commit: bool = True) -> Optional[str]:
        """Leave batch mode and optionally commit everything changed during it."""
        if self.paths.batch_marker.exists():
            self.paths.batch_marker.unlink()
        if not commit:
            return None
        return self.git.auto_commit(message or "Batch update")


def _describe(value: Any) -> str:
    if value is None or value == "" or value == []:
        return "(none)"
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if isinstance(value, str) and "\n" in value:
        return "(updated)"
    return str(value)


def _updated_before(task: Task, cutoff: datetime) -> bool:
    try:
        return parse_timestamp(task.updated_at or task.created_at) < cutoff
    except ValueError:
        return False


def _unblock_dependents(tick_file: TickFile, task_id: str, actor: str, now: str) -> List[Task]:
    """Move blocked dependents whose dependencies are all done to todo."""
    unblocked = []
    for dependent in tick_file.dependents_of(task_id):
        if dependent.status != "blocked":
            continue
        deps = [tick_file.find_task(dep) for dep in dependent.depends_on]
        if all(dep is not None and dep.status == "done" for dep in deps):
            dependent.status = "todo"
            dependent.record(
                HistoryAction.UNBLOCKED,
                actor,
                now,
                note=f"Dependencies completed: {task_id}",
                from_status="blocked",
                to_status="todo",
            )
            unblocked.append(dependent)
    return unblocked


def _compacted_history(task: Task, max_entries: int, milestones_only: bool) -> list:
    history = list(task.history)
    if milestones_only:
        history = [h for h in history if h.action.value in MILESTONE_ACTIONS]
    if len(history) > max_entries:
        created = next((h for h in history if h.action == HistoryAction.CREATED), None)
        rest = [h for h in history if h is not created]
        rest = rest[-(max_entries - 1):] if max_entries > 1 else []
        history = ([created] if created else []) + rest
    if not any(h.action == HistoryAction.CREATED for h in history):
        original = next((h for h in task.history if h.action == HistoryAction.CREATED), None)
        if original is not None:
            history.insert(0, original)
    return history


def sync_commit_message(tick_file: TickFile, prefix: str) -> str:
    """Commit message describing the most recently touched task."""
    if not tick_file.tasks:
        return f"{prefix} Update project tasks"
    recent = max(tick_file.tasks, key=lambda t: t.updated_at)
    if recent.status == "done":
        return f"{prefix} {recent.id}: {recent.title}"
    if recent.history:
        return f"{prefix} {recent.id}: {recent.history[-1].action.value}"
    return f"{prefix} Update project tasks"
