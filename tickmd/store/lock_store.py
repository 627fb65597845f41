"""
Advisory per-task locks persisted in .tick/lock.

One line per lock: task_id<TAB>agent<TAB>pid<TAB>timestamp. The file is
loaded fully before every operation and rewritten fully (temp file + rename)
after every mutation. A rewrite fails with ConcurrentModificationError if the
file changed between load and rewrite.
"""

import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from tickmd.constants import DEFAULT_LOCK_MAX_AGE_SECONDS
from tickmd.core.exceptions import (
    AlreadyLockedError,
    ConcurrentModificationError,
    NotLockedError,
    WrongHolderError,
)
from tickmd.core.naming import now_iso, parse_timestamp, utc_now
from tickmd.store.repository import Fingerprint

logger = logging.getLogger(__name__)


@dataclass
class LockInfo:
    """One held lock."""

    task_id: str
    agent: str
    pid: int
    timestamp: str

    def to_line(self) -> str:
        return f"{self.task_id}\t{self.agent}\t{self.pid}\t{self.timestamp}"

    @classmethod
    def from_line(cls, line: str) -> "LockInfo":
        """
        Parse one lock line.

        Raises:
            ValueError: If the line does not have four fields or the pid is
                not an integer.
        """
        parts = line.split("\t")
        if len(parts) < 4:
            raise ValueError(f"expected 4 tab-separated fields, got {len(parts)}")
        task_id, agent, pid, timestamp = parts[:4]
        return cls(task_id=task_id, agent=agent, pid=int(pid), timestamp=timestamp.strip())


def is_process_alive(pid: int) -> bool:
    """Check whether a pid exists on this machine."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    return True


class LockManager:
    """Advisory lock table for task claims.

    The lock is a courtesy protocol between cooperating agents; nothing
    prevents a tool from editing the document without it.
    """

    def __init__(self, lock_file: Union[str, Path]):
        """
        Initialize the lock manager.

        Args:
            lock_file: Path to the lock side file (usually .tick/lock).
                A missing file means no locks are held.
        """
        self.lock_file = Path(lock_file)
        self._lock = threading.RLock()

    def _load(self) -> Tuple[Dict[str, LockInfo], Optional[Fingerprint]]:
        """Read all locks (must be called within lock context)."""
        locks: Dict[str, LockInfo] = {}
        try:
            with open(self.lock_file, "r", encoding="utf-8") as f:
                fingerprint = Fingerprint.from_stat(self.lock_file, os.fstat(f.fileno()))
                content = f.read()
        except FileNotFoundError:
            return locks, None

        for number, line in enumerate(content.split("\n"), start=1):
            if not line.strip():
                continue
            try:
                info = LockInfo.from_line(line)
            except ValueError as e:
                logger.warning(f"Skipping malformed line {number} in {self.lock_file}: {e}")
                continue
            locks[info.task_id] = info

        return locks, fingerprint

    def _save(self, locks: Dict[str, LockInfo], fingerprint: Optional[Fingerprint]) -> None:
        """Rewrite the lock file atomically (must be called within lock context)."""
        lines = [info.to_line() for info in locks.values()]
        content = "\n".join(lines) + "\n" if lines else ""

        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        temp_file = self.lock_file.parent / (
            f"{self.lock_file.name}.{os.getpid()}.{time.time_ns()}.tmp"
        )
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())

            self._check_unchanged(fingerprint)
            os.replace(temp_file, self.lock_file)
        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

    def _check_unchanged(self, fingerprint: Optional[Fingerprint]) -> None:
        try:
            current = os.stat(self.lock_file)
        except FileNotFoundError:
            if fingerprint is None:
                return
            raise ConcurrentModificationError(str(self.lock_file))
        if fingerprint is None or not fingerprint.matches(current):
            raise ConcurrentModificationError(str(self.lock_file))

    def acquire(
        self,
        task_id: str,
        agent: str,
        now: Optional[str] = None,
        pid: Optional[int] = None,
    ) -> LockInfo:
        """
        Take the lock for a task.

        Args:
            task_id: Task to lock.
            agent: Agent taking the lock.
            now: Timestamp to record (defaults to current time).
            pid: Owning process (defaults to this process).

        Returns:
            The new LockInfo.

        Raises:
            AlreadyLockedError: If any agent already holds the lock.
            ConcurrentModificationError: If the lock file changed during the call.
        """
        with self._lock:
            locks, fingerprint = self._load()

            existing = locks.get(task_id)
            if existing is not None:
                raise AlreadyLockedError(task_id, existing.agent, existing.pid)

            info = LockInfo(
                task_id=task_id,
                agent=agent,
                pid=os.getpid() if pid is None else pid,
                timestamp=now or now_iso(),
            )
            locks[task_id] = info
            self._save(locks, fingerprint)
            logger.debug(f"Lock acquired: {task_id} by {agent}")
            return info

    def release(self, task_id: str, agent: str) -> None:
        """
        Drop the lock for a task.

        Raises:
            NotLockedError: If the task is not locked.
            WrongHolderError: If another agent holds the lock.
            ConcurrentModificationError: If the lock file changed during the call.
        """
        with self._lock:
            locks, fingerprint = self._load()

            existing = locks.get(task_id)
            if existing is None:
                raise NotLockedError(task_id)
            if existing.agent != agent:
                raise WrongHolderError(task_id, existing.agent, agent)

            del locks[task_id]
            self._save(locks, fingerprint)
            logger.debug(f"Lock released: {task_id} by {agent}")

    def cleanup(
        self,
        max_age_seconds: int = DEFAULT_LOCK_MAX_AGE_SECONDS,
        now: Optional[str] = None,
    ) -> int:
        """
        Remove stale locks.

        A lock is stale when it is older than max_age_seconds and its pid is
        confirmed dead. Liveness is checked on this machine only, so a lock
        taken on another host is removed once old unless its pid happens to
        belong to a live local process.

        Returns:
            Number of locks removed.
        """
        current = parse_timestamp(now) if now else utc_now()
        max_age = timedelta(seconds=max_age_seconds)

        with self._lock:
            locks, fingerprint = self._load()
            stale = []
            for task_id, info in locks.items():
                try:
                    age = current - parse_timestamp(info.timestamp)
                except ValueError:
                    logger.warning(
                        f"Lock on {task_id} has unreadable timestamp {info.timestamp!r}; treating as stale"
                    )
                    age = max_age + timedelta(seconds=1)
                if age > max_age and not is_process_alive(info.pid):
                    stale.append(task_id)

            for task_id in stale:
                logger.info(
                    f"Removing stale lock on {task_id} held by {locks[task_id].agent} "
                    f"since {locks[task_id].timestamp}"
                )
                del locks[task_id]

            if stale:
                self._save(locks, fingerprint)
            return len(stale)

    def get_lock(self, task_id: str) -> Optional[LockInfo]:
        with self._lock:
            return self._load()[0].get(task_id)

    def is_locked(self, task_id: str) -> bool:
        return self.get_lock(task_id) is not None

    def get_all_locks(self) -> List[LockInfo]:
        with self._lock:
            return list(self._load()[0].values())


def lock_age(info: LockInfo, now: Optional[str] = None) -> Optional[timedelta]:
    """Age of a lock, or None if its timestamp is unreadable."""
    current = parse_timestamp(now) if now else utc_now()
    try:
        return current - parse_timestamp(info.timestamp)
    except ValueError:
        return None


