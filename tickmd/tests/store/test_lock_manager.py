"""
Tests for the advisory lock manager.
"""

import os
from unittest.mock import patch

import pytest

from tickmd.core.exceptions import (
    AlreadyLockedError,
    ConcurrentModificationError,
    NotLockedError,
    WrongHolderError,
)
from tickmd.store.lock_store import LockInfo, LockManager, lock_age

OLD = "2026-01-01T00:00:00.000Z"
LATER = "2026-01-01T00:10:00.000Z"


@pytest.fixture
def lock_file(tmp_path):
    return tmp_path / ".tick" / "lock"


@pytest.fixture
def locks(lock_file):
    """Create a LockManager over a fresh lock file."""
    return LockManager(lock_file)


class TestLockInfo:
    """Lock line format."""

    def test_to_line(self):
        """Test a lock is written as four tab-separated fields."""
        info = LockInfo("TASK-001", "@alice", 4242, OLD)
        assert info.to_line() == f"TASK-001\t@alice\t4242\t{OLD}"

    def test_from_line(self):
        """Test a lock line is parsed back."""
        info = LockInfo.from_line(f"TASK-001\t@alice\t4242\t{OLD}\n")
        assert info == LockInfo("TASK-001", "@alice", 4242, OLD)

    def test_from_line_malformed(self):
        """Test malformed lines raise ValueError."""
        with pytest.raises(ValueError):
            LockInfo.from_line("TASK-001 @alice")
        with pytest.raises(ValueError):
            LockInfo.from_line(f"TASK-001\t@alice\tnot-a-pid\t{OLD}")


class TestMutualExclusion:
    """At most one holder per task."""

    def test_acquire_and_get(self, locks):
        """Test acquiring records holder, pid and timestamp."""
        info = locks.acquire("TASK-001", "@alice", now=OLD)

        assert info.pid == os.getpid()
        assert locks.get_lock("TASK-001") == info
        assert locks.is_locked("TASK-001")

    def test_second_agent_is_refused(self, lock_file):
        """Test a second manager on the same file sees the first holder."""
        LockManager(lock_file).acquire("TASK-001", "@alice", now=OLD)

        with pytest.raises(AlreadyLockedError) as exc_info:
            LockManager(lock_file).acquire("TASK-001", "@bob", now=OLD)

        assert exc_info.value.holder == "@alice"
        assert "@alice" in exc_info.value.message

    def test_same_agent_cannot_acquire_twice(self, locks):
        """Test re-acquiring a held lock is refused even for the holder."""
        locks.acquire("TASK-001", "@alice", now=OLD)
        with pytest.raises(AlreadyLockedError):
            locks.acquire("TASK-001", "@alice", now=OLD)

    def test_different_tasks_are_independent(self, locks):
        """Test locks on different tasks coexist."""
        locks.acquire("TASK-001", "@alice", now=OLD)
        locks.acquire("TASK-002", "@bob", now=OLD)

        assert sorted(i.task_id for i in locks.get_all_locks()) == ["TASK-001", "TASK-002"]

    def test_release_then_reacquire(self, locks):
        """Test a released lock can be taken by another agent."""
        locks.acquire("TASK-001", "@alice", now=OLD)
        locks.release("TASK-001", "@alice")
        locks.acquire("TASK-001", "@bob", now=OLD)

        assert locks.get_lock("TASK-001").agent == "@bob"


class TestRelease:
    """Release checks the holder."""

    def test_release_unlocked(self, locks):
        """Test releasing an unlocked task raises NotLockedError."""
        with pytest.raises(NotLockedError):
            locks.release("TASK-001", "@alice")

    def test_release_by_wrong_agent(self, locks):
        """Test releasing another agent's lock raises WrongHolderError."""
        locks.acquire("TASK-001", "@alice", now=OLD)
        with pytest.raises(WrongHolderError) as exc_info:
            locks.release("TASK-001", "@bob")

        assert exc_info.value.holder == "@alice"
        assert locks.is_locked("TASK-001")


class TestLockFile:
    """Persistence of the lock side file."""

    def test_missing_file_means_no_locks(self, locks):
        """Test a missing lock file is an empty lock table."""
        assert locks.get_all_locks() == []

    def test_file_format(self, locks, lock_file):
        """Test the side file holds one line per lock."""
        locks.acquire("TASK-001", "@alice", now=OLD, pid=11)
        locks.acquire("TASK-002", "@bob", now=OLD, pid=12)

        assert lock_file.read_text(encoding="utf-8") == (
            f"TASK-001\t@alice\t11\t{OLD}\nTASK-002\t@bob\t12\t{OLD}\n"
        )

    def test_malformed_lines_are_skipped(self, locks, lock_file):
        """Test unreadable lines are ignored and valid ones kept."""
        lock_file.parent.mkdir(parents=True)
        lock_file.write_text(f"garbage line\nTASK-003\t@carol\t7\t{OLD}\n", encoding="utf-8")

        assert [i.task_id for i in locks.get_all_locks()] == ["TASK-003"]

    def test_concurrent_rewrite_detected(self, locks, lock_file):
        """Test a lock file changed between load and rewrite is not overwritten."""
        locks.acquire("TASK-001", "@alice", now=OLD)
        original_load = locks._load

        def load_then_external_write():
            result = original_load()
            lock_file.write_text(
                lock_file.read_text(encoding="utf-8") + f"TASK-009\t@zed\t1\t{OLD}\n",
                encoding="utf-8",
            )
            return result

        with patch.object(locks, "_load", side_effect=load_then_external_write):
            with pytest.raises(ConcurrentModificationError):
                locks.acquire("TASK-002", "@bob", now=OLD)

        assert locks.is_locked("TASK-009")
        assert not locks.is_locked("TASK-002")


class TestCleanup:
    """Stale lock removal."""

    def test_removes_old_lock_of_dead_process(self, locks):
        """Test a lock older than max age with a dead pid is removed."""
        locks.acquire("TASK-001", "@alice", now=OLD, pid=999999)
        with patch("tickmd.store.lock_store.is_process_alive", return_value=False):
            removed = locks.cleanup(max_age_seconds=300, now=LATER)

        assert removed == 1
        assert not locks.is_locked("TASK-001")

    def test_keeps_lock_of_live_process(self, locks):
        """Test an old lock whose process is alive is kept."""
        locks.acquire("TASK-001", "@alice", now=OLD)
        removed = locks.cleanup(max_age_seconds=300, now=LATER)

        assert removed == 0
        assert locks.is_locked("TASK-001")

    def test_keeps_recent_lock(self, locks):
        """Test a lock younger than max age is kept even if its process died."""
        locks.acquire("TASK-001", "@alice", now=OLD, pid=999999)
        with patch("tickmd.store.lock_store.is_process_alive", return_value=False):
            removed = locks.cleanup(max_age_seconds=3600, now=LATER)

        assert removed == 0

    def test_lock_age(self):
        """Test lock age is measured from the lock timestamp."""
        info = LockInfo("TASK-001", "@alice", 1, OLD)
        assert lock_age(info, now=LATER).total_seconds() == 600
        assert lock_age(LockInfo("TASK-001", "@alice", 1, "yesterday"), now=LATER) is None
