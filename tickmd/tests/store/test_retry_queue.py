"""
Tests for the notification retry queue.
"""

import json
import threading
from types import SimpleNamespace

import pytest

from tickmd.constants import QUEUE_MAX_ATTEMPTS, QUEUE_MAX_DELAY_SECONDS
from tickmd.store.retry_queue import (
    RetryQueue,
    backoff_delay,
    generate_item_id,
    next_retry_at,
)

NOW = "2026-01-01T00:00:00.000Z"
MUCH_LATER = "2026-01-02T00:00:00.000Z"


@pytest.fixture
def queue_file(tmp_path):
    return tmp_path / ".tick" / "webhook-queue.json"


@pytest.fixture
def queue(queue_file):
    """Create a RetryQueue over a fresh queue file."""
    return RetryQueue(queue_file)


@pytest.fixture
def destination():
    return SimpleNamespace(name="team-slack", url="https://hooks.example.com/abc", type="slack")


def _enqueue(queue, destination, now=NOW):
    return queue.enqueue(destination, "task.done", "TASK-001 completed", '{"text": "done"}', now=now)


class TestBackoff:
    """Exponential backoff schedule."""

    def test_delay_is_monotonic_and_capped(self):
        """Test delays never decrease and never exceed the cap."""
        delays = [backoff_delay(attempts) for attempts in range(0, 16)]

        assert delays == sorted(delays)
        assert max(delays) == QUEUE_MAX_DELAY_SECONDS
        assert delays[:4] == [1, 2, 4, 8]

    def test_next_retry_at(self):
        """Test the next retry is now plus the backoff delay."""
        assert next_retry_at(3, NOW) == "2026-01-01T00:00:08.000Z"

    def test_item_id_format(self):
        """Test queue item IDs embed the creation time in milliseconds."""
        item_id = generate_item_id(NOW)
        prefix, millis, suffix = item_id.split("-")
        assert prefix == "wh"
        assert millis == "1767225600000"
        assert len(suffix) == 6


class TestEnqueue:
    """Adding items to the queue."""

    def test_enqueue_fields(self, queue, destination):
        """Test a queued item carries destination, event and schedule."""
        item = _enqueue(queue, destination)

        assert item["webhook_name"] == "team-slack"
        assert item["webhook_url"] == "https://hooks.example.com/abc"
        assert item["webhook_type"] == "slack"
        assert item["event"] == "task.done"
        assert item["attempts"] == 1
        assert item["next_retry"] == "2026-01-01T00:00:02.000Z"
        assert item["last_error"] is None

    def test_file_format(self, queue, destination, queue_file):
        """Test the side file is an object with an items list."""
        item = _enqueue(queue, destination)

        data = json.loads(queue_file.read_text(encoding="utf-8"))
        assert data == {"items": [item]}

    def test_unwritable_queue_does_not_raise(self, tmp_path, destination):
        """Test queue I/O failures are swallowed and reported as None."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("", encoding="utf-8")
        queue = RetryQueue(blocker / "webhook-queue.json")

        assert _enqueue(queue, destination) is None

    def test_separate_instances_never_lose_items(self, queue_file, destination):
        """Test concurrent writers with their own RetryQueue keep every item."""
        workers, per_worker = 4, 40
        returned = []
        returned_lock = threading.Lock()

        def worker():
            queue = RetryQueue(queue_file)
            for _ in range(per_worker):
                item = _enqueue(queue, destination)
                with returned_lock:
                    returned.append(item)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        persisted = {item["id"] for item in RetryQueue(queue_file).get_pending_items()}
        assert None not in returned
        assert len(returned) == workers * per_worker
        assert persisted == {item["id"] for item in returned}

    def test_update_from_another_instance_keeps_new_items(self, queue, queue_file, destination):
        """Test an update through one instance does not drop items queued through another."""
        first = _enqueue(queue, destination)
        other = RetryQueue(queue_file)
        second = _enqueue(other, destination)

        queue.update_queue_item(first["id"], success=False, error="HTTP 500", now=NOW)

        ids = [item["id"] for item in other.get_pending_items()]
        assert ids == [first["id"], second["id"]]

    def test_lock_file_is_a_sidecar(self, queue, queue_file, destination):
        """Test the flock is taken on a separate file next to the queue."""
        _enqueue(queue, destination)

        assert queue.lock_file == queue_file.with_name("webhook-queue.json.lock")
        assert queue.lock_file.exists()
        assert json.loads(queue_file.read_text(encoding="utf-8"))["items"]

    def test_corrupt_queue_file_reads_as_empty(self, queue, queue_file):
        """Test a corrupt queue file is logged and treated as empty."""
        queue_file.parent.mkdir(parents=True)
        queue_file.write_text("{not json", encoding="utf-8")

        assert queue.get_pending_items() == []
        assert queue.get_queue_stats()["total"] == 0


class TestRetryableItems:
    """Selecting items that are due."""

    def test_not_due_before_next_retry(self, queue, destination):
        """Test a fresh item is not retryable until its delay elapses."""
        _enqueue(queue, destination)

        assert queue.get_retryable_items(now=NOW) == []
        assert len(queue.get_retryable_items(now="2026-01-01T00:00:02.000Z")) == 1

    def test_pending_includes_not_yet_due(self, queue, destination):
        """Test pending items include those not yet due."""
        _enqueue(queue, destination)
        assert len(queue.get_pending_items()) == 1


class TestUpdateQueueItem:
    """Recording delivery outcomes."""

    def test_success_removes_item(self, queue, destination):
        """Test a successful delivery removes the item."""
        item = _enqueue(queue, destination)

        assert queue.update_queue_item(item["id"], success=True, now=NOW) is None
        assert queue.get_pending_items() == []

    def test_failure_reschedules(self, queue, destination):
        """Test a failed delivery increments attempts and backs off."""
        item = _enqueue(queue, destination)

        updated = queue.update_queue_item(item["id"], success=False, error="HTTP 500", now=NOW)

        assert updated["attempts"] == 2
        assert updated["last_error"] == "HTTP 500"
        assert updated["next_retry"] == "2026-01-01T00:00:04.000Z"

    def test_dead_letter_after_max_attempts(self, queue, destination):
        """Test an item is marked failed after the maximum attempts."""
        item = _enqueue(queue, destination)

        for _ in range(QUEUE_MAX_ATTEMPTS - 1):
            updated = queue.update_queue_item(item["id"], success=False, error="timeout", now=NOW)

        assert updated["attempts"] == QUEUE_MAX_ATTEMPTS
        assert updated["next_retry"] == "failed"
        assert queue.get_retryable_items(now=MUCH_LATER) == []
        assert [i["id"] for i in queue.get_failed_items()] == [item["id"]]

    def test_unknown_item(self, queue):
        """Test updating an unknown item is a no-op."""
        assert queue.update_queue_item("wh-0-000000", success=False, now=NOW) is None


class TestQueueMaintenance:
    """Stats, requeue, remove and clear."""

    def _dead_letter(self, queue, destination):
        item = _enqueue(queue, destination)
        for _ in range(QUEUE_MAX_ATTEMPTS - 1):
            queue.update_queue_item(item["id"], success=False, error="boom", now=NOW)
        return item

    def test_stats(self, queue, destination):
        """Test stats count pending and failed items."""
        self._dead_letter(queue, destination)
        _enqueue(queue, destination)

        stats = queue.get_queue_stats()
        assert stats == {
            "pending": 1,
            "failed": 1,
            "total": 2,
            "next_retry": "2026-01-01T00:00:02.000Z",
        }

    def test_retry_failed_items(self, queue, destination):
        """Test dead letters are requeued with attempts reset and due now."""
        item = self._dead_letter(queue, destination)

        assert queue.retry_failed_items(now=MUCH_LATER) == 1

        [requeued] = queue.get_retryable_items(now=MUCH_LATER)
        assert requeued["id"] == item["id"]
        assert requeued["attempts"] == 0
        assert requeued["next_retry"] == MUCH_LATER

    def test_remove(self, queue, destination):
        """Test removing one item by ID."""
        item = _enqueue(queue, destination)

        assert queue.remove(item["id"]) is True
        assert queue.remove(item["id"]) is False

    def test_clear(self, queue, destination):
        """Test clear drops every item."""
        _enqueue(queue, destination)
        _enqueue(queue, destination)

        assert queue.clear() == 2
        assert queue.get_queue_stats()["total"] == 0
