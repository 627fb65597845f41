"""
Durable retry queue for outbound notifications, persisted in .tick/webhook-queue.json.

Delivery failure is data: it reschedules the item with exponential backoff
and dead-letters it after QUEUE_MAX_ATTEMPTS. Queue file I/O problems are
logged and swallowed so they never block the mutation that queued the item.

Every load-modify-save cycle holds an exclusive flock on
webhook-queue.json.lock, so separate processes (and separate RetryQueue
instances) never overwrite each other's items.
"""

import fcntl
import json
import logging
import os
import threading
import time
import uuid
from contextlib import contextmanager
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from tickmd.constants import (
    QUEUE_FAILED_MARKER,
    QUEUE_INITIAL_DELAY_SECONDS,
    QUEUE_MAX_ATTEMPTS,
    QUEUE_MAX_DELAY_SECONDS,
)
from tickmd.core.exceptions import QueueIOError
from tickmd.core.naming import format_timestamp, now_iso, parse_timestamp

logger = logging.getLogger(__name__)


def backoff_delay(attempts: int) -> int:
    """Seconds to wait before the next attempt: min(initial * 2^attempts, max)."""
    return min(QUEUE_INITIAL_DELAY_SECONDS * (2 ** attempts), QUEUE_MAX_DELAY_SECONDS)


def next_retry_at(attempts: int, now: str) -> str:
    return format_timestamp(parse_timestamp(now) + timedelta(seconds=backoff_delay(attempts)))


def generate_item_id(now: str) -> str:
    millis = int(parse_timestamp(now).timestamp() * 1000)
    return f"wh-{millis}-{uuid.uuid4().hex[:6]}"


def is_failed(item: Dict[str, Any]) -> bool:
    return item.get("next_retry") == QUEUE_FAILED_MARKER


class RetryQueue:
    """File-backed list of pending notification deliveries."""

    def __init__(self, queue_file: Union[str, Path]):
        """
        Initialize the queue.

        Args:
            queue_file: Path to the JSON queue file. A missing file is an
                empty queue.
        """
        self.queue_file = Path(queue_file)
        self.lock_file = self.queue_file.with_name(self.queue_file.name + ".lock")
        self._lock = threading.RLock()
        self._file_lock_handle = None

    def _acquire_file_lock(self) -> None:
        """Acquire exclusive file lock.

        The queue file is replaced on every save, so the lock is taken on a
        sidecar file that is never renamed.

        Raises:
            QueueIOError: If the lock file cannot be opened.
        """
        if self._file_lock_handle is not None:
            return  # Already locked

        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
            handle = open(self.lock_file, "a+")
        except OSError as e:
            raise QueueIOError(str(self.queue_file), str(e))
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        self._file_lock_handle = handle

    def _release_file_lock(self) -> None:
        """Release file lock."""
        if self._file_lock_handle is not None:
            fcntl.flock(self._file_lock_handle.fileno(), fcntl.LOCK_UN)
            self._file_lock_handle.close()
            self._file_lock_handle = None

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        """Hold the thread lock and the file lock for one load-modify-save cycle."""
        with self._lock:
            self._acquire_file_lock()
            try:
                yield
            finally:
                self._release_file_lock()

    def _load(self) -> List[Dict[str, Any]]:
        """Read all items (must be called within lock context).

        Raises:
            QueueIOError: If the file cannot be read or is not a queue document.
        """
        try:
            with open(self.queue_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, json.JSONDecodeError) as e:
            raise QueueIOError(str(self.queue_file), str(e))

        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise QueueIOError(str(self.queue_file), "expected an object with an 'items' list")
        return [item for item in items if isinstance(item, dict)]

    def _save(self, items: List[Dict[str, Any]]) -> None:
        """Rewrite the queue file atomically (must be called within lock context).

        Raises:
            QueueIOError: If the file cannot be written.
        """
        temp_file = self.queue_file.parent / (
            f"{self.queue_file.name}.{os.getpid()}.{time.time_ns()}.tmp"
        )
        try:
            self.queue_file.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump({"items": items}, f, indent=2)
                f.write("\n")
            temp_file.replace(self.queue_file)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise QueueIOError(str(self.queue_file), str(e))

    def enqueue(
        self,
        destination: Any,
        event: str,
        message: str,
        payload: str,
        error: Optional[str] = None,
        now: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Add one delivery to the queue.

        Args:
            destination: Webhook descriptor with name, url and type attributes.
            event: Triggering event name.
            message: Rendered human-readable message.
            payload: Serialized request body.
            error: Error from a delivery attempt made before queueing, if any.
            now: Current timestamp (defaults to current time).

        Returns:
            The queued item, or None if the queue file could not be written.
        """
        now = now or now_iso()
        item: Dict[str, Any] = {
            "id": generate_item_id(now),
            "webhook_name": destination.name,
            "webhook_url": destination.url,
            "webhook_type": destination.type,
            "event": event,
            "message": message,
            "payload": payload,
            "created_at": now,
            "last_attempt": now,
            "attempts": 1,
            "next_retry": next_retry_at(1, now),
            "last_error": error,
        }

        try:
            with self._exclusive():
                items = self._load()
                items.append(item)
                self._save(items)
        except QueueIOError as e:
            logger.warning(f"Could not queue {event} notification for {destination.name}: {e}")
            return None

        logger.debug(f"Queued {event} notification {item['id']} for {destination.name}")
        return item

    def update_queue_item(
        self,
        item_id: str,
        success: bool,
        error: Optional[str] = None,
        now: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Record the outcome of a delivery attempt.

        Success removes the item. Failure increments the attempt counter,
        records the error, and either reschedules the item or marks it
        failed once QUEUE_MAX_ATTEMPTS is reached.

        Returns:
            The updated item on failure, None on success or if the item is
            unknown.
        """
        now = now or now_iso()
        try:
            with self._exclusive():
                items = self._load()
                index = next((i for i, item in enumerate(items) if item.get("id") == item_id), None)
                if index is None:
                    return None

                if success:
                    items.pop(index)
                    self._save(items)
                    return None

                item = items[index]
                item["attempts"] = int(item.get("attempts", 0)) + 1
                item["last_attempt"] = now
                item["last_error"] = error
                if item["attempts"] >= QUEUE_MAX_ATTEMPTS:
                    item["next_retry"] = QUEUE_FAILED_MARKER
                    logger.warning(
                        f"Notification {item_id} to {item.get('webhook_name')} failed "
                        f"after {item['attempts']} attempts: {error}"
                    )
                else:
                    item["next_retry"] = next_retry_at(item["attempts"], now)
                self._save(items)
                return item
        except QueueIOError as e:
            logger.warning(f"Could not update notification {item_id}: {e}")
            return None

    def get_retryable_items(self, now: Optional[str] = None) -> List[Dict[str, Any]]:
        """Items that are not dead-lettered and whose next retry has elapsed."""
        current = parse_timestamp(now or now_iso())
        retryable = []
        for item in self._safe_load():
            if is_failed(item):
                continue
            try:
                due = parse_timestamp(str(item.get("next_retry", "")))
            except ValueError:
                logger.warning(f"Notification {item.get('id')} has unreadable next_retry; retrying now")
                retryable.append(item)
                continue
            if due <= current:
                retryable.append(item)
        return retryable

    def get_pending_items(self) -> List[Dict[str, Any]]:
        return [item for item in self._safe_load() if not is_failed(item)]

    def get_failed_items(self) -> List[Dict[str, Any]]:
        return [item for item in self._safe_load() if is_failed(item)]

    def get_queue_stats(self) -> Dict[str, Any]:
        """Counts of pending and failed items plus the earliest next retry."""
        items = self._safe_load()
        pending = [item for item in items if not is_failed(item)]
        next_retry = None
        for item in pending:
            try:
                due = parse_timestamp(str(item.get("next_retry", "")))
            except ValueError:
                continue
            if next_retry is None or due < next_retry:
                next_retry = due
        return {
            "pending": len(pending),
            "failed": len(items) - len(pending),
            "total": len(items),
            "next_retry": format_timestamp(next_retry) if next_retry else None,
        }

    def retry_failed_items(self, now: Optional[str] = None) -> int:
        """
        Requeue every dead-lettered item.

        Returns:
            Number of items requeued.
        """
        now = now or now_iso()
        try:
            with self._exclusive():
                items = self._load()
                count = 0
                for item in items:
                    if is_failed(item):
                        item["attempts"] = 0
                        item["next_retry"] = now
                        count += 1
                if count:
                    self._save(items)
                return count
        except QueueIOError as e:
            logger.warning(f"Could not requeue failed notifications: {e}")
            return 0

    def remove(self, item_id: str) -> bool:
        try:
            with self._exclusive():
                items = self._load()
                remaining = [item for item in items if item.get("id") != item_id]
                if len(remaining) == len(items):
                    return False
                self._save(remaining)
                return True
        except QueueIOError as e:
            logger.warning(f"Could not remove notification {item_id}: {e}")
            return False

    def clear(self) -> int:
        """Drop every item. Returns the number removed."""
        try:
            with self._exclusive():
                items = self._load()
                self._save([])
                return len(items)
        except QueueIOError as e:
            logger.warning(f"Could not clear notification queue: {e}")
            return 0

    def _safe_load(self) -> List[Dict[str, Any]]:
        with self._lock:
            try:
                return self._load()
            except QueueIOError as e:
                logger.warning(f"Could not read notification queue: {e}")
                return []
