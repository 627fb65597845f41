"""
Webhook notifications for task events.

Mutations hand notifications to the RetryQueue through Notifier.dispatch;
Notifier.process_queue is the polling consumer that delivers due items with
httpx and records each outcome on the queue.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx

from tickmd.constants import WEBHOOK_TIMEOUT_SECONDS
from tickmd.core.naming import now_iso
from tickmd.store.retry_queue import RetryQueue

logger = logging.getLogger(__name__)

WEBHOOK_TYPES = ("slack", "discord", "generic")
USER_AGENT = "tick-md-notify/1.0"


@dataclass
class WebhookDestination:
    """One configured webhook."""

    name: str
    url: str
    type: str = "generic"
    events: List[str] = field(default_factory=list)

    def accepts(self, event: str) -> bool:
        """An empty event filter accepts every event."""
        return not self.events or event in self.events

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WebhookDestination":
        """
        Raises:
            ValueError: If name or url is missing or the type is unknown.
        """
        name = data.get("name")
        url = data.get("url")
        if not name or not url:
            raise ValueError(f"Webhook entries need a name and url, got: {data!r}")
        webhook_type = data.get("type") or "generic"
        if webhook_type not in WEBHOOK_TYPES:
            raise ValueError(
                f"Webhook {name} has invalid type '{webhook_type}'. Must be one of: {', '.join(WEBHOOK_TYPES)}"
            )
        return cls(name=name, url=url, type=webhook_type, events=list(data.get("events") or []))


@dataclass
class NotifyConfig:
    webhooks: List[WebhookDestination] = field(default_factory=list)

    def matching(self, event: str) -> List[WebhookDestination]:
        return [w for w in self.webhooks if w.accepts(event)]

    @classmethod
    def load(cls, config_file: Union[str, Path]) -> "NotifyConfig":
        """Load .tick/notify.json; missing or invalid files mean no webhooks."""
        path = Path(config_file)
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return cls(webhooks=[WebhookDestination.from_dict(w) for w in data.get("webhooks", [])])
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Invalid notification config {path}, notifications disabled: {e}")
            return cls()


def build_payload(webhook_type: str, event: str, message: str, now: Optional[str] = None) -> str:
    """Render the JSON request body for a webhook type."""
    if webhook_type == "slack":
        body: Dict[str, Any] = {"text": f"*[{event}]* {message}", "unfurl_links": False}
    elif webhook_type == "discord":
        body = {"content": f"**[{event}]** {message}"}
    else:
        body = {"event": event, "message": message, "timestamp": now or now_iso()}
    return json.dumps(body)


@dataclass
class DeliveryResult:
    success: bool
    status_code: int = 0
    error: Optional[str] = None


class WebhookSender:
    """Posts JSON payloads to webhook URLs."""

    def __init__(
        self,
        timeout_seconds: float = WEBHOOK_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=5.0),
            headers={"User-Agent": USER_AGENT, "Content-Type": "application/json"},
            transport=transport,
        )

    def send(self, url: str, payload: str) -> DeliveryResult:
        try:
            response = self._client.post(url, content=payload.encode("utf-8"))
        except httpx.TimeoutException:
            logger.warning(f"Timeout posting webhook to {url}")
            return DeliveryResult(success=False, error="timeout")
        except httpx.HTTPError as e:
            logger.warning(f"HTTP error posting webhook to {url}: {e}")
            return DeliveryResult(success=False, error=str(e))

        if response.is_success:
            return DeliveryResult(success=True, status_code=response.status_code)
        return DeliveryResult(
            success=False,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}",
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "WebhookSender":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


class Notifier:
    """Queues notifications for matching webhooks and delivers them."""

    def __init__(
        self,
        queue: RetryQueue,
        config: Optional[NotifyConfig] = None,
        sender: Optional[WebhookSender] = None,
    ):
        self.queue = queue
        self.config = config or NotifyConfig()
        self._sender = sender

    def dispatch(self, event: str, message: str, now: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Queue one delivery per webhook accepting the event.

        Never raises; queue I/O failures are logged by the queue.

        Returns:
            The queued items.
        """
        now = now or now_iso()
        queued = []
        for webhook in self.config.matching(event):
            payload = build_payload(webhook.type, event, message, now)
            item = self.queue.enqueue(webhook, event, message, payload, now=now)
            if item is not None:
                queued.append(item)
        return queued

    def process_queue(self, now: Optional[str] = None, include_pending: bool = False) -> Dict[str, int]:
        """
        Deliver queued items and record each outcome.

        Args:
            now: Current timestamp (defaults to current time).
            include_pending: Also deliver items whose next retry has not
                elapsed yet (dead-lettered items are never included).

        Returns:
            Counts of delivered and failed items.
        """
        now = now or now_iso()
        items = (
            self.queue.get_pending_items()
            if include_pending
            else self.queue.get_retryable_items(now)
        )
        counts = {"delivered": 0, "failed": 0}
        if not items:
            return counts

        sender = self._sender or WebhookSender()
        try:
            for item in items:
                result = sender.send(item["webhook_url"], item["payload"])
                self.queue.update_queue_item(item["id"], result.success, result.error, now=now)
                if result.success:
                    counts["delivered"] += 1
                    logger.info(f"Delivered {item['event']} to {item['webhook_name']}")
                else:
                    counts["failed"] += 1
        finally:
            if self._sender is None:
                sender.close()
        return counts
