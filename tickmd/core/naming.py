"""Naming helpers: task IDs, timestamps, and ID similarity."""

import re
from datetime import datetime, timezone
from typing import List, Optional

from tickmd.constants import TASK_ID_PAD_WIDTH

TASK_ID_PATTERN = re.compile(r"^([A-Za-z][A-Za-z0-9_]*)-(\d+)$")


def format_task_id(prefix: str, sequence: int) -> str:
    """
    Mint a task ID from the project prefix and a sequence number.

    Example: ("TASK", 7) -> "TASK-007"

    Args:
        prefix: Project ID prefix.
        sequence: Value of next_id at creation time.

    Returns:
        Task identifier.
    """
    return f"{prefix}-{str(sequence).zfill(TASK_ID_PAD_WIDTH)}"


def task_sequence(task_id: str, prefix: Optional[str] = None) -> Optional[int]:
    """
    Extract the numeric sequence from a task ID.

    Args:
        task_id: Task identifier (e.g., "TASK-007").
        prefix: When given, IDs with a different prefix return None.

    Returns:
        Sequence number, or None if the ID does not follow the pattern.
    """
    match = TASK_ID_PATTERN.match(task_id or "")
    if not match:
        return None
    if prefix is not None and match.group(1) != prefix:
        return None
    return int(match.group(2))


def format_timestamp(value: datetime) -> str:
    """Render a datetime as an ISO-8601 UTC string with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp written by this package or by hand.

    Accepts a trailing "Z" and naive values (assumed UTC).

    Raises:
        ValueError: If the value is not an ISO-8601 timestamp.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Current time as an ISO-8601 UTC string."""
    return format_timestamp(utc_now())


def find_similar_ids(target: str, candidates: List[str], limit: int = 3) -> List[str]:
    """
    Suggest task IDs close to a mistyped one.

    Matches IDs whose digits are a permutation of the target's digits
    (transposition) or whose sequence differs by one.

    Args:
        target: The ID that was not found.
        candidates: Existing task IDs.
        limit: Maximum number of suggestions.

    Returns:
        Up to `limit` similar IDs, in candidate order.
    """
    target_digits = re.search(r"\d+$", target or "")
    if not target_digits:
        return []
    target_num = target_digits.group(0)

    similar = []
    for candidate in candidates:
        if candidate == target:
            continue
        candidate_digits = re.search(r"\d+$", candidate)
        if not candidate_digits:
            continue
        candidate_num = candidate_digits.group(0)
        if len(candidate_num) == len(target_num) and sorted(candidate_num) == sorted(
            target_num
        ):
            similar.append(candidate)
        elif abs(int(candidate_num) - int(target_num)) == 1:
            similar.append(candidate)

    return similar[:limit]
