"""
Shared helpers for tick command handlers: error reporting and argument parsing.
"""

import sys
from typing import List, Optional

from tickmd.core.exceptions import TickError
from tickmd.core.models import Task


def print_error(error: Exception) -> int:
    """Print an error and its recovery suggestions to stderr.

    Returns:
        Exit code 1, so handlers can `return print_error(e)`.
    """
    message = error.message if isinstance(error, TickError) else str(error)
    print(f"Error: {message}", file=sys.stderr)
    if isinstance(error, TickError):
        for suggestion in error.suggestions:
            print(f"  - {suggestion}", file=sys.stderr)
    return 1


def split_csv(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated option. None stays None; "" means an empty list."""
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]


def format_task(task: Task) -> str:
    claim = f" [{task.claimed_by}]" if task.claimed_by else ""
    return f"{task.id} · {task.title} ({task.status}, {task.priority}){claim}"
