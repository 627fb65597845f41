"""
ARCHIVE.md: completed tasks moved out of TICK.md.

The archive is append-only Markdown. Each archive run adds one section:

    ## Archived 2026-02-01

    ### TASK-001 · Title

    - **Status:** done
    - **Priority:** high
    - **Created:** ...
    - **Completed:** ...
    - **Archived:** ...

    Description text.
"""

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from tickmd.core.models import Task
from tickmd.core.naming import parse_timestamp

ARCHIVE_ENTRY_RE = re.compile(
    r"^###[ \t]+([A-Za-z][A-Za-z0-9_]*-\d+)[ \t]*·[ \t]*(.+?)[ \t]*$", re.MULTILINE
)
ARCHIVED_AT_RE = re.compile(r"^- \*\*Archived:\*\*[ \t]*(.+?)[ \t]*$", re.MULTILINE)
RELATIVE_AGE_RE = re.compile(r"^(\d+)([dwmy])$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")


@dataclass
class ArchivedTask:
    """One entry read back from ARCHIVE.md."""

    id: str
    title: str
    archived_at: Optional[str] = None


def archive_header(project: str) -> str:
    return (
        f"# {project} - Task Archive\n"
        "\n"
        "This file contains archived tasks from TICK.md.\n"
        "Tasks are archived when they are completed and older than the archive threshold.\n"
        "\n"
        "---\n"
    )


def render_archive_section(tasks: List[Task], archived_at: str) -> str:
    """Markdown section for one archive run."""
    lines = [f"## Archived {archived_at[:10]}", ""]
    for task in tasks:
        lines.append(f"### {task.id} · {task.title}")
        lines.append("")
        lines.append(f"- **Status:** {task.status}")
        lines.append(f"- **Priority:** {task.priority}")
        if task.assigned_to:
            lines.append(f"- **Assigned to:** {task.assigned_to}")
        lines.append(f"- **Created:** {task.created_at}")
        lines.append(f"- **Completed:** {task.updated_at}")
        lines.append(f"- **Archived:** {archived_at}")
        if task.tags:
            lines.append(f"- **Tags:** {', '.join(task.tags)}")
        if task.description:
            lines.append("")
            lines.append(task.description)
        lines.append("")
    return "\n".join(lines)


def append_to_archive(
    existing: Optional[str], project: str, tasks: List[Task], archived_at: str
) -> str:
    """
    Add a section for `tasks` to the archive text.

    Args:
        existing: Current ARCHIVE.md content, or None to start a new archive.
        project: Project name for a new archive's header.
        tasks: Tasks being archived.
        archived_at: Archive timestamp.

    Returns:
        New ARCHIVE.md content.
    """
    base = existing if existing is not None else archive_header(project)
    return base.rstrip() + "\n\n" + render_archive_section(tasks, archived_at).rstrip("\n") + "\n"


def parse_archive(content: str) -> List[ArchivedTask]:
    """Entries of an ARCHIVE.md, in file order."""
    headers = list(ARCHIVE_ENTRY_RE.finditer(content))
    entries = []
    for index, header in enumerate(headers):
        end = headers[index + 1].start() if index + 1 < len(headers) else len(content)
        archived = ARCHIVED_AT_RE.search(content, header.end(), end)
        entries.append(
            ArchivedTask(
                id=header.group(1),
                title=header.group(2),
                archived_at=archived.group(1) if archived else None,
            )
        )
    return entries


def parse_cutoff(value: str, now: str) -> datetime:
    """
    Resolve an archive cutoff.

    Accepts an ISO date or timestamp ("2026-01-01") or an age relative to
    now: days, weeks, months or years ("30d", "2w", "6m", "1y").

    Raises:
        ValueError: If the value is neither.
    """
    value = value.strip()
    if ISO_DATE_RE.match(value):
        return parse_timestamp(value)

    match = RELATIVE_AGE_RE.match(value)
    if not match:
        raise ValueError(
            f"Invalid date format: {value}. Use an ISO date or a relative age (e.g. 30d, 1w)"
        )
    amount, unit = int(match.group(1)), match.group(2)
    current = parse_timestamp(now)
    if unit == "d":
        return current - timedelta(days=amount)
    if unit == "w":
        return current - timedelta(weeks=amount)
    if unit == "y":
        return _shift_months(current, -12 * amount)
    return _shift_months(current, -amount)


def _shift_months(value: datetime, months: int) -> datetime:
    index = value.year * 12 + value.month - 1 + months
    year, month = divmod(index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
