"""
Automatic repair of a damaged TICK.md.

Repair parses leniently, then applies the mechanical fixes the validator
suggests. Problems that need a human (cycles, duplicate IDs, broken YAML
blocks) are reported and never guessed at.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Tuple

from tickmd.core.models import Task, TickFile
from tickmd.core.naming import task_sequence
from tickmd.tick_file import parse_tick_file_with_errors
from tickmd.validation import ValidationIssue, validate_tick_file

logger = logging.getLogger(__name__)


@dataclass
class RepairReport:
    """Outcome of a repair pass.

    Attributes:
        fixed: Changes applied to the model, one line each.
        manual: Problems left for a human; writing the model keeps them as is.
        blocking: Parse problems whose region would be lost on rewrite.
    """

    fixed: List[str] = field(default_factory=list)
    manual: List[str] = field(default_factory=list)
    blocking: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.fixed)

    @property
    def can_write(self) -> bool:
        return self.changed and not self.blocking


def repair_tick_file(content: str, now: str) -> Tuple[TickFile, RepairReport]:
    """
    Repair a document's text.

    Args:
        content: Raw TICK.md content.
        now: Timestamp used for missing timestamps.

    Returns:
        Tuple of (repaired model, report). The model is only safe to write
        when `report.can_write` is True.
    """
    tick_file, errors = parse_tick_file_with_errors(content)
    report = RepairReport()

    for error in errors:
        if error.recoverable:
            report.fixed.append(f"{error.region}: {error} (reset to default)")
        else:
            report.blocking.append(f"{error.region}: {error}")

    _fill_timestamps(tick_file, now, report)

    for issue in validate_tick_file(tick_file).issues():
        fixer = FIXERS.get(issue.code or "")
        if fixer is None:
            report.manual.append(f"{issue.location or 'document'}: {issue.message}")
            continue
        fixer(tick_file, issue)
        report.fixed.append(f"{issue.location}: {issue.fix}")

    if report.fixed:
        logger.info(f"Repair found {len(report.fixed)} fixable problem(s)")
    return tick_file, report


def _fill_timestamps(tick_file: TickFile, now: str, report: RepairReport) -> None:
    meta = tick_file.meta
    if not meta.created:
        meta.created = now
        report.fixed.append("frontmatter: Set missing created timestamp")
    if not meta.updated:
        meta.updated = meta.created
        report.fixed.append("frontmatter: Set missing updated timestamp")

    for task in tick_file.tasks:
        if not task.created_at:
            task.created_at = task.history[0].ts if task.history else now
            report.fixed.append(f"{task.id}: Set missing created_at")
        if not task.updated_at:
            task.updated_at = task.history[-1].ts if task.history else task.created_at
            report.fixed.append(f"{task.id}: Set missing updated_at")


def _fix_next_id(tick_file: TickFile, issue: ValidationIssue) -> None:
    sequences = [
        seq
        for seq in (task_sequence(t.id, tick_file.meta.id_prefix) for t in tick_file.tasks)
        if seq is not None
    ]
    tick_file.meta.next_id = max(sequences) + 1


def _task_for(tick_file: TickFile, issue: ValidationIssue) -> Task:
    return tick_file.get_task(issue.location or "")


def _fix_missing_title(tick_file: TickFile, issue: ValidationIssue) -> None:
    task = _task_for(tick_file, issue)
    task.title = f"Untitled ({task.id})"


def _fix_done_claimed(tick_file: TickFile, issue: ValidationIssue) -> None:
    _task_for(tick_file, issue).claimed_by = None


def _fix_dangling_depends_on(tick_file: TickFile, issue: ValidationIssue) -> None:
    task = _task_for(tick_file, issue)
    task.depends_on = [d for d in task.depends_on if d != issue.subject]


def _fix_dangling_blocks(tick_file: TickFile, issue: ValidationIssue) -> None:
    task = _task_for(tick_file, issue)
    task.blocks = [b for b in task.blocks if b != issue.subject]


FIXERS: Dict[str, Callable[[TickFile, ValidationIssue], None]] = {
    "next_id": _fix_next_id,
    "missing_title": _fix_missing_title,
    "done_claimed": _fix_done_claimed,
    "dangling_depends_on": _fix_dangling_depends_on,
    "dangling_blocks": _fix_dangling_blocks,
}
