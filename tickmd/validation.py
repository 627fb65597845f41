"""
Structural and referential validation of a TICK.md document.

Validation never raises for invalid data: every problem found is returned
in one pass as a ValidationIssue, split into errors and warnings.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from tickmd.core.models import Task, TickFile
from tickmd.core.naming import task_sequence


@dataclass
class ValidationIssue:
    """One validation finding."""

    level: str  # "error" or "warning"
    message: str
    location: Optional[str] = None
    fix: Optional[str] = None
    code: Optional[str] = None
    subject: Optional[str] = None


@dataclass
class ValidationResult:
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def error(
        self,
        message: str,
        location: Optional[str] = None,
        fix: Optional[str] = None,
        code: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> None:
        self.errors.append(ValidationIssue("error", message, location, fix, code, subject))

    def warning(
        self,
        message: str,
        location: Optional[str] = None,
        fix: Optional[str] = None,
        code: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> None:
        self.warnings.append(ValidationIssue("warning", message, location, fix, code, subject))

    def issues(self) -> List[ValidationIssue]:
        return self.errors + self.warnings


def validate_tick_file(tick_file: TickFile) -> ValidationResult:
    """
    Check a parsed document for structural and referential problems.

    Args:
        tick_file: Parsed document.

    Returns:
        ValidationResult; `valid` is True iff there are no errors.
    """
    result = ValidationResult()

    _check_meta(tick_file, result)
    _check_agents(tick_file, result)
    _check_tasks(tick_file, result)
    _check_references(tick_file, result)
    _check_cycles(tick_file.tasks, result)

    return result


def _check_meta(tick_file: TickFile, result: ValidationResult) -> None:
    meta = tick_file.meta
    if not meta.project:
        result.error(
            "Project name is missing",
            location="frontmatter",
            fix="Add 'project: <name>' to the frontmatter",
        )
    if not meta.schema_version:
        result.warning(
            "Schema version is missing",
            location="frontmatter",
            fix="Add 'schema_version: \"1.0\"' to the frontmatter",
        )

    sequences = [
        seq
        for seq in (task_sequence(t.id, meta.id_prefix) for t in tick_file.tasks)
        if seq is not None
    ]
    if sequences and meta.next_id <= max(sequences):
        result.error(
            f"next_id {meta.next_id} is not greater than highest task number {max(sequences)}",
            location="frontmatter",
            fix=f"Set next_id to {max(sequences) + 1}",
            code="next_id",
        )


def _check_agents(tick_file: TickFile, result: ValidationResult) -> None:
    seen: Set[str] = set()
    for agent in tick_file.agents:
        if agent.name in seen:
            result.error(
                f"Duplicate agent name: {agent.name}",
                location=agent.name,
                fix="Remove or rename one of the agent rows",
            )
        seen.add(agent.name)
        if not agent.roles:
            result.warning(f"Agent {agent.name} has no roles", location=agent.name)


def _check_tasks(tick_file: TickFile, result: ValidationResult) -> None:
    agent_names = {agent.name for agent in tick_file.agents}
    seen: Set[str] = set()

    for index, task in enumerate(tick_file.tasks):
        if not task.id:
            result.error(f"Task at position {index + 1} is missing ID", location=f"task #{index + 1}")
            continue
        if task.id in seen:
            result.error(
                f"Duplicate task ID: {task.id}",
                location=task.id,
                fix="Task IDs must be unique; re-create one of the tasks",
            )
        seen.add(task.id)

        if not task.title:
            result.error(
                f"Task {task.id} is missing title",
                location=task.id,
                fix=f"Set the title to 'Untitled ({task.id})'",
                code="missing_title",
            )

        if task.assigned_to and task.assigned_to not in agent_names:
            result.warning(
                f"Task {task.id} is assigned to unregistered agent: {task.assigned_to}",
                location=task.id,
                fix=f"Register the agent: 'tick agent register {task.assigned_to}'",
            )
        if task.claimed_by and task.claimed_by not in agent_names:
            result.warning(
                f"Task {task.id} is claimed by unregistered agent: {task.claimed_by}",
                location=task.id,
                fix=f"Register the agent: 'tick agent register {task.claimed_by}'",
            )
        if task.status == "done" and task.claimed_by:
            result.warning(
                f"Task {task.id} is done but still claimed by {task.claimed_by}",
                location=task.id,
                fix="Clear claimed_by on completed tasks",
                code="done_claimed",
            )
        if not task.history:
            result.warning(f"Task {task.id} has no history entries", location=task.id)
        if (
            task.estimated_hours
            and task.actual_hours is not None
            and task.actual_hours > 2 * task.estimated_hours
        ):
            result.warning(
                f"Task {task.id} is 2x over estimate "
                f"({task.actual_hours}h actual vs {task.estimated_hours}h estimated)",
                location=task.id,
            )


def _check_references(tick_file: TickFile, result: ValidationResult) -> None:
    task_ids = {task.id for task in tick_file.tasks}
    for task in tick_file.tasks:
        for dep in task.depends_on:
            if dep not in task_ids:
                result.error(
                    f"Task {task.id} depends on non-existent task: {dep}",
                    location=task.id,
                    fix=f"Remove {dep} from depends_on",
                    code="dangling_depends_on",
                    subject=dep,
                )
        for blocked in task.blocks:
            if blocked not in task_ids:
                result.error(
                    f"Task {task.id} blocks non-existent task: {blocked}",
                    location=task.id,
                    fix=f"Remove {blocked} from blocks",
                    code="dangling_blocks",
                    subject=blocked,
                )


def _dependency_graph(tasks: Iterable[Task]) -> Dict[str, List[str]]:
    graph: Dict[str, List[str]] = {}
    for task in tasks:
        graph.setdefault(task.id, list(task.depends_on))
    return graph


def _find_cycles(graph: Dict[str, List[str]], roots: Iterable[str]) -> List[List[str]]:
    """DFS with a recursion stack and a global visited set.

    Each cycle is reported once, as the contiguous path closing back on
    its first node (A, B, C, A).
    """
    visited: Set[str] = set()
    cycles: List[List[str]] = []

    for root in roots:
        if root in visited:
            continue
        stack: List[str] = []
        on_stack: Set[str] = set()
        # Iterative DFS: (node, index of next neighbour)
        frames = [(root, 0)]
        stack.append(root)
        on_stack.add(root)
        visited.add(root)

        while frames:
            node, position = frames[-1]
            neighbours = [n for n in graph.get(node, []) if n in graph]
            if position < len(neighbours):
                frames[-1] = (node, position + 1)
                nxt = neighbours[position]
                if nxt in on_stack:
                    cycles.append(stack[stack.index(nxt):] + [nxt])
                elif nxt not in visited:
                    visited.add(nxt)
                    stack.append(nxt)
                    on_stack.add(nxt)
                    frames.append((nxt, 0))
            else:
                frames.pop()
                stack.pop()
                on_stack.discard(node)

    return cycles


def _check_cycles(tasks: List[Task], result: ValidationResult) -> None:
    graph = _dependency_graph(tasks)
    for cycle in _find_cycles(graph, graph.keys()):
        result.error(
            f"Circular dependency: {' → '.join(cycle)}",
            location=cycle[0],
            fix="Remove one dependency to break the cycle",
        )


def find_dependency_cycle(
    tasks: Iterable[Task], task_id: str, depends_on: Optional[List[str]] = None
) -> Optional[List[str]]:
    """
    Find a dependency cycle through one task.

    Args:
        tasks: All tasks of the document.
        task_id: Task whose dependencies are checked.
        depends_on: Proposed dependency list for task_id; the task's current
            list is used when omitted.

    Returns:
        The cycle as a path starting and ending at task_id, or None.
    """
    graph = _dependency_graph(tasks)
    if depends_on is not None:
        graph[task_id] = list(depends_on)
    for cycle in _find_cycles(graph, [task_id]):
        if task_id in cycle:
            start = cycle.index(task_id)
            ring = cycle[:-1]
            return ring[start:] + ring[:start] + [task_id]
    return None
