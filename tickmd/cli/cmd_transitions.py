"""
tick claim, release, done, comment and reopen command implementations.

Each wraps one TickProject operation and reports the resulting task state.
"""

import argparse

from tickmd.cli.output import format_task, print_error
from tickmd.core.exceptions import TickError


def cmd_claim(cli_instance, args: argparse.Namespace) -> int:
    """Claim a task for an agent (backlog/todo -> in_progress).

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: task_id, agent

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        task = cli_instance.project.claim(args.task_id, args.agent)
    except (TickError, ValueError) as e:
        return print_error(e)

    print(f"Claimed {format_task(task)}")
    return 0


def cmd_release(cli_instance, args: argparse.Namespace) -> int:
    """Release a claimed task (in_progress -> todo)."""
    try:
        task = cli_instance.project.release(args.task_id, args.agent)
    except (TickError, ValueError) as e:
        return print_error(e)

    print(f"Released {format_task(task)}")
    return 0


def cmd_done(cli_instance, args: argparse.Namespace) -> int:
    """Complete a task and unblock its dependents."""
    project = cli_instance.project
    try:
        task, unblocked = project.complete(args.task_id, args.agent)
    except (TickError, ValueError) as e:
        return print_error(e)

    print(f"Completed {format_task(task)}")
    for dependent in unblocked:
        print(f"  Ready: {dependent.id} · {dependent.title}")
    return 0


def cmd_comment(cli_instance, args: argparse.Namespace) -> int:
    """Add a comment to a task's history."""
    try:
        task = cli_instance.project.comment(args.task_id, args.agent, args.note)
    except (TickError, ValueError) as e:
        return print_error(e)

    print(f"Comment added to {task.id} ({len(task.history)} history entries)")
    return 0


def cmd_reopen(cli_instance, args: argparse.Namespace) -> int:
    """Reopen a done task, re-blocking unfinished dependents."""
    project = cli_instance.project
    try:
        task = project.reopen(args.task_id, args.agent, status=args.status, note=args.note)
        blocked = [
            t for t in project.read().dependents_of(task.id) if t.status == "blocked"
        ]
    except (TickError, ValueError) as e:
        return print_error(e)

    print(f"Reopened {format_task(task)}")
    for dependent in blocked:
        print(f"  Blocked: {dependent.id} · {dependent.title}")
    return 0
