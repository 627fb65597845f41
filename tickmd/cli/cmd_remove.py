"""
tick delete command implementation.

Removes a task and strips references to it from other tasks.
"""

import argparse

from tickmd.cli.output import print_error
from tickmd.core.exceptions import TickError


def cmd_delete(cli_instance, args: argparse.Namespace) -> int:
    """Delete a task.

    Without --force, refuses tasks that are in progress, claimed, or
    depended on by other tasks.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: task_id, agent, force

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        task = cli_instance.project.delete(args.task_id, args.agent, force=args.force)
    except (TickError, ValueError) as e:
        return print_error(e)

    print(f"Task deleted: {task.id} · {task.title}")
    return 0
