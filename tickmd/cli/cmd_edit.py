"""
tick edit command implementation.

Changes task fields; every change is listed in one `edited` history entry.
"""

import argparse

from tickmd.cli.output import format_task, print_error, split_csv
from tickmd.core.exceptions import TickError


def cmd_edit(cli_instance, args: argparse.Namespace) -> int:
    """Edit a task.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: task_id, agent and the
            optional field options (title, status, priority, assign, tags,
            depends_on, blocks, description, estimate, actual, due)

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        task = cli_instance.project.edit(
            args.task_id,
            args.agent,
            title=args.title,
            status=args.status,
            priority=args.priority,
            assigned_to=args.assign,
            tags=split_csv(args.tags),
            depends_on=split_csv(args.depends_on),
            blocks=split_csv(args.blocks),
            description=args.description,
            estimated_hours=args.estimate,
            actual_hours=args.actual,
            due_date=args.due,
        )
    except (TickError, ValueError) as e:
        return print_error(e)

    print(f"Updated {format_task(task)}")
    print(f"  {task.history[-1].note}")
    return 0
