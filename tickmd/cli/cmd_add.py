"""
tick add command implementation.

Creates a task in backlog with a fresh ID.
"""

import argparse

from tickmd.cli.output import print_error, split_csv
from tickmd.core.exceptions import TickError


def cmd_add(cli_instance, args: argparse.Namespace) -> int:
    """Add a new task.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: title, by, priority, tags,
            assign, depends_on, blocks, description, estimate, due

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        task = cli_instance.project.add_task(
            args.title,
            args.by,
            priority=args.priority,
            tags=split_csv(args.tags),
            assigned_to=args.assign,
            depends_on=split_csv(args.depends_on),
            blocks=split_csv(args.blocks),
            description=args.description or "",
            estimated_hours=args.estimate,
            due_date=args.due,
        )
    except (TickError, ValueError) as e:
        return print_error(e)

    print(f"Created {task.id}: {task.title}")
    if task.tags:
        print(f"  Tags: {', '.join(task.tags)}")
    if task.assigned_to:
        print(f"  Assigned to: {task.assigned_to}")
    return 0
