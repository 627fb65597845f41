"""
tick archive, archived and repair command implementations.

archive moves finished tasks from TICK.md to ARCHIVE.md; archived lists
them; repair fixes mechanical problems in a damaged TICK.md.
"""

import argparse

from tickmd.cli.output import print_error
from tickmd.core.exceptions import TickError


def cmd_archive(cli_instance, args: argparse.Namespace) -> int:
    """Archive tasks.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: agent, status, before,
            dry_run

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        tasks = cli_instance.project.archive(
            args.agent, status=args.status, before=args.before, dry_run=args.dry_run
        )
    except (TickError, ValueError) as e:
        return print_error(e)

    if not tasks:
        print("No tasks to archive")
        return 0

    prefix = "[DRY RUN] Would archive" if args.dry_run else "Archived"
    for task in tasks:
        print(f"  {task.id} · {task.title}")
    print(f"{prefix} {len(tasks)} task(s)")
    return 0


def cmd_archived(cli_instance, args: argparse.Namespace) -> int:
    """List archived tasks, most recent first."""
    entries = cli_instance.project.list_archive()
    if not entries:
        print("No archived tasks")
        return 0

    for entry in list(reversed(entries))[: args.limit]:
        when = f"  (archived {entry.archived_at[:10]})" if entry.archived_at else ""
        print(f"  {entry.id} · {entry.title}{when}")
    if len(entries) > args.limit:
        print(f"  ... and {len(entries) - args.limit} more")
    return 0


def cmd_repair(cli_instance, args: argparse.Namespace) -> int:
    """Repair TICK.md.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: dry_run

    Returns:
        Exit code (0 when nothing blocks the repair, 1 otherwise)
    """
    project = cli_instance.project
    try:
        report = project.repair(dry_run=args.dry_run)
    except TickError as e:
        return print_error(e)

    if report.fixed:
        print("Would fix:" if args.dry_run or report.blocking else "Fixed:")
        for line in report.fixed:
            print(f"  - {line}")
    if report.manual:
        print("Needs manual attention:")
        for line in report.manual:
            print(f"  - {line}")
    if report.blocking:
        print("Cannot repair automatically; fix these by hand first:")
        for line in report.blocking:
            print(f"  - {line}")
        return 1

    if not report.fixed:
        print("Nothing to repair")
    elif not args.dry_run and project.last_backup is not None:
        print(f"Backup saved as {project.last_backup.filename}")
    return 0
