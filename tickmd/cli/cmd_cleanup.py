"""
tick locks and compact command implementations.

locks lists or removes stale advisory locks; compact trims task history.
"""

import argparse

from tickmd.cli.output import print_error
from tickmd.core.exceptions import TickError
from tickmd.store.lock_store import lock_age


def cmd_locks(cli_instance, args: argparse.Namespace) -> int:
    """List locks or clean up stale ones.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: locks_command, max_age

    Returns:
        Exit code (0 on success, 1 on error)
    """
    project = cli_instance.project
    try:
        if args.locks_command == "cleanup":
            removed = project.cleanup_locks(args.max_age)
            print(f"Removed {removed} stale lock(s)")
            return 0

        locks = project.locks.get_all_locks()
    except (TickError, ValueError, OSError) as e:
        return print_error(e)

    if not locks:
        print("No locks held")
        return 0
    for info in locks:
        age = lock_age(info)
        age_text = f"{int(age.total_seconds())}s" if age is not None else "unknown age"
        print(f"  {info.task_id}  {info.agent}  pid {info.pid}  {age_text}")
    return 0


def cmd_compact(cli_instance, args: argparse.Namespace) -> int:
    """Compact task history.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: agent, max, milestones_only,
            task, dry_run, no_backup

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        removed = cli_instance.project.compact_history(
            args.agent,
            max_entries=args.max,
            milestones_only=args.milestones_only,
            task_id=args.task,
            dry_run=args.dry_run,
            backup=not args.no_backup,
        )
    except (TickError, ValueError) as e:
        return print_error(e)

    if not removed:
        print(f"All tasks have {args.max} or fewer history entries.")
        return 0

    prefix = "[DRY RUN] Would remove" if args.dry_run else "Removed"
    for task_id, count in removed.items():
        print(f"  {task_id}: -{count}")
    print(f"{prefix} {sum(removed.values())} history entries from {len(removed)} task(s)")
    return 0
