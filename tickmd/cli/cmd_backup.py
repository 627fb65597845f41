"""
tick backup and undo command implementations.

backup lists, creates, shows, restores and prunes copies of TICK.md kept in
.tick/backup/; undo reverts the last tick auto-commit.
"""

import argparse

from tickmd.cli.output import print_error
from tickmd.core.exceptions import TickError
from tickmd.runtime_git import GitSyncError


def cmd_backup(cli_instance, args: argparse.Namespace) -> int:
    """Manage TICK.md backups.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: backup_command and its
            options (limit, id, keep)

    Returns:
        Exit code (0 on success, 1 on error)
    """
    project = cli_instance.project
    try:
        if args.backup_command == "create":
            backup = project.backup_create()
            print(f"Backup created: {backup.filename}")
            return 0

        if args.backup_command == "restore":
            backup = project.restore_backup(args.id)
            print(f"Restored TICK.md from {backup.filename}")
            if project.last_backup is not None:
                print(f"Previous version saved as {project.last_backup.filename}")
            return 0

        if args.backup_command == "show":
            backup = project.backups.get(args.id)
            print(project.backups.read(backup), end="")
            return 0

        if args.backup_command == "clean":
            removed = project.clean_backups(args.keep)
            print(f"Removed {removed} backup(s), kept the newest {args.keep}")
            return 0

        backups = project.list_backups()
    except (TickError, ValueError, OSError) as e:
        return print_error(e)

    if not backups:
        print("No backups found")
        return 0
    for index, backup in enumerate(backups[: args.limit]):
        print(f"  {index:>3}  {backup.timestamp}  {backup.size:>8} bytes  {backup.hash}")
    if len(backups) > args.limit:
        print(f"  ... and {len(backups) - args.limit} more")
    return 0


def cmd_undo(cli_instance, args: argparse.Namespace) -> int:
    """Revert the last tick commit.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: force, dry_run

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        message = cli_instance.project.undo(force=args.force, dry_run=args.dry_run)
    except (TickError, GitSyncError) as e:
        return print_error(e)

    if args.dry_run:
        print(f"[DRY RUN] Would revert: {message}")
    else:
        print(f"Reverted: {message}")
    return 0
