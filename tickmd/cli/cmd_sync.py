"""
tick sync and batch command implementations.

sync commits project changes to git (optionally pulling and pushing);
batch suppresses per-command auto-commits and commits once at the end.
"""

import argparse

from tickmd.cli.output import print_error
from tickmd.core.exceptions import TickError
from tickmd.runtime_git import GitSyncError


def cmd_sync(cli_instance, args: argparse.Namespace) -> int:
    """Sync TICK.md and .tick/ with git.

    Args:
        cli_instance: TickCLI instance with project
        args: Parsed command-line arguments with: message, pull, push

    Returns:
        Exit code (0 on success, 1 on error)
    """
    try:
        commit_hash = cli_instance.project.sync(
            message=args.message,
            pull=args.pull,
            push=True if args.push else None,
        )
    except (TickError, GitSyncError) as e:
        return print_error(e)

    if commit_hash:
        print(f"Committed {commit_hash}")
    else:
        print("No changes to sync")
    return 0


def cmd_batch(cli_instance, args: argparse.Namespace) -> int:
    """Start, commit, or abort a batch of changes."""
    project = cli_instance.project
    if args.batch_command == "start":
        project.start_batch()
        print("Batch mode started: auto-commits are suppressed")
        return 0

    try:
        commit_hash = project.end_batch(args.message, commit=args.batch_command == "commit")
    except (TickError, OSError) as e:
        return print_error(e)

    if args.batch_command == "abort":
        print("Batch mode ended without committing")
    elif commit_hash:
        print(f"Batch committed {commit_hash}")
    else:
        print("Batch mode ended; nothing to commit")
    return 0
