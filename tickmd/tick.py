#!/usr/bin/env python3
"""
tick: multi-agent task coordination through a shared TICK.md file.

Commands:
  init      Create TICK.md and .tick/ in the current directory
  add       Add a new task
  status    Display tasks grouped by status
  claim     Claim a task for an agent
  release   Release a claimed task
  done      Complete a task
  comment   Add a comment to a task
  reopen    Reopen a completed task
  edit      Change task fields
  delete    Delete a task
  compact   Trim task history
  archive   Move finished tasks to ARCHIVE.md
  archived  List archived tasks
  backup    List, create, restore or prune TICK.md backups
  undo      Revert the last tick commit
  repair    Fix mechanical problems in TICK.md
  agent     Register or list agents
  validate  Check TICK.md for errors
  locks     List or clean up advisory locks
  notify    Send and manage webhook notifications
  sync      Commit TICK.md changes to git
  batch     Group several commands into one commit
"""

import argparse
import logging
import sys
from typing import List, Optional

from tickmd.cli import TickCLI
from tickmd.constants import (
    DEFAULT_ARCHIVE_LIST_LIMIT,
    DEFAULT_ARCHIVE_STATUS,
    DEFAULT_BACKUP_KEEP,
    DEFAULT_BACKUP_LIST_LIMIT,
    DEFAULT_ID_PREFIX,
    DEFAULT_MAX_HISTORY,
)
from tickmd.core.models import VALID_PRIORITIES, VALID_STATUSES

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _add_task_field_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--assign", help="Agent the task is assigned to")
    parser.add_argument("--tags", help="Comma-separated tags")
    parser.add_argument("--depends-on", help="Comma-separated task IDs this task depends on")
    parser.add_argument("--blocks", help="Comma-separated task IDs this task blocks")
    parser.add_argument("--description", help="Task description")
    parser.add_argument("--estimate", type=float, help="Estimated hours")
    parser.add_argument("--due", help="Due date (YYYY-MM-DD)")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for every tick command."""
    parser = argparse.ArgumentParser(
        prog="tick", description="Multi-agent task coordination via TICK.md"
    )
    parser.add_argument("--dir", default=None, help="Project directory (default: search from cwd)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    commit_group = parser.add_mutually_exclusive_group()
    commit_group.add_argument(
        "--commit", dest="auto_commit", action="store_const", const=True, default=None,
        help="Force auto-commit (even in batch mode)",
    )
    commit_group.add_argument(
        "--no-commit", dest="auto_commit", action="store_const", const=False,
        help="Skip auto-commit",
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # 'init' command
    init_parser = subparsers.add_parser("init", help="Create TICK.md and .tick/")
    init_parser.add_argument("--name", help="Project name (default: directory name)")
    init_parser.add_argument("--prefix", default=DEFAULT_ID_PREFIX, help="Task ID prefix (default: TASK)")
    init_parser.add_argument("--title", help="Project title")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing TICK.md")

    # 'add' command
    add_parser = subparsers.add_parser("add", help="Add a new task")
    add_parser.add_argument("title", help="Task title")
    add_parser.add_argument("--by", required=True, help="Agent creating the task (e.g. @alice)")
    add_parser.add_argument("--priority", default="medium", choices=VALID_PRIORITIES)
    _add_task_field_options(add_parser)

    # 'status' command
    status_parser = subparsers.add_parser("status", help="Display tasks grouped by status")
    status_parser.add_argument("--id", help="Filter by task ID")
    status_parser.add_argument("--status", choices=VALID_STATUSES, help="Filter by status")
    status_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # task transition commands
    for name, help_text in [
        ("claim", "Claim a task for an agent"),
        ("release", "Release a claimed task"),
        ("done", "Complete a task"),
    ]:
        transition_parser = subparsers.add_parser(name, help=help_text)
        transition_parser.add_argument("task_id", help="Task ID")
        transition_parser.add_argument("agent", help="Acting agent (e.g. @alice)")

    comment_parser = subparsers.add_parser("comment", help="Add a comment to a task")
    comment_parser.add_argument("task_id", help="Task ID")
    comment_parser.add_argument("agent", help="Acting agent")
    comment_parser.add_argument("--note", required=True, help="Comment text")

    reopen_parser = subparsers.add_parser("reopen", help="Reopen a completed task")
    reopen_parser.add_argument("task_id", help="Task ID")
    reopen_parser.add_argument("agent", help="Acting agent")
    reopen_parser.add_argument(
        "--status", default="reopened", choices=["backlog", "todo", "in_progress", "reopened"],
        help="Status after reopening (default: reopened)",
    )
    reopen_parser.add_argument("--note", help="Reason for reopening")

    # 'edit' command
    edit_parser = subparsers.add_parser("edit", help="Change task fields")
    edit_parser.add_argument("task_id", help="Task ID")
    edit_parser.add_argument("agent", help="Acting agent")
    edit_parser.add_argument("--title", help="New title")
    edit_parser.add_argument("--status", help="New status")
    edit_parser.add_argument("--priority", help="New priority")
    edit_parser.add_argument("--actual", type=float, help="Actual hours spent")
    _add_task_field_options(edit_parser)

    # 'delete' command
    delete_parser = subparsers.add_parser("delete", help="Delete a task")
    delete_parser.add_argument("task_id", help="Task ID")
    delete_parser.add_argument("agent", help="Acting agent")
    delete_parser.add_argument(
        "--force", action="store_true",
        help="Delete even if in progress, claimed, or depended on",
    )

    # 'compact' command
    compact_parser = subparsers.add_parser("compact", help="Trim task history")
    compact_parser.add_argument("agent", help="Acting agent")
    compact_parser.add_argument(
        "--max", type=int, default=DEFAULT_MAX_HISTORY,
        help=f"Maximum history entries per task (default: {DEFAULT_MAX_HISTORY})",
    )
    compact_parser.add_argument(
        "--milestones-only", action="store_true",
        help="Keep only created/completed/reopened/blocked entries",
    )
    compact_parser.add_argument("--task", help="Compact a single task")
    compact_parser.add_argument("--dry-run", action="store_true", help="Show what would be removed")
    compact_parser.add_argument(
        "--no-backup", action="store_true", help="Skip the backup taken before writing"
    )

    # 'archive' command
    archive_parser = subparsers.add_parser("archive", help="Move finished tasks to ARCHIVE.md")
    archive_parser.add_argument("agent", help="Acting agent")
    archive_parser.add_argument(
        "--status", default=DEFAULT_ARCHIVE_STATUS, choices=VALID_STATUSES,
        help=f"Status of tasks to archive (default: {DEFAULT_ARCHIVE_STATUS})",
    )
    archive_parser.add_argument(
        "--before", help="Only tasks last updated before a date or age (e.g. 2026-01-01, 30d, 2w)"
    )
    archive_parser.add_argument("--dry-run", action="store_true", help="Show what would be archived")

    archived_parser = subparsers.add_parser("archived", help="List archived tasks")
    archived_parser.add_argument(
        "--limit", type=int, default=DEFAULT_ARCHIVE_LIST_LIMIT,
        help=f"Maximum entries to show (default: {DEFAULT_ARCHIVE_LIST_LIMIT})",
    )

    # 'backup' command
    backup_parser = subparsers.add_parser("backup", help="List, create, restore or prune TICK.md backups")
    backup_sub = backup_parser.add_subparsers(dest="backup_command", required=True)
    backup_list_parser = backup_sub.add_parser("list", help="List backups, newest first")
    backup_list_parser.add_argument(
        "--limit", type=int, default=DEFAULT_BACKUP_LIST_LIMIT,
        help=f"Maximum backups to show (default: {DEFAULT_BACKUP_LIST_LIMIT})",
    )
    backup_sub.add_parser("create", help="Back up TICK.md now")
    for name, help_text in [
        ("restore", "Replace TICK.md with a backup"),
        ("show", "Print a backup"),
    ]:
        backup_id_parser = backup_sub.add_parser(name, help=help_text)
        backup_id_parser.add_argument("id", help="Backup index (0 is the newest) or timestamp prefix")
    backup_clean_parser = backup_sub.add_parser("clean", help="Delete old backups")
    backup_clean_parser.add_argument(
        "--keep", type=int, default=DEFAULT_BACKUP_KEEP,
        help=f"Number of newest backups to keep (default: {DEFAULT_BACKUP_KEEP})",
    )

    # 'undo' command
    undo_parser = subparsers.add_parser("undo", help="Revert the last tick commit")
    undo_parser.add_argument(
        "--force", action="store_true", help="Revert even if the last commit was not made by tick"
    )
    undo_parser.add_argument("--dry-run", action="store_true", help="Show the commit that would be reverted")

    # 'repair' command
    repair_parser = subparsers.add_parser("repair", help="Fix mechanical problems in TICK.md")
    repair_parser.add_argument("--dry-run", action="store_true", help="Show fixes without writing")

    # 'agent' command
    agent_parser = subparsers.add_parser("agent", help="Register or list agents")
    agent_sub = agent_parser.add_subparsers(dest="agent_command", required=True)
    register_parser = agent_sub.add_parser("register", help="Register an agent")
    register_parser.add_argument("name", help="Agent name (e.g. @alice)")
    register_parser.add_argument("--type", default="human", choices=["human", "bot"])
    register_parser.add_argument("--roles", default="developer", help="Comma-separated roles")
    register_parser.add_argument(
        "--trust", choices=["owner", "trusted", "restricted", "read-only"],
        help="Trust level (default: agents.default_trust)",
    )
    register_parser.add_argument("--by", help="Agent performing the registration (default: the new agent)")
    list_parser = agent_sub.add_parser("list", help="List agents")
    list_parser.add_argument("--status", choices=["working", "idle", "offline"])

    # 'validate' command
    validate_parser = subparsers.add_parser("validate", help="Check TICK.md for errors")
    validate_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # 'locks' command
    locks_parser = subparsers.add_parser("locks", help="List or clean up advisory locks")
    locks_sub = locks_parser.add_subparsers(dest="locks_command", required=True)
    locks_sub.add_parser("list", help="List held locks")
    cleanup_parser = locks_sub.add_parser("cleanup", help="Remove stale locks")
    cleanup_parser.add_argument(
        "--max-age", type=int, default=None,
        help="Age in seconds after which a dead process's lock is stale (default: locking.timeout)",
    )

    # 'notify' command
    notify_parser = subparsers.add_parser("notify", help="Send and manage webhook notifications")
    notify_sub = notify_parser.add_subparsers(dest="notify_command", required=True)
    send_parser = notify_sub.add_parser("send", help="Notify webhooks subscribed to an event")
    send_parser.add_argument("event", help="Event name (e.g. broadcast, task.done)")
    send_parser.add_argument("message", help="Message text")
    send_parser.add_argument("--queue-only", action="store_true", help="Queue without delivering now")
    process_parser = notify_sub.add_parser("process", help="Deliver queued notifications that are due")
    process_parser.add_argument("--all", action="store_true", help="Also deliver items not yet due")
    notify_sub.add_parser("status", help="Show retry queue statistics")
    notify_sub.add_parser("retry-failed", help="Requeue dead-lettered notifications")
    remove_parser = notify_sub.add_parser("remove", help="Remove one queued notification")
    remove_parser.add_argument("id", help="Queue item ID")
    notify_sub.add_parser("clear", help="Drop every queued notification")
    notify_sub.add_parser("list", help="List configured webhooks")

    # 'sync' command
    sync_parser = subparsers.add_parser("sync", help="Commit TICK.md changes to git")
    sync_parser.add_argument("--message", "-m", help="Commit message")
    sync_parser.add_argument("--pull", action="store_true", help="Pull before committing")
    sync_parser.add_argument("--push", action="store_true", help="Push after committing")

    # 'batch' command
    batch_parser = subparsers.add_parser("batch", help="Group several commands into one commit")
    batch_parser.add_argument("batch_command", choices=["start", "commit", "abort"])
    batch_parser.add_argument("--message", "-m", help="Commit message for 'batch commit'")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for tick CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    if not args.command:
        parser.print_help()
        return 1

    cli = TickCLI(args.dir, auto_commit=args.auto_commit)
    handler = getattr(cli, f"cmd_{args.command}", None)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
