"""
tick CLI command implementations.

This package contains individual command handlers for the tick CLI.
Commands are organized into separate modules for maintainability.

Public API:
- TickCLI: Facade class the entry point and tests drive commands through
"""

import argparse
from pathlib import Path
from typing import Optional, Union

# Import command modules (not functions) to avoid namespace conflicts
from tickmd.cli import cmd_add as _cmd_add_module
from tickmd.cli import cmd_agent as _cmd_agent_module
from tickmd.cli import cmd_archive as _cmd_archive_module
from tickmd.cli import cmd_backup as _cmd_backup_module
from tickmd.cli import cmd_cleanup as _cmd_cleanup_module
from tickmd.cli import cmd_edit as _cmd_edit_module
from tickmd.cli import cmd_init as _cmd_init_module
from tickmd.cli import cmd_notify as _cmd_notify_module
from tickmd.cli import cmd_remove as _cmd_remove_module
from tickmd.cli import cmd_status as _cmd_status_module
from tickmd.cli import cmd_sync as _cmd_sync_module
from tickmd.cli import cmd_transitions as _cmd_transitions_module
from tickmd.operations import TickProject
from tickmd.support.paths import find_project_root


class TickCLI:
    """tick CLI interface.

    Resolves the project root once and delegates each command to its
    module.
    """

    def __init__(self, root: Optional[Union[str, Path]] = None, auto_commit: Optional[bool] = None):
        """Initialize CLI with the project found at or above root (default: cwd)."""
        start = Path(root) if root else Path.cwd()
        project_root = find_project_root(start) or start
        self.project = TickProject(project_root, auto_commit=auto_commit)

    def cmd_init(self, args: argparse.Namespace) -> int:
        """Initialize a project (delegates to cmd_init module)."""
        return _cmd_init_module.cmd_init(self, args)

    def cmd_add(self, args: argparse.Namespace) -> int:
        """Add a task (delegates to cmd_add module)."""
        return _cmd_add_module.cmd_add(self, args)

    def cmd_status(self, args: argparse.Namespace) -> int:
        """Display project status (delegates to cmd_status module)."""
        return _cmd_status_module.cmd_status(self, args)

    def cmd_validate(self, args: argparse.Namespace) -> int:
        """Validate TICK.md (delegates to cmd_status module)."""
        return _cmd_status_module.cmd_validate(self, args)

    def cmd_claim(self, args: argparse.Namespace) -> int:
        """Claim a task (delegates to cmd_transitions module)."""
        return _cmd_transitions_module.cmd_claim(self, args)

    def cmd_release(self, args: argparse.Namespace) -> int:
        """Release a task (delegates to cmd_transitions module)."""
        return _cmd_transitions_module.cmd_release(self, args)

    def cmd_done(self, args: argparse.Namespace) -> int:
        """Complete a task (delegates to cmd_transitions module)."""
        return _cmd_transitions_module.cmd_done(self, args)

    def cmd_comment(self, args: argparse.Namespace) -> int:
        """Comment on a task (delegates to cmd_transitions module)."""
        return _cmd_transitions_module.cmd_comment(self, args)

    def cmd_reopen(self, args: argparse.Namespace) -> int:
        """Reopen a task (delegates to cmd_transitions module)."""
        return _cmd_transitions_module.cmd_reopen(self, args)

    def cmd_edit(self, args: argparse.Namespace) -> int:
        """Edit a task (delegates to cmd_edit module)."""
        return _cmd_edit_module.cmd_edit(self, args)

    def cmd_delete(self, args: argparse.Namespace) -> int:
        """Delete a task (delegates to cmd_remove module)."""
        return _cmd_remove_module.cmd_delete(self, args)

    def cmd_compact(self, args: argparse.Namespace) -> int:
        """Compact task history (delegates to cmd_cleanup module)."""
        return _cmd_cleanup_module.cmd_compact(self, args)

    def cmd_locks(self, args: argparse.Namespace) -> int:
        """List or clean up locks (delegates to cmd_cleanup module)."""
        return _cmd_cleanup_module.cmd_locks(self, args)

    def cmd_backup(self, args: argparse.Namespace) -> int:
        """Manage TICK.md backups (delegates to cmd_backup module)."""
        return _cmd_backup_module.cmd_backup(self, args)

    def cmd_undo(self, args: argparse.Namespace) -> int:
        """Revert the last tick commit (delegates to cmd_backup module)."""
        return _cmd_backup_module.cmd_undo(self, args)

    def cmd_archive(self, args: argparse.Namespace) -> int:
        """Archive tasks (delegates to cmd_archive module)."""
        return _cmd_archive_module.cmd_archive(self, args)

    def cmd_archived(self, args: argparse.Namespace) -> int:
        """List archived tasks (delegates to cmd_archive module)."""
        return _cmd_archive_module.cmd_archived(self, args)

    def cmd_repair(self, args: argparse.Namespace) -> int:
        """Repair TICK.md (delegates to cmd_archive module)."""
        return _cmd_archive_module.cmd_repair(self, args)

    def cmd_agent(self, args: argparse.Namespace) -> int:
        """Register or list agents (delegates to cmd_agent module)."""
        return _cmd_agent_module.cmd_agent(self, args)

    def cmd_notify(self, args: argparse.Namespace) -> int:
        """Manage notifications (delegates to cmd_notify module)."""
        return _cmd_notify_module.cmd_notify(self, args)

    def cmd_sync(self, args: argparse.Namespace) -> int:
        """Sync with git (delegates to cmd_sync module)."""
        return _cmd_sync_module.cmd_sync(self, args)

    def cmd_batch(self, args: argparse.Namespace) -> int:
        """Batch mode (delegates to cmd_sync module)."""
        return _cmd_sync_module.cmd_batch(self, args)
