"""Git source-control sync helpers.

Stages, commits, pulls and pushes the project document and its side files,
with error propagation via custom exceptions. Auto-commit after a mutation is
best-effort: its failures are logged and never fail the mutation.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from tickmd.constants import (
    ARCHIVE_FILENAME,
    DEFAULT_COMMIT_PREFIX,
    GIT_TIMEOUT_SECONDS,
    TICK_DIR_NAME,
    TICK_FILENAME,
)

logger = logging.getLogger(__name__)

SYNC_PATHS = [TICK_FILENAME, f"{TICK_DIR_NAME}/", ARCHIVE_FILENAME]


class GitSyncError(Exception):
    """Base exception for git sync errors."""

    pass


class RepoNotFoundError(GitSyncError):
    """Raised when the project is not inside a git repository."""

    pass


class MergeConflictError(GitSyncError):
    """Raised when a pull leaves unmerged paths."""

    pass


class GitSync:
    """Git operations scoped to one project directory."""

    def __init__(
        self,
        repo_path: Union[str, Path],
        commit_prefix: str = DEFAULT_COMMIT_PREFIX,
        timeout: int = GIT_TIMEOUT_SECONDS,
    ):
        self.repo_path = Path(repo_path)
        self.commit_prefix = commit_prefix
        self.timeout = timeout

    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a git command in the project directory.

        Raises:
            GitSyncError: On timeout, missing git binary, or (with check)
                a non-zero exit status.
        """
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise GitSyncError(f"Timeout running git {args[0]} in {self.repo_path}")
        except OSError as e:
            raise GitSyncError(f"Failed to run git {args[0]}: {e}")

        if check and result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            raise GitSyncError(f"git {args[0]} failed: {detail}")
        return result

    def is_git_repo(self) -> bool:
        try:
            return self._run(["rev-parse", "--git-dir"], check=False).returncode == 0
        except GitSyncError:
            return False

    def ensure_repo(self) -> None:
        """
        Raises:
            RepoNotFoundError: If the project is not in a git repository.
        """
        if not self.is_git_repo():
            raise RepoNotFoundError(
                f"Not a git repository: {self.repo_path}. Run 'git init' first"
            )

    def stage(self, paths: Optional[List[str]] = None) -> None:
        self.ensure_repo()
        existing = [p for p in (paths or SYNC_PATHS) if (self.repo_path / p).exists()]
        if existing:
            self._run(["add", "--", *existing])

    def has_staged_changes(self) -> bool:
        return self._run(["diff", "--cached", "--quiet"], check=False).returncode == 1

    def changed_paths(self) -> List[str]:
        """Modified or untracked project paths, relative to the repository root."""
        self.ensure_repo()
        result = self._run(["status", "--porcelain", "--", *SYNC_PATHS])
        return [line[3:] for line in result.stdout.splitlines() if len(line) > 3]

    def commit(self, message: str, allow_empty: bool = False) -> str:
        """
        Commit staged changes.

        Args:
            message: Commit message, used as given.
            allow_empty: Commit even when nothing is staged.

        Returns:
            Abbreviated hash of the new commit.

        Raises:
            GitSyncError: If the commit fails.
        """
        self.ensure_repo()
        args = ["commit", "-m", message]
        if allow_empty:
            args.append("--allow-empty")
        self._run(args)
        return self._run(["rev-parse", "--short", "HEAD"]).stdout.strip()

    def pull(self, remote: str = "origin", branch: Optional[str] = None) -> None:
        """
        Pull from a remote.

        Raises:
            MergeConflictError: If the pull leaves conflicts.
            GitSyncError: If the pull fails for another reason.
        """
        self.ensure_repo()
        args = ["pull", remote] + ([branch] if branch else [])
        result = self._run(args, check=False)
        if self.has_conflicts():
            raise MergeConflictError(
                "Merge conflicts detected. Resolve conflicts and run 'tick sync' again"
            )
        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip()
            raise GitSyncError(f"git pull failed: {detail}")

    def push(self, remote: str = "origin", branch: Optional[str] = None) -> None:
        self.ensure_repo()
        self._run(["push", remote] + ([branch] if branch else []))

    def last_commit_message(self) -> Optional[str]:
        """Subject line of HEAD, or None in a repository without commits."""
        self.ensure_repo()
        result = self._run(["log", "-1", "--format=%s"], check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def revert_head(self) -> str:
        """
        Revert HEAD with a new commit.

        Returns:
            Abbreviated hash of the revert commit.

        Raises:
            GitSyncError: If the revert fails (for example on conflicts).
        """
        self.ensure_repo()
        try:
            self._run(["revert", "HEAD", "--no-edit"])
        except GitSyncError as e:
            raise GitSyncError(f"{e}. You may need to resolve conflicts manually")
        return self._run(["rev-parse", "--short", "HEAD"]).stdout.strip()

    def has_conflicts(self) -> bool:
        try:
            result = self._run(["diff", "--name-only", "--diff-filter=U"], check=False)
        except GitSyncError:
            return False
        return result.returncode == 0 and bool(result.stdout.strip())

    def auto_commit(self, message: str) -> Optional[str]:
        """
        Stage and commit the project files after a mutation.

        Silently skips outside a git repository. Failures are logged and
        swallowed; the user can still commit by hand.

        Args:
            message: Commit message without prefix.

        Returns:
            Commit hash, or None if nothing was committed.
        """
        if not self.is_git_repo():
            return None
        try:
            self.stage()
            if not self.has_staged_changes():
                return None
            commit_hash = self.commit(f"{self.commit_prefix} {message}")
            logger.info(f"Auto-committed {commit_hash}: {message}")
            return commit_hash
        except GitSyncError as e:
            logger.warning(
                f"Auto-commit failed: {e}. Commit manually with: git add TICK.md .tick/ && git commit"
            )
            return None

    def sync(
        self,
        message: str,
        pull: bool = False,
        push: bool = False,
        remote: str = "origin",
        branch: Optional[str] = None,
    ) -> Optional[str]:
        """
        Pull (optionally), commit project changes, and push (optionally).

        Returns:
            Commit hash, or None if there was nothing to commit.

        Raises:
            RepoNotFoundError: Outside a git repository.
            MergeConflictError: If the pull leaves conflicts.
            GitSyncError: If any git step fails.
        """
        self.ensure_repo()
        if pull:
            self.pull(remote, branch)

        changed = self.changed_paths()
        if changed:
            logger.info(f"Syncing {len(changed)} changed path(s): {', '.join(changed)}")

        commit_hash = None
        self.stage()
        if self.has_staged_changes():
            commit_hash = self.commit(message)
        else:
            logger.info("No changes to sync")

        if push:
            self.push(remote, branch)
        return commit_hash
