"""
Timestamped copies of TICK.md kept in .tick/backup/.

Destructive operations (delete, compact, archive, repair, restore) copy the
current document here before replacing it. File names encode the creation
time, e.g. TICK-2026-02-17T12-30-45-123Z.md; a numeric suffix separates
backups taken within the same millisecond. Only the newest MAX_BACKUPS are
kept.
"""

import hashlib
import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from tickmd.constants import MAX_BACKUPS
from tickmd.core.exceptions import BackupNotFoundError, NotFoundError
from tickmd.core.naming import now_iso

logger = logging.getLogger(__name__)

BACKUP_NAME_RE = re.compile(
    r"^TICK-(\d{4}-\d{2}-\d{2})T(\d{2})-(\d{2})-(\d{2})-(\d{3})Z(?:-(\d+))?\.md$"
)


def hash_content(content: bytes) -> str:
    """Short sha256 digest used to compare backups at a glance."""
    return hashlib.sha256(content).hexdigest()[:12]


@dataclass
class BackupInfo:
    """One backup file."""

    timestamp: str
    filename: str
    path: Path
    size: int
    hash: str
    sequence: int = 0


class BackupStore:
    """Creates, lists, and prunes document backups in one directory."""

    def __init__(self, backup_dir: Union[str, Path], max_backups: int = MAX_BACKUPS):
        self.backup_dir = Path(backup_dir)
        self.max_backups = max_backups

    def create(self, source: Union[str, Path], now: Optional[str] = None) -> BackupInfo:
        """
        Copy a document into the backup directory.

        Args:
            source: File to back up.
            now: Backup time (defaults to current time).

        Returns:
            Info of the new backup.

        Raises:
            NotFoundError: If the source does not exist.
        """
        source = Path(source)
        try:
            content = source.read_bytes()
        except FileNotFoundError:
            raise NotFoundError(str(source))

        timestamp = now or now_iso()
        stem = "TICK-" + timestamp.replace(":", "-").replace(".", "-")
        self.backup_dir.mkdir(parents=True, exist_ok=True)

        sequence = 0
        filename = f"{stem}.md"
        while (self.backup_dir / filename).exists():
            sequence += 1
            filename = f"{stem}-{sequence}.md"
        target = self.backup_dir / filename

        temp_file = self.backup_dir / f".{filename}.{os.getpid()}.{time.time_ns()}.tmp"
        try:
            with open(temp_file, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_file, target)
        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

        info = BackupInfo(
            timestamp=timestamp,
            filename=filename,
            path=target,
            size=len(content),
            hash=hash_content(content),
            sequence=sequence,
        )
        logger.debug(f"Backed up {source} to {target}")
        self.clean(self.max_backups)
        return info

    def list_backups(self) -> List[BackupInfo]:
        """All backups, newest first."""
        if not self.backup_dir.is_dir():
            return []

        backups = []
        for path in self.backup_dir.iterdir():
            match = BACKUP_NAME_RE.match(path.name)
            if not match or not path.is_file():
                continue
            date, hour, minute, second, millis, sequence = match.groups()
            content = path.read_bytes()
            backups.append(
                BackupInfo(
                    timestamp=f"{date}T{hour}:{minute}:{second}.{millis}Z",
                    filename=path.name,
                    path=path,
                    size=len(content),
                    hash=hash_content(content),
                    sequence=int(sequence or 0),
                )
            )
        backups.sort(key=lambda b: (b.timestamp, b.sequence), reverse=True)
        return backups

    def get(self, identifier: Union[int, str]) -> BackupInfo:
        """
        Find a backup by index (0 is the newest) or timestamp prefix.

        Raises:
            BackupNotFoundError: If nothing matches.
        """
        backups = self.list_backups()
        key = str(identifier).strip()
        if key.isdigit():
            index = int(key)
            if index < len(backups):
                return backups[index]
            raise BackupNotFoundError(key)
        for backup in backups:
            if backup.timestamp.startswith(key) or backup.filename.startswith(key):
                return backup
        raise BackupNotFoundError(key)

    def read(self, backup: BackupInfo) -> str:
        return backup.path.read_text(encoding="utf-8")

    def clean(self, keep: int) -> int:
        """
        Delete all but the newest `keep` backups.

        Returns:
            Number of backups removed.
        """
        if keep < 0:
            raise ValueError("keep must be zero or more")
        removed = 0
        for backup in self.list_backups()[keep:]:
            try:
                backup.path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
        if removed:
            logger.info(f"Removed {removed} old backup(s) from {self.backup_dir}")
        return removed
