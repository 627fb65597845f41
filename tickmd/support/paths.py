"""
Path helpers for the project document and its .tick/ side files.

A project root is the directory holding TICK.md; side files live under
<root>/.tick/.
"""

from pathlib import Path
from typing import Optional, Union

from tickmd.constants import (
    ARCHIVE_FILENAME,
    BACKUP_DIR_NAME,
    BATCH_MARKER_FILENAME,
    CONFIG_FILENAME,
    LOCK_FILENAME,
    NOTIFY_CONFIG_FILENAME,
    QUEUE_FILENAME,
    TICK_DIR_NAME,
    TICK_FILENAME,
)


class ProjectPaths:
    """Resolved locations of every file a project uses."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser().resolve()

    @property
    def tick_file(self) -> Path:
        return self.root / TICK_FILENAME

    @property
    def tick_dir(self) -> Path:
        return self.root / TICK_DIR_NAME

    @property
    def lock_file(self) -> Path:
        return self.tick_dir / LOCK_FILENAME

    @property
    def queue_file(self) -> Path:
        return self.tick_dir / QUEUE_FILENAME

    @property
    def config_file(self) -> Path:
        return self.tick_dir / CONFIG_FILENAME

    @property
    def notify_config_file(self) -> Path:
        return self.tick_dir / NOTIFY_CONFIG_FILENAME

    @property
    def backup_dir(self) -> Path:
        return self.tick_dir / BACKUP_DIR_NAME

    @property
    def archive_file(self) -> Path:
        return self.root / ARCHIVE_FILENAME

    @property
    def batch_marker(self) -> Path:
        return self.tick_dir / BATCH_MARKER_FILENAME

    def ensure_tick_dir(self) -> None:
        """Ensure .tick/ and an empty lock file exist."""
        self.tick_dir.mkdir(parents=True, exist_ok=True)
        self.lock_file.touch(exist_ok=True)


def find_project_root(start: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Walk up from start (default: cwd) to the first directory holding TICK.md.

    Returns:
        The project root, or None if no ancestor holds TICK.md.
    """
    current = Path(start or Path.cwd()).expanduser().resolve()
    for candidate in [current, *current.parents]:
        if (candidate / TICK_FILENAME).exists():
            return candidate
    return None
