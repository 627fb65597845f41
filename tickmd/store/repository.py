"""
Atomic document store for TICK.md with optimistic concurrency and a parse cache.
"""

import copy
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from tickmd.core.exceptions import (
    ConcurrentModificationError,
    NotFoundError,
    SymlinkWriteError,
)
from tickmd.core.models import TickFile
from tickmd.tick_file import parse_tick_file, serialize_tick_file

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class Fingerprint:
    """Snapshot of a file's identity at read time."""

    path: str
    mtime_ns: int
    size: int

    @classmethod
    def from_stat(cls, path: PathLike, stat_result: os.stat_result) -> "Fingerprint":
        return cls(path=str(path), mtime_ns=stat_result.st_mtime_ns, size=stat_result.st_size)

    def matches(self, stat_result: os.stat_result) -> bool:
        return self.mtime_ns == stat_result.st_mtime_ns and self.size == stat_result.st_size


class ParseCache:
    """Memo of parsed documents keyed by path and fingerprint.

    An identical fingerprint is a hit; any other fingerprint re-parses and
    replaces the entry. Entries are handed out as deep copies so callers
    cannot mutate the cached model.
    """

    def __init__(self):
        self._entries: Dict[str, Tuple[Fingerprint, TickFile]] = {}
        self._lock = threading.RLock()
        self.hits = 0
        self.misses = 0

    def get(self, fingerprint: Fingerprint) -> Optional[TickFile]:
        with self._lock:
            entry = self._entries.get(fingerprint.path)
            if entry is not None and entry[0] == fingerprint:
                self.hits += 1
                return copy.deepcopy(entry[1])
            self.misses += 1
            return None

    def put(self, fingerprint: Fingerprint, tick_file: TickFile) -> None:
        with self._lock:
            self._entries[fingerprint.path] = (fingerprint, copy.deepcopy(tick_file))

    def invalidate(self, path: Optional[PathLike] = None) -> None:
        """Drop one path's entry, or every entry when path is None."""
        with self._lock:
            if path is None:
                self._entries.clear()
            else:
                self._entries.pop(str(path), None)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}


class AtomicStore:
    """Reads and writes TICK.md with atomic rename and fingerprint checks.

    Writers never hold a lock on the document. A write succeeds only if the
    target still has the fingerprint the caller read; otherwise the caller
    must re-read and retry.
    """

    def __init__(self, allow_symlink_writes: bool = False, cache: Optional[ParseCache] = None):
        """
        Initialize the store.

        Args:
            allow_symlink_writes: Write through a symlinked document instead
                of refusing.
            cache: Parse cache to use (a private one is created if omitted).
        """
        self.allow_symlink_writes = allow_symlink_writes
        self.cache = cache if cache is not None else ParseCache()

    def read_with_fingerprint(self, path: PathLike) -> Tuple[TickFile, Fingerprint]:
        """
        Read and parse a document, capturing its fingerprint.

        The fingerprint comes from the same open file descriptor the content
        is read from.

        Args:
            path: Document path.

        Returns:
            Tuple of (TickFile, Fingerprint).

        Raises:
            NotFoundError: If the document does not exist.
            ParseError: If the document cannot be parsed.
        """
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                fingerprint = Fingerprint.from_stat(path, os.fstat(f.fileno()))
                cached = self.cache.get(fingerprint)
                if cached is not None:
                    return cached, fingerprint
                content = f.read()
        except FileNotFoundError:
            raise NotFoundError(str(path))

        tick_file = parse_tick_file(content)
        self.cache.put(fingerprint, tick_file)
        return copy.deepcopy(tick_file), fingerprint

    def read(self, path: PathLike) -> TickFile:
        return self.read_with_fingerprint(path)[0]

    def read_text_with_fingerprint(
        self, path: PathLike
    ) -> Tuple[Optional[str], Optional[Fingerprint]]:
        """Raw text and fingerprint of any file; (None, None) if it is missing."""
        try:
            with open(path, "r", encoding="utf-8", newline="") as f:
                fingerprint = Fingerprint.from_stat(path, os.fstat(f.fileno()))
                return f.read(), fingerprint
        except FileNotFoundError:
            return None, None

    def fingerprint(self, path: PathLike) -> Optional[Fingerprint]:
        """Current fingerprint of a file, or None if it does not exist."""
        try:
            return Fingerprint.from_stat(path, os.stat(path))
        except FileNotFoundError:
            return None

    def write_if_unchanged(
        self,
        path: PathLike,
        tick_file: TickFile,
        fingerprint: Optional[Fingerprint] = None,
    ) -> Fingerprint:
        """
        Atomically replace the document if it is unchanged since it was read.

        Args:
            path: Document path.
            tick_file: Model to serialize.
            fingerprint: Fingerprint captured at read time. None writes
                unconditionally (first-time creation).

        Returns:
            Fingerprint of the newly written document.

        Raises:
            ConcurrentModificationError: If the document changed since it was read.
            SymlinkWriteError: If the document is a symlink and symlink writes
                are not allowed.
        """
        new_fingerprint = self._replace(Path(path), serialize_tick_file(tick_file), fingerprint)
        self.cache.put(new_fingerprint, tick_file)
        return new_fingerprint

    def write_text_if_unchanged(
        self,
        path: PathLike,
        content: str,
        fingerprint: Optional[Fingerprint] = None,
    ) -> Fingerprint:
        """
        Atomically replace any file with raw text under the same guard.

        Used for ARCHIVE.md and for restoring backups verbatim.
        """
        new_fingerprint = self._replace(Path(path), content, fingerprint)
        self.cache.invalidate(new_fingerprint.path)
        return new_fingerprint

    def _replace(
        self, path: Path, content: str, fingerprint: Optional[Fingerprint]
    ) -> Fingerprint:
        target = self._resolve_target(path)

        temp_file = target.parent / f"{target.name}.{os.getpid()}.{time.time_ns()}.tmp"
        try:
            with open(temp_file, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())

            if fingerprint is not None:
                self._check_unchanged(target, fingerprint)

            os.replace(temp_file, target)
        except Exception:
            if temp_file.exists():
                temp_file.unlink()
            raise

        new_fingerprint = Fingerprint.from_stat(path, os.stat(target))
        logger.debug(f"Wrote {path} ({new_fingerprint.size} bytes)")
        return new_fingerprint

    def create(self, path: PathLike, tick_file: TickFile, force: bool = False) -> Fingerprint:
        """
        Write a new document.

        Raises:
            FileExistsError: If the document exists and force is False.
        """
        path = Path(path)
        if (path.exists() or path.is_symlink()) and not force:
            raise FileExistsError(f"{path} already exists")
        path.parent.mkdir(parents=True, exist_ok=True)
        return self.write_if_unchanged(path, tick_file)

    def _resolve_target(self, path: Path) -> Path:
        if path.is_symlink():
            if not self.allow_symlink_writes:
                raise SymlinkWriteError(str(path))
            return Path(os.path.realpath(path))
        return path

    def _check_unchanged(self, target: Path, fingerprint: Fingerprint) -> None:
        try:
            current = os.stat(target)
        except FileNotFoundError:
            raise ConcurrentModificationError(fingerprint.path)
        if not fingerprint.matches(current):
            logger.warning(
                f"{fingerprint.path} changed since read "
                f"(size {fingerprint.size} -> {current.st_size})"
            )
            raise ConcurrentModificationError(fingerprint.path)
