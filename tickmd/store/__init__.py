"""
Store layer for the document and its side files.

Canonical exports:
- AtomicStore: TICK.md reads/writes with atomic rename and fingerprint checks
- ParseCache: Fingerprint-keyed parse memo owned by an AtomicStore
- LockManager: Advisory per-task locks in .tick/lock
- RetryQueue: Durable notification retry queue in .tick/webhook-queue.json
- BackupStore: Timestamped TICK.md copies in .tick/backup/
"""

from tickmd.store.repository import AtomicStore, Fingerprint, ParseCache
from tickmd.store.lock_store import LockInfo, LockManager
from tickmd.store.backup_store import BackupInfo, BackupStore
from tickmd.store.retry_queue import RetryQueue

__all__ = [
    "AtomicStore",
    "Fingerprint",
    "ParseCache",
    "LockInfo",
    "LockManager",
    "RetryQueue",
    "BackupInfo",
    "BackupStore",
]
