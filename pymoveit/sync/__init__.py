"""Sync engine for pymoveit - mirrors local file changes to MOVEit Cloud."""

from .coordinator import SyncCoordinator
from .engine import SyncEngine
from .events import ChangeEvent, ChangeKind
from .index import RemoteFileIndex
from .watcher import DirectoryWatcher, SyncEventHandler

__all__ = [
    "SyncEngine",
    "SyncCoordinator",
    "RemoteFileIndex",
    "ChangeEvent",
    "ChangeKind",
    "DirectoryWatcher",
    "SyncEventHandler",
]
