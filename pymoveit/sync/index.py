"""Thread-safe index of the files known to exist remotely."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional


class RemoteFileIndex:
    """Maps file names to remote file ids.

    All access goes through one lock. ``lock_for`` additionally hands out a
    lock per file name so that an upload and a delete of the same name run
    one after the other.
    """

    def __init__(self) -> None:
        self._entries: dict[str, int] = {}
        self._lock = threading.Lock()
        self._name_locks: dict[str, threading.Lock] = {}
        self._name_lock_users: dict[str, int] = {}

    def add(self, name: str, file_id: int) -> bool:
        """Record a file unless the name is already tracked.

        Returns:
            True if the entry was added, False if the name was present
        """
        with self._lock:
            if name in self._entries:
                return False
            self._entries[name] = file_id
            return True

    def get(self, name: str) -> Optional[int]:
        with self._lock:
            return self._entries.get(name)

    def remove(self, name: str, file_id: Optional[int] = None) -> bool:
        """Forget a file.

        Args:
            name: File name
            file_id: Only remove if the entry still maps to this id

        Returns:
            True if an entry was removed
        """
        with self._lock:
            current = self._entries.get(name)
            if current is None or (file_id is not None and current != file_id):
                return False
            del self._entries[name]
            return True

    def snapshot(self) -> dict[str, int]:
        """Return a copy of all entries."""
        with self._lock:
            return dict(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

    @contextmanager
    def lock_for(self, name: str) -> Iterator[None]:
        """Hold the per-name lock for ``name``."""
        with self._lock:
            name_lock = self._name_locks.setdefault(name, threading.Lock())
            self._name_lock_users[name] = self._name_lock_users.get(name, 0) + 1
        try:
            with name_lock:
                yield
        finally:
            with self._lock:
                self._name_lock_users[name] -= 1
                if not self._name_lock_users[name]:
                    del self._name_lock_users[name]
                    del self._name_locks[name]
