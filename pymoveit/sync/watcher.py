"""Watch a local directory with watchdog and notify the coordinator."""

import logging
import os
from pathlib import Path
from typing import Callable, Optional, TypeVar, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer

from .coordinator import SyncCoordinator

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=FileSystemEvent)


class SyncEventHandler(FileSystemEventHandler):
    """Translates watchdog events for one directory into coordinator calls."""

    def __init__(self, root: Path, coordinator: SyncCoordinator):
        self.root = root
        self.coordinator = coordinator

    def name_for(self, path: Union[str, bytes]) -> Optional[str]:
        """Return the name of an entry directly under the root, else None."""
        try:
            relative = Path(os.fsdecode(path)).relative_to(self.root)
        except ValueError:
            return None
        if len(relative.parts) != 1:
            return None
        return relative.name or None

    def _guarded(self, handler: Callable[[E], None], event: E) -> None:
        try:
            handler(event)
        except Exception as e:
            self.coordinator.notify_error(e)

    def on_created(self, event: FileSystemEvent) -> None:
        self._guarded(self._created, event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._guarded(self._deleted, event)

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        self._guarded(self._moved, event)

    def _created(self, event: FileSystemEvent) -> None:
        self.coordinator.notify_created(
            os.fsdecode(event.src_path),
            self.name_for(event.src_path),
            is_directory=event.is_directory,
        )

    def _deleted(self, event: FileSystemEvent) -> None:
        self.coordinator.notify_deleted(
            os.fsdecode(event.src_path), self.name_for(event.src_path)
        )

    def _moved(self, event: FileSystemMovedEvent) -> None:
        # A rename is a delete of the old name and a create of the new one
        old_name = self.name_for(event.src_path)
        if old_name:
            self.coordinator.notify_deleted(os.fsdecode(event.src_path), old_name)
        new_name = self.name_for(event.dest_path)
        if new_name:
            self.coordinator.notify_created(
                os.fsdecode(event.dest_path), new_name, is_directory=event.is_directory
            )


class DirectoryWatcher:
    """Watches the entries directly under a directory."""

    def __init__(self, root: Union[str, Path], coordinator: SyncCoordinator):
        """Initialize the watcher.

        Args:
            root: Directory to watch (not recursive)
            coordinator: Receives create/delete notifications

        Raises:
            ValueError: If root is not an existing directory
        """
        self.root = Path(root).expanduser().resolve()
        if not self.root.exists():
            raise ValueError(f"Local directory does not exist: {self.root}")
        if not self.root.is_dir():
            raise ValueError(f"Local path is not a directory: {self.root}")
        self.handler = SyncEventHandler(self.root, coordinator)
        self._observer: Optional[Observer] = None

    def start(self) -> None:
        """Start watching."""
        if self._observer is not None:
            return
        self._observer = Observer()
        self._observer.schedule(self.handler, str(self.root), recursive=False)
        self._observer.start()
        logger.info("Started watching %s", self.root)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop watching."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout)
        self._observer = None
        logger.info("Stopped watching %s", self.root)

    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()
