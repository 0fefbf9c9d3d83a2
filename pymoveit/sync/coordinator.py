"""Dispatches local change events to the sync engine."""

import logging
import os
import queue
import threading
from typing import Optional, Union

from .engine import SyncEngine
from .events import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

_STOP = object()


class SyncCoordinator:
    """Feeds change notifications to the sync engine from worker threads.

    Notifications are queued and handled by ``max_workers`` threads. Every
    file name always lands on the same worker, so the events of one file are
    handled in the order they arrived. Queues are bounded: when the workers
    fall behind, the notifying thread blocks until there is room again.
    """

    def __init__(
        self,
        engine: SyncEngine,
        max_workers: int = 1,
        queue_size: int = 1000,
    ):
        """Initialize the coordinator.

        Args:
            engine: Initialized sync engine
            max_workers: Number of worker threads
            queue_size: Capacity of each worker's queue
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.engine = engine
        self.max_workers = max_workers
        self._queues: list[queue.Queue] = [
            queue.Queue(maxsize=queue_size) for _ in range(max_workers)
        ]
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return bool(self._threads)

    def start(self) -> None:
        """Start the worker threads."""
        with self._lock:
            if self._threads:
                return
            for number, events in enumerate(self._queues):
                thread = threading.Thread(
                    target=self._worker,
                    args=(events,),
                    name=f"moveit-sync-{number}",
                    daemon=True,
                )
                thread.start()
                self._threads.append(thread)
        logger.info("Sync coordinator started with %d workers", self.max_workers)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Handle the queued events, then stop the worker threads."""
        with self._lock:
            threads, self._threads = self._threads, []
        if not threads:
            return
        for events in self._queues:
            events.put(_STOP)
        for thread in threads:
            thread.join(timeout)
        logger.info("Sync coordinator stopped")

    # =========================
    # Notifications
    # =========================

    def notify_created(
        self, full_path: Union[str, os.PathLike], name: Optional[str], is_directory: bool = False
    ) -> None:
        self._enqueue(
            ChangeEvent(ChangeKind.CREATED, os.fspath(full_path), name, is_directory)
        )

    def notify_deleted(
        self, full_path: Union[str, os.PathLike], name: Optional[str]
    ) -> None:
        self._enqueue(ChangeEvent(ChangeKind.DELETED, os.fspath(full_path), name))

    def notify_error(self, error: BaseException) -> None:
        """Report a failure of the change source; the coordinator keeps running."""
        logger.error(
            "The change event source has encountered an error: %s",
            error,
            exc_info=(type(error), error, error.__traceback__),
        )

    def _enqueue(self, event: ChangeEvent) -> None:
        # Held across put so no event lands behind the stop marker
        with self._lock:
            if self._threads:
                key = event.name or event.full_path
                self._queues[hash(key) % self.max_workers].put(event)
                return
        logger.warning(
            "Dropping %s event for %s: coordinator is not running",
            event.kind.value,
            event.full_path,
        )

    def _worker(self, events: queue.Queue) -> None:
        while True:
            event = events.get()
            try:
                if event is _STOP:
                    return
                self.dispatch(event)
            finally:
                events.task_done()

    # =========================
    # Dispatching
    # =========================

    def dispatch(self, event: ChangeEvent) -> None:
        """Handle one event. Errors are logged, never raised."""
        try:
            if event.kind is ChangeKind.CREATED:
                self._on_created(event)
            else:
                self._on_deleted(event)
        except Exception:
            logger.exception(
                "Failed to sync %s file %s",
                event.kind.value,
                event.name or event.full_path,
            )

    def _on_created(self, event: ChangeEvent) -> None:
        if event.is_directory or os.path.isdir(event.full_path):
            logger.warning("Cannot upload directories: %s", event.full_path)
            return
        if not event.name:
            logger.warning("Cannot upload files without a name: %s", event.full_path)
            return
        self.engine.upload(event.full_path, event.name)

    def _on_deleted(self, event: ChangeEvent) -> None:
        if not event.name:
            logger.warning("Cannot delete files without a name: %s", event.full_path)
            return
        self.engine.delete_file(event.name)
