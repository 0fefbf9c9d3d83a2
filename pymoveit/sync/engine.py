"""Core sync engine mirroring local changes into the MOVEit home folder."""

import logging
import threading
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Optional, Union

from ..api import MoveItClient
from ..config import SyncSettings
from ..exceptions import (
    HomeFolderNotFoundError,
    MoveItAPIError,
    SyncError,
    SyncInitializationError,
    SyncNotInitializedError,
)
from ..models import FolderContentPage
from ..retry import RetryPolicy, exponential_backoff, is_transient_error
from .index import RemoteFileIndex

logger = logging.getLogger(__name__)


class SyncEngine:
    """Uploads and deletes files in the user's home folder.

    The engine keeps an index from file name to remote file id. It is built
    by :meth:`initialize` from the current folder listing and updated by
    every successful upload and delete. Entries are never overwritten: when
    two remote files share a name, the first one seen stays tracked.
    """

    def __init__(
        self,
        client: MoveItClient,
        settings: Optional[SyncSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize sync engine.

        Args:
            client: Authenticated MOVEit API client
            settings: Page size, parallelism and retry settings
            sleep: Sleep function used between upload retries
        """
        self.client = client
        self.settings = settings or SyncSettings()
        self._sleep = sleep
        self._index = RemoteFileIndex()
        self._home_folder_id: Optional[int] = None
        self._initialized = False

    @property
    def home_folder_id(self) -> Optional[int]:
        return self._home_folder_id

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def tracked_files(self) -> dict[str, int]:
        """Return a copy of the name to remote id index."""
        return self._index.snapshot()

    def __len__(self) -> int:
        return len(self._index)

    # =========================
    # Initialization
    # =========================

    def initialize(self, cancel_event: Optional[threading.Event] = None) -> None:
        """Resolve the home folder and index its current contents.

        Args:
            cancel_event: When set, page fetches that have not started yet
                are skipped and initialization fails

        Raises:
            SyncError: If the engine was already initialized
            HomeFolderNotFoundError: If the user has no home folder
            SyncInitializationError: If a page fetch failed or was cancelled
            MoveItAPIError: If the user or first page lookup failed
        """
        if self._initialized:
            raise SyncError("Sync engine is already initialized")

        self._fetch_home_folder_id()
        self._fetch_home_folder_content(cancel_event or threading.Event())
        self._initialized = True

    def _require_home_folder(self, action: str) -> int:
        if self._home_folder_id is None:
            logger.error("Home folder ID is not set. Cannot %s.", action)
            raise SyncNotInitializedError(
                f"Home folder ID is not set. Cannot {action}."
            )
        return self._home_folder_id

    def _fetch_home_folder_id(self) -> None:
        try:
            user = self.client.get_current_user()
        except MoveItAPIError as e:
            logger.error(
                "API error occurred while fetching user's home folder ID. "
                "Status code: %s, Response: %s",
                e.status_code,
                e.response,
            )
            raise
        except Exception:
            logger.exception("Failed to fetch user's home folder ID")
            raise

        if user.home_folder_id is None:
            raise HomeFolderNotFoundError("User does not have a home folder.")

        self._home_folder_id = user.home_folder_id
        logger.info("User's home folder ID retrieved: %s", self._home_folder_id)

    def _fetch_home_folder_content(self, cancel_event: threading.Event) -> None:
        folder_id = self._require_home_folder("fetch folder content")
        per_page = self.settings.fetch_files_per_page

        try:
            first_page = self.client.list_folder_contents(
                folder_id, page=1, per_page=per_page
            )
        except Exception:
            logger.exception("An error occurred while fetching file data from the cloud")
            raise

        if not first_page.items:
            logger.info("No files found in the home folder with ID: %s.", folder_id)
            return

        pages = {1: first_page}
        error: Optional[Exception] = None
        if first_page.total_pages > 1:
            remaining, error = self._fetch_remaining_pages(
                folder_id, first_page.total_pages, cancel_event
            )
            pages.update(remaining)

        # Merge in page order so that duplicate names resolve the same way
        # no matter which fetch finished first
        self._merge_pages(pages[page] for page in sorted(pages))
        logger.info("Sync engine initialized with %d files.", len(self._index))

        if len(pages) < first_page.total_pages:
            logger.error(
                "Folder content incomplete: fetched %d of %d pages",
                len(pages),
                first_page.total_pages,
            )
            if error is not None:
                raise SyncInitializationError(
                    f"Failed to fetch the contents of folder {folder_id}: {error}"
                ) from error
            raise SyncInitializationError(
                f"Fetching the contents of folder {folder_id} was cancelled"
            )

    def _fetch_remaining_pages(
        self,
        folder_id: int,
        total_pages: int,
        cancel_event: threading.Event,
    ) -> tuple[dict[int, FolderContentPage], Optional[Exception]]:
        """Fetch pages 2..total_pages in parallel.

        The first failing fetch cancels the pages that have not started yet.
        Pages already fetched are returned either way.

        Returns:
            Tuple of (fetched pages by number, first error or None)
        """
        per_page = self.settings.fetch_files_per_page
        max_workers = self.settings.max_degree_of_parallelism
        logger.debug(
            "Fetching %d more pages with %d workers", total_pages - 1, max_workers
        )

        aborted = threading.Event()

        def fetch(page: int) -> Optional[FolderContentPage]:
            if cancel_event.is_set() or aborted.is_set():
                return None
            return self.client.list_folder_contents(
                folder_id, page=page, per_page=per_page
            )

        fetched: dict[int, FolderContentPage] = {}
        first_error: Optional[Exception] = None

        with ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="moveit-page"
        ) as executor:
            futures = {
                executor.submit(fetch, page): page for page in range(2, total_pages + 1)
            }
            for future in as_completed(futures):
                page = futures[future]
                if future.cancelled():
                    continue
                try:
                    content = future.result()
                except Exception as e:
                    logger.error(
                        "Failed to fetch page %d of folder %s: %s", page, folder_id, e
                    )
                    if first_error is None:
                        first_error = e
                        aborted.set()
                        for pending in futures:
                            pending.cancel()
                    continue
                if content is not None:
                    fetched[page] = content

        return fetched, first_error

    def _merge_pages(self, pages: Iterable[FolderContentPage]) -> None:
        skipped = 0
        duplicates = 0
        for content in pages:
            for item in content.items:
                if not item.name or item.id is None:
                    skipped += 1
                    continue
                if not self._index.add(item.name, item.id):
                    duplicates += 1

        if skipped:
            logger.info("Skipped %d folder entries without a name or id", skipped)
        if duplicates:
            logger.warning(
                "Found %d remote files with a duplicate name; keeping the first of each",
                duplicates,
            )

    # =========================
    # File Operations
    # =========================

    def _upload_retry_policy(self, file_name: str) -> RetryPolicy:
        def on_retry(error: BaseException, delay: float, attempt: int) -> None:
            logger.warning(
                "Error occurred while uploading file %s. "
                "Retrying in %.1f seconds. Retry attempt %d. Error: %s",
                file_name,
                delay,
                attempt,
                error,
            )

        return RetryPolicy(
            should_retry=is_transient_error,
            retry_count=self.settings.upload_retry_count,
            backoff=exponential_backoff(self.settings.upload_retry_delay_seconds),
            on_retry=on_retry,
            sleep=self._sleep,
        )

    def _upload_once(self, folder_id: int, local_path: Path, file_name: str) -> Optional[int]:
        with open(local_path, "rb", buffering=self.settings.read_buffer_size) as stream:
            result = self.client.upload_file(folder_id, stream, file_name)

        if result.file_id is None:
            logger.warning("Upload of %s returned no file id; not tracking it", file_name)
            return None
        if not self._index.add(file_name, result.file_id):
            logger.warning(
                "File %s is already tracked with id %s; keeping the existing entry",
                file_name,
                self._index.get(file_name),
            )
        return result.file_id

    def upload(self, local_path: Union[str, Path], file_name: str) -> Optional[int]:
        """Upload a local file into the home folder and track it.

        Transient failures are retried with exponential backoff. A file that
        cannot be opened or read is logged and skipped.

        Args:
            local_path: Path of the local file
            file_name: Name to give the remote file and key in the index

        Returns:
            The remote file id, or None if the file could not be read or the
            server returned no id

        Raises:
            SyncNotInitializedError: If the home folder is not resolved
            MoveItError: If the upload failed after all retries
        """
        folder_id = self._require_home_folder("upload file")
        logger.info("Uploading file %s...", file_name)

        policy = self._upload_retry_policy(file_name)
        try:
            with self._index.lock_for(file_name):
                file_id = policy.call(self._upload_once, folder_id, Path(local_path), file_name)
        except OSError:
            logger.exception("Error occurred while opening file %s for upload", file_name)
            return None
        except MoveItAPIError as e:
            logger.error("API error during file upload: %s", e)
            raise
        except Exception:
            logger.exception("Unexpected error during file upload")
            raise

        logger.info("File %s uploaded", file_name)
        return file_id

    def delete_file(self, file_name: str) -> bool:
        """Delete the remote copy of a tracked file.

        Args:
            file_name: Name of the file

        Returns:
            True if a remote file was deleted, False if the name is not tracked

        Raises:
            SyncNotInitializedError: If the home folder is not resolved
            MoveItError: If the remote delete failed; the entry stays tracked
        """
        self._require_home_folder("delete file")
        logger.info("Deleting file %s...", file_name)

        with self._index.lock_for(file_name):
            file_id = self._index.get(file_name)
            if file_id is None:
                logger.warning("Attempted to delete non-tracked file: %s", file_name)
                return False

            try:
                self.client.delete_file(file_id)
            except MoveItAPIError as e:
                logger.error("API error during file deletion: %s", e)
                raise
            except Exception:
                logger.exception("Unexpected error during file deletion")
                raise

            self._index.remove(file_name, file_id)

        logger.info("File %s deleted", file_name)
        return True
