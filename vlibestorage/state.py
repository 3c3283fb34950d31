"""Observable state holders over :class:`VlibeStorage`.

Framework-agnostic counterparts of the SDK's UI hooks: they keep the last
listing or usage snapshot plus loading/error flags, so a UI layer only has to
read attributes after awaiting an action.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from typing_extensions import Self

from .errors import VlibeStorageError
from .models import ListOptions, StorageFile, StorageStats, UploadResult

if TYPE_CHECKING:
    from .client import FileSource, ProgressCallback, VlibeStorage

logger = logging.getLogger(__name__)

NEAR_LIMIT_PERCENT = 80
LIMIT_REACHED_PERCENT = 100


class FileBrowser:
    """
    Paginated file listing with upload and delete actions.

    List failures are recorded in ``error``; upload and delete failures are
    recorded and re-raised.
    """

    def __init__(
        self,
        client: VlibeStorage,
        *,
        folder: str | None = None,
        limit: int = 50,
    ):
        self._client = client
        self.folder = folder
        self.limit = limit

        self.files: list[StorageFile] = []
        self.total = 0
        self.has_more = False
        self.loading = False
        self.error: str | None = None
        self.uploading = False
        self.upload_progress = 0
        self._offset = 0

    async def _fetch(self, append: bool = False) -> None:
        self.loading = True
        self.error = None

        try:
            offset = self._offset if append else 0
            result = await self._client.list(
                ListOptions(folder=self.folder, limit=self.limit, offset=offset)
            )
            self.files = [*self.files, *result.files] if append else result.files
            self.total = result.total
            self.has_more = result.has_more
            self._offset = offset + len(result.files)
        except VlibeStorageError as e:
            self.error = str(e) or "Failed to fetch files"
            logger.warning(f"Failed to fetch files: {e}")
        finally:
            self.loading = False

    async def refresh(self) -> None:
        """Reload the first page."""
        await self._fetch(append=False)

    async def load_more(self) -> None:
        """Append the next page, if there is one and nothing is loading."""
        if self.has_more and not self.loading:
            await self._fetch(append=True)

    async def upload(
        self,
        file: FileSource,
        *,
        filename: str | None = None,
        folder: str | None = None,
        is_public: bool = False,
    ) -> UploadResult:
        """Direct upload into this browser's folder, then refresh."""
        self._start_upload()
        try:
            result = await self._client.upload(
                file,
                filename=filename,
                folder=folder if folder is not None else self.folder,
                is_public=is_public,
            )
            await self.refresh()
            return result
        except VlibeStorageError as e:
            self.error = str(e) or "Upload failed"
            raise
        finally:
            self._finish_upload()

    async def upload_with_progress(
        self,
        file: FileSource,
        *,
        filename: str | None = None,
        folder: str | None = None,
        is_public: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """Presigned upload tracking ``upload_progress``, then refresh."""

        def track(progress: int) -> None:
            self.upload_progress = progress
            if on_progress is not None:
                on_progress(progress)

        self._start_upload()
        try:
            result = await self._client.upload_with_progress(
                file,
                filename=filename,
                folder=folder if folder is not None else self.folder,
                is_public=is_public,
                on_progress=track,
            )
            await self.refresh()
            return result
        except VlibeStorageError as e:
            self.error = str(e) or "Upload failed"
            raise
        finally:
            self._finish_upload()

    async def remove(self, file_id: str) -> bool:
        """Delete a file and drop it from the local listing."""
        self.error = None

        try:
            deleted = await self._client.delete(file_id)
        except VlibeStorageError as e:
            self.error = str(e) or "Delete failed"
            raise

        if deleted:
            self.files = [f for f in self.files if f.id != file_id]
            self.total -= 1
        return deleted

    def _start_upload(self) -> None:
        self.uploading = True
        self.upload_progress = 0
        self.error = None

    def _finish_upload(self) -> None:
        self.uploading = False
        self.upload_progress = 0


class UsageTracker:
    """
    Cached storage usage with an optional periodic refresh.

    ``can_upload`` here is a local estimate from the last snapshot and treats
    a zero limit as unlimited. It is separate from the server-side admission
    check :meth:`VlibeStorage.can_upload`.

    Example:
        async with UsageTracker(storage, refresh_interval=60) as tracker:
            if tracker.is_near_limit:
                print(tracker.usage_formatted)
    """

    def __init__(self, client: VlibeStorage, *, refresh_interval: float = 0):
        self._client = client
        self.refresh_interval = refresh_interval

        self.usage: StorageStats | None = None
        self.loading = False
        self.error: str | None = None
        self._task: asyncio.Task[None] | None = None

    async def refresh(self) -> None:
        """Fetch a new usage snapshot."""
        self.loading = True
        self.error = None

        try:
            self.usage = await self._client.get_usage()
        except VlibeStorageError as e:
            self.error = str(e) or "Failed to fetch usage"
            logger.warning(f"Failed to fetch usage: {e}")
        finally:
            self.loading = False

    def can_upload(self, size: int) -> bool:
        """Whether ``size`` more bytes fit, judged from the last snapshot."""
        if self.usage is None:
            return True
        if self.usage.storage_limit == 0:
            return True
        return self.usage.bytes_used + size <= self.usage.storage_limit

    @property
    def usage_percent(self) -> float:
        return self.usage.usage_percent if self.usage else 0

    @property
    def usage_formatted(self) -> str:
        if self.usage is None:
            return "Loading..."
        used = self.usage.bytes_used_formatted
        limit = self.usage.storage_limit_formatted
        return f"{used} of {limit}"

    @property
    def is_limit_reached(self) -> bool:
        return self.usage_percent >= LIMIT_REACHED_PERCENT

    @property
    def is_near_limit(self) -> bool:
        return self.usage_percent >= NEAR_LIMIT_PERCENT

    async def start(self) -> None:
        """Fetch once, then keep refreshing every ``refresh_interval`` seconds."""
        await self.refresh()
        if self.refresh_interval > 0 and self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the periodic refresh."""
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            await self.refresh()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()
