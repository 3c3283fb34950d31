"""Async API client for Vlibe Storage."""

from __future__ import annotations

import asyncio
import logging
import math
import mimetypes
import os
from collections.abc import AsyncIterator, Callable, Sequence
from pathlib import Path
from typing import Any, BinaryIO, NamedTuple

from pydantic import ValidationError
from typing_extensions import Self

from .config import DEFAULT_BASE_URL, StorageSettings
from .errors import ApiError, TransportError, UploadError, VlibeStorageError
from .models import (
    ApiResponse,
    CanUploadResult,
    CreateFolderOptions,
    DeleteManyResult,
    FileCopyResult,
    FileReference,
    Folder,
    ListFoldersOptions,
    ListOptions,
    ListResult,
    PresignedUpload,
    StorageConfig,
    StorageFile,
    StorageStats,
    UploadResult,
)
from .transport import Transport
from .urls import LEGACY_STORAGE_CONFIG, StorageConfigCache, build_public_url
from .urls import is_public_key as _is_public_key

logger = logging.getLogger(__name__)

# Deletes dispatched concurrently by delete_many before waiting on the batch
DELETE_BATCH_SIZE = 10

DEFAULT_UPLOAD_CHUNK_SIZE = 64 * 1024

FileSource = bytes | bytearray | str | os.PathLike | BinaryIO
ProgressCallback = Callable[[int], None]


class _FilePayload(NamedTuple):
    filename: str
    mime_type: str
    content: bytes


def _read_file(
    file: FileSource, filename: str | None, mime_type: str | None
) -> _FilePayload:
    """Load upload content and resolve its name and MIME type."""
    if isinstance(file, (bytes, bytearray)):
        content = bytes(file)
        name = filename
    elif isinstance(file, (str, os.PathLike)):
        path = Path(file)
        content = path.read_bytes()
        name = filename or path.name
    else:
        content = file.read()
        name = filename or Path(getattr(file, "name", "") or "").name

    if not name:
        raise ValueError("filename is required when uploading raw bytes")

    resolved_type = (
        mime_type or mimetypes.guess_type(name)[0] or "application/octet-stream"
    )
    return _FilePayload(filename=name, mime_type=resolved_type, content=content)


def _progress_percent(sent: int, total: int) -> int:
    # Half-up rounding, held below 100 until the last byte is out
    percent = math.floor(sent * 100 / total + 0.5)
    return percent if sent >= total else min(percent, 99)


async def _iter_chunks(
    content: bytes,
    chunk_size: int,
    on_progress: ProgressCallback | None,
) -> AsyncIterator[bytes]:
    total = len(content)
    sent = 0
    for start in range(0, total, chunk_size):
        chunk = content[start : start + chunk_size]
        yield chunk
        sent += len(chunk)
        if on_progress is not None:
            on_progress(_progress_percent(sent, total))


def _is_not_found(error: str | None) -> bool:
    return error is not None and "not found" in error


def _unwrap(
    response: ApiResponse,
    fallback: str,
    error_cls: type[VlibeStorageError] = ApiError,
) -> Any:
    """Return the envelope payload or raise with the server's error text."""
    if not response.success or response.data is None:
        raise error_cls(response.error or fallback)
    return response.data


def _drop_none(body: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in body.items() if v is not None}


class VlibeStorage:
    """Async API client for Vlibe Storage.

    Uploads (direct and presigned with progress), file and folder management,
    quota usage, and public URL resolution for a single Vlibe app.

    Example:
        async with VlibeStorage(
            app_id=os.environ["VLIBE_APP_ID"],
            app_secret=os.environ["VLIBE_APP_SECRET"],
        ) as storage:
            storage.set_auth_token(user_token)
            result = await storage.upload_with_progress(
                "photo.png", on_progress=lambda p: print(f"{p}%")
            )
            print(storage.get_public_url(result.key))
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        base_url: str | None = None,
        *,
        timeout: float = 30.0,
        upload_chunk_size: int = DEFAULT_UPLOAD_CHUNK_SIZE,
    ):
        """Create a new Vlibe Storage client.

        Args:
            app_id: Vlibe App ID
            app_secret: Vlibe App Secret
            base_url: API origin (default: https://vlibe.app)
            timeout: Request timeout in seconds (default: 30.0)
            upload_chunk_size: Bytes per progress step for presigned uploads

        Raises:
            ValueError: If app_id or app_secret is empty
        """
        if not app_id:
            raise ValueError("app_id is required")
        if not app_secret:
            raise ValueError("app_secret is required")
        if upload_chunk_size < 1:
            raise ValueError("upload_chunk_size must be positive")

        self._base_url = (base_url or "").removesuffix("/") or DEFAULT_BASE_URL
        self._upload_chunk_size = upload_chunk_size
        self._transport = Transport(
            self._base_url, app_id, app_secret, timeout=timeout
        )
        self._config_cache = StorageConfigCache()
        self._config_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: StorageSettings | None = None) -> Self:
        """Create a client from settings (default: loaded from VLIBE_* env vars)."""
        settings = settings or StorageSettings()
        return cls(
            app_id=settings.app_id,
            app_secret=settings.app_secret,
            base_url=settings.base_url,
            timeout=settings.timeout,
            upload_chunk_size=settings.upload_chunk_size,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def set_auth_token(self, token: str) -> None:
        """Set the user's bearer token for subsequent requests."""
        self._transport.set_auth_token(token)

    def clear_auth_token(self) -> None:
        """Stop sending a bearer token on subsequent requests."""
        self._transport.clear_auth_token()

    # =========================================================================
    # Uploads
    # =========================================================================

    async def upload(
        self,
        file: FileSource,
        *,
        filename: str | None = None,
        mime_type: str | None = None,
        folder: str | None = None,
        is_public: bool = False,
    ) -> UploadResult:
        """Upload a file directly as multipart form data.

        POST /storage

        Args:
            file: Raw bytes, a path, or a binary file object
            filename: Name to store (default: the path's name; required for bytes)
            mime_type: Content type (default: guessed from filename)
            folder: Folder/category for the file
            is_public: Make the file publicly accessible

        Raises:
            UploadError: If the API rejects the upload
        """
        payload = _read_file(file, filename, mime_type)

        form: dict[str, str] = {}
        if folder:
            form["folder"] = folder
        if is_public:
            form["isPublic"] = "true"

        response = await self._transport.request(
            "POST",
            "/storage",
            data=form,
            files={"file": (payload.filename, payload.content, payload.mime_type)},
        )
        result = UploadResult.model_validate(
            _unwrap(response, "Upload failed", UploadError)
        )
        logger.info(
            "Uploaded file",
            extra={"file_id": result.id, "key": result.key, "size": result.size},
        )
        return result

    async def get_upload_url(
        self,
        filename: str,
        mime_type: str,
        size: int,
        *,
        folder: str | None = None,
        is_public: bool = False,
    ) -> PresignedUpload:
        """Get a presigned URL for a direct upload to the storage backend.

        POST /storage/upload-url

        Raises:
            UploadError: If the API refuses to issue an upload URL
        """
        response = await self._transport.request(
            "POST",
            "/storage/upload-url",
            json=_drop_none(
                {
                    "filename": filename,
                    "mimeType": mime_type,
                    "size": size,
                    "folder": folder,
                    "isPublic": is_public,
                }
            ),
        )
        return PresignedUpload.model_validate(
            _unwrap(response, "Failed to get upload URL", UploadError)
        )

    async def upload_with_progress(
        self,
        file: FileSource,
        *,
        filename: str | None = None,
        mime_type: str | None = None,
        folder: str | None = None,
        is_public: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """Upload through a presigned URL, reporting progress.

        1. POST /storage/upload-url to obtain a presigned URL
        2. PUT the bytes to that URL, calling ``on_progress(percent)`` per chunk
        3. PUT /storage/upload-url to create the file record

        Each step starts only after the previous one succeeded.

        Args:
            file: Raw bytes, a path, or a binary file object
            filename: Name to store (default: the path's name; required for bytes)
            mime_type: Content type (default: guessed from filename)
            folder: Folder/category for the file
            is_public: Make the file publicly accessible
            on_progress: Called with 0-100; reaches 100 once every byte is sent

        Raises:
            UploadError: If any step fails. When confirmation fails the bytes are
                already stored and ``UploadError.key`` names them.
        """
        payload = _read_file(file, filename, mime_type)
        size = len(payload.content)

        presigned = await self.get_upload_url(
            payload.filename,
            payload.mime_type,
            size,
            folder=folder,
            is_public=is_public,
        )

        await self._put_presigned(presigned, payload, on_progress)

        response = await self._transport.request(
            "PUT",
            "/storage/upload-url",
            json=_drop_none(
                {
                    "key": presigned.key,
                    "filename": payload.filename,
                    "mimeType": payload.mime_type,
                    "size": size,
                    "folder": folder,
                    "isPublic": is_public,
                }
            ),
        )
        if not response.success or response.data is None:
            raise UploadError(
                response.error or "Failed to confirm upload", key=presigned.key
            )

        result = UploadResult.model_validate(response.data)
        logger.info(
            "Uploaded file via presigned URL",
            extra={"file_id": result.id, "key": result.key, "size": result.size},
        )
        return result

    async def _put_presigned(
        self,
        presigned: PresignedUpload,
        payload: _FilePayload,
        on_progress: ProgressCallback | None,
    ) -> None:
        """Send the raw bytes to the storage backend."""
        # Presigned PUT targets reject chunked transfer encoding
        headers = {
            "Content-Type": payload.mime_type,
            "Content-Length": str(len(payload.content)),
        }
        try:
            response = await self._transport.put_binary(
                presigned.upload_url,
                _iter_chunks(payload.content, self._upload_chunk_size, on_progress),
                headers=headers,
            )
        except TransportError as e:
            raise UploadError("Upload failed") from e

        if not response.is_success:
            raise UploadError(f"Upload failed with status {response.status_code}")

    # =========================================================================
    # Downloads
    # =========================================================================

    async def get_download_url(
        self, file_id: str, expires_in: int | None = None
    ) -> str:
        """Get a signed download URL for a file.

        GET /storage/{file_id}?download=true

        Args:
            file_id: File ID
            expires_in: URL lifetime in seconds (default: server's choice)
        """
        params = {"download": "true"}
        if expires_in:
            params["expiresIn"] = str(expires_in)

        response = await self._transport.request(
            "GET", f"/storage/{file_id}", params=params
        )
        data = _unwrap(response, "Failed to get download URL")
        return data["url"]

    # =========================================================================
    # File management
    # =========================================================================

    async def list(self, options: ListOptions | None = None) -> ListResult:
        """List files.

        GET /storage?folder=&limit=&offset=
        """
        options = options or ListOptions()
        params: dict[str, str] = {}
        if options.folder is not None:
            params["folder"] = options.folder
        if options.limit:
            params["limit"] = str(options.limit)
        if options.offset:
            params["offset"] = str(options.offset)

        response = await self._transport.request("GET", "/storage", params=params)
        return ListResult.model_validate(_unwrap(response, "Failed to list files"))

    async def get(self, file_id: str) -> StorageFile | None:
        """Get a file's metadata, or None if it does not exist.

        GET /storage/{file_id}
        """
        response = await self._transport.request("GET", f"/storage/{file_id}")

        if not response.success:
            if _is_not_found(response.error):
                return None
            raise ApiError(response.error or "Failed to get file")

        if response.data is None:
            return None
        return StorageFile.model_validate(response.data)

    async def delete(self, file_id: str) -> bool:
        """Delete a file.

        DELETE /storage/{file_id}

        Returns:
            True if deleted, False if the file was not found
        """
        response = await self._transport.request("DELETE", f"/storage/{file_id}")

        if not response.success:
            if _is_not_found(response.error):
                return False
            raise ApiError(response.error or "Failed to delete file")

        return True

    async def delete_many(self, file_ids: Sequence[str]) -> DeleteManyResult:
        """Delete files in concurrent batches.

        Up to ``DELETE_BATCH_SIZE`` deletes run at once; a batch settles fully
        before the next one is dispatched. Individual failures never raise:
        ids that were not found or whose delete raised end up in ``failed``.
        """
        result = DeleteManyResult()

        for start in range(0, len(file_ids), DELETE_BATCH_SIZE):
            batch = list(file_ids[start : start + DELETE_BATCH_SIZE])
            outcomes = await asyncio.gather(
                *(self.delete(file_id) for file_id in batch),
                return_exceptions=True,
            )

            for file_id, outcome in zip(batch, outcomes):
                if outcome is True:
                    result.deleted.append(file_id)
                    continue
                result.failed.append(file_id)
                if isinstance(outcome, BaseException):
                    logger.warning(
                        f"Failed to delete file {file_id}: {outcome}",
                        extra={"file_id": file_id},
                    )

        logger.info(
            "Bulk delete finished",
            extra={"deleted": len(result.deleted), "failed": len(result.failed)},
        )
        return result

    # =========================================================================
    # Folders
    # =========================================================================

    async def list_folders(
        self, options: ListFoldersOptions | None = None
    ) -> list[Folder]:
        """List folders.

        GET /storage/folders?parentId=&projectId=

        Pass ``ListFoldersOptions(parent_id=None)`` for root folders only; omit
        ``parent_id`` for every folder.
        """
        options = options or ListFoldersOptions()
        response = await self._transport.request(
            "GET", "/storage/folders", params=options.to_params()
        )
        data = _unwrap(response, "Failed to list folders")
        return [Folder.model_validate(folder) for folder in data]

    async def create_folder(
        self, name: str, options: CreateFolderOptions | None = None
    ) -> Folder:
        """Create a folder.

        POST /storage/folders
        """
        options = options or CreateFolderOptions()
        body = {"name": name, **options.model_dump(by_alias=True, exclude_none=True)}

        response = await self._transport.request(
            "POST", "/storage/folders", json=body
        )
        return Folder.model_validate(_unwrap(response, "Failed to create folder"))

    async def rename_folder(self, folder_id: str, name: str) -> Folder:
        """Rename a folder.

        PATCH /storage/folders/{folder_id}
        """
        response = await self._transport.request(
            "PATCH", f"/storage/folders/{folder_id}", json={"name": name}
        )
        return Folder.model_validate(_unwrap(response, "Failed to rename folder"))

    async def delete_folder(self, folder_id: str) -> bool:
        """Delete a folder.

        DELETE /storage/folders/{folder_id}

        Returns:
            True if deleted, False if the folder was not found
        """
        response = await self._transport.request(
            "DELETE", f"/storage/folders/{folder_id}"
        )

        if not response.success:
            if _is_not_found(response.error):
                return False
            raise ApiError(response.error or "Failed to delete folder")

        return True

    # =========================================================================
    # Cross-project linkage
    # =========================================================================

    async def copy_file_to_project(
        self,
        file_id: str,
        target_project_id: str,
        *,
        target_folder_id: str | None = None,
    ) -> FileCopyResult:
        """Copy a file into another project as a new record.

        POST /storage/files/copy

        The copy is a separate file and counts against quota.
        """
        response = await self._transport.request(
            "POST",
            "/storage/files/copy",
            json=_drop_none(
                {
                    "fileId": file_id,
                    "targetProjectId": target_project_id,
                    "targetFolderId": target_folder_id,
                }
            ),
        )
        return FileCopyResult.model_validate(
            _unwrap(response, "Failed to copy file")
        )

    async def create_file_reference(
        self, file_id: str, target_project_id: str
    ) -> FileReference:
        """Share a file with another project without duplicating it.

        POST /storage/files/reference
        """
        response = await self._transport.request(
            "POST",
            "/storage/files/reference",
            json={"fileId": file_id, "targetProjectId": target_project_id},
        )
        return FileReference.model_validate(
            _unwrap(response, "Failed to create file reference")
        )

    # =========================================================================
    # Usage & limits
    # =========================================================================

    async def get_usage(self) -> StorageStats:
        """Get storage usage statistics.

        GET /storage/usage
        """
        response = await self._transport.request("GET", "/storage/usage")
        return StorageStats.model_validate(_unwrap(response, "Failed to get usage"))

    async def can_upload(self, size: int) -> CanUploadResult:
        """Ask the server whether a file of ``size`` bytes fits the quota.

        POST /storage/usage

        Returns the server's verdict as-is. Request failures raise; they are
        never reported as ``allowed=False``.
        """
        response = await self._transport.request(
            "POST", "/storage/usage", json={"size": size}
        )
        return CanUploadResult.model_validate(
            _unwrap(response, "Failed to check upload")
        )

    # =========================================================================
    # Storage config & public URLs
    # =========================================================================

    async def get_storage_config(self) -> StorageConfig:
        """Get the active storage backend descriptor.

        GET /storage/config, once per client. A successful result is cached
        until :meth:`clear_storage_config_cache`. On failure the legacy
        descriptor is returned and nothing is cached, so the next call fetches
        again.
        """
        cached = self._config_cache.config
        if cached is not None:
            return cached

        async with self._config_lock:
            # Double-check after acquiring lock
            cached = self._config_cache.config
            if cached is not None:
                return cached

            try:
                response = await self._transport.request("GET", "/storage/config")
                config = StorageConfig.model_validate(
                    _unwrap(response, "Failed to get storage config")
                )
            except (VlibeStorageError, ValidationError) as e:
                logger.warning(f"Falling back to legacy storage config: {e}")
                return LEGACY_STORAGE_CONFIG

            self._config_cache.resolve(config)
            return config

    def clear_storage_config_cache(self) -> None:
        """Forget the cached storage config."""
        self._config_cache.clear()

    def get_public_url(self, key: str) -> str:
        """Public URL for ``key`` without any network I/O.

        Uses the cached storage config; before one has been fetched, the legacy
        backend URL is returned.
        """
        return self._config_cache.public_url(key)

    async def get_public_url_async(self, key: str) -> str:
        """Public URL for ``key``, resolving the storage config first."""
        config = await self.get_storage_config()
        return build_public_url(config.public_url_base, key)

    @staticmethod
    def is_public_key(key: str) -> bool:
        """Whether ``key`` lives under the public path."""
        return _is_public_key(key)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self) -> None:
        """Close the client connection."""
        await self._transport.close()

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()
