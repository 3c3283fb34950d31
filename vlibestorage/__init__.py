"""Vlibe Storage Python SDK.

Async client for the Vlibe file-storage API.

Example:
    from vlibestorage import ListOptions, VlibeStorage

    async with VlibeStorage(app_id="app_123", app_secret="secret") as storage:
        storage.set_auth_token(user_token)

        # Presigned upload with progress
        result = await storage.upload_with_progress(
            "report.pdf",
            folder="documents",
            on_progress=lambda percent: print(f"{percent}%"),
        )

        # Browse and clean up
        page = await storage.list(ListOptions(folder="documents", limit=20))
        outcome = await storage.delete_many([f.id for f in page.files])
        print(outcome.deleted, outcome.failed)

        # Public URL on the configured backend
        url = await storage.get_public_url_async(result.key)
"""

from importlib.metadata import PackageNotFoundError, version

from .client import DELETE_BATCH_SIZE, VlibeStorage
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
    MonthlyStats,
    OwnerType,
    PresignedUpload,
    StorageConfig,
    StorageFile,
    StorageStats,
    UploadResult,
)
from .state import FileBrowser, UsageTracker
from .urls import (
    LEGACY_PUBLIC_URL_BASE,
    LEGACY_STORAGE_CONFIG,
    StorageConfigCache,
    is_public_key,
)

try:
    __version__ = version("vlibestorage")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "DEFAULT_BASE_URL",
    "DELETE_BATCH_SIZE",
    "LEGACY_PUBLIC_URL_BASE",
    "LEGACY_STORAGE_CONFIG",
    "ApiError",
    "ApiResponse",
    "CanUploadResult",
    "CreateFolderOptions",
    "DeleteManyResult",
    "FileBrowser",
    "FileCopyResult",
    "FileReference",
    "Folder",
    "ListFoldersOptions",
    "ListOptions",
    "ListResult",
    "MonthlyStats",
    "OwnerType",
    "PresignedUpload",
    "StorageConfig",
    "StorageConfigCache",
    "StorageFile",
    "StorageSettings",
    "StorageStats",
    "TransportError",
    "UploadError",
    "UploadResult",
    "UsageTracker",
    "VlibeStorage",
    "VlibeStorageError",
    # Version
    "__version__",
    "is_public_key",
]
