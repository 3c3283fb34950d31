"""Pydantic models for the Vlibe Storage API.

The API speaks camelCase JSON; models expose snake_case attributes and accept
either spelling on input. Use ``model_dump(by_alias=True)`` to produce the wire
form.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .types import PUBLIC_KEY_PREFIX, ByteCount, Percent, ResourceId, StorageKey


class StorageModel(BaseModel):
    """Base model mapping snake_case attributes to camelCase wire names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Envelope
# =============================================================================


class ApiResponse(StorageModel):
    """Uniform response envelope returned by every API call."""

    success: bool = False
    data: Any = None
    error: str | None = None
    message: str | None = None


# =============================================================================
# Files
# =============================================================================


class StorageFile(StorageModel):
    """A stored file as listed by the API."""

    id: ResourceId
    key: StorageKey
    filename: str
    size: ByteCount
    mime_type: str
    is_public: bool = False
    folder: str | None = None
    url: str | None = None
    created_at: datetime

    @property
    def is_public_path(self) -> bool:
        """Whether the key lives under the public path."""
        return self.key.startswith(PUBLIC_KEY_PREFIX)


class UploadResult(StorageModel):
    """Server record of a newly stored file."""

    id: ResourceId
    key: StorageKey
    filename: str
    size: ByteCount
    mime_type: str
    url: str
    is_public: bool = False


class FileCopyResult(UploadResult):
    """New file record created by copying a file into another project."""


class PresignedUpload(StorageModel):
    """Single-use credential for a direct PUT to the storage backend."""

    upload_url: str
    key: StorageKey
    expires_in: int


class ListOptions(StorageModel):
    """Filters and pagination for listing files."""

    folder: str | None = None
    limit: int | None = Field(default=None, ge=0)
    offset: int | None = Field(default=None, ge=0)


class ListResult(StorageModel):
    """One page of files."""

    files: list[StorageFile] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False


class DeleteManyResult(StorageModel):
    """Outcome of a bulk delete, in input order."""

    deleted: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class FileReference(StorageModel):
    """Link sharing a file with another project without copying its bytes."""

    id: ResourceId
    source_file_id: ResourceId
    target_project_id: ResourceId
    created_at: datetime


# =============================================================================
# Folders
# =============================================================================


class Folder(StorageModel):
    """Logical folder; folders form a tree through ``parent_id``."""

    id: ResourceId
    name: str
    parent_id: str | None = None
    project_id: str | None = None
    is_project_root: bool = False
    file_count: int = 0
    created_at: datetime


class CreateFolderOptions(StorageModel):
    """Optional placement of a new folder."""

    parent_id: str | None = None
    project_id: str | None = None
    is_project_root: bool | None = None


class ListFoldersOptions(StorageModel):
    """Folder listing filters.

    ``parent_id`` has three states: omitted lists every folder, ``None`` lists
    root folders only, and an id lists that folder's children.
    """

    parent_id: str | None = None
    project_id: str | None = None

    def to_params(self) -> dict[str, str]:
        """Build query parameters for ``GET /storage/folders``."""
        params: dict[str, str] = {}
        if "parent_id" in self.model_fields_set:
            params["parentId"] = (
                "null" if self.parent_id is None else self.parent_id
            )
        if self.project_id:
            params["projectId"] = self.project_id
        return params


# =============================================================================
# Usage & quota
# =============================================================================


class OwnerType(str, Enum):
    """Who the storage quota is billed to."""

    PLATFORM_USER = "platform_user"
    CREATOR = "creator"


class MonthlyStats(StorageModel):
    """Upload/delete volume for the current month."""

    bytes_uploaded: ByteCount = 0
    bytes_uploaded_formatted: str = ""
    bytes_deleted: ByteCount = 0
    bytes_deleted_formatted: str = ""


class StorageStats(StorageModel):
    """Point-in-time quota usage."""

    bytes_used: ByteCount
    bytes_used_formatted: str = ""
    file_count: int = 0
    storage_limit: ByteCount
    storage_limit_formatted: str = ""
    usage_percent: Percent = 0.0
    month: str = ""
    monthly_stats: MonthlyStats = Field(default_factory=MonthlyStats)
    owner_type: OwnerType | None = None


class CanUploadResult(StorageModel):
    """Admission verdict for a prospective upload."""

    allowed: bool
    reason: str | None = None


# =============================================================================
# Storage backend
# =============================================================================


class StorageConfig(StorageModel):
    """Active storage backend and the base URL public files are served from."""

    provider: str
    public_url_base: str
