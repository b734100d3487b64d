"""Data models for remote items, mirror rows and sync runs."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .utils import (
    BYTES_PER_MB,
    format_timestamp,
    get_file_extension,
    get_simple_file_type,
    parse_iso_timestamp,
)

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Provider-native editable formats and the interchange format each one is
# exported to: (export MIME type, extension)
NATIVE_EXPORT_TYPES: dict[str, tuple[str, str]] = {
    "application/vnd.google-apps.document": ("application/pdf", "pdf"),
    "application/vnd.google-apps.spreadsheet": (
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "xlsx",
    ),
    "application/vnd.google-apps.presentation": ("application/pdf", "pdf"),
    "application/vnd.google-apps.drawing": ("image/png", "png"),
}


def _parse_size(value: Any) -> Optional[int]:
    """Provider returns sizes as decimal strings; absent for native docs.

    Raises:
        ValueError: If the value is not a non-negative integer
    """
    if value is None or value == "":
        return None
    size = int(value)
    if size < 0:
        raise ValueError(f"negative size {size}")
    return size


# =============================================================================
# Remote (provider) items
# =============================================================================


@dataclass
class RemoteFolder:
    """A folder in the remote provider's tree. Read fresh every run."""

    id: str
    name: str
    parents: list[str] = field(default_factory=list)
    web_view_link: Optional[str] = None

    @classmethod
    def from_api_response(
        cls, data: dict[str, Any], listing_parent: Optional[str] = None
    ) -> "RemoteFolder":
        """Create a RemoteFolder from a provider ``files`` resource.

        Args:
            data: File resource dict
            listing_parent: Folder the item was listed under, used when the
                response carries no ``parents`` field

        Returns:
            RemoteFolder instance
        """
        parents = list(data.get("parents") or [])
        if not parents and listing_parent:
            parents = [listing_parent]
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            parents=parents,
            web_view_link=data.get("webViewLink"),
        )

    @property
    def parent_id(self) -> Optional[str]:
        """First remote parent, if any."""
        return self.parents[0] if self.parents else None


@dataclass
class RemoteFile:
    """A file in the remote provider's tree. Read fresh every run."""

    id: str
    name: str
    mime_type: str
    size: Optional[int] = None
    parents: list[str] = field(default_factory=list)
    modified_time: Optional[datetime] = None
    web_view_link: Optional[str] = None
    thumbnail_link: Optional[str] = None
    invalid_metadata: Optional[str] = None
    """Why the provider's metadata could not be read; such files are skipped"""

    @classmethod
    def from_api_response(
        cls, data: dict[str, Any], listing_parent: Optional[str] = None
    ) -> "RemoteFile":
        """Create a RemoteFile from a provider ``files`` resource.

        A malformed ``size`` does not raise; it is recorded in
        ``invalid_metadata`` so the file can be skipped on its own.

        Raises:
            KeyError: If the resource has no ``id``
        """
        parents = list(data.get("parents") or [])
        if not parents and listing_parent:
            parents = [listing_parent]

        size: Optional[int] = None
        invalid_metadata: Optional[str] = None
        try:
            size = _parse_size(data.get("size"))
        except (TypeError, ValueError):
            invalid_metadata = f"Invalid size {data.get('size')!r}"
            logger.warning(
                "File %s (%s) has malformed size %r",
                data.get("name", ""),
                data["id"],
                data.get("size"),
            )

        return cls(
            id=data["id"],
            name=data.get("name", ""),
            mime_type=data.get("mimeType", "application/octet-stream"),
            size=size,
            parents=parents,
            modified_time=parse_iso_timestamp(data.get("modifiedTime")),
            web_view_link=data.get("webViewLink"),
            thumbnail_link=data.get("thumbnailLink"),
            invalid_metadata=invalid_metadata,
        )

    @property
    def extension(self) -> str:
        """Lower-cased file extension (no dot)."""
        return get_file_extension(self.name)

    @property
    def simple_type(self) -> str:
        """Normalized provider type (pdf, doc, xls, image, ...)."""
        return get_simple_file_type(self.mime_type)

    @property
    def size_mb(self) -> float:
        """Size in megabytes; unknown size counts as zero."""
        return (self.size or 0) / BYTES_PER_MB

    @property
    def is_native_document(self) -> bool:
        """Whether the file is a provider-native type that must be exported."""
        return self.mime_type in NATIVE_EXPORT_TYPES

    @property
    def parent_id(self) -> Optional[str]:
        """First remote parent, if any."""
        return self.parents[0] if self.parents else None


# =============================================================================
# Mirror (local) rows
# =============================================================================


@dataclass
class MirrorFolder:
    """A folder in the local data room mirror."""

    id: int
    scope_id: int
    name: str
    parent_id: Optional[int] = None
    remote_id: Optional[str] = None
    """Null for folders created outside sync"""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "scope_id": self.scope_id,
            "name": self.name,
            "parent_id": self.parent_id,
            "remote_id": self.remote_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MirrorFolder":
        """Create MirrorFolder from dictionary."""
        return cls(
            id=data["id"],
            scope_id=data["scope_id"],
            name=data.get("name", ""),
            parent_id=data.get("parent_id"),
            remote_id=data.get("remote_id"),
        )


@dataclass
class MirrorDocument:
    """A document in the local data room mirror."""

    id: int
    scope_id: int
    name: str
    folder_id: Optional[int] = None
    file_type: str = "other"
    mime_type: Optional[str] = None
    size: Optional[int] = None
    storage_url: Optional[str] = None
    storage_key: Optional[str] = None
    remote_id: Optional[str] = None
    remote_modified_time: Optional[datetime] = None
    """Remote timestamp observed at the last successful transfer"""
    web_view_link: Optional[str] = None
    thumbnail_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "scope_id": self.scope_id,
            "name": self.name,
            "folder_id": self.folder_id,
            "file_type": self.file_type,
            "mime_type": self.mime_type,
            "size": self.size,
            "storage_url": self.storage_url,
            "storage_key": self.storage_key,
            "remote_id": self.remote_id,
            "remote_modified_time": format_timestamp(self.remote_modified_time),
            "web_view_link": self.web_view_link,
            "thumbnail_url": self.thumbnail_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MirrorDocument":
        """Create MirrorDocument from dictionary."""
        return cls(
            id=data["id"],
            scope_id=data["scope_id"],
            name=data.get("name", ""),
            folder_id=data.get("folder_id"),
            file_type=data.get("file_type", "other"),
            mime_type=data.get("mime_type"),
            size=data.get("size"),
            storage_url=data.get("storage_url"),
            storage_key=data.get("storage_key"),
            remote_id=data.get("remote_id"),
            remote_modified_time=parse_iso_timestamp(
                data.get("remote_modified_time")
            ),
            web_view_link=data.get("web_view_link"),
            thumbnail_url=data.get("thumbnail_url"),
        )


@dataclass(frozen=True)
class StoredBlob:
    """Location of transferred content in the blob store."""

    url: str
    key: str
    content_type: str
    size: int


# =============================================================================
# Run history
# =============================================================================


@dataclass(frozen=True)
class SyncRunResult:
    """Summary of one sync run. Immutable once the run completes."""

    scope_id: int
    started_at: datetime
    files_scanned: int = 0
    files_created: int = 0
    files_updated: int = 0
    files_skipped: int = 0
    folders_created: int = 0
    warnings: tuple[str, ...] = ()
    duration_seconds: float = 0.0
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "scope_id": self.scope_id,
            "started_at": format_timestamp(self.started_at),
            "files_scanned": self.files_scanned,
            "files_created": self.files_created,
            "files_updated": self.files_updated,
            "files_skipped": self.files_skipped,
            "folders_created": self.folders_created,
            "warnings": list(self.warnings),
            "duration_seconds": round(self.duration_seconds, 3),
            "cancelled": self.cancelled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncRunResult":
        """Create SyncRunResult from dictionary."""
        started_at = parse_iso_timestamp(data.get("started_at"))
        if started_at is None:
            raise ValueError("Run record has no valid started_at timestamp")
        return cls(
            scope_id=data["scope_id"],
            started_at=started_at,
            files_scanned=data.get("files_scanned", 0),
            files_created=data.get("files_created", 0),
            files_updated=data.get("files_updated", 0),
            files_skipped=data.get("files_skipped", 0),
            folders_created=data.get("folders_created", 0),
            warnings=tuple(data.get("warnings", [])),
            duration_seconds=data.get("duration_seconds", 0.0),
            cancelled=data.get("cancelled", False),
        )
