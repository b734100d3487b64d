"""roomsync - mirror a remote document folder tree into a local data room."""

from .api import DriveClient
from .blobstore import BlobStore, LocalBlobStore
from .exceptions import (
    BlobStoreError,
    MirrorStoreError,
    RoomSyncAPIError,
    RoomSyncAuthenticationError,
    RoomSyncConfigError,
    RoomSyncDownloadError,
    RoomSyncError,
    RoomSyncInvalidResponseError,
    RoomSyncNetworkError,
    RoomSyncNotFoundError,
    RoomSyncPermissionError,
    RoomSyncRateLimitError,
    SyncError,
    SyncInProgressError,
)
from .store import InMemoryMirrorStore, JsonMirrorStore, MirrorStore
from .tree import RemoteTree, RemoteTreeClient

__all__ = [
    "DriveClient",
    "RemoteTree",
    "RemoteTreeClient",
    "BlobStore",
    "LocalBlobStore",
    "MirrorStore",
    "InMemoryMirrorStore",
    "JsonMirrorStore",
    "RoomSyncError",
    "RoomSyncAPIError",
    "RoomSyncAuthenticationError",
    "RoomSyncConfigError",
    "RoomSyncDownloadError",
    "RoomSyncInvalidResponseError",
    "RoomSyncNetworkError",
    "RoomSyncNotFoundError",
    "RoomSyncPermissionError",
    "RoomSyncRateLimitError",
    "MirrorStoreError",
    "BlobStoreError",
    "SyncError",
    "SyncInProgressError",
]
