"""Exception hierarchy for roomsync."""

from typing import Optional


class RoomSyncError(Exception):
    """Base exception for all roomsync errors."""


class RoomSyncConfigError(RoomSyncError):
    """Raised when required configuration (e.g. the access token) is missing."""


class RoomSyncAPIError(RoomSyncError):
    """Raised when a request to the remote provider fails.

    Attributes:
        status_code: HTTP status of the failed response, or None when the
            request never produced one (network failure, bad payload).
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RoomSyncAuthenticationError(RoomSyncAPIError):
    """Access token is invalid, expired or revoked (401)."""

    def __init__(self, message: str, status_code: Optional[int] = 401):
        super().__init__(message, status_code)


class RoomSyncPermissionError(RoomSyncAPIError):
    """Access to the resource is forbidden (403)."""

    def __init__(self, message: str, status_code: Optional[int] = 403):
        super().__init__(message, status_code)


class RoomSyncNotFoundError(RoomSyncAPIError):
    """Remote file or folder does not exist (404)."""

    def __init__(self, message: str, status_code: Optional[int] = 404):
        super().__init__(message, status_code)


class RoomSyncRateLimitError(RoomSyncAPIError):
    """Provider quota exceeded (429)."""

    def __init__(self, message: str, status_code: Optional[int] = 429):
        super().__init__(message, status_code)


class RoomSyncNetworkError(RoomSyncAPIError):
    """Transport level failure (timeout, connection reset, DNS)."""


class RoomSyncInvalidResponseError(RoomSyncAPIError):
    """Provider returned a payload that could not be parsed."""


class RoomSyncDownloadError(RoomSyncAPIError):
    """File content could not be retrieved."""


class MirrorStoreError(RoomSyncError):
    """Raised when a mirror store operation violates an integrity rule."""


class BlobStoreError(RoomSyncError):
    """Raised when the blob store cannot write or read an object."""


class SyncError(RoomSyncError):
    """Fatal sync failure; the run was aborted."""


class SyncInProgressError(SyncError):
    """Another run is already active for the same sync scope."""
