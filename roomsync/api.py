"""API client for the Google Drive v3 REST interface."""

from __future__ import annotations

import logging
import random
import time
from typing import Any

import httpx

from .config import config
from .exceptions import (
    RoomSyncAPIError,
    RoomSyncAuthenticationError,
    RoomSyncConfigError,
    RoomSyncDownloadError,
    RoomSyncInvalidResponseError,
    RoomSyncNetworkError,
    RoomSyncNotFoundError,
    RoomSyncPermissionError,
    RoomSyncRateLimitError,
)
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY

logger = logging.getLogger(__name__)

FILE_FIELDS = (
    "id,name,mimeType,size,webViewLink,thumbnailLink,"
    "createdTime,modifiedTime,parents,trashed"
)
FOLDER_FIELDS = "id,name,mimeType,webViewLink,parents,trashed"


class DriveClient:
    """Client for the remote document provider's file endpoints."""

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        download_timeout: float = 120.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize Drive API client.

        Args:
            access_token: OAuth bearer token (uses config if not provided)
            api_url: Optional API URL (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Request timeout in seconds (default: 30.0)
            download_timeout: Timeout for content downloads (default: 120.0)
            transport: Optional httpx transport (used by tests)
        """
        self.access_token = access_token or config.access_token
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.download_timeout = download_timeout
        self._transport = transport

        if not self.access_token:
            raise RoomSyncConfigError(
                "Access token not configured. "
                "Please set ROOMSYNC_ACCESS_TOKEN environment variable."
            )

        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> DriveClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Jitter of +/- 25% so parallel workers do not retry in lockstep
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _error_for_status(self, response: httpx.Response) -> RoomSyncAPIError:
        """Translate an error response into a typed exception."""
        status_code = response.status_code

        if status_code == 401:
            return RoomSyncAuthenticationError(
                "Access token is invalid or expired", status_code
            )
        if status_code == 403:
            # Drive reports quota exhaustion as 403 with a rateLimitExceeded reason
            if b"rateLimitExceeded" in response.content:
                return RoomSyncRateLimitError("Rate limit exceeded", status_code)
            return RoomSyncPermissionError(
                "Access forbidden - check the token's scopes", status_code
            )
        if status_code == 404:
            return RoomSyncNotFoundError("Resource not found", status_code)
        if status_code == 429:
            return RoomSyncRateLimitError(
                "Rate limit exceeded - please try again later", status_code
            )

        error_msg = f"API request failed with status {status_code}"
        try:
            if response.content:
                error_data = response.json()
                if isinstance(error_data, dict):
                    error = error_data.get("error")
                    msg = error.get("message") if isinstance(error, dict) else error
                    if msg:
                        error_msg = f"{error_msg}: {msg}"
        except ValueError:
            # Body is not JSON; keep the status-based message
            pass
        return RoomSyncAPIError(error_msg, status_code)

    def _should_retry(self, error: RoomSyncAPIError, attempt: int) -> bool:
        """Determine if a request should be retried.

        Network errors, rate limits and 5xx responses are transient. Auth,
        permission and not-found errors are not.
        """
        if attempt >= self.max_retries:
            return False
        if isinstance(error, (RoomSyncNetworkError, RoomSyncRateLimitError)):
            return True
        status_code = error.status_code
        return status_code is not None and 500 <= status_code < 600

    def _retry_delay_for(
        self, error: RoomSyncAPIError, response: httpx.Response | None, attempt: int
    ) -> float:
        if isinstance(error, RoomSyncRateLimitError) and response is not None:
            retry_after = response.headers.get("Retry-After")
            if retry_after and retry_after.isdigit():
                return float(retry_after)
        return self._calculate_retry_delay(attempt)

    def _send(
        self, method: str, endpoint: str, timeout: float | None = None, **kwargs: Any
    ) -> httpx.Response:
        """Send a request with retry logic and return the successful response.

        Raises:
            RoomSyncAPIError: If the request fails after all retries
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        client = self._get_client()
        if timeout is not None:
            kwargs["timeout"] = timeout

        for attempt in range(self.max_retries + 1):
            response: httpx.Response | None = None
            try:
                response = client.request(method, url, **kwargs)
                if response.is_success:
                    return response
                error = self._error_for_status(response)
            except httpx.RequestError as e:
                error = RoomSyncNetworkError(f"Network error: {e}")

            if not self._should_retry(error, attempt):
                raise error

            delay = self._retry_delay_for(error, response, attempt)
            logger.debug(
                "%s %s failed (%s), retrying in %.2fs (attempt %d/%d)",
                method,
                endpoint,
                error,
                delay,
                attempt + 1,
                self.max_retries,
            )
            time.sleep(delay)

        raise RoomSyncAPIError("Request failed after all retry attempts")

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an API request and decode its JSON body.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data (empty dict for empty bodies)

        Raises:
            RoomSyncAPIError: If the request fails after all retries
        """
        response = self._send(method, endpoint, **kwargs)
        if not response.content:
            return {}

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            raise RoomSyncInvalidResponseError(
                f"Unexpected response type: {content_type}", response.status_code
            )
        try:
            return response.json()
        except ValueError as e:
            raise RoomSyncInvalidResponseError(
                "Invalid JSON response from server", response.status_code
            ) from e

    # =========================
    # File Operations
    # =========================

    def list_files(
        self,
        query: str | None = None,
        fields: str = FILE_FIELDS,
        page_token: str | None = None,
        page_size: int = 100,
        order_by: str | None = "name",
    ) -> Any:
        """List one page of files matching a search query.

        Args:
            query: Drive search expression (e.g. "'abc' in parents")
            fields: Fields to return for each file resource
            page_token: Token from a previous page's ``nextPageToken``
            page_size: Number of items per page (max 1000)
            order_by: Sort key

        Returns:
            Response dict with ``files`` and optionally ``nextPageToken``
        """
        params: dict[str, Any] = {
            "pageSize": page_size,
            "fields": f"nextPageToken,files({fields})",
            "supportsAllDrives": "true",
            "includeItemsFromAllDrives": "true",
        }
        if query:
            params["q"] = query
        if page_token:
            params["pageToken"] = page_token
        if order_by:
            params["orderBy"] = order_by
        return self._request("GET", "/files", params=params)

    def get_file(self, file_id: str, fields: str = FILE_FIELDS) -> Any:
        """Get metadata for a single file or folder.

        Args:
            file_id: Remote file ID
            fields: Fields to return

        Returns:
            File resource dict
        """
        params = {"fields": fields, "supportsAllDrives": "true"}
        return self._request("GET", f"/files/{file_id}", params=params)

    def get_file_content(
        self, file_id: str, export_mime_type: str | None = None
    ) -> bytes:
        """Download file content.

        Provider-native documents cannot be downloaded directly and must be
        exported into a concrete format with ``export_mime_type``.

        Args:
            file_id: Remote file ID
            export_mime_type: Target format for native documents

        Returns:
            File content as bytes

        Raises:
            RoomSyncAPIError: If download fails after all retries
        """
        if export_mime_type:
            endpoint = f"/files/{file_id}/export"
            params = {"mimeType": export_mime_type}
        else:
            endpoint = f"/files/{file_id}"
            params = {"alt": "media", "supportsAllDrives": "true"}

        try:
            response = self._send(
                "GET", endpoint, timeout=self.download_timeout, params=params
            )
        except (
            RoomSyncAuthenticationError,
            RoomSyncPermissionError,
            RoomSyncNetworkError,
            RoomSyncRateLimitError,
        ):
            raise
        except RoomSyncAPIError as e:
            raise RoomSyncDownloadError(
                f"Download failed: {e}", e.status_code
            ) from e
        return response.content

    def get_about(self) -> Any:
        """Get information about the authenticated user.

        Returns:
            Response dict with a ``user`` key
        """
        return self._request("GET", "/about", params={"fields": "user"})
