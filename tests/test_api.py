"""Unit tests for the Drive API client."""

from unittest.mock import patch

import httpx
import pytest

from roomsync.api import FOLDER_FIELDS, DriveClient
from roomsync.exceptions import (
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

API_URL = "https://drive.test/v3"


def json_response(status_code, data, headers=None):
    return httpx.Response(status_code, json=data, headers=headers)


def make_client(handler, **kwargs):
    """Build a client whose requests are answered by ``handler``."""
    return DriveClient(
        access_token="test_token",
        api_url=API_URL,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.fixture(autouse=True)
def no_sleep():
    """Skip real backoff delays."""
    with patch("roomsync.api.time.sleep") as mock_sleep:
        yield mock_sleep


class TestDriveClientInit:
    """Tests for DriveClient initialization."""

    def test_init_with_token(self):
        """Test client initialization with an explicit token."""
        client = DriveClient(access_token="abc", api_url="https://custom.api/")
        assert client.access_token == "abc"
        assert client.api_url == "https://custom.api"

    def test_init_without_token_raises_error(self):
        """Test that a missing token is a configuration error."""
        with patch("roomsync.api.config") as mock_config:
            mock_config.access_token = None
            mock_config.api_url = API_URL
            with pytest.raises(RoomSyncConfigError, match="Access token not configured"):
                DriveClient(access_token=None)

    def test_authorization_header(self):
        """Test every request carries the bearer token."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return json_response(200, {"user": {}})

        make_client(handler).get_about()
        assert seen["auth"] == "Bearer test_token"

    def test_context_manager_closes_client(self):
        """Test leaving the context closes the HTTP client."""
        with make_client(lambda r: json_response(200, {})) as client:
            client.get_about()
            http_client = client._client
        assert http_client.is_closed
        assert client._client is None


class TestListFiles:
    """Tests for list_files request parameters."""

    def test_list_files_params(self):
        """Test query, fields and paging parameters are sent."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return json_response(200, {"files": [], "nextPageToken": "next"})

        result = make_client(handler).list_files(
            query="'root' in parents", fields=FOLDER_FIELDS, page_token="tok", page_size=50
        )

        assert result == {"files": [], "nextPageToken": "next"}
        assert seen["path"] == "/v3/files"
        params = seen["params"]
        assert params["q"] == "'root' in parents"
        assert params["pageToken"] == "tok"
        assert params["pageSize"] == "50"
        assert params["fields"] == f"nextPageToken,files({FOLDER_FIELDS})"
        assert params["supportsAllDrives"] == "true"
        assert params["orderBy"] == "name"

    def test_non_json_response_rejected(self):
        """Test an HTML error page is reported as an invalid response."""

        def handler(request):
            return httpx.Response(
                200, text="<html></html>", headers={"Content-Type": "text/html"}
            )

        with pytest.raises(RoomSyncInvalidResponseError):
            make_client(handler).list_files()


class TestErrorMapping:
    """Tests for status code translation."""

    @pytest.mark.parametrize(
        "status_code,error_class",
        [
            (401, RoomSyncAuthenticationError),
            (403, RoomSyncPermissionError),
            (404, RoomSyncNotFoundError),
        ],
    )
    def test_client_errors_not_retried(self, status_code, error_class, no_sleep):
        """Test permanent errors are raised immediately."""
        calls = []

        def handler(request):
            calls.append(request)
            return json_response(status_code, {"error": {"message": "nope"}})

        with pytest.raises(error_class) as exc_info:
            make_client(handler).get_file("x")

        assert exc_info.value.status_code == status_code
        assert len(calls) == 1
        no_sleep.assert_not_called()

    def test_error_message_from_body(self):
        """Test the provider's error message is included for other codes."""

        def handler(request):
            return json_response(400, {"error": {"code": 400, "message": "Invalid Value"}})

        with pytest.raises(RoomSyncAPIError, match="Invalid Value") as exc_info:
            make_client(handler).list_files(query="bad")
        assert exc_info.value.status_code == 400

    def test_forbidden_rate_limit_is_retried(self):
        """Test 403 rateLimitExceeded is treated as a rate limit."""
        responses = [
            json_response(403, {"error": {"errors": [{"reason": "rateLimitExceeded"}]}}),
            json_response(200, {"files": []}),
        ]

        result = make_client(lambda r: responses.pop(0)).list_files()

        assert result == {"files": []}


class TestRetries:
    """Tests for retry behavior."""

    def test_server_error_retried(self, no_sleep):
        """Test 5xx responses are retried with backoff."""
        responses = [
            json_response(503, {}),
            json_response(500, {}),
            json_response(200, {"user": {"emailAddress": "a@b.c"}}),
        ]

        result = make_client(lambda r: responses.pop(0)).get_about()

        assert result["user"]["emailAddress"] == "a@b.c"
        assert no_sleep.call_count == 2

    def test_gives_up_after_max_retries(self, no_sleep):
        """Test the last error is raised once retries are exhausted."""
        calls = []

        def handler(request):
            calls.append(request)
            return json_response(502, {})

        with pytest.raises(RoomSyncAPIError) as exc_info:
            make_client(handler, max_retries=2).get_about()

        assert exc_info.value.status_code == 502
        assert len(calls) == 3

    def test_retry_after_header_honored(self, no_sleep):
        """Test a 429 with Retry-After waits the advertised time."""
        responses = [
            json_response(429, {}, headers={"Retry-After": "7"}),
            json_response(200, {}),
        ]

        make_client(lambda r: responses.pop(0)).get_about()

        no_sleep.assert_called_once_with(7.0)

    def test_rate_limit_exhausted(self):
        """Test persistent 429s surface as a rate limit error."""
        with pytest.raises(RoomSyncRateLimitError):
            make_client(lambda r: json_response(429, {}), max_retries=1).get_about()

    def test_network_error_retried_then_raised(self):
        """Test transport failures are retried and then wrapped."""
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RoomSyncNetworkError, match="connection refused"):
            make_client(handler, max_retries=1).get_about()
        assert len(calls) == 2

    def test_backoff_grows(self):
        """Test the retry delay roughly doubles per attempt."""
        client = make_client(lambda r: json_response(200, {}), retry_delay=1.0)
        assert 0.75 <= client._calculate_retry_delay(0) <= 1.25
        assert 3.0 <= client._calculate_retry_delay(2) <= 5.0


class TestGetFileContent:
    """Tests for content download."""

    def test_binary_download(self):
        """Test ordinary files use alt=media."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, content=b"%PDF")

        content = make_client(handler).get_file_content("abc")

        assert content == b"%PDF"
        assert seen["path"] == "/v3/files/abc"
        assert seen["params"]["alt"] == "media"

    def test_export_download(self):
        """Test native documents use the export endpoint."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, content=b"exported")

        make_client(handler).get_file_content("doc1", "application/pdf")

        assert seen["path"] == "/v3/files/doc1/export"
        assert seen["params"]["mimeType"] == "application/pdf"

    def test_missing_file_is_download_error(self):
        """Test a 404 during download is wrapped as a download error."""

        def handler(request):
            return json_response(404, {"error": {"message": "File not found"}})

        with pytest.raises(RoomSyncDownloadError, match="Download failed") as exc_info:
            make_client(handler).get_file_content("gone")
        assert exc_info.value.status_code == 404

    def test_auth_error_not_wrapped(self):
        """Test auth failures keep their type during download."""
        with pytest.raises(RoomSyncAuthenticationError):
            make_client(lambda r: json_response(401, {})).get_file_content("abc")

