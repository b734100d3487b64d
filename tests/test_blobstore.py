"""Tests for the local blob store."""

import pytest

from roomsync.blobstore import LocalBlobStore
from roomsync.exceptions import BlobStoreError


class TestLocalBlobStore:
    """Tests for LocalBlobStore."""

    def test_put_and_get(self, blob_store):
        """Test stored bytes can be read back."""
        url = blob_store.put("dataroom/1/drive-sync/1-a.pdf", b"abc", "application/pdf")

        assert url.startswith("file://")
        assert url.endswith("/dataroom/1/drive-sync/1-a.pdf")
        assert blob_store.get("dataroom/1/drive-sync/1-a.pdf") == b"abc"

    def test_put_overwrites(self, blob_store):
        """Test writing the same key replaces the content."""
        blob_store.put("k/a.bin", b"one", "application/octet-stream")
        blob_store.put("k/a.bin", b"two", "application/octet-stream")
        assert blob_store.get("k/a.bin") == b"two"

    def test_no_temp_files_left(self, blob_store):
        """Test the atomic write leaves only the final object."""
        blob_store.put("k/a.bin", b"data", "application/octet-stream")
        assert [p.name for p in (blob_store.root / "k").iterdir()] == ["a.bin"]

    def test_base_url(self, tmp_path):
        """Test URLs use the configured public prefix."""
        store = LocalBlobStore(tmp_path, base_url="https://cdn.example/files/")
        url = store.put("dataroom/2/x.pdf", b"x", "application/pdf")
        assert url == "https://cdn.example/files/dataroom/2/x.pdf"

    @pytest.mark.parametrize("key", ["", "/etc/passwd", "a/../../escape"])
    def test_invalid_keys(self, blob_store, key):
        """Test keys cannot escape the store root."""
        with pytest.raises(BlobStoreError, match="Invalid blob key"):
            blob_store.put(key, b"x", "text/plain")

    def test_get_missing(self, blob_store):
        """Test reading a missing key fails."""
        with pytest.raises(BlobStoreError, match="Failed to read"):
            blob_store.get("missing.bin")
