"""Tests for data models."""

from datetime import datetime, timezone

import pytest

from roomsync.models import (
    MirrorDocument,
    MirrorFolder,
    RemoteFile,
    RemoteFolder,
    SyncRunResult,
)


class TestRemoteFile:
    """Tests for RemoteFile parsing."""

    def test_from_api_response(self):
        """Test a provider file resource is parsed."""
        remote = RemoteFile.from_api_response(
            {
                "id": "abc",
                "name": "Report.PDF",
                "mimeType": "application/pdf",
                "size": "2097152",
                "parents": ["p1", "p2"],
                "modifiedTime": "2025-01-15T10:30:00.000Z",
                "webViewLink": "https://drive.example/abc",
                "thumbnailLink": "https://drive.example/abc/thumb",
            }
        )

        assert remote.size == 2097152
        assert remote.size_mb == 2.0
        assert remote.extension == "pdf"
        assert remote.simple_type == "pdf"
        assert remote.parent_id == "p1"
        assert remote.modified_time == datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert remote.thumbnail_link == "https://drive.example/abc/thumb"
        assert remote.is_native_document is False

    def test_native_document_without_size(self):
        """Test native documents have no size and count as zero MB."""
        remote = RemoteFile.from_api_response(
            {"id": "d", "name": "Notes", "mimeType": "application/vnd.google-apps.document"}
        )
        assert remote.size is None
        assert remote.size_mb == 0
        assert remote.is_native_document is True
        assert remote.modified_time is None

    @pytest.mark.parametrize("size", ["lots", "-5", ["1"]])
    def test_bad_size_recorded_not_raised(self, size):
        """Test a malformed size leaves the file readable but flagged."""
        remote = RemoteFile.from_api_response({"id": "x", "name": "b.pdf", "size": size})

        assert remote.size is None
        assert remote.invalid_metadata == f"Invalid size {size!r}"

    def test_missing_id_rejected(self):
        """Test a resource without an ID cannot be parsed."""
        with pytest.raises(KeyError):
            RemoteFile.from_api_response({"name": "orphan.pdf"})


class TestRemoteFolder:
    """Tests for RemoteFolder parsing."""

    def test_listing_parent_used_when_missing(self):
        """Test the listed folder becomes the parent when none is reported."""
        folder = RemoteFolder.from_api_response({"id": "f", "name": "Legal"}, "root")
        assert folder.parents == ["root"]

    def test_root_has_no_parent(self):
        """Test a folder without parents has no parent_id."""
        assert RemoteFolder.from_api_response({"id": "f"}).parent_id is None


class TestMirrorRows:
    """Tests for mirror row serialization."""

    def test_document_round_trip(self):
        """Test documents survive to_dict/from_dict including timestamps."""
        doc = MirrorDocument(
            id=3,
            scope_id=1,
            name="a.pdf",
            folder_id=2,
            file_type="pdf",
            storage_key="dataroom/1/drive-sync/1-a.pdf",
            remote_id="r",
            remote_modified_time=datetime(2025, 1, 15, tzinfo=timezone.utc),
        )
        assert MirrorDocument.from_dict(doc.to_dict()) == doc

    def test_folder_defaults(self):
        """Test folders created outside sync have no remote id."""
        folder = MirrorFolder.from_dict({"id": 1, "scope_id": 1, "name": "Manual"})
        assert folder.remote_id is None
        assert folder.parent_id is None


class TestSyncRunResult:
    """Tests for SyncRunResult serialization."""

    def test_to_dict(self):
        """Test the serialized form."""
        result = SyncRunResult(
            scope_id=1,
            started_at=datetime(2025, 1, 15, tzinfo=timezone.utc),
            files_scanned=2,
            files_created=1,
            files_skipped=1,
            warnings=("w",),
            duration_seconds=1.23456,
        )

        data = result.to_dict()

        assert data["started_at"] == "2025-01-15T00:00:00+00:00"
        assert data["warnings"] == ["w"]
        assert data["duration_seconds"] == 1.235
        assert SyncRunResult.from_dict(data).files_created == 1

    def test_from_dict_requires_started_at(self):
        """Test a record without a start time is rejected."""
        with pytest.raises(ValueError, match="started_at"):
            SyncRunResult.from_dict({"scope_id": 1})
