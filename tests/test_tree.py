"""Unit tests for the remote tree client."""

from unittest.mock import Mock

import pytest

from roomsync.api import FILE_FIELDS, FOLDER_FIELDS, DriveClient
from roomsync.exceptions import RoomSyncNotFoundError, RoomSyncPermissionError
from roomsync.models import FOLDER_MIME_TYPE
from roomsync.tree import RemoteTreeClient


def folder(folder_id, name, parent):
    return {"id": folder_id, "name": name, "mimeType": FOLDER_MIME_TYPE, "parents": [parent]}


def file(file_id, name, parent, **extra):
    data = {
        "id": file_id,
        "name": name,
        "mimeType": "application/pdf",
        "size": "1024",
        "parents": [parent],
        "modifiedTime": "2025-01-15T10:30:00.000Z",
    }
    data.update(extra)
    return data


@pytest.fixture
def mock_client():
    """Create a mock Drive client."""
    return Mock(spec=DriveClient)


class TestListing:
    """Tests for paginated listing."""

    def test_list_files_follows_pages(self, mock_client):
        """Test every page is fetched until nextPageToken is absent."""
        mock_client.list_files.side_effect = [
            {"files": [file("a", "a.pdf", "root")], "nextPageToken": "p2"},
            {"files": [file("b", "b.pdf", "root")]},
        ]

        files = RemoteTreeClient(mock_client, page_size=1).list_files("root")

        assert [f.id for f in files] == ["a", "b"]
        assert mock_client.list_files.call_count == 2
        second = mock_client.list_files.call_args_list[1].kwargs
        assert second["page_token"] == "p2"
        assert second["page_size"] == 1
        assert second["fields"] == FILE_FIELDS

    def test_list_files_query(self, mock_client):
        """Test the file query excludes trash and folders."""
        mock_client.list_files.return_value = {"files": []}

        RemoteTreeClient(mock_client).list_files("abc")

        query = mock_client.list_files.call_args.kwargs["query"]
        assert "'abc' in parents" in query
        assert "trashed=false" in query
        assert f"mimeType!='{FOLDER_MIME_TYPE}'" in query

    def test_list_folders_query_without_parent(self, mock_client):
        """Test listing all folders omits the parent clause."""
        mock_client.list_files.return_value = {"files": []}

        RemoteTreeClient(mock_client).list_folders()

        kwargs = mock_client.list_files.call_args.kwargs
        assert kwargs["query"] == f"mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        assert kwargs["fields"] == FOLDER_FIELDS

    def test_query_quotes_ids(self, mock_client):
        """Test quotes in IDs are escaped in the query literal."""
        mock_client.list_files.return_value = {"files": []}

        RemoteTreeClient(mock_client).list_folders("it's")

        assert "'it\\'s' in parents" in mock_client.list_files.call_args.kwargs["query"]

    def test_trashed_items_dropped(self, mock_client):
        """Test items flagged as trashed never surface."""
        mock_client.list_files.return_value = {
            "files": [file("a", "a.pdf", "root"), file("b", "b.pdf", "root", trashed=True)]
        }

        files = RemoteTreeClient(mock_client).list_files("root")

        assert [f.id for f in files] == ["a"]

    def test_listing_parent_fills_missing_parents(self, mock_client):
        """Test items without a parents field inherit the listed folder."""
        mock_client.list_files.return_value = {
            "files": [{"id": "a", "name": "a.pdf", "mimeType": "application/pdf"}]
        }

        files = RemoteTreeClient(mock_client).list_files("root")

        assert files[0].parents == ["root"]

    def test_malformed_item_does_not_stop_listing(self, mock_client):
        """Test one bad size is flagged and a missing ID is dropped."""
        mock_client.list_files.return_value = {
            "files": [
                file("a", "a.pdf", "root", size="10"),
                file("b", "b.pdf", "root", size="n/a"),
                {"name": "orphan.pdf", "mimeType": "application/pdf"},
            ]
        }

        files = RemoteTreeClient(mock_client).list_files("root")

        assert [f.id for f in files] == ["a", "b"]
        assert files[0].size == 10
        assert files[0].invalid_metadata is None
        assert files[1].invalid_metadata == "Invalid size 'n/a'"


class TestGetFolderAndDownload:
    """Tests for single-item lookups."""

    def test_get_folder(self, mock_client):
        """Test describing a folder."""
        mock_client.get_file.return_value = folder("f1", "Legal", "root")

        result = RemoteTreeClient(mock_client).get_folder("f1")

        assert result.name == "Legal"
        assert result.parent_id == "root"

    def test_get_folder_rejects_files(self, mock_client):
        """Test a file ID is not accepted as a folder."""
        mock_client.get_file.return_value = file("a", "a.pdf", "root")

        with pytest.raises(RoomSyncNotFoundError, match="Not a folder"):
            RemoteTreeClient(mock_client).get_folder("a")

    def test_walk_checks_root_first(self, mock_client):
        """Test walking from a file ID fails before anything is listed."""
        mock_client.get_file.return_value = file("a", "a.pdf", "root")

        with pytest.raises(RoomSyncNotFoundError):
            RemoteTreeClient(mock_client).walk("a")

        mock_client.list_files.assert_not_called()

    def test_walk_records_root_name(self, mock_client):
        """Test the root folder's name is kept on the tree."""
        mock_client.get_file.return_value = folder("f1", "Legal", "root")
        mock_client.list_files.return_value = {"files": []}

        tree = RemoteTreeClient(mock_client).walk("f1", recursive=False)

        assert tree.root_name == "Legal"

    def test_download_binary(self, mock_client):
        """Test ordinary files are downloaded without export."""
        mock_client.get_file_content.return_value = b"data"

        content = RemoteTreeClient(mock_client).download("a", "application/pdf")

        assert content == b"data"
        mock_client.get_file_content.assert_called_once_with("a", None)

    def test_download_exports_native_documents(self, mock_client):
        """Test native spreadsheets are exported as xlsx."""
        mock_client.get_file_content.return_value = b"xlsx"

        RemoteTreeClient(mock_client).download(
            "s", "application/vnd.google-apps.spreadsheet"
        )

        mock_client.get_file_content.assert_called_once_with(
            "s", "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )


class TestWalk:
    """Tests for recursive traversal."""

    def test_walk_pre_order(self, fake_tree):
        """Test folders are returned parents first."""
        fake_tree.add_folder("b", "B", "root")
        fake_tree.add_folder("a", "A", "root")
        fake_tree.add_folder("a1", "A1", "a")
        fake_tree.add_folder("b1", "B1", "b")

        tree = fake_tree.walk("root")

        assert [f.id for f in tree.folders] == ["b", "b1", "a", "a1"]
        assert tree.depth_limited is False

    def test_walk_collects_files_at_every_level(self, fake_tree):
        """Test files from the root and each visited folder are returned."""
        fake_tree.add_file("r", "r.pdf", "root")
        fake_tree.add_folder("a", "A", "root")
        fake_tree.add_file("x", "x.pdf", "a")

        tree = fake_tree.walk("root")

        assert [f.id for f in tree.files] == ["r", "x"]

    def test_walk_non_recursive(self, fake_tree):
        """Test only root files are returned without recursion."""
        fake_tree.add_file("r", "r.pdf", "root")
        fake_tree.add_folder("a", "A", "root")
        fake_tree.add_file("x", "x.pdf", "a")

        tree = fake_tree.walk("root", recursive=False)

        assert tree.folders == []
        assert [f.id for f in tree.files] == ["r"]

    def test_walk_depth_limit(self, fake_tree):
        """Test folders past max_depth are not visited."""
        fake_tree.add_folder("d1", "D1", "root")
        fake_tree.add_folder("d2", "D2", "d1")
        fake_tree.add_folder("d3", "D3", "d2")
        fake_tree.add_file("deep", "deep.pdf", "d3")

        tree = fake_tree.walk("root", max_depth=2)

        assert [f.id for f in tree.folders] == ["d1", "d2"]
        assert tree.files == []
        assert tree.depth_limited is True

    def test_walk_survives_cycles(self, fake_tree):
        """Test a folder reachable from its own descendant is visited once."""
        fake_tree.add_folder("a", "A", "root")
        fake_tree.add_folder("b", "B", "a")
        # Shortcut-style cycle back to A and to the root
        fake_tree.children.setdefault("b", []).append(fake_tree.children["root"][0])
        fake_tree.add_folder("root", "Root", "b")

        tree = fake_tree.walk("root")

        assert [f.id for f in tree.folders] == ["a", "b"]

    def test_walk_reports_each_folder(self, fake_tree):
        """Test the on_folder callback sees every visited folder."""
        fake_tree.add_folder("a", "A", "root")
        fake_tree.add_folder("b", "B", "a")
        seen = []

        fake_tree.walk("root", on_folder=lambda f: seen.append(f.name))

        assert seen == ["A", "B"]

    def test_walk_propagates_errors(self, fake_tree):
        """Test listing errors abort the walk."""
        fake_tree.listing_error = RoomSyncPermissionError("Access forbidden")

        with pytest.raises(RoomSyncPermissionError):
            fake_tree.walk("root")
