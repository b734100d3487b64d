"""Shared fixtures for roomsync tests."""

from typing import Callable, Optional
from unittest.mock import Mock

import pytest

from roomsync.api import DriveClient
from roomsync.blobstore import LocalBlobStore
from roomsync.exceptions import RoomSyncDownloadError, RoomSyncNotFoundError
from roomsync.models import RemoteFile, RemoteFolder
from roomsync.store import InMemoryMirrorStore
from roomsync.sync import SyncEngine
from roomsync.tree import RemoteTreeClient
from roomsync.utils import parse_iso_timestamp


class FakeTree(RemoteTreeClient):
    """Remote tree backed by dictionaries instead of HTTP.

    Only the listing and download primitives are replaced, so ``walk`` runs
    the real traversal code.
    """

    def __init__(self):
        super().__init__(client=Mock(spec=DriveClient))
        self.children: dict[Optional[str], list[RemoteFolder]] = {}
        self.files_by_parent: dict[str, list[RemoteFile]] = {}
        self.content: dict[str, bytes] = {}
        self.download_errors: set[str] = set()
        self.downloads: list[str] = []
        self.listing_error: Optional[Exception] = None
        self.on_download: Optional[Callable[[str], None]] = None

    def add_folder(self, folder_id: str, name: str, parent_id: str) -> RemoteFolder:
        folder = RemoteFolder(id=folder_id, name=name, parents=[parent_id])
        self.children.setdefault(parent_id, []).append(folder)
        return folder

    def add_file(
        self,
        file_id: str,
        name: str,
        parent_id: str,
        mime_type: str = "application/pdf",
        size: Optional[int] = 1024,
        modified: Optional[str] = "2025-01-15T10:00:00Z",
        content: bytes = b"%PDF-1.4 test",
        extra_parents: tuple = (),
    ) -> RemoteFile:
        remote_file = RemoteFile(
            id=file_id,
            name=name,
            mime_type=mime_type,
            size=size,
            parents=[parent_id, *extra_parents],
            modified_time=parse_iso_timestamp(modified),
            web_view_link=f"https://drive.example/file/{file_id}",
        )
        for parent in remote_file.parents:
            self.files_by_parent.setdefault(parent, []).append(remote_file)
        self.content[file_id] = content
        return remote_file

    def get_folder(self, folder_id):
        if self.listing_error is not None:
            raise self.listing_error
        if folder_id == "root":
            return RemoteFolder(id="root", name="My Drive")
        for folders in self.children.values():
            for folder in folders:
                if folder.id == folder_id:
                    return folder
        raise RoomSyncNotFoundError(f"Not a folder: {folder_id}", 404)

    def list_folders(self, parent_id=None):
        if self.listing_error is not None:
            raise self.listing_error
        return list(self.children.get(parent_id, []))

    def list_files(self, parent_id):
        if self.listing_error is not None:
            raise self.listing_error
        return list(self.files_by_parent.get(parent_id, []))

    def download(self, remote_id, content_type):
        self.downloads.append(remote_id)
        if self.on_download is not None:
            self.on_download(remote_id)
        if remote_id in self.download_errors:
            raise RoomSyncDownloadError(f"Download failed: {remote_id}", 500)
        return self.content[remote_id]


@pytest.fixture
def fake_tree():
    """Provide an empty fake remote tree rooted at 'root'."""
    return FakeTree()


@pytest.fixture
def memory_store():
    """Provide an empty in-memory mirror store."""
    return InMemoryMirrorStore()


@pytest.fixture
def blob_store(tmp_path):
    """Provide a local blob store in a temporary directory."""
    return LocalBlobStore(tmp_path / "blobs")


@pytest.fixture
def engine(fake_tree, memory_store, blob_store):
    """Provide a quiet sync engine wired to the fakes."""
    return SyncEngine(fake_tree, memory_store, blob_store)
