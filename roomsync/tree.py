"""Typed, paginated access to the remote folder tree."""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .api import FILE_FIELDS, FOLDER_FIELDS, DriveClient
from .exceptions import RoomSyncNotFoundError
from .models import FOLDER_MIME_TYPE, NATIVE_EXPORT_TYPES, RemoteFile, RemoteFolder
from .utils import DEFAULT_MAX_DEPTH

logger = logging.getLogger(__name__)


def _quote(value: str) -> str:
    """Escape a value for use inside a single-quoted query literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _has_id(item: dict[str, Any]) -> bool:
    """Listing items without an ID cannot be mirrored; log and drop them."""
    if item.get("id"):
        return True
    logger.warning("Ignoring listing item without an id: %r", item.get("name"))
    return False


@dataclass
class RemoteTree:
    """Result of walking the remote tree from a root folder.

    ``folders`` is in pre-order: every folder appears after its parent.
    """

    root_id: str
    root_name: str = ""
    folders: list[RemoteFolder] = field(default_factory=list)
    files: list[RemoteFile] = field(default_factory=list)
    depth_limited: bool = False
    """True if descent stopped at max_depth for at least one folder"""


class RemoteTreeClient:
    """Lists folders and files and downloads content from the provider."""

    def __init__(self, client: DriveClient, page_size: int = 100):
        """Initialize the tree client.

        Args:
            client: Drive API client
            page_size: Number of items to request per page (default: 100)
        """
        self.client = client
        self.page_size = page_size

    def _list_all(self, query: str, fields: str) -> list[dict[str, Any]]:
        """Fetch every page of a listing query."""
        items: list[dict[str, Any]] = []
        page_token: Optional[str] = None

        while True:
            result = self.client.list_files(
                query=query,
                fields=fields,
                page_token=page_token,
                page_size=self.page_size,
            )
            # Items in the trash never count, even if the query let them through
            items.extend(f for f in result.get("files", []) if not f.get("trashed"))

            page_token = result.get("nextPageToken")
            if not page_token:
                break
            logger.debug("Fetching next page for query: %s", query)

        return items

    def list_folders(self, parent_id: Optional[str] = None) -> list[RemoteFolder]:
        """List non-trashed folders, optionally restricted to a parent.

        Args:
            parent_id: Remote folder ID to list (None for all visible folders)

        Returns:
            List of RemoteFolder objects ordered by name
        """
        query = f"mimeType='{FOLDER_MIME_TYPE}' and trashed=false"
        if parent_id:
            query += f" and '{_quote(parent_id)}' in parents"

        return [
            RemoteFolder.from_api_response(item, listing_parent=parent_id)
            for item in self._list_all(query, FOLDER_FIELDS)
            if _has_id(item)
        ]

    def list_files(self, parent_id: str) -> list[RemoteFile]:
        """List non-trashed, non-folder files directly inside a folder.

        Args:
            parent_id: Remote folder ID

        Returns:
            List of RemoteFile objects ordered by name
        """
        query = (
            f"'{_quote(parent_id)}' in parents and trashed=false "
            f"and mimeType!='{FOLDER_MIME_TYPE}'"
        )
        return [
            RemoteFile.from_api_response(item, listing_parent=parent_id)
            for item in self._list_all(query, FILE_FIELDS)
            if item.get("mimeType") != FOLDER_MIME_TYPE and _has_id(item)
        ]

    def get_folder(self, folder_id: str) -> RemoteFolder:
        """Describe a single folder.

        Raises:
            RoomSyncNotFoundError: If the ID does not refer to a folder
        """
        data = self.client.get_file(folder_id, fields=FOLDER_FIELDS)
        if data.get("mimeType") != FOLDER_MIME_TYPE:
            raise RoomSyncNotFoundError(f"Not a folder: {folder_id}")
        return RemoteFolder.from_api_response(data)

    def download(self, remote_id: str, content_type: str) -> bytes:
        """Download file content, exporting provider-native documents.

        Args:
            remote_id: Remote file ID
            content_type: The file's MIME type as reported by the provider

        Returns:
            File bytes in a concrete (non-native) format
        """
        export = NATIVE_EXPORT_TYPES.get(content_type)
        export_mime_type = export[0] if export else None
        return self.client.get_file_content(remote_id, export_mime_type)

    def walk(
        self,
        root_id: str,
        recursive: bool = True,
        max_depth: int = DEFAULT_MAX_DEPTH,
        on_folder: Optional[Callable[[RemoteFolder], None]] = None,
    ) -> RemoteTree:
        """Enumerate folders and files below a root folder.

        Files are listed at every visited folder, including the root. With
        ``recursive=False`` only the root's own files are returned. The root
        sits at depth 0; folders deeper than ``max_depth`` are not visited.
        The root is looked up first, so an ID that is missing or names a
        file fails before any listing. Any API error propagates, since a
        partial tree cannot be trusted.

        Args:
            root_id: Remote folder ID to start from
            recursive: Whether to descend into subfolders
            max_depth: Maximum folder depth to visit
            on_folder: Optional callback invoked for each visited folder

        Returns:
            RemoteTree with folders in pre-order and all files found

        Raises:
            RoomSyncNotFoundError: If root_id does not refer to a folder
        """
        start = time.time()
        root = self.get_folder(root_id)
        tree = RemoteTree(root_id=root_id, root_name=root.name)
        tree.files.extend(self.list_files(root_id))

        if recursive and max_depth > 0:
            visited: set[str] = {root_id}
            self._walk_children(root_id, 1, max_depth, visited, tree, on_folder)

        # A file with several parents is listed once per parent; keep the first
        seen_files: set[str] = set()
        unique_files: list[RemoteFile] = []
        for remote_file in tree.files:
            if remote_file.id not in seen_files:
                seen_files.add(remote_file.id)
                unique_files.append(remote_file)
        tree.files = unique_files

        logger.debug(
            "Remote walk of %s took %.2fs: %d folder(s), %d file(s)",
            root_id,
            time.time() - start,
            len(tree.folders),
            len(tree.files),
        )
        return tree

    def _walk_children(
        self,
        parent_id: str,
        depth: int,
        max_depth: int,
        visited: set[str],
        tree: RemoteTree,
        on_folder: Optional[Callable[[RemoteFolder], None]],
    ) -> None:
        for folder in self.list_folders(parent_id):
            # Prevent infinite recursion on cyclic or shared folders
            if folder.id in visited:
                logger.debug("Skipping already visited folder %s", folder.id)
                continue
            visited.add(folder.id)

            tree.folders.append(folder)
            tree.files.extend(self.list_files(folder.id))
            if on_folder is not None:
                on_folder(folder)

            if depth < max_depth:
                self._walk_children(
                    folder.id, depth + 1, max_depth, visited, tree, on_folder
                )
            else:
                tree.depth_limited = True
                logger.debug(
                    "Max depth %d reached at folder %s, not descending",
                    max_depth,
                    folder.id,
                )
