"""Content transfer from the remote provider into the blob store."""

import logging
import time
from typing import Optional

from ..blobstore import BlobStore
from ..exceptions import BlobStoreError, RoomSyncError
from ..models import NATIVE_EXPORT_TYPES, RemoteFile, StoredBlob
from ..tree import RemoteTreeClient
from ..utils import sanitize_file_name

logger = logging.getLogger(__name__)


def make_run_stamp() -> str:
    """Millisecond timestamp used to keep storage keys unique per run."""
    return str(int(time.time() * 1000))


class SyncOperations:
    """Downloads remote files and writes them to the blob store."""

    def __init__(self, tree: RemoteTreeClient, blob_store: BlobStore):
        """Initialize sync operations.

        Args:
            tree: Remote tree client used for downloads
            blob_store: Destination for file content
        """
        self.tree = tree
        self.blob_store = blob_store

    def storage_key(self, remote_file: RemoteFile, scope_id: int, run_stamp: str) -> str:
        """Build the blob key for a remote file.

        The remote ID keeps files with the same display name apart within a
        run. Exported native documents get the export format's extension so
        the stored name matches its content. A file "Q3 plan.pdf" with ID
        "1xY" in scope 4 becomes
        ``dataroom/4/drive-sync/<run_stamp>-1xY-Q3_plan.pdf``.
        """
        name = remote_file.name
        if remote_file.is_native_document:
            extension = NATIVE_EXPORT_TYPES[remote_file.mime_type][1]
            if not name.lower().endswith(f".{extension}"):
                name = f"{name}.{extension}"
        return (
            f"dataroom/{scope_id}/drive-sync/{run_stamp}-"
            f"{sanitize_file_name(remote_file.id)}-{sanitize_file_name(name)}"
        )

    def content_type_for(self, remote_file: RemoteFile) -> str:
        """Content type of the bytes that will actually be stored."""
        if remote_file.is_native_document:
            return NATIVE_EXPORT_TYPES[remote_file.mime_type][0]
        return remote_file.mime_type

    def transfer(
        self, remote_file: RemoteFile, scope_id: int, run_stamp: Optional[str] = None
    ) -> Optional[StoredBlob]:
        """Download a remote file and store it.

        Failures are logged and reported as None so the caller can record a
        per-file warning and move on.

        Args:
            remote_file: File to transfer
            scope_id: Sync scope the file belongs to
            run_stamp: Per-run timestamp for the storage key

        Returns:
            StoredBlob with the URL and key, or None on failure
        """
        run_stamp = run_stamp or make_run_stamp()
        key = self.storage_key(remote_file, scope_id, run_stamp)
        content_type = self.content_type_for(remote_file)

        start = time.time()
        try:
            content = self.tree.download(remote_file.id, remote_file.mime_type)
        except RoomSyncError as e:
            logger.warning(f"Failed to download {remote_file.name}: {e}")
            return None

        try:
            url = self.blob_store.put(key, content, content_type)
        except (BlobStoreError, OSError) as e:
            logger.warning(f"Failed to upload {remote_file.name}: {e}")
            return None

        if not url:
            logger.warning(f"Blob store returned no URL for {remote_file.name}")
            return None

        logger.debug(
            f"Transferred {remote_file.name} ({len(content)} bytes) "
            f"in {time.time() - start:.2f}s"
        )
        return StoredBlob(url=url, key=key, content_type=content_type, size=len(content))
