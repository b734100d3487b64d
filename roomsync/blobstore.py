"""Blob storage for mirrored document content."""

import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Optional

from .exceptions import BlobStoreError

logger = logging.getLogger(__name__)


class BlobStore(ABC):
    """Put/get interface to an object store."""

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under a key.

        Args:
            key: Object key (forward-slash separated)
            data: Object content
            content_type: MIME type of the content

        Returns:
            URL where the object can be retrieved

        Raises:
            BlobStoreError: If the object cannot be written
        """

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Read the bytes stored under a key.

        Raises:
            BlobStoreError: If the object does not exist or cannot be read
        """


class LocalBlobStore(BlobStore):
    """Blob store backed by a local directory.

    Objects are written atomically (temp file + rename). URLs are built from
    ``base_url`` when given, otherwise they are ``file://`` URIs.
    """

    def __init__(self, root: Path, base_url: Optional[str] = None):
        """Initialize the store.

        Args:
            root: Directory holding the objects (created if missing)
            base_url: Optional public URL prefix for stored objects
        """
        self.root = Path(root)
        self.base_url = base_url.rstrip("/") if base_url else None
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or key.startswith("/") or ".." in parts:
            raise BlobStoreError(f"Invalid blob key: {key!r}")
        return self.root.joinpath(*parts)

    def _url_for(self, key: str, path: Path) -> str:
        if self.base_url:
            return f"{self.base_url}/{key}"
        return path.resolve().as_uri()

    def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, path)
            except OSError:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise BlobStoreError(f"Failed to write blob {key}: {e}") from e

        logger.debug("Stored %d bytes (%s) at %s", len(data), content_type, key)
        return self._url_for(key, path)

    def get(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except OSError as e:
            raise BlobStoreError(f"Failed to read blob {key}: {e}") from e
