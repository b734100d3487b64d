"""Persistence for mirror folders, documents and sync run history.

The sync engine only talks to the :class:`MirrorStore` interface. Two
implementations ship: an in-memory store (used by tests and embedding
applications that persist elsewhere) and a JSON file store used by the CLI.
"""

import dataclasses
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from .exceptions import MirrorStoreError
from .models import MirrorDocument, MirrorFolder, SyncRunResult

logger = logging.getLogger(__name__)

# Fields of MirrorDocument that update_document may change
UPDATABLE_DOCUMENT_FIELDS = frozenset(
    f.name for f in dataclasses.fields(MirrorDocument) if f.name not in ("id", "scope_id")
)


class MirrorStore(ABC):
    """Data-access interface for the local mirror, scoped by sync scope."""

    @abstractmethod
    def list_folders(self, scope_id: int) -> list[MirrorFolder]:
        """All mirror folders in a scope."""

    @abstractmethod
    def list_documents(self, scope_id: int) -> list[MirrorDocument]:
        """All mirror documents in a scope."""

    @abstractmethod
    def get_folder_by_remote_id(
        self, scope_id: int, remote_id: str
    ) -> Optional[MirrorFolder]:
        """Folder mirrored from a remote folder, if any."""

    @abstractmethod
    def get_document_by_remote_id(
        self, scope_id: int, remote_id: str
    ) -> Optional[MirrorDocument]:
        """Document mirrored from a remote file, if any."""

    @abstractmethod
    def create_folder(
        self,
        scope_id: int,
        name: str,
        parent_id: Optional[int] = None,
        remote_id: Optional[str] = None,
    ) -> MirrorFolder:
        """Create a folder.

        Raises:
            MirrorStoreError: If the parent is unknown or in another scope
        """

    @abstractmethod
    def create_document(
        self, scope_id: int, name: str, folder_id: Optional[int] = None, **fields: Any
    ) -> MirrorDocument:
        """Create a document.

        Raises:
            MirrorStoreError: If the folder is unknown or in another scope
        """

    @abstractmethod
    def update_document(self, document_id: int, **fields: Any) -> MirrorDocument:
        """Update fields of a document in place.

        Raises:
            MirrorStoreError: If the document is unknown, a field is not
                updatable, or the new folder belongs to another scope
        """

    @abstractmethod
    def count_documents(self, scope_id: int) -> int:
        """Number of documents in a scope."""

    @abstractmethod
    def record_run(self, result: SyncRunResult) -> None:
        """Append a completed run to the scope's history."""

    @abstractmethod
    def get_runs(self, scope_id: int, limit: Optional[int] = None) -> list[SyncRunResult]:
        """Run history for a scope, newest first."""

    @abstractmethod
    def begin_run(self, scope_id: int) -> bool:
        """Mark a run as in progress.

        Returns:
            False if a run is already in progress for the scope
        """

    @abstractmethod
    def end_run(self, scope_id: int) -> None:
        """Clear the in-progress mark for a scope."""

    def get_last_run(self, scope_id: int) -> Optional[SyncRunResult]:
        """Most recent run for a scope, if any."""
        runs = self.get_runs(scope_id, limit=1)
        return runs[0] if runs else None


class InMemoryMirrorStore(MirrorStore):
    """Thread-safe mirror store that keeps everything in memory."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._folders: dict[int, MirrorFolder] = {}
        self._documents: dict[int, MirrorDocument] = {}
        self._runs: dict[int, list[SyncRunResult]] = {}
        self._active_scopes: set[int] = set()
        self._next_folder_id = 1
        self._next_document_id = 1

    def _persist(self) -> None:
        """Hook called after every row mutation (no-op in memory)."""

    def _check_folder(self, scope_id: int, folder_id: Optional[int]) -> None:
        if folder_id is None:
            return
        folder = self._folders.get(folder_id)
        if folder is None:
            raise MirrorStoreError(f"Unknown folder {folder_id}")
        if folder.scope_id != scope_id:
            raise MirrorStoreError(
                f"Folder {folder_id} belongs to scope {folder.scope_id}, "
                f"not {scope_id}"
            )

    def list_folders(self, scope_id: int) -> list[MirrorFolder]:
        with self._lock:
            return [
                dataclasses.replace(f)
                for f in self._folders.values()
                if f.scope_id == scope_id
            ]

    def list_documents(self, scope_id: int) -> list[MirrorDocument]:
        with self._lock:
            return [
                dataclasses.replace(d)
                for d in self._documents.values()
                if d.scope_id == scope_id
            ]

    def get_folder(self, folder_id: int) -> Optional[MirrorFolder]:
        """Folder by local ID, if any."""
        with self._lock:
            folder = self._folders.get(folder_id)
            return dataclasses.replace(folder) if folder else None

    def get_folder_by_remote_id(
        self, scope_id: int, remote_id: str
    ) -> Optional[MirrorFolder]:
        with self._lock:
            for folder in self._folders.values():
                if folder.scope_id == scope_id and folder.remote_id == remote_id:
                    return dataclasses.replace(folder)
        return None

    def get_document_by_remote_id(
        self, scope_id: int, remote_id: str
    ) -> Optional[MirrorDocument]:
        with self._lock:
            for document in self._documents.values():
                if document.scope_id == scope_id and document.remote_id == remote_id:
                    return dataclasses.replace(document)
        return None

    def create_folder(
        self,
        scope_id: int,
        name: str,
        parent_id: Optional[int] = None,
        remote_id: Optional[str] = None,
    ) -> MirrorFolder:
        with self._lock:
            # Parents must already exist, so the chain can never loop
            self._check_folder(scope_id, parent_id)
            folder = MirrorFolder(
                id=self._next_folder_id,
                scope_id=scope_id,
                name=name,
                parent_id=parent_id,
                remote_id=remote_id,
            )
            self._next_folder_id += 1
            self._folders[folder.id] = folder
            self._persist()
            return dataclasses.replace(folder)

    def create_document(
        self, scope_id: int, name: str, folder_id: Optional[int] = None, **fields: Any
    ) -> MirrorDocument:
        unknown = set(fields) - UPDATABLE_DOCUMENT_FIELDS
        if unknown:
            raise MirrorStoreError(f"Unknown document fields: {sorted(unknown)}")
        with self._lock:
            self._check_folder(scope_id, folder_id)
            document = MirrorDocument(
                id=self._next_document_id,
                scope_id=scope_id,
                name=name,
                folder_id=folder_id,
                **fields,
            )
            self._next_document_id += 1
            self._documents[document.id] = document
            self._persist()
            return dataclasses.replace(document)

    def update_document(self, document_id: int, **fields: Any) -> MirrorDocument:
        unknown = set(fields) - UPDATABLE_DOCUMENT_FIELDS
        if unknown:
            raise MirrorStoreError(f"Cannot update document fields: {sorted(unknown)}")
        with self._lock:
            document = self._documents.get(document_id)
            if document is None:
                raise MirrorStoreError(f"Unknown document {document_id}")
            if "folder_id" in fields:
                self._check_folder(document.scope_id, fields["folder_id"])
            updated = dataclasses.replace(document, **fields)
            self._documents[document_id] = updated
            self._persist()
            return dataclasses.replace(updated)

    def count_documents(self, scope_id: int) -> int:
        with self._lock:
            return sum(1 for d in self._documents.values() if d.scope_id == scope_id)

    def record_run(self, result: SyncRunResult) -> None:
        with self._lock:
            self._runs.setdefault(result.scope_id, []).append(result)

    def get_runs(self, scope_id: int, limit: Optional[int] = None) -> list[SyncRunResult]:
        with self._lock:
            runs = list(reversed(self._runs.get(scope_id, [])))
        return runs[:limit] if limit is not None else runs

    def begin_run(self, scope_id: int) -> bool:
        with self._lock:
            if scope_id in self._active_scopes:
                return False
            self._active_scopes.add(scope_id)
            return True

    def end_run(self, scope_id: int) -> None:
        with self._lock:
            self._active_scopes.discard(scope_id)


class JsonMirrorStore(InMemoryMirrorStore):
    """Mirror store persisted as JSON files in a data directory.

    Layout::

        <data_dir>/mirror.json               folders, documents, id counters
        <data_dir>/runs/scope-<id>.jsonl     append-only run log
        <data_dir>/locks/scope-<id>.lock     run-in-progress flag (holds PID)

    The lock file is created exclusively, so two processes cannot run the
    same scope at once. A lock left behind by a dead process is reclaimed.
    """

    def __init__(self, data_dir: Path):
        """Initialize the store, loading existing rows.

        Args:
            data_dir: Directory to store state in (created if missing)
        """
        super().__init__()
        self.data_dir = Path(data_dir)
        self.mirror_file = self.data_dir / "mirror.json"
        self.runs_dir = self.data_dir / "runs"
        self.locks_dir = self.data_dir / "locks"
        for directory in (self.data_dir, self.runs_dir, self.locks_dir):
            directory.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self) -> None:
        if not self.mirror_file.exists():
            logger.debug(f"No mirror state found at {self.mirror_file}")
            return

        try:
            with open(self.mirror_file, encoding="utf-8") as f:
                data = json.load(f)
            self._folders = {
                folder["id"]: MirrorFolder.from_dict(folder)
                for folder in data.get("folders", [])
            }
            self._documents = {
                doc["id"]: MirrorDocument.from_dict(doc)
                for doc in data.get("documents", [])
            }
            self._next_folder_id = data.get(
                "next_folder_id", max(self._folders, default=0) + 1
            )
            self._next_document_id = data.get(
                "next_document_id", max(self._documents, default=0) + 1
            )
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise MirrorStoreError(
                f"Corrupt mirror state in {self.mirror_file}: {e}"
            ) from e

        logger.debug(
            f"Loaded {len(self._folders)} folder(s) and "
            f"{len(self._documents)} document(s) from {self.mirror_file}"
        )

    def _persist(self) -> None:
        data = {
            "next_folder_id": self._next_folder_id,
            "next_document_id": self._next_document_id,
            "folders": [f.to_dict() for f in self._folders.values()],
            "documents": [d.to_dict() for d in self._documents.values()],
        }
        tmp_file = self.mirror_file.with_suffix(".json.tmp")
        try:
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_file, self.mirror_file)
        except OSError as e:
            raise MirrorStoreError(f"Failed to save mirror state: {e}") from e

    def _runs_file(self, scope_id: int) -> Path:
        return self.runs_dir / f"scope-{scope_id}.jsonl"

    def _lock_file(self, scope_id: int) -> Path:
        return self.locks_dir / f"scope-{scope_id}.lock"

    def record_run(self, result: SyncRunResult) -> None:
        with self._lock:
            try:
                with open(self._runs_file(result.scope_id), "a", encoding="utf-8") as f:
                    f.write(json.dumps(result.to_dict()) + "\n")
            except OSError as e:
                raise MirrorStoreError(f"Failed to record sync run: {e}") from e

    def get_runs(self, scope_id: int, limit: Optional[int] = None) -> list[SyncRunResult]:
        runs_file = self._runs_file(scope_id)
        if not runs_file.exists():
            return []

        runs: list[SyncRunResult] = []
        with self._lock:
            with open(runs_file, encoding="utf-8") as f:
                for line_no, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        runs.append(SyncRunResult.from_dict(json.loads(line)))
                    except (json.JSONDecodeError, KeyError, ValueError) as e:
                        logger.warning(
                            f"Ignoring malformed run record {runs_file}:{line_no}: {e}"
                        )
        runs.reverse()
        return runs[:limit] if limit is not None else runs

    def _lock_is_stale(self, lock_file: Path) -> bool:
        try:
            pid = int(lock_file.read_text(encoding="utf-8").strip())
        except (OSError, ValueError):
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return True
        except PermissionError:
            # Process exists but belongs to another user
            return False
        return False

    def begin_run(self, scope_id: int) -> bool:
        if not super().begin_run(scope_id):
            return False

        lock_file = self._lock_file(scope_id)
        for _ in range(2):
            try:
                fd = os.open(lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if self._lock_is_stale(lock_file):
                    logger.warning(f"Removing stale sync lock {lock_file}")
                    lock_file.unlink(missing_ok=True)
                    continue
                break
            with os.fdopen(fd, "w") as f:
                f.write(str(os.getpid()))
            return True

        super().end_run(scope_id)
        return False

    def end_run(self, scope_id: int) -> None:
        self._lock_file(scope_id).unlink(missing_ok=True)
        super().end_run(scope_id)
