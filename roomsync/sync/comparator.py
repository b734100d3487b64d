"""Decide what to do with each remote file against the mirror."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from ..models import MirrorDocument, RemoteFile
from ..utils import DEFAULT_MAX_FILE_SIZE_MB, normalize_file_types


class SyncAction(str, Enum):
    """Actions that can be taken for a remote file."""

    CREATE = "create"
    """Transfer content and insert a new mirror document"""

    UPDATE = "update"
    """Transfer content again and update the existing mirror document"""

    SKIP = "skip"
    """Skip file (filtered out or already current)"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    remote_file: RemoteFile
    """Remote file the decision is about"""

    existing_document: Optional[MirrorDocument] = None
    """Mirror document mapped to the remote file, if any"""

    warning: Optional[str] = None
    """Warning to surface in the run summary (size limit and metadata skips)"""


class FileComparator:
    """Classifies remote files as create, update or skip.

    Rules are evaluated in a fixed order: type filters and the size limit
    short-circuit before the existence check, so a previously imported file
    that now exceeds a limit is skipped rather than updated.

    Examples:
        >>> comparator = FileComparator(include_file_types=["pdf"])
        >>> decision = comparator.classify(remote_file, None)
    """

    def __init__(
        self,
        include_file_types: Optional[Iterable[str]] = None,
        exclude_file_types: Optional[Iterable[str]] = None,
        max_file_size_mb: Optional[float] = DEFAULT_MAX_FILE_SIZE_MB,
    ):
        """Initialize file comparator.

        Args:
            include_file_types: Allowed extensions/types (empty allows all)
            exclude_file_types: Rejected extensions/types
            max_file_size_mb: Size limit in MB (None for no limit, 0 skips all)
        """
        self.include_file_types = normalize_file_types(include_file_types)
        self.exclude_file_types = normalize_file_types(exclude_file_types)
        self.max_file_size_mb = max_file_size_mb

    def classify(
        self,
        remote_file: RemoteFile,
        existing_document: Optional[MirrorDocument] = None,
    ) -> SyncDecision:
        """Classify a single remote file.

        Args:
            remote_file: Remote file to classify
            existing_document: Mirror document with the same remote ID, if any

        Returns:
            SyncDecision for this file
        """
        file_types = {remote_file.extension, remote_file.simple_type}
        file_types.discard("")

        # Rule 1: include filter
        if self.include_file_types and not file_types & self.include_file_types:
            return self._skip(remote_file, existing_document, "Not in included types")

        # Rule 2: exclude filter
        if self.exclude_file_types and file_types & self.exclude_file_types:
            return self._skip(remote_file, existing_document, "Excluded file type")

        # Metadata the size limit depends on could not be read
        if remote_file.invalid_metadata:
            return SyncDecision(
                action=SyncAction.SKIP,
                reason="Malformed remote metadata",
                remote_file=remote_file,
                existing_document=existing_document,
                warning=f'Skipped "{remote_file.name}": {remote_file.invalid_metadata}',
            )

        # Rule 3: size limit
        if self.max_file_size_mb is not None:
            size_mb = remote_file.size_mb
            if self.max_file_size_mb <= 0 or size_mb > self.max_file_size_mb:
                return SyncDecision(
                    action=SyncAction.SKIP,
                    reason=f"File size exceeds {self.max_file_size_mb}MB limit",
                    remote_file=remote_file,
                    existing_document=existing_document,
                    warning=(
                        f'Skipped "{remote_file.name}": File size '
                        f"({size_mb:.1f}MB) exceeds limit"
                    ),
                )

        # Rule 4: not mirrored yet
        if existing_document is None:
            return SyncDecision(
                action=SyncAction.CREATE,
                reason="New remote file",
                remote_file=remote_file,
            )

        # Rule 5: remote changed since last transfer
        remote_mtime = remote_file.modified_time
        mirror_mtime = existing_document.remote_modified_time
        if remote_mtime is not None and (
            mirror_mtime is None or remote_mtime > mirror_mtime
        ):
            return SyncDecision(
                action=SyncAction.UPDATE,
                reason="Remote file is newer",
                remote_file=remote_file,
                existing_document=existing_document,
            )

        # Rule 6: already current
        return self._skip(remote_file, existing_document, "Already up to date")

    def _skip(
        self,
        remote_file: RemoteFile,
        existing_document: Optional[MirrorDocument],
        reason: str,
    ) -> SyncDecision:
        return SyncDecision(
            action=SyncAction.SKIP,
            reason=reason,
            remote_file=remote_file,
            existing_document=existing_document,
        )
