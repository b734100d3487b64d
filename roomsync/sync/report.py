"""Per-file outcomes and run summaries."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from ..models import SyncRunResult
from ..store import MirrorStore
from ..utils import DEFAULT_WARNING_DISPLAY_LIMIT
from .config import SyncConfig

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    """Result of processing a single remote file."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class FileOutcome:
    """Tagged result of processing one remote file."""

    kind: OutcomeKind
    file_name: str
    reason: str = ""
    warning: Optional[str] = None
    """Set for failures and for skips the user should hear about"""

    @classmethod
    def created(cls, file_name: str) -> "FileOutcome":
        return cls(OutcomeKind.CREATED, file_name)

    @classmethod
    def updated(cls, file_name: str) -> "FileOutcome":
        return cls(OutcomeKind.UPDATED, file_name)

    @classmethod
    def skipped(
        cls, file_name: str, reason: str, warning: Optional[str] = None
    ) -> "FileOutcome":
        return cls(OutcomeKind.SKIPPED, file_name, reason, warning)

    @classmethod
    def failed(cls, file_name: str, warning: str) -> "FileOutcome":
        return cls(OutcomeKind.FAILED, file_name, warning, warning)


@dataclass(frozen=True)
class SyncStatus:
    """What a "last synced" display needs for one scope."""

    scope_id: int
    last_run: Optional[SyncRunResult]
    document_count: int
    config: Optional[SyncConfig] = None
    """Sync settings for the scope, when the caller knows them"""

    def to_dict(self) -> dict:
        return {
            "scope_id": self.scope_id,
            "last_run": self.last_run.to_dict() if self.last_run else None,
            "document_count": self.document_count,
            "config": self.config.to_dict() if self.config else None,
        }


def truncate_warnings(
    warnings: Iterable[str], limit: int = DEFAULT_WARNING_DISPLAY_LIMIT
) -> tuple[list[str], int]:
    """Split warnings into the displayed subset and the overflow count.

    Examples:
        >>> truncate_warnings(["a", "b", "c"], limit=2)
        (['a', 'b'], 1)
    """
    warnings = list(warnings)
    return warnings[:limit], max(0, len(warnings) - limit)


class SyncReporter:
    """Folds file outcomes into run results and serves status queries."""

    def __init__(self, store: MirrorStore):
        """Initialize the reporter.

        Args:
            store: Mirror store holding run history and documents
        """
        self.store = store

    @staticmethod
    def summarize(
        scope_id: int,
        started_at: datetime,
        outcomes: Iterable[FileOutcome],
        folders_created: int,
        duration_seconds: float,
        cancelled: bool = False,
    ) -> SyncRunResult:
        """Aggregate file outcomes into a SyncRunResult.

        Failures count as skipped. Warnings keep the order of ``outcomes``.
        """
        counts = {kind: 0 for kind in OutcomeKind}
        warnings: list[str] = []
        scanned = 0

        for outcome in outcomes:
            scanned += 1
            counts[outcome.kind] += 1
            if outcome.warning:
                warnings.append(outcome.warning)

        return SyncRunResult(
            scope_id=scope_id,
            started_at=started_at,
            files_scanned=scanned,
            files_created=counts[OutcomeKind.CREATED],
            files_updated=counts[OutcomeKind.UPDATED],
            files_skipped=counts[OutcomeKind.SKIPPED] + counts[OutcomeKind.FAILED],
            folders_created=folders_created,
            warnings=tuple(warnings),
            duration_seconds=duration_seconds,
            cancelled=cancelled,
        )

    def record(self, result: SyncRunResult) -> None:
        """Persist a completed run to the scope's history."""
        self.store.record_run(result)
        logger.debug(
            "Recorded sync run for scope %s: %d created, %d updated, %d skipped",
            result.scope_id,
            result.files_created,
            result.files_updated,
            result.files_skipped,
        )

    def get_status(
        self, scope_id: int, config: Optional[SyncConfig] = None
    ) -> SyncStatus:
        """Latest run and current mirror document count for a scope.

        Args:
            scope_id: Sync scope to describe
            config: The scope's sync settings, included in the status as is
        """
        if config is not None and config.scope_id != scope_id:
            raise ValueError(
                f"Config is for scope {config.scope_id}, not scope {scope_id}"
            )
        return SyncStatus(
            scope_id=scope_id,
            last_run=self.store.get_last_run(scope_id),
            document_count=self.store.count_documents(scope_id),
            config=config,
        )

    def get_history(self, scope_id: int, limit: Optional[int] = None) -> list[SyncRunResult]:
        """Recorded runs for a scope, newest first."""
        return self.store.get_runs(scope_id, limit=limit)
