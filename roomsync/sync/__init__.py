"""Sync engine for roomsync - one-way remote-to-mirror reconciliation."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .config import SyncConfig, SyncConfigError, load_sync_configs_from_json
from .engine import SyncEngine
from .operations import SyncOperations, make_run_stamp
from .report import (
    FileOutcome,
    OutcomeKind,
    SyncReporter,
    SyncStatus,
    truncate_warnings,
)

__all__ = [
    "SyncEngine",
    "SyncConfig",
    "SyncConfigError",
    "load_sync_configs_from_json",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "SyncOperations",
    "make_run_stamp",
    "FileOutcome",
    "OutcomeKind",
    "SyncReporter",
    "SyncStatus",
    "truncate_warnings",
]
