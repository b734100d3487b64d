"""Utility functions for roomsync."""

import re
from datetime import datetime, timezone
from typing import Iterable, Optional

# =============================================================================
# Constants for sync operations
# =============================================================================

# Folder bound for the recursive remote walk
DEFAULT_MAX_DEPTH: int = 10

# Concurrent content transfers per run
DEFAULT_MAX_WORKERS: int = 4

# Size ceiling for a single synced file (MB)
DEFAULT_MAX_FILE_SIZE_MB: float = 100

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Warnings shown by status views before collapsing into "... and N more"
DEFAULT_WARNING_DISPLAY_LIMIT: int = 10

BYTES_PER_MB: int = 1024 * 1024


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp from the provider API.

    Args:
        timestamp_str: Timestamp string (e.g., "2025-01-15T10:30:00.000Z")

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not timestamp_str:
        return None

    try:
        # The 'Z' suffix indicates UTC time
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"

        try:
            dt = datetime.fromisoformat(timestamp_str)
        except ValueError:
            # Older interpreters reject fractional seconds that are not 3 or 6
            # digits long; drop them
            if "." in timestamp_str:
                timestamp_str = timestamp_str.split(".")[0] + "+00:00"
            dt = datetime.fromisoformat(timestamp_str)

        if dt.tzinfo is None:
            return dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except (ValueError, AttributeError):
        return None


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as an ISO 8601 string (None passes through)."""
    if dt is None:
        return None
    return dt.isoformat()


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# File naming and typing utilities
# =============================================================================

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_file_name(name: str, max_length: int = 128) -> str:
    """Make a file name safe for use inside a storage key.

    Path separators, whitespace and other special characters are replaced
    with underscores.

    Examples:
        >>> sanitize_file_name("Q3 report/final.pdf")
        'Q3_report_final.pdf'
        >>> sanitize_file_name("..")
        'file'
    """
    cleaned = _UNSAFE_NAME_CHARS.sub("_", name).strip("._")
    if not cleaned:
        return "file"
    return cleaned[:max_length]


def get_file_extension(name: str) -> str:
    """Lower-cased extension of a file name without the dot.

    Examples:
        >>> get_file_extension("Budget.XLSX")
        'xlsx'
        >>> get_file_extension("README")
        ''
    """
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


def get_simple_file_type(mime_type: Optional[str]) -> str:
    """Map a MIME type to a coarse document type used by filters.

    Examples:
        >>> get_simple_file_type("application/pdf")
        'pdf'
        >>> get_simple_file_type("application/vnd.google-apps.spreadsheet")
        'xls'
    """
    if not mime_type:
        return "other"
    if "pdf" in mime_type:
        return "pdf"
    # Office Open XML types all contain "officedocument"
    if "spreadsheet" in mime_type or "excel" in mime_type:
        return "xls"
    if "presentation" in mime_type or "powerpoint" in mime_type:
        return "ppt"
    if "document" in mime_type or "word" in mime_type:
        return "doc"
    if "image" in mime_type:
        return "image"
    if "video" in mime_type:
        return "video"
    if "audio" in mime_type:
        return "audio"
    if "text" in mime_type:
        return "text"
    return "other"


def normalize_file_types(file_types: Optional[Iterable[str]]) -> frozenset[str]:
    """Normalize a file type filter list.

    Entries are lower-cased and stripped of a leading dot, so ".PDF" and
    "pdf" are equivalent. Empty entries are dropped.
    """
    if not file_types:
        return frozenset()
    normalized = set()
    for file_type in file_types:
        value = file_type.strip().lower().lstrip(".")
        if value:
            normalized.add(value)
    return frozenset(normalized)
