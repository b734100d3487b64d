"""Sync configuration records and loading from JSON files."""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..utils import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_FILE_SIZE_MB,
    DEFAULT_MAX_WORKERS,
    normalize_file_types,
)


class SyncConfigError(ValueError):
    """Raised when a sync configuration is invalid."""


@dataclass
class SyncConfig:
    """Configuration of one sync scope (one data room).

    Examples:
        >>> cfg = SyncConfig(scope_id=7, remote_folder_id="1AbC")
        >>> cfg.max_depth
        10
    """

    scope_id: int
    """Local sync scope (data room) identifier"""

    remote_folder_id: str
    """Remote root folder to mirror"""

    sync_subfolders: bool = True
    """Whether to descend into remote subfolders"""

    include_file_types: list[str] = field(default_factory=list)
    """If non-empty, only files whose extension or type is listed are synced"""

    exclude_file_types: list[str] = field(default_factory=list)
    """Files whose extension or type is listed are never synced"""

    max_file_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB
    """Files larger than this are skipped with a warning"""

    destination_folder_id: Optional[int] = None
    """Local folder receiving root-level items (None for the scope root)"""

    max_depth: int = DEFAULT_MAX_DEPTH
    """Maximum remote folder depth to visit"""

    max_workers: int = DEFAULT_MAX_WORKERS
    """Concurrent content transfers"""

    def __post_init__(self) -> None:
        if not self.remote_folder_id:
            raise SyncConfigError("remote_folder_id must not be empty")
        if self.max_depth < 0:
            raise SyncConfigError(f"max_depth must be >= 0, got {self.max_depth}")
        if self.max_workers < 1:
            raise SyncConfigError(
                f"max_workers must be >= 1, got {self.max_workers}"
            )
        self.include_file_types = sorted(normalize_file_types(self.include_file_types))
        self.exclude_file_types = sorted(normalize_file_types(self.exclude_file_types))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncConfig":
        """Create a SyncConfig from a dictionary, validating field types.

        Both snake_case and camelCase keys are accepted
        (``remoteFolderId`` == ``remote_folder_id``).

        Raises:
            SyncConfigError: If required keys are missing or values are invalid
        """
        if not isinstance(data, dict):
            raise SyncConfigError(f"Sync config must be an object, got {type(data).__name__}")

        aliases = {
            "scopeId": "scope_id",
            "dataRoomId": "scope_id",
            "remoteFolderId": "remote_folder_id",
            "folderId": "remote_folder_id",
            "syncSubfolders": "sync_subfolders",
            "includeFileTypes": "include_file_types",
            "excludeFileTypes": "exclude_file_types",
            "maxFileSizeMb": "max_file_size_mb",
            "destinationFolderId": "destination_folder_id",
            "parentFolderId": "destination_folder_id",
            "maxDepth": "max_depth",
            "maxWorkers": "max_workers",
        }
        values = {aliases.get(key, key): value for key, value in data.items()}

        known = set(cls.__dataclass_fields__)
        unknown = set(values) - known
        if unknown:
            raise SyncConfigError(f"Unknown sync config keys: {sorted(unknown)}")

        for required in ("scope_id", "remote_folder_id"):
            if values.get(required) in (None, ""):
                raise SyncConfigError(f"Missing required key: {required}")

        try:
            values["scope_id"] = int(values["scope_id"])
            values["remote_folder_id"] = str(values["remote_folder_id"])
            for list_key in ("include_file_types", "exclude_file_types"):
                value = values.get(list_key)
                if isinstance(value, str):
                    values[list_key] = value.split(",")
                elif value is not None and (
                    not isinstance(value, list)
                    or not all(isinstance(v, str) for v in value)
                ):
                    raise SyncConfigError(f"{list_key} must be a list of strings")
            if values.get("max_file_size_mb") is not None:
                values["max_file_size_mb"] = float(values["max_file_size_mb"])
            for int_key in ("max_depth", "max_workers"):
                if int_key in values:
                    values[int_key] = int(values[int_key])
            if values.get("destination_folder_id") is not None:
                values["destination_folder_id"] = int(values["destination_folder_id"])
            if "sync_subfolders" in values and not isinstance(
                values["sync_subfolders"], bool
            ):
                raise SyncConfigError("sync_subfolders must be true or false")
        except SyncConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise SyncConfigError(f"Invalid sync config value: {e}") from e

        return cls(**values)


def load_sync_configs_from_json(path: Path) -> list[SyncConfig]:
    """Load sync configurations from a JSON file.

    The file may contain a single config object or a list of them.

    Args:
        path: Path to the JSON file

    Returns:
        List of SyncConfig objects

    Raises:
        SyncConfigError: If the file cannot be read or is invalid

    Examples:
        A file containing::

            [{"scopeId": 1, "remoteFolderId": "1AbC", "includeFileTypes": ["pdf"]}]

        yields one SyncConfig for scope 1.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise SyncConfigError(f"Sync config file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise SyncConfigError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise SyncConfigError(f"Cannot read sync config file {path}: {e}") from e

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise SyncConfigError(f"{path} must contain an object or a list of objects")

    configs = []
    for index, item in enumerate(data):
        try:
            configs.append(SyncConfig.from_dict(item))
        except SyncConfigError as e:
            raise SyncConfigError(f"Sync config #{index + 1} in {path}: {e}") from e

    scope_ids = [c.scope_id for c in configs]
    duplicates = {s for s in scope_ids if scope_ids.count(s) > 1}
    if duplicates:
        raise SyncConfigError(
            f"Scopes configured more than once in {path}: {sorted(duplicates)}"
        )
    return configs
