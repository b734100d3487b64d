"""Application configuration for roomsync.

Values are resolved from environment variables first, then from the
config file at ``~/.config/roomsync/config`` (simple ``KEY=value`` lines).
"""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.googleapis.com/drive/v3"

ENV_ACCESS_TOKEN = "ROOMSYNC_ACCESS_TOKEN"
ENV_API_URL = "ROOMSYNC_API_URL"
ENV_DATA_DIR = "ROOMSYNC_DATA_DIR"


class Config:
    """Configuration lookup backed by environment and a config file."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ~/.config/roomsync
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "roomsync"
        self.config_dir = config_dir
        self.config_file = config_dir / "config"

    def _read_file(self) -> dict[str, str]:
        """Read KEY=value pairs from the config file."""
        values: dict[str, str] = {}
        if not self.config_file.exists():
            return values

        try:
            with open(self.config_file, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key.strip()] = value.strip().strip('"').strip("'")
        except OSError as e:
            logger.warning(f"Failed to read config file {self.config_file}: {e}")
        return values

    def _get(self, key: str) -> Optional[str]:
        value = os.environ.get(key)
        if value:
            return value
        return self._read_file().get(key)

    @property
    def access_token(self) -> Optional[str]:
        """Bearer token for the remote provider."""
        return self._get(ENV_ACCESS_TOKEN)

    @property
    def api_url(self) -> str:
        """Base URL of the provider API."""
        return self._get(ENV_API_URL) or DEFAULT_API_URL

    def is_configured(self) -> bool:
        """Check whether an access token is available."""
        return bool(self.access_token)

    def get_config_path(self) -> Path:
        """Path of the config file."""
        return self.config_file

    def get_data_dir(self) -> Path:
        """Directory for the mirror database, run logs and blobs."""
        data_dir = self._get(ENV_DATA_DIR)
        if data_dir:
            return Path(data_dir).expanduser()
        return self.config_dir / "data"

    def save_access_token(self, access_token: str) -> None:
        """Persist the access token to the config file.

        Other keys already present in the file are preserved.
        """
        values = self._read_file()
        values[ENV_ACCESS_TOKEN] = access_token

        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w", encoding="utf-8") as f:
            for key, value in values.items():
                f.write(f"{key}={value}\n")
        # Token grants drive access
        self.config_file.chmod(0o600)
        logger.debug(f"Saved access token to {self.config_file}")


config = Config()
