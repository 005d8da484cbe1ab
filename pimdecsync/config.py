"""
Configuration settings for the DecSync PIM resource.
"""
import json
import logging
import os
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

# Base directories
CONFIG_DIR = Path(os.environ.get("PIMDECSYNC_HOME", Path.home() / ".config" / "pimdecsync"))

# Default files, relative to the config directory
SETTINGS_FILE_NAME = "settings.json"
LOG_FILE_NAME = Path("logs") / "pimdecsync.log"
SETTINGS_FILE = CONFIG_DIR / SETTINGS_FILE_NAME

# Namespace used to derive this install's app id
APP_NAME = "pimdecsync"

# libdecsync buffer sizes
APPID_LENGTH = 256
COLLECTION_NAME_LENGTH = 256
STATIC_INFO_LENGTH = 256

# Upper bound on collections listed per type
MAX_COLLECTIONS = 32

# Seconds to stay offline after a failed DecSync directory check
OFFLINE_RETRY_SECONDS = 60

# Entry layout for items
ITEMS_PREFIX = ["resources"]
ENTRY_KEY = "null"
STATIC_INFO_NAME_KEY = '"name"'


class Settings:
    """User settings: where the DecSync directory lives."""

    def __init__(self, decsync_dir: str = "", max_collections: int = MAX_COLLECTIONS):
        self.decsync_dir: str = decsync_dir
        self.max_collections: int = max_collections

    def set_decsync_dir(self, path: Union[str, Path]) -> None:
        self.decsync_dir = str(path) if path else ""

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Settings":
        """
        Load settings from a JSON file.

        Args:
            path: Settings file (SETTINGS_FILE if None)

        Returns:
            Loaded settings, or defaults when the file does not exist
        """
        if path is None:
            path = SETTINGS_FILE

        if not path.exists():
            logger.debug(f"No settings file at {path}, using defaults")
            return cls()

        with open(path, "r") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {path}")

        max_collections = int(data.get("max_collections", MAX_COLLECTIONS))
        if max_collections < 1:
            logger.warning(f"Invalid max_collections {max_collections} in {path}, using {MAX_COLLECTIONS}")
            max_collections = MAX_COLLECTIONS

        return cls(
            decsync_dir=data.get("decsync_dir", ""),
            max_collections=max_collections,
        )

    def save(self, path: Optional[Path] = None) -> Path:
        """Write settings to `path` (SETTINGS_FILE if None) and return it."""
        if path is None:
            path = SETTINGS_FILE

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(
                {"decsync_dir": self.decsync_dir, "max_collections": self.max_collections},
                f,
                indent=2,
            )
        return path
