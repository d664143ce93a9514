"""Configuration management for Desktop Declutter.

Stores and retrieves user settings from a JSON config file
in the platform-appropriate application data directory.
"""

import json
import logging
from pathlib import Path
from typing import Any

from declutter.platform_utils import (
    get_config_dir as _platform_config_dir,
)
from declutter.platform_utils import (
    get_store_path as _platform_store_path,
)

logger = logging.getLogger(__name__)

# Top-level folder created inside every destination root
APP_FOLDER_NAME = "DesktopDeclutter"
# Group folder used when a relocation has no source label
DEFAULT_GROUP = "Unsorted"

DEFAULT_CONFIG: dict[str, Any] = {
    "log_level": "INFO",
    # ---- log rotation ----
    "max_log_size_mb": 10,  # rotate log when it exceeds this size
    "log_backup_count": 3,  # number of rotated log files to keep
    # ---- relocation ----
    "verify_copies": True,  # SHA-256 checksum before deleting the source
    "fallback_group": DEFAULT_GROUP,
    "reveal_after_move": False,
    # ---- inbox watching ----
    "stable_time_seconds": 10,
    "file_extensions": [],  # Empty = all files
    "include_patterns": [],  # Glob patterns to include (e.g. ["Screenshot*"])
    "exclude_patterns": [".*", "*.crdownload", "*.part", "*.download"],
}


def get_config_dir() -> Path:
    """Return the platform-appropriate application config directory."""
    return _platform_config_dir()


def get_config_path() -> Path:
    """Return the path to the configuration file."""
    return get_config_dir() / "config.json"


def get_store_path() -> Path:
    """Return the path to the destination registry file."""
    return _platform_store_path()


class Config:
    """Configuration manager backed by a JSON file."""

    def __init__(self, path: Path | None = None):
        """Load config from *path*, falling back to the platform default."""
        self._path = path or get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        if self._path.exists():
            try:
                with open(self._path, encoding="utf-8") as fh:
                    stored = json.load(fh)
                # Merge stored values over defaults so new keys get defaults
                self._data = {**DEFAULT_CONFIG, **stored}
                logger.info("Configuration loaded from %s", self._path)
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Could not read config (%s); using defaults.", exc)
                self._data = dict(DEFAULT_CONFIG)
        else:
            self._data = dict(DEFAULT_CONFIG)
            self.save()
            logger.info("Created default configuration at %s", self._path)

    def save(self) -> None:
        """Persist the current configuration to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.info("Configuration saved.")
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    # ---- accessors ----

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        """Set the logging level name."""
        self._data["log_level"] = value.strip().upper() or "INFO"

    # ---- log rotation ----

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return int(self._data.get("max_log_size_mb", 10))

    @max_log_size_mb.setter
    def max_log_size_mb(self, value: int) -> None:
        """Set the maximum log file size in MB (minimum 1)."""
        self._data["max_log_size_mb"] = max(1, int(value))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return int(self._data.get("log_backup_count", 3))

    @log_backup_count.setter
    def log_backup_count(self, value: int) -> None:
        """Set the number of rotated log backups to keep."""
        self._data["log_backup_count"] = max(0, int(value))

    # ---- relocation ----

    @property
    def verify_copies(self) -> bool:
        """Return whether SHA-256 verification runs before the source is deleted."""
        return bool(self._data.get("verify_copies", True))

    @verify_copies.setter
    def verify_copies(self, value: bool) -> None:
        self._data["verify_copies"] = value

    @property
    def fallback_group(self) -> str:
        """Return the group folder name used for unlabelled files."""
        return self._data.get("fallback_group") or DEFAULT_GROUP

    @fallback_group.setter
    def fallback_group(self, value: str) -> None:
        self._data["fallback_group"] = value.strip() or DEFAULT_GROUP

    @property
    def reveal_after_move(self) -> bool:
        """Return whether relocated files are shown in the file manager."""
        return bool(self._data.get("reveal_after_move", False))

    @reveal_after_move.setter
    def reveal_after_move(self, value: bool) -> None:
        self._data["reveal_after_move"] = value

    # ---- inbox watching ----

    @property
    def stable_time(self) -> int:
        """Return the stability threshold in seconds."""
        return int(self._data.get("stable_time_seconds", 10))

    @stable_time.setter
    def stable_time(self, value: int) -> None:
        """Set the stability threshold (minimum 0 s)."""
        self._data["stable_time_seconds"] = max(0, int(value))

    @property
    def file_extensions(self) -> list[str]:
        """Return the list of allowed file extensions."""
        return self._data.get("file_extensions", [])

    @file_extensions.setter
    def file_extensions(self, value: list[str]) -> None:
        """Set allowed file extensions, normalising to lowercase."""
        self._data["file_extensions"] = [
            ext.lower().strip().lstrip(".") for ext in value if ext.strip()
        ]

    @property
    def include_patterns(self) -> list[str]:
        """Glob patterns files must match to be relocated (empty = all files)."""
        return self._data.get("include_patterns", [])

    @include_patterns.setter
    def include_patterns(self, value: list[str]) -> None:
        self._data["include_patterns"] = [p.strip() for p in value if p.strip()]

    @property
    def exclude_patterns(self) -> list[str]:
        """Return glob patterns used to skip files."""
        return self._data.get("exclude_patterns", [])

    @exclude_patterns.setter
    def exclude_patterns(self, value: list[str]) -> None:
        self._data["exclude_patterns"] = [p.strip() for p in value if p.strip()]
