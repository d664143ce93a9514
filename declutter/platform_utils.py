"""
Cross-platform utilities for Desktop Declutter.

Centralises all OS-detection logic so every other module can import
a single canonical set of helpers rather than scattering ``sys.platform``
checks throughout the codebase.

Supported platforms:
  - macOS 12+ (iCloud Drive and File Provider cloud folders)
  - Windows 10/11 and Linux (custom synced folders, path-only access)
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"
IS_LINUX: bool = sys.platform.startswith("linux")

_APP_DIR_NAME = "DesktopDeclutter"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory, created if needed.

    - Windows : ``%APPDATA%\\DesktopDeclutter``
    - macOS   : ``~/Library/Application Support/DesktopDeclutter``
    - Linux   : ``$XDG_CONFIG_HOME/DesktopDeclutter`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))

    config_dir = Path(base) / _APP_DIR_NAME
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_store_path() -> Path:
    """Return the path to the persisted destination registry."""
    return get_config_dir() / "destinations.json"


# ---- cloud containers ---------------------------------------------------


def cloud_storage_roots() -> list[Path]:
    """Return the well-known cloud container folders that exist for this user.

    These are the places a folder picker should start from: the File
    Provider container (Google Drive, Dropbox, OneDrive, ...) and the
    iCloud Drive document container.
    """
    library = Path.home() / "Library"
    candidates = [
        library / "CloudStorage",
        library / "Mobile Documents" / "com~apple~CloudDocs",
    ]
    return [p for p in candidates if p.is_dir()]


# ---- desktop integration -----------------------------------------------


def reveal_in_file_manager(filepath: str | Path) -> None:
    """Show *filepath* selected in Finder / Explorer, or open its folder."""
    fp = str(filepath)
    try:
        if IS_WINDOWS:
            subprocess.Popen(["explorer", "/select,", fp])
        elif IS_MACOS:
            subprocess.Popen(["open", "-R", fp])
        else:
            subprocess.Popen(["xdg-open", str(Path(fp).parent)])
    except Exception:
        logger.warning("Could not reveal file: %s", fp, exc_info=True)
