"""Cloud provider classification and path canonicalization.

Everything here works from the shape of a path alone; nothing touches
the filesystem.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from declutter.models import Destination

# Path markers, matched case-insensitively
ICLOUD_MARKER = "/library/mobile documents/"
CLOUD_STORAGE_MARKER = "/library/cloudstorage/"
CLOUD_STORAGE_ROOT_SUFFIX = "/library/cloudstorage"
GOOGLE_MARKERS = ("googledrive", "google drive")

# Prefix of the per-account folder Google Drive mounts under CloudStorage
GOOGLE_ACCOUNT_PREFIX = "GoogleDrive-"
MY_DRIVE = "My Drive"


class Provider(str, Enum):
    """Cloud-sync provider family.  Values are the persisted form."""

    ICLOUD = "iCloud Drive"
    GOOGLE_DRIVE = "Google Drive"
    CUSTOM = "Custom"

    @property
    def icon_name(self) -> str:
        return _ICONS[self]


_ICONS = {
    Provider.ICLOUD: "icloud.fill",
    Provider.GOOGLE_DRIVE: "externaldrive.fill",
    Provider.CUSTOM: "folder.fill",
}


def _normalized(path: str | os.PathLike) -> str:
    return os.fspath(path).replace("\\", "/").lower()


def classify(path: str | os.PathLike) -> Provider | None:
    """Return the provider family *path* belongs to, or None if it is not a cloud folder."""
    lowered = _normalized(path)
    if ICLOUD_MARKER in lowered:
        return Provider.ICLOUD
    if CLOUD_STORAGE_MARKER in lowered:
        if any(marker in lowered for marker in GOOGLE_MARKERS):
            return Provider.GOOGLE_DRIVE
        return Provider.CUSTOM
    return None


def is_google_account_root(path: str | os.PathLike) -> bool:
    """True when the last segment of *path* is a ``GoogleDrive-<account>`` folder."""
    return Path(path).name.startswith(GOOGLE_ACCOUNT_PREFIX)


def canonicalize(path: str | os.PathLike, provider: Provider) -> Path:
    """
    Rewrite a user selection to the folder that can actually be written to.

    Only Google Drive needs this: the account folder shown in the picker is
    read-only and its ``My Drive`` child holds the content.  The bare
    CloudStorage container is returned unchanged so the writability check
    rejects it later.
    """
    url = Path(path)
    if provider is not Provider.GOOGLE_DRIVE:
        return url

    lowered = _normalized(url).rstrip("/")
    if lowered.endswith(CLOUD_STORAGE_ROOT_SUFFIX):
        return url
    if CLOUD_STORAGE_MARKER in lowered and is_google_account_root(url):
        return url / MY_DRIVE
    return url


def google_account(path: str | os.PathLike) -> str | None:
    """Return the account suffix of the first ``GoogleDrive-`` segment in *path*."""
    for part in Path(path).parts:
        if part.startswith(GOOGLE_ACCOUNT_PREFIX):
            return part[len(GOOGLE_ACCOUNT_PREFIX):]
    return None


def display_name(destination: Destination) -> str:
    """Return the label shown for *destination* in lists and menus."""
    provider = destination.provider
    if provider is Provider.GOOGLE_DRIVE:
        account = google_account(destination.path)
        if account is not None:
            return f"{destination.name} — {account}"
        return destination.name
    if provider is Provider.ICLOUD:
        return "iCloud Drive"
    return destination.name
