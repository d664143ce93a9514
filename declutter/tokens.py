"""
Access tokens for destination folders.

A token is an opaque blob that grants renewed access to one directory
across process restarts.  Resolving a token yields the directory path and
a staleness flag; a stale token still works but should be re-minted.

Any filesystem work under a resolved path is bracketed with
:func:`scoped_access`, which always releases the access window even when
the wrapped operation fails.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from declutter.errors import TokenResolutionError

logger = logging.getLogger(__name__)

TOKEN_VERSION = 2
# Version 1 tokens carried only the path; they still resolve but are stale
_ACCEPTED_VERSIONS = (1, TOKEN_VERSION)


@dataclass(frozen=True)
class ResolvedToken:
    path: Path
    is_stale: bool = False


class AccessTokenStore(ABC):
    """Mints and resolves directory access tokens."""

    @abstractmethod
    def mint(self, path: str | os.PathLike) -> bytes | None:
        """Return a token for *path*, or None if access cannot be granted.

        Must never raise.
        """

    @abstractmethod
    def resolve(self, token: bytes) -> ResolvedToken:
        """Resolve *token*; raises TokenResolutionError if it is unusable."""

    def start_access(self, path: str | os.PathLike) -> bool:
        """Open an access window on *path*.  Returns True if it must be closed."""
        return False

    def stop_access(self, path: str | os.PathLike) -> None:
        """Close an access window opened by :meth:`start_access`."""


@contextmanager
def scoped_access(store: AccessTokenStore, path: str | os.PathLike) -> Iterator[bool]:
    """Bracket filesystem work under *path* with start/stop access calls."""
    accessing = store.start_access(path)
    try:
        yield accessing
    finally:
        if accessing:
            store.stop_access(path)


class NullTokenStore(AccessTokenStore):
    """No-op store for unsandboxed use: every destination is used by path."""

    def mint(self, path: str | os.PathLike) -> bytes | None:
        return None

    def resolve(self, token: bytes) -> ResolvedToken:
        raise TokenResolutionError("NullTokenStore does not issue tokens")


class PathTokenStore(AccessTokenStore):
    """
    Tokens that pin a directory by path and filesystem identity.

    The payload records the device and inode of the directory at mint
    time.  If the directory at that path has since been replaced (for
    example a provider re-created its mount), the token resolves as stale
    and the registry re-mints it.  Payloads that cannot be decoded, carry
    an unknown version, or name a directory that no longer exists fail to
    resolve.
    """

    def __init__(self) -> None:
        self._active: dict[str, int] = {}
        self._lock = threading.Lock()

    # ---- tokens ----

    def mint(self, path: str | os.PathLike) -> bytes | None:
        fp = os.path.abspath(os.fspath(path))
        try:
            st = os.stat(fp)
        except OSError as exc:
            logger.warning("Failed to create access token for %s: %s", fp, exc)
            return None
        if not stat.S_ISDIR(st.st_mode):
            logger.warning("Failed to create access token: %s is not a directory", fp)
            return None
        if not os.access(fp, os.W_OK | os.X_OK):
            logger.warning("Failed to create access token: %s is not writable", fp)
            return None
        payload = {
            "v": TOKEN_VERSION,
            "path": fp,
            "dev": st.st_dev,
            "ino": st.st_ino,
        }
        return json.dumps(payload, sort_keys=True).encode("utf-8")

    def resolve(self, token: bytes) -> ResolvedToken:
        try:
            payload = json.loads(token.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise TokenResolutionError(f"Malformed access token: {exc}") from exc
        if not isinstance(payload, dict):
            raise TokenResolutionError("Malformed access token: not an object")

        version = payload.get("v")
        fp = payload.get("path")
        if version not in _ACCEPTED_VERSIONS or not isinstance(fp, str):
            raise TokenResolutionError(f"Unsupported access token version: {version!r}")

        try:
            st = os.stat(fp)
        except OSError as exc:
            raise TokenResolutionError(f"Token target is gone: {fp}") from exc
        if not stat.S_ISDIR(st.st_mode):
            raise TokenResolutionError(f"Token target is not a directory: {fp}")

        if version < TOKEN_VERSION:
            stale = True
        else:
            stale = (payload.get("dev"), payload.get("ino")) != (st.st_dev, st.st_ino)
        return ResolvedToken(Path(fp), stale)

    # ---- access windows ----

    def start_access(self, path: str | os.PathLike) -> bool:
        key = os.path.abspath(os.fspath(path))
        with self._lock:
            self._active[key] = self._active.get(key, 0) + 1
        logger.debug("Access started: %s", key)
        return True

    def stop_access(self, path: str | os.PathLike) -> None:
        key = os.path.abspath(os.fspath(path))
        with self._lock:
            count = self._active.get(key, 0) - 1
            if count > 0:
                self._active[key] = count
            else:
                self._active.pop(key, None)
        logger.debug("Access stopped: %s", key)

    def active_count(self, path: str | os.PathLike) -> int:
        """Return how many access windows are open on *path*."""
        key = os.path.abspath(os.fspath(path))
        with self._lock:
            return self._active.get(key, 0)
