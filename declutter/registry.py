"""
Registry of cloud destinations.

Owns the ordered list of destinations and the active selection, persists
every change immediately, and turns a destination into a usable folder
path, healing its stored access token on the way when it has gone stale
or stopped resolving.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

from declutter.config import APP_FOLDER_NAME
from declutter.errors import NotACloudDirectory, NotWritable, TokenResolutionError
from declutter.models import Destination, RegistryState
from declutter.providers import (
    MY_DRIVE,
    Provider,
    canonicalize,
    classify,
    display_name,
    is_google_account_root,
)
from declutter.store import DestinationStore
from declutter.tokens import AccessTokenStore, scoped_access

logger = logging.getLogger(__name__)


def _normalize(path: str | os.PathLike) -> str:
    return os.path.normpath(os.path.abspath(os.fspath(path)))


class DestinationRegistry:
    """
    Durable collection of destinations plus one active selection.

    Parameters
    ----------
    store : DestinationStore
        Where the registry state is read from and written to.
    tokens : AccessTokenStore
        Mints and resolves the per-destination access tokens.
    autoload : bool
        If True (the default), :meth:`load` runs on construction.
    """

    def __init__(
        self,
        store: DestinationStore,
        tokens: AccessTokenStore,
        autoload: bool = True,
    ):
        self._store = store
        self._tokens = tokens
        self._destinations: list[Destination] = []
        self._active_id: uuid.UUID | None = None
        if autoload:
            self.load()

    # ---- persistence ----

    def load(self) -> None:
        """Read the stored state, migrate and heal its tokens, then write it back."""
        state = self._store.load()
        destinations = [self._migrate_google_account_root(d) for d in state.destinations]
        for dest in destinations:
            self._heal(dest, persist=False)
        self._destinations = destinations
        self._active_id = state.active_id
        self._save()

    def _save(self) -> None:
        self._store.save(RegistryState(list(self._destinations), self._active_id))

    def _migrate_google_account_root(self, dest: Destination) -> Destination:
        """Point a Google Drive account-root destination at its ``My Drive`` folder."""
        if dest.provider is not Provider.GOOGLE_DRIVE or not is_google_account_root(dest.path):
            return dest
        my_drive = Path(dest.path) / MY_DRIVE
        if not my_drive.exists():
            return dest
        logger.info("Migrating Google Drive destination %s to %s", dest.id, my_drive)
        dest.name = my_drive.name
        dest.path = str(my_drive)
        dest.bookmark_data = self._tokens.mint(my_drive)
        return dest

    # ---- queries ----

    @property
    def destinations(self) -> list[Destination]:
        """Return the destinations in insertion order."""
        return list(self._destinations)

    @property
    def active_id(self) -> uuid.UUID | None:
        return self._active_id

    @property
    def active(self) -> Destination | None:
        """Return the active destination, the first one if none is selected, or None."""
        if self._active_id is None:
            return self._destinations[0] if self._destinations else None
        return self.get(self._active_id)

    def get(self, dest_id: uuid.UUID) -> Destination | None:
        for dest in self._destinations:
            if dest.id == dest_id:
                return dest
        return None

    def find_destination(self, path: str | os.PathLike) -> Destination | None:
        """Return the destination whose root contains *path*."""
        target = _normalize(path)
        for dest in self._destinations:
            root = _normalize(dest.path)
            if target == root or target.startswith(root.rstrip(os.sep) + os.sep):
                return dest
        return None

    def display_name(self, destination: Destination) -> str:
        return display_name(destination)

    # ---- mutations ----

    def add(self, name: str, path: str | os.PathLike, provider: Provider) -> Destination:
        """Register *path* as a new destination and persist."""
        token = self._tokens.mint(path)
        if token is None:
            logger.warning("No access token for %s; it will be used by path.", path)
        dest = Destination(name=name, path=str(path), provider=provider, bookmark_data=token)
        self._destinations.append(dest)
        if len(self._destinations) == 1:
            self._active_id = dest.id
        self._save()
        logger.info("Added destination %s (%s) at %s", name, provider.value, path)
        return dest

    def connect(self, path: str | os.PathLike) -> Destination:
        """
        Register a folder the user picked.

        Classifies and canonicalizes the selection, checks that the result
        is an existing writable directory, then adds it.  Raises
        NotACloudDirectory or NotWritable without changing the registry.
        """
        provider = classify(path)
        if provider is None:
            raise NotACloudDirectory(path)
        canonical = canonicalize(path, provider)
        if not canonical.is_dir():
            raise NotWritable(canonical, "folder does not exist")
        self.validate_writable(canonical)
        return self.add(canonical.name, canonical, provider)

    def remove(self, dest_id: uuid.UUID) -> None:
        """Delete a destination; promote the first remaining one if it was active."""
        self._destinations = [d for d in self._destinations if d.id != dest_id]
        if self._active_id == dest_id:
            self._active_id = self._destinations[0].id if self._destinations else None
        self._save()
        logger.info("Removed destination %s", dest_id)

    def set_active(self, dest_id: uuid.UUID) -> None:
        """Select *dest_id*.  Unknown ids are stored as-is."""
        self._active_id = dest_id
        self._save()

    # ---- access ----

    def resolved_path(self, destination: Destination) -> Path | None:
        """
        Return the folder to write into for *destination*.

        - token resolves, not stale: use it;
        - token resolves, stale: re-mint and persist, use the resolved path;
        - token fails: drop it, re-mint for the stored path, persist, use the path.
        """
        current = self.get(destination.id)
        if current is None:
            return Path(destination.path) if destination.path else None
        return self._heal(current)

    def _heal(self, dest: Destination, persist: bool = True) -> Path | None:
        """Resolve *dest*, refreshing or replacing its token as needed."""
        token = dest.bookmark_data
        if token is not None:
            try:
                resolved = self._tokens.resolve(token)
            except TokenResolutionError as exc:
                logger.warning(
                    "Access token for %s failed to resolve (%s); falling back to %s",
                    dest.name, exc, dest.path,
                )
                dest.bookmark_data = self._tokens.mint(dest.path)
                if persist:
                    self._save()
            else:
                if resolved.is_stale:
                    refreshed = self._tokens.mint(resolved.path)
                    if refreshed is not None:
                        dest.bookmark_data = refreshed
                        if persist:
                            self._save()
                        logger.info("Refreshed stale access token for %s", dest.name)
                return resolved.path

        return Path(dest.path) if dest.path else None

    def resolved_path_for_id(self, dest_id: uuid.UUID | None) -> Path | None:
        if dest_id is None:
            return None
        dest = self.get(dest_id)
        if dest is None:
            return None
        return self.resolved_path(dest)

    def app_root(self, root: str | os.PathLike) -> Path:
        """Ensure and return the application folder inside *root*."""
        app_folder = Path(root) / APP_FOLDER_NAME
        app_folder.mkdir(exist_ok=True)
        return app_folder

    def validate_writable(self, root: str | os.PathLike) -> None:
        """Raise NotWritable unless the application folder can be created in *root*."""
        with scoped_access(self._tokens, root):
            try:
                self.app_root(root)
            except OSError as exc:
                raise NotWritable(root, exc.strerror or str(exc)) from exc

    @property
    def tokens(self) -> AccessTokenStore:
        return self._tokens
