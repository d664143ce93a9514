"""Inbox watcher for Desktop Declutter.

Uses the watchdog library to monitor a folder for new or modified
files, waits until each one has stopped changing, then relocates it
into the active destination grouped under the folder's name.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchdog.events import (
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from declutter.relocator import Relocator

logger = logging.getLogger(__name__)


class _StabilityTracker:
    """Tracks files until they have been unchanged for a given duration."""

    def __init__(
        self,
        stable_seconds: int,
        on_stable: Callable[[Path], None],
        poll_interval: float = 1.0,
    ):
        self._stable_seconds = stable_seconds
        self._on_stable = on_stable
        self._poll_interval = poll_interval
        # file_path -> (last_change_time, last_size)
        self._pending: dict[Path, tuple[float, int]] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def stable_seconds(self) -> int:
        return self._stable_seconds

    def start(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._poll, daemon=True, name="StabilityTracker"
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    def track(self, path: Path) -> None:
        """Register or update a file for stability tracking."""
        try:
            size = path.stat().st_size
        except OSError:
            return
        with self._lock:
            self._pending[path] = (time.time(), size)
        logger.debug("Tracking %s (size=%d)", path, size)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def check(self, now: float | None = None) -> list[Path]:
        """Return (and stop tracking) every file that has stabilised."""
        now = time.time() if now is None else now
        stable: list[Path] = []
        with self._lock:
            for path, (last_seen, last_size) in list(self._pending.items()):
                try:
                    current_size = path.stat().st_size
                except OSError:
                    # vanished
                    del self._pending[path]
                    continue
                if current_size != last_size:
                    self._pending[path] = (now, current_size)
                elif now - last_seen >= self._stable_seconds:
                    stable.append(path)
            for p in stable:
                del self._pending[p]
        return stable

    def _poll(self) -> None:
        while not self._stop.is_set():
            for p in self.check():
                logger.info("File stable: %s", p)
                try:
                    self._on_stable(p)
                except Exception:
                    logger.exception("Error in on_stable callback for %s", p)
            self._stop.wait(timeout=self._poll_interval)


class InboxHandler(FileSystemEventHandler):
    """Watchdog handler that feeds new files into the stability tracker."""

    def __init__(
        self,
        tracker: _StabilityTracker,
        extensions: list[str] | None = None,
        include_patterns: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
    ):
        super().__init__()
        self._tracker = tracker
        self._extensions = [e.lower().lstrip(".") for e in extensions or []]
        self._include_patterns = include_patterns or []
        self._exclude_patterns = exclude_patterns or []

    def should_track(self, path: str) -> bool:
        name = os.path.basename(path).lower()
        if self._include_patterns and not any(
            fnmatch.fnmatch(name, p.lower()) for p in self._include_patterns
        ):
            logger.debug("Ignoring %s (does not match any include pattern)", name)
            return False
        for pattern in self._exclude_patterns:
            if fnmatch.fnmatch(name, pattern.lower()):
                logger.debug("Excluding %s (matches %s)", name, pattern)
                return False
        if not self._extensions:
            return True
        ext = os.path.splitext(name)[1].lstrip(".")
        return ext in self._extensions

    def _consider(self, path: str) -> None:
        if self.should_track(path):
            self._tracker.track(Path(path))

    def on_created(self, event: FileCreatedEvent) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._consider(os.fsdecode(event.src_path))

    def on_modified(self, event: FileModifiedEvent) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._consider(os.fsdecode(event.src_path))

    def on_moved(self, event: FileMovedEvent) -> None:  # type: ignore[override]
        # Browsers rename finished downloads into place
        if not event.is_directory:
            self._consider(os.fsdecode(event.dest_path))


class InboxWatcher:
    """Relocates every file that settles in *folder*.

    Usage:
        watcher = InboxWatcher(folder, relocator, stable_seconds=10)
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(
        self,
        folder: str | Path,
        relocator: Relocator,
        group_label: str | None = None,
        stable_seconds: int = 10,
        extensions: list[str] | None = None,
        include_patterns: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
    ):
        self.folder = Path(folder)
        self.group_label = group_label or self.folder.name
        self._relocator = relocator
        self._tracker = _StabilityTracker(stable_seconds, self._on_stable)
        self._handler = InboxHandler(
            self._tracker, extensions, include_patterns, exclude_patterns
        )
        self._observer: Any | None = None

    # ---- lifecycle ----

    def start(self) -> None:
        """Start watching the inbox folder."""
        if not self.folder.is_dir():
            logger.error("Inbox folder does not exist: %s", self.folder)
            raise FileNotFoundError(f"Inbox folder does not exist: {self.folder}")

        observer = Observer()
        self._observer = observer
        observer.schedule(self._handler, str(self.folder), recursive=False)
        observer.start()
        self._tracker.start()
        logger.info(
            "Watching '%s' (group=%s, stable=%ds)",
            self.folder, self.group_label, self._tracker.stable_seconds,
        )

    def stop(self) -> None:
        """Stop watching and release resources."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._tracker.stop()
        logger.info("Watcher stopped.")

    @property
    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    @property
    def pending_count(self) -> int:
        """Return the number of files awaiting stability."""
        return self._tracker.pending_count

    def _on_stable(self, path: Path) -> None:
        rec = self._relocator.relocate(path, self.group_label)
        if not rec.relocated:
            logger.warning("Could not relocate %s: %s", path, rec.message)
