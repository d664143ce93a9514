"""
Relocation engine for Desktop Declutter.

Moves a triaged file into ``<destination>/DesktopDeclutter/<group>/``
using copy-then-delete: the source is removed only after a complete
(and, by default, SHA-256 verified) copy exists at the target.  Name
collisions are resolved by appending `` 2``, `` 3``, ... before the
extension; nothing in the destination is ever overwritten.

Relocations run synchronously and report their outcome as a
:class:`RelocationRecord`; filesystem errors never propagate to the caller.
"""

import hashlib
import logging
import os
import shutil
import threading
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from declutter.config import DEFAULT_GROUP
from declutter.errors import PERMISSION_HINT, ErrorKind
from declutter.models import Destination, TriageFile
from declutter.registry import DestinationRegistry
from declutter.tokens import scoped_access

logger = logging.getLogger(__name__)

_HASH_CHUNK = 256 * 1024  # 256 KiB read chunks for hashing
_HISTORY_LIMIT = 1000


def _sha256(filepath: Path) -> str:
    """Return the hex SHA-256 digest of *filepath*."""
    h = hashlib.sha256()
    with open(filepath, "rb") as fh:
        while chunk := fh.read(_HASH_CHUNK):
            h.update(chunk)
    return h.hexdigest()


def unique_path(path: Path) -> Path:
    """Return *path*, or the first free ``"<stem> N<suffix>"`` sibling for N >= 2."""
    if not os.path.lexists(path):
        return path
    stem, suffix, parent = path.stem, path.suffix, path.parent
    counter = 2
    while True:
        candidate = parent / f"{stem} {counter}{suffix}"
        if not os.path.lexists(candidate):
            return candidate
        counter += 1


def group_folder_name(label: str | None, fallback: str = DEFAULT_GROUP) -> str:
    """Return the grouping folder for *label*; blank labels use *fallback*."""
    name = (label or "").strip()
    if not name:
        return fallback
    # Keep the group a single path segment
    name = name.replace("/", "-").replace("\\", "-")
    if name in (".", ".."):
        return fallback
    return name


def _discard(path: Path) -> None:
    """Remove a partial copy left behind by a failed transfer."""
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif os.path.lexists(path):
            path.unlink()
    except OSError as exc:
        logger.error("Could not remove partial copy %s: %s", path, exc)


def _describe(exc: OSError) -> str:
    if isinstance(exc, PermissionError):
        return f"{PERMISSION_HINT} ({exc})"
    return str(exc)


@dataclass
class RelocationRecord:
    """Outcome of a single relocation."""
    source: str
    destination: str = ""
    destination_id: uuid.UUID | None = None
    size_bytes: int = 0
    started: float = 0.0
    finished: float = 0.0
    success: bool = False
    verified: bool = False
    error: ErrorKind | None = None
    message: str = ""

    def fail(self, kind: ErrorKind, message: str) -> None:
        self.success = False
        self.error = kind
        self.message = message

    @property
    def partial(self) -> bool:
        """True when the copy landed but the original could not be removed."""
        return self.error is ErrorKind.DELETE_FAILED

    @property
    def relocated(self) -> bool:
        """True when a complete copy exists at :attr:`final_path`."""
        return self.success or self.partial

    @property
    def final_path(self) -> Path | None:
        if self.relocated and self.destination:
            return Path(self.destination)
        return None

    @property
    def duration(self) -> float:
        if self.finished and self.started:
            return self.finished - self.started
        return 0.0


@dataclass
class RelocationStats:
    """Aggregated relocation statistics."""
    total_moved: int = 0
    total_failed: int = 0
    total_partial: int = 0
    total_bytes: int = 0
    total_verified: int = 0
    last_moved_file: str = ""
    history: list[RelocationRecord] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, rec: RelocationRecord) -> None:
        with self._lock:
            self.history.append(rec)
            if rec.success:
                self.total_moved += 1
                self.total_bytes += rec.size_bytes
                self.last_moved_file = rec.destination
                if rec.verified:
                    self.total_verified += 1
            elif rec.partial:
                self.total_partial += 1
                self.last_moved_file = rec.destination
            else:
                self.total_failed += 1
            if len(self.history) > _HISTORY_LIMIT:
                self.history = self.history[-_HISTORY_LIMIT:]


class Relocator:
    """
    Moves files into registered destinations.

    Parameters
    ----------
    registry : DestinationRegistry
        Supplies the active destination and resolves destinations to paths.
    verify : bool
        If True, compare SHA-256 checksums before deleting the source.
    fallback_group : str
        Group folder used when a relocation carries no source label.
    on_complete : callable, optional
        Callback invoked after each relocation with its RelocationRecord.
    """

    def __init__(
        self,
        registry: DestinationRegistry,
        verify: bool = True,
        fallback_group: str = DEFAULT_GROUP,
        on_complete: Callable[[RelocationRecord], None] | None = None,
    ):
        self._registry = registry
        self._verify = verify
        self._fallback_group = fallback_group or DEFAULT_GROUP
        self._on_complete = on_complete
        self.stats = RelocationStats()

    # ---- public API ----

    def relocate(
        self,
        file: TriageFile | str | Path,
        source_group_label: str | None = None,
        destination: Destination | None = None,
    ) -> RelocationRecord:
        """Move *file* into *destination* (or the active one) under its group folder."""
        if not isinstance(file, TriageFile):
            file = TriageFile.from_path(file)
        rec = RelocationRecord(source=str(file.path), size_bytes=file.size)
        rec.started = time.time()
        try:
            dest = destination or self._registry.active
            if dest is None:
                rec.fail(ErrorKind.NO_DESTINATION, "No active cloud destination")
                logger.warning("Cannot relocate %s: no active destination", file.path)
                return rec
            rec.destination_id = dest.id

            root = self._registry.resolved_path(dest)
            if root is None:
                rec.fail(
                    ErrorKind.UNRESOLVABLE_DESTINATION,
                    f"Invalid destination: {dest.name}",
                )
                logger.error("Cannot resolve destination %s", dest.name)
                return rec

            group = group_folder_name(source_group_label, self._fallback_group)
            with scoped_access(self._registry.tokens, root):
                try:
                    folder = self._target_folder(root, group)
                except OSError as exc:
                    rec.fail(ErrorKind.NOT_WRITABLE, _describe(exc))
                    logger.error("Cannot prepare %s in %s: %s", group, root, exc)
                    return rec
                self._transfer(rec, file.path, folder / file.name)
            return rec
        finally:
            self._finish(rec)

    def relocate_many(
        self,
        files: Iterable[TriageFile | str | Path],
        source_group_label: str | None = None,
        destination: Destination | None = None,
    ) -> list[RelocationRecord]:
        """Relocate each of *files* in turn; one failure does not stop the rest."""
        return [self.relocate(f, source_group_label, destination) for f in files]

    def relocate_in_background(
        self,
        file: TriageFile | str | Path,
        source_group_label: str | None = None,
        destination: Destination | None = None,
        callback: Callable[[RelocationRecord], None] | None = None,
    ) -> threading.Thread:
        """Run :meth:`relocate` on a daemon thread and hand the record to *callback*."""

        def _run() -> None:
            rec = self.relocate(file, source_group_label, destination)
            if callback:
                try:
                    callback(rec)
                except Exception:
                    logger.exception("Error in relocation callback")

        name = file.name if isinstance(file, TriageFile) else Path(file).name
        thread = threading.Thread(target=_run, daemon=True, name=f"Relocate-{name}")
        thread.start()
        return thread

    def relocate_to_folder(
        self,
        file: TriageFile | str | Path,
        folder: str | Path,
    ) -> RelocationRecord:
        """Move *file* directly into a local *folder*, with the same safety rules."""
        if not isinstance(file, TriageFile):
            file = TriageFile.from_path(file)
        folder = Path(folder)
        rec = RelocationRecord(source=str(file.path), size_bytes=file.size)
        rec.started = time.time()
        try:
            with scoped_access(self._registry.tokens, folder):
                if not folder.is_dir():
                    rec.fail(ErrorKind.NOT_WRITABLE, f"Folder does not exist: {folder}")
                    logger.error("Cannot move %s: %s is not a folder", file.path, folder)
                    return rec
                self._transfer(rec, file.path, folder / file.name)
            return rec
        finally:
            self._finish(rec)

    # ---- internals ----

    def _target_folder(self, root: Path, group: str) -> Path:
        target = self._registry.app_root(root) / group
        target.mkdir(exist_ok=True)
        return target

    def _transfer(self, rec: RelocationRecord, source: Path, initial_target: Path) -> None:
        """Copy *source* next to *initial_target*, verify, then delete the source."""
        if not os.path.lexists(source):
            rec.fail(ErrorKind.SOURCE_MISSING, "Source file no longer exists")
            logger.warning("Source file vanished before relocation: %s", source)
            return
        is_dir = source.is_dir() and not source.is_symlink()
        if not is_dir:
            try:
                rec.size_bytes = source.stat().st_size
            except OSError:
                pass

        target = unique_path(initial_target)
        if target != initial_target:
            logger.info("%s exists; using %s", initial_target.name, target.name)

        # ---- copy ----
        try:
            logger.info("Copying %s -> %s (%d bytes)", source, target, rec.size_bytes)
            if is_dir:
                shutil.copytree(source, target, symlinks=True)
            else:
                shutil.copy2(source, target, follow_symlinks=False)
        except OSError as exc:
            _discard(target)
            rec.fail(ErrorKind.COPY_FAILED, _describe(exc))
            logger.error("Copy failed for %s: %s", source, exc)
            return

        # ---- verification ----
        if self._verify and not is_dir and not source.is_symlink():
            try:
                src_hash = _sha256(source)
                dst_hash = _sha256(target)
            except OSError as exc:
                _discard(target)
                rec.fail(ErrorKind.COPY_FAILED, f"Could not verify copy: {exc}")
                logger.error("Could not verify copy of %s: %s", source, exc)
                return
            if src_hash != dst_hash:
                _discard(target)
                rec.fail(
                    ErrorKind.COPY_FAILED,
                    f"Verification failed: SHA-256 mismatch "
                    f"(src={src_hash[:12]}… dst={dst_hash[:12]}…)",
                )
                logger.error("Checksum mismatch for %s", target)
                return
            rec.verified = True

        rec.destination = str(target)

        # ---- remove original ----
        try:
            if is_dir:
                shutil.rmtree(source)
            else:
                source.unlink()
        except OSError as exc:
            rec.fail(
                ErrorKind.DELETE_FAILED,
                f"Copied to {target} but could not remove the original: {_describe(exc)}",
            )
            logger.error("Relocated %s but could not remove it: %s", source, exc)
            return

        rec.success = True
        logger.info("Relocated %s -> %s", source, target)

    def _finish(self, rec: RelocationRecord) -> None:
        rec.finished = time.time()
        self.stats.record(rec)
        if self._on_complete:
            try:
                self._on_complete(rec)
            except Exception:
                logger.exception("Error in on_complete callback")
