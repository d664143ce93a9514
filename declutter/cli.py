"""
Command-line interface for Desktop Declutter.

Usage:
    declutter list                       Show connected destinations
    declutter add PATH                   Connect a cloud folder
    declutter remove ID                  Disconnect a destination
    declutter activate ID                Make a destination the active one
    declutter move FILE... [--group G]   Relocate files into the active destination
    declutter watch FOLDER               Relocate files as they land in FOLDER

IDs may be abbreviated to any unique prefix.
"""

from __future__ import annotations

import argparse
import logging
import logging.handlers
import signal
import sys
import time
import uuid
from pathlib import Path

from declutter import __app_name__, __version__
from declutter.config import Config
from declutter.errors import DeclutterError, UnknownDestination
from declutter.models import Destination
from declutter.platform_utils import cloud_storage_roots, reveal_in_file_manager
from declutter.registry import DestinationRegistry
from declutter.relocator import Relocator
from declutter.store import DestinationStore
from declutter.tokens import AccessTokenStore, NullTokenStore, PathTokenStore

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "declutter.log"
_installed_handlers: list[logging.Handler] = []


def _setup_logging(cfg: Config, verbose: bool) -> None:
    """Configure rotating file log and stderr handler."""
    root_logger = logging.getLogger()
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    level = getattr(logging, cfg.log_level.upper(), logging.INFO)
    if verbose:
        level = logging.DEBUG
    root_logger.setLevel(level)
    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    log_path = cfg.path.parent / LOG_FILE_NAME
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=cfg.max_log_size_mb * 1024 * 1024,
            backupCount=cfg.log_backup_count,
            encoding="utf-8",
        )
    except OSError as exc:
        print(f"Warning: cannot write log file {log_path}: {exc}", file=sys.stderr)
    else:
        fh.setLevel(level)
        fh.setFormatter(fmt)
        root_logger.addHandler(fh)
        _installed_handlers.append(fh)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level if verbose else logging.WARNING)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)
    _installed_handlers.append(sh)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="declutter",
        description="Relocate triaged files into iCloud Drive, Google Drive, or other synced folders.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="path to config.json")
    parser.add_argument("--store", type=Path, help="path to the destination registry file")
    parser.add_argument(
        "--no-tokens", action="store_true",
        help="access destinations by path only, without access tokens",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="show connected destinations")

    p_add = sub.add_parser("add", help="connect a cloud folder")
    p_add.add_argument("path", type=Path)

    p_remove = sub.add_parser("remove", help="disconnect a destination")
    p_remove.add_argument("id")

    p_activate = sub.add_parser("activate", help="make a destination active")
    p_activate.add_argument("id")

    p_move = sub.add_parser("move", help="relocate files into a destination")
    p_move.add_argument("files", nargs="+", type=Path)
    p_move.add_argument("--group", help="group folder (default: the source folder's name)")
    p_move.add_argument("--to", dest="to", help="destination id (default: the active one)")
    p_move.add_argument("--reveal", action="store_true", help="show moved files in the file manager")

    p_watch = sub.add_parser("watch", help="relocate files as they land in a folder")
    p_watch.add_argument("folder", type=Path)
    p_watch.add_argument("--group", help="group folder (default: the watched folder's name)")
    p_watch.add_argument("--stable", type=int, help="seconds a file must stay unchanged")
    return parser


def find_by_id(registry: DestinationRegistry, text: str) -> Destination:
    """Return the destination whose id is *text* or starts with it."""
    text = text.strip().lower()
    try:
        dest = registry.get(uuid.UUID(text))
    except ValueError:
        dest = None
    if dest is not None:
        return dest
    matches = [d for d in registry.destinations if str(d.id).startswith(text)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise UnknownDestination(f"No destination with id {text!r}")
    raise UnknownDestination(f"Id prefix {text!r} is ambiguous")


# ---- commands ----------------------------------------------------------


def _cmd_list(registry: DestinationRegistry, args: argparse.Namespace, cfg: Config) -> int:
    if not registry.destinations:
        print("No cloud folders connected.")
        roots = cloud_storage_roots()
        if roots:
            print("Cloud folders on this machine:")
            for root in roots:
                print(f"  {root}")
        return 0
    active = registry.active
    for dest in registry.destinations:
        marker = "*" if active is not None and dest.id == active.id else " "
        access = "token" if dest.bookmark_data else "path"
        print(
            f"{marker} {str(dest.id)[:8]}  {registry.display_name(dest)}"
            f"  [{dest.provider.value}, {access}]  {dest.path}"
        )
    return 0


def _cmd_add(registry: DestinationRegistry, args: argparse.Namespace, cfg: Config) -> int:
    dest = registry.connect(args.path.expanduser().absolute())
    print(f"Connected {registry.display_name(dest)} ({dest.id})")
    if dest.bookmark_data is None:
        print("Note: no access token could be created; the folder will be used by path.")
    return 0


def _cmd_remove(registry: DestinationRegistry, args: argparse.Namespace, cfg: Config) -> int:
    dest = find_by_id(registry, args.id)
    registry.remove(dest.id)
    print(f"Removed {registry.display_name(dest)}")
    return 0


def _cmd_activate(registry: DestinationRegistry, args: argparse.Namespace, cfg: Config) -> int:
    dest = find_by_id(registry, args.id)
    registry.set_active(dest.id)
    print(f"Active destination: {registry.display_name(dest)}")
    return 0


def _cmd_move(registry: DestinationRegistry, args: argparse.Namespace, cfg: Config) -> int:
    destination = find_by_id(registry, args.to) if args.to else None
    relocator = Relocator(
        registry, verify=cfg.verify_copies, fallback_group=cfg.fallback_group
    )
    reveal = args.reveal or cfg.reveal_after_move
    status = 0
    for path in args.files:
        path = path.expanduser().absolute()
        label = args.group if args.group is not None else path.parent.name
        rec = relocator.relocate(path, label, destination)
        if rec.success:
            print(f"Moved {path.name} -> {rec.destination}")
        elif rec.partial:
            print(f"Copied {path.name} -> {rec.destination}, but the original remains: {rec.message}")
            status = 1
        else:
            print(f"Failed to move {path.name}: {rec.message}", file=sys.stderr)
            status = 1
        if reveal and rec.final_path is not None:
            reveal_in_file_manager(rec.final_path)
    return status


def _cmd_watch(registry: DestinationRegistry, args: argparse.Namespace, cfg: Config) -> int:
    from declutter.watcher import InboxWatcher

    if registry.active is None:
        print("No active cloud destination. Add one first.", file=sys.stderr)
        return 1
    relocator = Relocator(
        registry, verify=cfg.verify_copies, fallback_group=cfg.fallback_group
    )
    watcher = InboxWatcher(
        args.folder.expanduser().absolute(),
        relocator,
        group_label=args.group,
        stable_seconds=args.stable if args.stable is not None else cfg.stable_time,
        extensions=cfg.file_extensions or None,
        include_patterns=cfg.include_patterns or None,
        exclude_patterns=cfg.exclude_patterns or None,
    )
    watcher.start()
    stop = False

    def _handler(sig, frame):
        nonlocal stop
        stop = True

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)

    print(f"{__app_name__} watching {watcher.folder} (press Ctrl-C to stop)…")
    try:
        while not stop:
            time.sleep(1)
    finally:
        watcher.stop()
    stats = relocator.stats
    print(f"Stopped. {stats.total_moved} moved, {stats.total_failed} failed.")
    return 0


_COMMANDS = {
    "list": _cmd_list,
    "add": _cmd_add,
    "remove": _cmd_remove,
    "activate": _cmd_activate,
    "move": _cmd_move,
    "watch": _cmd_watch,
}


def main(argv: list[str] | None = None) -> int:
    """Parse *argv*, run the command, and return the exit status."""
    args = _build_parser().parse_args(argv)
    cfg = Config(args.config)
    _setup_logging(cfg, args.verbose)
    logger.debug("%s %s: %s", __app_name__, __version__, args.command)

    tokens: AccessTokenStore = NullTokenStore() if args.no_tokens else PathTokenStore()
    registry = DestinationRegistry(DestinationStore(args.store), tokens)
    try:
        return _COMMANDS[args.command](registry, args, cfg)
    except DeclutterError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
