"""Tests for the inbox watcher's filtering, stability tracking, and hand-off."""

import pytest

from declutter.providers import Provider
from declutter.relocator import Relocator
from declutter.watcher import InboxHandler, InboxWatcher, _StabilityTracker


class TestStabilityTracker:
    def test_file_becomes_stable(self, inbox):
        path = inbox / "a.txt"
        path.write_bytes(b"abc")
        tracker = _StabilityTracker(stable_seconds=5, on_stable=lambda p: None)
        tracker.track(path)
        assert tracker.check(now=0) == []
        assert tracker.pending_count == 1
        stable = tracker.check(now=10**12)
        assert stable == [path]
        assert tracker.pending_count == 0

    def test_growing_file_resets_clock(self, inbox):
        path = inbox / "a.txt"
        path.write_bytes(b"abc")
        tracker = _StabilityTracker(stable_seconds=5, on_stable=lambda p: None)
        tracker.track(path)
        path.write_bytes(b"abcdef")
        assert tracker.check(now=10**12) == []
        assert tracker.check(now=10**12 + 10) == [path]

    def test_vanished_file_dropped(self, inbox):
        path = inbox / "a.txt"
        path.write_bytes(b"abc")
        tracker = _StabilityTracker(stable_seconds=0, on_stable=lambda p: None)
        tracker.track(path)
        path.unlink()
        assert tracker.check() == []
        assert tracker.pending_count == 0


class TestInboxHandler:
    def make(self, **kwargs):
        tracker = _StabilityTracker(stable_seconds=0, on_stable=lambda p: None)
        return InboxHandler(tracker, **kwargs)

    def test_accepts_everything_by_default(self):
        assert self.make().should_track("/x/photo.JPG")

    def test_exclude_patterns(self):
        handler = self.make(exclude_patterns=[".*", "*.crdownload"])
        assert not handler.should_track("/x/.DS_Store")
        assert not handler.should_track("/x/movie.mp4.crdownload")
        assert handler.should_track("/x/movie.mp4")

    def test_include_patterns(self):
        handler = self.make(include_patterns=["Screenshot*"])
        assert handler.should_track("/x/Screenshot 2024-01-01.png")
        assert not handler.should_track("/x/notes.txt")

    def test_extensions(self):
        handler = self.make(extensions=[".PNG", "jpg"])
        assert handler.should_track("/x/a.png")
        assert handler.should_track("/x/b.JPG")
        assert not handler.should_track("/x/c.pdf")


class TestInboxWatcher:
    def test_stable_file_is_relocated_under_folder_name(self, registry, dropbox_root, inbox):
        registry.add("Dropbox", dropbox_root, Provider.CUSTOM)
        relocator = Relocator(registry)
        watcher = InboxWatcher(inbox, relocator)
        path = inbox / "scan.pdf"
        path.write_bytes(b"%PDF")

        watcher._on_stable(path)

        assert not path.exists()
        assert (dropbox_root / "DesktopDeclutter" / "Desktop" / "scan.pdf").read_bytes() == b"%PDF"

    def test_explicit_group_label(self, registry, inbox):
        watcher = InboxWatcher(inbox, Relocator(registry), group_label="Scans")
        assert watcher.group_label == "Scans"

    def test_missing_folder(self, registry, tmp_path):
        watcher = InboxWatcher(tmp_path / "missing", Relocator(registry))
        with pytest.raises(FileNotFoundError):
            watcher.start()
        assert not watcher.is_running

    def test_start_and_stop(self, registry, inbox):
        watcher = InboxWatcher(inbox, Relocator(registry), stable_seconds=0)
        watcher.start()
        try:
            assert watcher.is_running
        finally:
            watcher.stop()
        assert not watcher.is_running
