"""Tests for configuration and the destination store file format."""

import json
import uuid

from declutter.config import DEFAULT_CONFIG, Config
from declutter.models import Destination, RegistryState, TriageFile
from declutter.providers import Provider
from declutter.store import ACTIVE_KEY, DESTINATIONS_KEY, DestinationStore


class TestConfig:
    def test_creates_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        cfg = Config(path)
        assert path.exists()
        assert cfg.verify_copies is True
        assert cfg.fallback_group == "Unsorted"
        assert json.loads(path.read_text()) == DEFAULT_CONFIG

    def test_merges_stored_over_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"verify_copies": False, "stable_time_seconds": 3}))
        cfg = Config(path)
        assert cfg.verify_copies is False
        assert cfg.stable_time == 3
        assert cfg.log_level == "INFO"

    def test_corrupt_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{{{")
        assert Config(path).max_log_size_mb == 10

    def test_setters_clamp_and_normalise(self, tmp_path):
        cfg = Config(tmp_path / "config.json")
        cfg.stable_time = -4
        cfg.max_log_size_mb = 0
        cfg.file_extensions = [" .PNG", "", "Jpg"]
        cfg.fallback_group = "   "
        assert cfg.stable_time == 0
        assert cfg.max_log_size_mb == 1
        assert cfg.file_extensions == ["png", "jpg"]
        assert cfg.fallback_group == "Unsorted"

    def test_save_round_trip(self, tmp_path):
        path = tmp_path / "config.json"
        cfg = Config(path)
        cfg.reveal_after_move = True
        cfg.save()
        assert Config(path).reveal_after_move is True


class TestDestinationStore:
    def test_file_format(self, store_path):
        dest = Destination(
            name="My Drive",
            path="/Users/a/Library/CloudStorage/GoogleDrive-a@x.com/My Drive",
            provider=Provider.GOOGLE_DRIVE,
            bookmark_data=b"\x01\x02",
        )
        DestinationStore(store_path).save(RegistryState([dest], dest.id))
        data = json.loads(store_path.read_text())
        assert data == {
            DESTINATIONS_KEY: [{
                "id": str(dest.id),
                "name": "My Drive",
                "path": dest.path,
                "bookmarkData": "AQI=",
                "provider": "Google Drive",
            }],
            ACTIVE_KEY: str(dest.id),
        }

    def test_load_round_trip(self, store_path):
        dest = Destination(name="Box", path="/b", provider=Provider.CUSTOM)
        store = DestinationStore(store_path)
        store.save(RegistryState([dest], None))
        state = store.load()
        assert state.destinations == [dest]
        assert state.active_id is None

    def test_missing_file(self, store_path):
        state = DestinationStore(store_path).load()
        assert state.destinations == [] and state.active_id is None

    def test_bad_records_skipped(self, store_path):
        good = Destination(name="Box", path="/b", provider=Provider.CUSTOM)
        store_path.parent.mkdir(parents=True)
        store_path.write_text(json.dumps({
            DESTINATIONS_KEY: [{"name": "no id"}, good.to_dict(), {"id": "not-a-uuid", "name": "x", "path": "/x"}],
            ACTIVE_KEY: "not-a-uuid",
        }))
        state = DestinationStore(store_path).load()
        assert state.destinations == [good]
        assert state.active_id is None

    def test_unknown_provider_rejected(self, store_path):
        store_path.parent.mkdir(parents=True)
        good = Destination(name="Box", path="/b", provider=Provider.CUSTOM)
        record = {"id": str(uuid.uuid4()), "name": "x", "path": "/x", "provider": "Dropbox"}
        store_path.write_text(json.dumps({DESTINATIONS_KEY: [record, good.to_dict()]}))
        assert DestinationStore(store_path).load().destinations == [good]


def test_triage_file_from_path(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"12345")
    f = TriageFile.from_path(path)
    assert (f.path, f.name, f.size) == (path, "a.bin", 5)
