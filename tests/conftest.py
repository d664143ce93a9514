"""Shared fixtures: a fake home with cloud containers and a fresh registry."""

import json
from pathlib import Path

import pytest

from declutter.registry import DestinationRegistry
from declutter.store import DestinationStore
from declutter.tokens import PathTokenStore


@pytest.fixture
def cloud_storage(tmp_path: Path) -> Path:
    root = tmp_path / "Library" / "CloudStorage"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def icloud_root(tmp_path: Path) -> Path:
    root = tmp_path / "Library" / "Mobile Documents" / "com~apple~CloudDocs"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def dropbox_root(cloud_storage: Path) -> Path:
    root = cloud_storage / "Dropbox"
    root.mkdir()
    return root


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "destinations.json"


@pytest.fixture
def tokens() -> PathTokenStore:
    return PathTokenStore()


@pytest.fixture
def registry(store_path: Path, tokens: PathTokenStore) -> DestinationRegistry:
    return DestinationRegistry(DestinationStore(store_path), tokens)


@pytest.fixture
def inbox(tmp_path: Path) -> Path:
    folder = tmp_path / "Desktop"
    folder.mkdir()
    return folder


@pytest.fixture
def read_store(store_path: Path):
    def _read() -> dict:
        with open(store_path, encoding="utf-8") as fh:
            return json.load(fh)
    return _read
