"""Tests for access token minting, resolution, and scoped access."""

import json
from pathlib import Path

import pytest

from declutter.errors import TokenResolutionError
from declutter.tokens import NullTokenStore, PathTokenStore, scoped_access


def legacy_token(path: Path) -> bytes:
    return json.dumps({"v": 1, "path": str(path)}).encode("utf-8")


class TestPathTokenStore:
    def test_mint_and_resolve(self, tmp_path, tokens):
        token = tokens.mint(tmp_path)
        assert token is not None
        resolved = tokens.resolve(token)
        assert resolved.path == tmp_path
        assert resolved.is_stale is False

    def test_mint_missing_directory_returns_none(self, tmp_path, tokens):
        assert tokens.mint(tmp_path / "nope") is None

    def test_mint_file_returns_none(self, tmp_path, tokens):
        f = tmp_path / "file.txt"
        f.write_text("x")
        assert tokens.mint(f) is None

    def test_legacy_token_is_stale(self, tmp_path, tokens):
        resolved = tokens.resolve(legacy_token(tmp_path))
        assert resolved.path == tmp_path
        assert resolved.is_stale is True

    def test_replaced_directory_is_stale(self, tmp_path, tokens):
        folder = tmp_path / "drive"
        folder.mkdir()
        payload = json.loads(tokens.mint(folder))
        payload["ino"] = payload["ino"] + 1
        resolved = tokens.resolve(json.dumps(payload).encode("utf-8"))
        assert resolved.is_stale is True

    @pytest.mark.parametrize("token", [
        b"\x00\x01garbage",
        b"not json",
        b"[1, 2]",
        json.dumps({"v": 99, "path": "/tmp"}).encode(),
        json.dumps({"v": 2}).encode(),
    ])
    def test_malformed_tokens_fail(self, tokens, token):
        with pytest.raises(TokenResolutionError):
            tokens.resolve(token)

    def test_vanished_directory_fails(self, tmp_path, tokens):
        folder = tmp_path / "gone"
        folder.mkdir()
        token = tokens.mint(folder)
        folder.rmdir()
        with pytest.raises(TokenResolutionError):
            tokens.resolve(token)


class TestScopedAccess:
    def test_released_after_success(self, tmp_path, tokens):
        with scoped_access(tokens, tmp_path) as accessing:
            assert accessing is True
            assert tokens.active_count(tmp_path) == 1
        assert tokens.active_count(tmp_path) == 0

    def test_released_after_error(self, tmp_path, tokens):
        with pytest.raises(RuntimeError):
            with scoped_access(tokens, tmp_path):
                raise RuntimeError("boom")
        assert tokens.active_count(tmp_path) == 0

    def test_nested(self, tmp_path, tokens):
        with scoped_access(tokens, tmp_path):
            with scoped_access(tokens, tmp_path):
                assert tokens.active_count(tmp_path) == 2
            assert tokens.active_count(tmp_path) == 1
        assert tokens.active_count(tmp_path) == 0


class TestNullTokenStore:
    def test_never_mints(self, tmp_path):
        store = NullTokenStore()
        assert store.mint(tmp_path) is None
        with scoped_access(store, tmp_path) as accessing:
            assert accessing is False

    def test_resolve_fails(self):
        with pytest.raises(TokenResolutionError):
            NullTokenStore().resolve(b"anything")
