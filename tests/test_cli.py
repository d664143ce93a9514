"""Tests for the command-line interface."""

import logging

import pytest

from declutter.cli import main


@pytest.fixture
def run(tmp_path, store_path):
    config_path = tmp_path / "config" / "config.json"

    def _run(*args):
        return main(["--config", str(config_path), "--store", str(store_path), *args])

    yield _run
    # Close the file handler the CLI installed on the root logger
    from declutter.cli import _installed_handlers

    for handler in list(_installed_handlers):
        logging.getLogger().removeHandler(handler)
        handler.close()
    _installed_handlers.clear()


def test_add_list_move(run, capsys, dropbox_root, inbox, read_store):
    assert run("add", str(dropbox_root)) == 0
    out = capsys.readouterr().out
    assert "Connected Dropbox" in out

    assert run("list") == 0
    out = capsys.readouterr().out
    assert out.startswith("* ")
    assert "Dropbox" in out and "[Custom, token]" in out

    source = inbox / "photo.jpg"
    source.write_bytes(b"jpeg")
    assert run("move", str(source)) == 0
    assert not source.exists()
    assert (dropbox_root / "DesktopDeclutter" / "Desktop" / "photo.jpg").read_bytes() == b"jpeg"


def test_move_with_group_and_failure_status(run, capsys, dropbox_root, inbox):
    run("add", str(dropbox_root))
    source = inbox / "a.txt"
    source.write_text("x")
    assert run("move", str(source), str(inbox / "missing.txt"), "--group", "Work") == 1
    assert (dropbox_root / "DesktopDeclutter" / "Work" / "a.txt").exists()
    assert "Failed to move missing.txt" in capsys.readouterr().err


def test_move_without_destination(run, capsys, inbox):
    source = inbox / "a.txt"
    source.write_text("x")
    assert run("move", str(source)) == 1
    assert source.exists()
    assert "No active cloud destination" in capsys.readouterr().err


def test_add_rejects_non_cloud_folder(run, capsys, inbox, read_store):
    assert run("add", str(inbox)) == 1
    assert "not a cloud folder" in capsys.readouterr().err
    assert read_store()["savedCloudDestinations"] == []


def test_activate_and_remove_by_prefix(run, capsys, dropbox_root, icloud_root, read_store):
    run("add", str(dropbox_root))
    run("add", str(icloud_root))
    stored = read_store()
    icloud_id = stored["savedCloudDestinations"][1]["id"]

    assert run("activate", icloud_id[:8]) == 0
    assert read_store()["activeCloudDestinationId"] == icloud_id

    assert run("remove", icloud_id) == 0
    stored = read_store()
    assert len(stored["savedCloudDestinations"]) == 1
    assert stored["activeCloudDestinationId"] == stored["savedCloudDestinations"][0]["id"]


def test_unknown_id(run, capsys):
    assert run("activate", "deadbeef") == 1
    assert "No destination" in capsys.readouterr().err


def test_list_empty(run, capsys):
    assert run("list") == 0
    assert "No cloud folders connected." in capsys.readouterr().out
