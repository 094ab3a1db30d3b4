"""Unit tests for the file-backed storage collaborator."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from usagestats.core.contracts.snapshot import Snapshot
from usagestats.core.settings import load_settings
from usagestats.core.storage import INSTALL_ID_FILE, SNAPSHOT_FILE, FileStorage


def test_read_without_file_returns_zero_snapshot(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path)
    assert storage.read() == Snapshot.zero()


def test_written_snapshot_is_read_back(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path)
    snap = Snapshot(
        install_id="abc",
        timestamp=datetime(2026, 5, 1, tzinfo=UTC),
        storage_main=13,
        apps_count=7,
    )
    storage.write(snap)

    payload: dict[str, Any]
    with (tmp_path / SNAPSHOT_FILE).open("r", encoding="utf-8") as f:
        payload = json.load(f)
    assert payload["storage_main"] == 13
    assert payload["install_id"] == "abc"

    restored = FileStorage(tmp_path).read()
    assert restored.storage_main == 13
    assert restored.apps_count == 7
    assert restored.timestamp == snap.timestamp
    assert not list(tmp_path.glob("*.tmp"))


def test_invalid_file_reads_as_zero(tmp_path: Path) -> None:
    (tmp_path / SNAPSHOT_FILE).write_text("{not json", encoding="utf-8")
    assert FileStorage(tmp_path).read() == Snapshot.zero()

    (tmp_path / SNAPSHOT_FILE).write_text('{"storage_main": -4}', encoding="utf-8")
    assert FileStorage(tmp_path).read() == Snapshot.zero()


def test_non_utf8_file_reads_as_zero(tmp_path: Path) -> None:
    (tmp_path / SNAPSHOT_FILE).write_bytes(b'\xff\xfe{"storage_main": 5}')
    assert FileStorage(tmp_path).read() == Snapshot.zero()


def test_empty_object_reads_as_zero(tmp_path: Path) -> None:
    """A snapshot persisted as `{}` is the all-zero baseline."""
    (tmp_path / SNAPSHOT_FILE).write_text("{}", encoding="utf-8")
    assert FileStorage(tmp_path).read() == Snapshot.zero()


def test_write_failure_is_logged_not_raised(tmp_path: Path) -> None:
    storage = FileStorage(tmp_path)
    storage.base_dir = tmp_path / "vanished" / "dir"

    storage.write(Snapshot(storage_main=1))

    assert not storage.snapshot_path.exists()


def test_install_id_is_generated_once_and_persisted(tmp_path: Path) -> None:
    first = FileStorage(tmp_path).install_id()
    assert first
    assert (tmp_path / INSTALL_ID_FILE).read_text(encoding="utf-8").strip() == first

    again = FileStorage(tmp_path)
    assert again.install_id() == first
    assert again.install_id() == first


def test_disk_usage_by_category(tmp_path: Path) -> None:
    (tmp_path / "main").mkdir()
    (tmp_path / "main" / "a.db").write_bytes(b"x" * 10)
    (tmp_path / "main" / "nested").mkdir()
    (tmp_path / "main" / "nested" / "b.db").write_bytes(b"y" * 5)
    (tmp_path / "trees").mkdir()
    (tmp_path / "trees" / "t.db").write_bytes(b"z" * 3)

    usage = FileStorage(tmp_path).disk_usage()

    assert usage == {"dicts": 0, "dimensions": 0, "main": 15, "segments": 0, "trees": 3}


def test_default_dir_comes_from_settings(tmp_path: Path, monkeypatch: Any) -> None:
    outdir = tmp_path / "data"
    monkeypatch.setenv("USAGESTATS_DATA_DIR", str(outdir))
    load_settings.cache_clear()

    storage = FileStorage()

    assert storage.base_dir == outdir
    assert outdir.is_dir()
