"""Tests for storage.py — key-value backends and JSON helpers."""

import asyncio

import pytest

from hydro_reminders.errors import StorageUnavailable
from hydro_reminders.storage import FileStore, MemoryStore, read_json, write_json


def _run(coro):
    return asyncio.run(coro)


def test_memory_store_roundtrip():
    store = MemoryStore()

    _run(write_json(store, "k", {"a": 1}))

    assert _run(read_json(store, "k")) == {"a": 1}


def test_absent_key_reads_none(store):
    assert _run(read_json(store, "missing")) is None


def test_corrupt_value_reads_none(caplog):
    store = MemoryStore({"k": b"{not json"})

    assert _run(read_json(store, "k")) is None
    assert "corrupt" in caplog.text


def test_non_utf8_value_reads_none():
    store = MemoryStore({"k": b"\xff\xfe\x00"})

    assert _run(read_json(store, "k")) is None


def test_non_ascii_text_survives(store):
    _run(write_json(store, "name", "သူငယ်ချင်း"))

    assert _run(read_json(store, "name")) == "သူငယ်ချင်း"
    assert "သူငယ်ချင်း".encode() in store.data["name"]


def test_file_store_writes_one_file_per_key(data_dir):
    store = FileStore(data_dir / "state")

    _run(write_json(store, "notification_settings", {"enabled": False}))

    assert (data_dir / "state" / "notification_settings.json").exists()
    assert _run(read_json(store, "notification_settings")) == {"enabled": False}


def test_file_store_absent_key(tmp_path):
    assert _run(FileStore(tmp_path / "nowhere").get("k")) is None


def test_file_store_overwrite_leaves_no_temp_files(tmp_path):
    store = FileStore(tmp_path)

    _run(store.set("k", b"1"))
    _run(store.set("k", b"2"))

    assert _run(store.get("k")) == b"2"
    assert [p.name for p in tmp_path.iterdir()] == ["k.json"]


def test_file_store_slugifies_keys(tmp_path):
    store = FileStore(tmp_path)

    _run(store.set("user/../settings", b"x"))

    assert _run(store.get("user/../settings")) == b"x"
    assert all(p.parent == tmp_path for p in tmp_path.iterdir())


def test_file_store_write_failure_raises(tmp_path):
    blocker = tmp_path / "blocked"
    blocker.write_text("a file, not a directory")
    store = FileStore(blocker)

    with pytest.raises(StorageUnavailable):
        _run(store.set("k", b"1"))


def test_write_json_wraps_backend_errors():
    class Exploding:
        async def get(self, key):
            return None

        async def set(self, key, value):
            raise RuntimeError("quota exceeded")

    with pytest.raises(StorageUnavailable, match="quota exceeded"):
        _run(write_json(Exploding(), "k", 1))


def test_read_json_tolerates_backend_errors(tmp_path):
    class Failing:
        async def get(self, key):
            raise StorageUnavailable(key, "locked")

    assert _run(read_json(Failing(), "k")) is None


def test_read_json_tolerates_unexpected_backend_errors(caplog):
    class Offline(MemoryStore):
        async def get(self, key):
            raise RuntimeError("backend offline")

    assert _run(read_json(Offline(), "k")) is None
    assert "Store read failed" in caplog.text
