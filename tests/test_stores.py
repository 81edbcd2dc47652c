import json
import logging
import os
import threading

import pytest

from media_counter.config import Settings
from media_counter.locks import KeyedLock
from media_counter.stores import FileStore, MemoryStore, StoreError, make_store, record_from


@pytest.fixture
def locks():
    return KeyedLock()


@pytest.fixture
def counter_file(tmp_path):
    return tmp_path / "data" / "counter.json"


def test_record_from_defaults_and_ignores_extra_fields():
    assert record_from(None) == {"video": 0, "photo": 0}
    assert record_from({"_id": "counters", "video": 4, "other": 9}) == {"video": 4, "photo": 0}


def test_file_store_missing_file_reads_zero(counter_file, locks):
    store = FileStore(counter_file, locks)
    assert store.read() == {"video": 0, "photo": 0}


def test_file_store_apply_persists_json(counter_file, locks):
    store = FileStore(counter_file, locks)

    counters, persisted = store.apply("video", 3)
    assert persisted is True
    assert counters == {"video": 3, "photo": 0}

    counters, _ = store.apply("photo", -2)
    assert counters == {"video": 3, "photo": -2}

    assert json.loads(counter_file.read_text(encoding="utf-8")) == {"video": 3, "photo": -2}
    assert not counter_file.with_name("counter.json.tmp").exists()


def test_file_store_reads_existing_file(counter_file, locks):
    counter_file.parent.mkdir(parents=True)
    counter_file.write_text(json.dumps({"video": 7, "photo": 1}), encoding="utf-8")

    store = FileStore(counter_file, locks)
    assert store.read() == {"video": 7, "photo": 1}
    assert store.apply("video", 1)[0]["video"] == 8


def test_file_store_lock_key_is_absolute_path(tmp_path, locks, monkeypatch):
    monkeypatch.chdir(tmp_path)
    store = FileStore("counter.json", locks)
    assert store.lock_key == os.path.abspath(tmp_path / "counter.json")


def test_file_store_concurrent_updates_are_not_lost(counter_file, locks):
    store = FileStore(counter_file, locks)

    def worker():
        for _ in range(10):
            store.apply("video", 1)

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert store.read()["video"] == 200
    assert json.loads(counter_file.read_text(encoding="utf-8"))["video"] == 200
    assert locks.pending_keys() == []


def test_two_stores_on_same_file_share_the_chain(counter_file, locks):
    a = FileStore(counter_file, locks)
    b = FileStore(counter_file, locks)

    def worker(store):
        for _ in range(25):
            store.apply("photo", 1)

    threads = [threading.Thread(target=worker, args=(s,)) for s in (a, b, a, b)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert a.read()["photo"] == 100


def test_file_store_falls_back_to_memory_on_write_failure(counter_file, locks, monkeypatch, caplog):
    store = FileStore(counter_file, locks)
    store.apply("video", 1)

    def broken_write(data):
        raise OSError(30, "Read-only file system")

    monkeypatch.setattr(store, "_write_file", broken_write)
    with caplog.at_level(logging.WARNING, logger="media-counter"):
        counters, persisted = store.apply("video", 1)

    assert persisted is False
    assert counters["video"] == 2
    assert store.read()["video"] == 2
    assert json.loads(counter_file.read_text(encoding="utf-8"))["video"] == 1
    assert any('"persist_failed"' in r.getMessage() for r in caplog.records)

    monkeypatch.undo()
    counters, persisted = store.apply("video", 1)
    assert persisted is True
    assert counters["video"] == 3
    assert json.loads(counter_file.read_text(encoding="utf-8"))["video"] == 3


def test_file_store_corrupt_file_raises(counter_file, locks):
    counter_file.parent.mkdir(parents=True)
    counter_file.write_text("{not json", encoding="utf-8")
    store = FileStore(counter_file, locks)

    with pytest.raises(ValueError):
        store.apply("video", 1)
    assert locks.pending_keys() == []


def test_memory_store(locks):
    store = MemoryStore(locks, initial={"photo": 5})
    assert store.read() == {"video": 0, "photo": 5}
    assert store.apply("photo", -1) == ({"video": 0, "photo": 4}, True)


def test_memory_store_concurrent_updates(locks):
    store = MemoryStore(locks)
    threads = [threading.Thread(target=store.apply, args=("video", 1)) for _ in range(50)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert store.read()["video"] == 50


def test_make_store_selects_backend(counter_file, locks):
    assert isinstance(make_store(Settings(storage="mem"), locks), MemoryStore)

    store = make_store(Settings(storage="file", counter_file=str(counter_file)), locks)
    assert isinstance(store, FileStore)
    assert store.path == counter_file


@pytest.mark.parametrize("settings", [
    Settings(storage="nosuch"),
    Settings(storage="mongo", mongodb_uri=None),
    Settings(storage="pg", pg_dsn=None),
])
def test_make_store_falls_back_to_memory(settings, locks, caplog):
    with caplog.at_level(logging.WARNING, logger="media-counter"):
        store = make_store(settings, locks)

    assert isinstance(store, MemoryStore)
    messages = [json.loads(r.getMessage()) for r in caplog.records if r.name == "media-counter"]
    assert messages[-1]["event"] == "storage_fallback"
    assert messages[-1]["storage"] == settings.storage


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("STORAGE", "Mongo")
    monkeypatch.setenv("MONGODB_URI", "mongodb://db:27017/app")
    monkeypatch.setenv("HZ_MEMBERS", "10.0.0.1:5701, 10.0.0.2:5701")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.delenv("COUNTER_FILE", raising=False)

    s = Settings.from_env()
    assert s.storage == "mongo"
    assert s.mongodb_uri == "mongodb://db:27017/app"
    assert s.hz_members == ("10.0.0.1:5701", "10.0.0.2:5701")
    assert s.port == 9000
    assert s.counter_file == "data/counter.json"


def test_file_store_keeps_unknown_fields(counter_file, locks):
    counter_file.parent.mkdir(parents=True)
    counter_file.write_text(json.dumps({"video": 1, "photo": 2, "audio": 9}), encoding="utf-8")
    store = FileStore(counter_file, locks)

    counters, persisted = store.apply("video", 1)

    assert persisted is True
    assert counters == {"video": 2, "photo": 2}
    assert json.loads(counter_file.read_text(encoding="utf-8")) == {"video": 2, "photo": 2, "audio": 9}


def test_file_store_memory_fallback_keeps_unknown_fields(counter_file, locks, monkeypatch):
    counter_file.parent.mkdir(parents=True)
    counter_file.write_text(json.dumps({"video": 1, "audio": 9}), encoding="utf-8")
    store = FileStore(counter_file, locks)

    def broken_write(data):
        raise OSError(30, "Read-only file system")

    monkeypatch.setattr(store, "_write_file", broken_write)
    store.apply("photo", 4)
    monkeypatch.undo()

    store.apply("video", 1)
    assert json.loads(counter_file.read_text(encoding="utf-8")) == {"video": 2, "photo": 4, "audio": 9}


@pytest.mark.parametrize("content", ["5", "[1, 2]", '"video"'])
def test_file_store_rejects_non_object_file(counter_file, locks, content):
    counter_file.parent.mkdir(parents=True)
    counter_file.write_text(content, encoding="utf-8")
    store = FileStore(counter_file, locks)

    with pytest.raises(StoreError, match="does not hold a JSON object"):
        store.read()
    with pytest.raises(StoreError):
        store.apply("video", 1)
    assert counter_file.read_text(encoding="utf-8") == content


def test_record_from_rejects_non_object():
    with pytest.raises(StoreError):
        record_from(5)
