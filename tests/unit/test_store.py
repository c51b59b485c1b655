"""
test_store.py - Unit tests for the embedded SQLite store

Tests:
- MemoryBlobStorage and FileBlobStorage
- Store persist / reload round trip and session rollback
- Store.reset
- StoreHandle reuse and open_store
"""

import pytest
from sqlalchemy import text

from lifestock import (
    FileBlobStorage,
    MemoryBlobStorage,
    Settings,
    Store,
    StoreHandle,
    open_store,
)
from lifestock.core import DEFAULT_STORAGE_KEY


SQLITE_HEADER = b"SQLite format 3\x00"


def count_users(store):
    with store.session() as session:
        return session.execute(text("SELECT COUNT(*) FROM users")).scalar()


def add_user(store, username="ana"):
    with store.session() as session:
        session.execute(text("INSERT INTO users (username) VALUES (:name)"), {"name": username})


class TestBlobStorage:

    def test_memory_storage(self):
        storage = MemoryBlobStorage()
        assert storage.load("db") is None
        storage.save("db", b"abc")
        assert storage.load("db") == b"abc"
        storage.delete("db")
        storage.delete("db")
        assert storage.load("db") is None

    def test_file_storage(self, tmp_path):
        storage = FileBlobStorage(tmp_path / "blobs")
        assert storage.load("db") is None
        storage.save("db", b"abc")
        assert storage.path_for("db") == tmp_path / "blobs" / "db.sqlite"
        assert storage.load("db") == b"abc"
        storage.save("db", b"xyz")
        assert storage.load("db") == b"xyz"
        assert [p.name for p in (tmp_path / "blobs").iterdir()] == ["db.sqlite"]
        storage.delete("db")
        assert storage.load("db") is None

    def test_interrupted_save_leaves_no_temp_file(self, tmp_path, monkeypatch):
        storage = FileBlobStorage(tmp_path)
        storage.save("db", b"abc")

        def interrupted(src, dst):
            raise KeyboardInterrupt

        monkeypatch.setattr("lifestock.store.os.replace", interrupted)
        with pytest.raises(KeyboardInterrupt):
            storage.save("db", b"xyz")
        assert [p.name for p in tmp_path.iterdir()] == ["db.sqlite"]
        assert storage.load("db") == b"abc"


class TestStore:

    def test_new_store_is_migrated(self):
        store = Store(MemoryBlobStorage())
        assert store.applied_migrations == [1, 2, 3, 4, 5]
        assert count_users(store) == 0
        store.close()

    def test_persist_writes_sqlite_blob(self):
        storage = MemoryBlobStorage()
        store = Store(storage)
        store.persist()
        assert storage.load(DEFAULT_STORAGE_KEY).startswith(SQLITE_HEADER)
        store.close()

    def test_reload_round_trip(self):
        storage = MemoryBlobStorage()
        store = Store(storage)
        add_user(store)
        store.persist()
        store.close()

        reopened = Store(storage)
        assert reopened.applied_migrations == []
        assert count_users(reopened) == 1
        reopened.close()

    def test_unpersisted_changes_are_lost(self):
        storage = MemoryBlobStorage()
        store = Store(storage)
        store.persist()
        add_user(store)
        store.close()

        reopened = Store(storage)
        assert count_users(reopened) == 0
        reopened.close()

    def test_file_round_trip(self, tmp_path):
        storage = FileBlobStorage(tmp_path)
        store = Store(storage, key="mine")
        add_user(store)
        store.persist()
        store.close()

        assert (tmp_path / "mine.sqlite").read_bytes().startswith(SQLITE_HEADER)
        reopened = Store(FileBlobStorage(tmp_path), key="mine")
        assert count_users(reopened) == 1
        reopened.close()

    def test_session_rolls_back_on_error(self):
        store = Store(MemoryBlobStorage())
        with pytest.raises(RuntimeError):
            with store.session() as session:
                session.execute(text("INSERT INTO users (username) VALUES ('ana')"))
                raise RuntimeError("boom")
        assert count_users(store) == 0
        store.close()

    def test_reset_deletes_everything(self):
        storage = MemoryBlobStorage()
        store = Store(storage)
        add_user(store)
        store.persist()

        store.reset()
        assert storage.load(DEFAULT_STORAGE_KEY) is None
        assert store.applied_migrations == [1, 2, 3, 4, 5]
        assert count_users(store) == 0
        store.close()


class TestStoreHandle:

    def test_builds_store_once(self):
        handle = StoreHandle(MemoryBlobStorage())
        assert not handle.is_open
        store = handle.get()
        assert handle.is_open
        assert handle.get() is store
        handle.close()
        assert not handle.is_open

    def test_handles_share_storage_not_stores(self):
        storage = MemoryBlobStorage()
        first = StoreHandle(storage)
        add_user(first.get())
        first.get().persist()

        second = StoreHandle(storage)
        assert second.get() is not first.get()
        assert count_users(second.get()) == 1
        first.close()
        second.close()

    def test_open_store_uses_data_dir(self, tmp_path):
        settings = Settings(_env_file=None, data_dir=tmp_path / "data", storage_key="desk")
        handle = open_store(settings)
        assert (tmp_path / "data").is_dir()
        assert isinstance(handle.storage, FileBlobStorage)
        assert handle.key == "desk"
        handle.get().persist()
        assert (tmp_path / "data" / "desk.sqlite").exists()
        handle.close()
