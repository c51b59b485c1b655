"""
store.py - Embedded SQLite Store

The whole database lives in memory and is saved as one binary blob under a
fixed key of a BlobStorage backend. Opening a Store loads the blob (if any)
into a fresh in-memory SQLite connection and applies migrations; persist()
serializes the connection back and saves it.

    handle = StoreHandle(FileBlobStorage("./data"))
    with handle.get().session() as session:
        ...
    handle.get().persist()

StoreHandle constructs its Store once, on first use, and hands out the same
instance afterwards. Pass the handle explicitly to every desk that should
share the database.
"""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Protocol, Sequence, Union

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings, get_settings
from .core import DEFAULT_STORAGE_KEY
from .migrations import MIGRATIONS, Migration, apply_migrations


logger = logging.getLogger(__name__)


# ============================================================================
# BLOB STORAGE
# ============================================================================

class BlobStorage(Protocol):
    """Key-value storage for serialized database blobs."""

    def load(self, key: str) -> Optional[bytes]:
        ...

    def save(self, key: str, data: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryBlobStorage:
    """Dict-backed storage for tests and throwaway sessions."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}

    def load(self, key: str) -> Optional[bytes]:
        return self.blobs.get(key)

    def save(self, key: str, data: bytes) -> None:
        self.blobs[key] = bytes(data)

    def delete(self, key: str) -> None:
        self.blobs.pop(key, None)


class FileBlobStorage:
    """Stores each blob as <directory>/<key>.sqlite, replaced atomically on save."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.sqlite"

    def load(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def save(self, key: str, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp_path, self.path_for(key))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        if path.exists():
            path.unlink()


# ============================================================================
# STORE
# ============================================================================

class Store:
    """
    An in-memory SQLite database backed by a saved blob.

    Attributes:
        storage: Blob storage the database is loaded from and saved to.
        key: Storage key of the blob.
        engine: SQLAlchemy engine over a single shared connection.
        applied_migrations: Versions applied when the store was (re)opened.
    """

    def __init__(
        self,
        storage: BlobStorage,
        key: str = DEFAULT_STORAGE_KEY,
        migrations: Sequence[Migration] = MIGRATIONS,
    ):
        self.storage = storage
        self.key = key
        self.migrations = migrations
        self.engine: Optional[Engine] = None
        self.applied_migrations: List[int] = []
        self._session_factory: Optional[sessionmaker] = None
        self._open()

    def _open(self) -> None:
        blob = self.storage.load(self.key)
        engine = create_engine(
            "sqlite://",
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        if blob:
            @event.listens_for(engine, "connect")
            def _restore(dbapi_connection, connection_record):
                dbapi_connection.deserialize(blob)

        self.engine = engine
        self.applied_migrations = apply_migrations(engine, self.migrations)
        self._session_factory = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False
        )
        logger.info(
            "Opened store %r (%s, %d migrations applied)",
            self.key, "restored" if blob else "new", len(self.applied_migrations),
        )

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session that commits on success and rolls back on any error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def serialize(self) -> bytes:
        """Return the current database as a single blob."""
        with self.engine.connect() as connection:
            return connection.connection.driver_connection.serialize()

    def persist(self) -> None:
        data = self.serialize()
        self.storage.save(self.key, data)
        logger.debug("Persisted store %r (%d bytes)", self.key, len(data))

    def reset(self) -> None:
        """Delete the saved blob and rebuild an empty, migrated database."""
        self.engine.dispose()
        self.storage.delete(self.key)
        logger.warning("Store %r reset: all data deleted", self.key)
        self._open()

    def close(self) -> None:
        self.engine.dispose()


class StoreHandle:
    """Builds its Store on first use and returns the same instance afterwards."""

    def __init__(self, storage: BlobStorage, key: str = DEFAULT_STORAGE_KEY):
        self.storage = storage
        self.key = key
        self._store: Optional[Store] = None

    @property
    def is_open(self) -> bool:
        return self._store is not None

    def get(self) -> Store:
        if self._store is None:
            self._store = Store(self.storage, self.key)
        return self._store

    def reset(self) -> None:
        self.get().reset()

    def close(self) -> None:
        if self._store is not None:
            self._store.close()
            self._store = None


def open_store(settings: Optional[Settings] = None) -> StoreHandle:
    """Build a StoreHandle over a FileBlobStorage rooted at settings.data_dir."""
    settings = settings or get_settings()
    settings.ensure_dirs()
    return StoreHandle(FileBlobStorage(settings.data_dir), settings.storage_key)
