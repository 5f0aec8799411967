"""
Key-value storage backends for the history and gains-cache slots.

Each backend stores opaque bytes under a string key and supports
get(key), put(key, value) and delete(*keys). A write that would exceed the
available space raises StorageQuotaExceeded and leaves the previous value in place.
"""
import os
import errno
import threading
from contextlib import contextmanager

from sqlalchemy import create_engine, Column, String, LargeBinary, DateTime, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker

from .errors import StorageQuotaExceeded
from .utils import DATA_FOLDER, STORAGE_BACKEND, STORAGE_QUOTA_BYTES, log_console

Base = declarative_base()

QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, 'EDQUOT', errno.ENOSPC)}


class MemoryStore:
    """In-process store, mostly for tests"""

    def __init__(self, quota_bytes=None):
        self.quota_bytes = quota_bytes
        self.data = {}
        self.lock = threading.Lock()

    def get(self, key):
        with self.lock:
            return self.data.get(key)

    def put(self, key, value):
        with self.lock:
            if self.quota_bytes is not None:
                used = sum(len(v) for k, v in self.data.items() if k != key)
                if used + len(value) > self.quota_bytes:
                    raise StorageQuotaExceeded(
                        f"Writing {len(value)} bytes to '{key}' exceeds quota of {self.quota_bytes} bytes")
            self.data[key] = bytes(value)

    def delete(self, *keys):
        with self.lock:
            for key in keys:
                self.data.pop(key, None)


class FileStore:
    """One file per key inside a data folder"""

    def __init__(self, folder=None, quota_bytes=None):
        if folder is None:
            folder = DATA_FOLDER
        self.folder = folder
        self.quota_bytes = quota_bytes
        self.lock = threading.Lock()

        # Ensure data directory exists
        if not os.path.exists(folder):
            os.makedirs(folder)

    def _path(self, key):
        return os.path.join(self.folder, f"{key}.json")

    def _used_bytes(self, exclude):
        total = 0
        for name in os.listdir(self.folder):
            path = os.path.join(self.folder, name)
            if name.endswith('.json') and path != exclude and os.path.isfile(path):
                total += os.path.getsize(path)
        return total

    def get(self, key):
        try:
            with open(self._path(key), 'rb') as f:
                return f.read()
        except FileNotFoundError:
            return None

    def put(self, key, value):
        path = self._path(key)
        tmp_path = f"{path}.tmp"
        with self.lock:
            if self.quota_bytes is not None and self._used_bytes(path) + len(value) > self.quota_bytes:
                raise StorageQuotaExceeded(
                    f"Writing {len(value)} bytes to '{key}' exceeds quota of {self.quota_bytes} bytes")
            try:
                with open(tmp_path, 'wb') as f:
                    f.write(value)
                os.replace(tmp_path, path)
            except OSError as e:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                if e.errno in QUOTA_ERRNOS:
                    raise StorageQuotaExceeded(str(e)) from e
                raise

    def delete(self, *keys):
        with self.lock:
            for key in keys:
                try:
                    os.remove(self._path(key))
                except FileNotFoundError:
                    pass


class KVSlot(Base):
    """Single stored slot"""
    __tablename__ = 'kv_slots'

    key = Column(String(255), primary_key=True)
    value = Column(LargeBinary, nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class SQLiteStore:
    """Slots kept as rows of a SQLite database"""

    def __init__(self, db_path=None, quota_bytes=None):
        if db_path is None:
            if not os.path.exists(DATA_FOLDER):
                os.makedirs(DATA_FOLDER)
            db_path = os.path.join(DATA_FOLDER, 'runetrack.db')
        self.quota_bytes = quota_bytes
        self.engine = create_engine(f'sqlite:///{db_path}', echo=False)
        self.Session = sessionmaker(bind=self.engine)
        Base.metadata.create_all(self.engine)

    @contextmanager
    def session(self):
        """Context manager for database sessions"""
        session = self.Session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def get(self, key):
        with self.session() as session:
            slot = session.get(KVSlot, key)
            return bytes(slot.value) if slot else None

    def put(self, key, value):
        try:
            with self.session() as session:
                if self.quota_bytes is not None:
                    used = session.execute(
                        select(func.coalesce(func.sum(func.length(KVSlot.value)), 0)).where(KVSlot.key != key)
                    ).scalar_one()
                    if used + len(value) > self.quota_bytes:
                        raise StorageQuotaExceeded(
                            f"Writing {len(value)} bytes to '{key}' exceeds quota of {self.quota_bytes} bytes")
                slot = session.get(KVSlot, key)
                if slot:
                    slot.value = value
                else:
                    session.add(KVSlot(key=key, value=value))
        except OperationalError as e:
            if 'full' in str(e).lower():
                raise StorageQuotaExceeded(str(e)) from e
            raise

    def delete(self, *keys):
        with self.session() as session:
            for key in keys:
                slot = session.get(KVSlot, key)
                if slot:
                    session.delete(slot)


def create_store(backend=None, quota_bytes=STORAGE_QUOTA_BYTES):
    """Build the configured storage backend"""
    backend = (backend or STORAGE_BACKEND).lower()
    if backend == 'memory':
        store = MemoryStore(quota_bytes=quota_bytes)
    elif backend == 'sqlite':
        store = SQLiteStore(quota_bytes=quota_bytes)
    elif backend == 'file':
        store = FileStore(quota_bytes=quota_bytes)
    else:
        raise ValueError(f"Unknown storage backend: {backend}")
    log_console(f"Using {backend} storage backend", "INFO")
    return store
