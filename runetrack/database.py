"""
Local history store and gains cache.

Both keep a single JSON mapping per storage slot, keyed by the lowercased
character name, and always read/write the whole mapping.
"""
import json
from datetime import datetime

from pydantic import ValidationError

from .errors import PersistenceError, StorageFull, StorageQuotaExceeded
from .models import CacheEntry, GainsRecord, Snapshot, SubjectHistory
from .utils import (DEDUP_WINDOW_SECONDS, GAINS_CACHE_KEY, HISTORY_KEY, HISTORY_LIMIT,
                    clean_subject, log_console, normalize_subject, utcnow)


def _read_mapping(store, key):
    """Decode a stored mapping; missing or corrupt data reads as empty"""
    try:
        raw = store.get(key)
        if not raw:
            return {}
        data = json.loads(raw)
    except Exception as e:
        log_console(f"Failed to load '{key}' from storage: {e}", "ERROR")
        return {}
    if not isinstance(data, dict):
        log_console(f"Ignoring '{key}': stored value is not a mapping", "WARNING")
        return {}
    return data


def _encode(mapping):
    return json.dumps(mapping, ensure_ascii=False).encode('utf-8')


class HistoryStore:
    """Append-only snapshot history per character"""

    def __init__(self, store, limit=HISTORY_LIMIT, dedup_window_seconds=DEDUP_WINDOW_SECONDS,
                 key=HISTORY_KEY, cache_key=GAINS_CACHE_KEY):
        self.store = store
        self.limit = limit
        self.dedup_window_seconds = dedup_window_seconds
        self.key = key
        self.cache_key = cache_key

    def _read_raw(self):
        return _read_mapping(self.store, self.key)

    def _decode_history(self, name, value):
        try:
            return SubjectHistory.model_validate(value)
        except ValidationError as e:
            log_console(f"Dropping unreadable history for '{name}': {e.error_count()} errors", "WARNING")
            return None

    def get_all(self):
        """All stored histories keyed by lowercased name"""
        histories = {}
        for name, value in self._read_raw().items():
            history = self._decode_history(name, value)
            if history is not None:
                histories[name] = history
        return histories

    def get_one(self, subject):
        key = normalize_subject(subject)
        value = self._read_raw().get(key)
        if value is None:
            return None
        return self._decode_history(key, value)

    def _is_duplicate(self, last, snapshot):
        if last is None or last.total_xp != snapshot.total_xp:
            return False
        elapsed = (snapshot.timestamp - last.timestamp).total_seconds()
        return elapsed < self.dedup_window_seconds

    def append(self, subject, snapshot: Snapshot):
        """
        Add a snapshot to a character's history and persist the whole mapping.

        A snapshot repeating the previous total xp within the dedup window is
        dropped. Raises StorageFull when the backend is out of space and
        PersistenceError for any other write failure; the stored data is
        unchanged in both cases.
        """
        key = normalize_subject(subject)
        mapping = self._read_raw()

        history = None
        if key in mapping:
            history = self._decode_history(key, mapping[key])
        if history is None:
            history = SubjectHistory(rsn=clean_subject(subject), snapshots=[])

        last = history.latest
        if self._is_duplicate(last, snapshot):
            log_console(f"Skipping duplicate snapshot for '{key}' (total xp unchanged)", "INFO")
            return history

        if last is not None and snapshot.timestamp < last.timestamp:
            # keep the series chronological
            snapshot = snapshot.model_copy(update={'timestamp': last.timestamp})

        snapshots = history.snapshots + [snapshot]
        if len(snapshots) > self.limit:
            snapshots = snapshots[-self.limit:]
        history = SubjectHistory(rsn=history.rsn, snapshots=snapshots)

        mapping[key] = history.model_dump(mode='json', by_alias=True)
        self._write(mapping)
        log_console(f"Saved snapshot for '{key}' ({len(snapshots)} stored)", "INFO")
        return history

    def _write(self, mapping):
        try:
            self.store.put(self.key, _encode(mapping))
        except StorageQuotaExceeded as e:
            log_console(f"Storage full while saving history: {e}", "ERROR")
            raise StorageFull() from e
        except Exception as e:
            log_console(f"Error saving history: {e}", "ERROR")
            raise PersistenceError() from e

    def clear_all(self):
        """
        Delete all history and cached gains.

        Returns True: the caller should reload so no stale in-memory state survives.
        """
        try:
            self.store.delete(self.key, self.cache_key)
        except Exception as e:
            log_console(f"Error clearing local data: {e}", "ERROR")
            raise PersistenceError('Could not clear data on your device.') from e
        log_console("All local tracking data cleared", "WARNING")
        return True


class GainsCache:
    """Last gains record fetched per character, with its write time"""

    def __init__(self, store, key=GAINS_CACHE_KEY):
        self.store = store
        self.key = key

    def _read_raw(self):
        return _read_mapping(self.store, self.key)

    def get(self, subject):
        value = self._read_raw().get(normalize_subject(subject))
        if value is None:
            return None
        try:
            return CacheEntry.model_validate(value)
        except ValidationError:
            log_console(f"Ignoring unreadable cache entry for '{normalize_subject(subject)}'", "WARNING")
            return None

    def put(self, subject, record: GainsRecord, now: datetime = None):
        """Store a record; failures are logged and otherwise ignored"""
        entry = CacheEntry(data=record, timestamp=now or utcnow())
        mapping = self._read_raw()
        mapping[normalize_subject(subject)] = entry.model_dump(mode='json', by_alias=True)
        try:
            self.store.put(self.key, _encode(mapping))
        except Exception as e:
            log_console(f"CML cache persistence failed: {e}", "WARNING")
            return False
        return True
