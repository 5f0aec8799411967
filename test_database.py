"""
Tests for the history store, the gains cache and the storage backends.
"""
import json
from datetime import datetime, timedelta, timezone

import pytest

from runetrack.database import GainsCache, HistoryStore
from runetrack.errors import PersistenceError, StorageFull, StorageQuotaExceeded
from runetrack.models import GainsRecord, SkillState, Snapshot
from runetrack.storage import FileStore, MemoryStore, SQLiteStore, create_store
from runetrack.utils import GAINS_CACHE_KEY, HISTORY_KEY

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def snap(total_xp, at=T0, seconds=0):
    return Snapshot(
        timestamp=at + timedelta(seconds=seconds),
        skills={0: SkillState(xp=total_xp, level=99, rank=5)},
        total_xp=total_xp,
        total_level=2000,
    )


class BrokenStore(MemoryStore):
    """Reads fine, every write fails with an I/O error"""

    def put(self, key, value):
        raise OSError('device not ready')

    def delete(self, *keys):
        raise OSError('device not ready')


# History store

def test_append_creates_history(store):
    history = HistoryStore(store).append('Zezima', snap(100))
    assert history.rsn == 'Zezima'
    assert len(history.snapshots) == 1
    stored = json.loads(store.get(HISTORY_KEY))
    assert list(stored) == ['zezima']
    assert stored['zezima']['snapshots'][0]['totalXp'] == 100


def test_subject_case_shares_history(store):
    histories = HistoryStore(store)
    histories.append('Zezima', snap(100))
    histories.append('zezima', snap(200, seconds=5))
    histories.append(' ZEZIMA ', snap(300, seconds=10))

    assert len(histories.get_one('zEzImA').snapshots) == 3
    assert list(histories.get_all()) == ['zezima']


def test_duplicate_within_window_is_suppressed(store):
    histories = HistoryStore(store)
    histories.append('Zezima', snap(100))
    history = histories.append('Zezima', snap(100, seconds=59))
    assert len(history.snapshots) == 1
    assert len(histories.get_one('Zezima').snapshots) == 1


def test_duplicate_after_window_is_kept(store):
    histories = HistoryStore(store)
    histories.append('Zezima', snap(100))
    assert len(histories.append('Zezima', snap(100, seconds=60)).snapshots) == 2


def test_changed_xp_within_window_is_kept(store):
    histories = HistoryStore(store)
    histories.append('Zezima', snap(100))
    assert len(histories.append('Zezima', snap(101, seconds=1)).snapshots) == 2


def test_history_is_capped_to_last_hundred(store):
    histories = HistoryStore(store)
    for i in range(101):
        histories.append('Zezima', snap(i, seconds=i * 120))

    stored = histories.get_one('Zezima')
    assert len(stored.snapshots) == 100
    assert stored.snapshots[0].total_xp == 1
    assert stored.snapshots[-1].total_xp == 100


def test_timestamps_stay_chronological(store):
    histories = HistoryStore(store)
    histories.append('Zezima', snap(100, seconds=600))
    history = histories.append('Zezima', snap(200, seconds=0))
    stamps = [s.timestamp for s in history.snapshots]
    assert stamps == sorted(stamps)


def test_quota_exhaustion_is_storage_full_and_keeps_other_players(store):
    histories = HistoryStore(store)
    histories.append('Zezima', snap(100))
    store.quota_bytes = len(store.get(HISTORY_KEY)) + 10

    with pytest.raises(StorageFull) as excinfo:
        histories.append('Woox', snap(500))

    assert excinfo.value.kind == 'storage_full'
    assert excinfo.value.message.startswith('STORAGE_FULL')
    assert histories.get_one('Woox') is None
    assert len(histories.get_one('Zezima').snapshots) == 1


def test_other_write_failures_are_persistence_errors():
    histories = HistoryStore(BrokenStore())
    with pytest.raises(PersistenceError) as excinfo:
        histories.append('Zezima', snap(100))
    assert not isinstance(excinfo.value, StorageFull)
    assert excinfo.value.kind == 'persistence_error'


def test_corrupt_history_reads_as_empty(store):
    store.put(HISTORY_KEY, b'{not json')
    histories = HistoryStore(store)
    assert histories.get_all() == {}
    assert histories.get_one('Zezima') is None
    assert len(histories.append('Zezima', snap(1)).snapshots) == 1


def test_clear_all_removes_history_and_cache(store):
    HistoryStore(store).append('Zezima', snap(100))
    GainsCache(store).put('Zezima', GainsRecord(is_available=True))

    assert HistoryStore(store).clear_all() is True
    assert store.get(HISTORY_KEY) is None
    assert store.get(GAINS_CACHE_KEY) is None


def test_clear_all_failure_raises():
    with pytest.raises(PersistenceError):
        HistoryStore(BrokenStore()).clear_all()


# Gains cache

def test_cache_round_trip_is_case_insensitive(store):
    cache = GainsCache(store)
    record = GainsRecord(week={0: 12340, -1: 50}, is_available=True)
    cache.put('Zezima', record, now=T0)

    entry = cache.get('ZEZIMA')
    assert entry.timestamp == T0
    assert entry.data.week == {0: 12340, -1: 50}
    assert entry.data.is_available


def test_cache_freshness():
    cache = GainsCache(MemoryStore())
    cache.put('Zezima', GainsRecord(), now=T0)
    entry = cache.get('zezima')
    assert entry.is_fresh(T0 + timedelta(seconds=299), 300)
    assert not entry.is_fresh(T0 + timedelta(seconds=300), 300)


def test_cache_keeps_soft_failure_records(store):
    cache = GainsCache(store)
    cache.put('Nobody', GainsRecord.unavailable('Player not tracked on CML', 'not_tracked'), now=T0)
    entry = cache.get('nobody')
    assert not entry.data.is_available
    assert entry.data.error_kind == 'not_tracked'


def test_cache_read_failures_are_absent(store):
    store.put(GAINS_CACHE_KEY, b'\xff\xfe garbage')
    assert GainsCache(store).get('Zezima') is None
    store.put(GAINS_CACHE_KEY, json.dumps({'zezima': {'data': 'nope'}}).encode())
    assert GainsCache(store).get('Zezima') is None


def test_cache_write_failure_does_not_raise():
    assert GainsCache(BrokenStore()).put('Zezima', GainsRecord()) is False


def test_cache_write_keeps_other_entries(store):
    cache = GainsCache(store)
    cache.put('Zezima', GainsRecord(is_available=True), now=T0)
    cache.put('Woox', GainsRecord(), now=T0)
    assert cache.get('zezima').data.is_available
    assert cache.get('woox') is not None


# Backends

def test_memory_store_quota():
    store = MemoryStore(quota_bytes=10)
    store.put('a', b'12345')
    with pytest.raises(StorageQuotaExceeded):
        store.put('b', b'123456')
    store.put('a', b'1234567890')
    assert store.get('a') == b'1234567890'
    assert store.get('b') is None


def test_file_store(tmp_path):
    store = FileStore(folder=str(tmp_path / 'data'))
    assert store.get('slot') is None
    store.put('slot', b'{"a": 1}')
    assert store.get('slot') == b'{"a": 1}'
    store.delete('slot', 'missing')
    assert store.get('slot') is None


def test_file_store_quota_keeps_previous_value(tmp_path):
    store = FileStore(folder=str(tmp_path), quota_bytes=20)
    store.put('slot', b'0123456789')
    with pytest.raises(StorageQuotaExceeded):
        store.put('other', b'0123456789012')
    assert store.get('slot') == b'0123456789'
    assert store.get('other') is None


def test_sqlite_store(tmp_path):
    store = SQLiteStore(db_path=str(tmp_path / 'kv.db'), quota_bytes=32)
    store.put('slot', b'hello')
    store.put('slot', b'hello again')
    assert store.get('slot') == b'hello again'
    with pytest.raises(StorageQuotaExceeded):
        store.put('other', b'x' * 30)
    assert store.get('other') is None
    store.delete('slot')
    assert store.get('slot') is None


def test_history_on_sqlite_backend(tmp_path):
    histories = HistoryStore(SQLiteStore(db_path=str(tmp_path / 'kv.db')))
    histories.append('Zezima', snap(100))
    assert len(histories.get_one('zezima').snapshots) == 1


def test_create_store_backends():
    assert isinstance(create_store('memory'), MemoryStore)
    with pytest.raises(ValueError):
        create_store('redis')
