"""
Lookup pipeline: primary stats, gains (cached or scraped), history snapshot.
"""
from enum import Enum

import httpx

from .database import GainsCache, HistoryStore
from .errors import GainsUnavailable, LookupFailed, StorageError
from .models import GainsRecord, LookupResult, Snapshot
from .scraper import fetch_gains
from .stats_fetcher import fetch_profile
from .storage import create_store
from .utils import GAINS_CACHE_TTL_SECONDS, clean_subject, log_console, utcnow


class LookupState(str, Enum):
    IDLE = 'idle'
    FETCHING_PRIMARY = 'fetching_primary'
    READING_GAINS = 'reading_gains'
    FETCHING_GAINS = 'fetching_gains'
    PERSISTING = 'persisting'
    DONE = 'done'
    FAILED = 'failed'


class Tracker:
    """
    Runs lookups for characters against RuneMetrics and CML and keeps the
    local history. Each lookup is independent; concurrent lookups are not
    serialized against each other.

    ``state`` is shared by all lookups on the instance and shows the most
    recent transition of whichever lookup moved last, not the stage of any
    particular lookup.
    """

    def __init__(self, store=None, client: httpx.AsyncClient = None, relays=None,
                 cache_ttl_seconds=GAINS_CACHE_TTL_SECONDS, clock=utcnow):
        self.store = store if store is not None else create_store()
        self.history = HistoryStore(self.store)
        self.cache = GainsCache(self.store)
        self.client = client
        self.relays = relays
        self.cache_ttl_seconds = cache_ttl_seconds
        self.clock = clock
        self.state = LookupState.IDLE

    def _set_state(self, subject, state):
        self.state = state
        log_console(f"[lookup:{subject}] {state.value}", "DEBUG")

    async def _gains(self, subject):
        """Cached gains if still fresh, otherwise a new scrape written back to the cache"""
        self._set_state(subject, LookupState.READING_GAINS)
        now = self.clock()
        entry = self.cache.get(subject)
        if entry is not None and entry.is_fresh(now, self.cache_ttl_seconds):
            log_console(f"Using cached CML gains for '{subject}'", "INFO")
            return entry.data, True

        self._set_state(subject, LookupState.FETCHING_GAINS)
        record = await fetch_gains(subject, client=self.client, relays=self.relays)
        # soft failures are cached too so a bad name is not re-scraped within the TTL
        self.cache.put(subject, record, now=self.clock())
        return record, False

    async def lookup(self, subject) -> LookupResult:
        """
        Fetch, merge and record one character.

        Primary fetch errors propagate unchanged. Gains problems never fail
        the lookup, and a failed save is reported on the result.
        """
        name = clean_subject(subject)
        self._set_state(name, LookupState.FETCHING_PRIMARY)
        try:
            profile = await fetch_profile(name, client=self.client, relays=self.relays)
        except LookupFailed as e:
            self._set_state(name, LookupState.FAILED)
            log_console(f"Lookup failed for '{name}': {e.message}", "ERROR")
            raise

        try:
            gains, from_cache = await self._gains(name)
        except Exception as e:
            log_console(f"CML tracking failed, but profile loaded: {e}", "WARNING")
            gains, from_cache = GainsRecord.unavailable(GainsUnavailable.default_message,
                                                        GainsUnavailable.kind), False

        self._set_state(name, LookupState.PERSISTING)
        snapshot = Snapshot.from_profile(profile, timestamp=self.clock())
        result = LookupResult(subject=name, profile=profile, gains=gains, from_cache=from_cache)
        try:
            result.history = self.history.append(name, snapshot)
        except StorageError as e:
            result.save_error = e.message
            result.save_error_kind = e.kind
            result.history = self.history.get_one(name)

        self._set_state(name, LookupState.DONE)
        return result

    def get_history(self, subject):
        return self.history.get_one(subject)

    def get_all_histories(self):
        return self.history.get_all()

    def clear_all(self):
        """Wipe history and cached gains; True means the caller should reload"""
        return self.history.clear_all()
