"""
Error taxonomy for lookups, gains scraping and local persistence.

Every error carries a stable ``kind`` string (used by the API and stored on
soft-failure gains records) and a message that can be shown to the user.
"""
import httpx


class TrackerError(Exception):
    """Base class for all tracker errors"""
    kind = 'tracker_error'
    default_message = 'An error occurred'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


# Primary stats fetch - fatal to the lookup

class LookupFailed(TrackerError):
    kind = 'lookup_failed'


class InvalidSubject(LookupFailed):
    kind = 'invalid_subject'
    default_message = 'Enter a character name to track.'


class NotFound(LookupFailed):
    kind = 'not_found'
    default_message = 'User not found on RuneMetrics.'


class PrivateProfile(LookupFailed):
    kind = 'private_profile'
    default_message = 'User profile is PRIVATE. Enable public sharing in RS3 settings.'


class ProxyError(LookupFailed):
    kind = 'proxy_error'
    default_message = 'The relay service returned an error.'


class ConnectionFailed(ProxyError):
    kind = 'connection_failed'
    default_message = ('Connection failed. This is usually caused by relay service outages '
                       'or CORS blocking. Please try again in a few minutes.')


class RelayExhaustedError(ProxyError):
    kind = 'relays_exhausted'
    default_message = 'All relay services failed to return a usable profile. Please try again later.'


class ParseError(LookupFailed):
    kind = 'parse_error'
    default_message = 'Failed to parse profile data.'


# Secondary gains scrape - always soft

class GainsUnavailable(TrackerError):
    kind = 'gains_unavailable'
    default_message = 'CML unreachable'


class NotTracked(GainsUnavailable):
    kind = 'not_tracked'
    default_message = 'Player not tracked on CML'


class PlayerNeedsUpdate(GainsUnavailable):
    kind = 'needs_update'
    default_message = 'Player exists but needs "Update" on CML website'


class StructureUnrecognized(GainsUnavailable):
    kind = 'structure_unrecognized'
    default_message = 'CML Table structure not recognized'


class GainsServiceBusy(GainsUnavailable):
    kind = 'service_busy'
    default_message = 'CML tracking service busy'


# Local persistence - fatal to the save step only

class StorageError(TrackerError):
    kind = 'storage_error'


class StorageFull(StorageError):
    kind = 'storage_full'
    default_message = ('STORAGE_FULL: Your local storage is full. Please clear old history '
                       'or track fewer players to save new snapshots.')


class PersistenceError(StorageError):
    kind = 'persistence_error'
    default_message = 'Could not save data to your device.'


class StorageQuotaExceeded(Exception):
    """Raised by key-value backends when a write would exceed the available space"""


# Relay plumbing

class RelayRejected(Exception):
    """A relay answered but the response is unusable; the next relay should be tried"""

    def __init__(self, message, reason='rejected'):
        self.reason = reason
        super().__init__(message)


class RelaysExhausted(Exception):
    """Every relay in the chain failed"""

    def __init__(self, label, failures):
        self.label = label
        self.failures = list(failures)
        super().__init__(f"{label}: all {len(self.failures)} relay attempts failed")

    @property
    def last_failure(self):
        return self.failures[-1] if self.failures else None

    def all_transport_errors(self):
        """True when no relay answered at all"""
        return bool(self.failures) and all(isinstance(f, httpx.HTTPError) for f in self.failures)

    def any_rejected(self, reason):
        return any(isinstance(f, RelayRejected) and f.reason == reason for f in self.failures)
