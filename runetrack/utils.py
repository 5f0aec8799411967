"""
Utility functions shared by the fetchers, stores and the API.
"""
import os
import queue
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

import httpx

from .errors import RelayRejected, RelaysExhausted


# Configuration
TIMEZONE_OFFSET_HOURS = int(os.environ.get('TIMEZONE_OFFSET_HOURS', '3'))
DATA_FOLDER = os.environ.get('DATA_FOLDER', 'var/data')
STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'file')
STORAGE_QUOTA_BYTES = int(os.environ.get('STORAGE_QUOTA_BYTES', str(5 * 1024 * 1024)))
PRIMARY_RELAY_ATTEMPTS = int(os.environ.get('PRIMARY_RELAY_ATTEMPTS', '2'))
GAINS_CACHE_TTL_SECONDS = int(os.environ.get('GAINS_CACHE_TTL_SECONDS', '300'))
HISTORY_LIMIT = int(os.environ.get('HISTORY_LIMIT', '100'))
DEDUP_WINDOW_SECONDS = int(os.environ.get('DEDUP_WINDOW_SECONDS', '60'))
MIN_DOCUMENT_LENGTH = int(os.environ.get('MIN_DOCUMENT_LENGTH', '200'))
CONSOLE_QUEUE_SIZE = int(os.environ.get('CONSOLE_QUEUE_SIZE', '1000'))

# Storage slots
HISTORY_KEY = 'rs3_tracker_v2_data'
GAINS_CACHE_KEY = 'rs3_tracker_v2_cml_cache'

# Relay list, tried in order. The first entry wraps payloads in {"contents": ...}
DEFAULT_RELAYS = [
    'https://api.allorigins.win/get?url=',
    'https://api.codetabs.com/v1/proxy?quest=',
    'https://corsproxy.io/?url=',
]
RELAY_LIST = [r.strip() for r in os.environ.get('RELAY_LIST', '').split(',') if r.strip()] or DEFAULT_RELAYS

# Console log queue for real-time display
console_queue = queue.Queue(maxsize=CONSOLE_QUEUE_SIZE)


def log_console(message, level="INFO"):
    """Log message to console and queue"""
    timestamp = (datetime.now() - timedelta(hours=TIMEZONE_OFFSET_HOURS)).strftime("%Y-%m-%d %H:%M:%S")
    log_entry = f"[{timestamp}] [{level}] {message}"
    print(log_entry)
    try:
        console_queue.put_nowait(log_entry)
    except queue.Full:
        pass


def utcnow():
    return datetime.now(timezone.utc)


def clean_subject(subject):
    """Trim and collapse whitespace in a character name, keeping its case"""
    if subject is None:
        return ''
    return ' '.join(str(subject).split())


def normalize_subject(subject):
    """Storage/cache key for a character name: 'Zezima ' and 'zezima' are the same key"""
    return clean_subject(subject).lower()


def build_relay_url(relay, target_url):
    """Relay prefixes all take the target URL fully encoded as their last query value"""
    return f"{relay}{quote(target_url, safe='')}"


async def fetch_through_relays(client: httpx.AsyncClient, target_url: str, relays: list, decode, label="fetch"):
    """
    Request target_url through each relay in order and return decode(body) for
    the first relay whose response is accepted.

    decode() raises RelayRejected to move on to the next relay. Any other
    exception it raises (e.g. "player does not exist") stops the chain and
    propagates to the caller. When every relay fails, RelaysExhausted carries
    the failure of each attempt in order.
    """
    failures = []

    for relay in relays:
        url = build_relay_url(relay, target_url)
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            log_console(f"[{label}] Relay {relay} failed: {e.__class__.__name__}: {e}", "WARNING")
            failures.append(e)
            continue

        if not response.is_success:
            log_console(f"[{label}] Relay {relay} returned status {response.status_code}", "WARNING")
            failures.append(RelayRejected(f"Relay returned status {response.status_code}", reason='status'))
            continue

        try:
            result = decode(response.text)
        except RelayRejected as e:
            log_console(f"[{label}] Relay {relay} response rejected: {e}", "WARNING")
            failures.append(e)
            continue

        log_console(f"[{label}] Got usable response via {relay}", "INFO")
        return result

    raise RelaysExhausted(label, failures)
