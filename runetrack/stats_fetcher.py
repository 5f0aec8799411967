"""
Fetch a character's current stats from RuneMetrics through CORS relays.
"""
import json
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from .errors import (ConnectionFailed, InvalidSubject, NotFound, ParseError, PrivateProfile,
                     ProxyError, RelayExhaustedError, RelayRejected, RelaysExhausted)
from .models import Profile
from .utils import PRIMARY_RELAY_ATTEMPTS, RELAY_LIST, clean_subject, fetch_through_relays, log_console


RUNEMETRICS_PROFILE_URL = 'https://apps.runescape.com/runemetrics/profile/profile?activities=0&user='

PROFILE_ERRORS = {
    'PROFILE_PRIVATE': PrivateProfile,
    'NO_PROFILE': NotFound,
}


def unwrap_payload(text):
    """
    Decode a relay response to the RuneMetrics profile dict.

    One relay nests the payload under "contents" (as a JSON string), the
    other returns it as-is.
    """
    try:
        data = json.loads(text)
    except ValueError:
        raise RelayRejected('Relay response is not JSON', reason='parse')

    if isinstance(data, dict) and 'contents' in data:
        content = data['contents']
        if not content:
            raise RelayRejected('Relay returned empty content', reason='empty')
        if isinstance(content, str):
            try:
                content = json.loads(content)
            except ValueError:
                raise RelayRejected('Failed to parse profile data', reason='parse')
        data = content

    if not isinstance(data, dict):
        raise RelayRejected('Unexpected profile payload', reason='parse')
    return data


def read_profile_response(text):
    data = unwrap_payload(text)

    marker = data.get('error')
    if marker:
        error_class = PROFILE_ERRORS.get(marker)
        if error_class is not None:
            raise error_class()
        raise ProxyError(f"RS API Error: {marker}")

    try:
        return Profile.model_validate(data)
    except ValidationError as e:
        raise RelayRejected(f"Failed to parse profile data: {e.error_count()} invalid fields", reason='parse')


async def fetch_profile(subject, client: httpx.AsyncClient = None, relays=None) -> Profile:
    """
    Current stats for a character.

    Raises NotFound, PrivateProfile, ParseError or a ProxyError
    (ConnectionFailed when no relay could be reached at all).
    """
    name = clean_subject(subject)
    if not name:
        raise InvalidSubject()

    relays = list(relays or RELAY_LIST)[:PRIMARY_RELAY_ATTEMPTS]
    target_url = f"{RUNEMETRICS_PROFILE_URL}{quote(name, safe='')}"

    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                profile = await fetch_through_relays(own_client, target_url, relays,
                                                     read_profile_response, label=f"runemetrics:{name}")
        else:
            profile = await fetch_through_relays(client, target_url, relays,
                                                 read_profile_response, label=f"runemetrics:{name}")
    except RelaysExhausted as e:
        last = e.last_failure
        if e.all_transport_errors():
            log_console(f"Could not reach any relay for '{name}'", "ERROR")
            raise ConnectionFailed() from last
        if isinstance(last, RelayRejected) and last.reason == 'parse':
            log_console(f"Profile for '{name}' could not be decoded: {last}", "ERROR")
            raise ParseError() from last
        log_console(f"All relays failed for '{name}': {last}", "ERROR")
        raise RelayExhaustedError() from last

    log_console(f"Fetched profile for '{profile.name}' (total xp {profile.total_xp:,})", "INFO")
    return profile
