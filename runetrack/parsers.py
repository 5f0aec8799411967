"""
Parsing helpers for tracker pages and relay responses.
"""
import re
import json


# Header synonyms per gains window, checked in this order so "7 days" is a week, not a day
WINDOW_PATTERNS = [
    ('365d', re.compile(r'year|\b365\s*d|\b1\s*y\b|annual')),
    ('30d', re.compile(r'month|\b30\s*d')),
    ('7d', re.compile(r'week|\b7\s*d')),
    ('1d', re.compile(r'day|\b24\s*h|\b1\s*d\b|today')),
]

# Column offsets from the skill column when the tracker prints no usable header
POSITIONAL_OFFSETS = {'1d': 2, '7d': 3, '30d': 4, '365d': 5}

NOT_TRACKED_MARKERS = ('player not found', 'invalid name')

SCRIPT_STYLE_RE = re.compile(r'<(script|style)\b[^>]*>.*?</\1\s*>', re.IGNORECASE | re.DOTALL)
WHITESPACE_RE = re.compile(r'\s+')


def unwrap_document(text):
    """
    Return the page carried by a relay response.

    Some relays answer {"contents": "<html>..."}, others the raw page.
    """
    if not text:
        return ''
    stripped = text.lstrip()
    if stripped.startswith('{'):
        try:
            data = json.loads(stripped)
        except ValueError:
            return text
        if isinstance(data, dict) and 'contents' in data:
            contents = data.get('contents')
            return contents if isinstance(contents, str) else ''
    return text


def has_not_tracked_marker(document):
    lowered = document.lower()
    return any(marker in lowered for marker in NOT_TRACKED_MARKERS)


def sanitize_document(document):
    """Drop script/style blocks and collapse whitespace"""
    document = SCRIPT_STYLE_RE.sub(' ', document)
    return WHITESPACE_RE.sub(' ', document).strip()


def clean_cell_text(text):
    if text is None:
        return ''
    return WHITESPACE_RE.sub(' ', str(text)).strip()


def classify_window_header(text):
    """Return the gains window a header cell names ('1d', '7d', '30d', '365d') or None"""
    text = clean_cell_text(text).lower()
    if not text:
        return None
    for window, pattern in WINDOW_PATTERNS:
        if pattern.search(text):
            return window
    return None


def parse_gain_number(text):
    """Parse a gains cell like '+1,234' or '-56' to an integer, 0 if unreadable"""
    if text is None:
        return 0
    cleaned = re.sub(r'[^0-9\-]', '', str(text))
    try:
        return int(cleaned)
    except ValueError:
        return 0
