"""
Scrape skill gains for a character from the Crystal Math Labs RS3 tracker.

CML is an unaffiliated site with no format guarantee, so the gains table is
found by scoring every table on how many distinct skills it mentions and the
window columns are found by header synonyms, falling back to the site's usual
column order.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup

from .errors import (GainsServiceBusy, GainsUnavailable, NotTracked, PlayerNeedsUpdate,
                     RelayRejected, RelaysExhausted, StructureUnrecognized)
from .models import GAIN_WINDOWS, GainsRecord
from .parsers import (POSITIONAL_OFFSETS, classify_window_header, clean_cell_text,
                      has_not_tracked_marker, parse_gain_number, sanitize_document, unwrap_document)
from .skills import resolve_skill
from .utils import MIN_DOCUMENT_LENGTH, RELAY_LIST, clean_subject, fetch_through_relays, log_console


CML_TRACK_URL = 'https://crystalmathlabs.com/tracker-rs3/track.php?player='

# Ids the tracker has used for its stats table
KNOWN_TABLE_IDS = ('stats_table', 'track_table', 'stats')

MIN_TABLE_ROWS = 5
MIN_SKILL_SCORE = 3
GAIN_SCALE = 10


@dataclass
class TableMatch:
    table: object
    skill_column: int
    score: int
    by_id: bool = False


@dataclass
class ParsedGainsTable:
    """Gains read from one tracker table, values already scaled to tenths"""
    skill_column: int
    columns: Dict[str, Optional[int]]
    header_windows: List[str]
    score: int
    gains: Dict[str, Dict[int, int]] = field(default_factory=dict)

    def to_record(self):
        return GainsRecord(
            day=self.gains.get('1d', {}),
            week=self.gains.get('7d', {}),
            month=self.gains.get('30d', {}),
            year=self.gains.get('365d', {}),
            is_available=True,
        )


def own_rows(table):
    """Rows belonging to this table, not to tables nested inside it"""
    return [tr for tr in table.find_all('tr') if tr.find_parent('table') is table]


def cell_span(cell):
    try:
        return max(1, int(cell.get('colspan', 1)))
    except (TypeError, ValueError):
        return 1


def row_cells(row):
    """Cells of a row with colspans expanded so indices line up across rows"""
    cells = []
    for cell in row.find_all(['td', 'th'], recursive=False):
        cells.extend([cell] * cell_span(cell))
    return cells


def cell_labels(cell):
    """Everything that can name a skill in a cell: its text and icon alt/title labels"""
    labels = [clean_cell_text(cell.get_text(' ', strip=True))]
    if cell.get('title'):
        labels.append(cell.get('title'))
    for img in cell.find_all('img'):
        for attr in ('alt', 'title'):
            if img.get(attr):
                labels.append(img.get(attr))
    for tagged in cell.find_all(attrs={'title': True}):
        if tagged.name != 'img':
            labels.append(tagged.get('title'))
    return labels


def cell_skill(cell):
    for label in cell_labels(cell):
        skill_id = resolve_skill(label)
        if skill_id is not None:
            return skill_id
    return None


def score_table(table):
    """Number of distinct skills mentioned anywhere in the table, and the column the first one was in"""
    seen = set()
    skill_column = None
    for row in own_rows(table):
        for idx, cell in enumerate(row_cells(row)):
            skill_id = cell_skill(cell)
            if skill_id is None:
                continue
            if skill_column is None:
                skill_column = idx
            seen.add(skill_id)
    return len(seen), skill_column


def select_gains_table(soup) -> Optional[TableMatch]:
    """Pick the table that holds the per-skill gains, or None"""
    for table_id in KNOWN_TABLE_IDS:
        table = soup.find('table', id=table_id)
        if table is None:
            continue
        score, skill_column = score_table(table)
        if skill_column is not None:
            return TableMatch(table=table, skill_column=skill_column, score=score, by_id=True)

    best = None
    for table in soup.find_all('table'):
        if len(own_rows(table)) < MIN_TABLE_ROWS:
            continue
        score, skill_column = score_table(table)
        if skill_column is None or score < MIN_SKILL_SCORE:
            continue
        if best is None or score > best.score:
            best = TableMatch(table=table, skill_column=skill_column, score=score)
    return best


def header_windows_in_row(row, skill_column):
    """Windows named by single-column cells of a row, with their column index"""
    found = {}
    idx = 0
    for cell in row.find_all(['td', 'th'], recursive=False):
        span = cell_span(cell)
        # a title cell spanning several columns names no particular column
        if span == 1 and idx != skill_column:
            window = classify_window_header(cell.get_text(' ', strip=True))
            if window and window not in found and idx not in found.values():
                found[window] = idx
        idx += span
    return found


def detect_window_columns(rows, skill_column):
    """
    Map each gains window to a column index.

    Uses the row naming the most distinct windows outside the skill column
    (the first one on a tie); windows without a header get the usual offset
    from the skill column unless that column already belongs to another window.
    """
    columns = {}
    for row in rows:
        found = header_windows_in_row(row, skill_column)
        if len(found) > len(columns):
            columns = found

    header_windows = [w for w in GAIN_WINDOWS if w in columns]
    claimed = set(columns.values())
    for window in GAIN_WINDOWS:
        if window in columns:
            continue
        position = skill_column + POSITIONAL_OFFSETS[window]
        columns[window] = None if position in claimed else position
    return columns, header_windows


def extract_gains(rows, skill_column, columns):
    gains = {window: {} for window in GAIN_WINDOWS}
    for row in rows:
        cells = row_cells(row)
        if skill_column >= len(cells):
            continue
        skill_id = cell_skill(cells[skill_column])
        if skill_id is None:
            continue
        for window in GAIN_WINDOWS:
            idx = columns.get(window)
            if idx is None or skill_id in gains[window]:
                continue
            text = cells[idx].get_text(' ', strip=True) if idx < len(cells) else ''
            gains[window][skill_id] = parse_gain_number(text) * GAIN_SCALE
    return gains


def parse_gains_document(document) -> Optional[ParsedGainsTable]:
    """Find and read the gains table of a tracker page; None if no table qualifies"""
    soup = BeautifulSoup(sanitize_document(document), 'html.parser')
    match = select_gains_table(soup)
    if match is None:
        return None

    rows = own_rows(match.table)
    columns, header_windows = detect_window_columns(rows, match.skill_column)
    gains = extract_gains(rows, match.skill_column, columns)
    return ParsedGainsTable(
        skill_column=match.skill_column,
        columns=columns,
        header_windows=header_windows,
        score=match.score,
        gains=gains,
    )


def has_update_link(document):
    """The tracker shows an 'Update' link/button for players it has not indexed yet"""
    soup = BeautifulSoup(sanitize_document(document), 'html.parser')
    for element in soup.find_all(['a', 'button']):
        if 'update' in element.get_text(' ', strip=True).lower():
            return True
    for element in soup.find_all('input'):
        if 'update' in str(element.get('value', '')).lower():
            return True
    return False


def read_gains_response(text):
    """
    Turn one relay response into a parsed table.

    Raises RelayRejected when the next relay should be tried, NotTracked or
    PlayerNeedsUpdate when the page settles the question.
    """
    document = unwrap_document(text)
    if not document or not document.strip():
        raise RelayRejected('Relay returned an empty document', reason='empty')
    if has_not_tracked_marker(document):
        raise NotTracked()
    if len(document.strip()) < MIN_DOCUMENT_LENGTH:
        raise RelayRejected(f'Relay returned only {len(document.strip())} characters', reason='empty')

    parsed = parse_gains_document(document)
    if parsed is None:
        if has_update_link(document):
            raise PlayerNeedsUpdate()
        raise RelayRejected('No gains table found in document', reason='structure')
    return parsed


async def fetch_gains(subject, client: httpx.AsyncClient = None, relays=None) -> GainsRecord:
    """
    Gains for a character over the 1d/7d/30d/365d windows.

    Never raises: failures come back as a record with is_available False and
    a short explanation in error.
    """
    name = clean_subject(subject)
    relays = list(relays or RELAY_LIST)
    target_url = f"{CML_TRACK_URL}{quote(name, safe='')}"

    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                parsed = await fetch_through_relays(own_client, target_url, relays,
                                                    read_gains_response, label=f"cml:{name}")
        else:
            parsed = await fetch_through_relays(client, target_url, relays,
                                                read_gains_response, label=f"cml:{name}")
    except GainsUnavailable as e:
        log_console(f"CML gains unavailable for '{name}': {e.message}", "WARNING")
        return GainsRecord.from_error(e)
    except RelaysExhausted as e:
        error = StructureUnrecognized() if e.any_rejected('structure') else GainsServiceBusy()
        log_console(f"CML gains unavailable for '{name}': {error.message}", "WARNING")
        return GainsRecord.from_error(error)
    except Exception as e:
        log_console(f"Unexpected error scraping CML for '{name}': {e}", "ERROR")
        return GainsRecord.unavailable(GainsUnavailable.default_message, GainsUnavailable.kind)

    log_console(f"CML gains for '{name}': {parsed.score} skills, headers for {parsed.header_windows or 'none'}",
                "INFO")
    return parsed.to_record()
