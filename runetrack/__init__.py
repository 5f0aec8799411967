"""
RuneTrack - RS3 skill progression tracker
RuneMetrics stats, CML gains and local snapshot history.
"""

__version__ = "1.0.0"
__author__ = "RuneTrack Team"

from .experience import xp_for_level, skill_progress
from .stats_fetcher import fetch_profile
from .scraper import fetch_gains, parse_gains_document
from .database import HistoryStore, GainsCache
from .storage import MemoryStore, FileStore, SQLiteStore, create_store
from .tracker import Tracker, LookupState
from .analytics import (
    top_gains,
    gain_for_skill,
    gains_frame,
    history_frame,
    history_series,
    history_summary,
    profile_progress,
)

__all__ = [
    'xp_for_level',
    'skill_progress',
    'fetch_profile',
    'fetch_gains',
    'parse_gains_document',
    'HistoryStore',
    'GainsCache',
    'MemoryStore',
    'FileStore',
    'SQLiteStore',
    'create_store',
    'Tracker',
    'LookupState',
    'top_gains',
    'gain_for_skill',
    'gains_frame',
    'history_frame',
    'history_series',
    'history_summary',
    'profile_progress',
]
