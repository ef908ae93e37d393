"""Logical-day resolution and the day-start-time settings cache."""

from .day_boundary import (
    DEFAULT_DAY_START_TIME,
    REFERENCE_UTC_OFFSET,
    format_logical_day,
    is_in_logical_day,
    is_valid_day_start_time,
    logical_day_bounds,
    normalize_day_start_time,
    parse_day_start_time,
    parse_logical_day,
    resolve_logical_day,
    today,
)
from .settings_cache import DayStartSettingCache, SettingsCacheEntry, SyncFailure
from .session import CachedQuery, SessionLoader, SessionState
from .storage import FallbackStore, JsonFileStore, MemoryStore

__all__ = [
    "DEFAULT_DAY_START_TIME",
    "REFERENCE_UTC_OFFSET",
    "CachedQuery",
    "DayStartSettingCache",
    "FallbackStore",
    "JsonFileStore",
    "MemoryStore",
    "SessionLoader",
    "SessionState",
    "SettingsCacheEntry",
    "SyncFailure",
    "format_logical_day",
    "is_in_logical_day",
    "is_valid_day_start_time",
    "logical_day_bounds",
    "normalize_day_start_time",
    "parse_day_start_time",
    "parse_logical_day",
    "resolve_logical_day",
    "today",
]
