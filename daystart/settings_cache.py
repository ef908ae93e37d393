"""Day-start-time setting cache.

Three tiers back the setting: the local persistent store, the remote
settings store, and a hardcoded default. Once the local store holds a value
it is authoritative for the session; the remote store is consulted only
when the local store is empty, and writes go local-first with best-effort
background propagation.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Set

from .day_boundary import DEFAULT_DAY_START_TIME, is_valid_day_start_time, normalize_day_start_time

logger = logging.getLogger(__name__)

STORAGE_KEY = "dayStartTime"

SOURCE_LOCAL = "local"
SOURCE_REMOTE = "remote"
SOURCE_DEFAULT = "default"

SYNC_SYNCED = "synced"
SYNC_PENDING = "pending"
SYNC_ERROR = "error"


@dataclass(frozen=True)
class SettingsCacheEntry:
    value: str
    source: str
    fetched_at: datetime


@dataclass(frozen=True)
class SyncFailure:
    operation: str  # "fetch" or "push"
    value: Optional[str]
    error: BaseException


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DayStartSettingCache:
    """Owns the day start time for one client session.

    ``store`` needs ``get/set/remove``; ``remote`` needs the coroutines
    ``fetch_day_start_time()`` and ``push_day_start_time(value)``.
    """

    def __init__(self, store, remote, *, key: str = STORAGE_KEY, default: str = DEFAULT_DAY_START_TIME):
        self._store = store
        self._remote = remote
        self._key = key
        self._default = normalize_day_start_time(default)

        # Bumped on every local write or invalidation. A remote fetch that
        # started under an older generation must not touch the local store.
        self._generation = 0
        self._write_seq = 0
        self._sync_status = SYNC_SYNCED
        self._push_lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()
        self._change_listeners: List[Callable[[str], Any]] = []
        self._failure_listeners: List[Callable[[SyncFailure], Any]] = []

    @property
    def default(self) -> str:
        return self._default

    @property
    def sync_status(self) -> str:
        return self._sync_status

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    # ---- listeners ----

    def on_change(self, callback: Callable[[str], Any]) -> Callable[[], None]:
        self._change_listeners.append(callback)
        return lambda: self._unsubscribe(self._change_listeners, callback)

    def on_failure(self, callback: Callable[[SyncFailure], Any]) -> Callable[[], None]:
        self._failure_listeners.append(callback)
        return lambda: self._unsubscribe(self._failure_listeners, callback)

    @staticmethod
    def _unsubscribe(listeners: list, callback) -> None:
        if callback in listeners:
            listeners.remove(callback)

    def _notify(self, listeners: list, payload) -> None:
        for callback in list(listeners):
            try:
                callback(payload)
            except Exception:
                logger.exception("Day start time listener %r failed", callback)

    # ---- reads ----

    def _read_local(self) -> Optional[str]:
        try:
            value = self._store.get(self._key)
        except OSError as e:
            logger.warning("Local cache read failed (%s). Treating it as empty.", str(e))
            return None
        if value is None:
            return None
        if not is_valid_day_start_time(value):
            logger.warning("Discarding invalid cached day start time %r", value)
            try:
                self._store.remove(self._key)
            except OSError as e:
                logger.warning("Failed to remove invalid cached day start time (%s)", str(e))
            return None
        return normalize_day_start_time(value)

    async def resolve(self) -> SettingsCacheEntry:
        local = self._read_local()
        if local is not None:
            logger.debug("Day start time %s served from local cache", local)
            return SettingsCacheEntry(local, SOURCE_LOCAL, _now())

        generation = self._generation
        try:
            fetched = await self._remote.fetch_day_start_time()
        except asyncio.CancelledError:
            logger.warning("Fetch of day start time was abandoned")
            raise
        except Exception as e:
            logger.warning("Failed to fetch day start time (%s). Using default %s.", str(e), self._default)
            self._notify(self._failure_listeners, SyncFailure("fetch", None, e))
            return SettingsCacheEntry(self._default, SOURCE_DEFAULT, _now())

        if fetched is None or not is_valid_day_start_time(fetched):
            if fetched is not None:
                logger.warning("Remote returned invalid day start time %r. Using default.", fetched)
            return SettingsCacheEntry(self._default, SOURCE_DEFAULT, _now())

        fetched = normalize_day_start_time(fetched)
        if generation != self._generation:
            # A local write or invalidation landed while the fetch was in flight.
            local = self._read_local()
            if local is not None:
                logger.debug("Ignoring remote day start time %s; local value %s is newer", fetched, local)
                return SettingsCacheEntry(local, SOURCE_LOCAL, _now())
            return SettingsCacheEntry(fetched, SOURCE_REMOTE, _now())

        try:
            self._store.set(self._key, fetched)
        except OSError as e:
            logger.warning("Failed to cache day start time %s locally (%s)", fetched, str(e))
        return SettingsCacheEntry(fetched, SOURCE_REMOTE, _now())

    async def get_day_start_time(self) -> str:
        entry = await self.resolve()
        return entry.value

    # ---- writes ----

    def update_day_start_time(self, value: str) -> "asyncio.Task[None]":
        """Write ``value`` locally and propagate it to the remote store in the background.

        Returns the propagation task. Must be called with a running event loop.
        Raises ValueError for a malformed value; nothing is written in that case.
        """
        if not is_valid_day_start_time(value):
            raise ValueError(f"Invalid day start time: {value!r}. Use HH:MM")
        value = normalize_day_start_time(value)
        loop = asyncio.get_running_loop()

        self._store.set(self._key, value)
        self._generation += 1
        self._write_seq += 1
        self._sync_status = SYNC_PENDING
        self._notify(self._change_listeners, value)

        task = loop.create_task(self._propagate(value, self._write_seq))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _propagate(self, value: str, write_seq: int) -> None:
        try:
            async with self._push_lock:
                if write_seq != self._write_seq:
                    logger.debug("Skipping push of superseded day start time %s", value)
                    return
                await self._remote.push_day_start_time(value)
        except asyncio.CancelledError:
            logger.warning("Propagation of day start time %s was abandoned", value)
            raise
        except Exception as e:
            logger.warning("Failed to propagate day start time %s (%s). Keeping local value.", value, str(e))
            if write_seq == self._write_seq:
                self._sync_status = SYNC_ERROR
            self._notify(self._failure_listeners, SyncFailure("push", value, e))
            return

        if write_seq == self._write_seq:
            self._sync_status = SYNC_SYNCED

    def invalidate(self) -> None:
        """Drop the local entry so the next read consults the remote store."""
        self._store.remove(self._key)
        self._generation += 1
        logger.info("Local day start time cache invalidated")

    async def wait_for_pending(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


def build_settings_cache(remote=None, cache_path=None) -> DayStartSettingCache:
    """Cache wired to the on-disk local store and the configured settings API."""
    from . import config
    from .remote import SettingsApiClient
    from .storage import FallbackStore, JsonFileStore

    store = FallbackStore(JsonFileStore(cache_path or config.cache_file()))
    return DayStartSettingCache(store, remote or SettingsApiClient())
