import inspect
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .day_boundary import format_logical_day, parse_logical_day, today

logger = logging.getLogger(__name__)

LAST_CHECKED_KEY = "lastCheckedDate"


class DayChangeDetector:
    """Watches for the logical day rolling over.

    Each ``check`` resolves today's logical day with the cached day start
    time and calls the registered callbacks with ``(previous, current)`` when
    it differs from the last day seen. The last day seen is persisted in
    ``store`` so a change since the previous run is reported on the first
    check.
    """

    def __init__(self, settings_cache, store=None, interval_seconds: float = 60, clock: Optional[Callable[[], datetime]] = None):
        self._cache = settings_cache
        self._store = store
        self._interval_seconds = interval_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_day: Optional[date] = None
        self._callbacks: List[Callable[[date, date], Any]] = []
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def current_day(self) -> Optional[date]:
        return self._last_day

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    def on_day_change(self, callback: Callable[[date, date], Any]) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def _load_saved_day(self) -> Optional[date]:
        if self._store is None:
            return None
        saved = self._store.get(LAST_CHECKED_KEY)
        if not saved:
            return None
        try:
            return parse_logical_day(saved)
        except ValueError:
            logger.warning("Ignoring malformed %s value %r", LAST_CHECKED_KEY, saved)
            return None

    async def check(self) -> bool:
        day_start_time = await self._cache.get_day_start_time()
        current = today(day_start_time, now=self._clock())

        previous = self._last_day if self._last_day is not None else self._load_saved_day()
        self._last_day = current
        if self._store is not None:
            self._store.set(LAST_CHECKED_KEY, format_logical_day(current))

        if previous is None or previous == current:
            return False

        logger.info("Logical day changed: %s -> %s", format_logical_day(previous), format_logical_day(current))
        for callback in list(self._callbacks):
            try:
                result = callback(previous, current)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Day change callback %r failed", callback)
        return True

    def start(self) -> None:
        if self._scheduler is not None:
            return
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self._scheduler.add_job(
            self.check,
            IntervalTrigger(seconds=self._interval_seconds, timezone=timezone.utc),
            id="day_change_check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self._scheduler.start()
        logger.info("Day change detector started (every %ss)", self._interval_seconds)

    def shutdown(self) -> None:
        if self._scheduler is None:
            return
        try:
            self._scheduler.shutdown(wait=False)
        finally:
            self._scheduler = None
