"""Session bootstrap: day start time and auth identity, fetched side by side."""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from . import config
from .day_boundary import DEFAULT_DAY_START_TIME

logger = logging.getLogger(__name__)


class CachedQuery:
    """In-memory query result with a staleness window.

    A fresh result is returned without calling ``fetcher``. Concurrent
    callers of a stale query share one in-flight fetch. Failures are not
    cached, so the next call retries.
    """

    def __init__(self, fetcher: Callable[[], Awaitable[Any]], stale_time: float, clock: Callable[[], float] = time.monotonic):
        self._fetcher = fetcher
        self._stale_time = stale_time
        self._clock = clock
        self._value: Any = None
        self._fetched_at: Optional[float] = None
        self._inflight: Optional[asyncio.Future] = None
        # Bumped by invalidate(); a fetch started under an older generation
        # may answer its own callers but must not refresh the cache.
        self._generation = 0

    @property
    def is_stale(self) -> bool:
        return self._fetched_at is None or self._clock() - self._fetched_at >= self._stale_time

    @property
    def value(self) -> Any:
        return self._value

    def invalidate(self) -> None:
        self._generation += 1
        self._fetched_at = None
        self._inflight = None

    async def _fetch(self, generation: int) -> Any:
        try:
            value = await self._fetcher()
            if generation == self._generation:
                self._value = value
                self._fetched_at = self._clock()
            return value
        finally:
            if generation == self._generation:
                self._inflight = None

    async def get(self) -> Any:
        if not self.is_stale:
            return self._value
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._fetch(self._generation))
        # A caller giving up must not cancel the fetch other callers share.
        return await asyncio.shield(self._inflight)


@dataclass
class SessionState:
    day_start_time: str
    user: Optional[Dict[str, Any]] = None
    settings_error: Optional[BaseException] = None
    auth_error: Optional[BaseException] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class SessionLoader:
    def __init__(
        self,
        settings_cache,
        identity,
        settings_stale_time: float = config.SETTINGS_STALE_SECONDS,
        auth_stale_time: float = config.AUTH_STALE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._cache = settings_cache
        self.settings_query = CachedQuery(settings_cache.get_day_start_time, settings_stale_time, clock)
        self.auth_query = CachedQuery(identity.fetch_current_user, auth_stale_time, clock)
        # A local write supersedes whatever the query cached.
        settings_cache.on_change(lambda _value: self.settings_query.invalidate())

    async def load(self) -> SessionState:
        settings_result, auth_result = await asyncio.gather(
            self.settings_query.get(),
            self.auth_query.get(),
            return_exceptions=True,
        )

        state = SessionState(day_start_time=getattr(self._cache, "default", DEFAULT_DAY_START_TIME))
        if isinstance(settings_result, BaseException):
            logger.warning("Loading day start time failed (%s). Using default.", str(settings_result))
            state.settings_error = settings_result
        else:
            state.day_start_time = settings_result

        if isinstance(auth_result, BaseException):
            logger.warning("Loading auth identity failed (%s).", str(auth_result))
            state.auth_error = auth_result
        else:
            state.user = auth_result
        return state
