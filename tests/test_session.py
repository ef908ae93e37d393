import asyncio

from daystart.session import CachedQuery, SessionLoader
from daystart.settings_cache import DayStartSettingCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_cached_query_respects_stale_time():
    clock = FakeClock()
    calls = []

    async def fetcher():
        calls.append(clock.now)
        return len(calls)

    query = CachedQuery(fetcher, stale_time=300, clock=clock)

    async def scenario():
        first = await query.get()
        clock.now += 299
        second = await query.get()
        clock.now += 1
        third = await query.get()
        return first, second, third

    assert asyncio.run(scenario()) == (1, 1, 2)
    assert len(calls) == 2


def test_cached_query_shares_inflight_fetch():
    gate_calls = []

    async def fetcher():
        gate_calls.append(1)
        await asyncio.sleep(0.01)
        return "value"

    query = CachedQuery(fetcher, stale_time=60)

    async def scenario():
        return await asyncio.gather(query.get(), query.get(), query.get())

    assert asyncio.run(scenario()) == ["value", "value", "value"]
    assert len(gate_calls) == 1


def test_cached_query_does_not_cache_failures():
    attempts = []

    async def fetcher():
        attempts.append(1)
        if len(attempts) == 1:
            raise ConnectionError("offline")
        return "ok"

    query = CachedQuery(fetcher, stale_time=60)

    async def scenario():
        try:
            await query.get()
        except ConnectionError:
            pass
        return await query.get()

    assert asyncio.run(scenario()) == "ok"
    assert len(attempts) == 2


def test_session_loads_setting_and_identity(store, remote):
    remote.day_start_time = "07:30"
    remote.user = {"id": "u1", "email": "a@example.com"}
    loader = SessionLoader(DayStartSettingCache(store, remote), remote)

    state = asyncio.run(loader.load())

    assert state.day_start_time == "07:30"
    assert state.is_authenticated
    assert state.settings_error is None and state.auth_error is None


def test_auth_failure_does_not_block_setting(store, remote):
    remote.day_start_time = "06:00"
    remote.auth_error = ConnectionError("identity down")
    loader = SessionLoader(DayStartSettingCache(store, remote), remote)

    state = asyncio.run(loader.load())

    assert state.day_start_time == "06:00"
    assert state.user is None
    assert isinstance(state.auth_error, ConnectionError)


def test_setting_failure_does_not_block_identity(store, remote):
    class ExplodingCache:
        default = "05:00"

        def on_change(self, callback):
            return lambda: None

        async def get_day_start_time(self):
            raise RuntimeError("cache bug")

    remote.user = {"id": "u1"}
    loader = SessionLoader(ExplodingCache(), remote)

    state = asyncio.run(loader.load())

    assert state.day_start_time == "05:00"
    assert isinstance(state.settings_error, RuntimeError)
    assert state.user == {"id": "u1"}


def test_queries_have_independent_staleness(store, remote):
    clock = FakeClock()
    remote.user = {"id": "u1"}
    cache = DayStartSettingCache(store, remote)
    loader = SessionLoader(cache, remote, settings_stale_time=600, auth_stale_time=300, clock=clock)

    async def scenario():
        await loader.load()
        clock.now += 301
        await loader.load()
        assert remote.auth_calls == 2
        assert not loader.settings_query.is_stale
        clock.now += 300
        assert loader.settings_query.is_stale

    asyncio.run(scenario())


def test_local_write_invalidates_settings_query(store, remote):
    cache = DayStartSettingCache(store, remote)
    loader = SessionLoader(cache, remote)

    async def scenario():
        first = await loader.load()
        await cache.update_day_start_time("06:40")
        second = await loader.load()
        return first.day_start_time, second.day_start_time

    assert asyncio.run(scenario()) == ("05:00", "06:40")


def test_invalidate_during_fetch_keeps_query_stale():
    gate = None
    results = iter(["before", "after"])

    async def fetcher():
        value = next(results)
        if value == "before":
            await gate.wait()
        return value

    query = CachedQuery(fetcher, stale_time=600)

    async def scenario():
        nonlocal gate
        gate = asyncio.Event()
        inflight = asyncio.ensure_future(query.get())
        await asyncio.sleep(0)
        query.invalidate()
        gate.set()
        first = await inflight
        assert query.is_stale
        second = await query.get()
        return first, second

    assert asyncio.run(scenario()) == ("before", "after")
    assert not query.is_stale
