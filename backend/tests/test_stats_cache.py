import fnmatch

import redis

from conftest import make_report
from gombesafe.core.config import Settings
from gombesafe.services.aggregation.engine import WindowStats
from gombesafe.services.aggregation.stats_cache import StatsCache
from gombesafe.services.store.incident_store import IncidentStore


class FakeRedis:
    """The subset of the redis client the cache uses."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    def scan_iter(self, match=None):
        return [k for k in list(self.data) if match is None or fnmatch.fnmatch(k, match)]

    def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)


class BrokenRedis(FakeRedis):
    def get(self, key):
        raise redis.ConnectionError("redis down")

    def setex(self, key, ttl, value):
        raise redis.ConnectionError("redis down")


def test_disabled_by_default():
    cache = StatsCache(Settings(stats_cache_enabled=False))
    assert not cache.is_enabled()
    assert cache.get(24, 0, 0) is None


def test_round_trip_and_ttl():
    fake = FakeRedis()
    cache = StatsCache(Settings(stats_cache_ttl_seconds=30), redis_client=fake)
    stats = WindowStats(hours=24, total=2, active=2, by_type={"theft": 2})

    cache.set(stats, generation=3, aged_out=100)

    assert cache.get(24, 3, 100) == stats
    assert cache.get(24, 4, 100) is None
    assert list(fake.ttls.values()) == [30]


def test_invalidate_drops_entries():
    fake = FakeRedis()
    cache = StatsCache(Settings(), redis_client=fake)
    cache.set(WindowStats(hours=1), generation=1, aged_out=1)

    cache.invalidate()

    assert fake.data == {}


def test_errors_degrade_to_miss():
    cache = StatsCache(Settings(), redis_client=BrokenRedis())
    cache.set(WindowStats(hours=1), generation=1, aged_out=1)
    assert cache.get(1, 1, 1) is None


def test_store_serves_fresh_stats_after_writes(settings, clock):
    fake = FakeRedis()
    store = IncidentStore(settings, clock=clock, stats_cache=StatsCache(settings, redis_client=fake))

    assert store.stats_for_window(24).total == 0
    assert len(fake.data) == 1

    store.submit(make_report(), "key-1")

    assert store.stats_for_window(24).total == 1
    assert len(fake.data) == 2


def test_cached_window_drops_aged_out_incidents(settings, clock):
    fake = FakeRedis()
    store = IncidentStore(settings, clock=clock, stats_cache=StatsCache(settings, redis_client=fake))
    store.submit(make_report(), "key-1")

    clock.advance(minutes=59)
    assert store.stats_for_window(1).total == 1
    assert store.stats_for_window(1).total == 1
    assert len(fake.data) == 1

    clock.advance(minutes=2)
    stats = store.stats_for_window(1)

    assert stats.total == 0
    assert stats.total == len(store.recent_incidents(1))
    assert len(fake.data) == 2
