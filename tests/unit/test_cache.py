"""Unit tests for per-kind cache state and resolver statistics."""

from referencer.core.cache import KindCache, ResolverStats
from referencer.core.kinds import EntityKind


class TestKindCache:
    """State transitions of one kind's cache."""

    def test_starts_unloaded(self):
        cache = KindCache(EntityKind.HOST)

        assert not cache.loaded
        assert cache.rows() == {}

    def test_register_reports_overwrite(self):
        cache = KindCache(EntityKind.HOST)

        assert cache.register({"Host A": {}}) is False
        assert cache.register({"Host B": {}}) is True
        assert cache.pending == {"Host B": {}}

    def test_populate_consumes_pending(self):
        cache = KindCache(EntityKind.HOST)
        cache.register({"Host A": {}})

        cache.populate({"10084": {"host": "Host A"}})

        assert cache.loaded
        assert cache.pending == {}
        assert cache.consumed == {"Host A": {}}

    def test_invalidate_restores_working_set(self):
        cache = KindCache(EntityKind.HOST)
        cache.register({"Host A": {}})
        cache.populate({})

        cache.invalidate()

        assert not cache.loaded
        assert cache.pending == {"Host A": {}}

    def test_invalidate_keeps_newer_registration(self):
        cache = KindCache(EntityKind.HOST)
        cache.register({"Host A": {}})
        cache.populate({})
        cache.register({"Host B": {}})

        cache.invalidate()

        assert cache.pending == {"Host B": {}}

    def test_record_before_and_after_load(self):
        cache = KindCache(EntityKind.IMAGE)
        cache.record("6", {"name": "Rack_(48)"})
        assert cache.rows() == {}

        cache.populate({"5": {"name": "Server_(96)"}})
        cache.record("7", {"name": "Switch_(48)"})

        assert set(cache.rows()) == {"5", "6", "7"}
        assert cache.recorded == {}


class TestResolverStats:
    def test_hit_rate(self):
        stats = ResolverStats()
        assert stats.hit_rate() == 0.0

        stats.lookup(EntityKind.HOST, True)
        stats.lookup(EntityKind.HOST, True)
        stats.lookup(EntityKind.ITEM, False)
        stats.lookup(EntityKind.ITEM, True)

        assert stats.total_lookups == 4
        assert stats.hit_rate() == 0.75

    def test_as_dict(self):
        stats = ResolverStats()
        stats.batch(EntityKind.TRIGGER)
        stats.query(EntityKind.TRIGGER)
        stats.query(EntityKind.TRIGGER)

        assert stats.as_dict() == {
            "batches": {"trigger": 1},
            "queries": {"trigger": 2},
            "hits": {},
            "misses": {},
        }
