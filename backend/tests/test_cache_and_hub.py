"""Tests for the in-process versioned cache and topic hub."""

from league.services.cache import VersionedCache
from league.services.realtime import PUBLIC_LEAGUE_RESULTS_TOPIC, TopicHub, season_topic


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestVersionedCache:
    def test_set_and_get(self):
        cache = VersionedCache()
        cache.set("k", {"v": 1})
        assert cache.get("k") == {"v": 1}
        assert cache.get("missing") is None

    def test_invalidate_drops_value_and_bumps_version(self):
        cache = VersionedCache()
        cache.set("k", 1)
        assert cache.invalidate("k") == 1
        assert cache.get("k") is None
        assert cache.invalidate("k") == 2
        cache.set("k", 3)
        assert cache.get("k") == 3

    def test_ttl_expiry(self):
        clock = _Clock()
        cache = VersionedCache(default_ttl=10, clock=clock)
        cache.set("short", "a", ttl=5)
        cache.set("default", "b")
        clock.now += 6
        assert cache.get("short") is None
        assert cache.get("default") == "b"
        clock.now += 5
        assert cache.get("default") is None

    def test_get_or_load_only_loads_on_miss(self):
        cache = VersionedCache()
        loads = []

        def loader():
            loads.append(1)
            return "fresh"

        assert cache.get_or_load("k", loader) == "fresh"
        assert cache.get_or_load("k", loader) == "fresh"
        assert len(loads) == 1
        cache.invalidate("k")
        cache.get_or_load("k", loader)
        assert len(loads) == 2

    def test_clear(self):
        cache = VersionedCache()
        cache.set("k", 1)
        cache.invalidate("other")
        cache.clear()
        assert cache.get("k") is None
        assert cache.version("other") == 0


class TestTopicHub:
    def test_publish_reaches_subscribers_of_the_topic_only(self):
        hub = TopicHub()
        got = []
        hub.subscribe("a", lambda topic, payload: got.append((topic, payload)))
        hub.subscribe("b", lambda topic, payload: got.append((topic, payload)))
        assert hub.publish("a", 1) == 1
        assert got == [("a", 1)]

    def test_failing_subscriber_is_isolated(self):
        hub = TopicHub()
        got = []

        def broken(topic, payload):
            raise RuntimeError("socket closed")

        hub.subscribe("t", broken)
        hub.subscribe("t", lambda topic, payload: got.append(payload))
        assert hub.publish("t", "x") == 1
        assert got == ["x"]

    def test_unsubscribe(self):
        hub = TopicHub()
        unsubscribe = hub.subscribe("t", lambda topic, payload: None)
        assert hub.subscriber_count("t") == 1
        unsubscribe()
        unsubscribe()
        assert hub.subscriber_count("t") == 0
        assert hub.publish("t", None) == 0

    def test_season_topic(self):
        assert season_topic(PUBLIC_LEAGUE_RESULTS_TOPIC, 4) == "public:league:results:4"
