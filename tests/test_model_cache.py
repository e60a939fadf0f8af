import threading
import time

import pytest
import redis

from coditor.model_cache import ModelCache, RedisModelCache


def test_get_or_resolve_runs_resolver_once():
    cache = ModelCache()
    calls = []

    def resolver():
        calls.append(1)
        return "models/gemini-pro"

    assert cache.get_or_resolve(resolver) == "models/gemini-pro"
    assert cache.get_or_resolve(resolver) == "models/gemini-pro"
    assert len(calls) == 1


def test_failed_resolution_leaves_cache_empty():
    cache = ModelCache()

    def boom():
        raise RuntimeError("listing failed")

    with pytest.raises(RuntimeError):
        cache.get_or_resolve(boom)
    assert cache.get() is None
    assert cache.get_or_resolve(lambda: "models/x") == "models/x"


def test_clear_forces_new_resolution():
    cache = ModelCache()
    cache.set("models/a")
    cache.clear()
    assert cache.get_or_resolve(lambda: "models/b") == "models/b"


def test_set_rejects_empty_name():
    with pytest.raises(ValueError):
        ModelCache().set("")


def test_concurrent_first_requests_share_one_resolution():
    cache = ModelCache()
    calls = []
    results = []

    def slow_resolver():
        calls.append(1)
        time.sleep(0.05)
        return "models/gemini-pro"

    threads = [threading.Thread(target=lambda: results.append(cache.get_or_resolve(slow_resolver))) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(calls) == 1
    assert results == ["models/gemini-pro"] * 8


class FakeRedis:
    def __init__(self, fail=False):
        self.store = {}
        self.ttls = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise redis.ConnectionError("down")

    def get(self, key):
        self._check()
        return self.store.get(key)

    def set(self, key, value):
        self._check()
        self.store[key] = value

    def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value
        self.ttls[key] = ttl

    def delete(self, key):
        self._check()
        self.store.pop(key, None)


def test_redis_cache_shares_value_between_instances():
    shared = FakeRedis()
    first = RedisModelCache(key="t:model", client=shared)
    second = RedisModelCache(key="t:model", client=shared)
    assert first.get_or_resolve(lambda: "models/gemini-pro") == "models/gemini-pro"
    assert second.get_or_resolve(lambda: pytest.fail("should not resolve again")) == "models/gemini-pro"


def test_redis_cache_uses_ttl_when_configured():
    shared = FakeRedis()
    cache = RedisModelCache(key="t:model", ttl_seconds=300, client=shared)
    cache.set("models/gemini-pro")
    assert shared.ttls["t:model"] == 300


def test_redis_cache_falls_back_to_local_value_when_down():
    cache = RedisModelCache(key="t:model", client=FakeRedis(fail=True))
    assert cache.get() is None
    assert cache.get_or_resolve(lambda: "models/gemini-pro") == "models/gemini-pro"
    assert cache.get() == "models/gemini-pro"


def test_redis_cache_clear_deletes_key():
    shared = FakeRedis()
    cache = RedisModelCache(key="t:model", client=shared)
    cache.set("models/a")
    cache.clear()
    assert "t:model" not in shared.store
    assert cache.get() is None


class ReadOnlyRedis(FakeRedis):
    """Reads work, writes fail (e.g. pointed at a read-only replica)."""

    def set(self, key, value):
        raise redis.ReadOnlyError("You can't write against a read only replica.")

    def setex(self, key, ttl, value):
        raise redis.ReadOnlyError("You can't write against a read only replica.")


@pytest.mark.parametrize("ttl", [0, 300])
def test_redis_cache_keeps_local_value_when_writes_fail(ttl):
    cache = RedisModelCache(key="t:model", ttl_seconds=ttl, client=ReadOnlyRedis())
    calls = []

    def resolver():
        calls.append(1)
        return "models/gemini-pro"

    for _ in range(3):
        assert cache.get_or_resolve(resolver) == "models/gemini-pro"
    assert len(calls) == 1


def test_redis_cache_clear_after_failed_write_resolves_again():
    cache = RedisModelCache(key="t:model", client=ReadOnlyRedis())
    cache.set("models/a")
    cache.clear()
    assert cache.get() is None
