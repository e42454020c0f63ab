"""Tests for response caching and invalidation."""

import fnmatch

import pytest

from edulink.core.cache import CacheManager, cache_manager
from edulink.core.cache_decorators import cache_response, tenant_cache_key
from edulink.utils.cache_invalidation import invalidate_suggestion_cache


class InMemoryRedis:
    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def setex(self, key, expire, value):
        self.store[key] = value
        return True

    async def scan_iter(self, match):
        for key in list(self.store):
            if fnmatch.fnmatch(key, match):
                yield key

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


@pytest.fixture
def redis_backed(monkeypatch):
    fake = InMemoryRedis()
    monkeypatch.setattr(cache_manager, "enabled", True)
    monkeypatch.setattr(cache_manager, "redis", fake)
    return fake


async def test_disabled_cache_is_a_passthrough():
    cache = CacheManager(enabled=False)

    assert await cache.set("k", 1) is False
    assert await cache.get("k") is None
    assert await cache.delete_pattern("*") == 0


async def test_cached_endpoint_runs_once_per_key(redis_backed):
    calls = []

    @cache_response("suggestions")
    async def endpoint(entity_type=None, tenant_id=None, db=None):
        calls.append(entity_type)
        return {"entity_type": entity_type}

    assert await endpoint(entity_type="student", tenant_id="t1", db=object()) == {"entity_type": "student"}
    assert await endpoint(entity_type="student", tenant_id="t1", db=object()) == {"entity_type": "student"}
    await endpoint(entity_type="class", tenant_id="t1", db=object())

    assert calls == ["student", "class"]
    assert tenant_cache_key("t1", "suggestions", "entity_type:student") in redis_backed.store


async def test_invalidation_is_tenant_scoped(redis_backed):
    @cache_response("suggestions")
    async def endpoint(limit=10, tenant_id=None):
        return limit

    await endpoint(limit=10, tenant_id="t1")
    await endpoint(limit=10, tenant_id="t2")

    await invalidate_suggestion_cache("t1")

    assert list(redis_backed.store) == [tenant_cache_key("t2", "suggestions", "limit:10")]
