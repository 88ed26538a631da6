"""Tests for the RedisBackend implementation."""

import pytest

from ormcache import CacheStore, RedisBackend


@pytest.mark.redis
@pytest.mark.asyncio
async def test_redis_backend_init(redis_client):
    """Test RedisBackend initialization."""
    backend = RedisBackend(redis_client)
    assert isinstance(backend, RedisBackend)
    assert backend.client == redis_client


@pytest.mark.redis
@pytest.mark.asyncio
async def test_redis_backend_get_set(redis_client):
    """Test basic get/set operations with Redis backend."""
    backend = RedisBackend(redis_client)

    await backend.set("test:key1", b"value1")
    assert await backend.get("test:key1") == b"value1"

    await backend.set("test:key1", b"value2")
    assert await backend.get("test:key1") == b"value2"

    assert await backend.get("test:nonexistent") is None


@pytest.mark.redis
@pytest.mark.asyncio
async def test_redis_backend_set_with_expire(redis_client):
    """Test setting values with expiration."""
    backend = RedisBackend(redis_client)

    await backend.set("test:key1", b"value1", expire=5)
    assert await backend.get("test:key1") == b"value1"

    ttl = await redis_client.ttl("test:key1")
    assert 0 < ttl <= 5
    assert 0 < await backend.ttl("test:key1") <= 5
    assert await backend.ttl("test:missing") == -2


@pytest.mark.redis
@pytest.mark.asyncio
async def test_redis_backend_delete(redis_client):
    """Test key deletion."""
    backend = RedisBackend(redis_client)

    await backend.set("test:key1", b"value1")
    await backend.set("test:key2", b"value2")
    await backend.set("test:key3", b"value3")

    assert await backend.delete("test:key1") == 1
    assert await backend.get("test:key1") is None
    assert await backend.get("test:key2") == b"value2"

    assert await backend.delete("test:key2", "test:key3", "test:nonexistent") == 2
    assert await backend.delete() == 0


@pytest.mark.redis
@pytest.mark.asyncio
async def test_redis_backend_set_operations(redis_client):
    backend = RedisBackend(redis_client)

    assert await backend.sadd("test:set1", "value1", "value2") == 2
    assert await backend.sadd("test:set1", "value2", "value3") == 1

    # Members are decoded to strings
    assert await backend.smembers("test:set1") == {"value1", "value2", "value3"}
    assert await backend.smembers("test:nonexistent") == set()

    assert await backend.expire("test:set1", 10) is True
    assert 0 < await redis_client.ttl("test:set1") <= 10


@pytest.mark.redis
@pytest.mark.asyncio
async def test_redis_backend_purge_set(redis_backend, redis_client):
    await redis_backend.set("q1", b"a")
    await redis_backend.set("q2", b"b")
    await redis_backend.set("untracked", b"c")
    await redis_backend.sadd("tracked", "q1", "q2")

    assert await redis_backend.purge_set("tracked") == 2
    assert await redis_backend.get("q1") is None
    assert await redis_backend.get("q2") is None
    assert await redis_backend.get("untracked") == b"c"
    assert await redis_client.exists(redis_backend._prefix_key("tracked")) == 0

    assert await redis_backend.purge_set("tracked") == 0


@pytest.mark.redis
@pytest.mark.asyncio
async def test_redis_store_round_trip(redis_store):
    await redis_store.set(["orders", "1"], {"id": 1, "status": "open"})
    assert await redis_store.get(["orders", "1"]) == {"id": 1, "status": "open"}

    await redis_store.add_to_tracking_set("orders", ["orders", "query", "abc"])
    await redis_store.set(["orders", "query", "abc"], [{"id": 1}])
    assert await redis_store.clear_tracking_set("orders") == 1
    assert await redis_store.get(["orders", "query", "abc"]) is None
    # Entity snapshots are not tracked
    assert await redis_store.get(["orders", "1"]) == {"id": 1, "status": "open"}


@pytest.mark.redis
@pytest.mark.asyncio
async def test_redis_store_corrupt_value_is_a_miss(redis_backend, redis_client):
    store = CacheStore(backend=redis_backend, namespace="shop")
    await redis_client.set(redis_backend._prefix_key("shop:orders:1"), b"\xc1 not msgpack")

    assert await store.get(["orders", "1"]) is None


@pytest.mark.redis
@pytest.mark.asyncio
async def test_redis_invalidation_is_seen_by_other_stores(redis_client):
    """Two processes sharing one Redis namespace see each other's invalidations."""
    service_a = CacheStore(backend=RedisBackend(redis_client, key_prefix="shared:"), namespace="shop")
    service_b = CacheStore(backend=RedisBackend(redis_client, key_prefix="shared:"), namespace="shop")

    await service_a.set(["orders", "query", "abc"], [{"id": 1}])
    await service_a.add_to_tracking_set("orders", ["orders", "query", "abc"])
    assert await service_b.get(["orders", "query", "abc"]) == [{"id": 1}]

    assert await service_b.clear_tracking_set("orders") == 1
    assert await service_a.get(["orders", "query", "abc"]) is None
