"""
Cache store for ormcache.

CacheStore turns key segments into namespaced physical keys, serializes
flat snapshots, applies TTLs and maintains the per-entity tracking sets
of cached query keys used for invalidation.
"""

import logging
from typing import Any, Callable, Optional, Sequence

import msgspec.msgpack

from .backends.base import CacheBackend
from .backends.memory import MemoryBackend

# Setup logger
logger = logging.getLogger("ormcache")

DEFAULT_NAMESPACE = "ormcache"
DEFAULT_TTL = 3600
# Tracking sets live this much longer than the entries they track
DEFAULT_TRACKING_SET_TTL_GAP = 300

KEY_DELIMITER = ":"
TRACKING_SET_SEGMENT = "queries"


class CacheStore:
    """
    Key-value store for flat entity snapshots and cached query results.

    Reads fail open: a value that cannot be read or deserialized is
    reported as absent so the caller falls back to the data source.

    Usage:
    ```python
    store = CacheStore(RedisBackend(redis.asyncio.Redis()), namespace="shop", ttl=600)

    await store.set(["orders", "42"], {"id": 42, "status": "open"})
    await store.get(["orders", "42"])

    await store.add_to_tracking_set("orders", ["orders", "query", "abc"])
    await store.clear_tracking_set("orders")
    ```
    """

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        namespace: str = DEFAULT_NAMESPACE,
        ttl: int = DEFAULT_TTL,
        serializer: Optional[Callable[[Any], bytes]] = None,
        deserializer: Optional[Callable[[bytes], Any]] = None,
        tracking_set_ttl_gap: int = DEFAULT_TRACKING_SET_TTL_GAP,
        debug: bool = False,
        enabled: bool = True,
    ):
        """
        Initialize the cache store.

        Args:
            backend: CacheBackend instance to store cache data. If not provided,
                    uses an in-memory backend. For production, consider using
                    a persistent backend like RedisBackend.
            namespace: Prefix of every physical key. Default: "ormcache"
            ttl: Default time-to-live in seconds for every entry. Default: 3600
            serializer: Custom function to serialize snapshots before caching.
                       Default: msgspec.msgpack.encode
            deserializer: Custom function to deserialize cached data.
                         Default: msgspec.msgpack.decode
            tracking_set_ttl_gap: Seconds a tracking set outlives the entries it tracks.
            debug: When True, enables verbose debug logging. Default: False
            enabled: Master switch. When False, coordinators bypass the cache and
                    call the data source directly. Useful for testing. Default: True
        """
        if debug:
            logger.setLevel(logging.DEBUG)
            # Add a handler if none exists
            if not logger.handlers:
                handler = logging.StreamHandler()
                formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
                handler.setFormatter(formatter)
                logger.addHandler(handler)
        self.debug = debug

        if backend is None:
            logger.info("No backend provided, using in-memory backend")
            backend = MemoryBackend()
        self.backend = backend

        if not ttl or ttl < 0:
            raise ValueError(f"CacheStore ttl must be a positive number of seconds, got {ttl!r}")
        self.namespace = namespace
        self.ttl = ttl
        self.tracking_set_ttl_gap = tracking_set_ttl_gap

        self.enabled = enabled
        if not self.enabled:
            logger.warning("Cache is disabled, all operations will hit the data source")

        self.serializer = serializer or msgspec.msgpack.encode
        self.deserializer = deserializer or msgspec.msgpack.decode

        logger.debug("CacheStore initialized with %s backend, namespace %s",
                     backend.__class__.__name__, namespace)

    def make_key(self, key_parts: Sequence[str]) -> str:
        """Physical key: "<namespace>:<segment>:<segment>..." """
        return KEY_DELIMITER.join([self.namespace, *(str(part) for part in key_parts)])

    def tracking_set_key(self, entity: str) -> str:
        """Physical key of the entity's tracking set: "<namespace>:queries:<entity>" """
        return self.make_key([TRACKING_SET_SEGMENT, entity])

    async def get(self, key_parts: Sequence[str]) -> Any:
        """
        Get a snapshot from the cache.

        Returns:
            The deserialized snapshot, or None if absent, unreadable or corrupt
        """
        key = self.make_key(key_parts)
        try:
            cached = await self.backend.get(key)
        except Exception as e:
            logger.warning("Cache get operation failed for %s: %s", key, e, exc_info=True)
            return None
        if cached is None:
            return None
        try:
            return self.deserializer(cached)
        except Exception as e:
            logger.warning("Failed to deserialize cached data for %s, treating as miss: %s", key, e)
            return None

    async def set(self, key_parts: Sequence[str], value: Any, ttl: Optional[int] = None) -> None:
        """
        Serialize and store a snapshot, overwriting any existing value.

        Args:
            key_parts: Key segments
            value: Flat snapshot
            ttl: Optional override of the default TTL in seconds
        """
        key = self.make_key(key_parts)
        await self.backend.set(key, self.serializer(value), expire=ttl or self.ttl)

    async def delete(self, key_parts: Sequence[str]) -> None:
        """Delete a single entry, no-op if absent."""
        await self.backend.delete(self.make_key(key_parts))

    async def add_to_tracking_set(self, entity: str, key_parts: Sequence[str],
                                  ttl: Optional[int] = None) -> None:
        """
        Register a cached query key in the entity's tracking set.

        The set's TTL is only ever extended, to the entry TTL plus the gap,
        so the set never expires before a key it tracks.
        """
        set_key = self.tracking_set_key(entity)
        await self.backend.sadd(set_key, self.make_key(key_parts))
        index_ttl = (ttl or self.ttl) + self.tracking_set_ttl_gap
        current_ttl = await self.backend.ttl(set_key)
        if current_ttl < index_ttl:
            await self.backend.expire(set_key, index_ttl)
        else:
            logger.debug("[Tracking set] Skipping TTL update for %s current TTL %s > new TTL %s",
                         set_key, current_ttl, index_ttl)

    async def clear_tracking_set(self, entity: str) -> int:
        """
        Delete every cached query for the entity and the tracking set itself.

        Returns:
            Number of query keys that were tracked
        """
        set_key = self.tracking_set_key(entity)
        count = await self.backend.purge_set(set_key)
        logger.info("Invalidated %d cached queries for %s", count, entity)
        return count
