"""Redis backend implementation for ormcache."""

from typing import Any, Iterable, List, Optional, Set, Union

from .base import CacheBackend, CacheValue, logger

# Any redis.asyncio compatible client, typed loosely so redis stays optional
RedisClient = Any


def _decode_keys(keys: Iterable[Union[str, bytes]]) -> List[str]:
    return [k.decode("utf-8") if isinstance(k, bytes) else k for k in keys]


class RedisBackend(CacheBackend):
    """
    Backend on an asyncio Redis client (``redis.asyncio.Redis``).

    The client is created and closed by the application, the backend only
    issues commands on it. Cached values are msgpack bytes by default, so
    do not create the client with ``decode_responses=True`` unless the store
    uses a text serializer. Set members are decoded either way.
    """

    def __init__(self, client: RedisClient, key_prefix: Optional[str] = None):
        """
        Args:
            client: redis.asyncio.Redis or a compatible client providing get, set,
                    setex, delete, ttl, sadd, smembers, expire and pipeline
            key_prefix: Optional prefix of every key, for sharing one database
        """
        self.client = client
        self.key_prefix = key_prefix or ""
        logger.debug("Initialized RedisBackend on %s with prefix %r", client, self.key_prefix)

    def _prefix_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}" if self.key_prefix else key

    async def get(self, key: str) -> CacheValue:
        logger.debug("Redis GET %s", key)
        return await self.client.get(self._prefix_key(key))

    async def set(self, key: str, value: Union[str, bytes], expire: Optional[int] = None) -> bool:
        logger.debug("Redis SET %s expire=%s", key, expire)
        if expire:
            return await self.client.setex(self._prefix_key(key), expire, value)
        return await self.client.set(self._prefix_key(key), value)

    async def delete(self, *keys: str) -> int:
        # DEL needs at least one key
        if not keys:
            return 0
        logger.debug("Redis DELETE %s", keys)
        return await self.client.delete(*(self._prefix_key(key) for key in keys))

    async def ttl(self, key: str) -> int:
        return await self.client.ttl(self._prefix_key(key))

    async def sadd(self, key: str, *values: str) -> int:
        logger.debug("Redis SADD %s %s", key, values)
        return await self.client.sadd(self._prefix_key(key), *values)

    async def smembers(self, key: str) -> Set[str]:
        logger.debug("Redis SMEMBERS %s", key)
        return set(_decode_keys(await self.client.smembers(self._prefix_key(key))))

    async def expire(self, key: str, expiration_seconds: int) -> bool:
        logger.debug("Redis EXPIRE %s %s", key, expiration_seconds)
        return bool(await self.client.expire(self._prefix_key(key), expiration_seconds))

    async def purge_set(self, key: str) -> int:
        """
        Delete every key listed in the set and the set itself.

        Runs as a WATCH/MULTI transaction on the set key. If another client
        adds a member between reading the set and deleting it, the transaction
        is retried, so no member is dropped while its value survives.
        """
        from redis.exceptions import WatchError

        logger.debug("Redis PURGE SET %s", key)
        set_key = self._prefix_key(key)
        async with self.client.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(set_key)
                    members = _decode_keys(await pipe.smembers(set_key))
                    pipe.multi()
                    pipe.delete(*[self._prefix_key(m) for m in members], set_key)
                    await pipe.execute()
                    return len(members)
                except WatchError:
                    logger.debug("Set %s changed during purge, retrying", key)
