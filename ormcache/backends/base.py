"""Base cache backend interface for ormcache."""

import logging
from typing import Optional, Set, Union

# Setup logger
logger = logging.getLogger("ormcache")

# What a backend hands back from get()
CacheValue = Union[str, bytes, None]


class CacheBackend:
    """
    Raw async key-value and set primitives, modelled on the Redis commands
    of the same names.

    Backends know nothing about snapshots or namespaces: CacheStore passes
    them fully built keys and already serialized bytes. A backend may add its
    own ``key_prefix`` to every key, including the keys listed as set members
    when purge_set() deletes them.
    """

    async def get(self, key: str) -> CacheValue:
        """Stored value, or None when the key is missing or expired."""
        raise NotImplementedError("Backend must implement get()")

    async def set(self, key: str, value: Union[str, bytes], expire: Optional[int] = None) -> bool:
        """
        Store a value, replacing whatever the key held.

        Args:
            key: Key to write
            value: Serialized value
            expire: Seconds until the key expires, None for no expiry
        """
        raise NotImplementedError("Backend must implement set()")

    async def delete(self, *keys: str) -> int:
        """Delete keys of any kind and return how many existed."""
        raise NotImplementedError("Backend must implement delete()")

    async def ttl(self, key: str) -> int:
        """Seconds left before the key expires: -1 when it never expires, -2 when it is missing."""
        raise NotImplementedError("Backend must implement ttl()")

    async def sadd(self, key: str, *values: str) -> int:
        """Add members to the set at key, creating it if needed, and return how many were new."""
        raise NotImplementedError("Backend must implement sadd()")

    async def smembers(self, key: str) -> Set[str]:
        """Members of the set at key as strings, empty when missing."""
        raise NotImplementedError("Backend must implement smembers()")

    async def expire(self, key: str, expiration_seconds: int) -> bool:
        """Set the expiry of an existing key. False when the key is missing."""
        raise NotImplementedError("Backend must implement expire()")

    async def purge_set(self, key: str) -> int:
        """
        Delete every key listed in a set, then the set itself.

        Must be atomic with respect to sadd() on the same set: a member added
        concurrently is either deleted along with the others or survives in
        a set that still exists.

        Args:
            key: The set key

        Returns:
            Number of members the set held
        """
        raise NotImplementedError("Backend must implement purge_set()")
