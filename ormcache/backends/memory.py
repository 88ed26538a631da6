"""Memory backend implementation for ormcache."""

import math
import threading
import time
from typing import Dict, Optional, Set, Union

from .base import CacheBackend, CacheValue, logger

# A key holds either a serialized value or a set of strings, as in Redis
StoredValue = Union[bytes, str, Set[str]]


class MemoryBackend(CacheBackend):
    """
    Process-local backend keeping every key in a dict.

    Intended for tests and single-process deployments. Nothing survives a
    restart and nothing is shared between processes.

    All state sits behind one RLock. No coroutine awaits while holding it, so
    each call, purge_set() included, is atomic with respect to other tasks
    and threads. Expired keys are dropped lazily, when they are next touched.
    Helpers ending in _locked expect the caller to hold the lock.
    """

    def __init__(self, key_prefix: Optional[str] = None):
        """
        Args:
            key_prefix: Optional prefix of every stored key, for sharing one
                        backend between several stores
        """
        self.values: Dict[str, StoredValue] = {}
        self.deadlines: Dict[str, float] = {}  # key -> unix time of expiry
        self.lock = threading.RLock()
        self.key_prefix = key_prefix or ""
        logger.debug("Initialized MemoryBackend with prefix %r", self.key_prefix)

    def _prefix_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}" if self.key_prefix else key

    def _live_locked(self, key: str) -> Optional[StoredValue]:
        """Value stored under an already prefixed key, None if absent or expired."""
        deadline = self.deadlines.get(key)
        if deadline is not None and deadline <= time.time():
            logger.debug("Memory key %s expired", key)
            self.values.pop(key, None)
            del self.deadlines[key]
            return None
        return self.values.get(key)

    def _remove_locked(self, key: str) -> int:
        existed = self._live_locked(key) is not None
        self.values.pop(key, None)
        self.deadlines.pop(key, None)
        return int(existed)

    async def get(self, key: str) -> CacheValue:
        logger.debug("Memory GET %s", key)
        with self.lock:
            value = self._live_locked(self._prefix_key(key))
        # Sets are not readable as plain values
        return None if isinstance(value, set) else value

    async def set(self, key: str, value: Union[str, bytes], expire: Optional[int] = None) -> bool:
        logger.debug("Memory SET %s expire=%s", key, expire)
        stored_key = self._prefix_key(key)
        with self.lock:
            self.values[stored_key] = value
            # A plain SET replaces any previous expiry
            if expire:
                self.deadlines[stored_key] = time.time() + expire
            else:
                self.deadlines.pop(stored_key, None)
        return True

    async def delete(self, *keys: str) -> int:
        logger.debug("Memory DELETE %s", keys)
        with self.lock:
            return sum(self._remove_locked(self._prefix_key(key)) for key in keys)

    async def ttl(self, key: str) -> int:
        stored_key = self._prefix_key(key)
        with self.lock:
            if self._live_locked(stored_key) is None:
                return -2
            deadline = self.deadlines.get(stored_key)
            if deadline is None:
                return -1
            return max(0, math.ceil(deadline - time.time()))

    async def sadd(self, key: str, *values: str) -> int:
        logger.debug("Memory SADD %s %s", key, values)
        stored_key = self._prefix_key(key)
        with self.lock:
            members = self._live_locked(stored_key)
            if not isinstance(members, set):
                members = self.values[stored_key] = set()
            before = len(members)
            members.update(values)
            return len(members) - before

    async def smembers(self, key: str) -> Set[str]:
        logger.debug("Memory SMEMBERS %s", key)
        with self.lock:
            members = self._live_locked(self._prefix_key(key))
            return set(members) if isinstance(members, set) else set()

    async def expire(self, key: str, expiration_seconds: int) -> bool:
        logger.debug("Memory EXPIRE %s %s", key, expiration_seconds)
        stored_key = self._prefix_key(key)
        with self.lock:
            if self._live_locked(stored_key) is None:
                return False
            self.deadlines[stored_key] = time.time() + expiration_seconds
            return True

    async def purge_set(self, key: str) -> int:
        logger.debug("Memory PURGE SET %s", key)
        stored_key = self._prefix_key(key)
        with self.lock:
            members = self._live_locked(stored_key)
            if not isinstance(members, set):
                return 0
            for member in members:
                self._remove_locked(self._prefix_key(member))
            self._remove_locked(stored_key)
            return len(members)
