"""Backend package for ormcache."""

from .base import CacheBackend
from .memory import MemoryBackend
from .redis import RedisBackend

__all__ = ["CacheBackend", "MemoryBackend", "RedisBackend"]
