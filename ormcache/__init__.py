"""
ormcache - A read-through/write-through cache for SQLAlchemy models.

This library caches entities by identifier and the results of arbitrary
queries, keeping both coherent when the underlying data changes: every write
refreshes the written entities and invalidates the cached queries of their type.
"""

__version__ = '0.1.0'

# Import main components
from .backends.base import CacheBackend
from .backends.memory import MemoryBackend
from .backends.redis import RedisBackend
from .cache import CacheCoordinator
from .exceptions import CacheError, UnboundInstanceError, WriteResultError
from .hydrate import Page, hydrate, relation_plan
from .keys import entity_key, query_key
from .orm import snapshot_of
from .sources.base import DataSource
from .sources.sqlalchemy import SQLAlchemySource
from .store import CacheStore

# Export public API
__all__ = [
    'CacheCoordinator',
    'CacheStore',
    'CacheBackend',
    'MemoryBackend',
    'RedisBackend',
    'DataSource',
    'SQLAlchemySource',
    'Page',
    'hydrate',
    'relation_plan',
    'snapshot_of',
    'entity_key',
    'query_key',
    'CacheError',
    'UnboundInstanceError',
    'WriteResultError',
]
