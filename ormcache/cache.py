"""
Main cache implementation for ormcache.

This module contains the CacheCoordinator, the entry point for cached reads
and writes of one entity type. Reads are read-through: served from the cache
when present, otherwise fetched from the data source and cached. Writes go to
the data source first, then write the affected entity snapshots through to the
cache and invalidate every cached query of the entity type.
"""

import asyncio
import logging
from typing import Any, List, Optional, Sequence, Tuple

from .exceptions import UnboundInstanceError, WriteResultError
from .hydrate import Page, hydrate
from .keys import CacheKey, entity_key, query_key
from .sources.base import DataSource, QuerySpec
from .store import CacheStore
from .utils import keyify_identifier

# Setup logger
logger = logging.getLogger("ormcache")


class CacheCoordinator:
    """
    Read-through/write-through cache for one entity type.

    Works with any data source that implements the DataSource interface and any
    backend behind a CacheStore.

    Invalidation is type-wide: every successful write clears all cached queries
    of the entity type. Entity snapshots (lookup by id) are overwritten with the
    written state instead of being dropped.

    Usage:
    ```python
    store = CacheStore(RedisBackend(redis.asyncio.Redis()), ttl=600)
    orders = CacheCoordinator(store, SQLAlchemySource(Order, session_factory))

    # Read-through
    order = await orders.lookup_by_id(42)
    open_orders = await orders.find_many({"where": {"status": "open"}})

    # Write-through, clears cached queries of "orders"
    order = await orders.create({"status": "open", "total": 10})

    # Many queries sharing one cache slot
    dashboard = orders.with_key("dashboard")
    await dashboard.find_many({"where": {"status": "open"}, "limit": 5})
    await dashboard.clear()
    ```
    """

    def __init__(
        self,
        store: CacheStore,
        source: DataSource,
        custom_key: Optional[str] = None,
        instance: Any = None,
        ttl: Optional[int] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            store: CacheStore holding snapshots and tracking sets
            source: Data source of the entity type
            custom_key: When set, every query-shaped read uses this key instead of
                       the digest of its spec, so different queries share one entry.
            instance: Record the coordinator is bound to, required by reload()
            ttl: Optional TTL override in seconds for cached query results.
                 Entity snapshots always use the store's default TTL.
        """
        self.store = store
        self.source = source
        self.custom_key = custom_key
        self.instance = instance
        self.ttl = ttl

    @property
    def entity(self) -> str:
        return self.source.entity

    @property
    def model(self) -> Any:
        return self.source.model

    def with_key(self, custom_key: str) -> "CacheCoordinator":
        """Coordinator for the same entity type whose queries all use custom_key."""
        return CacheCoordinator(self.store, self.source, custom_key=custom_key, ttl=self.ttl)

    def for_instance(self, instance: Any) -> "CacheCoordinator":
        """
        Coordinator bound to one record, for instance-scoped operations.

        Its custom key is the record's identifier.
        """
        custom_key = keyify_identifier(self.source.identity(instance))
        return CacheCoordinator(self.store, self.source, custom_key=custom_key, instance=instance, ttl=self.ttl)

    # --- Keys ---

    def _entity_key(self, identifier: Any) -> CacheKey:
        return entity_key(self.entity, identifier)

    def _query_key(self, spec: Optional[QuerySpec]) -> CacheKey:
        return query_key(self.entity, spec, override_key=self.custom_key)

    # --- Cache helpers ---

    async def _lookup(self, key: CacheKey) -> Any:
        cached = await self.store.get(key)
        if cached is None:
            logger.debug("[MISS] %s %s", self.entity, key)
            return None
        logger.debug("[HIT]  %s %s", self.entity, key)
        return hydrate(self.model, cached)

    async def _remember(self, key: CacheKey, snapshot: Any, track: bool, ttl: Optional[int] = None) -> None:
        """Populate the cache after a read, never failing the read itself."""
        try:
            await self.store.set(key, snapshot, ttl=ttl)
            if track:
                await self.store.add_to_tracking_set(self.entity, key, ttl=ttl)
        except Exception as e:
            logger.warning("Caching %s result failed: %s", self.entity, e, exc_info=True)

    async def _write_through(self, record: Any) -> None:
        await self.store.set(self._entity_key(self.source.identity(record)), self.source.snapshot(record))

    # --- Cache management ---

    async def clear(self, key: Optional[str] = None) -> None:
        """
        Delete a single cached query entry.

        Args:
            key: Custom key of the entry, defaults to the coordinator's custom key
        """
        effective_key = key if key is not None else self.custom_key
        if effective_key is None:
            logger.warning("Cannot clear cache: key parts for %s missing. Did you forget a custom key?",
                           self.entity)
            return
        await self.store.delete(query_key(self.entity, override_key=effective_key))
        logger.debug("Cleared cached query %s for %s", effective_key, self.entity)

    async def clear_all_queries(self) -> int:
        """
        Invalidate every cached query of the entity type.

        Returns:
            Number of cached queries invalidated
        """
        return await self.store.clear_tracking_set(self.entity)

    # --- Reads ---

    async def lookup_by_id(self, identifier: Any, spec: Optional[QuerySpec] = None) -> Optional[Any]:
        """
        Get one record by identifier.

        The entry is keyed by identifier only, the spec (e.g. includes) is
        passed to the data source on a miss.
        """
        if not self.store.enabled:
            return await self.source.lookup_by_id(identifier, spec)

        key = self._entity_key(identifier)
        hydrated = await self._lookup(key)
        if hydrated is not None:
            if isinstance(hydrated, list):
                return hydrated[0] if hydrated else None
            return hydrated

        record = await self.source.lookup_by_id(identifier, spec)
        if record is not None:
            await self._remember(key, self.source.snapshot(record), track=False)
        return record

    async def find_one(self, spec: Optional[QuerySpec] = None) -> Optional[Any]:
        """Get the first record matching the spec."""
        if not self.store.enabled:
            return await self.source.find_one(spec)

        key = self._query_key(spec)
        hydrated = await self._lookup(key)
        if hydrated is not None:
            if isinstance(hydrated, list):
                return hydrated[0] if hydrated else None
            return hydrated

        record = await self.source.find_one(spec)
        if record is not None:
            await self._remember(key, self.source.snapshot(record), track=True, ttl=self.ttl)
        return record

    async def find_many(self, spec: Optional[QuerySpec] = None) -> List[Any]:
        """Get every record matching the spec."""
        if not self.store.enabled:
            return await self.source.find_many(spec)

        key = self._query_key(spec)
        hydrated = await self._lookup(key)
        if hydrated is not None:
            if isinstance(hydrated, Page):
                return hydrated.items
            if isinstance(hydrated, list):
                return hydrated
            return []

        records = await self.source.find_many(spec)
        snapshot = [self.source.snapshot(record) for record in records]
        await self._remember(key, snapshot, track=True, ttl=self.ttl)
        return records

    async def find_many_with_count(self, spec: Optional[QuerySpec] = None) -> Page:
        """Get the records matching the spec and the total number of matching rows."""
        if not self.store.enabled:
            return await self.source.find_many_with_count(spec)

        key = self._query_key(spec)
        hydrated = await self._lookup(key)
        if hydrated is not None:
            if isinstance(hydrated, Page):
                return hydrated
            if isinstance(hydrated, list):
                return Page(items=hydrated, total_count=len(hydrated))
            return Page(items=[], total_count=0)

        page = await self.source.find_many_with_count(spec)
        snapshot = {
            "items": [self.source.snapshot(record) for record in page.items],
            "total_count": page.total_count,
        }
        await self._remember(key, snapshot, track=True, ttl=self.ttl)
        return page

    # --- Writes ---

    async def create(self, values: dict) -> Any:
        """
        Insert a record, cache its snapshot and invalidate cached queries.

        Raises:
            WriteResultError: If the data source returned no record
        """
        record = await self.source.create(values)
        if record is None:
            raise WriteResultError(self.entity, "create")
        if not self.store.enabled:
            return record

        await asyncio.gather(
            self._write_through(record),
            self.store.clear_tracking_set(self.entity),
        )
        return record

    async def bulk_create(self, records: Sequence[dict]) -> List[Any]:
        """
        Insert many records and invalidate cached queries.

        No entity snapshots are written, the records are cached on their
        first lookup by id.
        """
        created = await self.source.bulk_create(records)
        if self.store.enabled:
            await self.store.clear_tracking_set(self.entity)
        return created

    async def update(self, values: dict, where: dict) -> Tuple[int, List[Any]]:
        """
        Update the records matching where, rewrite their snapshots and invalidate cached queries.

        Returns:
            (affected_count, affected_records)
        """
        affected_count, affected = await self.source.update(values, where)
        affected = list(affected or [])
        if not self.store.enabled:
            return affected_count, affected

        if affected_count > 0:
            refreshed = affected or await self.source.find_many({"where": where})
            for record in refreshed:
                await self._write_through(record)
        await self.store.clear_tracking_set(self.entity)
        return affected_count, affected

    async def upsert(self, values: dict) -> Tuple[Any, Optional[bool]]:
        """
        Insert or update a record, cache its snapshot and invalidate cached queries.

        Returns:
            (record, created) where created is None when the data source can't tell
        """
        result = await self.source.upsert(values)
        if isinstance(result, (list, tuple)) and len(result) >= 1:
            record = result[0]
            created = result[1] if len(result) > 1 else None
        else:
            record, created = result, None
        if record is None:
            raise WriteResultError(self.entity, "upsert")
        if not self.store.enabled:
            return record, created

        await self._write_through(record)
        await self.store.clear_tracking_set(self.entity)
        return record, created

    async def save(self, instance: Any = None) -> Any:
        """
        Persist an instance (the bound one by default), cache it and invalidate cached queries.

        Raises:
            UnboundInstanceError: If no instance is given and none is bound
        """
        instance = instance if instance is not None else self.instance
        if instance is None:
            raise UnboundInstanceError(self.entity, "save")

        record = await self.source.save(instance)
        if record is None:
            raise WriteResultError(self.entity, "save")
        if not self.store.enabled:
            return record

        await asyncio.gather(
            self._write_through(record),
            self.store.clear_tracking_set(self.entity),
        )
        return record

    async def destroy(self, instance: Any = None) -> None:
        """
        Delete an instance (the bound one by default), drop its snapshot and invalidate cached queries.

        Raises:
            UnboundInstanceError: If no instance is given and none is bound
        """
        instance = instance if instance is not None else self.instance
        if instance is None:
            raise UnboundInstanceError(self.entity, "destroy")

        identifier = self.source.identity(instance)
        await self.source.destroy(instance)
        if not self.store.enabled:
            return

        await asyncio.gather(
            self.store.delete(self._entity_key(identifier)),
            self.store.clear_tracking_set(self.entity),
        )

    async def reload(self) -> Any:
        """
        Reload the bound instance from the data source and refresh its snapshot.

        Raises:
            UnboundInstanceError: If the coordinator is not bound to an instance
        """
        if self.instance is None:
            raise UnboundInstanceError(self.entity, "reload")

        record = await self.source.reload(self.instance)
        if self.store.enabled and record is not None:
            await self._write_through(record)
        return record
