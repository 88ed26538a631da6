"""Base data source interface for ormcache."""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type

from ..hydrate import Page

QuerySpec = Mapping[str, Any]


class DataSource:
    """
    Base class for data sources.

    A data source executes the real reads and writes for one entity type and
    turns fetched records into flat snapshots. CacheCoordinator only talks to
    the database through this interface.
    """

    #: Mapped model class the source reads and writes
    model: Type

    @property
    def entity(self) -> str:
        """Entity type name used as the first segment of every cache key."""
        raise NotImplementedError("Data source must implement entity")

    def identity(self, record: Any) -> Any:
        """Identifier of a record (a tuple for composite keys)."""
        raise NotImplementedError("Data source must implement identity()")

    def snapshot(self, record: Any) -> Dict[str, Any]:
        """Flat attribute snapshot of a record, without live ORM state."""
        raise NotImplementedError("Data source must implement snapshot()")

    async def lookup_by_id(self, identifier: Any, spec: Optional[QuerySpec] = None) -> Optional[Any]:
        """Fetch one record by identifier, or None."""
        raise NotImplementedError("Data source must implement lookup_by_id()")

    async def find_one(self, spec: Optional[QuerySpec] = None) -> Optional[Any]:
        """Fetch the first record matching the spec, or None."""
        raise NotImplementedError("Data source must implement find_one()")

    async def find_many(self, spec: Optional[QuerySpec] = None) -> List[Any]:
        """Fetch every record matching the spec."""
        raise NotImplementedError("Data source must implement find_many()")

    async def find_many_with_count(self, spec: Optional[QuerySpec] = None) -> Page:
        """Fetch the records matching the spec and the count of all matching rows, ignoring limit/offset."""
        raise NotImplementedError("Data source must implement find_many_with_count()")

    async def create(self, values: Mapping[str, Any]) -> Optional[Any]:
        """Insert one record and return it."""
        raise NotImplementedError("Data source must implement create()")

    async def bulk_create(self, records: Sequence[Mapping[str, Any]]) -> List[Any]:
        """Insert many records and return them."""
        raise NotImplementedError("Data source must implement bulk_create()")

    async def update(self, values: Mapping[str, Any], where: Mapping[str, Any]) -> Tuple[int, List[Any]]:
        """
        Update every record matching the where clause.

        Returns:
            (affected_count, affected_records), the records may be empty
            when the source cannot return them
        """
        raise NotImplementedError("Data source must implement update()")

    async def upsert(self, values: Mapping[str, Any]) -> Any:
        """
        Insert or update one record.

        Returns:
            (record, created) where created is True, False or None when unknown,
            or the bare record
        """
        raise NotImplementedError("Data source must implement upsert()")

    async def save(self, instance: Any) -> Any:
        """Persist a (possibly modified or detached) instance and return the stored record."""
        raise NotImplementedError("Data source must implement save()")

    async def destroy(self, instance: Any) -> None:
        """Delete the record of an instance."""
        raise NotImplementedError("Data source must implement destroy()")

    async def reload(self, instance: Any) -> Any:
        """Refresh an instance from the database and return it."""
        raise NotImplementedError("Data source must implement reload()")
