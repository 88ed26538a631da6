"""
SQLAlchemy data source for ormcache.

Executes query specs against an async SQLAlchemy session factory. Query specs
are plain mappings so they can be hashed into cache keys:

```python
{
    "where": {"status": "open", "total": {"gte": 10}, "customer_id": [1, 2]},
    "order_by": ["-created_at", "id"],
    "limit": 20,
    "offset": 40,
    "include": ["customer", "items.product"],
}
```
"""

import logging
import operator
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type

import sqlalchemy as sa
from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import NoResultFound
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from ..hydrate import Page
from ..orm import get_entity_name, get_identity, get_mapper, get_primary_key_names, snapshot_of
from .base import DataSource, QuerySpec

logger = logging.getLogger("ormcache")

OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "eq": operator.eq,
    "ne": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
    "in": lambda column, value: column.in_(list(value)),
    "not_in": lambda column, value: column.not_in(list(value)),
    "like": lambda column, value: column.like(value),
    "ilike": lambda column, value: column.ilike(value),
    "is": lambda column, value: column.is_(value),
    "is_not": lambda column, value: column.is_not(value),
}


class SQLAlchemySource(DataSource):
    """
    Data source for one SQLAlchemy model, opening a new AsyncSession per call.

    Records returned by this source are detached once the call returns. Use a
    session factory created with ``expire_on_commit=False`` so records written
    through it keep their loaded state.
    """

    def __init__(self, model: Type, session_factory: async_sessionmaker):
        """
        Args:
            model: Mapped model class
            session_factory: Factory of AsyncSession, usually an async_sessionmaker
        """
        self.model = model
        self.session_factory = session_factory
        self.mapper = get_mapper(model)
        self._entity = get_entity_name(model)
        self._pk_names = get_primary_key_names(model)
        self._column_names = {attr.key for attr in self.mapper.column_attrs}
        logger.debug("Initialized SQLAlchemySource for %s", self._entity)

    @property
    def entity(self) -> str:
        return self._entity

    def identity(self, record: Any) -> Any:
        return get_identity(record)

    def snapshot(self, record: Any) -> Dict[str, Any]:
        return snapshot_of(record)

    # --- Query spec translation ---

    def _column(self, name: str):
        if name not in self._column_names:
            raise ValueError(f"{self.model.__name__} has no column attribute {name!r}")
        return getattr(self.model, name)

    def where_clauses(self, where: Optional[Mapping[str, Any]]) -> List[Any]:
        """Translate a where mapping into SQLAlchemy criteria."""
        clauses = []
        for field, condition in (where or {}).items():
            if field == "or":
                clauses.append(or_(*[self._conjunction(nested) for nested in condition]))
                continue
            if field == "and":
                clauses.extend(self._conjunction(nested) for nested in condition)
                continue

            column = self._column(field)
            if isinstance(condition, Mapping):
                for op, value in condition.items():
                    if op not in OPERATORS:
                        raise ValueError(f"Unsupported operator {op!r} for {self.model.__name__}.{field}")
                    clauses.append(OPERATORS[op](column, value))
            elif isinstance(condition, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(condition)))
            elif condition is None:
                clauses.append(column.is_(None))
            else:
                clauses.append(column == condition)
        return clauses

    def _conjunction(self, where: Mapping[str, Any]):
        clauses = self.where_clauses(where)
        return and_(*clauses) if clauses else sa.true()

    def _order_by(self, order_by: Sequence[Any]) -> List[Any]:
        ordering = []
        for item in order_by:
            if isinstance(item, str):
                if item.startswith("-"):
                    ordering.append(self._column(item[1:]).desc())
                else:
                    ordering.append(self._column(item).asc())
            else:
                name, direction = item
                column = self._column(name)
                ordering.append(column.desc() if str(direction).lower() == "desc" else column.asc())
        return ordering

    def _load_options(self, spec: Optional[QuerySpec]) -> List[Any]:
        """selectinload options for the relationship paths in spec["include"]."""
        options = []
        for path in (spec or {}).get("include") or ():
            model = self.model
            loader = None
            for name in path.split("."):
                mapper = get_mapper(model)
                if name not in mapper.relationships:
                    raise ValueError(f"{model.__name__} has no relationship {name!r}")
                attribute = getattr(model, name)
                loader = selectinload(attribute) if loader is None else loader.selectinload(attribute)
                model = mapper.relationships[name].mapper.class_
            options.append(loader)
        return options

    def _select(self, spec: Optional[QuerySpec]):
        spec = spec or {}
        stmt = select(self.model).where(*self.where_clauses(spec.get("where")))
        if spec.get("order_by"):
            stmt = stmt.order_by(*self._order_by(spec["order_by"]))
        if spec.get("limit") is not None:
            stmt = stmt.limit(spec["limit"])
        if spec.get("offset") is not None:
            stmt = stmt.offset(spec["offset"])
        return stmt.options(*self._load_options(spec))

    def _identity_clause(self, identities: Sequence[Sequence[Any]]):
        pk_columns = [getattr(self.model, name) for name in self._pk_names]
        if len(pk_columns) == 1:
            return pk_columns[0].in_([identity[0] for identity in identities])
        return or_(*[
            and_(*[column == value for column, value in zip(pk_columns, identity)])
            for identity in identities
        ])

    @staticmethod
    async def _refresh_expired(session: AsyncSession, instances: Sequence[Any]) -> None:
        if session.sync_session.expire_on_commit:
            for instance in instances:
                await session.refresh(instance)

    # --- Reads ---

    async def lookup_by_id(self, identifier: Any, spec: Optional[QuerySpec] = None) -> Optional[Any]:
        async with self.session_factory() as session:
            return await session.get(self.model, identifier, options=self._load_options(spec))

    async def find_one(self, spec: Optional[QuerySpec] = None) -> Optional[Any]:
        async with self.session_factory() as session:
            result = await session.execute(self._select(spec).limit(1))
            return result.scalars().first()

    async def find_many(self, spec: Optional[QuerySpec] = None) -> List[Any]:
        async with self.session_factory() as session:
            result = await session.execute(self._select(spec))
            return list(result.scalars().all())

    async def find_many_with_count(self, spec: Optional[QuerySpec] = None) -> Page:
        spec = spec or {}
        count_stmt = (
            select(func.count())
            .select_from(self.model)
            .where(*self.where_clauses(spec.get("where")))
        )
        async with self.session_factory() as session:
            result = await session.execute(self._select(spec))
            items = list(result.scalars().all())
            total_count = (await session.execute(count_stmt)).scalar_one()
        return Page(items=items, total_count=total_count)

    # --- Writes ---

    async def create(self, values: Mapping[str, Any]) -> Any:
        async with self.session_factory() as session:
            instance = self.model(**values)
            session.add(instance)
            await session.commit()
            await session.refresh(instance)
            return instance

    async def bulk_create(self, records: Sequence[Mapping[str, Any]]) -> List[Any]:
        async with self.session_factory() as session:
            instances = [self.model(**values) for values in records]
            session.add_all(instances)
            await session.commit()
            await self._refresh_expired(session, instances)
            return instances

    async def update(self, values: Mapping[str, Any], where: Mapping[str, Any]) -> Tuple[int, List[Any]]:
        clauses = self.where_clauses(where)
        pk_columns = [getattr(self.model, name) for name in self._pk_names]
        async with self.session_factory() as session:
            # Affected rows are found by primary key before the update,
            # the update may change the columns the where clause filters on
            identities = (await session.execute(select(*pk_columns).where(*clauses))).all()
            result = await session.execute(
                sa.update(self.model)
                .where(*clauses)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            affected_count = result.rowcount
            await session.commit()
            if not identities:
                return affected_count, []
            records = await session.execute(select(self.model).where(self._identity_clause(identities)))
            return affected_count, list(records.scalars().all())

    async def upsert(self, values: Mapping[str, Any]) -> Tuple[Any, Optional[bool]]:
        async with self.session_factory() as session:
            candidate = self.model(**values)
            identity = self.mapper.primary_key_from_instance(candidate)
            if any(value is None for value in identity):
                created = True
            else:
                key = identity[0] if len(identity) == 1 else tuple(identity)
                created = await session.get(self.model, key) is None
            instance = await session.merge(candidate)
            await session.commit()
            await session.refresh(instance)
            return instance, created

    async def save(self, instance: Any) -> Any:
        async with self.session_factory() as session:
            merged = await session.merge(instance)
            await session.commit()
            await session.refresh(merged)
            return merged

    async def destroy(self, instance: Any) -> None:
        identity = self.identity(instance)
        async with self.session_factory() as session:
            stored = await session.get(self.model, identity)
            if stored is None:
                logger.debug("%s %s already deleted", self._entity, identity)
                return
            await session.delete(stored)
            await session.commit()

    async def reload(self, instance: Any) -> Any:
        """Copy the current column values from the database onto the instance."""
        identity = self.identity(instance)
        async with self.session_factory() as session:
            fresh = await session.get(self.model, identity, populate_existing=True)
        if fresh is None:
            raise NoResultFound(f"{self.model.__name__} {identity} could not be reloaded, it no longer exists")
        for attr in self.mapper.column_attrs:
            set_committed_value(instance, attr.key, getattr(fresh, attr.key))
        return instance
