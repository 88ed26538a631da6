"""
Hydration of cached snapshots back into mapped instances.

A snapshot is the flat data stored in the cache: a dict for one record,
a list of dicts, or {"items": [...], "total_count": n} for paged results.
Hydration is pure: no database or cache access happens here.
"""

import logging
from typing import Any, Dict, List, NamedTuple, Optional, Set, Type, Union

import msgspec
from sqlalchemy.orm import Mapper

from .orm import get_mapper

logger = logging.getLogger("ormcache")

# relationship name -> plan of the related model
RelationPlan = Dict[str, "RelationPlan"]


class Page(NamedTuple):
    """Items of a query together with the total count of matching rows."""
    items: List[Any]
    total_count: int


HydratedResult = Union[Any, List[Any], Page, None]


def is_page_snapshot(data: Any) -> bool:
    """True for snapshots shaped {"items": [...], "total_count": n}."""
    return (
        isinstance(data, dict)
        and isinstance(data.get("items"), list)
        and isinstance(data.get("total_count"), int)
    )


def relation_plan(model: Type, visited: Optional[Set[Mapper]] = None) -> RelationPlan:
    """
    Describe which relationships to expand when building instances of a model.

    Every relationship of the model gets an entry. The visited set is shared by
    the whole traversal: once a model has been expanded, later occurrences of it
    get an empty plan, so cyclic graphs (A -> B -> A) terminate.

    Args:
        model: Mapped model class
        visited: Mappers already expanded in this traversal

    Returns:
        Mapping of relationship name to the nested plan
    """
    if visited is None:
        visited = set()
    mapper = get_mapper(model)
    if mapper in visited:
        return {}
    visited.add(mapper)

    plan: RelationPlan = {}
    for relationship in mapper.relationships:
        plan[relationship.key] = relation_plan(relationship.mapper.class_, visited)
    return plan


def _coerce(column_type: Any, value: Any) -> Any:
    """Restore values the serializer flattened (datetime, UUID, Decimal, ...) to the column's type."""
    if value is None:
        return value
    try:
        python_type = column_type.python_type
    except NotImplementedError:
        return value
    if isinstance(value, python_type):
        return value
    try:
        return msgspec.convert(value, python_type)
    except (msgspec.ValidationError, TypeError) as e:
        logger.debug("Keeping raw cached value %r, cannot convert to %s: %s", value, python_type, e)
        return value


def build_instance(model: Type, data: Dict[str, Any], plan: Optional[RelationPlan] = None) -> Any:
    """
    Build a mapped instance from a flat record without calling its constructor.

    Column attributes present in the data are set first, then the relationships
    named in the plan, recursively. Relationship data outside the plan is ignored.
    The result is a transient instance, use ``session.merge()`` to attach it.
    """
    mapper = get_mapper(model)
    instance = mapper.class_manager.new_instance()
    plan = plan or {}

    for attr in mapper.column_attrs:
        if attr.key in data:
            setattr(instance, attr.key, _coerce(attr.columns[0].type, data[attr.key]))

    for name, nested_plan in plan.items():
        if name not in data:
            continue
        relationship = mapper.relationships[name]
        target = relationship.mapper.class_
        value = data[name]
        if value is None:
            if not relationship.uselist:
                setattr(instance, name, None)
        elif relationship.uselist:
            setattr(instance, name, [build_instance(target, item, nested_plan) for item in value])
        else:
            setattr(instance, name, build_instance(target, value, nested_plan))
    return instance


def hydrate(model: Type, data: Any) -> HydratedResult:
    """
    Rebuild a cached snapshot into mapped instances.

    Returns:
        None for an absent snapshot, a Page for paged snapshots, a list of
        instances for list snapshots, otherwise a single instance
    """
    if data is None:
        return None

    plan = relation_plan(model)

    if is_page_snapshot(data):
        return Page(
            items=[build_instance(model, item, plan) for item in data["items"]],
            total_count=data["total_count"],
        )

    if isinstance(data, list):
        return [build_instance(model, item, plan) for item in data]

    if isinstance(data, dict):
        return build_instance(model, data, plan)

    logger.warning("Cannot hydrate %s from cached value of type %s", model.__name__, type(data).__name__)
    return None
