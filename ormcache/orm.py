"""
SQLAlchemy integration for ormcache.

Helpers to name entity types, read identities and take flat snapshots
of mapped instances.
"""

import logging
from typing import Any, Dict, FrozenSet, List, Optional, Type

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import Mapper

logger = logging.getLogger("ormcache")


def get_mapper(model_class: Type) -> Mapper:
    """
    Get the SQLAlchemy mapper of a model class.

    Raises:
        ValueError: If the class is not a mapped SQLAlchemy model
    """
    try:
        mapper = sa_inspect(model_class)
    except NoInspectionAvailable:
        mapper = None
    if not isinstance(mapper, Mapper):
        raise ValueError(
            f"Class {getattr(model_class, '__name__', model_class)} is not recognized as a SQLAlchemy model. "
            "Please ensure you're passing a mapped model class."
        )
    return mapper


def get_entity_name(model_class: Type) -> str:
    """Entity name of a SQLAlchemy model: its table name."""
    get_mapper(model_class)
    if hasattr(model_class, '__table__'):
        return model_class.__table__.name
    if hasattr(model_class, '__tablename__'):
        return model_class.__tablename__
    # Fallback to class name in lowercase
    return model_class.__name__.lower()


def get_primary_key_names(model_class: Type) -> List[str]:
    """Attribute names of the model's primary key columns."""
    mapper = get_mapper(model_class)
    names = [mapper.get_property_by_column(column).key for column in mapper.primary_key]
    if not names:
        raise ValueError(f"Model {model_class.__name__} has no primary key")
    return names


def get_identity(instance: Any) -> Any:
    """
    Primary key of a mapped instance.

    Works for transient, detached and persistent instances.

    Returns:
        The primary key value, or a tuple of values for composite keys
    """
    state = sa_inspect(instance)
    identity = state.mapper.primary_key_from_instance(instance)
    if len(identity) == 1:
        return identity[0]
    return tuple(identity)


def snapshot_of(instance: Any, _path: Optional[FrozenSet[int]] = None) -> Dict[str, Any]:
    """
    Flat snapshot of a mapped instance.

    Contains the column attributes that are loaded and the relationships that
    are loaded, as nested snapshots. Nothing is lazy loaded. An instance already
    on the current path (a back reference) is left out to break the cycle.
    """
    state = sa_inspect(instance)
    mapper = state.mapper
    loaded = state.dict
    path = (_path or frozenset()) | {id(instance)}

    data: Dict[str, Any] = {}
    for attr in mapper.column_attrs:
        if attr.key in loaded:
            data[attr.key] = loaded[attr.key]

    for relationship in mapper.relationships:
        if relationship.key not in loaded:
            continue
        value = loaded[relationship.key]
        if value is None:
            data[relationship.key] = None
        elif relationship.uselist:
            data[relationship.key] = [
                snapshot_of(item, path) for item in value if id(item) not in path
            ]
        elif id(value) not in path:
            data[relationship.key] = snapshot_of(value, path)
    return data
