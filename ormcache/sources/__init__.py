"""Data source package for ormcache."""

from .base import DataSource, QuerySpec
from .sqlalchemy import SQLAlchemySource

__all__ = ["DataSource", "QuerySpec", "SQLAlchemySource"]
