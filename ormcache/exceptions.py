"""Exceptions raised by ormcache."""


class CacheError(Exception):
    """Base class for ormcache errors."""


class WriteResultError(CacheError):
    """Raised when a write through the data source produced no record to cache."""

    def __init__(self, entity, operation, message=None):
        self.entity = entity
        self.operation = operation
        self.message = message or f"{operation} on {entity} returned no record"
        super().__init__(self.message)


class UnboundInstanceError(CacheError):
    """Raised when an instance-scoped operation is called on a coordinator with no bound instance."""

    def __init__(self, entity, operation, message=None):
        self.entity = entity
        self.operation = operation
        self.message = message or (
            f"{operation}() must be called on a coordinator bound to a {entity} instance, "
            f"use coordinator.for_instance(instance).{operation}()"
        )
        super().__init__(self.message)
