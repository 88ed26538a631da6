from typing import Any, Tuple, Union


def keyify_identifier(identifier: Union[Any, Tuple[Any, ...]]) -> str:
    """
    Convert an entity identifier to a string key segment.

    Composite identifiers (tuples/lists) are joined with "-".
    """
    if not isinstance(identifier, (list, tuple)):
        return str(identifier)
    if len(identifier) == 1:
        return str(identifier[0])
    return "-".join(str(id_) for id_ in identifier)


def normalize_value(value: Any) -> Any:
    """
    Normalize a value for consistent hashing.
    - Sorts dictionary keys (recursively)
    - Sorts sets and frozensets
    - Keeps lists and tuples in their order, ordering is meaningful in queries
    """
    if isinstance(value, dict):
        return {
            str(k): normalize_value(v)
            for k, v in sorted(value.items(), key=lambda item: str(item[0]))
        }
    if isinstance(value, (list, tuple)):
        return [normalize_value(v) for v in value]
    if isinstance(value, (set, frozenset)):
        items = [normalize_value(v) for v in value]
        try:
            return sorted(items)
        except TypeError:  # If items aren't comparable
            return sorted(items, key=repr)
    return value
