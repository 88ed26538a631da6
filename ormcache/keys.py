"""
Cache key derivation.

Entity keys identify a single record: ``[entity, identifier]``.
Query keys identify a cached query result: ``[entity, "query", digest]``,
where the digest is computed over a canonical form of the query spec,
or ``[entity, "query", override_key]`` when a custom key is given.
"""

import hashlib
import logging
from typing import Any, Dict, List, Mapping, Optional

import msgspec.json

from .utils import keyify_identifier, normalize_value

logger = logging.getLogger("ormcache")

CacheKey = List[str]

QUERY_SEGMENT = "query"

# Fields that do not change the result of a query
VOLATILE_QUERY_FIELDS = frozenset({
    "session",
    "transaction",
    "logging",
    "benchmark",
    "replacements",
    "bind_params",
})


def entity_key(entity: str, identifier: Any) -> CacheKey:
    """Key for a single entity looked up by identifier."""
    return [entity, keyify_identifier(identifier)]


def normalize_query_spec(spec: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop volatile fields and sort mapping keys recursively."""
    if not spec:
        return {}
    cleaned = {k: v for k, v in spec.items() if k not in VOLATILE_QUERY_FIELDS}
    return normalize_value(cleaned)


def _encode_unknown(obj: Any) -> str:
    return str(obj)


def digest_query_spec(spec: Optional[Mapping[str, Any]]) -> str:
    """
    Compute a stable SHA-256 digest of a query spec.

    Two specs that differ only in mapping key order or in volatile
    fields produce the same digest.
    """
    canonical = msgspec.json.encode(normalize_query_spec(spec), enc_hook=_encode_unknown)
    return hashlib.sha256(canonical).hexdigest()


def query_key(entity: str, spec: Optional[Mapping[str, Any]] = None,
              override_key: Optional[str] = None) -> CacheKey:
    """
    Key for a cached query result.

    Args:
        entity: Entity type name
        spec: Query spec (where, order_by, limit, offset, include, ...)
        override_key: Custom key used verbatim instead of the digest

    Returns:
        The key segments
    """
    if override_key is not None:
        return [entity, QUERY_SEGMENT, str(override_key)]
    digest = digest_query_spec(spec)
    logger.debug("Derived query key for %s: %s", entity, digest)
    return [entity, QUERY_SEGMENT, digest]
