# src/strata/core/canonical.py
"""
Canonical JSON serialization for deterministic key derivation.

Combinators that derive bookkeeping keys from structured input (e.g. the
versioning target for (reference, version, salt)) must produce the same key
on every machine and every Python version. We serialize per RFC 8785/JCS
(rfc8785 package) before hashing.

IMPORTANT: NaN and Infinity are strictly REJECTED, not silently converted.
"""

from __future__ import annotations

import math
from typing import Any

import rfc8785

from strata.contracts.reference import Reference


def _normalize(obj: Any) -> Any:
    """Convert references to strings and reject non-finite floats."""
    if isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            raise ValueError(f"Cannot canonicalize non-finite float: {obj}")
        return obj
    if isinstance(obj, Reference):
        return str(obj)
    if isinstance(obj, dict):
        return {str(k): _normalize(v) for k, v in obj.items()}
    if isinstance(obj, list | tuple):
        return [_normalize(v) for v in obj]
    return obj


def canonical_json(obj: Any) -> bytes:
    """Produce RFC 8785 canonical JSON bytes.

    Raises:
        ValueError: If data contains NaN or Infinity
        TypeError: If data contains types that cannot be serialized
    """
    result: bytes = rfc8785.dumps(_normalize(obj))
    return result
