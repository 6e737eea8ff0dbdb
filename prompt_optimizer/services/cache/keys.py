"""
Cache Key Derivation

Deterministic cache keys from an operation identity and its arguments.
"""

import dataclasses
import hashlib
import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import Any, Callable, Dict
from uuid import UUID

from pydantic import BaseModel


def _tagged(kind: str, payload: Any) -> Dict[str, Any]:
    return {f"__{kind}__": payload}


def _type_name(value: Any) -> str:
    cls = type(value)
    return f"{cls.__module__}.{cls.__qualname__}"


def _sort_key(item: Any) -> str:
    return json.dumps(item, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _normalize(value: Any) -> Any:
    """
    Reduce a value to a JSON structure that keeps its type distinct.

    Only None, bool, int, float, str and lists stay as they are. Every
    other supported value becomes a single-key object naming its kind, so
    ``1`` and ``"1"``, a UUID and its string, or a date and its ISO text
    never normalise to the same structure. Mappings become sorted lists of
    ``[key, value]`` pairs, which keeps non-string keys apart from their
    string forms.
    """
    if isinstance(value, Enum):
        return _tagged("enum", [_type_name(value), _normalize(value.value)])
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, BaseModel):
        return _tagged(
            "model", [_type_name(value), _normalize(value.model_dump(mode="json"))]
        )
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _tagged(
            "dataclass", [_type_name(value), _normalize(dataclasses.asdict(value))]
        )
    if isinstance(value, dict):
        pairs = [[_normalize(k), _normalize(v)] for k, v in value.items()]
        return _tagged("dict", sorted(pairs, key=lambda pair: _sort_key(pair[0])))
    if isinstance(value, list):
        return [_normalize(v) for v in value]
    if isinstance(value, tuple):
        return _tagged("tuple", [_normalize(v) for v in value])
    if isinstance(value, (set, frozenset)):
        return _tagged("set", sorted((_normalize(v) for v in value), key=_sort_key))
    # datetime is a date subclass
    if isinstance(value, datetime):
        return _tagged("datetime", value.isoformat())
    if isinstance(value, date):
        return _tagged("date", value.isoformat())
    if isinstance(value, time):
        return _tagged("time", value.isoformat())
    if isinstance(value, UUID):
        return _tagged("uuid", str(value))
    if isinstance(value, Decimal):
        return _tagged("decimal", str(value))
    if isinstance(value, PurePath):
        return _tagged("path", str(value))
    if isinstance(value, (bytes, bytearray)):
        return _tagged("bytes", bytes(value).hex())

    raise TypeError(
        f"Cannot derive a cache key from value of type {type(value).__name__}"
    )


def canonical_json(value: Any) -> str:
    """Serialize ``value`` in its normalised form with compact separators."""
    return _sort_key(_normalize(value))


def derive_key(operation: str, *args: Any, **kwargs: Any) -> str:
    """
    Derive a cache key for one invocation of ``operation``.

    Equal arguments give equal keys regardless of mapping key order.

    Args:
        operation: Stable identity of the cached operation
        *args: Positional arguments of the invocation
        **kwargs: Keyword arguments of the invocation

    Returns:
        ``"<operation>:<sha256 hex digest>"``

    Raises:
        TypeError: If an argument has no stable representation
    """
    payload = canonical_json({"args": list(args), "kwargs": kwargs})
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{operation}:{digest}"


def operation_name(func: Callable[..., Any]) -> str:
    """Default operation identity of a callable: ``module.qualname``."""
    module = getattr(func, "__module__", None) or "unknown"
    qualname = getattr(func, "__qualname__", None) or getattr(func, "__name__", "call")
    return f"{module}.{qualname}"
