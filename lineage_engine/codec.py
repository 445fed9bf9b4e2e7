"""
JSON encoding of field values that keeps them equal under values_equal.

Plain JSON turns NaN into null, sets into lists and non-string dict keys
into strings. Those cases are written as tagged objects and rebuilt on
read. Values with no faithful JSON form are rejected.
"""

import json
import math
from enum import Enum
from typing import Any

from pydantic import BaseModel

from lineage_engine.equality import value_order
from lineage_engine.errors import ValueEncodingError

TAG = "__lineage__"


def encode_value(value: Any, field: str = "value") -> Any:
    """JSON-safe form of a field value."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Enum):
        return encode_value(value.value, field)
    if isinstance(value, float):
        if math.isfinite(value):
            return value
        return {TAG: "float", "repr": repr(value)}      # nan, inf, -inf
    if isinstance(value, BaseModel):
        return encode_value(value.model_dump(), field)
    if isinstance(value, dict):
        if all(isinstance(k, str) for k in value) and TAG not in value:
            return {k: encode_value(v, field) for k, v in value.items()}
        return {
            TAG: "map",
            "items": [[encode_value(k, field), encode_value(v, field)] for k, v in value.items()],
        }
    if isinstance(value, (list, tuple)):
        return [encode_value(v, field) for v in value]
    if isinstance(value, (set, frozenset)):
        # Sorted so a set re-encodes to the same text after a round trip.
        return {TAG: "set", "items": [encode_value(v, field) for v in sorted(value, key=value_order)]}
    raise ValueEncodingError(field, f"unsupported type {type(value).__name__}")


def _hashable(value: Any) -> Any:
    # Tuples and lists are equal under values_equal; keys and set members must hash.
    if isinstance(value, list):
        return tuple(_hashable(v) for v in value)
    if isinstance(value, set):
        return frozenset(value)
    return value


def decode_value(value: Any) -> Any:
    """Inverse of encode_value."""
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    if not isinstance(value, dict):
        return value

    tag = value.get(TAG)
    if tag == "float":
        return float(value["repr"])
    if tag == "set":
        return {_hashable(decode_value(v)) for v in value["items"]}
    if tag == "map":
        return {_hashable(decode_value(k)): decode_value(v) for k, v in value["items"]}
    return {k: decode_value(v) for k, v in value.items()}


def dumps(payload: Any) -> str:
    """Canonical JSON text. Raises ValueError on anything encode_value missed."""
    return json.dumps(payload, sort_keys=True, allow_nan=False)
