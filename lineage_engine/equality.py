"""
Value equality shared by conflict detection, scoring and callers.

Two values are equal when they are structurally equal:
- ints and floats compare numerically (35 == 35.0); bool is not a number
- None equals only None; NaN equals NaN
- lists and tuples compare element-wise, in order
- mappings compare by keys and values, sets by membership
- pydantic models compare by their dumped data
"""

import math
from enum import Enum
from typing import Any, Hashable, Mapping

from pydantic import BaseModel


def value_key(value: Any) -> Hashable:
    """Canonical hashable key: value_key(a) == value_key(b) iff values_equal(a, b)."""
    if value is None:
        return ("none",)
    if isinstance(value, Enum):
        return value_key(value.value)
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, int):
        return ("num", value)
    if isinstance(value, float):
        if math.isnan(value):
            return ("num", "nan")
        if value.is_integer():
            return ("num", int(value))
        return ("num", value)
    if isinstance(value, str):
        return ("str", value)
    if isinstance(value, BaseModel):
        return value_key(value.model_dump())
    if isinstance(value, Mapping):
        items = [(value_key(k), value_key(v)) for k, v in value.items()]
        return ("map", tuple(sorted(items, key=repr)))
    if isinstance(value, (list, tuple)):
        return ("seq", tuple(value_key(v) for v in value))
    if isinstance(value, (set, frozenset)):
        return ("set", tuple(sorted((value_key(v) for v in value), key=repr)))
    try:
        hash(value)
    except TypeError:
        return ("repr", type(value).__name__, repr(value))
    return ("scalar", type(value).__name__, value)


def values_equal(a: Any, b: Any) -> bool:
    """Structural equality of two field values."""
    return value_key(a) == value_key(b)


def value_order(value: Any) -> str:
    """Stable sort key for values, consistent with values_equal."""
    return repr(value_key(value))
