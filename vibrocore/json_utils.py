"""Strict JSON output for alert events and engine counters.

Engine records carry numpy scalars and arrays, enum members and the odd
non-finite float (an EMA variance on pathological input, for example).
:func:`to_json_line` is the one path used to write them, so the output never
contains ``NaN`` or ``Infinity`` tokens.
"""

from __future__ import annotations

import enum
import json
import math
from collections.abc import Mapping
from typing import Any

import numpy as np

__all__ = [
    "plain",
    "sanitize_for_json",
    "to_json_line",
]


def sanitize_for_json(obj: Any) -> tuple[Any, int]:
    """Convert *obj* to plain Python and null out non-finite floats.

    Returns the converted value and how many non-finite floats were replaced.
    """
    replaced = 0

    def _convert(value: Any) -> Any:
        nonlocal replaced
        if isinstance(value, np.ndarray):
            return [_convert(item) for item in value.tolist()]
        if isinstance(value, np.generic):
            value = value.item()
        if isinstance(value, enum.Enum):
            return _convert(value.value)
        if isinstance(value, float) and not math.isfinite(value):
            replaced += 1
            return None
        if isinstance(value, Mapping):
            return {str(key): _convert(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [_convert(item) for item in value]
        return value

    return _convert(obj), replaced


def plain(value: Any) -> Any:
    return sanitize_for_json(value)[0]


def to_json_line(value: Any) -> str:
    """Serialise *value* as one compact line of strict JSON (no trailing newline)."""
    return json.dumps(plain(value), ensure_ascii=False, allow_nan=False, separators=(",", ":"))
