"""Attribute casts: convert raw column values to Python values on read.

Cast names: int, float, bool, str, json, datetime. json values are
serialized on write so they can live in TEXT columns.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from cti.shared.utils.datetime import ensure_utc

CAST_TYPES = frozenset({"int", "float", "bool", "str", "json", "datetime"})


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value)))


def _from_json(value: Any) -> Any:
    if isinstance(value, (str, bytes, bytearray)):
        return json.loads(value)
    return value


_READERS = {
    "int": int,
    "float": float,
    "bool": _to_bool,
    "str": str,
    "json": _from_json,
    "datetime": _to_datetime,
}


def validate_casts(casts: dict[str, str], model: str) -> None:
    """Raise ValueError if any cast name is unknown."""
    unknown = sorted({kind for kind in casts.values() if kind not in CAST_TYPES})
    if unknown:
        raise ValueError(
            f"Unknown cast type(s) {unknown} on {model}; use one of {sorted(CAST_TYPES)}"
        )


def cast_for_read(kind: str, value: Any) -> Any:
    """Return value converted for the given cast; None passes through."""
    if value is None:
        return None
    return _READERS[kind](value)


def cast_for_write(kind: str, value: Any) -> Any:
    """Return a value assigned by user code prepared for storage; only json needs conversion.

    Every json value is encoded, strings included. Rows read from the
    database bypass this and are stored as they are.
    """
    if value is None or kind != "json":
        return value
    return json.dumps(value)
