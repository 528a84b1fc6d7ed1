"""Shared parsing helpers for tolerant numeric/string coercion."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any


def safe_float(value: Any) -> float | None:
    """Parse number-like input into a finite float, returning None when invalid."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            parsed = float(raw)
        except ValueError:
            return None
    else:
        return None
    return parsed if math.isfinite(parsed) else None


def safe_int(value: Any) -> int | None:
    """Parse number-like input into int, returning None when invalid."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        if raw.startswith("+"):
            raw = raw[1:]
        try:
            return int(raw)
        except ValueError:
            return None
    return None


def to_price(value: Any) -> int | None:
    """Parse American-odds integer price."""
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(round(parsed))


def safe_str(value: Any) -> str | None:
    """Return a trimmed non-empty string for str/int/float input, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        raw = value.strip()
        return raw or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return str(int(value)) if value.is_integer() else str(value)
    return None


def first_present(record: Mapping[str, Any] | None, fields: Iterable[str]) -> str | None:
    """Return the first field (in rule order) that yields a usable string."""
    if not isinstance(record, Mapping):
        return None
    for field in fields:
        value = safe_str(record.get(field))
        if value is not None:
            return value
    return None


def first_mapping(record: Mapping[str, Any] | None, fields: Iterable[str]) -> dict[str, Any]:
    """Return the first field holding a mapping, or an empty dict."""
    if not isinstance(record, Mapping):
        return {}
    for field in fields:
        value = record.get(field)
        if isinstance(value, Mapping):
            return dict(value)
    return {}
