"""Shared odds conversion and rounding helpers."""

from __future__ import annotations

import math
from collections.abc import Iterable
from statistics import median


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with ties going up, unlike the built-in banker's rounding."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def round_to_half(value: float) -> float:
    """Round to the nearest half point, ties going up."""
    return math.floor(value * 2 + 0.5) / 2


def implied_prob_from_american(price: int | float | None) -> float | None:
    """Convert American odds to implied probability."""
    if price is None or not math.isfinite(price):
        return None
    if price > 0:
        return 100.0 / (price + 100.0)
    if price < 0:
        value = -price
        return value / (value + 100.0)
    return None


def normalize_prob_pair(first_prob: float, second_prob: float) -> tuple[float, float]:
    """Normalize a two-way implied-probability pair to no-vig."""
    total = first_prob + second_prob
    if total <= 0:
        return 0.5, 0.5
    return first_prob / total, second_prob / total


def no_vig_pair(
    first_price: int | float | None, second_price: int | float | None
) -> tuple[float, float] | None:
    """No-vig probabilities for a two-way market, or None when either side is unpriced."""
    first = implied_prob_from_american(first_price)
    second = implied_prob_from_american(second_price)
    if first is None or second is None:
        return None
    return normalize_prob_pair(first, second)


def median_or_none(values: Iterable[float | None]) -> float | None:
    cleaned = [value for value in values if value is not None]
    if not cleaned:
        return None
    return float(median(cleaned))
