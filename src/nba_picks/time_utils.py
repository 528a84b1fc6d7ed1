"""Shared timestamp and calendar-date helpers."""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from nba_picks.errors import InvalidDateError

DEFAULT_TARGET_ZONE = "Asia/Seoul"

_COMPACT_DATE_RE = re.compile(r"^\d{8}$")
_HYPHEN_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_now() -> datetime:
    """Return current UTC time with second precision."""
    return datetime.now(UTC).replace(microsecond=0)


def iso_z(value: datetime) -> str:
    """Format a datetime as ISO-8601 with trailing Z in UTC."""
    normalized = value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
    return normalized.isoformat().replace("+00:00", "Z")


def utc_now_str() -> str:
    """Return current UTC timestamp in ISO-Z format."""
    return iso_z(utc_now())


def parse_iso_z(value: str) -> datetime | None:
    """Parse an ISO timestamp and normalize to UTC."""
    raw = value.strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def today_in_zone(zone: str, *, now: datetime | None = None) -> date:
    """Return the calendar date in ``zone`` for ``now`` (default: current time)."""
    current = now or utc_now()
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)
    return current.astimezone(ZoneInfo(zone)).date()


def local_date(value: datetime, zone: str) -> date:
    """Return the calendar date of an instant in ``zone``."""
    return value.astimezone(ZoneInfo(zone)).date()


def parse_date_param(raw: str | None) -> date | None:
    """Parse ``YYYYMMDD`` or ``YYYY-MM-DD``; empty input yields None.

    Any other non-empty input raises :class:`InvalidDateError`.
    """
    value = (raw or "").strip()
    if not value:
        return None
    if _COMPACT_DATE_RE.match(value):
        value = f"{value[:4]}-{value[4:6]}-{value[6:8]}"
    if not _HYPHEN_DATE_RE.match(value):
        raise InvalidDateError("Invalid date. Use YYYY-MM-DD or YYYYMMDD.")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidDateError(f"Invalid date: {raw}") from exc


def date_key(value: date) -> str:
    """Return the compact YYYYMMDD key for a date."""
    return value.strftime("%Y%m%d")


def next_day(value: date) -> date:
    return value + timedelta(days=1)
