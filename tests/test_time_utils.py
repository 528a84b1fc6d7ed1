from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from nba_picks.errors import InvalidDateError
from nba_picks.time_utils import (
    date_key,
    iso_z,
    local_date,
    next_day,
    parse_date_param,
    parse_iso_z,
    today_in_zone,
)


@pytest.mark.parametrize("raw", ["20250102", "2025-01-02", " 2025-01-02 "])
def test_parse_date_param_accepts_both_forms(raw: str) -> None:
    assert parse_date_param(raw) == date(2025, 1, 2)


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_parse_date_param_empty_is_none(raw: str | None) -> None:
    assert parse_date_param(raw) is None


@pytest.mark.parametrize("raw", ["2025/01/02", "tomorrow", "20251302", "2025-02-30"])
def test_parse_date_param_rejects_garbage(raw: str) -> None:
    with pytest.raises(InvalidDateError) as excinfo:
        parse_date_param(raw)
    assert excinfo.value.status == 400


def test_today_in_zone_crosses_midnight() -> None:
    now = datetime(2025, 1, 1, 16, 30, tzinfo=UTC)
    assert today_in_zone("Asia/Seoul", now=now) == date(2025, 1, 2)
    assert today_in_zone("America/New_York", now=now) == date(2025, 1, 1)
    assert today_in_zone("UTC", now=now.replace(tzinfo=None)) == date(2025, 1, 1)


def test_iso_helpers() -> None:
    kst = timezone(timedelta(hours=9))
    assert iso_z(datetime(2025, 1, 2, 9, 30, tzinfo=kst)) == "2025-01-02T00:30:00Z"
    assert parse_iso_z("2025-01-02T00:30:00Z") == datetime(2025, 1, 2, 0, 30, tzinfo=UTC)
    assert parse_iso_z("not a time") is None
    assert parse_iso_z("  ") is None
    assert local_date(datetime(2025, 1, 2, 0, 30, tzinfo=UTC), "America/New_York") == date(
        2025, 1, 1
    )


def test_date_key_and_next_day() -> None:
    assert date_key(date(2025, 1, 2)) == "20250102"
    assert next_day(date(2024, 12, 31)) == date(2025, 1, 1)
