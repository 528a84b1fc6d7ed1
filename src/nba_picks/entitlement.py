"""Subscription status and the free-tier daily usage gate."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from nba_picks.errors import EntitlementError, UnauthorizedError
from nba_picks.kv_store import KeyValueStore
from nba_picks.time_utils import (
    DEFAULT_TARGET_ZONE,
    date_key,
    iso_z,
    parse_iso_z,
    today_in_zone,
    utc_now,
)
from nba_picks.util.parsing import safe_int

logger = logging.getLogger(__name__)

SUBSCRIPTION_PREFIX = "subscription:"
USAGE_PREFIX = "usage:"


@dataclass(frozen=True)
class SubscriptionRecord:
    user_id: str
    active: bool = False
    expires_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "active": self.active,
            "expiresAt": iso_z(self.expires_at) if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, user_id: str, raw: Any) -> SubscriptionRecord:
        if not isinstance(raw, dict):
            return cls(user_id=user_id)
        expires_raw = raw.get("expiresAt")
        expires_at = parse_iso_z(expires_raw) if isinstance(expires_raw, str) else None
        return cls(user_id=user_id, active=bool(raw.get("active")), expires_at=expires_at)


def is_paid(record: SubscriptionRecord | None, now: datetime) -> bool:
    """Active and either open-ended or expiring after ``now``."""
    if record is None or not record.active:
        return False
    return record.expires_at is None or record.expires_at > now


def _require_user(user_id: str | None) -> str:
    value = (user_id or "").strip()
    if not value:
        raise UnauthorizedError("Login required.")
    return value


class EntitlementGate:
    def __init__(
        self,
        store: KeyValueStore,
        free_daily_limit: int = 1,
        timezone: str = DEFAULT_TARGET_ZONE,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.free_daily_limit = max(0, int(free_daily_limit))
        self.timezone = timezone
        self._clock = clock

    def subscription(self, user_id: str) -> SubscriptionRecord:
        return SubscriptionRecord.from_dict(
            user_id, self.store.get(f"{SUBSCRIPTION_PREFIX}{user_id}")
        )

    def status(self, user_id: str | None) -> dict[str, Any]:
        """``{"isPaid", "active", "expiresAt"}``; anonymous callers are simply unpaid."""
        value = (user_id or "").strip()
        record = self.subscription(value) if value else SubscriptionRecord(user_id="")
        payload = record.to_dict()
        return {
            "isPaid": is_paid(record, self._clock()),
            "active": payload["active"],
            "expiresAt": payload["expiresAt"],
        }

    def require_paid(self, user_id: str | None) -> str:
        user = _require_user(user_id)
        if not is_paid(self.subscription(user), self._clock()):
            raise EntitlementError("A paid subscription is required.")
        return user

    def _usage_key(self, user_id: str) -> str:
        day = today_in_zone(self.timezone, now=self._clock())
        return f"{USAGE_PREFIX}{user_id}:{date_key(day)}"

    def usage_today(self, user_id: str) -> int:
        return safe_int(self.store.get(self._usage_key(user_id))) or 0

    def check_single_game(self, user_id: str | None) -> str:
        """Admit a single-game analysis; free users consume one unit of today's quota.

        The counter is incremented before the analysis runs, so a failed
        analysis still counts against the free quota.
        """
        user = _require_user(user_id)
        if is_paid(self.subscription(user), self._clock()):
            return user
        key = self._usage_key(user)
        used = safe_int(self.store.get(key)) or 0
        if used >= self.free_daily_limit:
            raise EntitlementError(
                f"Free users can analyze {self.free_daily_limit} game(s) per day."
            )
        self.store.put(key, used + 1)
        logger.debug("free usage for %s now %d/%d", user, used + 1, self.free_daily_limit)
        return user

    def activate(self, user_id: str | None, days: int = 30) -> SubscriptionRecord:
        """Mark ``user_id`` paid for ``days`` days from now."""
        user = _require_user(user_id)
        record = SubscriptionRecord(
            user_id=user,
            active=True,
            expires_at=self._clock() + timedelta(days=int(days)),
        )
        self.store.put(f"{SUBSCRIPTION_PREFIX}{user}", record.to_dict())
        logger.info("activated subscription for %s until %s", user, record.to_dict()["expiresAt"])
        return record
