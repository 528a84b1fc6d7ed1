"""Per-user saved recommendation history."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from nba_picks.errors import InvalidDateError, PicksError
from nba_picks.kv_store import KeyValueStore
from nba_picks.time_utils import iso_z, utc_now
from nba_picks.util.parsing import safe_int

HISTORY_PREFIX = "history:"
SEQUENCE_PREFIX = "history-seq:"
DEFAULT_LIMIT = 20
MAX_LIMIT = 200

_DATE_KEY_RE = re.compile(r"^\d{8}$")
_ENTRY_ID_RE = re.compile(r"\d{10}")


class InvalidHistoryRequest(PicksError):
    status = 400


@dataclass(frozen=True)
class HistoryEntry:
    id: int
    date: str
    created_at: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "createdAt": self.created_at,
            "payload": self.payload,
        }


def clamp_limit(raw: Any, default: int = DEFAULT_LIMIT) -> int:
    parsed = safe_int(raw)
    if parsed is None:
        parsed = default
    return min(max(parsed, 1), MAX_LIMIT)


class PickHistory:
    def __init__(self, store: KeyValueStore, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.store = store
        self._clock = clock

    def _entry_key(self, user_id: str, entry_id: int) -> str:
        return f"{HISTORY_PREFIX}{user_id}:{entry_id:010d}"

    def save(self, user_id: str, date: str, payload: Any) -> HistoryEntry:
        day = str(date or "").strip()
        if not _DATE_KEY_RE.match(day):
            raise InvalidDateError("date must be YYYYMMDD.")
        if not isinstance(payload, dict) or not payload:
            raise InvalidHistoryRequest("payload is required.")
        sequence_key = f"{SEQUENCE_PREFIX}{user_id}"
        entry_id = (safe_int(self.store.get(sequence_key)) or 0) + 1
        self.store.put(sequence_key, entry_id)
        entry = HistoryEntry(
            id=entry_id, date=day, created_at=iso_z(self._clock()), payload=payload
        )
        self.store.put(self._entry_key(user_id, entry_id), entry.to_dict())
        return entry

    def list(self, user_id: str, limit: Any = DEFAULT_LIMIT) -> list[HistoryEntry]:
        """Newest first; ``limit`` is clamped to 1..200."""
        prefix = f"{HISTORY_PREFIX}{user_id}:"
        # Another user id may extend this one past a colon ("a" vs "a:b").
        keys = [
            key for key in self.store.keys(prefix) if _ENTRY_ID_RE.fullmatch(key[len(prefix) :])
        ]
        entries: list[HistoryEntry] = []
        for key in reversed(keys[-clamp_limit(limit):]):
            raw = self.store.get(key)
            if not isinstance(raw, dict):
                continue
            entries.append(
                HistoryEntry(
                    id=int(raw["id"]),
                    date=str(raw["date"]),
                    created_at=str(raw["createdAt"]),
                    payload=dict(raw["payload"]),
                )
            )
        return entries

    def delete(self, user_id: str, entry_id: Any) -> bool:
        parsed = safe_int(entry_id)
        if parsed is None or parsed <= 0:
            raise InvalidHistoryRequest("id is required.")
        return self.store.delete(self._entry_key(user_id, parsed))
