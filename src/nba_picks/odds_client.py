"""HTTP client for The Odds API v4 NBA odds snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from nba_picks.errors import OddsAPIError, UpstreamUnavailable
from nba_picks.http_client import JsonHttpClient
from nba_picks.line_history import LineHistory
from nba_picks.odds_normalize import enrich_with_estimates
from nba_picks.response_cache import ResponseCache
from nba_picks.settings import Settings
from nba_picks.time_utils import iso_z, utc_now
from nba_picks.util.parsing import safe_int

logger = logging.getLogger(__name__)

FEATURED_MARKETS = {"h2h", "spreads", "totals"}


def parse_csv(raw_value: str | None) -> list[str]:
    """Parse comma-separated values."""
    if not raw_value:
        return []
    return [item.strip() for item in raw_value.split(",") if item.strip()]


@dataclass(frozen=True)
class UsageMeta:
    """Request quota reported by the x-requests-* response headers."""

    requests_remaining: int | None = None
    requests_used: int | None = None
    requests_last: int | None = None

    @classmethod
    def from_headers(cls, headers: dict[str, str]) -> UsageMeta:
        return cls(
            requests_remaining=safe_int(headers.get("x-requests-remaining")),
            requests_used=safe_int(headers.get("x-requests-used")),
            requests_last=safe_int(headers.get("x-requests-last")),
        )

    def to_dict(self) -> dict[str, int | None]:
        return {
            "requestsRemaining": self.requests_remaining,
            "requestsUsed": self.requests_used,
            "requestsLast": self.requests_last,
        }


@dataclass(frozen=True)
class OddsSnapshot:
    """League-wide odds events plus fetch metadata."""

    events: list[dict[str, Any]]
    fetched_at: datetime
    usage: UsageMeta = field(default_factory=UsageMeta)
    source: str = "live"
    error: str | None = None

    def meta(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "fetchedAt": iso_z(self.fetched_at),
            "eventCount": len(self.events),
            "usage": self.usage.to_dict(),
            "error": self.error,
        }


class OddsSource(Protocol):
    async def get_odds_snapshot(self) -> OddsSnapshot: ...


class TheOddsApiClient:
    """Fetches the featured-markets snapshot and enriches it with estimated lines.

    Enrichment runs once per live fetch, before the snapshot is cached, so the
    line history only ever sees each upstream response once.
    """

    def __init__(
        self,
        settings: Settings,
        http: JsonHttpClient,
        *,
        history: LineHistory | None = None,
        cache: ResponseCache | None = None,
    ) -> None:
        self.settings = settings
        self._http = http
        self._history = history
        self._cache = cache
        self._base_url = settings.odds_api_base_url.rstrip("/")

    def _params(self) -> dict[str, Any]:
        markets = parse_csv(self.settings.odds_api_markets) or sorted(FEATURED_MARKETS)
        invalid = sorted(set(markets) - FEATURED_MARKETS)
        if invalid:
            raise ValueError(f"invalid featured markets: {','.join(invalid)}")
        return {
            "regions": self.settings.odds_api_regions,
            "markets": ",".join(markets),
            "oddsFormat": self.settings.odds_api_odds_format,
            "dateFormat": self.settings.odds_api_date_format,
        }

    def _cache_key(self) -> str:
        params = self._params()
        query = "&".join(f"{key}={params[key]}" for key in sorted(params))
        return f"odds:{self.settings.odds_api_sport_key}?{query}"

    async def _fetch_live(self) -> tuple[list[dict[str, Any]], UsageMeta]:
        api_key = str(self.settings.odds_api_key).strip()
        if not api_key:
            raise OddsAPIError(
                "missing Odds API key; set ODDS_API_KEY or THE_ODDS_API_KEY, or configure "
                "odds_api.key_files in runtime.toml"
            )
        params = self._params()
        params["apiKey"] = api_key
        url = f"{self._base_url}/sports/{self.settings.odds_api_sport_key}/odds"
        try:
            response = await self._http.get_json(
                url, params=params, timeout_s=self.settings.odds_api_timeout_s
            )
        except UpstreamUnavailable as exc:
            raise OddsAPIError(str(exc)) from exc
        if not isinstance(response.data, list):
            raise OddsAPIError("odds payload is not a list of events")
        usage = UsageMeta.from_headers(response.headers)
        events = [event for event in response.data if isinstance(event, dict)]
        if self._history is not None:
            events = enrich_with_estimates(events, self._history)
        logger.info(
            "fetched %d odds events (remaining=%s, last_cost=%s)",
            len(events),
            usage.requests_remaining,
            usage.requests_last,
        )
        return events, usage

    async def get_odds_snapshot(self) -> OddsSnapshot:
        if self._cache is None:
            events, usage = await self._fetch_live()
            return OddsSnapshot(events=events, fetched_at=utc_now(), usage=usage)
        cached = await self._cache.get_or_fetch(self._cache_key(), self._fetch_live)
        events, usage = cached.value
        return OddsSnapshot(
            events=events,
            fetched_at=cached.fetched_at,
            usage=usage,
            source=cached.source,
            error=cached.error,
        )
