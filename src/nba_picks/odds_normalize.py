"""Odds event normalization: bookmaker quotes into one representative line per market.

Input events follow The Odds API v4 shape::

    {"id", "commence_time", "home_team", "away_team",
     "bookmakers": [{"key", "title", "markets": [{"key", "outcomes": [...]}]}]}

Two selection modes are supported. ``best`` walks bookmakers in priority
order and takes each market from the first bookmaker that quotes it.
``consensus`` takes the median of every numeric field across all real
bookmakers. The synthetic ``estimated`` bookmaker injected by
:func:`enrich_with_estimates` is only ever used when no real bookmaker quotes
the market.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Literal

from nba_picks.line_history import EstimateDefaults, LineHistory
from nba_picks.models import MarketOdds, MoneylineQuote, SpreadLine, TotalLine
from nba_picks.odds_math import median_or_none
from nba_picks.time_utils import parse_iso_z, utc_now_str
from nba_picks.util.parsing import safe_float, safe_str, to_price

logger = logging.getLogger(__name__)

BookmakerMode = Literal["best", "consensus"]
BOOKMAKER_MODES: tuple[str, ...] = ("best", "consensus")

ESTIMATED_KEY = "estimated"
ESTIMATED_TITLE = "ESTIMATED"
CONSENSUS_PROVIDER = "CONSENSUS"
MARKET_KEYS = ("h2h", "spreads", "totals")


def _bookmakers(event: Mapping[str, Any]) -> list[dict[str, Any]]:
    rows = event.get("bookmakers")
    if not isinstance(rows, list):
        return []
    return [row for row in rows if isinstance(row, dict)]


def _market(bookmaker: Mapping[str, Any], key: str) -> dict[str, Any] | None:
    markets = bookmaker.get("markets")
    if not isinstance(markets, list):
        return None
    for market in markets:
        if isinstance(market, dict) and market.get("key") == key:
            return market
    return None


def _outcome(market: Mapping[str, Any] | None, name: str) -> dict[str, Any] | None:
    if market is None:
        return None
    outcomes = market.get("outcomes")
    if not isinstance(outcomes, list):
        return None
    for outcome in outcomes:
        if isinstance(outcome, dict) and outcome.get("name") == name:
            return outcome
    return None


def _market_keys(bookmaker: Mapping[str, Any]) -> set[str]:
    markets = bookmaker.get("markets")
    if not isinstance(markets, list):
        return set()
    return {
        str(market.get("key"))
        for market in markets
        if isinstance(market, dict) and market.get("key") in MARKET_KEYS
    }


def is_estimated_bookmaker(bookmaker: Mapping[str, Any]) -> bool:
    return bookmaker.get("key") == ESTIMATED_KEY or bookmaker.get("title") == ESTIMATED_TITLE


def bookmaker_label(bookmaker: Mapping[str, Any]) -> str:
    return safe_str(bookmaker.get("title")) or safe_str(bookmaker.get("key")) or ""


def order_bookmakers(
    bookmakers: Iterable[Mapping[str, Any]], priority: Sequence[str] = ()
) -> list[dict[str, Any]]:
    """Order bookmakers for best-line selection.

    Priority keys come first in priority order, then the remaining real
    bookmakers by descending market coverage (ties keep provider order), then
    the estimated bookmaker.
    """
    rows = [dict(row) for row in bookmakers if isinstance(row, Mapping)]
    real = [row for row in rows if not is_estimated_bookmaker(row)]
    estimated = [row for row in rows if is_estimated_bookmaker(row)]
    rank = {key.strip().lower(): index for index, key in enumerate(priority) if key.strip()}

    def sort_key(item: tuple[int, dict[str, Any]]) -> tuple[int, int, int]:
        position, row = item
        key = str(row.get("key", "")).lower()
        if key in rank:
            return (0, rank[key], position)
        return (1, -len(_market_keys(row)), position)

    ordered = [row for _, row in sorted(enumerate(real), key=sort_key)]
    return ordered + estimated


def _market_meta(market: Mapping[str, Any] | None) -> dict[str, Any]:
    meta = market.get("_meta") if market else None
    return meta if isinstance(meta, dict) else {}


def extract_spread(bookmaker: Mapping[str, Any], *, home: str, away: str) -> SpreadLine | None:
    """Spread points/prices from outcomes named exactly like the event's teams."""
    market = _market(bookmaker, "spreads")
    home_outcome = _outcome(market, home)
    away_outcome = _outcome(market, away)
    home_point = safe_float(home_outcome.get("point")) if home_outcome else None
    away_point = safe_float(away_outcome.get("point")) if away_outcome else None
    if home_point is None and away_point is None:
        return None
    estimated = is_estimated_bookmaker(bookmaker)
    return SpreadLine(
        home_point=home_point,
        away_point=away_point,
        provider=bookmaker_label(bookmaker),
        home_price=to_price(home_outcome.get("price")) if home_outcome else None,
        away_price=to_price(away_outcome.get("price")) if away_outcome else None,
        estimated=estimated,
        source_detail=_market_meta(market).get("sourceDetail") if estimated else None,
    )


def extract_total(bookmaker: Mapping[str, Any]) -> TotalLine | None:
    """Total point from the Over outcome, else the Under outcome."""
    market = _market(bookmaker, "totals")
    over = _outcome(market, "Over")
    under = _outcome(market, "Under")
    over_point = safe_float(over.get("point")) if over else None
    under_point = safe_float(under.get("point")) if under else None
    point = over_point if over_point is not None else under_point
    if point is None:
        return None
    estimated = is_estimated_bookmaker(bookmaker)
    return TotalLine(
        point=point,
        provider=bookmaker_label(bookmaker),
        over_price=to_price(over.get("price")) if over else None,
        under_price=to_price(under.get("price")) if under else None,
        estimated=estimated,
        source_detail=_market_meta(market).get("sourceDetail") if estimated else None,
    )


def extract_moneyline(
    bookmaker: Mapping[str, Any], *, home: str, away: str
) -> MoneylineQuote | None:
    market = _market(bookmaker, "h2h")
    home_outcome = _outcome(market, home)
    away_outcome = _outcome(market, away)
    home_price = to_price(home_outcome.get("price")) if home_outcome else None
    away_price = to_price(away_outcome.get("price")) if away_outcome else None
    if home_price is None and away_price is None:
        return None
    return MoneylineQuote(
        home_price=home_price, away_price=away_price, provider=bookmaker_label(bookmaker)
    )


def _event_teams(event: Mapping[str, Any]) -> tuple[str, str]:
    return safe_str(event.get("home_team")) or "", safe_str(event.get("away_team")) or ""


def first_real_spread_abs(event: Mapping[str, Any]) -> float | None:
    """Absolute spread from the first real bookmaker (provider order) quoting one."""
    home, away = _event_teams(event)
    for bookmaker in _bookmakers(event):
        if is_estimated_bookmaker(bookmaker):
            continue
        spread = extract_spread(bookmaker, home=home, away=away)
        if spread is None:
            continue
        point = spread.home_point if spread.home_point is not None else spread.away_point
        return abs(point) if point is not None else None
    return None


def first_real_total(event: Mapping[str, Any]) -> float | None:
    for bookmaker in _bookmakers(event):
        if is_estimated_bookmaker(bookmaker):
            continue
        total = extract_total(bookmaker)
        if total is not None:
            return total.point
    return None


def has_real_market(event: Mapping[str, Any], key: str) -> bool:
    for bookmaker in _bookmakers(event):
        if is_estimated_bookmaker(bookmaker):
            continue
        market = _market(bookmaker, key)
        if market and isinstance(market.get("outcomes"), list) and market["outcomes"]:
            return True
    return False


def _update_league_averages(events: Sequence[Mapping[str, Any]], history: LineHistory) -> None:
    spreads = [value for value in map(first_real_spread_abs, events) if value and value > 0]
    totals = [value for value in map(first_real_total, events) if value and value > 0]
    history.update_league(
        spread_abs=sum(spreads) / len(spreads) if spreads else None,
        total=sum(totals) / len(totals) if totals else None,
        sample_count=max(len(spreads), len(totals)),
    )


def _record_real_lines(events: Sequence[Mapping[str, Any]], history: LineHistory) -> None:
    for event in events:
        home, away = _event_teams(event)
        if not home or not away:
            continue
        spread_abs = first_real_spread_abs(event)
        if spread_abs is not None and spread_abs > 0:
            history.record_real(home, spread_abs=spread_abs)
            history.record_real(away, spread_abs=spread_abs)
        total = first_real_total(event)
        if total is not None and total > 0:
            history.record_real(home, total=total)
            history.record_real(away, total=total)


def _with_estimated_bookmaker(
    event: dict[str, Any], history: LineHistory, defaults: EstimateDefaults
) -> dict[str, Any]:
    home, away = _event_teams(event)
    if not home or not away:
        return event
    need_spreads = not has_real_market(event, "spreads")
    need_totals = not has_real_market(event, "totals")
    if not need_spreads and not need_totals:
        return event
    bookmakers = _bookmakers(event)
    if any(is_estimated_bookmaker(row) for row in bookmakers):
        return event

    markets: list[dict[str, Any]] = []
    meta: dict[str, Any] = {"provider": ESTIMATED_TITLE}
    if need_spreads:
        estimate = history.estimate_spread_abs(home, away)
        markets.append(
            {
                "key": "spreads",
                "outcomes": [
                    {"name": home, "point": -estimate.value, "price": defaults.price},
                    {"name": away, "point": estimate.value, "price": defaults.price},
                ],
                "_meta": {
                    "provider": ESTIMATED_TITLE,
                    "sourceDetail": str(estimate.source_detail),
                },
            }
        )
        history.record_estimate(home, spread_abs=estimate.value)
        history.record_estimate(away, spread_abs=estimate.value)
        meta["spreadsSource"] = str(estimate.source_detail)
    else:
        meta["spreadsSource"] = "REAL"
    if need_totals:
        estimate = history.estimate_total(home, away)
        markets.append(
            {
                "key": "totals",
                "outcomes": [
                    {"name": "Over", "point": estimate.value, "price": defaults.price},
                    {"name": "Under", "point": estimate.value, "price": defaults.price},
                ],
                "_meta": {
                    "provider": ESTIMATED_TITLE,
                    "sourceDetail": str(estimate.source_detail),
                },
            }
        )
        history.record_estimate(home, total=estimate.value)
        history.record_estimate(away, total=estimate.value)
        meta["totalsSource"] = str(estimate.source_detail)
    else:
        meta["totalsSource"] = "REAL"

    synthetic = {
        "key": ESTIMATED_KEY,
        "title": ESTIMATED_TITLE,
        "last_update": utc_now_str(),
        "markets": markets,
        "_meta": meta,
    }
    return {**event, "bookmakers": [*bookmakers, synthetic]}


def enrich_with_estimates(
    events: Iterable[Mapping[str, Any]],
    history: LineHistory,
    defaults: EstimateDefaults | None = None,
) -> list[dict[str, Any]]:
    """Append an estimated bookmaker to events missing spreads and/or totals.

    Order matters: league averages come from this fetch's real samples, real
    lines are recorded before any estimate is computed, and estimates are
    appended without touching real bookmakers.
    """
    rows = [dict(event) for event in events if isinstance(event, Mapping)]
    resolved = defaults or history.defaults
    _update_league_averages(rows, history)
    _record_real_lines(rows, history)
    enriched = [_with_estimated_bookmaker(event, history, resolved) for event in rows]
    estimated = sum(
        1 for event in enriched if any(is_estimated_bookmaker(bm) for bm in _bookmakers(event))
    )
    if estimated:
        logger.info("estimated lines injected for %d of %d odds events", estimated, len(rows))
    return enriched


def _first_of(ordered: Sequence[Mapping[str, Any]], extract) -> tuple[Any, str | None]:
    for bookmaker in ordered:
        value = extract(bookmaker)
        if value is not None:
            return value, safe_str(bookmaker.get("key"))
    return None, None


def _consensus_spread(
    rows: Sequence[Mapping[str, Any]], *, home: str, away: str
) -> SpreadLine | None:
    lines = [extract_spread(row, home=home, away=away) for row in rows]
    lines = [line for line in lines if line is not None]
    if not lines:
        return None
    home_price = median_or_none(line.home_price for line in lines)
    away_price = median_or_none(line.away_price for line in lines)
    return SpreadLine(
        home_point=median_or_none(line.home_point for line in lines),
        away_point=median_or_none(line.away_point for line in lines),
        provider=CONSENSUS_PROVIDER,
        home_price=to_price(home_price),
        away_price=to_price(away_price),
    )


def _consensus_total(rows: Sequence[Mapping[str, Any]]) -> TotalLine | None:
    lines = [line for line in map(extract_total, rows) if line is not None]
    if not lines:
        return None
    over_price = median_or_none(line.over_price for line in lines)
    under_price = median_or_none(line.under_price for line in lines)
    point = median_or_none(line.point for line in lines)
    if point is None:
        return None
    return TotalLine(
        point=point,
        provider=CONSENSUS_PROVIDER,
        over_price=to_price(over_price),
        under_price=to_price(under_price),
    )


def _consensus_moneyline(
    rows: Sequence[Mapping[str, Any]], *, home: str, away: str
) -> MoneylineQuote | None:
    quotes = [extract_moneyline(row, home=home, away=away) for row in rows]
    quotes = [quote for quote in quotes if quote is not None]
    if not quotes:
        return None
    return MoneylineQuote(
        home_price=to_price(median_or_none(quote.home_price for quote in quotes)),
        away_price=to_price(median_or_none(quote.away_price for quote in quotes)),
        provider=CONSENSUS_PROVIDER,
    )


def normalize_event(
    event: Mapping[str, Any],
    *,
    mode: BookmakerMode = "best",
    priority: Sequence[str] = (),
) -> MarketOdds:
    """Reduce one odds event to a :class:`MarketOdds`."""
    if mode not in BOOKMAKER_MODES:
        raise ValueError(f"unknown bookmaker mode: {mode}")
    home, away = _event_teams(event)
    ordered = order_bookmakers(_bookmakers(event), priority)
    estimated_rows = [row for row in ordered if is_estimated_bookmaker(row)]

    def spread_of(row):
        return extract_spread(row, home=home, away=away)

    def moneyline_of(row):
        return extract_moneyline(row, home=home, away=away)

    if mode == "best":
        spread, spread_ref = _first_of(ordered, spread_of)
        total, total_ref = _first_of(ordered, extract_total)
        moneyline, moneyline_ref = _first_of(ordered, moneyline_of)
        bookmaker_ref = spread_ref or total_ref or moneyline_ref
    else:
        real_rows = [row for row in ordered if not is_estimated_bookmaker(row)]
        spread = _consensus_spread(real_rows, home=home, away=away)
        total = _consensus_total(real_rows)
        moneyline = _consensus_moneyline(real_rows, home=home, away=away)
        bookmaker_ref = CONSENSUS_PROVIDER if (spread or total or moneyline) else None
        if spread is None:
            spread, spread_ref = _first_of(estimated_rows, spread_of)
            bookmaker_ref = bookmaker_ref or spread_ref
        if total is None:
            total, total_ref = _first_of(estimated_rows, extract_total)
            bookmaker_ref = bookmaker_ref or total_ref

    return MarketOdds(
        event_id=safe_str(event.get("id")) or "",
        home_team=home,
        away_team=away,
        commence_time=parse_iso_z(str(event.get("commence_time") or "")),
        spread=spread,
        total=total,
        moneyline=moneyline,
        bookmaker_ref=bookmaker_ref,
    )


def normalize_snapshot(
    events: Iterable[Mapping[str, Any]],
    *,
    mode: BookmakerMode = "best",
    priority: Sequence[str] = (),
) -> list[MarketOdds]:
    """Normalize every event carrying both team names, preserving provider order."""
    normalized: list[MarketOdds] = []
    for event in events:
        if not isinstance(event, Mapping):
            continue
        home, away = _event_teams(event)
        if not home or not away:
            logger.debug("dropping odds event without team names: %s", event.get("id"))
            continue
        normalized.append(normalize_event(event, mode=mode, priority=priority))
    return normalized
