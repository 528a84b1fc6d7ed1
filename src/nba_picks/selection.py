"""Deterministic top-N selection that spreads picks across distinct games."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from nba_picks.models import CandidatePick, PickType

TYPE_ORDER: tuple[PickType, ...] = (PickType.ML, PickType.SPREAD, PickType.TOTAL)


def _rank_key(pick: CandidatePick) -> tuple[float, float]:
    return (-pick.confidence, -pick.edge_percent)


def rank_candidates(pool: Iterable[CandidatePick]) -> list[CandidatePick]:
    """Stable sort: confidence descending, then edge percent descending."""
    return sorted(pool, key=_rank_key)


def select_top_n(
    pool: Iterable[CandidatePick], n: int, used_games: set[str]
) -> list[CandidatePick]:
    """Select ``n`` picks from one type's pool, preferring unseen games.

    Pass 1 skips games already used by an earlier type or by this selection.
    Pass 2 allows games used by earlier types. Pass 3 allows repeats of a game
    within this type and, once the pool is exhausted, exact duplicates of
    chosen picks. The chosen game ids are added to ``used_games``.
    """
    target = max(0, int(n))
    ranked = rank_candidates(pool)
    selected: list[CandidatePick] = []
    chosen: set[int] = set()
    local_games: set[str] = set()

    def take(index: int, pick: CandidatePick) -> None:
        selected.append(pick)
        chosen.add(index)
        local_games.add(pick.game_id)

    for index, pick in enumerate(ranked):
        if len(selected) >= target:
            break
        if pick.game_id not in used_games and pick.game_id not in local_games:
            take(index, pick)

    for index, pick in enumerate(ranked):
        if len(selected) >= target:
            break
        if index not in chosen and pick.game_id not in local_games:
            take(index, pick)

    for index, pick in enumerate(ranked):
        if len(selected) >= target:
            break
        if index not in chosen:
            take(index, pick)

    if selected and len(selected) < target:
        repeats = rank_candidates(selected)
        position = 0
        while len(selected) < target:
            selected.append(repeats[position % len(repeats)])
            position += 1

    used_games.update(pick.game_id for pick in selected)
    return selected


def select_diverse_picks(
    pools: Mapping[PickType, Iterable[CandidatePick]], n: int = 3
) -> list[CandidatePick]:
    """Top ``n`` per type, processing ML, then SPREAD, then TOTAL with one shared game set."""
    used_games: set[str] = set()
    picks: list[CandidatePick] = []
    for pick_type in TYPE_ORDER:
        picks.extend(select_top_n(pools.get(pick_type, ()), n, used_games))
    return picks


def pools_by_type(candidates: Iterable[CandidatePick]) -> dict[PickType, list[CandidatePick]]:
    pools: dict[PickType, list[CandidatePick]] = {pick_type: [] for pick_type in TYPE_ORDER}
    for pick in candidates:
        pools.setdefault(pick.type, []).append(pick)
    return pools
