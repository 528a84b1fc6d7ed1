"""Human-readable one-liners for candidate picks."""

from __future__ import annotations

from nba_picks.models import CandidatePick, PickSide, PickType

_LABELS = {
    (PickType.ML, PickSide.HOME): "Moneyline: home win",
    (PickType.ML, PickSide.AWAY): "Moneyline: away win",
    (PickType.SPREAD, PickSide.HOME): "Spread: home",
    (PickType.SPREAD, PickSide.AWAY): "Spread: away",
    (PickType.TOTAL, PickSide.OVER): "Total: over",
    (PickType.TOTAL, PickSide.UNDER): "Total: under",
}


def pick_label(pick: CandidatePick) -> str:
    label = _LABELS.get((pick.type, pick.side), pick.type.value)
    if pick.line is None:
        return label
    if pick.type is PickType.SPREAD:
        return f"{label} {pick.line:+g}"
    return f"{label} {pick.line:g}"


def explain_pick(pick: CandidatePick) -> str:
    """One line, e.g.

    ``Spread: home -4.5 (confidence 71 · edge 3.8% · model 53.8% · market 50.0%) ...``
    """
    parts = [pick_label(pick)]
    stats = [
        f"confidence {pick.confidence}",
        f"edge {pick.edge_percent:.1f}%",
        f"model {pick.model_probability * 100:.1f}%",
        f"market {pick.market_probability * 100:.1f}%",
    ]
    parts.append(f"({' · '.join(stats)})")
    notes = [note for note in (pick.reason, *pick.notes) if note]
    if notes:
        parts.append(f"- {'; '.join(notes)}")
    if pick.provider:
        parts.append(f"· source: {pick.provider}")
    return " ".join(parts)
