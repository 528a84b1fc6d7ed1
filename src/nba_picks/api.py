"""Success/error envelopes around the gated pipeline operations.

Every operation returns ``{"ok": True, ...}`` or
``{"ok": False, "error": message, "status": code}``; ``status`` comes from the
raised :class:`PicksError` subclass. Anything else is logged and reported as
a 500 without its message.
"""

from __future__ import annotations

import logging
from typing import Any

from nba_picks.entitlement import EntitlementGate
from nba_picks.errors import PicksError
from nba_picks.history import PickHistory
from nba_picks.http_client import excerpt
from nba_picks.pipeline import PickPipeline

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal error."


def ok_envelope(result: Any = None, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"ok": True}
    if result is not None:
        payload["result"] = result
    payload.update(extra)
    return payload


def error_envelope(exc: Exception) -> dict[str, Any]:
    if not isinstance(exc, PicksError):
        return {"ok": False, "error": INTERNAL_ERROR_MESSAGE, "status": 500}
    return {"ok": False, "error": excerpt(str(exc)), "status": int(exc.status)}


async def recommendations(
    pipeline: PickPipeline,
    gate: EntitlementGate,
    user_id: str | None,
    date: str | None = None,
) -> dict[str, Any]:
    try:
        gate.require_paid(user_id)
        result = await pipeline.get_recommendations(date)
    except PicksError as exc:
        logger.info("recommendations rejected (%s): %s", exc.status, exc)
        return error_envelope(exc)
    except Exception as exc:
        logger.exception("recommendations failed")
        return error_envelope(exc)
    return ok_envelope(result.to_dict())


async def single_game_analysis(
    pipeline: PickPipeline,
    gate: EntitlementGate,
    user_id: str | None,
    game_id: str,
    date: str | None = None,
) -> dict[str, Any]:
    try:
        gate.check_single_game(user_id)
        result = await pipeline.get_single_game_analysis(game_id, date)
    except PicksError as exc:
        logger.info("analysis of %s rejected (%s): %s", game_id, exc.status, exc)
        return error_envelope(exc)
    except Exception as exc:
        logger.exception("analysis of %s failed", game_id)
        return error_envelope(exc)
    return ok_envelope(result.to_dict())


def subscription_status(gate: EntitlementGate, user_id: str | None) -> dict[str, Any]:
    return gate.status(user_id)


def history_list(
    history: PickHistory, gate: EntitlementGate, user_id: str | None, limit: Any = None
) -> dict[str, Any]:
    try:
        user = gate.require_paid(user_id)
    except PicksError as exc:
        return error_envelope(exc)
    entries = history.list(user) if limit is None else history.list(user, limit)
    return ok_envelope(items=[entry.to_dict() for entry in entries])


def history_save(
    history: PickHistory,
    gate: EntitlementGate,
    user_id: str | None,
    date: str,
    payload: Any,
) -> dict[str, Any]:
    try:
        user = gate.require_paid(user_id)
        entry = history.save(user, date, payload)
    except PicksError as exc:
        return error_envelope(exc)
    return ok_envelope(id=entry.id)


def history_delete(
    history: PickHistory, gate: EntitlementGate, user_id: str | None, entry_id: Any
) -> dict[str, Any]:
    try:
        user = gate.require_paid(user_id)
        history.delete(user, entry_id)
    except PicksError as exc:
        return error_envelope(exc)
    return ok_envelope()
