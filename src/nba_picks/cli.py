"""CLI entrypoint for nba-picks."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

from nba_picks.entitlement import EntitlementGate
from nba_picks.errors import CLIError, PicksError
from nba_picks.http_client import JsonHttpClient
from nba_picks.kv_store import JsonFileKeyValueStore
from nba_picks.odds_normalize import BOOKMAKER_MODES, normalize_snapshot
from nba_picks.pipeline import PickPipeline, build_pipeline, resolve_date
from nba_picks.runtime_config import load_runtime_config, set_current_runtime_config
from nba_picks.settings import Settings
from nba_picks.time_utils import date_key

Handler = Callable[[argparse.Namespace, PickPipeline], Awaitable[Any]]


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, sort_keys=True, indent=2, ensure_ascii=False, default=str))


async def _cmd_recommend(args: argparse.Namespace, pipeline: PickPipeline) -> Any:
    result = await pipeline.get_recommendations(args.date or None)
    return result.to_dict()


async def _cmd_analyze(args: argparse.Namespace, pipeline: PickPipeline) -> Any:
    result = await pipeline.get_single_game_analysis(args.game_id, args.date or None)
    return result.to_dict()


async def _cmd_games(args: argparse.Namespace, pipeline: PickPipeline) -> Any:
    target = resolve_date(args.date or None, today=pipeline.today())
    provider, games = await pipeline.load_games(target)
    return {
        "date": date_key(target),
        "provider": provider,
        "games": [game.to_dict() for game in games],
    }


async def _cmd_odds(args: argparse.Namespace, pipeline: PickPipeline) -> Any:
    if pipeline.odds_source is None:
        raise CLIError("odds source is not configured")
    snapshot = await pipeline.odds_source.get_odds_snapshot()
    odds = normalize_snapshot(
        snapshot.events,
        mode=args.mode or pipeline.settings.bookmaker_mode,
        priority=pipeline.settings.bookmaker_priority_keys,
    )
    return {"meta": snapshot.meta(), "odds": [row.to_dict() for row in odds]}


def _cmd_subscription(args: argparse.Namespace, settings: Settings) -> Any:
    gate = EntitlementGate(
        JsonFileKeyValueStore(settings.store_path),
        settings.free_daily_limit,
        settings.target_timezone,
    )
    if args.action == "activate":
        return gate.activate(args.user_id, days=args.days or settings.subscription_days).to_dict()
    return gate.status(args.user_id)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nba-picks")
    parser.add_argument(
        "--config",
        default="",
        help="Path to runtime config TOML (default: config/runtime.toml).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
    )
    subparsers = parser.add_subparsers(dest="command")

    recommend = subparsers.add_parser("recommend", help="Top picks per market for a date.")
    recommend.add_argument("--date", default="", help="YYYYMMDD or YYYY-MM-DD.")
    recommend.add_argument("--top-n", type=int, default=0, help="Picks per market type.")
    recommend.set_defaults(func=_cmd_recommend)

    analyze = subparsers.add_parser("analyze", help="Analyze one game.")
    analyze.add_argument("game_id")
    analyze.add_argument("--date", default="")
    analyze.set_defaults(func=_cmd_analyze)

    games = subparsers.add_parser("games", help="Normalized schedule for a date.")
    games.add_argument("--date", default="")
    games.set_defaults(func=_cmd_games)

    odds = subparsers.add_parser("odds", help="Normalized league odds snapshot.")
    odds.add_argument("--mode", default="", choices=("", *BOOKMAKER_MODES))
    odds.set_defaults(func=_cmd_odds)

    subscription = subparsers.add_parser("subscription", help="Local subscription records.")
    subscription.add_argument("action", choices=("status", "activate"))
    subscription.add_argument("user_id")
    subscription.add_argument("--days", type=int, default=0)
    subscription.set_defaults(local_func=_cmd_subscription)
    return parser


def _settings_for(args: argparse.Namespace, settings: Settings) -> Settings:
    top_n = getattr(args, "top_n", 0)
    if top_n and top_n > 0:
        return settings.model_copy(update={"top_n_per_type": top_n})
    return settings


async def _run(handler: Handler, args: argparse.Namespace, settings: Settings) -> Any:
    async with JsonHttpClient(
        timeout_s=settings.http_timeout_s, max_attempts=settings.http_max_attempts
    ) as http:
        pipeline = build_pipeline(settings, http)
        return await handler(args, pipeline)


def main(argv: list[str] | None = None) -> int:
    """Run the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    func = getattr(args, "func", None)
    local_func = getattr(args, "local_func", None)
    if func is None and local_func is None:
        parser.print_help()
        return 0

    config_path = Path(args.config).expanduser() if args.config else None
    try:
        runtime_config = load_runtime_config(config_path)
    except RuntimeError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    try:
        set_current_runtime_config(runtime_config)
        settings = _settings_for(args, Settings.from_runtime(runtime_config))
        try:
            if local_func is not None:
                payload = local_func(args, settings)
            else:
                payload = asyncio.run(_run(func, args, settings))
        except (PicksError, FileNotFoundError, ValueError) as exc:
            print(str(exc), file=sys.stderr)
            return 2
        _print_json(payload)
        return 0
    finally:
        set_current_runtime_config(None)


if __name__ == "__main__":
    raise SystemExit(main())
