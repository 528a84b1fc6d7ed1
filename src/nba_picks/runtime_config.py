"""Runtime configuration loader (config-first, env-overrides)."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "runtime.toml"
DEFAULT_LOCAL_OVERRIDE_PATH = Path(__file__).resolve().parents[2] / "config" / "runtime.local.toml"


@dataclass(frozen=True)
class RuntimeConfig:
    """Materialized runtime configuration."""

    config_path: Path
    store_path: Path
    odds_api_base_url: str
    odds_api_timeout_s: float
    odds_api_sport_key: str
    odds_api_regions: str
    odds_api_markets: str
    odds_api_key_files: tuple[str, ...]
    bookmaker_mode: str
    bookmaker_priority: tuple[str, ...]
    odds_cache_ttl_s: float
    odds_cache_stale_ttl_s: float
    estimate_default_spread_abs: float
    estimate_default_total: float
    estimate_default_price: int
    estimate_unmatched_lines: bool
    line_history_ttl_s: float
    schedule_providers: tuple[str, ...]
    schedule_cache_ttl_s: float
    schedule_cache_stale_ttl_s: float
    http_timeout_s: float
    http_max_attempts: int
    target_timezone: str
    analysis_concurrency: int
    top_n_per_type: int
    recent_form_games: int
    free_daily_limit: int
    subscription_days: int

    def settings_values(self) -> dict[str, Any]:
        """Project onto :class:`nba_picks.settings.Settings` field names."""
        return {
            "store_path": str(self.store_path),
            "odds_api_base_url": self.odds_api_base_url,
            "odds_api_timeout_s": self.odds_api_timeout_s,
            "odds_api_sport_key": self.odds_api_sport_key,
            "odds_api_regions": self.odds_api_regions,
            "odds_api_markets": self.odds_api_markets,
            "bookmaker_mode": self.bookmaker_mode,
            "bookmaker_priority": ",".join(self.bookmaker_priority),
            "odds_cache_ttl_s": self.odds_cache_ttl_s,
            "odds_cache_stale_ttl_s": self.odds_cache_stale_ttl_s,
            "estimate_default_spread_abs": self.estimate_default_spread_abs,
            "estimate_default_total": self.estimate_default_total,
            "estimate_default_price": self.estimate_default_price,
            "estimate_unmatched_lines": self.estimate_unmatched_lines,
            "line_history_ttl_s": self.line_history_ttl_s,
            "schedule_providers": ",".join(self.schedule_providers),
            "schedule_cache_ttl_s": self.schedule_cache_ttl_s,
            "schedule_cache_stale_ttl_s": self.schedule_cache_stale_ttl_s,
            "http_timeout_s": self.http_timeout_s,
            "http_max_attempts": self.http_max_attempts,
            "target_timezone": self.target_timezone,
            "analysis_concurrency": self.analysis_concurrency,
            "top_n_per_type": self.top_n_per_type,
            "recent_form_games": self.recent_form_games,
            "free_daily_limit": self.free_daily_limit,
            "subscription_days": self.subscription_days,
        }


_CURRENT_RUNTIME_CONFIG: RuntimeConfig | None = None


def set_current_runtime_config(config: RuntimeConfig | None) -> None:
    global _CURRENT_RUNTIME_CONFIG
    _CURRENT_RUNTIME_CONFIG = config


def current_runtime_config() -> RuntimeConfig:
    config = _CURRENT_RUNTIME_CONFIG
    if config is not None:
        return config
    loaded = load_runtime_config()
    set_current_runtime_config(loaded)
    return loaded


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for key, value in overlay.items():
        existing = out.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            out[key] = _deep_merge(existing, value)
        else:
            out[key] = value
    return out


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        payload = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RuntimeError(f"failed reading runtime config: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise RuntimeError(f"invalid runtime config TOML: {path}") from exc
    if not isinstance(payload, dict):
        raise RuntimeError(f"runtime config root must be a table: {path}")
    return payload


def _as_table(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise RuntimeError(f"runtime config section [{key}] must be a table")
    return value


def _as_str(value: Any, *, default: str) -> str:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return default


def _as_bool(value: Any, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    return default


def _as_int(value: Any, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def _as_float(value: Any, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return default
    return default


def _as_csv_list(values: Any, *, default: tuple[str, ...]) -> tuple[str, ...]:
    if isinstance(values, list):
        cleaned = [str(value).strip() for value in values if str(value).strip()]
        return tuple(cleaned) if cleaned else default
    if isinstance(values, str):
        cleaned = [part.strip() for part in values.split(",") if part.strip()]
        return tuple(cleaned) if cleaned else default
    return default


def _resolve_path(raw: Any, *, default: str, base_dir: Path) -> Path:
    value = _as_str(raw, default=default)
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return path


def load_runtime_config(config_path: Path | None = None) -> RuntimeConfig:
    """Load runtime config from `config/runtime.toml` plus optional local override."""
    source = (config_path or DEFAULT_CONFIG_PATH).expanduser().resolve()
    if not source.exists():
        raise RuntimeError(f"runtime config file not found: {source}")

    payload = _read_toml(source)
    if source == DEFAULT_CONFIG_PATH and DEFAULT_LOCAL_OVERRIDE_PATH.exists():
        payload = _deep_merge(payload, _read_toml(DEFAULT_LOCAL_OVERRIDE_PATH))

    paths = _as_table(payload, "paths")
    odds_api = _as_table(payload, "odds_api")
    estimates = _as_table(payload, "estimates")
    schedule = _as_table(payload, "schedule")
    http = _as_table(payload, "http")
    picks = _as_table(payload, "picks")
    entitlement = _as_table(payload, "entitlement")
    base_dir = source.parent

    return RuntimeConfig(
        config_path=source,
        store_path=_resolve_path(
            paths.get("store_path"),
            default="data/store.json",
            base_dir=base_dir,
        ),
        odds_api_base_url=_as_str(
            odds_api.get("base_url"),
            default="https://api.the-odds-api.com/v4",
        ),
        odds_api_timeout_s=_as_float(odds_api.get("timeout_s"), default=8.0),
        odds_api_sport_key=_as_str(odds_api.get("sport_key"), default="basketball_nba"),
        odds_api_regions=_as_str(odds_api.get("regions"), default="us"),
        odds_api_markets=_as_str(odds_api.get("markets"), default="h2h,spreads,totals"),
        odds_api_key_files=_as_csv_list(
            odds_api.get("key_files"),
            default=("ODDS_API_KEY.ignore", "ODDS_API_KEY"),
        ),
        bookmaker_mode=_as_str(odds_api.get("bookmaker_mode"), default="best"),
        bookmaker_priority=_as_csv_list(odds_api.get("bookmaker_priority"), default=()),
        odds_cache_ttl_s=_as_float(odds_api.get("cache_ttl_s"), default=1800.0),
        odds_cache_stale_ttl_s=_as_float(odds_api.get("cache_stale_ttl_s"), default=21600.0),
        estimate_default_spread_abs=_as_float(
            estimates.get("default_spread_abs"), default=2.5
        ),
        estimate_default_total=_as_float(estimates.get("default_total"), default=224.0),
        estimate_default_price=_as_int(estimates.get("default_price"), default=-110),
        estimate_unmatched_lines=_as_bool(estimates.get("unmatched_lines"), default=True),
        line_history_ttl_s=_as_float(estimates.get("history_ttl_s"), default=0.0),
        schedule_providers=_as_csv_list(
            schedule.get("providers"),
            default=("nba_cdn", "espn"),
        ),
        schedule_cache_ttl_s=_as_float(schedule.get("cache_ttl_s"), default=60.0),
        schedule_cache_stale_ttl_s=_as_float(schedule.get("cache_stale_ttl_s"), default=21600.0),
        http_timeout_s=_as_float(http.get("timeout_s"), default=8.0),
        http_max_attempts=_as_int(http.get("max_attempts"), default=2),
        target_timezone=_as_str(picks.get("target_timezone"), default="Asia/Seoul"),
        analysis_concurrency=_as_int(picks.get("analysis_concurrency"), default=4),
        top_n_per_type=_as_int(picks.get("top_n_per_type"), default=3),
        recent_form_games=_as_int(picks.get("recent_form_games"), default=10),
        free_daily_limit=_as_int(entitlement.get("free_daily_limit"), default=1),
        subscription_days=_as_int(entitlement.get("subscription_days"), default=30),
    )
