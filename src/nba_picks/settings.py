"""Application settings for nba-picks."""

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from nba_picks.line_history import EstimateDefaults
from nba_picks.odds_normalize import BookmakerMode
from nba_picks.runtime_config import RuntimeConfig, current_runtime_config

ENV_PREFIX = "NBA_PICKS_"
ODDS_KEY_ENV_NAMES = ("ODDS_API_KEY", "THE_ODDS_API_KEY", "NBA_PICKS_ODDS_API_KEY")


class Settings(BaseSettings):
    """Runtime settings for upstream sources, estimation and pick selection."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    odds_api_key: str = Field(
        default="",
        validation_alias=AliasChoices(*ODDS_KEY_ENV_NAMES),
    )
    odds_api_base_url: str = "https://api.the-odds-api.com/v4"
    odds_api_timeout_s: float = 8.0
    odds_api_sport_key: str = "basketball_nba"
    odds_api_regions: str = "us"
    odds_api_markets: str = "h2h,spreads,totals"
    odds_api_odds_format: str = "american"
    odds_api_date_format: str = "iso"
    bookmaker_mode: BookmakerMode = "best"
    bookmaker_priority: str = ""
    odds_cache_ttl_s: float = 1800.0
    odds_cache_stale_ttl_s: float = 21600.0
    estimate_default_spread_abs: float = 2.5
    estimate_default_total: float = 224.0
    estimate_default_price: int = -110
    estimate_unmatched_lines: bool = True
    line_history_ttl_s: float = 0.0
    schedule_providers: str = "nba_cdn,espn"
    schedule_cache_ttl_s: float = 60.0
    schedule_cache_stale_ttl_s: float = 21600.0
    nba_cdn_schedule_url: str = (
        "https://cdn.nba.com/static/json/staticData/scheduleLeagueV2_1.json"
    )
    espn_scoreboard_url: str = (
        "https://site.api.espn.com/apis/site/v2/sports/basketball/nba/scoreboard"
    )
    http_timeout_s: float = 8.0
    http_max_attempts: int = 2
    target_timezone: str = "Asia/Seoul"
    analysis_concurrency: int = 4
    top_n_per_type: int = 3
    recent_form_games: int = 10
    free_daily_limit: int = 1
    subscription_days: int = 30
    store_path: str = "data/store.json"

    @property
    def bookmaker_priority_keys(self) -> tuple[str, ...]:
        return tuple(part.strip() for part in self.bookmaker_priority.split(",") if part.strip())

    @property
    def schedule_provider_names(self) -> tuple[str, ...]:
        return tuple(
            part.strip().lower() for part in self.schedule_providers.split(",") if part.strip()
        )

    @property
    def estimate_defaults(self) -> EstimateDefaults:
        return EstimateDefaults(
            spread_abs=self.estimate_default_spread_abs,
            total=self.estimate_default_total,
            price=self.estimate_default_price,
        )

    @staticmethod
    def _parse_key_file(path: Path, *, allowed_names: set[str]) -> str:
        try:
            raw = path.read_text(encoding="utf-8").strip()
        except OSError:
            return ""
        if not raw:
            return ""
        first_line = raw.splitlines()[0].strip()
        if not first_line:
            return ""
        if "=" in first_line:
            key_name, value = first_line.split("=", 1)
            if key_name.strip().upper() not in allowed_names:
                return ""
            return value.strip().strip('"').strip("'")
        return first_line.strip().strip('"').strip("'")

    @classmethod
    def _resolve_odds_key(cls, runtime: RuntimeConfig) -> str:
        for name in ODDS_KEY_ENV_NAMES:
            direct = os.environ.get(name, "").strip()
            if direct:
                return direct
        config_root = runtime.config_path.parent.resolve()
        for candidate in runtime.odds_api_key_files:
            candidate_path = Path(candidate).expanduser()
            path = (
                candidate_path
                if candidate_path.is_absolute()
                else (config_root / candidate_path).resolve()
            )
            if not path.exists() or not path.is_file():
                continue
            parsed = cls._parse_key_file(path, allowed_names=set(ODDS_KEY_ENV_NAMES))
            if parsed:
                return parsed
        return ""

    @classmethod
    def from_runtime(cls, runtime: RuntimeConfig | None = None) -> "Settings":
        """Construct settings from runtime config; NBA_PICKS_* env vars win over the file."""
        runtime = runtime or current_runtime_config()
        values = {
            name: value
            for name, value in runtime.settings_values().items()
            if f"{ENV_PREFIX}{name.upper()}" not in os.environ
        }
        return cls(odds_api_key=cls._resolve_odds_key(runtime), **values)
