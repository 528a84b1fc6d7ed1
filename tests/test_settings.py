from pathlib import Path

import pytest
from pydantic import ValidationError

from nba_picks.runtime_config import load_runtime_config, set_current_runtime_config
from nba_picks.settings import ODDS_KEY_ENV_NAMES, Settings


def _clear_odds_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ODDS_KEY_ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def _write_config(path: Path, *extra: str) -> Path:
    path.write_text(
        "\n".join(
            [
                "[odds_api]",
                'key_files = ["ODDS_API_KEY"]',
                'bookmaker_priority = ["fanduel", "draftkings"]',
                "",
                "[picks]",
                "top_n_per_type = 2",
                'target_timezone = "America/New_York"',
                *extra,
            ]
        )
        + "\n",
        encoding="utf-8",
    )
    return path


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_odds_keys(monkeypatch)
    settings = Settings(_env_file=None)

    assert settings.odds_api_key == ""
    assert settings.odds_api_base_url == "https://api.the-odds-api.com/v4"
    assert settings.bookmaker_mode == "best"
    assert settings.bookmaker_priority_keys == ()
    assert settings.schedule_provider_names == ("nba_cdn", "espn")
    assert settings.target_timezone == "Asia/Seoul"
    assert settings.top_n_per_type == 3
    assert settings.estimate_unmatched_lines is True
    defaults = settings.estimate_defaults
    assert (defaults.spread_abs, defaults.total, defaults.price) == (2.5, 224.0, -110)


@pytest.mark.parametrize("name", ODDS_KEY_ENV_NAMES)
def test_settings_reads_odds_key_aliases(name: str, monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_odds_keys(monkeypatch)
    monkeypatch.setenv(name, "env-key")
    assert Settings(_env_file=None).odds_api_key == "env-key"


def test_settings_prefixed_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NBA_PICKS_TOP_N_PER_TYPE", "5")
    monkeypatch.setenv("NBA_PICKS_BOOKMAKER_PRIORITY", "fanduel, betmgm ,")
    monkeypatch.setenv("NBA_PICKS_SCHEDULE_PROVIDERS", "ESPN")
    settings = Settings(_env_file=None)
    assert settings.top_n_per_type == 5
    assert settings.bookmaker_priority_keys == ("fanduel", "betmgm")
    assert settings.schedule_provider_names == ("espn",)


def test_from_runtime_uses_file_values_and_key_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _clear_odds_keys(monkeypatch)
    monkeypatch.delenv("NBA_PICKS_TOP_N_PER_TYPE", raising=False)
    monkeypatch.chdir(tmp_path)
    config_path = _write_config(tmp_path / "runtime.toml")
    (tmp_path / "ODDS_API_KEY").write_text("ODDS_API_KEY='file-key'\n", encoding="utf-8")

    set_current_runtime_config(load_runtime_config(config_path))
    try:
        settings = Settings.from_runtime()
    finally:
        set_current_runtime_config(None)

    assert settings.odds_api_key == "file-key"
    assert settings.top_n_per_type == 2
    assert settings.target_timezone == "America/New_York"
    assert settings.bookmaker_priority_keys == ("fanduel", "draftkings")


def test_from_runtime_env_wins_over_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_odds_keys(monkeypatch)
    monkeypatch.setenv("ODDS_API_KEY", "env-key")
    monkeypatch.setenv("NBA_PICKS_TOP_N_PER_TYPE", "7")
    monkeypatch.chdir(tmp_path)
    config_path = _write_config(tmp_path / "runtime.toml")
    (tmp_path / "ODDS_API_KEY").write_text("file-key\n", encoding="utf-8")

    settings = Settings.from_runtime(load_runtime_config(config_path))

    assert settings.odds_api_key == "env-key"
    assert settings.top_n_per_type == 7
    assert settings.target_timezone == "America/New_York"


def test_key_file_with_foreign_name_is_ignored(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _clear_odds_keys(monkeypatch)
    monkeypatch.chdir(tmp_path)
    config_path = _write_config(tmp_path / "runtime.toml")
    (tmp_path / "ODDS_API_KEY").write_text("OPENAI_API_KEY=nope\n", encoding="utf-8")

    settings = Settings.from_runtime(load_runtime_config(config_path))
    assert settings.odds_api_key == ""


@pytest.mark.parametrize("mode", ["best", "consensus"])
def test_bookmaker_mode_accepts_known_modes(mode: str) -> None:
    assert Settings(_env_file=None, bookmaker_mode=mode).bookmaker_mode == mode


@pytest.mark.parametrize("mode", ["Consensus", "median", ""])
def test_bookmaker_mode_rejects_unknown_values_at_load(mode: str) -> None:
    with pytest.raises(ValidationError, match="bookmaker_mode"):
        Settings(_env_file=None, bookmaker_mode=mode)


def test_bookmaker_mode_from_runtime_file_is_validated(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _clear_odds_keys(monkeypatch)
    monkeypatch.delenv("NBA_PICKS_BOOKMAKER_MODE", raising=False)
    config_path = _write_config(tmp_path / "runtime.toml")
    config_path.write_text(
        config_path.read_text(encoding="utf-8").replace(
            "[odds_api]\n", '[odds_api]\nbookmaker_mode = "Consensus"\n'
        ),
        encoding="utf-8",
    )
    with pytest.raises(ValidationError):
        Settings.from_runtime(load_runtime_config(config_path))
