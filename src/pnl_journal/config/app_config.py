from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from pnl_journal.metrics.filters import SYMBOL_MATCH_EXACT, SYMBOL_MATCH_SUBSTRING
from pnl_journal.metrics.series import DEFAULT_ROLLING_WINDOW, ROLLING_WINDOW_OPTIONS
from pnl_journal.metrics.summary import DRAWDOWN_PCT_INITIAL_BALANCE, DRAWDOWN_PCT_MODES

CONFIG_ENV_VAR = "PNL_JOURNAL_CONFIG"


@dataclass(frozen=True)
class AppSettings:
    db_path: Path
    host: str
    port: int
    reload: bool
    default_owner: str


@dataclass(frozen=True)
class AnalyticsSettings:
    rolling_window: int
    rolling_window_options: tuple[int, ...]
    drawdown_pct_mode: str
    symbol_match: str
    distribution_bins: int
    series_max_points: int | None


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    analytics: AnalyticsSettings


def config_path_from_env(env: Mapping[str, str] | None = None) -> Path:
    source = os.environ if env is None else env
    value = source.get(CONFIG_ENV_VAR)
    return Path(value) if value else Path("config/app.toml")


def load_app_config(path: Path | None = None) -> AppConfig:
    config_path = path or config_path_from_env()
    raw: Mapping[str, Any] = {}
    if config_path.exists():
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))

    app_raw = _section(raw, "app")
    analytics_raw = _section(raw, "analytics")

    app = AppSettings(
        db_path=Path(app_raw.get("db_path", "data/pnl_journal.sqlite")),
        host=str(app_raw.get("host", "127.0.0.1")),
        port=_int_or_default(app_raw.get("port"), 8000),
        reload=bool(app_raw.get("reload", False)),
        default_owner=str(app_raw.get("default_owner", "local")).strip() or "local",
    )

    options = tuple(value for value in _int_list(analytics_raw.get("rolling_window_options")) if value > 0)
    if not options:
        options = ROLLING_WINDOW_OPTIONS
    window = _int_or_default(analytics_raw.get("rolling_window"), DEFAULT_ROLLING_WINDOW)
    if window not in options:
        window = DEFAULT_ROLLING_WINDOW if DEFAULT_ROLLING_WINDOW in options else options[0]

    drawdown_mode = str(analytics_raw.get("drawdown_pct_mode", DRAWDOWN_PCT_INITIAL_BALANCE)).strip().lower()
    if drawdown_mode not in DRAWDOWN_PCT_MODES:
        drawdown_mode = DRAWDOWN_PCT_INITIAL_BALANCE

    symbol_match = str(analytics_raw.get("symbol_match", SYMBOL_MATCH_EXACT)).strip().lower()
    if symbol_match not in {SYMBOL_MATCH_EXACT, SYMBOL_MATCH_SUBSTRING}:
        symbol_match = SYMBOL_MATCH_EXACT

    analytics = AnalyticsSettings(
        rolling_window=window,
        rolling_window_options=options,
        drawdown_pct_mode=drawdown_mode,
        symbol_match=symbol_match,
        distribution_bins=max(1, _int_or_default(analytics_raw.get("distribution_bins"), 20)),
        series_max_points=_int_or_none(analytics_raw.get("series_max_points")),
    )

    return AppConfig(app=app, analytics=analytics)


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if isinstance(value, Mapping):
        return value
    return {}


def _int_or_default(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _int_or_none(value: Any) -> int | None:
    if value in (None, "", 0):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _int_list(value: Any) -> list[int]:
    if not isinstance(value, list):
        return []
    output: list[int] = []
    for item in value:
        try:
            output.append(int(item))
        except (TypeError, ValueError):
            continue
    return output
