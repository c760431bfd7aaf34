from pathlib import Path

from pnl_journal.config.app_config import CONFIG_ENV_VAR, config_path_from_env, load_app_config


def test_defaults_when_file_missing(tmp_path):
    config = load_app_config(tmp_path / "missing.toml")
    assert config.app.db_path == Path("data/pnl_journal.sqlite")
    assert config.app.port == 8000
    assert config.app.default_owner == "local"
    assert config.analytics.rolling_window == 30
    assert config.analytics.rolling_window_options == (10, 30, 50, 100)
    assert config.analytics.drawdown_pct_mode == "initial_balance"
    assert config.analytics.symbol_match == "exact"
    assert config.analytics.series_max_points is None


def test_reads_values(tmp_path):
    path = tmp_path / "app.toml"
    path.write_text(
        """
[app]
db_path = "db/journal.sqlite"
port = 9001
reload = true
default_owner = "me"

[analytics]
rolling_window = 50
drawdown_pct_mode = "Peak_Equity"
symbol_match = "substring"
distribution_bins = 10
series_max_points = 500
""",
        encoding="utf-8",
    )
    config = load_app_config(path)
    assert config.app.db_path == Path("db/journal.sqlite")
    assert config.app.port == 9001
    assert config.app.reload is True
    assert config.app.default_owner == "me"
    assert config.analytics.rolling_window == 50
    assert config.analytics.drawdown_pct_mode == "peak_equity"
    assert config.analytics.symbol_match == "substring"
    assert config.analytics.distribution_bins == 10
    assert config.analytics.series_max_points == 500


def test_invalid_values_fall_back(tmp_path):
    path = tmp_path / "app.toml"
    path.write_text(
        """
[app]
port = "eighty"

[analytics]
rolling_window = 7
rolling_window_options = ["x", -1]
drawdown_pct_mode = "median"
symbol_match = "fuzzy"
distribution_bins = 0
""",
        encoding="utf-8",
    )
    config = load_app_config(path)
    assert config.app.port == 8000
    assert config.analytics.rolling_window == 30
    assert config.analytics.rolling_window_options == (10, 30, 50, 100)
    assert config.analytics.drawdown_pct_mode == "initial_balance"
    assert config.analytics.symbol_match == "exact"
    assert config.analytics.distribution_bins == 1


def test_custom_window_options(tmp_path):
    path = tmp_path / "app.toml"
    path.write_text("[analytics]\nrolling_window_options = [20, 40]\n", encoding="utf-8")
    config = load_app_config(path)
    assert config.analytics.rolling_window_options == (20, 40)
    assert config.analytics.rolling_window == 20


def test_config_path_from_env():
    assert config_path_from_env({CONFIG_ENV_VAR: "/etc/journal.toml"}) == Path("/etc/journal.toml")
    assert config_path_from_env({}) == Path("config/app.toml")
