import math

import pytest
from conftest import utc

from pnl_journal.metrics.summary import (
    DRAWDOWN_PCT_PEAK_EQUITY,
    compute_pnl_distribution,
    compute_summary,
    compute_symbol_breakdown,
    profit_factor,
)


def _sample(make_trade, values):
    return [make_trade(value, utc(2024, 3, 1 + idx)) for idx, value in enumerate(values)]


def test_two_wins_one_loss(make_trade):
    trades = [
        make_trade(100, utc(2024, 3, 4, 14)),
        make_trade(-40, utc(2024, 3, 4, 16)),
        make_trade(60, utc(2024, 3, 5, 14)),
    ]
    stats = compute_summary(trades)
    assert stats.trade_count == 3
    assert stats.total_pnl == pytest.approx(120)
    assert stats.win_count == 2
    assert stats.loss_count == 1
    assert stats.win_rate == pytest.approx(2 / 3)
    assert stats.gross_win == pytest.approx(160)
    assert stats.gross_loss_abs == pytest.approx(40)
    assert stats.profit_factor == pytest.approx(4)
    assert stats.expectancy == pytest.approx(40)
    assert stats.max_drawdown_abs == pytest.approx(40)


def test_drawdown_from_zero_baseline(make_trade):
    stats = compute_summary(_sample(make_trade, [-50, -30, 100]))
    assert stats.max_drawdown_abs == pytest.approx(80)
    assert stats.total_pnl == pytest.approx(20)


def test_empty_sample_is_zeroed():
    stats = compute_summary([])
    assert stats.trade_count == 0
    assert stats.total_pnl == 0
    assert stats.win_rate == 0
    assert stats.profit_factor == 0
    assert stats.expectancy == 0
    assert stats.max_drawdown_abs == 0
    assert stats.max_drawdown_pct == 0
    assert stats.payoff_ratio == 0


def test_order_independent(make_trade):
    trades = _sample(make_trade, [10, -25, 40, -5, 15])
    assert compute_summary(trades) == compute_summary(list(reversed(trades)))


def test_breakeven_counts_in_rate_denominator(make_trade):
    stats = compute_summary(_sample(make_trade, [10, 0, -10, 0]))
    assert stats.breakeven_count == 2
    assert stats.win_count + stats.loss_count + stats.breakeven_count == stats.trade_count
    assert stats.win_rate == pytest.approx(0.25)


class TestProfitFactor:
    def test_no_losses_is_infinite(self):
        assert math.isinf(profit_factor(50, 0))

    def test_no_activity_is_zero(self):
        assert profit_factor(0, 0) == 0

    def test_no_wins_is_zero(self):
        assert profit_factor(0, 30) == 0

    def test_all_wins_summary(self, make_trade):
        assert math.isinf(compute_summary(_sample(make_trade, [5, 7])).profit_factor)


class TestDrawdownPercent:
    def test_initial_balance_mode(self, make_trade):
        stats = compute_summary(_sample(make_trade, [-50, -30, 100]), 1000)
        assert stats.max_drawdown_pct == pytest.approx(8.0)
        assert stats.initial_balance == 1000
        assert stats.ending_balance == pytest.approx(1020)

    def test_initial_balance_mode_without_balance(self, make_trade):
        stats = compute_summary(_sample(make_trade, [-50, -30, 100]), 0)
        assert stats.max_drawdown_pct == 0

    def test_peak_equity_mode(self, make_trade):
        stats = compute_summary(
            _sample(make_trade, [100, -55]),
            1000,
            drawdown_pct_mode=DRAWDOWN_PCT_PEAK_EQUITY,
        )
        assert stats.max_drawdown_pct == pytest.approx(5.0)

    def test_peak_equity_mode_never_positive_peak(self, make_trade):
        stats = compute_summary(_sample(make_trade, [-10, -10]), 0, drawdown_pct_mode=DRAWDOWN_PCT_PEAK_EQUITY)
        assert stats.max_drawdown_pct == 0

    def test_non_numeric_balance_treated_as_zero(self, make_trade):
        stats = compute_summary(_sample(make_trade, [-10]), "n/a")
        assert stats.initial_balance == 0
        assert stats.max_drawdown_pct == 0


def test_averages_and_streaks(make_trade):
    stats = compute_summary(_sample(make_trade, [10, 20, -5, -15, -10, 30]))
    assert stats.avg_win == pytest.approx(20)
    assert stats.avg_loss == pytest.approx(-10)
    assert stats.payoff_ratio == pytest.approx(2)
    assert stats.largest_win == 30
    assert stats.largest_loss == -15
    assert stats.max_consecutive_wins == 2
    assert stats.max_consecutive_losses == 3


def test_symbol_breakdown(make_trade):
    trades = [
        make_trade(10, utc(2024, 3, 1), symbol="NQ"),
        make_trade(-5, utc(2024, 3, 2), symbol="ES"),
        make_trade(20, utc(2024, 3, 3), symbol="NQ"),
    ]
    rows = compute_symbol_breakdown(trades)
    assert [row["symbol"] for row in rows] == ["ES", "NQ"]
    nq = rows[1]
    assert nq["trades"] == 2
    assert nq["win_rate"] == 1.0
    assert nq["total_pnl"] == pytest.approx(30)
    assert math.isinf(nq["profit_factor"])


class TestDistribution:
    def test_empty(self):
        assert compute_pnl_distribution([]) == {"min": 0.0, "max": 0.0, "bins": []}

    def test_single_value(self, make_trade):
        result = compute_pnl_distribution(_sample(make_trade, [5, 5]))
        assert result["bins"] == [{"start": 5, "end": 5, "count": 2}]

    def test_counts_cover_sample(self, make_trade):
        result = compute_pnl_distribution(_sample(make_trade, [-10, 0, 3, 10]), bins=4)
        assert len(result["bins"]) == 4
        assert sum(bucket["count"] for bucket in result["bins"]) == 4
        assert result["bins"][-1]["count"] == 1


@pytest.mark.parametrize("bad_pnl", [float("nan"), "abc", None])
def test_non_numeric_pnl_counts_as_zero(make_trade, bad_pnl):
    trades = [make_trade(bad_pnl, utc(2024, 3, 1)), make_trade(10, utc(2024, 3, 2))]
    stats = compute_summary(trades)
    assert stats.total_pnl == 10
    assert stats.breakeven_count == 1
    assert stats.expectancy == 5
    assert not math.isnan(stats.max_drawdown_abs)
