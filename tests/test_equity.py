import math

import pytest
from conftest import utc

from pnl_journal.metrics.equity import (
    START_LABEL,
    daily_equity_curve,
    downsample_points,
    drawdown_series,
    trade_equity_curve,
)
from pnl_journal.metrics.summary import compute_summary


def test_trade_curve_is_one_based_cumulative(make_trade):
    trades = [make_trade(-40, utc(2024, 3, 4, 16)), make_trade(100, utc(2024, 3, 4, 14))]
    points = trade_equity_curve(trades)
    assert [point.index for point in points] == [1, 2]
    assert [point.cumulative_pnl for point in points] == [100, 60]
    assert points[0].timestamp == utc(2024, 3, 4, 14)
    assert points[0].symbol == "MNQ"


def test_curve_ends_at_total_pnl(make_trade):
    trades = [make_trade(value, utc(2024, 3, 1 + idx)) for idx, value in enumerate([12.5, -3.25, 7, -20, 4])]
    assert trade_equity_curve(trades)[-1].cumulative_pnl == pytest.approx(compute_summary(trades).total_pnl)
    assert daily_equity_curve(trades)[-1].cumulative_pnl == pytest.approx(compute_summary(trades).total_pnl)


def test_daily_curve_buckets_by_utc_day(make_trade):
    trades = [
        make_trade(60, utc(2024, 3, 5, 1)),
        make_trade(100, utc(2024, 3, 4, 14)),
        make_trade(-40, utc(2024, 3, 4, 23, 59)),
    ]
    points = daily_equity_curve(trades)
    assert [point.label for point in points] == [START_LABEL, "2024-03-04", "2024-03-05"]
    assert [point.period_pnl for point in points] == [0, 60, 60]
    assert [point.cumulative_pnl for point in points] == [0, 60, 120]


def test_empty_curves():
    assert trade_equity_curve([]) == []
    assert daily_equity_curve([]) == []
    assert drawdown_series([]) == []


def test_drawdown_series_tracks_peak_from_zero(make_trade):
    trades = [make_trade(value, utc(2024, 3, 1 + idx)) for idx, value in enumerate([-50, -30, 100])]
    points = drawdown_series(trades)
    assert [point.cumulative_pnl for point in points] == [-50, -80, 20]
    assert [point.peak for point in points] == [0, 0, 20]
    assert [point.drawdown for point in points] == [50, 80, 0]


def test_downsample_keeps_last_point(make_trade):
    trades = [make_trade(1, utc(2024, 1, 1 + idx)) for idx in range(25)]
    points = trade_equity_curve(trades)
    sampled = downsample_points(points, 10)
    assert len(sampled) < len(points)
    assert sampled[0].index == 1
    assert sampled[-1].index == 25
    assert downsample_points(points, None) is points


@pytest.mark.parametrize("bad_pnl", [float("nan"), "abc"])
def test_non_numeric_pnl_in_curves(make_trade, bad_pnl):
    trades = [make_trade(5, utc(2024, 3, 4)), make_trade(bad_pnl, utc(2024, 3, 5))]
    assert [point.cumulative_pnl for point in trade_equity_curve(trades)] == [5, 5]
    assert daily_equity_curve(trades)[-1].cumulative_pnl == 5
    assert not any(math.isnan(point.drawdown) for point in drawdown_series(trades))
