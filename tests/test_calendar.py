import calendar as std_calendar
from datetime import datetime, timezone

import pytest
from conftest import utc

from pnl_journal.metrics.calendar import (
    build_calendar,
    calendar_for_param,
    parse_month,
    shift_month,
)


@pytest.mark.parametrize("year, month", [(2024, 2), (2023, 2), (2024, 9), (2026, 2), (2025, 6)])
def test_grid_covers_every_day_once(year, month):
    result = build_calendar([], year, month)
    days = [cell.day for cell in result.days]
    assert days == list(range(1, std_calendar.monthrange(year, month)[1] + 1))
    assert all(len(week) == 7 for week in result.weeks)
    cells = sum(len(week) for week in result.weeks)
    assert cells % 7 == 0
    assert cells - len(days) < 14


def test_sunday_first_padding():
    # September 2024 starts on a Sunday, March 2024 on a Friday.
    assert build_calendar([], 2024, 9).weeks[0][0].day == 1
    march = build_calendar([], 2024, 3)
    assert march.weeks[0][:5] == [None] * 5
    assert march.weeks[0][5].day == 1


def test_day_values(make_trade):
    trades = [
        make_trade(50, utc(2024, 3, 4, 10)),
        make_trade(-80, utc(2024, 3, 4, 12)),
        make_trade(20, utc(2024, 3, 9, 10)),
        make_trade(999, utc(2024, 4, 1, 10)),
    ]
    result = build_calendar(trades, 2024, 3)
    by_day = {cell.day: cell for cell in result.days}
    assert by_day[4].net_pnl == pytest.approx(-30)
    assert by_day[4].trade_count == 2
    assert by_day[5].trade_count == 0
    assert result.max_abs_pnl == pytest.approx(30)
    assert result.month_key == "2024-03"
    assert result.month_label == "March 2024"


def test_navigation_rolls_over_years():
    assert shift_month(2024, 1, -1) == (2023, 12)
    assert shift_month(2024, 12, 1) == (2025, 1)
    january = build_calendar([], 2024, 1)
    assert january.prev_month == "2023-12"
    assert january.next_month == "2024-02"


def test_parse_month():
    assert parse_month("2024-03") == (2024, 3)
    assert parse_month("2024-13") is None
    assert parse_month("March") is None
    assert parse_month(None) is None


def test_invalid_param_uses_current_utc_month():
    today = datetime(2024, 7, 15, tzinfo=timezone.utc)
    assert calendar_for_param([], "garbage", today=today).month_key == "2024-07"
    assert calendar_for_param([], "2023-11", today=today).month_key == "2023-11"
