"""Analytics pipeline: filter, order, then derive statistics and series.

Everything is recomputed from the raw trade list on each call; nothing here
keeps state between calls or mutates its inputs.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Iterable

from pnl_journal.metrics.calendar import CalendarMonth
from pnl_journal.metrics.equity import (
    DrawdownPoint,
    EquityPoint,
    daily_equity_curve,
    downsample_points,
    drawdown_series,
    trade_equity_curve,
)
from pnl_journal.metrics.filters import SYMBOL_MATCH_EXACT, TradeFilters, filter_trades
from pnl_journal.metrics.series import (
    DEFAULT_ROLLING_WINDOW,
    DailyPnl,
    Heatmap,
    RollingPoint,
    WeekdayAverage,
    daily_pnl,
    hour_weekday_heatmap,
    rolling_window_series,
    weekday_averages,
)
from pnl_journal.metrics.summary import (
    DRAWDOWN_PCT_INITIAL_BALANCE,
    SummaryStats,
    compute_pnl_distribution,
    compute_summary,
    compute_symbol_breakdown,
)
from pnl_journal.metrics.timeline import canonical_time, order_trades, utc_day_key
from pnl_journal.models import Trade


@dataclass(frozen=True)
class AnalyticsReport:
    filters: TradeFilters
    sample: list[Trade]
    summary: SummaryStats
    equity_curve: list[EquityPoint]
    daily_equity: list[EquityPoint]
    drawdown: list[DrawdownPoint]
    daily_pnl: list[DailyPnl]
    weekday: list[WeekdayAverage]
    heatmap: Heatmap
    rolling: list[RollingPoint]
    rolling_window: int
    symbol_breakdown: list[dict[str, Any]]
    pnl_distribution: dict[str, Any]


def select_sample(
    trades: Iterable[Trade],
    filters: TradeFilters | None = None,
    *,
    symbol_match: str = SYMBOL_MATCH_EXACT,
) -> list[Trade]:
    filtered = filter_trades(trades, filters or TradeFilters(), symbol_match=symbol_match)
    return order_trades(filtered)


def build_report(
    trades: Iterable[Trade],
    filters: TradeFilters | None = None,
    *,
    initial_balance: float = 0.0,
    window: int = DEFAULT_ROLLING_WINDOW,
    symbol_match: str = SYMBOL_MATCH_EXACT,
    drawdown_pct_mode: str = DRAWDOWN_PCT_INITIAL_BALANCE,
    distribution_bins: int = 20,
) -> AnalyticsReport:
    active_filters = filters or TradeFilters()
    sample = select_sample(trades, active_filters, symbol_match=symbol_match)
    return AnalyticsReport(
        filters=active_filters,
        sample=sample,
        summary=compute_summary(sample, initial_balance, drawdown_pct_mode=drawdown_pct_mode),
        equity_curve=trade_equity_curve(sample),
        daily_equity=daily_equity_curve(sample),
        drawdown=drawdown_series(sample),
        daily_pnl=daily_pnl(sample),
        weekday=weekday_averages(sample),
        heatmap=hour_weekday_heatmap(sample),
        rolling=rolling_window_series(sample, window),
        rolling_window=window,
        symbol_breakdown=compute_symbol_breakdown(sample),
        pnl_distribution=compute_pnl_distribution(sample, distribution_bins),
    )


def report_payload(report: AnalyticsReport, *, max_points: int | None = None) -> dict[str, Any]:
    return {
        "filters": {
            "from": report.filters.date_from,
            "to": report.filters.date_to,
            "symbol": report.filters.symbol,
            "market": report.filters.market,
            "side": report.filters.side,
        },
        "summary": summary_payload(report.summary),
        "equity_curve": [equity_point_payload(point) for point in downsample_points(report.equity_curve, max_points)],
        "daily_equity": [equity_point_payload(point) for point in report.daily_equity],
        "drawdown": [_plain(asdict(point)) for point in report.drawdown],
        "daily_pnl": [_plain(asdict(row)) for row in report.daily_pnl],
        "weekday": [_plain(asdict(row)) for row in report.weekday],
        "heatmap": {
            "cells": [_plain(asdict(cell)) for cell in report.heatmap.cells],
            "max_abs_avg": report.heatmap.max_abs_avg,
        },
        "rolling": {
            "window": report.rolling_window,
            "points": [_plain(asdict(point)) for point in report.rolling],
        },
        "symbol_breakdown": [_plain(row) for row in report.symbol_breakdown],
        "pnl_distribution": report.pnl_distribution,
    }


def summary_payload(summary: SummaryStats) -> dict[str, Any]:
    return _plain(asdict(summary))


def equity_point_payload(point: EquityPoint) -> dict[str, Any]:
    return {
        "index": point.index,
        "label": point.label,
        "timestamp": point.timestamp.isoformat() if point.timestamp else None,
        "pnl": point.period_pnl,
        "balance": point.cumulative_pnl,
        "symbol": point.symbol,
    }


def trade_payload(trade: Trade) -> dict[str, Any]:
    timestamp = canonical_time(trade)
    return {
        "id": trade.trade_id,
        "symbol": trade.symbol,
        "side": trade.side,
        "pnl": trade.pnl,
        "market": trade.market,
        "entry_price": trade.entry_price,
        "exit_price": trade.exit_price,
        "size": trade.size,
        "notes": trade.notes,
        "executed_at": _iso(trade.executed_at),
        "created_at": _iso(trade.created_at),
        "time": _iso(timestamp),
        "day": utc_day_key(timestamp) if timestamp else None,
    }


def calendar_payload(month: CalendarMonth) -> dict[str, Any]:
    return {
        "year": month.year,
        "month": month.month,
        "month_key": month.month_key,
        "month_label": month.month_label,
        "prev_month": month.prev_month,
        "next_month": month.next_month,
        "max_abs_pnl": month.max_abs_pnl,
        "weeks": [[_plain(asdict(cell)) if cell else None for cell in week] for week in month.weeks],
    }


def json_number(value: float) -> float | str | None:
    """Encode a float for strict JSON; infinities become strings, NaN becomes null."""
    if math.isnan(value):
        return None
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


def _plain(data: dict[str, Any]) -> dict[str, Any]:
    return {key: json_number(value) if isinstance(value, float) else value for key, value in data.items()}


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
