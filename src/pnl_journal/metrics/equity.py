from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from pnl_journal.metrics.timeline import canonical_time, order_trades, pnl_value, trade_day_key
from pnl_journal.models import Trade

START_LABEL = "Start"


@dataclass(frozen=True)
class EquityPoint:
    index: int
    timestamp: datetime | None
    label: str
    period_pnl: float
    cumulative_pnl: float
    symbol: str | None = None


@dataclass(frozen=True)
class DrawdownPoint:
    index: int
    cumulative_pnl: float
    peak: float
    drawdown: float


def trade_equity_curve(trades: Iterable[Trade]) -> list[EquityPoint]:
    """Performance curve with one point per trade, 1-based, starting from zero."""
    cumulative = 0.0
    points: list[EquityPoint] = []
    for idx, trade in enumerate(order_trades(trades), start=1):
        pnl = pnl_value(trade)
        cumulative += pnl
        timestamp = canonical_time(trade)
        points.append(
            EquityPoint(
                index=idx,
                timestamp=timestamp,
                label=timestamp.isoformat() if timestamp else str(idx),
                period_pnl=pnl,
                cumulative_pnl=cumulative,
                symbol=trade.symbol,
            )
        )
    return points


def daily_equity_curve(trades: Iterable[Trade]) -> list[EquityPoint]:
    """One point per UTC day, anchored by a synthetic zero point labelled Start.

    An empty sample yields an empty curve rather than a lone anchor.
    """
    buckets: dict[str, float] = {}
    for trade in trades:
        key = trade_day_key(trade)
        if key is None:
            continue
        buckets[key] = buckets.get(key, 0.0) + pnl_value(trade)
    if not buckets:
        return []

    points = [EquityPoint(index=0, timestamp=None, label=START_LABEL, period_pnl=0.0, cumulative_pnl=0.0)]
    cumulative = 0.0
    for idx, day in enumerate(sorted(buckets), start=1):
        cumulative += buckets[day]
        points.append(
            EquityPoint(
                index=idx,
                timestamp=None,
                label=day,
                period_pnl=buckets[day],
                cumulative_pnl=cumulative,
            )
        )
    return points


def drawdown_series(trades: Iterable[Trade]) -> list[DrawdownPoint]:
    peak = 0.0
    cumulative = 0.0
    points: list[DrawdownPoint] = []
    for idx, trade in enumerate(order_trades(trades), start=1):
        cumulative += pnl_value(trade)
        if cumulative > peak:
            peak = cumulative
        points.append(DrawdownPoint(index=idx, cumulative_pnl=cumulative, peak=peak, drawdown=peak - cumulative))
    return points


def downsample_points(points: list[EquityPoint], max_points: int | None) -> list[EquityPoint]:
    if max_points is None or max_points <= 0 or len(points) <= max_points:
        return points
    stride = max(1, len(points) // max_points)
    sampled = points[::stride]
    if sampled and sampled[-1].index != points[-1].index:
        sampled.append(points[-1])
    return sampled
