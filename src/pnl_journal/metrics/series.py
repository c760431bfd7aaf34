from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from pnl_journal.metrics.timeline import canonical_time, order_trades, pnl_value, utc_day_key
from pnl_journal.models import Trade

DEFAULT_ROLLING_WINDOW = 30
ROLLING_WINDOW_OPTIONS = (10, 30, 50, 100)
BAND_STD_ERRORS = 2.0

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass(frozen=True)
class DailyPnl:
    day: str
    net_pnl: float
    trade_count: int


@dataclass(frozen=True)
class WeekdayAverage:
    weekday: int
    name: str
    avg_pnl: float
    total_pnl: float
    trade_count: int


@dataclass(frozen=True)
class HeatmapCell:
    weekday: int
    hour: int
    avg_pnl: float
    trade_count: int


@dataclass(frozen=True)
class Heatmap:
    cells: list[HeatmapCell]
    max_abs_avg: float


@dataclass(frozen=True)
class RollingPoint:
    index: int
    mean: float
    std_err: float
    upper: float
    lower: float
    sample_size: int


def daily_pnl(trades: Iterable[Trade]) -> list[DailyPnl]:
    """Sparse per-UTC-day totals, sorted by day key."""
    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    for trade in trades:
        timestamp = canonical_time(trade)
        if timestamp is None:
            continue
        key = utc_day_key(timestamp)
        totals[key] = totals.get(key, 0.0) + pnl_value(trade)
        counts[key] = counts.get(key, 0) + 1
    return [DailyPnl(day=day, net_pnl=totals[day], trade_count=counts[day]) for day in sorted(totals)]


def weekday_averages(trades: Iterable[Trade]) -> list[WeekdayAverage]:
    """Mean pnl per UTC weekday, Monday first; weekdays without trades are omitted."""
    buckets: dict[int, list[float]] = {}
    for trade in trades:
        timestamp = canonical_time(trade)
        if timestamp is None:
            continue
        buckets.setdefault(_utc(timestamp).weekday(), []).append(pnl_value(trade))

    rows = []
    for day, values in sorted(buckets.items()):
        total = sum(values)
        rows.append(
            WeekdayAverage(
                weekday=day,
                name=WEEKDAY_NAMES[day],
                avg_pnl=total / len(values),
                total_pnl=total,
                trade_count=len(values),
            )
        )
    return rows


def hour_weekday_heatmap(trades: Iterable[Trade]) -> Heatmap:
    buckets: dict[tuple[int, int], list[float]] = {}
    for trade in trades:
        timestamp = canonical_time(trade)
        if timestamp is None:
            continue
        utc = _utc(timestamp)
        buckets.setdefault((utc.weekday(), utc.hour), []).append(pnl_value(trade))

    cells = []
    max_abs = 0.0
    for (day, hour), values in sorted(buckets.items()):
        avg = sum(values) / len(values)
        max_abs = max(max_abs, abs(avg))
        cells.append(HeatmapCell(weekday=day, hour=hour, avg_pnl=avg, trade_count=len(values)))
    return Heatmap(cells=cells, max_abs_avg=max_abs)


class RollingWindow:
    """Trailing window of pnl values with incrementally maintained sum and sum of squares."""

    def __init__(self, size: int = DEFAULT_ROLLING_WINDOW) -> None:
        self.size = size if size and size > 0 else DEFAULT_ROLLING_WINDOW
        self._values: deque[float] = deque()
        self._sum = 0.0
        self._sum_sq = 0.0

    def __len__(self) -> int:
        return len(self._values)

    def push(self, value: float) -> None:
        self._values.append(value)
        self._sum += value
        self._sum_sq += value * value
        if len(self._values) > self.size:
            dropped = self._values.popleft()
            self._sum -= dropped
            self._sum_sq -= dropped * dropped

    @property
    def mean(self) -> float:
        n = len(self._values)
        return self._sum / n if n else 0.0

    @property
    def variance(self) -> float:
        n = len(self._values)
        if n < 2:
            return 0.0
        variance = (self._sum_sq - (self._sum * self._sum) / n) / (n - 1)
        # Cancellation can push this slightly below zero.
        return max(variance, 0.0)

    @property
    def std_err(self) -> float:
        n = len(self._values)
        if not n:
            return 0.0
        return math.sqrt(self.variance) / math.sqrt(n)


def rolling_window_series(trades: Iterable[Trade], size: int = DEFAULT_ROLLING_WINDOW) -> list[RollingPoint]:
    window = RollingWindow(size)
    points: list[RollingPoint] = []
    for idx, trade in enumerate(order_trades(trades), start=1):
        window.push(pnl_value(trade))
        mean = window.mean
        std_err = window.std_err
        band = BAND_STD_ERRORS * std_err
        points.append(
            RollingPoint(
                index=idx,
                mean=mean,
                std_err=std_err,
                upper=mean + band,
                lower=mean - band,
                sample_size=len(window),
            )
        )
    return points


def _utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc)
