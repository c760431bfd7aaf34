from __future__ import annotations

import calendar as _calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterable

from pnl_journal.metrics.series import daily_pnl
from pnl_journal.models import Trade

WEEKDAY_HEADERS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

_MONTH_KEY = re.compile(r"^(\d{4})-(\d{2})$")


@dataclass(frozen=True)
class CalendarDay:
    day_key: str
    day: int
    net_pnl: float
    trade_count: int


@dataclass(frozen=True)
class CalendarMonth:
    year: int
    month: int
    month_key: str
    month_label: str
    prev_month: str
    next_month: str
    weeks: list[list[CalendarDay | None]]
    max_abs_pnl: float

    @property
    def days(self) -> list[CalendarDay]:
        return [cell for week in self.weeks for cell in week if cell is not None]


def build_calendar(trades: Iterable[Trade], year: int, month: int) -> CalendarMonth:
    """Sunday-first month grid; cells outside the month are None."""
    daily = {row.day: row for row in daily_pnl(trades)}
    total_days = _calendar.monthrange(year, month)[1]
    # date.weekday() is Monday=0; shift so Sunday=0.
    lead = (date(year, month, 1).weekday() + 1) % 7

    weeks: list[list[CalendarDay | None]] = []
    current: list[CalendarDay | None] = [None] * lead
    max_abs = 0.0
    for day in range(1, total_days + 1):
        key = f"{year:04d}-{month:02d}-{day:02d}"
        bucket = daily.get(key)
        net = bucket.net_pnl if bucket else 0.0
        count = bucket.trade_count if bucket else 0
        if count:
            max_abs = max(max_abs, abs(net))
        current.append(CalendarDay(day_key=key, day=day, net_pnl=net, trade_count=count))
        if len(current) == 7:
            weeks.append(current)
            current = []
    if current:
        current.extend([None] * (7 - len(current)))
        weeks.append(current)

    prev_year, prev_month = shift_month(year, month, -1)
    next_year, next_month = shift_month(year, month, 1)
    return CalendarMonth(
        year=year,
        month=month,
        month_key=month_key(year, month),
        month_label=date(year, month, 1).strftime("%B %Y"),
        prev_month=month_key(prev_year, prev_month),
        next_month=month_key(next_year, next_month),
        weeks=weeks,
        max_abs_pnl=max_abs,
    )


def calendar_for_param(
    trades: Iterable[Trade],
    month_param: str | None,
    *,
    today: datetime | None = None,
) -> CalendarMonth:
    parsed = parse_month(month_param)
    if parsed is None:
        now = (today or datetime.now(timezone.utc)).astimezone(timezone.utc)
        parsed = (now.year, now.month)
    return build_calendar(trades, *parsed)


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def parse_month(value: str | None) -> tuple[int, int] | None:
    if not value:
        return None
    match = _MONTH_KEY.match(value.strip())
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if year < 1 or not 1 <= month <= 12:
        return None
    return year, month
