from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterable

from pnl_journal.models import Trade, to_float

_DATE_ONLY = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


def canonical_time(trade: Trade) -> datetime | None:
    """Resolve the instant used by every time-based view.

    Priority: executed_at, then created_at, then the legacy time field.
    """
    for value in (trade.executed_at, trade.created_at, trade.legacy_time):
        if value is not None:
            return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    return None


def utc_day_key(value: datetime) -> str:
    utc = value.astimezone(timezone.utc) if value.tzinfo is not None else value
    return f"{utc.year:04d}-{utc.month:02d}-{utc.day:02d}"


def trade_day_key(trade: Trade) -> str | None:
    timestamp = canonical_time(trade)
    if timestamp is None:
        return None
    return utc_day_key(timestamp)


def parse_date_only(value: str | None) -> datetime | None:
    if not value:
        return None
    match = _DATE_ONLY.match(str(value).strip())
    if not match:
        return None
    try:
        return datetime(int(match.group(1)), int(match.group(2)), int(match.group(3)), tzinfo=timezone.utc)
    except ValueError:
        return None


def timed_trades(trades: Iterable[Trade]) -> list[Trade]:
    return [trade for trade in trades if canonical_time(trade) is not None]


def order_trades(trades: Iterable[Trade]) -> list[Trade]:
    """Chronological order by canonical instant; trades without one are dropped."""
    keyed: list[tuple[datetime, Trade]] = []
    for trade in trades:
        timestamp = canonical_time(trade)
        if timestamp is None:
            continue
        keyed.append((timestamp.astimezone(timezone.utc), trade))
    # list.sort is stable, so equal instants keep their input order.
    keyed.sort(key=lambda pair: pair[0])
    return [trade for _, trade in keyed]


def pnl_value(trade: Trade) -> float:
    value = to_float(trade.pnl)
    return 0.0 if value is None else value
