from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Mapping
from urllib.parse import urlencode

from pnl_journal.metrics.timeline import canonical_time, parse_date_only
from pnl_journal.models import Trade

SYMBOL_MATCH_EXACT = "exact"
SYMBOL_MATCH_SUBSTRING = "substring"

_FILTER_KEYS = ("from", "to", "symbol", "market", "side")


@dataclass(frozen=True)
class TradeFilters:
    date_from: str | None = None
    date_to: str | None = None
    symbol: str | None = None
    market: str | None = None
    side: str | None = None

    @property
    def is_empty(self) -> bool:
        return not any((self.date_from, self.date_to, self.symbol, self.market, self.side))

    def query_string(self) -> str:
        values = (self.date_from, self.date_to, self.symbol, self.market, self.side)
        return urlencode([(key, value) for key, value in zip(_FILTER_KEYS, values) if value])


def parse_filters(params: Mapping[str, str | None]) -> TradeFilters:
    """Read filters from query-style params; blank values impose no constraint."""
    return TradeFilters(
        date_from=_clean(params.get("from")),
        date_to=_clean(params.get("to")),
        symbol=_clean(params.get("symbol")),
        market=_clean(params.get("market") or params.get("asset")),
        side=_clean(params.get("side")),
    )


def filter_trades(
    trades: Iterable[Trade],
    filters: TradeFilters,
    *,
    symbol_match: str = SYMBOL_MATCH_EXACT,
) -> list[Trade]:
    start = parse_date_only(filters.date_from)
    end = _end_of_day(parse_date_only(filters.date_to))
    symbol = _lowered(filters.symbol)
    market = _lowered(filters.market)
    side = _lowered(filters.side)

    filtered: list[Trade] = []
    for trade in trades:
        if start is not None or end is not None:
            timestamp = canonical_time(trade)
            if timestamp is None:
                continue
            if start is not None and timestamp < start:
                continue
            if end is not None and timestamp > end:
                continue
        if symbol is not None and not _symbol_matches(trade.symbol, symbol, symbol_match):
            continue
        if market is not None and (trade.market or "").lower() != market:
            continue
        if side is not None and (trade.side or "").lower() != side:
            continue
        filtered.append(trade)
    return filtered


def _symbol_matches(value: str | None, wanted: str, mode: str) -> bool:
    candidate = (value or "").strip().lower()
    if mode == SYMBOL_MATCH_SUBSTRING:
        return wanted in candidate
    return candidate == wanted


def _end_of_day(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value + timedelta(days=1) - timedelta(microseconds=1)


def _lowered(value: str | None) -> str | None:
    text = _clean(value)
    return text.lower() if text else None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
