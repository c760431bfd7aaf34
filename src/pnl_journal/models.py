from __future__ import annotations

import hashlib
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

SIDE_LONG = "LONG"
SIDE_SHORT = "SHORT"

MARKETS = ("futures", "options", "stock", "forex", "crypto")

# Checked in this order when neither executed_at nor created_at is usable.
LEGACY_TIME_KEYS = ("date", "timestamp")

_COMPACT_DATE = re.compile(r"^\d{8}$")

_SIDE_ALIASES = {
    "long": SIDE_LONG,
    "buy": SIDE_LONG,
    "b": SIDE_LONG,
    "short": SIDE_SHORT,
    "sell": SIDE_SHORT,
    "s": SIDE_SHORT,
}


@dataclass(frozen=True)
class Trade:
    trade_id: str
    owner_id: str
    symbol: str
    side: str
    pnl: float
    executed_at: datetime | None = None
    created_at: datetime | None = None
    legacy_time: datetime | None = None
    entry_price: float | None = None
    exit_price: float | None = None
    size: float | None = None
    market: str | None = None
    notes: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class Account:
    owner_id: str
    name: str = "Main"
    initial_balance: float = 0.0


def trade_from_row(
    raw: Mapping[str, Any],
    *,
    owner_id: str | None = None,
    created_at: datetime | None = None,
) -> Trade:
    """Build a Trade from a loosely keyed row (API payload, export line, db row).

    Raises ValueError when symbol, side or pnl is missing or unusable.
    """
    symbol = _pick(raw, "symbol", "ticker", "instrument")
    side = normalize_side(_pick(raw, "side", "direction"))
    if not symbol or not str(symbol).strip():
        raise ValueError("Missing symbol")
    if side is None:
        raise ValueError("Missing or unknown side")

    pnl = to_float(_pick(raw, "pnl", "realized_pnl", "realizedPnl"))
    if pnl is None:
        raise ValueError("Missing or non-numeric pnl")

    resolved_owner = owner_id or _pick(raw, "owner_id", "ownerId", "user_id")
    if not resolved_owner:
        raise ValueError("Missing owner")

    executed_at = parse_timestamp(_pick(raw, "executed_at", "executedAt"))
    stored_created = parse_timestamp(_pick(raw, "created_at", "createdAt"))
    legacy_time = None
    for key in LEGACY_TIME_KEYS:
        legacy_time = parse_timestamp(raw.get(key))
        if legacy_time is not None:
            break
    if executed_at is None and stored_created is None:
        # Storage stamps created_at, which would otherwise shadow the legacy time.
        executed_at = legacy_time

    trade_id = _pick(raw, "id", "trade_id", "tradeId")
    if trade_id is None or not str(trade_id).strip():
        trade_id = _derive_trade_id(str(resolved_owner), str(symbol), side, executed_at or stored_created, pnl)

    return Trade(
        trade_id=str(trade_id),
        owner_id=str(resolved_owner),
        symbol=str(symbol).strip().upper(),
        side=side,
        pnl=pnl,
        executed_at=executed_at,
        created_at=stored_created or created_at,
        legacy_time=legacy_time,
        entry_price=to_float(_pick(raw, "entry_price", "entryPrice")),
        exit_price=to_float(_pick(raw, "exit_price", "exitPrice")),
        size=to_float(_pick(raw, "size", "qty", "quantity")),
        market=normalize_market(_pick(raw, "market", "asset")),
        notes=_clean_text(raw.get("notes")),
        raw=dict(raw),
    )


def normalize_side(value: Any) -> str | None:
    if value is None:
        return None
    return _SIDE_ALIASES.get(str(value).strip().lower())


def normalize_market(value: Any) -> str | None:
    text = _clean_text(value)
    if text is None:
        return None
    return text.lower()


def to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_timestamp(value: Any) -> datetime | None:
    """Parse ISO strings, epoch seconds/milliseconds or datetimes into aware UTC datetimes.

    Returns None for anything that does not resolve to a valid instant.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _timestamp_from_number(float(value))

    text = str(value).strip()
    if not text:
        return None
    if _COMPACT_DATE.match(text):
        try:
            return datetime.strptime(text, "%Y%m%d").replace(tzinfo=timezone.utc)
        except ValueError:
            return None
    try:
        return _timestamp_from_number(float(text))
    except ValueError:
        pass

    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _timestamp_from_number(value: float) -> datetime | None:
    if not math.isfinite(value):
        return None
    if value > 1e12:
        value = value / 1000.0
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] not in (None, ""):
            return raw[key]
    return None


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _derive_trade_id(
    owner_id: str,
    symbol: str,
    side: str,
    timestamp: datetime | None,
    pnl: float,
) -> str:
    stamp = timestamp.isoformat() if timestamp else ""
    digest = hashlib.sha1(f"{owner_id}|{symbol.upper()}|{side}|{stamp}|{pnl!r}".encode("utf-8"))
    return digest.hexdigest()
