from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Any

from pnl_journal.models import Account, Trade


def fetch_trades(conn: sqlite3.Connection, owner_id: str) -> list[Trade]:
    """All trades for one owner, in insertion order (callers must not rely on it)."""
    rows = conn.execute(
        "SELECT * FROM trades WHERE owner_id = ? ORDER BY rowid",
        (owner_id,),
    ).fetchall()
    trades: list[Trade] = []
    for row in rows:
        trades.append(
            Trade(
                trade_id=row["trade_id"],
                owner_id=row["owner_id"],
                symbol=row["symbol"],
                side=row["side"],
                pnl=row["pnl"],
                executed_at=_parse_iso(row["executed_at"]),
                created_at=_parse_iso(row["created_at"]),
                legacy_time=_parse_iso(row["legacy_time"]),
                entry_price=row["entry_price"],
                exit_price=row["exit_price"],
                size=row["size"],
                market=row["market"],
                notes=row["notes"],
                raw=_maybe_json(row["raw_json"]),
            )
        )
    return trades


def fetch_account(conn: sqlite3.Connection, owner_id: str) -> Account | None:
    row = conn.execute(
        "SELECT owner_id, name, initial_balance FROM accounts WHERE owner_id = ?",
        (owner_id,),
    ).fetchone()
    if row is None:
        return None
    return Account(owner_id=row["owner_id"], name=row["name"], initial_balance=float(row["initial_balance"] or 0.0))


def _maybe_json(value: Any) -> Any:
    if value is None:
        return {}
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text:
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return {}


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
