from __future__ import annotations

import json
import logging
import math
import sqlite3
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from pnl_journal.models import Account, Trade
from pnl_journal.storage.sqlite_reader import fetch_account

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNT_NAME = "Main"


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # Web requests open and use a connection from different threadpool workers.
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS trades (
            trade_id TEXT PRIMARY KEY,
            owner_id TEXT NOT NULL,
            symbol TEXT NOT NULL,
            side TEXT NOT NULL,
            pnl REAL NOT NULL,
            executed_at TEXT,
            created_at TEXT,
            legacy_time TEXT,
            entry_price REAL,
            exit_price REAL,
            size REAL,
            market TEXT,
            notes TEXT,
            raw_json TEXT NOT NULL
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS trades_owner_idx ON trades (owner_id)")
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS accounts (
            owner_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            initial_balance REAL NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )
    conn.commit()


_UPSERT_TRADE_SQL = """
    INSERT INTO trades (
        trade_id, owner_id, symbol, side, pnl, executed_at, created_at, legacy_time,
        entry_price, exit_price, size, market, notes, raw_json
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(trade_id) DO UPDATE SET
        symbol = excluded.symbol,
        side = excluded.side,
        pnl = excluded.pnl,
        executed_at = excluded.executed_at,
        legacy_time = excluded.legacy_time,
        entry_price = excluded.entry_price,
        exit_price = excluded.exit_price,
        size = excluded.size,
        market = excluded.market,
        notes = excluded.notes,
        raw_json = excluded.raw_json
    WHERE trades.owner_id = excluded.owner_id
"""


def insert_trade(conn: sqlite3.Connection, trade: Trade) -> Trade | None:
    """Returns None when the id already belongs to another owner."""
    stored = insert_trades(conn, [trade])
    return stored[0] if stored else None


def insert_trades(conn: sqlite3.Connection, trades: Iterable[Trade]) -> list[Trade]:
    """Upsert trades by id and return the ones written.

    A row owned by someone else is never overwritten; such trades are left
    out of the result.
    """
    now = datetime.now(timezone.utc)
    stored: list[Trade] = []
    skipped = 0
    for trade in trades:
        if trade.created_at is None:
            trade = replace(trade, created_at=now)
        cursor = conn.execute(
            _UPSERT_TRADE_SQL,
            (
                trade.trade_id,
                trade.owner_id,
                trade.symbol,
                trade.side,
                trade.pnl,
                _iso(trade.executed_at),
                _iso(trade.created_at),
                _iso(trade.legacy_time),
                trade.entry_price,
                trade.exit_price,
                trade.size,
                trade.market,
                trade.notes,
                json.dumps(dict(trade.raw), default=str),
            ),
        )
        if cursor.rowcount > 0:
            stored.append(trade)
        else:
            skipped += 1
    conn.commit()
    logger.debug("Stored %d trade rows", len(stored))
    if skipped:
        logger.warning("Skipped %d trade rows whose id belongs to another owner", skipped)
    return stored


def delete_trade(conn: sqlite3.Connection, owner_id: str, trade_id: str) -> bool:
    cursor = conn.execute(
        "DELETE FROM trades WHERE owner_id = ? AND trade_id = ?",
        (owner_id, trade_id),
    )
    conn.commit()
    deleted = cursor.rowcount > 0
    if deleted:
        logger.info("Deleted trade %s for owner %s", trade_id, owner_id)
    return deleted


def ensure_default_account(conn: sqlite3.Connection, owner_id: str) -> Account:
    existing = fetch_account(conn, owner_id)
    if existing is not None:
        return existing
    conn.execute(
        "INSERT OR IGNORE INTO accounts (owner_id, name, initial_balance, created_at) VALUES (?, ?, ?, ?)",
        (owner_id, DEFAULT_ACCOUNT_NAME, 0.0, datetime.now(timezone.utc).isoformat()),
    )
    conn.commit()
    logger.info("Created default account for owner %s", owner_id)
    return Account(owner_id=owner_id, name=DEFAULT_ACCOUNT_NAME, initial_balance=0.0)


def update_initial_balance(conn: sqlite3.Connection, owner_id: str, value: float) -> Account:
    try:
        balance = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Initial balance must be a valid number") from exc
    if not math.isfinite(balance):
        raise ValueError("Initial balance must be a valid number")
    account = ensure_default_account(conn, owner_id)
    conn.execute(
        "UPDATE accounts SET initial_balance = ? WHERE owner_id = ?",
        (balance, owner_id),
    )
    conn.commit()
    return replace(account, initial_balance=balance)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
