from __future__ import annotations

import argparse
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

from pnl_journal.analytics import trade_payload
from pnl_journal.config.app_config import load_app_config
from pnl_journal.ingest.trades_file import load_trades
from pnl_journal.metrics.timeline import order_trades
from pnl_journal.models import trade_from_row
from pnl_journal.pnl import compute_realized_pnl
from pnl_journal.storage.sqlite_reader import fetch_trades
from pnl_journal.storage.sqlite_store import (
    connect,
    delete_trade,
    ensure_default_account,
    init_db,
    insert_trade,
    insert_trades,
    update_initial_balance,
)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Record and manage journal trades.")
    parser.add_argument("--config", type=Path, default=None, help="Path to app.toml.")
    parser.add_argument("--db", type=Path, default=None, help="SQLite DB path (overrides config).")
    parser.add_argument("--owner", type=str, default=None, help="Owner id (defaults to app.default_owner).")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    commands = parser.add_subparsers(dest="command", required=True)

    add = commands.add_parser("add", help="Add a trade.")
    add.add_argument("--symbol", required=True)
    add.add_argument("--side", required=True, help="LONG or SHORT.")
    add.add_argument("--pnl", type=float, default=None, help="Realized PnL (source of truth).")
    add.add_argument("--entry", type=float, default=None, help="Entry price.")
    add.add_argument("--exit", type=float, default=None, help="Exit price.")
    add.add_argument("--size", type=float, default=None, help="Position size.")
    add.add_argument("--multiplier", type=float, default=1.0, help="Contract multiplier for the PnL preview.")
    add.add_argument("--executed-at", type=str, default=None, help="Execution time (ISO-8601, default now).")
    add.add_argument("--market", type=str, default=None, help="futures/options/stock/forex/crypto.")
    add.add_argument("--notes", type=str, default=None)

    commands.add_parser("list", help="List trades, newest first.")

    delete = commands.add_parser("delete", help="Delete a trade by id.")
    delete.add_argument("trade_id")

    importer = commands.add_parser("import", help="Import trades from a json/csv/tsv export.")
    importer.add_argument("path", type=Path)

    balance = commands.add_parser("balance", help="Show or set the account initial balance.")
    balance.add_argument("value", type=float, nargs="?", default=None)

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    app_config = load_app_config(args.config)
    owner_id = args.owner or app_config.app.default_owner
    conn = connect(args.db or app_config.app.db_path)
    try:
        init_db(conn)
        if args.command == "add":
            return _add(conn, owner_id, args)
        if args.command == "list":
            return _list(conn, owner_id)
        if args.command == "delete":
            if not delete_trade(conn, owner_id, args.trade_id):
                print(f"Trade not found: {args.trade_id}", file=sys.stderr)
                return 1
            print(f"Deleted {args.trade_id}")
            return 0
        if args.command == "import":
            return _import(conn, owner_id, args.path)
        if args.command == "balance":
            return _balance(conn, owner_id, args.value)
    finally:
        conn.close()
    return 2


def _add(conn, owner_id: str, args: argparse.Namespace) -> int:
    pnl = args.pnl
    if pnl is None:
        pnl = compute_realized_pnl(args.side, args.entry, args.exit, args.size, args.multiplier)
        print(f"No --pnl given; using computed preview {pnl:.2f}", file=sys.stderr)
    executed_at = args.executed_at or datetime.now(timezone.utc).isoformat()
    row = {
        "id": uuid.uuid4().hex,
        "symbol": args.symbol,
        "side": args.side,
        "pnl": pnl,
        "executed_at": executed_at,
        "entry_price": args.entry,
        "exit_price": args.exit,
        "size": args.size,
        "market": args.market,
        "notes": args.notes,
    }
    try:
        trade = trade_from_row(row, owner_id=owner_id)
    except ValueError as exc:
        print(f"Invalid trade: {exc}", file=sys.stderr)
        return 1
    if trade.executed_at is None:
        print(f"Invalid --executed-at value: {executed_at}", file=sys.stderr)
        return 1
    stored = insert_trade(conn, trade)
    if stored is None:
        print(f"Trade id already in use: {trade.trade_id}", file=sys.stderr)
        return 1
    print(stored.trade_id)
    return 0


def _list(conn, owner_id: str) -> int:
    trades = order_trades(fetch_trades(conn, owner_id))
    if not trades:
        print("No trades recorded.")
        return 0
    print("id time symbol side pnl market notes")
    for trade in reversed(trades):
        item = trade_payload(trade)
        print(
            f"{item['id']} {item['time']} {item['symbol']} {item['side']} "
            f"{item['pnl']:.2f} {item['market'] or '-'} {item['notes'] or ''}".rstrip()
        )
    return 0


def _import(conn, owner_id: str, path: Path) -> int:
    try:
        result = load_trades(path, owner_id=owner_id)
    except (OSError, ValueError) as exc:
        print(f"Failed to read {path}: {exc}", file=sys.stderr)
        return 1
    if result.skipped:
        print(f"Skipped {result.skipped} trade rows during normalization.", file=sys.stderr)
    stored = insert_trades(conn, result.trades)
    dropped = len(result.trades) - len(stored)
    if dropped:
        print(f"Dropped {dropped} trades whose id belongs to another owner.", file=sys.stderr)
    print(f"Imported {len(stored)} trades.")
    return 0


def _balance(conn, owner_id: str, value: float | None) -> int:
    if value is None:
        account = ensure_default_account(conn, owner_id)
    else:
        try:
            account = update_initial_balance(conn, owner_id, value)
        except ValueError as exc:
            print(str(exc), file=sys.stderr)
            return 1
    print(f"{account.name}: initial balance {account.initial_balance:.2f}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
