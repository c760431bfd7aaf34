from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from pnl_journal.analytics import build_report, report_payload
from pnl_journal.config.app_config import load_app_config
from pnl_journal.metrics.filters import parse_filters
from pnl_journal.metrics.summary import SummaryStats
from pnl_journal.storage.sqlite_reader import fetch_trades
from pnl_journal.storage.sqlite_store import connect, ensure_default_account, init_db


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Compute journal performance metrics.")
    parser.add_argument("--config", type=Path, default=None, help="Path to app.toml.")
    parser.add_argument("--db", type=Path, default=None, help="SQLite DB path (overrides config).")
    parser.add_argument("--owner", type=str, default=None, help="Owner id (defaults to app.default_owner).")
    parser.add_argument("--from", dest="date_from", type=str, default=None, help="First UTC day (YYYY-MM-DD).")
    parser.add_argument("--to", dest="date_to", type=str, default=None, help="Last UTC day, inclusive (YYYY-MM-DD).")
    parser.add_argument("--symbol", type=str, default=None)
    parser.add_argument("--market", type=str, default=None)
    parser.add_argument("--side", type=str, default=None, help="LONG or SHORT.")
    parser.add_argument("--window", type=int, default=None, help="Rolling window size.")
    parser.add_argument("--json", action="store_true", help="Print the full JSON report.")
    parser.add_argument("--out", type=Path, default=None, help="Write output to a file instead of stdout.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    app_config = load_app_config(args.config)
    analytics = app_config.analytics
    owner_id = args.owner or app_config.app.default_owner

    conn = connect(args.db or app_config.app.db_path)
    try:
        init_db(conn)
        account = ensure_default_account(conn, owner_id)
        trades = fetch_trades(conn, owner_id)
    finally:
        conn.close()

    window = args.window or analytics.rolling_window
    if window not in analytics.rolling_window_options:
        print(
            f"Window {window} is not one of {list(analytics.rolling_window_options)}; using {analytics.rolling_window}.",
            file=sys.stderr,
        )
        window = analytics.rolling_window

    filters = parse_filters(
        {
            "from": args.date_from,
            "to": args.date_to,
            "symbol": args.symbol,
            "market": args.market,
            "side": args.side,
        }
    )
    report = build_report(
        trades,
        filters,
        initial_balance=account.initial_balance,
        window=window,
        symbol_match=analytics.symbol_match,
        drawdown_pct_mode=analytics.drawdown_pct_mode,
        distribution_bins=analytics.distribution_bins,
    )

    if args.json:
        payload = report_payload(report, max_points=analytics.series_max_points)
        text = json.dumps(payload, indent=2, sort_keys=True)
    else:
        text = _format_summary(report.summary)

    if args.out is None:
        print(text)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(text + "\n", encoding="utf-8")
    return 0


def _format_summary(summary: SummaryStats) -> str:
    return "\n".join(f"{key} {_format_value(value)}" for key, value in asdict(summary).items())


def _format_value(value: float | int) -> str:
    if isinstance(value, int):
        return str(value)
    return f"{value:.6g}"


if __name__ == "__main__":
    raise SystemExit(main())
