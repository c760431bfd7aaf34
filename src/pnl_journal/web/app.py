from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator

from fastapi import Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from jinja2 import Undefined

from pnl_journal.analytics import (
    build_report,
    calendar_payload,
    equity_point_payload,
    report_payload,
    select_sample,
    summary_payload,
    trade_payload,
)
from pnl_journal.config.app_config import AppConfig, load_app_config
from pnl_journal.metrics.calendar import WEEKDAY_HEADERS, calendar_for_param
from pnl_journal.metrics.equity import daily_equity_curve
from pnl_journal.metrics.filters import parse_filters
from pnl_journal.metrics.summary import compute_summary
from pnl_journal.metrics.timeline import order_trades
from pnl_journal.models import MARKETS, Account, Trade, trade_from_row
from pnl_journal.pnl import compute_realized_pnl
from pnl_journal.storage.sqlite_reader import fetch_trades
from pnl_journal.storage.sqlite_store import (
    connect,
    delete_trade,
    ensure_default_account,
    init_db,
    insert_trade,
    update_initial_balance,
)

logger = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent
TEMPLATES = Jinja2Templates(directory=str(APP_ROOT / "templates"))

RECENT_TRADES = 6

app = FastAPI(title="PnL Journal")


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    return load_app_config()


def get_connection(config: AppConfig = Depends(get_config)) -> Iterator[sqlite3.Connection]:
    conn = connect(config.app.db_path)
    try:
        init_db(conn)
        yield conn
    finally:
        conn.close()


def get_owner(
    config: AppConfig = Depends(get_config),
    x_owner_id: str | None = Header(default=None),
) -> str:
    owner = (x_owner_id or "").strip()
    return owner or config.app.default_owner


@app.get("/", response_class=HTMLResponse)
def dashboard(
    request: Request,
    conn: sqlite3.Connection = Depends(get_connection),
    owner_id: str = Depends(get_owner),
    config: AppConfig = Depends(get_config),
) -> HTMLResponse:
    payload = _dashboard_state(conn, owner_id, config)
    context = {"page": "dashboard", **payload}
    return TEMPLATES.TemplateResponse(request, "dashboard.html", context)


@app.get("/analytics", response_class=HTMLResponse)
def analytics_page(
    request: Request,
    conn: sqlite3.Connection = Depends(get_connection),
    owner_id: str = Depends(get_owner),
    config: AppConfig = Depends(get_config),
) -> HTMLResponse:
    payload = _report_payload(request, conn, owner_id, config)
    context = {
        "page": "analytics",
        "report": payload,
        "summary": payload["summary"],
        "window_options": list(config.analytics.rolling_window_options),
        "market_options": MARKETS,
    }
    return TEMPLATES.TemplateResponse(request, "analytics.html", context)


@app.get("/calendar", response_class=HTMLResponse)
def calendar_page(
    request: Request,
    conn: sqlite3.Connection = Depends(get_connection),
    owner_id: str = Depends(get_owner),
    config: AppConfig = Depends(get_config),
) -> HTMLResponse:
    filters = parse_filters(request.query_params)
    sample = select_sample(fetch_trades(conn, owner_id), filters, symbol_match=config.analytics.symbol_match)
    month = calendar_for_param(sample, request.query_params.get("month"))
    context = {
        "page": "calendar",
        "calendar": calendar_payload(month),
        "weekday_headers": WEEKDAY_HEADERS,
        "query_base": filters.query_string(),
    }
    return TEMPLATES.TemplateResponse(request, "calendar.html", context)


@app.get("/api/summary")
def summary_api(
    conn: sqlite3.Connection = Depends(get_connection),
    owner_id: str = Depends(get_owner),
    config: AppConfig = Depends(get_config),
) -> dict[str, Any]:
    return _dashboard_state(conn, owner_id, config)


@app.get("/api/analytics")
def analytics_api(
    request: Request,
    conn: sqlite3.Connection = Depends(get_connection),
    owner_id: str = Depends(get_owner),
    config: AppConfig = Depends(get_config),
) -> dict[str, Any]:
    return _report_payload(request, conn, owner_id, config)


@app.get("/api/calendar")
def calendar_api(
    request: Request,
    conn: sqlite3.Connection = Depends(get_connection),
    owner_id: str = Depends(get_owner),
    config: AppConfig = Depends(get_config),
) -> dict[str, Any]:
    filters = parse_filters(request.query_params)
    sample = select_sample(fetch_trades(conn, owner_id), filters, symbol_match=config.analytics.symbol_match)
    return calendar_payload(calendar_for_param(sample, request.query_params.get("month")))


@app.get("/api/trades")
def trades_api(
    conn: sqlite3.Connection = Depends(get_connection),
    owner_id: str = Depends(get_owner),
) -> list[dict[str, Any]]:
    trades = fetch_trades(conn, owner_id)
    return [trade_payload(trade) for trade in _newest_first(trades)]


@app.post("/api/trades", status_code=201)
def create_trade_api(
    payload: dict[str, Any] = Body(...),
    conn: sqlite3.Connection = Depends(get_connection),
    owner_id: str = Depends(get_owner),
) -> dict[str, Any]:
    ignored = {"id", "trade_id", "tradeId", "owner_id", "ownerId", "user_id", "created_at", "createdAt"}
    row = {key: value for key, value in payload.items() if key not in ignored}
    row["id"] = uuid.uuid4().hex
    try:
        trade = trade_from_row(row, owner_id=owner_id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if trade.executed_at is None:
        raise HTTPException(status_code=422, detail="Missing or invalid executed_at")
    stored = insert_trade(conn, trade)
    if stored is None:
        raise HTTPException(status_code=409, detail="Trade id belongs to another owner")
    logger.info("Created trade %s for owner %s", stored.trade_id, owner_id)
    return trade_payload(stored)


@app.delete("/api/trades/{trade_id}")
def delete_trade_api(
    trade_id: str,
    conn: sqlite3.Connection = Depends(get_connection),
    owner_id: str = Depends(get_owner),
) -> dict[str, Any]:
    if not delete_trade(conn, owner_id, trade_id):
        raise HTTPException(status_code=404, detail="Trade not found")
    return {"deleted": trade_id}


@app.get("/api/pnl-preview")
def pnl_preview_api(request: Request) -> dict[str, float]:
    params = request.query_params
    pnl = compute_realized_pnl(
        params.get("side"),
        params.get("entry"),
        params.get("exit"),
        params.get("size"),
        params.get("multiplier", 1),
    )
    return {"pnl": pnl}


@app.get("/api/account")
def account_api(
    conn: sqlite3.Connection = Depends(get_connection),
    owner_id: str = Depends(get_owner),
) -> dict[str, Any]:
    return _account_payload(ensure_default_account(conn, owner_id))


@app.put("/api/account")
def update_account_api(
    payload: dict[str, Any] = Body(...),
    conn: sqlite3.Connection = Depends(get_connection),
    owner_id: str = Depends(get_owner),
) -> dict[str, Any]:
    value = payload.get("initial_balance")
    if value is None or isinstance(value, bool):
        raise HTTPException(status_code=422, detail="initial_balance is required")
    try:
        account = update_initial_balance(conn, owner_id, value)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return _account_payload(account)


def _report_payload(
    request: Request,
    conn: sqlite3.Connection,
    owner_id: str,
    config: AppConfig,
) -> dict[str, Any]:
    account = ensure_default_account(conn, owner_id)
    report = build_report(
        fetch_trades(conn, owner_id),
        parse_filters(request.query_params),
        initial_balance=account.initial_balance,
        window=_resolve_window(request.query_params.get("window"), config),
        symbol_match=config.analytics.symbol_match,
        drawdown_pct_mode=config.analytics.drawdown_pct_mode,
        distribution_bins=config.analytics.distribution_bins,
    )
    return report_payload(report, max_points=config.analytics.series_max_points)


def _dashboard_state(conn: sqlite3.Connection, owner_id: str, config: AppConfig) -> dict[str, Any]:
    account = ensure_default_account(conn, owner_id)
    trades = order_trades(fetch_trades(conn, owner_id))
    summary = compute_summary(
        trades,
        account.initial_balance,
        drawdown_pct_mode=config.analytics.drawdown_pct_mode,
    )
    return {
        "account": _account_payload(account),
        "summary": summary_payload(summary),
        "daily_equity": [equity_point_payload(point) for point in daily_equity_curve(trades)],
        "recent_trades": [trade_payload(trade) for trade in _newest_first(trades)[:RECENT_TRADES]],
    }


def _resolve_window(value: str | None, config: AppConfig) -> int:
    try:
        window = int(value) if value else config.analytics.rolling_window
    except ValueError:
        return config.analytics.rolling_window
    if window not in config.analytics.rolling_window_options:
        return config.analytics.rolling_window
    return window


def _newest_first(trades: list[Trade]) -> list[Trade]:
    return list(reversed(order_trades(trades)))


def _account_payload(account: Account) -> dict[str, Any]:
    return {"name": account.name, "initial_balance": account.initial_balance}


def money_filter(value: Any) -> str:
    if value is None or isinstance(value, Undefined):
        return "n/a"
    if value == "Infinity":
        return "∞"
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return "n/a"
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def percent_filter(value: Any) -> str:
    if value is None or isinstance(value, Undefined):
        return "n/a"
    try:
        return f"{float(value) * 100:.1f}%"
    except (TypeError, ValueError):
        return "n/a"


def ratio_filter(value: Any) -> str:
    if value == "Infinity":
        return "∞"
    try:
        return f"{float(value):.2f}"
    except (TypeError, ValueError):
        return "n/a"


def timestamp_filter(value: Any) -> str:
    if not value or isinstance(value, Undefined):
        return "n/a"
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return "n/a"
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%b %d, %Y %H:%M UTC")


TEMPLATES.env.filters.update(
    {
        "money": money_filter,
        "percent": percent_filter,
        "ratio": ratio_filter,
        "timestamp": timestamp_filter,
    }
)


def main() -> None:
    import uvicorn

    app_config = load_app_config()
    uvicorn.run(
        "pnl_journal.web.app:app",
        host=app_config.app.host,
        port=app_config.app.port,
        reload=app_config.app.reload,
    )


if __name__ == "__main__":
    main()
