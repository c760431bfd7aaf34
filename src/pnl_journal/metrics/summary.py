from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from pnl_journal.metrics.timeline import order_trades, pnl_value
from pnl_journal.models import Trade, to_float

DRAWDOWN_PCT_INITIAL_BALANCE = "initial_balance"
DRAWDOWN_PCT_PEAK_EQUITY = "peak_equity"
DRAWDOWN_PCT_MODES = (DRAWDOWN_PCT_INITIAL_BALANCE, DRAWDOWN_PCT_PEAK_EQUITY)


@dataclass(frozen=True)
class SummaryStats:
    trade_count: int
    total_pnl: float
    win_count: int
    loss_count: int
    breakeven_count: int
    win_rate: float
    gross_win: float
    gross_loss_abs: float
    profit_factor: float
    expectancy: float
    max_drawdown_abs: float
    max_drawdown_pct: float
    avg_win: float
    avg_loss: float
    payoff_ratio: float
    largest_win: float
    largest_loss: float
    max_consecutive_wins: int
    max_consecutive_losses: int
    initial_balance: float
    ending_balance: float


def compute_summary(
    trades: Iterable[Trade],
    initial_balance: float | None = 0.0,
    *,
    drawdown_pct_mode: str = DRAWDOWN_PCT_INITIAL_BALANCE,
) -> SummaryStats:
    """Single pass over the chronologically ordered sample.

    Drawdown runs on the performance curve (cumulative pnl from 0). The
    percentage is either relative to the initial balance or to the running
    peak of account equity (initial balance + performance curve).
    """
    ordered = order_trades(trades)
    start_balance = to_float(initial_balance) or 0.0

    total = 0.0
    gross_win = 0.0
    gross_loss = 0.0
    wins = losses = breakevens = 0
    largest_win = 0.0
    largest_loss = 0.0
    streak_wins = streak_losses = 0
    max_streak_wins = max_streak_losses = 0

    peak = 0.0
    max_dd = 0.0
    peak_equity = start_balance
    max_dd_peak_pct = 0.0

    for trade in ordered:
        pnl = pnl_value(trade)
        total += pnl
        if pnl > 0:
            wins += 1
            gross_win += pnl
            largest_win = max(largest_win, pnl)
            streak_wins += 1
            streak_losses = 0
        elif pnl < 0:
            losses += 1
            gross_loss += pnl
            largest_loss = min(largest_loss, pnl)
            streak_losses += 1
            streak_wins = 0
        else:
            breakevens += 1
            streak_wins = 0
            streak_losses = 0
        max_streak_wins = max(max_streak_wins, streak_wins)
        max_streak_losses = max(max_streak_losses, streak_losses)

        if total > peak:
            peak = total
        drawdown = peak - total
        if drawdown > max_dd:
            max_dd = drawdown

        equity = start_balance + total
        if equity > peak_equity:
            peak_equity = equity
        if peak_equity > 0:
            max_dd_peak_pct = max(max_dd_peak_pct, (peak_equity - equity) / peak_equity * 100.0)

    count = len(ordered)
    gross_loss_abs = abs(gross_loss)
    avg_win = gross_win / wins if wins else 0.0
    avg_loss = -(gross_loss_abs / losses) if losses else 0.0

    if drawdown_pct_mode == DRAWDOWN_PCT_PEAK_EQUITY:
        max_dd_pct = max_dd_peak_pct
    else:
        max_dd_pct = (max_dd / start_balance * 100.0) if start_balance > 0 else 0.0

    return SummaryStats(
        trade_count=count,
        total_pnl=total,
        win_count=wins,
        loss_count=losses,
        breakeven_count=breakevens,
        win_rate=wins / count if count else 0.0,
        gross_win=gross_win,
        gross_loss_abs=gross_loss_abs,
        profit_factor=profit_factor(gross_win, gross_loss_abs),
        expectancy=total / count if count else 0.0,
        max_drawdown_abs=max_dd,
        max_drawdown_pct=max_dd_pct,
        avg_win=avg_win,
        avg_loss=avg_loss,
        payoff_ratio=avg_win / abs(avg_loss) if avg_loss else 0.0,
        largest_win=largest_win,
        largest_loss=largest_loss,
        max_consecutive_wins=max_streak_wins,
        max_consecutive_losses=max_streak_losses,
        initial_balance=start_balance,
        ending_balance=start_balance + total,
    )


def profit_factor(gross_win: float, gross_loss_abs: float) -> float:
    if gross_loss_abs == 0:
        return math.inf if gross_win > 0 else 0.0
    return gross_win / gross_loss_abs


def compute_symbol_breakdown(trades: Iterable[Trade]) -> list[dict[str, float | int | str]]:
    buckets: dict[str, list[Trade]] = {}
    for trade in trades:
        buckets.setdefault(trade.symbol, []).append(trade)

    rows: list[dict[str, float | int | str]] = []
    for symbol, items in sorted(buckets.items(), key=lambda item: item[0]):
        stats = compute_summary(items)
        rows.append(
            {
                "symbol": symbol,
                "trades": stats.trade_count,
                "win_rate": stats.win_rate,
                "total_pnl": stats.total_pnl,
                "expectancy": stats.expectancy,
                "profit_factor": stats.profit_factor,
            }
        )
    return rows


def compute_pnl_distribution(
    trades: Iterable[Trade],
    bins: int = 20,
) -> dict[str, float | list[dict[str, float | int]]]:
    values = [pnl_value(trade) for trade in trades]
    if not values:
        return {"min": 0.0, "max": 0.0, "bins": []}
    min_val = min(values)
    max_val = max(values)
    if min_val == max_val:
        return {
            "min": min_val,
            "max": max_val,
            "bins": [{"start": min_val, "end": max_val, "count": len(values)}],
        }
    bins = max(1, bins)
    width = (max_val - min_val) / bins
    counts = [0] * bins
    for value in values:
        idx = int((value - min_val) / width)
        if idx >= bins:
            idx = bins - 1
        counts[idx] += 1
    buckets = []
    for idx, count in enumerate(counts):
        start = min_val + idx * width
        buckets.append({"start": start, "end": start + width, "count": count})
    return {"min": min_val, "max": max_val, "bins": buckets}

