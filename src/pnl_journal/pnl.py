from __future__ import annotations

from typing import Any

from pnl_journal.models import SIDE_LONG, normalize_side, to_float


def compute_realized_pnl(
    side: Any,
    entry_price: Any,
    exit_price: Any,
    size: Any,
    multiplier: Any = 1,
) -> float:
    """Suggested PnL for the entry form; stored trade pnl always wins in analytics.

    Returns 0.0 instead of raising when any input is missing or non-numeric.
    """
    resolved_side = normalize_side(side)
    entry = to_float(entry_price)
    exit_ = to_float(exit_price)
    qty = to_float(size)
    mult = to_float(multiplier)
    if resolved_side is None or entry is None or exit_ is None or qty is None or mult is None:
        return 0.0
    raw = (exit_ - entry) if resolved_side == SIDE_LONG else (entry - exit_)
    return raw * qty * mult
