from __future__ import annotations

from datetime import datetime, timezone
from itertools import count

import pytest

from pnl_journal.models import Trade


@pytest.fixture
def make_trade():
    ids = count(1)

    def _make(
        pnl: float,
        executed_at: datetime | str | None = "2024-03-04T15:00:00Z",
        *,
        symbol: str = "MNQ",
        side: str = "LONG",
        owner_id: str = "alice",
        created_at: datetime | None = None,
        legacy_time: datetime | None = None,
        market: str | None = None,
        trade_id: str | None = None,
    ) -> Trade:
        if isinstance(executed_at, str):
            executed_at = datetime.fromisoformat(executed_at.replace("Z", "+00:00"))
        return Trade(
            trade_id=trade_id or f"t{next(ids)}",
            owner_id=owner_id,
            symbol=symbol,
            side=side,
            pnl=pnl,
            executed_at=executed_at,
            created_at=created_at,
            legacy_time=legacy_time,
            market=market,
        )

    return _make


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
