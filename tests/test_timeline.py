from datetime import datetime, timedelta, timezone

from conftest import utc

from pnl_journal.metrics.timeline import (
    canonical_time,
    order_trades,
    parse_date_only,
    trade_day_key,
    utc_day_key,
)


class TestCanonicalTime:
    def test_priority_executed_then_created_then_legacy(self, make_trade):
        executed = utc(2024, 3, 1)
        created = utc(2024, 3, 2)
        legacy = utc(2024, 3, 3)
        assert canonical_time(make_trade(1, executed, created_at=created, legacy_time=legacy)) == executed
        assert canonical_time(make_trade(1, None, created_at=created, legacy_time=legacy)) == created
        assert canonical_time(make_trade(1, None, legacy_time=legacy)) == legacy

    def test_missing_everything(self, make_trade):
        assert canonical_time(make_trade(1, None)) is None
        assert trade_day_key(make_trade(1, None)) is None


def test_utc_day_key_ignores_local_offset():
    late_evening_new_york = datetime(2024, 3, 4, 22, 30, tzinfo=timezone(timedelta(hours=-5)))
    assert utc_day_key(late_evening_new_york) == "2024-03-05"


def test_parse_date_only():
    assert parse_date_only("2024-02-29") == utc(2024, 2, 29)
    assert parse_date_only("2023-02-29") is None
    assert parse_date_only("2024-2-9") is None
    assert parse_date_only("") is None


class TestOrderTrades:
    def test_sorts_ascending(self, make_trade):
        late = make_trade(1, utc(2024, 3, 5))
        early = make_trade(2, utc(2024, 3, 4))
        assert order_trades([late, early]) == [early, late]

    def test_ties_keep_input_order(self, make_trade):
        stamp = utc(2024, 3, 4, 15)
        trades = [make_trade(value, stamp) for value in (3, 1, 2)]
        assert [trade.pnl for trade in order_trades(trades)] == [3, 1, 2]
        assert [trade.pnl for trade in order_trades(list(reversed(trades)))] == [2, 1, 3]

    def test_mixed_offsets_compare_as_instants(self, make_trade):
        utc_trade = make_trade(1, utc(2024, 3, 4, 15))
        offset_trade = make_trade(2, datetime(2024, 3, 4, 9, tzinfo=timezone(timedelta(hours=-5))))
        assert order_trades([utc_trade, offset_trade]) == [offset_trade, utc_trade]

    def test_drops_untimed_and_does_not_mutate(self, make_trade):
        trades = [make_trade(1, utc(2024, 3, 5)), make_trade(2, None)]
        snapshot = list(trades)
        assert [trade.pnl for trade in order_trades(trades)] == [1]
        assert trades == snapshot
