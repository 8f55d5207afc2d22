from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import permutations

import pytest

from safemoney.services.analytics import global_stats, summarize
from safemoney.services.transactions import TransactionRecord

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _txn(id_: int, user: int, src: str, dst: str, a: float, b: float, minutes: int = 0) -> TransactionRecord:
    return TransactionRecord(id_, user, src, dst, a, b, T0 + timedelta(minutes=minutes))


def test_user_volume_uses_fiat_side() -> None:
    txns = [
        _txn(1, 7, "TRY", "BTC", 100, 0.00005, minutes=0),
        _txn(2, 7, "BTC", "TRY", 0.001, 50, minutes=5),
    ]
    (summary,) = summarize(txns, "TRY")
    assert summary.user_id == 7
    assert summary.total_transaction_count == 2
    assert summary.total_fiat_volume == pytest.approx(150)
    assert summary.currency_set == {"TRY", "BTC"}
    assert summary.last_active_timestamp == T0 + timedelta(minutes=5)


def test_summaries_in_first_seen_order() -> None:
    txns = [
        _txn(1, 3, "TRY", "DOGE", 10, 2),
        _txn(2, 1, "TRY", "TRX", 20, 5),
        _txn(3, 3, "XMR", "TRY", 1, 6000),
    ]
    assert [s.user_id for s in summarize(txns, "TRY")] == [3, 1]


def test_last_active_keeps_latest_regardless_of_order() -> None:
    txns = [
        _txn(1, 5, "TRY", "BTC", 10, 1, minutes=30),
        _txn(2, 5, "TRY", "BTC", 10, 1, minutes=10),
    ]
    (summary,) = summarize(txns, "TRY")
    assert summary.last_active_timestamp == T0 + timedelta(minutes=30)


def test_summary_is_order_independent() -> None:
    txns = [
        _txn(1, 7, "TRY", "BTC", 100, 0.00005, minutes=1),
        _txn(2, 8, "USDT", "TRY", 3, 96, minutes=2),
        _txn(3, 7, "DOGE", "TRY", 10, 50, minutes=3),
        _txn(4, 8, "TRY", "TRX", 40, 10, minutes=4),
    ]

    def _key(summaries):
        return {
            s.user_id: (s.total_transaction_count, round(s.total_fiat_volume, 9), frozenset(s.currency_set), s.last_active_timestamp)
            for s in summaries
        }

    expected = _key(summarize(txns, "TRY"))
    for perm in permutations(txns):
        assert _key(summarize(list(perm), "TRY")) == expected


def test_global_stats() -> None:
    txns = [
        _txn(1, 7, "TRY", "BTC", 100, 0.00005),
        _txn(2, 7, "BTC", "TRY", 0.001, 50),
        _txn(3, 9, "TRY", "DOGE", 25, 5),
    ]
    stats = global_stats(txns, "TRY")
    assert stats.total_transactions == 3
    assert stats.unique_users == 2
    assert stats.total_fiat_volume == pytest.approx(175)
    assert stats.most_popular_currency == "TRY"


def test_most_popular_tie_goes_to_first_seen() -> None:
    txns = [
        _txn(1, 1, "BTC", "TRY", 1, 1),
        _txn(2, 2, "DOGE", "USDT", 1, 1),
        _txn(3, 2, "DOGE", "BTC", 1, 1),
    ]
    # BTC and DOGE both appear twice; BTC was counted first.
    assert global_stats(txns, "TRY").most_popular_currency == "BTC"


def test_empty_history() -> None:
    assert summarize([], "TRY") == []
    stats = global_stats([], "TRY")
    assert stats.total_transactions == 0
    assert stats.unique_users == 0
    assert stats.most_popular_currency is None


def test_summary_serialization() -> None:
    (summary,) = summarize([_txn(1, 7, "TRY", "BTC", 100, 0.00005)], "TRY")
    assert summary.to_dict() == {
        "userId": 7,
        "totalTransactionCount": 1,
        "currencySet": ["BTC", "TRY"],
        "totalFiatVolume": 100,
        "lastActiveTimestamp": T0.isoformat(),
    }
