"""Per-user and global views over the transaction history."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from safemoney.services.transactions import TransactionRecord


@dataclass
class UserSummary:
    user_id: int
    total_transaction_count: int = 0
    currency_set: set[str] = field(default_factory=set)
    total_fiat_volume: float = 0.0
    last_active_timestamp: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "totalTransactionCount": self.total_transaction_count,
            "currencySet": sorted(self.currency_set),
            "totalFiatVolume": self.total_fiat_volume,
            "lastActiveTimestamp": self.last_active_timestamp.isoformat() if self.last_active_timestamp else None,
        }


@dataclass(frozen=True)
class GlobalStats:
    total_transactions: int
    unique_users: int
    total_fiat_volume: float
    most_popular_currency: str | None

    def to_dict(self) -> dict:
        return {
            "totalTransactions": self.total_transactions,
            "uniqueUsers": self.unique_users,
            "totalFiatVolume": self.total_fiat_volume,
            "mostPopularCurrency": self.most_popular_currency,
        }


def fiat_side_amount(txn: TransactionRecord, fiat: str) -> float:
    if txn.from_currency == fiat:
        return txn.from_amount
    if txn.to_currency == fiat:
        return txn.to_amount
    return 0.0


def summarize(transactions: Iterable[TransactionRecord], fiat: str) -> list[UserSummary]:
    """One summary per user, in first-seen order."""
    summaries: dict[int, UserSummary] = {}
    for txn in transactions:
        summary = summaries.get(txn.user_id)
        if summary is None:
            summary = summaries[txn.user_id] = UserSummary(user_id=txn.user_id)
        summary.total_transaction_count += 1
        summary.currency_set.add(txn.from_currency)
        summary.currency_set.add(txn.to_currency)
        summary.total_fiat_volume += fiat_side_amount(txn, fiat)
        if summary.last_active_timestamp is None or txn.timestamp > summary.last_active_timestamp:
            summary.last_active_timestamp = txn.timestamp
    return list(summaries.values())


def global_stats(transactions: Iterable[TransactionRecord], fiat: str) -> GlobalStats:
    count = 0
    users: set[int] = set()
    volume = 0.0
    occurrences: dict[str, int] = {}
    for txn in transactions:
        count += 1
        users.add(txn.user_id)
        volume += fiat_side_amount(txn, fiat)
        for symbol in (txn.from_currency, txn.to_currency):
            occurrences[symbol] = occurrences.get(symbol, 0) + 1

    most_popular = None
    best = 0
    for symbol, n in occurrences.items():
        if n > best:
            most_popular, best = symbol, n
    return GlobalStats(count, len(users), volume, most_popular)
