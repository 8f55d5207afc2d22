"""Append-only record of completed conversions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from safemoney.core.errors import PersistenceFailure, UnsupportedCurrency
from safemoney.db.models import ConversionTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransactionRecord:
    id: int | None
    user_id: int
    from_currency: str
    to_currency: str
    from_amount: float
    to_amount: float
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "fromCurrency": self.from_currency,
            "toCurrency": self.to_currency,
            "fromAmount": self.from_amount,
            "toAmount": self.to_amount,
            "timestamp": self.timestamp.isoformat(),
        }


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row: ConversionTransaction) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        user_id=int(row.user_id),
        from_currency=row.from_currency,
        to_currency=row.to_currency,
        from_amount=float(row.from_amount),
        to_amount=float(row.to_amount),
        timestamp=_as_utc(row.created_at),
    )


class TransactionRecorder:
    def __init__(self, db_factory, fiat: str, supported_assets: list[str]) -> None:
        self.db_factory = db_factory
        self.fiat = fiat.upper()
        self.supported_assets = {a.upper() for a in supported_assets}

    def validate_pair(self, from_currency: str, to_currency: str) -> None:
        """Exactly one side is the fiat anchor, the other a supported asset."""
        src, dst = from_currency.upper(), to_currency.upper()
        if src == self.fiat and dst in self.supported_assets:
            return
        if dst == self.fiat and src in self.supported_assets:
            return
        raise UnsupportedCurrency(f"{src} -> {dst} cannot be recorded")

    async def record(
        self,
        user_id: int,
        from_currency: str,
        to_currency: str,
        from_amount: float,
        to_amount: float,
        timestamp: datetime | None = None,
    ) -> TransactionRecord:
        self.validate_pair(from_currency, to_currency)
        row = ConversionTransaction(
            user_id=int(user_id),
            from_currency=from_currency.upper(),
            to_currency=to_currency.upper(),
            from_amount=float(from_amount),
            to_amount=float(to_amount),
            created_at=timestamp or datetime.now(timezone.utc),
        )
        try:
            async with self.db_factory() as session:
                session.add(row)
                await session.commit()
                await session.refresh(row)
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"could not record conversion for user {user_id}: {exc}") from exc
        record = _to_record(row)
        logger.info(
            "transaction_recorded",
            extra={"event": "transaction_recorded", "user_id": record.user_id},
        )
        return record

    async def list_all(self) -> list[TransactionRecord]:
        return await self._query(None)

    async def list_for_user(self, user_id: int) -> list[TransactionRecord]:
        return await self._query(int(user_id))

    async def _query(self, user_id: int | None) -> list[TransactionRecord]:
        stmt = select(ConversionTransaction)
        if user_id is not None:
            stmt = stmt.where(ConversionTransaction.user_id == user_id)
        stmt = stmt.order_by(ConversionTransaction.created_at.desc(), ConversionTransaction.id.desc())
        try:
            async with self.db_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"could not read transactions: {exc}") from exc
        return [_to_record(r) for r in rows]
