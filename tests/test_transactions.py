from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import text

from safemoney.core.errors import PersistenceFailure, UnsupportedCurrency
from safemoney.db.models import Base
from safemoney.db.session import build_engine, build_session_factory, normalize_asyncpg_query, normalize_database_url
from safemoney.services.transactions import TransactionRecorder

ASSETS = ["BTC", "USDT", "TRX", "XMR", "DOGE"]
T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


async def _recorder(tmp_path, create_tables: bool = True):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'txns.db'}")
    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    return TransactionRecorder(build_session_factory(engine), "TRY", ASSETS), engine


@pytest.mark.asyncio
async def test_record_returns_stored_row(tmp_path) -> None:
    recorder, engine = await _recorder(tmp_path)
    try:
        rec = await recorder.record(7, "try", "btc", 100, 0.00005)
        assert rec.id is not None
        assert (rec.from_currency, rec.to_currency) == ("TRY", "BTC")
        assert rec.timestamp.tzinfo is not None
        assert rec.to_dict()["userId"] == 7
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_lists_are_newest_first_and_filter_by_user(tmp_path) -> None:
    recorder, engine = await _recorder(tmp_path)
    try:
        await recorder.record(7, "TRY", "BTC", 100, 0.00005, timestamp=T0)
        await recorder.record(8, "DOGE", "TRY", 10, 50, timestamp=T0 + timedelta(hours=1))
        await recorder.record(7, "BTC", "TRY", 0.001, 50, timestamp=T0 + timedelta(hours=2))

        all_rows = await recorder.list_all()
        assert [r.user_id for r in all_rows] == [7, 8, 7]
        assert all_rows[0].from_currency == "BTC"

        mine = await recorder.list_for_user(7)
        assert [r.from_currency for r in mine] == ["BTC", "TRY"]
        assert await recorder.list_for_user(99) == []
    finally:
        await engine.dispose()


@pytest.mark.parametrize(("src", "dst"), [("TRY", "TRY"), ("BTC", "DOGE"), ("TRY", "ETH")])
@pytest.mark.asyncio
async def test_invalid_pairs_are_never_written(tmp_path, src: str, dst: str) -> None:
    recorder, engine = await _recorder(tmp_path)
    try:
        with pytest.raises(UnsupportedCurrency):
            await recorder.record(7, src, dst, 1, 1)
        assert await recorder.list_all() == []
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_database_errors_become_persistence_failures(tmp_path) -> None:
    recorder, engine = await _recorder(tmp_path, create_tables=False)
    try:
        with pytest.raises(PersistenceFailure):
            await recorder.record(7, "TRY", "BTC", 100, 0.00005)
        with pytest.raises(PersistenceFailure):
            await recorder.list_all()
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_schema_has_expected_columns(tmp_path) -> None:
    _, engine = await _recorder(tmp_path)
    try:
        async with engine.connect() as conn:
            rows = (await conn.execute(text("PRAGMA table_info(transactions)"))).all()
        assert {r[1] for r in rows} == {
            "id",
            "user_id",
            "from_currency",
            "to_currency",
            "from_amount",
            "to_amount",
            "created_at",
        }
    finally:
        await engine.dispose()


def test_database_url_normalization() -> None:
    assert normalize_database_url("postgres://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    url, args = normalize_asyncpg_query("postgresql+asyncpg://u:p@h/db?sslmode=require&channel_binding=prefer&x=1")
    assert url == "postgresql+asyncpg://u:p@h/db?x=1"
    assert args == {"ssl": "require"}
