from __future__ import annotations

import json
import logging

import orjson
import pytest

from safemoney.core.cache import RedisCache
from safemoney.core.logging import JsonFormatter


class DummyRedis:
    def __init__(self, raw: bytes | None = None, fail: bool = False) -> None:
        self.raw = raw
        self.fail = fail
        self.stored: dict[str, tuple[bytes, int]] = {}

    async def get(self, key: str) -> bytes | None:
        if self.fail:
            raise ConnectionError("redis down")
        return self.raw

    async def set(self, key: str, value: bytes, ex: int) -> None:
        if self.fail:
            raise ConnectionError("redis down")
        self.stored[key] = (value, ex)


def _cache(redis: DummyRedis) -> RedisCache:
    cache = RedisCache("redis://localhost:6379/0")
    cache.redis = redis  # type: ignore[assignment]
    return cache


@pytest.mark.asyncio
async def test_set_then_get_json() -> None:
    redis = DummyRedis()
    cache = _cache(redis)
    await cache.set_json("price:TRY:BTC", {"price": 2_000_000.0}, ttl=15)
    value, ttl = redis.stored["price:TRY:BTC"]
    assert ttl == 15
    redis.raw = value
    assert await cache.get_json("price:TRY:BTC") == {"price": 2_000_000.0}


@pytest.mark.asyncio
async def test_bad_json_is_a_miss_logged_with_key(caplog: pytest.LogCaptureFixture) -> None:
    cache = _cache(DummyRedis(raw=b"{not json"))
    with caplog.at_level(logging.WARNING, logger="safemoney.core.cache"):
        assert await cache.get_json("price:TRY:XMR") is None
    record = caplog.records[-1]
    assert record.cache_key == "price:TRY:XMR"
    payload = json.loads(JsonFormatter().format(record))
    assert payload["cache_key"] == "price:TRY:XMR"
    assert "error" not in payload


@pytest.mark.asyncio
async def test_redis_errors_degrade_to_miss(caplog: pytest.LogCaptureFixture) -> None:
    cache = _cache(DummyRedis(raw=orjson.dumps({"price": 1}), fail=True))
    with caplog.at_level(logging.WARNING, logger="safemoney.core.cache"):
        assert await cache.get_json("price:TRY:DOGE") is None
        await cache.set_json("price:TRY:DOGE", {"price": 1}, ttl=15)
    events = [(r.event, r.cache_key, r.error) for r in caplog.records]
    assert events == [
        ("cache_get_error", "price:TRY:DOGE", "redis down"),
        ("cache_set_error", "price:TRY:DOGE", "redis down"),
    ]
