from __future__ import annotations

import logging
from typing import Any

import orjson
from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class RedisCache:
    """JSON values in Redis. Every failure is logged and treated as a miss."""

    def __init__(self, redis_url: str) -> None:
        self.redis = Redis.from_url(redis_url, decode_responses=False)

    async def close(self) -> None:
        if hasattr(self.redis, "aclose"):
            await self.redis.aclose()  # type: ignore[attr-defined]
            return
        await self.redis.close()  # type: ignore[func-returns-value]

    async def get_json(self, key: str) -> Any | None:
        try:
            raw = await self.redis.get(key)
            if not raw:
                return None
            return orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning("cache_json_decode_error", extra={"event": "cache_json_decode_error", "cache_key": key})
            return None
        except Exception as exc:  # noqa: BLE001
            logger.warning("cache_get_error", extra={"event": "cache_get_error", "cache_key": key, "error": str(exc)})
            return None

    async def set_json(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self.redis.set(key, orjson.dumps(value), ex=ttl)
        except Exception as exc:  # noqa: BLE001
            logger.warning("cache_set_error", extra={"event": "cache_set_error", "cache_key": key, "error": str(exc)})
