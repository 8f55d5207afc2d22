from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from safemoney.core.errors import UpstreamError

logger = logging.getLogger(__name__)

_TRANSIENT_STATUSES = (429, 500, 502, 503, 504)


@dataclass
class CircuitState:
    failures: int = 0
    open_until: float = 0.0


class ResilientHTTPClient:
    """JSON-over-HTTP client with a per-host circuit breaker.

    Failures surface as ``UpstreamError``. Retries are opt-in; with the
    default of zero every call is a single attempt.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        retries: int = 0,
        backoff_base: float = 0.4,
        breaker_threshold: int = 4,
        breaker_cooldown: int = 60,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.timeout = timeout
        self.retries = max(retries, 0)
        self.backoff_base = backoff_base
        self.breaker_threshold = breaker_threshold
        self.breaker_cooldown = breaker_cooldown
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._state: dict[str, CircuitState] = {}

    async def close(self) -> None:
        await self._client.aclose()

    def _is_open(self, host: str) -> bool:
        state = self._state.setdefault(host, CircuitState())
        return state.open_until > time.time()

    def _record_failure(self, host: str) -> None:
        state = self._state.setdefault(host, CircuitState())
        state.failures += 1
        if state.failures >= self.breaker_threshold:
            state.open_until = time.time() + self.breaker_cooldown
            logger.warning("http_circuit_open", extra={"event": "http_circuit_open", "error": host})

    def _record_success(self, host: str) -> None:
        self._state[host] = CircuitState()

    async def get_json(
        self, url: str, params: dict[str, Any] | None = None, headers: dict[str, str] | None = None
    ) -> Any:
        host = httpx.URL(url).host or "unknown"
        if self._is_open(host):
            raise UpstreamError(f"Circuit open for {host}")

        last_error: Exception | None = None
        for attempt in range(self.retries + 1):
            started = time.perf_counter()
            try:
                response = await self._client.get(url, params=params, headers=headers)
                if response.status_code in _TRANSIENT_STATUSES:
                    raise UpstreamError(f"Transient status {response.status_code}")
                response.raise_for_status()
                self._record_success(host)
                return response.json()
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                self._record_failure(host)
                logger.warning(
                    "http_request_failed",
                    extra={
                        "event": "http_request_failed",
                        "error": str(exc),
                        "latency_ms": round((time.perf_counter() - started) * 1000, 1),
                    },
                )
                if attempt >= self.retries:
                    break
                await asyncio.sleep(self.backoff_base * (2**attempt))

        raise UpstreamError(f"Failed to fetch {url}: {last_error}")
