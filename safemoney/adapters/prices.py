from __future__ import annotations

import logging
from typing import Iterable

from safemoney.adapters.symbols import coingecko_id_for, normalize_symbol
from safemoney.core.cache import RedisCache
from safemoney.core.http import ResilientHTTPClient

logger = logging.getLogger(__name__)


class PriceOracle:
    """Batch unit prices in the fiat anchor, keyed by lowercase symbol.

    Symbols that cannot be priced are left out of the result instead of
    raising; callers decide what a missing quote means.
    """

    def __init__(
        self,
        http: ResilientHTTPClient,
        coingecko_base: str,
        fiat: str,
        cache: RedisCache | None = None,
        cache_ttl: int = 15,
        test_mode: bool = False,
        mock_prices: str = "",
    ) -> None:
        self.http = http
        self.coingecko_base = coingecko_base.rstrip("/")
        self.fiat = fiat.upper()
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.test_mode = test_mode
        self.mock_prices_map = self._parse_mock_prices(mock_prices)

    def _parse_mock_prices(self, raw: str) -> dict[str, float]:
        out: dict[str, float] = {}
        if not raw:
            return out
        for item in raw.split(","):
            if ":" not in item:
                continue
            k, v = item.split(":", 1)
            try:
                out[normalize_symbol(k)] = float(v)
            except ValueError:
                continue
        return out

    def _cache_key(self, symbol: str) -> str:
        return f"price:{self.fiat}:{symbol}"

    async def get_prices(self, symbols: Iterable[str]) -> dict[str, float]:
        wanted: list[str] = []
        for raw in symbols:
            symbol = normalize_symbol(raw)
            if symbol not in wanted:
                wanted.append(symbol)

        out: dict[str, float] = {}
        missing: list[str] = []
        for symbol in wanted:
            if self.test_mode and symbol in self.mock_prices_map:
                out[symbol.lower()] = self.mock_prices_map[symbol]
                continue
            if self.cache is not None and self.cache_ttl > 0:
                cached = await self.cache.get_json(self._cache_key(symbol))
                if isinstance(cached, dict) and cached.get("price") is not None:
                    out[symbol.lower()] = float(cached["price"])
                    continue
            missing.append(symbol)

        if missing:
            out.update(await self._fetch(missing))
        return out

    async def _fetch(self, symbols: list[str]) -> dict[str, float]:
        ids: dict[str, str] = {}
        for symbol in symbols:
            cg_id = coingecko_id_for(symbol)
            if cg_id:
                ids[cg_id] = symbol
            else:
                logger.info("price_symbol_unmapped", extra={"event": "price_symbol_unmapped", "error": symbol})
        if not ids:
            return {}

        vs = self.fiat.lower()
        data = await self.http.get_json(
            f"{self.coingecko_base}/simple/price",
            params={"ids": ",".join(ids), "vs_currencies": vs},
        )
        out: dict[str, float] = {}
        for cg_id, symbol in ids.items():
            entry = data.get(cg_id) if isinstance(data, dict) else None
            if not isinstance(entry, dict) or entry.get(vs) is None:
                continue
            price = float(entry[vs])
            out[symbol.lower()] = price
            if self.cache is not None and self.cache_ttl > 0:
                await self.cache.set_json(
                    self._cache_key(symbol),
                    {"symbol": symbol, "price": price, "source": "coingecko"},
                    ttl=self.cache_ttl,
                )
        return out
