"""Conversion between the fiat anchor and the supported assets."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol

from safemoney.core.errors import PriceUnavailable, UnsupportedCurrency

BREAKDOWN_PERCENTAGES: tuple[int, ...] = tuple(range(10, 55, 5))


class PriceSource(Protocol):
    async def get_prices(self, symbols: list[str]) -> dict[str, float]: ...


@dataclass(frozen=True)
class BreakdownRow:
    percent: int
    discounted_fiat: float
    asset_amount: float


@dataclass(frozen=True)
class ConversionResult:
    from_currency: str
    to_currency: str
    from_amount: float
    to_amount: float
    fiat_currency: str

    @property
    def fiat_amount(self) -> float:
        """Amount on the fiat side of the pair."""
        return self.from_amount if self.from_currency == self.fiat_currency else self.to_amount

    @property
    def asset(self) -> str:
        return self.to_currency if self.from_currency == self.fiat_currency else self.from_currency


def fiat_to_asset(amount: float, unit_price: float) -> float:
    return amount / unit_price


def asset_to_fiat(amount: float, unit_price: float) -> float:
    return amount * unit_price


def breakdown_rows(fiat_amount: float, unit_price: float) -> list[BreakdownRow]:
    rows = []
    for percent in BREAKDOWN_PERCENTAGES:
        discounted = fiat_amount * (1 - percent / 100)
        rows.append(BreakdownRow(percent, discounted, fiat_to_asset(discounted, unit_price)))
    return rows


class ConversionEngine:
    def __init__(self, oracle: PriceSource, fiat: str, supported_assets: list[str]) -> None:
        self.oracle = oracle
        self.fiat = fiat.upper()
        self.supported_assets = [a.upper() for a in supported_assets]

    def is_supported(self, symbol: str) -> bool:
        return symbol.upper() in self.supported_assets

    def _require_asset(self, asset: str) -> str:
        symbol = asset.strip().upper()
        if symbol not in self.supported_assets:
            raise UnsupportedCurrency(f"{symbol} is not a supported asset")
        return symbol

    async def unit_price(self, asset: str) -> float:
        symbol = self._require_asset(asset)
        prices = await self.oracle.get_prices([symbol])
        price = prices.get(symbol.lower())
        if price is None or not math.isfinite(price) or price <= 0:
            raise PriceUnavailable(symbol)
        return float(price)

    async def convert_fiat_to_asset(self, amount: float, asset: str) -> float:
        return fiat_to_asset(amount, await self.unit_price(asset))

    async def convert_asset_to_fiat(self, amount: float, asset: str) -> float:
        return asset_to_fiat(amount, await self.unit_price(asset))

    async def percentage_breakdown(self, fiat_amount: float, asset: str) -> list[BreakdownRow]:
        return breakdown_rows(fiat_amount, await self.unit_price(asset))

    async def convert(self, amount: float, from_currency: str, to_currency: str) -> ConversionResult:
        """Convert across the fiat boundary; exactly one side must be the fiat anchor."""
        src = from_currency.strip().upper()
        dst = to_currency.strip().upper()
        if src == self.fiat and dst in self.supported_assets:
            to_amount = await self.convert_fiat_to_asset(amount, dst)
        elif dst == self.fiat and src in self.supported_assets:
            to_amount = await self.convert_asset_to_fiat(amount, src)
        else:
            raise UnsupportedCurrency(f"{src} -> {dst} is not a {self.fiat} <-> asset pair")
        return ConversionResult(src, dst, amount, to_amount, self.fiat)
