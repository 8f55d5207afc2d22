from __future__ import annotations

COINGECKO_MAP = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDT": "tether",
    "TRX": "tron",
    "XMR": "monero",
    "DOGE": "dogecoin",
    "SOL": "solana",
    "BNB": "binancecoin",
    "XRP": "ripple",
    "LTC": "litecoin",
}

ALIASES = {
    "XBT": "BTC",
    "BITCOIN": "BTC",
    "TETHER": "USDT",
    "TRON": "TRX",
    "MONERO": "XMR",
    "DOGECOIN": "DOGE",
    "TL": "TRY",
}


def normalize_symbol(symbol: str) -> str:
    s = symbol.strip().upper().lstrip("$")
    return ALIASES.get(s, s)


def coingecko_id_for(symbol: str) -> str | None:
    return COINGECKO_MAP.get(normalize_symbol(symbol))
