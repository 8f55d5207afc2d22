from __future__ import annotations

import math


def safe_html(text: str) -> str:
    """Escape special HTML characters so dynamic content is safe in HTML parse_mode."""
    return str(text).replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def _strip_zeros(out: str) -> str:
    if "." in out:
        out = out.rstrip("0").rstrip(".")
    return out


def fmt_amount(v: float, max_decimals: int = 8) -> str:
    """Thousands-separated amount with at most ``max_decimals`` digits and no trailing zeros.

    Non-zero values too small for ``max_decimals`` keep three significant digits
    instead of collapsing to "0".

    fmt_amount(100) -> "100", fmt_amount(0.00005) -> "0.00005", fmt_amount(5e-9) -> "0.000000005"
    """
    out = _strip_zeros(f"{v:,.{max_decimals}f}")
    if out in ("0", "-0", "") and v != 0 and math.isfinite(v):
        decimals = 2 - math.floor(math.log10(abs(v)))
        out = _strip_zeros(f"{v:,.{decimals}f}")
    if out in ("-0", ""):
        return "0"
    return out


def fmt_fiat(v: float, sign: str) -> str:
    return f"{fmt_amount(v, 2)} {sign}"


def fmt_asset(v: float, symbol: str) -> str:
    return f"{fmt_amount(v, 8)} {symbol}"
