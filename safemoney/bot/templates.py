from __future__ import annotations

from datetime import datetime, timedelta, timezone

from safemoney.core.fmt import fmt_amount, fmt_asset, fmt_fiat, safe_html
from safemoney.services.conversion import BreakdownRow, ConversionResult

# Turkey stays on UTC+3 all year.
ISTANBUL_TZ = timezone(timedelta(hours=3))

BOT_NAME = "SafeMoneyRobot"


def main_menu_text() -> str:
    return (
        f"🤖 <b>{BOT_NAME}</b>\n\n"
        "Hi! Use the menu below to check current crypto prices or run a conversion."
    )


def help_text(fiat: str) -> str:
    return (
        "<b>commands</b>\n\n"
        "/menu · main menu\n"
        f"/convert &lt;amount&gt; &lt;from&gt; &lt;to&gt; · e.g. <code>/convert 100 {fiat} BTC</code>\n"
        "/transactions · conversion history\n"
        "/admin · admin panel\n\n"
        f"<i>in groups only /convert works, and one side must be {fiat}.</i>"
    )


def usage_hint(fiat: str) -> str:
    return (
        "Format: <code>/convert [amount] [from currency] [to currency]</code>\n"
        f"Example: <code>/convert 100 {fiat} BTC</code>"
    )


def invalid_amount_text() -> str:
    return "Invalid amount. Please send a positive number."


def unsupported_currency_text(fiat: str, assets: list[str]) -> str:
    return (
        "Unsupported currency pair. "
        f"Convert between {fiat} and one of: {', '.join(assets)}."
    )


def price_unavailable_text(symbol: str) -> str:
    return f"Sorry, no price is available for {safe_html(symbol)} right now. Please try again later."


def oracle_unreachable_text() -> str:
    return "Sorry, the price service is unreachable right now. Please try again later."


def conversion_menu_text() -> str:
    return "🔄 <b>Converter</b>\n\nPick the conversion you want to make:"


def amount_prompt(from_currency: str, to_currency: str, fiat: str) -> str:
    if from_currency == fiat:
        return f"Send the {fiat} amount you want to convert to {to_currency}:"
    return f"Send the {from_currency} amount you want to convert to {fiat}:"


def group_conversion_prompt(from_currency: str, to_currency: str) -> str:
    return (
        f"Send the {from_currency} amount inline with the command.\n\n"
        f"Example: <code>/convert 100 {from_currency} {to_currency}</code>"
    )


def transactions_link_text(url: str) -> str:
    return f"📊 <b>Conversion history</b>\n\nAll your conversions are listed here:\n\n{safe_html(url)}"


def admin_link_text(url: str) -> str:
    return f"👑 <b>Admin panel</b>\n\nManage user conversions from the admin panel:\n\n{safe_html(url)}"


def prices_template(prices: dict[str, float], assets: list[str], fiat_sign: str, now: datetime | None = None) -> str:
    lines = ["💰 <b>Current crypto prices</b>\n"]
    for asset in assets:
        price = prices.get(asset.lower())
        if price:
            lines.append(f"<b>{asset}</b>: {fmt_fiat(price, fiat_sign)}")
    if len(lines) == 1:
        lines.append("<i>no quotes available right now.</i>")
    stamp = (now or datetime.now(timezone.utc)).astimezone(ISTANBUL_TZ)
    lines.append(f"\n<i>Last update: {stamp:%d.%m.%Y %H:%M:%S}</i>")
    return "\n".join(lines)


def _side(currency: str, amount: float, result: ConversionResult, fiat_sign: str) -> str:
    if currency == result.fiat_currency:
        return fmt_fiat(amount, fiat_sign)
    return fmt_asset(amount, currency)


def conversion_result_template(result: ConversionResult, fiat_sign: str) -> str:
    left = _side(result.from_currency, result.from_amount, result, fiat_sign)
    right = _side(result.to_currency, result.to_amount, result, fiat_sign)
    return f"💱 <b>Conversion result</b>\n\n{left} = {right}"


def breakdown_template(rows: list[BreakdownRow], fiat: str, asset: str, fiat_sign: str) -> str:
    lines = [f"\n\n<b>{fiat}-{asset} rates:</b>"]
    for row in rows:
        lines.append(
            f"%{row.percent} {fiat}: {row.discounted_fiat:,.1f} {fiat_sign}, "
            f"{asset}: {fmt_amount(row.asset_amount, 2)}"
        )
    return "\n".join(lines)


def breakdown_unavailable_text(asset: str) -> str:
    return f"\n\n<i>{asset} rates could not be computed.</i>"
