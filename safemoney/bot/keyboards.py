from __future__ import annotations

from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from safemoney.bot.updates import ActionKind, CallbackAction


def _data(kind: ActionKind, asset: str | None = None) -> str:
    return CallbackAction(kind, asset).encode()


def main_menu() -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text="💰 Current prices", callback_data=_data(ActionKind.PRICES))
    kb.button(text="🔄 Converter", callback_data=_data(ActionKind.CONVERT_MENU))
    kb.button(text="📊 Conversion history", callback_data=_data(ActionKind.TRANSACTIONS))
    kb.button(text="👑 Admin panel", callback_data=_data(ActionKind.ADMIN))
    kb.adjust(1)
    return kb.as_markup()


def conversion_menu(assets: list[str], fiat: str) -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    for asset in assets:
        kb.button(text=f"{fiat} → {asset}", callback_data=_data(ActionKind.FROM_FIAT, asset))
        kb.button(text=f"{asset} → {fiat}", callback_data=_data(ActionKind.TO_FIAT, asset))
    kb.button(text="⬅️ Main menu", callback_data=_data(ActionKind.MAIN_MENU))
    kb.adjust(*([2] * len(assets)), 1)
    return kb.as_markup()


def prices_menu() -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text="🔄 Refresh", callback_data=_data(ActionKind.PRICES))
    kb.button(text="⬅️ Main menu", callback_data=_data(ActionKind.MAIN_MENU))
    kb.adjust(1)
    return kb.as_markup()


def link_menu(label: str, url: str) -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text=label, url=url)
    kb.button(text="⬅️ Main menu", callback_data=_data(ActionKind.MAIN_MENU))
    kb.adjust(1)
    return kb.as_markup()


def after_conversion_menu() -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text="🔄 Another conversion", callback_data=_data(ActionKind.CONVERT_MENU))
    kb.button(text="📊 Conversion history", callback_data=_data(ActionKind.TRANSACTIONS))
    kb.button(text="⬅️ Main menu", callback_data=_data(ActionKind.MAIN_MENU))
    kb.adjust(1)
    return kb.as_markup()
