from __future__ import annotations

import logging

from aiogram import Bot
from aiogram.types import InlineKeyboardMarkup

from safemoney.core.errors import TransportFailure

logger = logging.getLogger(__name__)


class TelegramTransport:
    """Outbound side of the chat: send replies and acknowledge button presses."""

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def send_message(
        self, chat_id: int, text: str, reply_markup: InlineKeyboardMarkup | None = None
    ) -> None:
        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode="HTML",
                reply_markup=reply_markup,
            )
        except Exception as exc:  # noqa: BLE001
            raise TransportFailure(f"sendMessage to {chat_id} failed: {exc}") from exc

    async def answer_callback(self, callback_id: str) -> None:
        try:
            await self.bot.answer_callback_query(callback_query_id=callback_id)
        except Exception as exc:  # noqa: BLE001
            raise TransportFailure(f"answerCallbackQuery {callback_id} failed: {exc}") from exc

    async def close(self) -> None:
        await self.bot.session.close()
