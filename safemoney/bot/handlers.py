from __future__ import annotations

import logging
import math
import time
from typing import Any, Protocol

from aiogram.types import InlineKeyboardMarkup

from safemoney.adapters.symbols import normalize_symbol
from safemoney.bot.keyboards import after_conversion_menu, conversion_menu, link_menu, main_menu, prices_menu
from safemoney.bot.templates import (
    admin_link_text,
    amount_prompt,
    breakdown_template,
    breakdown_unavailable_text,
    conversion_menu_text,
    conversion_result_template,
    group_conversion_prompt,
    help_text,
    invalid_amount_text,
    main_menu_text,
    oracle_unreachable_text,
    price_unavailable_text,
    prices_template,
    transactions_link_text,
    unsupported_currency_text,
    usage_hint,
)
from safemoney.bot.updates import ActionKind, InboundCallback, InboundMessage, InboundUpdate, parse_update
from safemoney.core.config import Settings
from safemoney.core.errors import (
    InvalidAmount,
    MalformedUpdate,
    PersistenceFailure,
    PriceUnavailable,
    TransportFailure,
    UnsupportedCurrency,
    UpstreamError,
)
from safemoney.services.conversation_state import ConversationIntent, ConversationStateStore
from safemoney.services.conversion import ConversionEngine, ConversionResult, PriceSource
from safemoney.services.transactions import TransactionRecorder

logger = logging.getLogger(__name__)

GROUP_COMMANDS = frozenset({"convert"})


class ChatTransport(Protocol):
    async def send_message(
        self, chat_id: int, text: str, reply_markup: InlineKeyboardMarkup | None = None
    ) -> None: ...

    async def answer_callback(self, callback_id: str) -> None: ...


def split_command(text: str) -> tuple[str, list[str]]:
    """Return (command name, arguments); the name is empty for plain text.

    "/Convert@SafeMoneyRobot 5 btc try" -> ("convert", ["5", "btc", "try"])
    """
    tokens = text.split()
    if not tokens:
        return "", []
    head = tokens[0].lower().split("@", 1)[0]
    if head.startswith("/"):
        return head[1:], tokens[1:]
    if head == "convert":
        return head, tokens[1:]
    return "", tokens


def parse_amount(raw: str) -> float:
    try:
        amount = float(raw.strip())
    except (ValueError, AttributeError) as exc:
        raise InvalidAmount(f"not a number: {raw!r}") from exc
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidAmount(f"not a positive finite number: {raw!r}")
    return amount


class UpdateRouter:
    """Routes inbound chat updates and drives the one-shot amount prompt.

    Per message: a pending intent for the chat wins, then group chats only
    honour ``/convert``, then private chats dispatch by command. Callback
    updates always end with exactly one acknowledgment.
    """

    def __init__(
        self,
        settings: Settings,
        transport: ChatTransport,
        state: ConversationStateStore,
        engine: ConversionEngine,
        oracle: PriceSource,
        recorder: TransactionRecorder,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.state = state
        self.engine = engine
        self.oracle = oracle
        self.recorder = recorder
        self.fiat = settings.fiat()
        self.fiat_sign = settings.fiat_sign
        self.assets = settings.supported_assets_list()
        self.breakdown_asset = settings.breakdown_asset.strip().upper()
        self.app_url = settings.app_url.rstrip("/")

    async def handle_raw(self, payload: Any) -> None:
        try:
            update = parse_update(payload)
        except MalformedUpdate as exc:
            logger.warning("update_malformed", extra={"event": "update_malformed", "error": str(exc)})
            return
        await self.handle(update)

    async def handle(self, update: InboundUpdate) -> None:
        started = time.perf_counter()
        try:
            if isinstance(update, InboundCallback):
                await self._on_callback(update)
            else:
                await self._on_message(update)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "update_failed",
                extra={
                    "event": "update_failed",
                    "update_id": update.update_id,
                    "chat_id": update.chat_id,
                    "error": str(exc),
                },
            )
        finally:
            if isinstance(update, InboundCallback):
                await self._ack(update)
        logger.info(
            "update_handled",
            extra={
                "event": "update_handled",
                "update_id": update.update_id,
                "chat_id": update.chat_id,
                "latency_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )

    async def _reply(self, chat_id: int, text: str, reply_markup: InlineKeyboardMarkup | None = None) -> None:
        try:
            await self.transport.send_message(chat_id, text, reply_markup)
        except TransportFailure as exc:
            logger.warning("reply_failed", extra={"event": "reply_failed", "chat_id": chat_id, "error": str(exc)})

    async def _ack(self, callback: InboundCallback) -> None:
        try:
            await self.transport.answer_callback(callback.callback_id)
        except TransportFailure as exc:
            logger.warning(
                "callback_ack_failed",
                extra={"event": "callback_ack_failed", "chat_id": callback.chat_id, "error": str(exc)},
            )

    # messages

    async def _on_message(self, message: InboundMessage) -> None:
        if not message.text:
            return

        intent = self.state.pop(message.chat_id)
        if intent is not None:
            await self._answer_pending(message, intent)
            return

        command, args = split_command(message.text)
        if message.is_group:
            if command in GROUP_COMMANDS:
                await self._convert_command(message, args)
            return

        if command in ("start", "menu"):
            await self._reply(message.chat_id, main_menu_text(), main_menu())
        elif command == "help":
            await self._reply(message.chat_id, help_text(self.fiat), main_menu())
        elif command == "transactions":
            await self._send_transactions_link(message.chat_id)
        elif command == "admin":
            await self._send_admin_link(message.chat_id)
        elif command == "convert":
            await self._convert_command(message, args)

    async def _answer_pending(self, message: InboundMessage, intent: ConversationIntent) -> None:
        try:
            amount = parse_amount(message.text or "")
        except InvalidAmount:
            await self._reply(message.chat_id, invalid_amount_text())
            return
        await self._run_conversion(
            message.chat_id,
            message.user_id,
            amount,
            intent.from_currency,
            intent.to_currency,
            is_group=message.is_group,
        )

    async def _convert_command(self, message: InboundMessage, args: list[str]) -> None:
        if len(args) != 3:
            await self._reply(message.chat_id, usage_hint(self.fiat))
            return
        try:
            amount = parse_amount(args[0])
        except InvalidAmount:
            await self._reply(message.chat_id, f"{invalid_amount_text()}\n\n{usage_hint(self.fiat)}")
            return
        await self._run_conversion(
            message.chat_id,
            message.user_id,
            amount,
            normalize_symbol(args[1]),
            normalize_symbol(args[2]),
            is_group=message.is_group,
        )

    async def _run_conversion(
        self,
        chat_id: int,
        user_id: int | None,
        amount: float,
        from_currency: str,
        to_currency: str,
        is_group: bool,
    ) -> None:
        try:
            result = await self.engine.convert(amount, from_currency, to_currency)
        except UnsupportedCurrency:
            await self._reply(chat_id, unsupported_currency_text(self.fiat, self.assets))
            return
        except PriceUnavailable as exc:
            logger.warning("price_unavailable", extra={"event": "price_unavailable", "chat_id": chat_id, "error": exc.symbol})
            await self._reply(chat_id, price_unavailable_text(exc.symbol))
            return
        except UpstreamError as exc:
            logger.warning("oracle_failed", extra={"event": "oracle_failed", "chat_id": chat_id, "error": str(exc)})
            await self._reply(chat_id, oracle_unreachable_text())
            return

        text = conversion_result_template(result, self.fiat_sign)
        if not is_group:
            text += await self._breakdown_block(result.fiat_amount)

        await self._record(user_id, result)
        await self._reply(chat_id, text, None if is_group else after_conversion_menu())

    async def _breakdown_block(self, fiat_amount: float) -> str:
        try:
            rows = await self.engine.percentage_breakdown(fiat_amount, self.breakdown_asset)
        except (UpstreamError, UnsupportedCurrency) as exc:
            logger.warning("breakdown_failed", extra={"event": "breakdown_failed", "error": str(exc)})
            return breakdown_unavailable_text(self.breakdown_asset)
        return breakdown_template(rows, self.fiat, self.breakdown_asset, self.fiat_sign)

    async def _record(self, user_id: int | None, result: ConversionResult) -> None:
        if user_id is None:
            logger.info("transaction_skipped_no_user", extra={"event": "transaction_skipped_no_user"})
            return
        if not (self.engine.is_supported(result.from_currency) or self.engine.is_supported(result.to_currency)):
            return
        try:
            await self.recorder.record(
                user_id=user_id,
                from_currency=result.from_currency,
                to_currency=result.to_currency,
                from_amount=result.from_amount,
                to_amount=result.to_amount,
            )
        except PersistenceFailure as exc:
            logger.error(
                "transaction_record_failed",
                exc_info=exc,
                extra={"event": "transaction_record_failed", "user_id": user_id, "error": str(exc)},
            )

    # callbacks

    async def _on_callback(self, callback: InboundCallback) -> None:
        action = callback.action
        chat_id = callback.chat_id
        if chat_id is None:
            logger.info("callback_without_chat", extra={"event": "callback_without_chat", "update_id": callback.update_id})
            return
        if action.kind == ActionKind.PRICES:
            await self._send_prices(chat_id)
        elif action.kind == ActionKind.CONVERT_MENU:
            await self._reply(chat_id, conversion_menu_text(), conversion_menu(self.assets, self.fiat))
        elif action.kind == ActionKind.TRANSACTIONS:
            await self._send_transactions_link(chat_id)
        elif action.kind == ActionKind.ADMIN:
            await self._send_admin_link(chat_id)
        elif action.kind == ActionKind.MAIN_MENU:
            await self._reply(chat_id, main_menu_text(), main_menu())
        elif action.kind == ActionKind.TO_FIAT:
            await self._select_direction(callback, action.asset or "", self.fiat)
        elif action.kind == ActionKind.FROM_FIAT:
            await self._select_direction(callback, self.fiat, action.asset or "")
        else:
            logger.debug("callback_ignored", extra={"event": "callback_ignored", "chat_id": chat_id})

    async def _select_direction(self, callback: InboundCallback, from_currency: str, to_currency: str) -> None:
        asset = to_currency if from_currency == self.fiat else from_currency
        if not self.engine.is_supported(asset):
            await self._reply(callback.chat_id, unsupported_currency_text(self.fiat, self.assets))
            return
        if callback.is_private:
            self.state.set(callback.chat_id, ConversationIntent(from_currency, to_currency))
            await self._reply(callback.chat_id, amount_prompt(from_currency, to_currency, self.fiat))
        else:
            await self._reply(callback.chat_id, group_conversion_prompt(from_currency, to_currency))

    async def _send_prices(self, chat_id: int) -> None:
        try:
            prices = await self.oracle.get_prices(self.assets)
        except UpstreamError as exc:
            logger.warning("prices_failed", extra={"event": "prices_failed", "chat_id": chat_id, "error": str(exc)})
            await self._reply(chat_id, oracle_unreachable_text())
            return
        await self._reply(chat_id, prices_template(prices, self.assets, self.fiat_sign), prices_menu())

    async def _send_transactions_link(self, chat_id: int) -> None:
        url = f"{self.app_url}/transactions"
        await self._reply(chat_id, transactions_link_text(url), link_menu("🔍 Open conversion history", url))

    async def _send_admin_link(self, chat_id: int) -> None:
        url = f"{self.app_url}/admin"
        await self._reply(chat_id, admin_link_text(url), link_menu("👑 Open admin panel", url))
