"""Inbound update schema and the callback action variant.

Raw Telegram JSON is validated once here; the router only ever sees
``InboundMessage`` / ``InboundCallback`` and ``CallbackAction`` values.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from aiogram.types import Update
from pydantic import ValidationError as PydanticValidationError

from safemoney.core.errors import MalformedUpdate

GROUP_KINDS = frozenset({"group", "supergroup"})


class ActionKind(str, Enum):
    PRICES = "prices"
    CONVERT_MENU = "convert_menu"
    TRANSACTIONS = "transactions"
    ADMIN = "admin"
    MAIN_MENU = "main_menu"
    TO_FIAT = "to_fiat"
    FROM_FIAT = "from_fiat"
    UNKNOWN = "unknown"


_EXACT_ACTIONS = {
    kind.value: kind
    for kind in (
        ActionKind.PRICES,
        ActionKind.CONVERT_MENU,
        ActionKind.TRANSACTIONS,
        ActionKind.ADMIN,
        ActionKind.MAIN_MENU,
    )
}
_PREFIX_ACTIONS = {
    "to_fiat:": ActionKind.TO_FIAT,
    "from_fiat:": ActionKind.FROM_FIAT,
    # keyboards sent before the colon format
    "convert_to_try_": ActionKind.TO_FIAT,
    "convert_from_try_": ActionKind.FROM_FIAT,
}


@dataclass(frozen=True)
class CallbackAction:
    kind: ActionKind
    asset: str | None = None

    def encode(self) -> str:
        if self.kind in (ActionKind.TO_FIAT, ActionKind.FROM_FIAT):
            return f"{self.kind.value}:{self.asset}"
        return self.kind.value


def parse_action(data: str | None) -> CallbackAction:
    raw = (data or "").strip()
    if raw in _EXACT_ACTIONS:
        return CallbackAction(_EXACT_ACTIONS[raw])
    for prefix, kind in _PREFIX_ACTIONS.items():
        if raw.startswith(prefix):
            asset = raw[len(prefix) :].strip().upper()
            if asset:
                return CallbackAction(kind, asset)
    return CallbackAction(ActionKind.UNKNOWN)


@dataclass(frozen=True)
class InboundMessage:
    update_id: int
    chat_id: int
    chat_kind: str
    user_id: int | None
    text: str | None

    @property
    def is_group(self) -> bool:
        return self.chat_kind in GROUP_KINDS


@dataclass(frozen=True)
class InboundCallback:
    """A button press. ``chat_id`` is None for inline-mode messages, which carry no chat."""

    update_id: int
    callback_id: str
    chat_id: int | None
    chat_kind: str
    user_id: int | None
    action: CallbackAction

    @property
    def is_group(self) -> bool:
        return self.chat_kind in GROUP_KINDS

    @property
    def is_private(self) -> bool:
        return self.chat_kind == "private"


InboundUpdate = Union[InboundMessage, InboundCallback]


def _chat_kind(value: Any) -> str:
    return str(getattr(value, "value", value))


def parse_update(payload: Any) -> InboundUpdate:
    if not isinstance(payload, dict):
        raise MalformedUpdate("update payload is not a JSON object")
    try:
        update = Update.model_validate(payload)
    except PydanticValidationError as exc:
        raise MalformedUpdate(f"update {payload.get('update_id')} failed validation: {exc.error_count()} errors") from exc

    if update.message is not None:
        message = update.message
        return InboundMessage(
            update_id=update.update_id,
            chat_id=message.chat.id,
            chat_kind=_chat_kind(message.chat.type),
            user_id=message.from_user.id if message.from_user else None,
            text=message.text,
        )

    if update.callback_query is not None:
        callback = update.callback_query
        chat = callback.message.chat if callback.message is not None else None
        return InboundCallback(
            update_id=update.update_id,
            callback_id=callback.id,
            chat_id=chat.id if chat is not None else None,
            chat_kind=_chat_kind(chat.type) if chat is not None else "",
            user_id=callback.from_user.id if callback.from_user else None,
            action=parse_action(callback.data),
        )

    raise MalformedUpdate(f"update {update.update_id} is neither a message nor a callback")
