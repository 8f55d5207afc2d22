from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ConversationIntent:
    from_currency: str
    to_currency: str
    action: str = "convert"


class ConversationStateStore:
    """Pending multi-step intents keyed by chat id.

    One entry per chat at most; a new ``set`` replaces the previous intent.
    Entries live in process memory only.
    """

    def __init__(self) -> None:
        self._intents: dict[int, ConversationIntent] = {}

    def get(self, chat_id: int) -> ConversationIntent | None:
        return self._intents.get(chat_id)

    def set(self, chat_id: int, intent: ConversationIntent) -> None:
        self._intents[chat_id] = intent

    def clear(self, chat_id: int) -> None:
        self._intents.pop(chat_id, None)

    def pop(self, chat_id: int) -> ConversationIntent | None:
        """Read and clear in one step."""
        return self._intents.pop(chat_id, None)

    def __len__(self) -> int:
        return len(self._intents)

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._intents
