"""Per-connection conversation history with a sliding retention window."""

from __future__ import annotations

import logging
from typing import List, Sequence

from ..schemas.chat import ChatMessage

logger = logging.getLogger(__name__)


class ConversationState:
    """Ordered turns for one connection, always led by the system turn."""

    def __init__(self, system_prompt: str, history_limit: int = 20):
        if history_limit < 0:
            raise ValueError("history_limit must be non-negative")
        self.history_limit = history_limit
        self._turns: List[ChatMessage] = [
            ChatMessage(role="system", content=system_prompt)
        ]

    @property
    def system_turn(self) -> ChatMessage:
        return self._turns[0]

    def append(self, turn: ChatMessage) -> None:
        if turn.role == "system":
            raise ValueError("ConversationState holds exactly one system turn")
        self._turns.append(turn)

    def append_user(self, content: str) -> ChatMessage:
        turn = ChatMessage(role="user", content=content)
        self.append(turn)
        return turn

    def append_assistant(self, content: str) -> ChatMessage:
        turn = ChatMessage(role="assistant", content=content)
        self.append(turn)
        return turn

    def trim(self, limit: int | None = None) -> int:
        """Keep the system turn plus the most recent ``limit`` turns.

        Returns the number of turns discarded.
        """
        limit = self.history_limit if limit is None else limit
        recent = self._turns[1:]
        if len(recent) <= limit:
            return 0
        kept = recent[-limit:] if limit else []
        dropped = len(recent) - len(kept)
        self._turns = [self._turns[0], *kept]
        logger.debug(f"Trimmed {dropped} turn(s) from conversation history")
        return dropped

    def snapshot(self) -> Sequence[ChatMessage]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)


__all__ = ["ConversationState"]
