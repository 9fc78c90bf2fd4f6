"""Append-only conversation log."""

from __future__ import annotations

from typing import Iterator, List

from ragchat.models import Message


class ConversationLog:
    """Ordered chat history; only :meth:`clear` removes messages."""

    def __init__(self) -> None:
        self._messages: List[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def messages(self) -> List[Message]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()
