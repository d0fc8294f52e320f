"""In-process message store and status reporter."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from response_agent.agent.types import Content, Message


@dataclass(slots=True)
class InMemoryMessageStore:
    _messages: list[Message] = field(default_factory=list)

    def read(self) -> list[Message]:
        return list(self._messages)

    def write(self, messages: Sequence[Message]) -> None:
        self._messages = list(messages)

    def append(self, role: str, content: Content) -> None:
        messages = self.read()
        messages.append(Message(role=role, content=content))
        self.write(messages)


@dataclass(slots=True)
class InMemoryStatusReporter:
    _status: str | None = None

    def set_status(self, status: str) -> None:
        self._status = status

    def get_status(self) -> str | None:
        return self._status
