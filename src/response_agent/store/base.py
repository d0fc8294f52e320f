"""Collaborator interfaces for conversation persistence and progress reporting."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from response_agent.agent.types import Content, Message

END_STATUS = "END"


class MessageStore(Protocol):
    """Ordered, role-tagged message log for one conversation.

    ``append`` is a read-modify-write; a store is expected to have a single
    writer per conversation.
    """

    def read(self) -> list[Message]: ...

    def write(self, messages: Sequence[Message]) -> None: ...

    def append(self, role: str, content: Content) -> None: ...


class StatusReporter(Protocol):
    """Out-of-band progress text for pollers. ``END`` marks a finished run."""

    def set_status(self, status: str) -> None: ...

    def get_status(self) -> str | None: ...
