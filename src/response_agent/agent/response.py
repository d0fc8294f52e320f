"""Immutable view over the final payload of an orchestration run."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from response_agent.agent import parser
from response_agent.agent.types import Message, ToolCall


@dataclass(frozen=True, slots=True)
class AgentResponse:
    """Final response returned by :meth:`ResponseAgent.respond`.

    ``messages`` holds the conversation tracked during the run, if any. When it
    is ``None`` the history is derived from the payload's own output items.
    """

    raw: Mapping[str, Any]
    messages: Sequence[Message] | None = None

    def to_dict(self) -> dict[str, Any]:
        return dict(self.raw)

    @property
    def response_id(self) -> str | None:
        return parser.extract_response_id(self.raw)

    @property
    def text_blocks(self) -> list[str]:
        return parser.extract_text_blocks(self.raw)

    @property
    def text(self) -> str:
        return "\n\n".join(self.text_blocks)

    @property
    def tool_calls(self) -> list[ToolCall]:
        return parser.extract_tool_calls(self.raw)

    @property
    def assistant_messages(self) -> list[dict[str, Any]]:
        return parser.extract_assistant_messages(self.raw)

    @property
    def history(self) -> list[dict[str, str]]:
        if self.messages is not None:
            return parser.history_from_messages(self.messages)
        return parser.history_from_response(self.raw)
