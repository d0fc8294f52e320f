"""Shared conversation message and tool-call types."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

JsonValue = Any
ContentBlock = Mapping[str, JsonValue] | str
Content = str | Mapping[str, JsonValue] | Sequence[ContentBlock]


def dump_json(value: JsonValue) -> str:
    """Serialize a value the way tool outputs and stored messages are encoded."""

    return json.dumps(value, ensure_ascii=False, default=str)


@dataclass(frozen=True, slots=True)
class Message:
    """Role-tagged conversation message."""

    role: str
    content: Content = ""

    def to_dict(self) -> dict[str, Any]:
        content = self.content
        if isinstance(content, Mapping):
            content = dict(content)
        elif isinstance(content, list | tuple):
            content = [dict(block) if isinstance(block, Mapping) else block for block in content]
        return {"role": self.role, "content": content}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Message:
        content = data.get("content")
        if content is None:
            content = ""
        return cls(role=str(data.get("role") or ""), content=content)


@dataclass(frozen=True, slots=True)
class ToolCall:
    """Normalized tool call emitted by the model."""

    call_id: str
    name: str
    arguments: Mapping[str, JsonValue] = field(default_factory=dict)
    arguments_raw: str | None = None
    raw: Mapping[str, JsonValue] | None = None


@dataclass(frozen=True, slots=True)
class ToolCallResult:
    """Outcome of one tool call, fed back to the model on the next round."""

    call_id: str
    name: str
    output: str
    ok: bool = True
    summary: str = ""

    def to_input_item(self) -> dict[str, Any]:
        return {
            "type": "function_call_output",
            "call_id": self.call_id,
            "output": self.output,
        }
