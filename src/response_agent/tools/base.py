"""Base interfaces for tools."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from response_agent.tools.schema import normalize_schema

JsonValue = Any
ToolOutput = str | Mapping[str, JsonValue] | list[JsonValue]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Machine-readable description of a tool."""

    name: str
    description: str
    input_schema: Mapping[str, JsonValue]

    def to_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": normalize_schema(self.input_schema),
            "strict": True,
        }


class Tool(Protocol):
    """Tool interface for the invoker.

    ``execute`` receives the caller's shared context untouched and the parsed
    arguments. It may return its result directly or an awaitable of it.
    """

    spec: ToolSpec

    def execute(
        self,
        context: Any,
        arguments: Mapping[str, JsonValue],
    ) -> ToolOutput | Awaitable[ToolOutput]: ...


@dataclass(frozen=True, slots=True)
class FunctionTool:
    """Adapter exposing a plain callable as a tool."""

    spec: ToolSpec
    func: Callable[[Any, Mapping[str, JsonValue]], Any]

    def execute(self, context: Any, arguments: Mapping[str, JsonValue]) -> Any:
        return self.func(context, arguments)
