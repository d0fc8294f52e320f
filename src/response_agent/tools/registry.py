"""Tool registry keyed by tool name."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import structlog

from response_agent.tools.base import Tool, ToolSpec

LOGGER = structlog.get_logger(__name__)


class DuplicateToolError(ValueError):
    """Raised when a tool name is registered twice and overwriting is disabled."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool already registered: {name}")


@dataclass(slots=True)
class ToolRegistry:
    """Registry for available tools.

    Later registrations replace earlier ones with the same name unless
    ``allow_overwrite`` is disabled.
    """

    allow_overwrite: bool = True
    _tools: dict[str, Tool] = field(default_factory=dict)

    def register(self, tool: Tool) -> None:
        name = tool.spec.name
        if name in self._tools:
            if not self.allow_overwrite:
                raise DuplicateToolError(name)
            LOGGER.debug("tool.registry_overwrite", tool=name)
        self._tools[name] = tool

    def register_all(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def get(self, name: str) -> Tool | None:
        if not name:
            return None
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def list_specs(self) -> list[ToolSpec]:
        return [tool.spec for tool in self._tools.values()]

    def definitions(self) -> list[dict[str, Any]]:
        """Tool definitions in the shape the completion API expects."""

        return [spec.to_openai() for spec in self.list_specs()]

    def __len__(self) -> int:
        return len(self._tools)
