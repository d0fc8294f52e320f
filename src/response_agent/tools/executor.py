"""Tool execution with per-call failure isolation and tracing."""

from __future__ import annotations

import inspect
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from response_agent.agent.types import ToolCall, ToolCallResult, dump_json
from response_agent.infra.tracing import tool_span
from response_agent.tools.registry import ToolRegistry

LOGGER = structlog.get_logger(__name__)

ERROR_PREFIX = "error: "


@dataclass(slots=True)
class ToolExecutionSummary:
    results: list[ToolCallResult]
    call_count: int

    @property
    def status_text(self) -> str:
        return ",".join(result.summary for result in self.results)


def serialize_output(result: Any) -> str:
    if isinstance(result, str):
        return result
    return dump_json(result)


def result_keys(result: Any) -> list[str]:
    """Keys describing a structured result, including ``fields[].field_name``."""

    if isinstance(result, Mapping):
        keys = [str(key) for key in result.keys()]
        fields = result.get("fields")
        if fields and isinstance(fields, list):
            keys.extend(
                str(entry["field_name"])
                for entry in fields
                if isinstance(entry, Mapping) and "field_name" in entry
            )
        return keys
    if isinstance(result, str | int | float | bool | list | tuple) or result is None:
        return []
    if hasattr(result, "__dict__"):
        return list(vars(result).keys())
    return []


class ToolExecutor:
    """Execute tool calls sequentially and turn failures into model-visible errors.

    The shared ``context`` is handed to every tool untouched.
    """

    def __init__(self, registry: ToolRegistry, context: Any = None) -> None:
        self._registry = registry
        self._context = context

    async def invoke(self, call: ToolCall) -> ToolCallResult:
        tool = self._registry.get(call.name)
        if tool is None:
            output = f"{ERROR_PREFIX}tool not found: {call.name}"
            LOGGER.warning("tool.not_found", tool=call.name, call_id=call.call_id)
            return ToolCallResult(
                call_id=call.call_id,
                name=call.name,
                output=output,
                ok=False,
                summary=f"{call.name}({output}) ",
            )

        with tool_span("tool.execute", tool_name=call.name, call_id=call.call_id):
            try:
                LOGGER.debug(
                    "tool.execute_start",
                    tool=call.name,
                    call_id=call.call_id,
                    arguments=call.arguments,
                )
                result = tool.execute(self._context, call.arguments)
                if inspect.isawaitable(result):
                    result = await result
                output = serialize_output(result)
            except Exception as exc:
                LOGGER.exception("tool.execute_failed", tool=call.name, call_id=call.call_id, error=str(exc))
                output = f"{ERROR_PREFIX}{exc}"
                return ToolCallResult(
                    call_id=call.call_id,
                    name=call.name,
                    output=output,
                    ok=False,
                    summary=f"{call.name}({output}) ",
                )

        LOGGER.debug("tool.execute_end", tool=call.name, call_id=call.call_id, output_chars=len(output))
        keys = ",".join(result_keys(result))
        return ToolCallResult(
            call_id=call.call_id,
            name=call.name,
            output=output,
            summary=f"{call.name}(Description:{tool.spec.description} Data:{keys}) ",
        )

    async def execute(self, calls: Iterable[ToolCall], *, call_count: int = 0) -> ToolExecutionSummary:
        results: list[ToolCallResult] = []
        for call in calls:
            if not call.call_id:
                LOGGER.debug("tool.skip_without_call_id", tool=call.name)
                continue
            results.append(await self.invoke(call))
            call_count += 1
        return ToolExecutionSummary(results=results, call_count=call_count)
