"""Extraction helpers for raw completion payloads.

Every function here is total: malformed or partial payloads degrade to empty
results instead of raising.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from response_agent.agent.types import JsonValue, Message, ToolCall, dump_json


def _output_items(response: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    output = response.get("output") if isinstance(response, Mapping) else None
    if not isinstance(output, list):
        return []
    return [item for item in output if isinstance(item, Mapping)]


def _is_message(item: Mapping[str, Any]) -> bool:
    return item.get("type") == "message"


def extract_response_id(response: Mapping[str, Any]) -> str | None:
    if not isinstance(response, Mapping):
        return None
    if response.get("id") is not None:
        return str(response["id"])
    nested = response.get("response")
    if isinstance(nested, Mapping) and nested.get("id") is not None:
        return str(nested["id"])
    return None


def extract_message(item: Mapping[str, Any]) -> dict[str, Any] | None:
    """Return the message body of an output item.

    Supports the nested ``{"message": {...}}`` shape and the flat shape where
    ``role``/``content`` sit on the item itself.
    """

    nested = item.get("message")
    if isinstance(nested, Mapping):
        return dict(nested)
    if item.get("content") is not None:
        return {
            "role": item.get("role") or "assistant",
            "content": item["content"],
        }
    return None


def _block_text(value: JsonValue) -> str:
    return value if isinstance(value, str) else dump_json(value)


def flatten_content(content: JsonValue) -> str:
    """Flatten string or block content into a single string.

    A mapping block contributes its ``text``, else its ``content``; string
    blocks contribute themselves. Other blocks are skipped. Structured
    (mapping) content is rendered as JSON.
    """

    if isinstance(content, str):
        return content
    if isinstance(content, Mapping):
        return dump_json(content)
    if not isinstance(content, list | tuple):
        return ""
    parts: list[str] = []
    for block in content:
        if isinstance(block, Mapping):
            if block.get("text") is not None:
                parts.append(_block_text(block["text"]))
            elif block.get("content") is not None:
                parts.append(_block_text(block["content"]))
        elif isinstance(block, str):
            parts.append(block)
    return "".join(parts)


def extract_text_blocks(response: Mapping[str, Any]) -> list[str]:
    blocks: list[str] = []
    for item in _output_items(response):
        if not _is_message(item):
            continue
        message = extract_message(item)
        if message is None:
            continue
        blocks.append(flatten_content(message.get("content", "")))
    return blocks


def extract_assistant_messages(response: Mapping[str, Any]) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = []
    for item in _output_items(response):
        if _is_message(item):
            message = extract_message(item)
            if message is not None:
                messages.append(message)
    return messages


def message_for_storage(message: Mapping[str, Any]) -> Message:
    """Convert an extracted message body into a stored conversation message."""

    role = str(message.get("role") or "assistant")
    content = message.get("content")
    if isinstance(content, list):
        text = flatten_content(content)
    elif isinstance(content, str):
        text = content
    else:
        text = dump_json(dict(message))
    return Message(role=role, content=text)


def parse_arguments(arguments: JsonValue) -> dict[str, JsonValue]:
    """Parse tool-call arguments, defaulting to an empty mapping."""

    if isinstance(arguments, Mapping):
        return dict(arguments)
    if isinstance(arguments, str | bytes):
        try:
            parsed = json.loads(arguments)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _tool_call(
    call_id: JsonValue,
    name: JsonValue,
    arguments: JsonValue,
    raw: Mapping[str, Any],
) -> ToolCall:
    if arguments is None:
        arguments = "{}"
    return ToolCall(
        call_id="" if call_id is None else str(call_id),
        name="" if name is None else str(name),
        arguments=parse_arguments(arguments),
        arguments_raw=arguments if isinstance(arguments, str) else None,
        raw=raw,
    )


def _legacy_message_calls(item: Mapping[str, Any]) -> Iterable[ToolCall]:
    message = item.get("message")
    if not isinstance(message, Mapping):
        return
    tool_calls = message.get("tool_calls")
    if not isinstance(tool_calls, list):
        return
    for entry in tool_calls:
        if not isinstance(entry, Mapping):
            continue
        function = entry.get("function")
        if not isinstance(function, Mapping):
            function = {}
        yield _tool_call(entry.get("id"), function.get("name"), function.get("arguments"), entry)


def extract_tool_calls(response: Mapping[str, Any]) -> list[ToolCall]:
    calls: list[ToolCall] = []
    for item in _output_items(response):
        item_type = item.get("type")
        if item_type == "function_call":
            calls.append(_tool_call(item.get("call_id"), item.get("name"), item.get("arguments"), item))
        elif item_type == "tool_call":
            calls.append(_tool_call(item.get("id"), item.get("name"), item.get("arguments"), item))
        elif item_type == "message":
            calls.extend(_legacy_message_calls(item))
    return calls


def has_tool_calls(response: Mapping[str, Any]) -> bool:
    return any(call.name and call.call_id for call in extract_tool_calls(response))


def history_from_messages(messages: Iterable[Message]) -> list[dict[str, str]]:
    history: list[dict[str, str]] = []
    for message in messages:
        if not message.role or message.role == "system":
            continue
        history.append({"role": message.role, "content": flatten_content(message.content)})
    return history


def history_from_response(response: Mapping[str, Any]) -> list[dict[str, str]]:
    return history_from_messages(
        Message(role=str(message.get("role") or "assistant"), content=message.get("content") or "")
        for message in extract_assistant_messages(response)
    )
