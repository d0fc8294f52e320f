from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from response_agent.agent.runner import ResponseAgent
from response_agent.agent.types import Message
from response_agent.llm.errors import TransportError
from response_agent.store.memory import InMemoryMessageStore, InMemoryStatusReporter
from response_agent.tools.base import FunctionTool, ToolSpec
from response_agent.tools.registry import ToolRegistry


@dataclass(slots=True)
class RecordingTool:
    spec: ToolSpec
    result: Any = field(default_factory=lambda: {"ok": True})
    seen: list[tuple[Any, Mapping[str, Any]]] = field(default_factory=list)

    def execute(self, context: Any, arguments: Mapping[str, Any]) -> Any:
        self.seen.append((context, arguments))
        return self.result


@dataclass(slots=True)
class FakeTransport:
    responses: list[dict[str, Any]]
    requests: list[dict[str, Any]] = field(default_factory=list)
    status: InMemoryStatusReporter | None = None
    statuses_at_send: list[str | None] = field(default_factory=list)
    stored_at_send: list[list[Message]] = field(default_factory=list)
    store: InMemoryMessageStore | None = None

    async def send(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        self.requests.append(json.loads(json.dumps(payload)))
        if self.status is not None:
            self.statuses_at_send.append(self.status.get_status())
        if self.store is not None:
            self.stored_at_send.append(self.store.read())
        return self.responses[min(len(self.requests), len(self.responses)) - 1]


def _spec(name: str, description: str = "Test tool") -> ToolSpec:
    return ToolSpec(
        name=name,
        description=description,
        input_schema={"type": "object", "properties": {"query": {"type": "string"}}},
    )


def _message(text: str, response_id: str = "resp") -> dict[str, Any]:
    return {
        "id": response_id,
        "output": [
            {
                "type": "message",
                "role": "assistant",
                "content": [{"type": "output_text", "text": text}],
            }
        ],
    }


def _function_calls(response_id: str, *calls: tuple[str, str, Any]) -> dict[str, Any]:
    return {
        "id": response_id,
        "output": [
            {"type": "function_call", "call_id": call_id, "name": name, "arguments": arguments}
            for call_id, name, arguments in calls
        ],
    }


def _agent(
    transport: FakeTransport,
    registry: ToolRegistry | None = None,
    **kwargs: Any,
) -> tuple[ResponseAgent, InMemoryMessageStore, InMemoryStatusReporter]:
    store = InMemoryMessageStore()
    status = InMemoryStatusReporter()
    transport.store = store
    transport.status = status
    agent = ResponseAgent(
        transport=transport,
        registry=registry or ToolRegistry(),
        store=store,
        status=status,
        model="test-model",
        **kwargs,
    )
    return agent, store, status


def test_agent_run_with_tool_call() -> None:
    tool = RecordingTool(spec=_spec("retrieve"))
    registry = ToolRegistry()
    registry.register(tool)
    transport = FakeTransport(
        responses=[
            _function_calls("resp-1", ("call-1", "retrieve", '{"query": "hello"}')),
            _message("done", "resp-2"),
        ]
    )
    context = object()
    agent, store, status = _agent(transport, registry, context=context)

    result = asyncio.run(agent.respond("hi"))

    assert result is not None
    assert result.text == "done"
    assert result.response_id == "resp-2"
    assert agent.response_id == "resp-2"
    assert tool.seen == [(context, {"query": "hello"})]
    assert status.get_status() == "END"
    assert [message.role for message in store.read()] == ["user", "assistant"]

    first, follow_up = transport.requests
    assert first["model"] == "test-model"
    assert first["parallel_tool_calls"] is True
    assert first["input"] == [{"role": "user", "content": "hi"}]
    assert first["tools"][0]["name"] == "retrieve"
    assert first["tools"][0]["strict"] is True
    assert follow_up["previous_response_id"] == "resp-1"
    assert follow_up["input"] == [
        {"type": "function_call_output", "call_id": "call-1", "output": '{"ok": true}'}
    ]
    assert follow_up["tools"] == first["tools"]
    assert "parallel_tool_calls" not in follow_up


def test_empty_input_is_a_noop() -> None:
    transport = FakeTransport(responses=[_message("unused")])
    agent, store, status = _agent(transport)

    assert asyncio.run(agent.respond("")) is None
    assert asyncio.run(agent.respond(None)) is None
    assert transport.requests == []
    assert store.read() == []
    assert status.get_status() is None


def test_user_message_appended_once_before_first_call() -> None:
    transport = FakeTransport(responses=[_message("hello back")])
    agent, store, _ = _agent(transport)
    agent.add_system("be brief")

    asyncio.run(agent.respond("hello"))

    assert transport.stored_at_send[0] == [
        Message(role="system", content="be brief"),
        Message(role="user", content="hello"),
    ]
    assert transport.requests[0]["input"] == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "hello"},
    ]
    assert store.read()[-1] == Message(role="assistant", content="hello back")


def test_round_cap_stops_after_five_tool_rounds() -> None:
    tool = RecordingTool(spec=_spec("loop"), result="again")
    registry = ToolRegistry()
    registry.register(tool)
    transport = FakeTransport(responses=[_function_calls("resp-n", ("call", "loop", "{}"))])
    agent, _, status = _agent(transport, registry)

    result = asyncio.run(agent.respond("spin"))

    assert result is not None
    assert len(transport.requests) == 6
    assert len(tool.seen) == 5
    assert [call.name for call in result.tool_calls] == ["loop"]
    assert status.get_status() == "END"


def test_max_tool_rounds_is_configurable() -> None:
    tool = RecordingTool(spec=_spec("loop"), result="again")
    registry = ToolRegistry()
    registry.register(tool)
    transport = FakeTransport(responses=[_function_calls("resp-n", ("call", "loop", "{}"))])
    agent, _, _ = _agent(transport, registry, max_tool_rounds=2)

    asyncio.run(agent.respond("spin"))

    assert len(transport.requests) == 3
    assert len(tool.seen) == 2


def test_missing_tool_and_failing_tool_are_reported_to_model() -> None:
    def explode(context: Any, arguments: Mapping[str, Any]) -> str:
        raise RuntimeError("kaboom")

    after = RecordingTool(spec=_spec("after"), result="fine")
    registry = ToolRegistry()
    registry.register(FunctionTool(spec=_spec("explode"), func=explode))
    registry.register(after)
    transport = FakeTransport(
        responses=[
            _function_calls(
                "resp-1",
                ("call-1", "foo", "{}"),
                ("call-2", "explode", "{}"),
                ("call-3", "after", "{}"),
            ),
            _message("recovered", "resp-2"),
        ]
    )
    agent, _, _ = _agent(transport, registry)

    result = asyncio.run(agent.respond("go"))

    assert result is not None
    assert result.text == "recovered"
    outputs = transport.requests[1]["input"]
    assert outputs[0] == {"type": "function_call_output", "call_id": "call-1", "output": "error: tool not found: foo"}
    assert outputs[1]["output"].startswith("error: ")
    assert "kaboom" in outputs[1]["output"]
    assert outputs[2]["output"] == "fine"
    assert len(after.seen) == 1


def test_calls_without_call_id_are_skipped_and_bad_arguments_default_to_empty() -> None:
    tool = RecordingTool(spec=_spec("retrieve"), result="ok")
    registry = ToolRegistry()
    registry.register(tool)
    transport = FakeTransport(
        responses=[
            _function_calls("resp-1", ("", "retrieve", "{}"), ("call-2", "retrieve", "{not json")),
            _message("done", "resp-2"),
        ]
    )
    agent, _, _ = _agent(transport, registry)

    asyncio.run(agent.respond("go"))

    assert tool.seen == [(None, {})]
    assert [item["call_id"] for item in transport.requests[1]["input"]] == ["call-2"]


def test_status_reports_each_round_then_end() -> None:
    tool = RecordingTool(spec=_spec("lookup", "Looks things up"), result={"a": 1, "fields": [{"field_name": "x"}]})
    registry = ToolRegistry()
    registry.register(tool)
    transport = FakeTransport(
        responses=[
            _function_calls("resp-1", ("call-1", "lookup", "{}"), ("call-2", "nope", "{}")),
            _message("done", "resp-2"),
        ]
    )
    agent, _, status = _agent(transport, registry)

    asyncio.run(agent.respond("weather?"))

    assert transport.statuses_at_send == [
        "Thinking your request: weather?",
        "Function: lookup(Description:Looks things up Data:a,fields,x) ,nope(error: tool not found: nope) ",
    ]
    assert status.get_status() == "END"


def test_structured_results_are_serialized_as_json() -> None:
    tool = RecordingTool(spec=_spec("city"), result={"city": "東京", "path": "a/b"})
    registry = ToolRegistry()
    registry.register(tool)
    transport = FakeTransport(
        responses=[_function_calls("resp-1", ("call-1", "city", "{}")), _message("done", "resp-2")]
    )
    agent, _, _ = _agent(transport, registry)

    asyncio.run(agent.respond("go"))

    assert transport.requests[1]["input"][0]["output"] == '{"city": "東京", "path": "a/b"}'


def test_async_tools_are_awaited() -> None:
    async def lookup(context: Any, arguments: Mapping[str, Any]) -> dict[str, Any]:
        await asyncio.sleep(0)
        return {"value": arguments.get("query")}

    registry = ToolRegistry()
    registry.register(FunctionTool(spec=_spec("lookup"), func=lookup))
    transport = FakeTransport(
        responses=[
            _function_calls("resp-1", ("call-1", "lookup", {"query": "q"})),
            _message("done", "resp-2"),
        ]
    )
    agent, _, _ = _agent(transport, registry)

    asyncio.run(agent.respond("go"))

    assert transport.requests[1]["input"][0]["output"] == '{"value": "q"}'


def test_vector_store_adds_file_search_tool() -> None:
    transport = FakeTransport(responses=[_message("done")])
    agent, _, _ = _agent(transport, vector_store_id="vs_123")

    asyncio.run(agent.respond("docs?"))

    assert transport.requests[0]["tools"] == [{"type": "file_search", "vector_store_ids": ["vs_123"]}]


def test_history_excludes_system_messages() -> None:
    transport = FakeTransport(responses=[_message("answer")])
    agent, _, _ = _agent(transport)
    agent.add_system("rules")

    result = asyncio.run(agent.respond("question"))

    assert result is not None
    assert result.history == [
        {"role": "user", "content": "question"},
        {"role": "assistant", "content": "answer"},
    ]


def test_transport_failure_propagates() -> None:
    class FailingTransport:
        async def send(self, payload: Mapping[str, Any]) -> dict[str, Any]:
            raise TransportError(500, "server error")

    store = InMemoryMessageStore()
    status = InMemoryStatusReporter()
    agent = ResponseAgent(transport=FailingTransport(), registry=ToolRegistry(), store=store, status=status)

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(agent.respond("hi"))

    assert excinfo.value.status == 500
    assert status.get_status() == "Thinking your request: hi"
    assert store.read() == [Message(role="user", content="hi")]


def test_clear_messages_resets_conversation_and_response_id() -> None:
    transport = FakeTransport(responses=[_message("x", "resp-1")])
    agent, store, _ = _agent(transport)
    asyncio.run(agent.respond("hi"))
    assert agent.response_id == "resp-1"

    agent.clear_messages()

    assert store.read() == []
    assert agent.get_messages() == []
    assert agent.response_id is None
