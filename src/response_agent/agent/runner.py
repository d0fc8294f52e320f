"""Conversation runner with tool-call handling."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from response_agent.agent import parser
from response_agent.agent.response import AgentResponse
from response_agent.agent.types import Message
from response_agent.infra.tracing import round_span
from response_agent.llm.transport import RemoteCompletion
from response_agent.store.base import END_STATUS, MessageStore, StatusReporter
from response_agent.store.memory import InMemoryStatusReporter
from response_agent.tools.executor import ToolExecutor
from response_agent.tools.registry import ToolRegistry

LOGGER = structlog.get_logger(__name__)

DEFAULT_MAX_TOOL_ROUNDS = 5


@dataclass(slots=True)
class ResponseAgent:
    """Run a tool-enabled conversation against a Responses-style API.

    The first round sends the whole stored conversation. Tool rounds send only
    the new ``function_call_output`` items and chain on the previous response
    id. At most ``max_tool_rounds`` tool rounds run per :meth:`respond` call;
    when the cap is hit the last response is returned as is.
    """

    transport: RemoteCompletion
    registry: ToolRegistry
    store: MessageStore
    status: StatusReporter = field(default_factory=InMemoryStatusReporter)
    model: str = "gpt-5"
    context: Any = None
    vector_store_id: str | None = None
    max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS
    parallel_tool_calls: bool = True
    _response_id: str | None = field(default=None, init=False)
    _executor: ToolExecutor = field(init=False)

    def __post_init__(self) -> None:
        self._executor = ToolExecutor(self.registry, self.context)

    @property
    def response_id(self) -> str | None:
        return self._response_id

    def clear_messages(self) -> None:
        self.store.write([])
        self._response_id = None

    def get_messages(self) -> list[Message]:
        return self.store.read()

    def add_system(self, content: str) -> None:
        self.store.append("system", content)

    def add_user(self, content: str) -> None:
        self.store.append("user", content)

    def tool_definitions(self) -> list[dict[str, Any]]:
        definitions = self.registry.definitions()
        if self.vector_store_id:
            definitions.append({"type": "file_search", "vector_store_ids": [self.vector_store_id]})
        return definitions

    async def respond(self, user_input: str | None) -> AgentResponse | None:
        """Send ``user_input``, run requested tools, and return the final response.

        Returns ``None`` without touching the conversation when the input is
        empty. Transport failures propagate; tool failures are reported back to
        the model as ``error: ...`` outputs.
        """

        if not user_input:
            return None

        self.store.append("user", user_input)
        tools = self.tool_definitions()
        request: dict[str, Any] = {
            "model": self.model,
            "input": [message.to_dict() for message in self.store.read()],
            "parallel_tool_calls": self.parallel_tool_calls,
        }
        if tools:
            request["tools"] = tools

        LOGGER.info("agent.respond_start", model=self.model, tools=len(tools))
        response = await self._complete(request, f"Thinking your request: {user_input}", round_number=0)

        rounds = 0
        call_count = 0
        while parser.has_tool_calls(response) and rounds < self.max_tool_rounds:
            rounds += 1
            summary = await self._executor.execute(parser.extract_tool_calls(response), call_count=call_count)
            call_count = summary.call_count

            follow_up: dict[str, Any] = {
                "model": self.model,
                "previous_response_id": self._response_id,
                "input": [result.to_input_item() for result in summary.results],
            }
            if tools:
                follow_up["tools"] = tools
            response = await self._complete(follow_up, f"Function: {summary.status_text}", round_number=rounds)

        if parser.has_tool_calls(response):
            LOGGER.warning("agent.tool_round_cap_reached", rounds=rounds, response_id=self._response_id)

        self.status.set_status(END_STATUS)
        LOGGER.info(
            "agent.respond_end",
            rounds=rounds,
            tool_calls_executed=call_count,
            response_id=self._response_id,
        )
        return AgentResponse(raw=response, messages=tuple(self.store.read()))

    async def _complete(
        self,
        payload: Mapping[str, Any],
        status_text: str,
        *,
        round_number: int,
    ) -> dict[str, Any]:
        self.status.set_status(status_text)
        with round_span(round_number, model=self.model):
            response = await self.transport.send(payload)

        self._response_id = parser.extract_response_id(response)
        for message in parser.extract_assistant_messages(response):
            stored = parser.message_for_storage(message)
            self.store.append(stored.role, stored.content)

        LOGGER.debug(
            "agent.round_complete",
            round=round_number,
            response_id=self._response_id,
            tool_calls=len(parser.extract_tool_calls(response)),
        )
        return response
