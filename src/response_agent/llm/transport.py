"""Transports that deliver one completion request to the remote model."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import structlog
from litellm import aresponses

from response_agent.infra.logging import preview_body
from response_agent.llm.errors import TransportError
from response_agent.llm.http import OpenAIRestClient

LOGGER = structlog.get_logger(__name__)


class RemoteCompletion(Protocol):
    """Send a request payload and return the response payload.

    Failures raise :class:`TransportError`; callers do not retry.
    """

    async def send(self, payload: Mapping[str, Any]) -> dict[str, Any]: ...


def _to_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    if hasattr(value, "model_dump"):
        data = value.model_dump()
    elif hasattr(value, "dict"):
        data = value.dict()
    elif hasattr(value, "__dict__"):
        data = dict(value.__dict__)
    else:
        data = None
    return data if isinstance(data, dict) else {"raw": value}


@dataclass(slots=True)
class LiteLLMResponsesTransport:
    """Deliver requests through ``litellm.aresponses``."""

    api_key: str | None = None
    base_url: str | None = None
    timeout_seconds: int = 300
    body_truncate: int = 100_000

    async def send(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        request: dict[str, Any] = dict(payload)
        request["timeout"] = self.timeout_seconds
        if self.api_key:
            request["api_key"] = self.api_key
        if self.base_url:
            request["api_base"] = self.base_url

        LOGGER.debug("llm.request", body=preview_body(payload, self.body_truncate))
        try:
            response = await aresponses(**request)
        except Exception as exc:
            status = getattr(exc, "status_code", None)
            LOGGER.warning("llm.request_failed", status=status, error=str(exc))
            raise TransportError(status if isinstance(status, int) else None, str(exc)) from exc

        data = _to_dict(response)
        LOGGER.debug("llm.response", body=preview_body(data, self.body_truncate))
        return data


@dataclass(slots=True)
class HttpResponsesTransport:
    """POST requests straight to the ``/responses`` endpoint."""

    client: OpenAIRestClient

    async def send(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return await self.client.post("/responses", payload)
