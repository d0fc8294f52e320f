"""Thin async REST client for OpenAI-compatible endpoints."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx
import structlog

from response_agent.infra.logging import preview_body, redact_headers
from response_agent.llm.errors import TransportError

LOGGER = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT_SECONDS = 300


class OpenAIRestClient:
    """JSON/multipart requests with bearer auth, request logging and error mapping.

    Responses with status >= 400 raise :class:`TransportError`; bodies that are
    not JSON objects come back as ``{"raw": text}``.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        body_truncate: int = 100_000,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._body_truncate = body_truncate
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
            headers={"Authorization": f"Bearer {api_key}", "Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> OpenAIRestClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> dict[str, Any]:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        return await self.request("POST", path, json=payload)

    async def delete(self, path: str) -> dict[str, Any]:
        return await self.request("DELETE", path)

    async def upload(self, path: str, file_path: Path, *, purpose: str) -> dict[str, Any]:
        with file_path.open("rb") as handle:
            return await self.request(
                "POST",
                path,
                files={"file": (file_path.name, handle.read())},
                data={"purpose": purpose},
            )

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
        files: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        LOGGER.debug(
            "http.request",
            method=method,
            path=path,
            headers=redact_headers(dict(self._client.headers)),
            body=preview_body(json if json is not None else data, self._body_truncate),
        )
        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                params=params,
                files=files,
                data=data,
            )
        except httpx.HTTPError as exc:
            LOGGER.warning("http.request_failed", method=method, path=path, error=str(exc))
            raise TransportError(None, str(exc) or type(exc).__name__) from exc

        try:
            body: Any = response.json()
        except ValueError:
            body = None

        LOGGER.debug(
            "http.response",
            method=method,
            path=path,
            status=response.status_code,
            body=preview_body(body if body is not None else response.text, self._body_truncate),
        )

        if response.status_code >= 400:
            message = response.text
            if isinstance(body, Mapping):
                error = body.get("error")
                if isinstance(error, Mapping) and error.get("message"):
                    message = str(error["message"])
            raise TransportError(response.status_code, message)

        if isinstance(body, dict):
            return body
        return {"raw": response.text}
