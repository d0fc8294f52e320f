"""FastAPI service exposing the tool-calling conversation agent."""

from __future__ import annotations

import asyncio
import math
import re
from collections import OrderedDict
from typing import Final

import structlog
import uvicorn
from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel, Field

from response_agent.agent.runner import ResponseAgent
from response_agent.documents.vector_store import VectorStoreSync
from response_agent.infra.config import AppSettings, ConfigurationError, load_app_settings
from response_agent.infra.logging import configure_logging
from response_agent.llm.errors import TransportError
from response_agent.llm.http import OpenAIRestClient
from response_agent.llm.transport import HttpResponsesTransport, LiteLLMResponsesTransport, RemoteCompletion
from response_agent.store.base import END_STATUS
from response_agent.store.sessions import SessionRegistry
from response_agent.tools.catalog import build_registry
from response_agent.tools.registry import ToolRegistry

LOGGER: Final = structlog.get_logger(__name__)


class QueryRequest(BaseModel):
    session_id: str = Field(default="default", min_length=1)
    user_input: str = Field(..., min_length=1)


class HistoryEntry(BaseModel):
    role: str
    content: str


class QueryResponse(BaseModel):
    response: str
    response_id: str | None = None
    history: list[HistoryEntry] = Field(default_factory=list)


class StatusResponse(BaseModel):
    ok: bool = True
    status_message: str | None = None
    done: bool = False


class ResetRequest(BaseModel):
    session_id: str = Field(default="default", min_length=1)
    system_prompt: str | None = None


class SyncResponse(BaseModel):
    vector_store_id: str | None = None


def _require_api_key(settings: AppSettings) -> str:
    if not settings.llm.api_key:
        raise ConfigurationError("API key missing. Set OPENAI_API_KEY or RESPONSE_AGENT__LLM__API_KEY.")
    return settings.llm.api_key


def build_rest_client(settings: AppSettings) -> OpenAIRestClient:
    return OpenAIRestClient(
        _require_api_key(settings),
        base_url=settings.llm.base_url,
        timeout_seconds=settings.llm.timeout_seconds,
        body_truncate=settings.logging.body_truncate,
    )


def build_transport(settings: AppSettings) -> RemoteCompletion:
    if settings.llm.transport == "http":
        return HttpResponsesTransport(client=build_rest_client(settings))
    return LiteLLMResponsesTransport(
        api_key=_require_api_key(settings),
        base_url=settings.llm.base_url,
        timeout_seconds=settings.llm.timeout_seconds,
        body_truncate=settings.logging.body_truncate,
    )


class AgentPool:
    """One :class:`ResponseAgent` per session, sharing transport and tools.

    Bounded by ``storage.max_sessions`` like the session registry.
    """

    def __init__(
        self,
        settings: AppSettings,
        transport: RemoteCompletion,
        registry: ToolRegistry,
        sessions: SessionRegistry,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.registry = registry
        self.sessions = sessions
        self.vector_store_id = settings.documents.vector_store_id
        self._agents: OrderedDict[str, ResponseAgent] = OrderedDict()

    def get(self, session_id: str) -> ResponseAgent:
        session = self.sessions.get(session_id)
        agent = self._agents.get(session_id)
        if agent is None or agent.store is not session.store:
            agent = ResponseAgent(
                transport=self.transport,
                registry=self.registry,
                store=session.store,
                status=session.status,
                model=self.settings.llm.model,
                vector_store_id=self.vector_store_id,
                max_tool_rounds=self.settings.llm.max_tool_rounds,
                parallel_tool_calls=self.settings.llm.parallel_tool_calls,
            )
            self._agents[session_id] = agent
        self._agents.move_to_end(session_id)
        limit = self.settings.storage.max_sessions
        while limit > 0 and len(self._agents) > limit:
            self._agents.popitem(last=False)
        return agent

    def __len__(self) -> int:
        return len(self._agents)

    def set_vector_store_id(self, vector_store_id: str | None) -> None:
        self.vector_store_id = vector_store_id
        for agent in self._agents.values():
            agent.vector_store_id = vector_store_id


def create_app(settings: AppSettings, transport: RemoteCompletion | None = None) -> FastAPI:
    """Instantiate the FastAPI application."""

    app = FastAPI(
        title=settings.title,
        description=settings.description,
        version=settings.version,
        default_response_class=ORJSONResponse,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.agents = AgentPool(
        settings,
        transport or build_transport(settings),
        build_registry(settings.tools),
        SessionRegistry(settings.storage),
    )
    register_routes(app, settings)
    return app


def register_routes(app: FastAPI, settings: AppSettings) -> None:
    @app.get("/", include_in_schema=False)
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    router = APIRouter(prefix=settings.api_prefix, tags=["response_agent"])

    @router.get("/ping")
    def ping() -> dict[str, str]:
        return {"message": "pong", "service": settings.service_name}

    @router.post("/query", response_model=QueryResponse)
    async def query(payload: QueryRequest) -> QueryResponse:
        agents: AgentPool = app.state.agents
        agent = agents.get(payload.session_id)
        try:
            result = await agent.respond(payload.user_input)
        except TransportError as exc:
            if exc.status == 429:
                LOGGER.warning("response_agent.rate_limited", error=str(exc))
                detail, headers = _rate_limit_response(exc)
                raise HTTPException(status_code=429, detail=detail, headers=headers) from exc
            LOGGER.exception("response_agent.query_failed", error=str(exc))
            raise HTTPException(status_code=502, detail="Model request failed") from exc

        if result is None:
            raise HTTPException(status_code=422, detail="Empty input")

        return QueryResponse(
            response=result.text,
            response_id=result.response_id,
            history=[HistoryEntry(**entry) for entry in result.history],
        )

    @router.get("/status/{session_id}", response_model=StatusResponse)
    def status(session_id: str) -> StatusResponse:
        agents: AgentPool = app.state.agents
        message = agents.sessions.status_of(session_id)
        return StatusResponse(status_message=message, done=message == END_STATUS)

    @router.post("/reset")
    def reset(payload: ResetRequest) -> dict[str, str]:
        agents: AgentPool = app.state.agents
        agent = agents.get(payload.session_id)
        agent.clear_messages()
        system_prompt = payload.system_prompt or settings.system_prompt
        if system_prompt:
            agent.add_system(system_prompt)
        return {"status": "ok"}

    @router.post("/sync", response_model=SyncResponse)
    async def sync() -> SyncResponse:
        agents: AgentPool = app.state.agents
        documents = settings.documents
        try:
            async with build_rest_client(settings) as client:
                syncer = VectorStoreSync(
                    client=client,
                    sync_dir=documents.sync_dir,
                    vector_store_name=documents.vector_store_name,
                    vector_store_id=agents.vector_store_id,
                )
                vector_store_id = await syncer.sync()
        except TransportError as exc:
            LOGGER.exception("response_agent.sync_failed", error=str(exc))
            raise HTTPException(status_code=502, detail="Vector store sync failed") from exc

        if vector_store_id:
            agents.set_vector_store_id(vector_store_id)
        return SyncResponse(vector_store_id=vector_store_id)

    app.include_router(router)


def serve() -> None:
    settings: AppSettings = load_app_settings(AppSettings, None)

    configure_logging(settings.logging)
    application = create_app(settings)

    LOGGER.info(
        "response_agent.startup",
        host=settings.host,
        port=settings.port,
        service_name=settings.service_name,
        model=settings.llm.model,
    )

    config = uvicorn.Config(
        app=application,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )
    server = uvicorn.Server(config=config)
    asyncio.run(server.serve())


def _rate_limit_response(exc: Exception) -> tuple[str, dict[str, str]]:
    detail = "Model rate limit exceeded. Please retry later."
    headers: dict[str, str] = {}
    retry_after = _extract_retry_after_seconds(str(exc))
    if retry_after is not None:
        detail = f"{detail} Retry after {retry_after} seconds."
        headers["Retry-After"] = str(retry_after)
    return detail, headers


def _extract_retry_after_seconds(message: str) -> int | None:
    match = re.search(r"try again in ([0-9.]+)s", message)
    if not match:
        return None
    try:
        return int(math.ceil(float(match.group(1))))
    except ValueError:
        return None


if __name__ == "__main__":  # pragma: no cover - import-time guard
    serve()
