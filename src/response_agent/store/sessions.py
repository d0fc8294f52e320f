"""Per-session conversation stores for the HTTP service."""

from __future__ import annotations

import hashlib
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from response_agent.infra.config import StorageSettings
from response_agent.store.base import MessageStore, StatusReporter
from response_agent.store.file import JsonFileMessageStore, JsonFileStatusReporter
from response_agent.store.memory import InMemoryMessageStore, InMemoryStatusReporter

LOGGER = structlog.get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def session_file_stem(session_id: str) -> str:
    """Readable, collision-free file stem for a session id."""

    readable = _UNSAFE_CHARS.sub("_", session_id)[:40] or "session"
    digest = hashlib.sha256(session_id.encode("utf-8")).hexdigest()[:16]
    return f"{readable}-{digest}"


@dataclass(slots=True)
class Session:
    store: MessageStore
    status: StatusReporter


@dataclass(slots=True)
class SessionRegistry:
    """Lazily creates one message store and status reporter per session id.

    At most ``settings.max_sessions`` sessions are cached; the least recently
    used one is dropped first. Dropped memory sessions lose their history,
    file sessions are reopened from disk.
    """

    settings: StorageSettings
    _sessions: OrderedDict[str, Session] = field(default_factory=OrderedDict)

    def get(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            session = self._create(session_id)
            self._sessions[session_id] = session
            self._evict()
        else:
            self._sessions.move_to_end(session_id)
        return session

    def status_of(self, session_id: str) -> str | None:
        session = self._sessions.get(session_id)
        if session is None and self.settings.backend == "file":
            session = self.get(session_id)
        return session.status.get_status() if session else None

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict(self) -> None:
        limit = self.settings.max_sessions
        while limit > 0 and len(self._sessions) > limit:
            session_id, _ = self._sessions.popitem(last=False)
            LOGGER.info("session.evicted", session_id=session_id)

    def _create(self, session_id: str) -> Session:
        if self.settings.backend == "file":
            stem = session_file_stem(session_id)
            directory = Path(self.settings.directory)
            return Session(
                store=JsonFileMessageStore(directory, f"{stem}.json"),
                status=JsonFileStatusReporter(directory / f"{stem}.status.json"),
            )
        return Session(store=InMemoryMessageStore(), status=InMemoryStatusReporter())
