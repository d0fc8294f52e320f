"""JSON-file backed message store and status reporter.

Each store owns one file holding the full conversation as a JSON array of
``{"role": ..., "content": ...}`` objects. Missing, empty or corrupt files read
as an empty conversation.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import structlog

from response_agent.agent.types import Content, Message

LOGGER = structlog.get_logger(__name__)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        LOGGER.warning("store.read_failed", path=str(path), error=str(exc))
        return default
    if not text.strip():
        return default
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        LOGGER.warning("store.invalid_json", path=str(path))
        return default


def _write_json(path: Path, data: Any) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    tmp.replace(path)


class JsonFileMessageStore:
    """Message store persisted to ``directory / filename``."""

    def __init__(self, directory: str | Path, filename: str) -> None:
        self.directory = Path(directory)
        self.path = self.directory / filename
        self.directory.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.write([])

    def read(self) -> list[Message]:
        data = _read_json(self.path, [])
        if not isinstance(data, list):
            return []
        return [Message.from_dict(entry) for entry in data if isinstance(entry, Mapping)]

    def write(self, messages: Sequence[Message]) -> None:
        _write_json(self.path, [message.to_dict() for message in messages])

    def append(self, role: str, content: Content) -> None:
        messages = self.read()
        messages.append(Message(role=role, content=content))
        self.write(messages)


class JsonFileStatusReporter:
    """Status text persisted so that another process can poll it."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def set_status(self, status: str) -> None:
        _write_json(self.path, {"status": status})

    def get_status(self) -> str | None:
        data = _read_json(self.path, None)
        if not isinstance(data, Mapping):
            return None
        status = data.get("status")
        return status if isinstance(status, str) else None
