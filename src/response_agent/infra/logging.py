"""structlog configuration and payload previews for request logging."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from typing import Any

import structlog

from response_agent.infra.config import LoggingSettings

TRUNCATED_SUFFIX = "\n...[truncated]"
REDACTED = "***REDACTED***"


def configure_logging(settings: LoggingSettings) -> None:
    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stdout)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
    ]
    if settings.json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {
        key: REDACTED if key.lower() == "authorization" else value
        for key, value in headers.items()
    }


def preview_body(body: Any, limit: int) -> str:
    """Render a request/response body for logs, truncating past ``limit`` chars.

    A ``limit`` of zero or less disables truncation.
    """

    if isinstance(body, bytes):
        text = body.decode("utf-8", errors="replace")
    elif isinstance(body, str):
        text = body
    else:
        try:
            text = json.dumps(body, indent=2, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            text = repr(body)
    if limit > 0 and len(text) > limit:
        return f"{text[:limit]}{TRUNCATED_SUFFIX}"
    return text
