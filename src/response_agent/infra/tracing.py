"""Trace helpers for tool execution and remote rounds."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from opentelemetry import trace


@contextmanager
def tool_span(name: str, **attributes: object) -> Iterator[None]:
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(name) as span:
        for key, value in attributes.items():
            if value is not None:
                span.set_attribute(key, value)
        yield


@contextmanager
def round_span(round_number: int, **attributes: object) -> Iterator[None]:
    with tool_span("llm.round", round=round_number, **attributes):
        yield
