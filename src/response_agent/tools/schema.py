"""Strict parameter schemas for tool definitions."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def normalize_schema(schema: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a strict object schema derived from a loosely specified one.

    Every declared property becomes required and ``additionalProperties``
    defaults to ``False`` unless the caller set it explicitly. The input is
    never mutated and normalizing twice yields the same mapping.
    """

    normalized: dict[str, Any] = dict(schema) if isinstance(schema, Mapping) else {}
    normalized["type"] = "object"

    properties = normalized.get("properties")
    if isinstance(properties, Mapping) and properties:
        normalized["properties"] = dict(properties)
        property_keys = list(properties.keys())
    else:
        normalized["properties"] = {}
        property_keys = []

    normalized["required"] = property_keys
    if normalized.get("additionalProperties") is None:
        normalized["additionalProperties"] = False
    return normalized
