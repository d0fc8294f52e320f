"""Demo forecast tool."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from response_agent.tools.base import ToolSpec


@dataclass(slots=True)
class WeatherTool:
    """Return a (fixed) weather forecast for a city."""

    spec: ToolSpec = field(
        default_factory=lambda: ToolSpec(
            name="weather",
            description="Returns a weather forecast.",
            input_schema={
                "type": "object",
                "properties": {
                    "city": {
                        "type": "string",
                        "description": 'Name of the city to get the weather for (e.g. "Tokyo", "Osaka").',
                    },
                },
            },
        )
    )

    def execute(self, context: Any, arguments: Mapping[str, Any]) -> dict[str, Any]:
        city = str(arguments.get("city") or "").strip()
        if not city:
            return {"ok": False, "error": 'Missing required argument "city".'}
        return {"ok": True, "city": city, "forecast": "Sunny"}
