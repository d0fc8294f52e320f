"""Static catalogue of tool implementations and registry construction."""

from __future__ import annotations

from collections.abc import Callable, Mapping

import structlog

from response_agent.infra.config import ToolSettings
from response_agent.tools.base import Tool
from response_agent.tools.impl.weather import WeatherTool
from response_agent.tools.registry import ToolRegistry

LOGGER = structlog.get_logger(__name__)

TOOL_CATALOG: Mapping[str, Callable[[], Tool]] = {
    "weather": WeatherTool,
}


def build_registry(
    settings: ToolSettings,
    catalog: Mapping[str, Callable[[], Tool]] = TOOL_CATALOG,
) -> ToolRegistry:
    """Register every enabled tool, in the order the settings list them."""

    registry = ToolRegistry(allow_overwrite=settings.allow_overwrite)
    for name in settings.enabled_tools:
        factory = catalog.get(name)
        if factory is None:
            LOGGER.warning("tool.unknown_in_settings", tool=name)
            continue
        registry.register(factory())
    return registry
