"""Configuration for the response agent service."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

CONFIG_PATH_ENV = "RESPONSE_AGENT_CONFIG"
ENV_PREFIX = "RESPONSE_AGENT__"
API_KEY_ENV = "OPENAI_API_KEY"

_SettingsT = TypeVar("_SettingsT", bound=BaseSettings)


class ConfigurationError(RuntimeError):
    """Raised when settings are missing or invalid."""


class LlmSettings(BaseModel):
    model: str = "gpt-5"
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    timeout_seconds: int = 300
    max_tool_rounds: int = 5
    parallel_tool_calls: bool = True
    transport: Literal["litellm", "http"] = "litellm"

    model_config = ConfigDict(frozen=True, extra="forbid")


class ToolSettings(BaseModel):
    enabled_tools: list[str] = Field(default_factory=lambda: ["weather"])
    allow_overwrite: bool = True

    model_config = ConfigDict(frozen=True, extra="forbid")


class DocumentIndexSettings(BaseModel):
    vector_store_id: str | None = None
    vector_store_name: str | None = None
    sync_dir: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class StorageSettings(BaseModel):
    backend: Literal["memory", "file"] = "memory"
    directory: str = ".response_agent"
    max_sessions: int = 1000

    model_config = ConfigDict(frozen=True, extra="forbid")


class LoggingSettings(BaseModel):
    level: str = "INFO"
    json_output: bool = False
    body_truncate: int = 100_000

    model_config = ConfigDict(frozen=True, extra="forbid")


class OpenAIKeySettingsSource(PydanticBaseSettingsSource):
    """Lowest-priority source supplying ``llm.api_key`` from ``OPENAI_API_KEY``."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        api_key = os.environ.get(API_KEY_ENV)
        if not api_key:
            return {}
        return {"llm": {"api_key": api_key}}


class AppSettings(BaseSettings):
    title: str = "Response Agent"
    description: str = "Tool-calling orchestration over a Responses-style completion API."
    version: str = "0.1.0"
    api_prefix: str = "/v1"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    service_name: str = "response-agent"
    system_prompt: str | None = None
    llm: LlmSettings = Field(default_factory=LlmSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)
    documents: DocumentIndexSettings = Field(default_factory=DocumentIndexSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        frozen=True,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
            OpenAIKeySettingsSource(settings_cls),
        )


def load_app_settings(settings_cls: type[_SettingsT], path: str | Path | None = None) -> _SettingsT:
    """Build settings from an optional TOML file overlaid with environment variables.

    The file comes from ``path`` or, when that is empty, ``RESPONSE_AGENT_CONFIG``.
    """

    config_path = path or os.environ.get(CONFIG_PATH_ENV)
    try:
        if not config_path:
            return settings_cls()
        if not Path(config_path).is_file():
            raise ConfigurationError(f"Settings file not found: {config_path}")

        class FileSettings(settings_cls):  # type: ignore[valid-type, misc]
            model_config = SettingsConfigDict(toml_file=str(config_path))

        return FileSettings()
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid settings file {config_path}: {exc}") from exc
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc
