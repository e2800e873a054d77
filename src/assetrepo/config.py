from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .repository import ProgressThrottler, Repository
from .repository.progress import DEFAULT_WINDOW_MS
from .storage import EntityStore, InMemoryEntityStore

ENABLE_LOGGING_ENV = "ENABLE_ASSET_REPOSITORY_LOGGING"
LOG_LEVEL_ENV = "LOG_LEVEL"

_TRUTHY = {"1", "true", "yes", "on"}


def _logging_enabled_from_env() -> bool:
    return os.getenv(ENABLE_LOGGING_ENV, "").strip().lower() in _TRUTHY


def _log_level_from_env() -> str:
    return os.getenv(LOG_LEVEL_ENV, "info").strip() or "info"


class StoreConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    backend: Literal["memory"] = "memory"
    delay_ms: int = Field(default=0, ge=0)
    user_id: str = ""


class ProgressConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    window_ms: int = Field(default=DEFAULT_WINDOW_MS, ge=0)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default_factory=_logging_enabled_from_env)
    level: str = Field(default_factory=_log_level_from_env, validate_default=True)

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized == "WARN":
            normalized = "WARNING"
        if not isinstance(logging.getLevelName(normalized), int):
            raise ValueError(f"Unknown log level: {value}")
        return normalized


class RepositoryConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    store: StoreConfig = Field(default_factory=StoreConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(path: str | Path) -> RepositoryConfig:
    raw = Path(path).read_text(encoding="utf-8")
    payload = _parse_yaml_or_json(raw)
    try:
        return RepositoryConfig.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def build_store(config: StoreConfig) -> EntityStore:
    if config.backend == "memory":
        return InMemoryEntityStore(delay_ms=config.delay_ms, user_id=config.user_id)
    raise ValueError(f"Unsupported store backend: {config.backend}")


def build_repository(config: RepositoryConfig | None = None) -> Repository:
    config = config or RepositoryConfig()
    return Repository(
        build_store(config.store),
        throttler=ProgressThrottler(window_ms=config.progress.window_ms),
    )


def _parse_yaml_or_json(raw: str) -> dict[str, Any]:
    if not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        parsed = _parse_yaml(raw)
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed


def _parse_yaml(raw: str) -> dict[str, Any]:
    try:
        import yaml  # type: ignore[import-untyped]
    except ModuleNotFoundError as exc:
        raise ValueError(
            "YAML parsing requires PyYAML. Use JSON-compatible YAML or install pyyaml."
        ) from exc

    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ValueError("Configuration root must be an object.")
    return parsed
