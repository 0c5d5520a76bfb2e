"""Configuration management for the transaction queue MCP server."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class QueueSettings(BaseModel):
    max_history: int = Field(
        default=100,
        ge=1,
        description="Operation records kept before the oldest are evicted.",
    )
    max_subscribers_per_id: int = Field(default=100, ge=1, le=10_000)
    notification_workers: int = Field(default=4, ge=1, le=64)
    background_workers: int = Field(default=8, ge=1, le=256)


class ServerSettings(BaseModel):
    name: str = Field(default="txqueue-mcp")
    instructions: str = Field(
        default=(
            "Use these tools to poll transactions and background analysis tasks "
            "by the id returned when they were submitted. A 'found: false' reply "
            "means the id is unknown or was evicted; stop polling it."
        )
    )


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)


ENV_KEYS = {
    "instructions": "MCP_INSTRUCTIONS",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "max_history": "TXQUEUE_MAX_HISTORY",
    "max_subscribers_per_id": "TXQUEUE_MAX_SUBSCRIBERS_PER_ID",
    "notification_workers": "TXQUEUE_NOTIFICATION_WORKERS",
    "background_workers": "TXQUEUE_BACKGROUND_WORKERS",
}


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    if candidate.is_absolute():
        return str(candidate.resolve())
    return str((_project_root() / candidate).resolve())


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])

    settings_data: dict[str, object] = {
        "server": {
            "instructions": os.getenv(ENV_KEYS["instructions"], ServerSettings().instructions),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "queue": {
            "max_history": _env_int(ENV_KEYS["max_history"], QueueSettings().max_history),
            "max_subscribers_per_id": _env_int(
                ENV_KEYS["max_subscribers_per_id"],
                QueueSettings().max_subscribers_per_id,
            ),
            "notification_workers": _env_int(
                ENV_KEYS["notification_workers"],
                QueueSettings().notification_workers,
            ),
            "background_workers": _env_int(
                ENV_KEYS["background_workers"],
                QueueSettings().background_workers,
            ),
        },
    }

    try:
        return Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc
