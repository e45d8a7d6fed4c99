"""Configuration management for the campus access-control core."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")

    @field_validator("level")
    @classmethod
    def _validate_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value!r}")
        return level


class StorageSettings(BaseModel):
    sqlite_path: str = Field(default="./data/campus_rbac.sqlite")
    sqlite_wal: bool = Field(default=True)


class PolicySettings(BaseModel):
    path: str | None = Field(
        default=None,
        description="Optional YAML permission table; the built-in table is used when unset",
    )


class AuditSettings(BaseModel):
    enabled: bool = Field(default=True)
    asynchronous: bool = Field(
        default=False,
        description="Write audit events from a single background worker",
    )


class Settings(BaseModel):
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    policy: PolicySettings = Field(default_factory=PolicySettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)


ENV_KEYS = {
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "sqlite_path": "SQLITE_PATH",
    "sqlite_wal": "SQLITE_WAL",
    "permissions_path": "PERMISSIONS_PATH",
    "audit_enabled": "AUDIT_ENABLED",
    "audit_async": "AUDIT_ASYNC",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    root = _project_root().resolve()
    if candidate.is_absolute():
        return str(candidate.resolve())
    resolved = (root / candidate).resolve()
    if not resolved.is_relative_to(root):
        raise ValueError(f"Path traversal detected: '{path}' resolves outside project root")
    return str(resolved)


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_path(key: str) -> str | None:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return None
    return _resolve_path(value.strip())


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")

    try:
        settings_data: dict[str, object] = {
            "logging": {
                "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
                "file": _env_path(ENV_KEYS["log_file"]),
            },
            "storage": {
                "sqlite_path": _env_path(ENV_KEYS["sqlite_path"])
                or _resolve_path(StorageSettings().sqlite_path),
                "sqlite_wal": _env_bool(ENV_KEYS["sqlite_wal"], StorageSettings().sqlite_wal),
            },
            "policy": {
                "path": _env_path(ENV_KEYS["permissions_path"]),
            },
            "audit": {
                "enabled": _env_bool(ENV_KEYS["audit_enabled"], AuditSettings().enabled),
                "asynchronous": _env_bool(ENV_KEYS["audit_async"], AuditSettings().asynchronous),
            },
        }
        settings = Settings.model_validate(settings_data)
    except (ValidationError, ValueError) as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    if settings.policy.path and not Path(settings.policy.path).is_file():
        _config_logger.warning(
            "Permission table %s does not exist; startup will fail", settings.policy.path
        )

    Path(settings.storage.sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    return settings
