"""Configuration management for SyncX."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

MIN_PARALLEL = 1
MAX_PARALLEL = 20
SUPPORTED_PROTOCOLS = ("ssh", "http")
DEFAULT_STRIP_PREFIXES = ("org",)


class ConfigurationError(RuntimeError):
    """Raised when the run cannot start because its configuration is invalid."""


class SyncSettings(BaseSettings):
    """Runtime configuration sourced from environment variables, an optional .env file and CLI flags.

    The object is frozen: callers derive variants with ``model_copy(update=...)``
    instead of mutating a shared instance.
    """

    model_config = SettingsConfigDict(
        env_prefix="SYNCX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    inventory_file: Path = Field(default=Path("projects-inventory.json"))
    output_dir: Path | None = Field(default=None)
    protocol: Literal["ssh", "http"] = Field(default="ssh")
    parallel: int = Field(default=5)
    dry_run: bool = Field(default=False)
    skip_check: bool = Field(default=False)
    group: str | None = Field(default=None)
    strip_prefixes: Annotated[tuple[str, ...], NoDecode] = Field(default=DEFAULT_STRIP_PREFIXES)
    git_path: str | None = Field(default=None)
    clone_timeout: float = Field(default=60.0)
    fetch_timeout: float = Field(default=30.0)
    inspect_timeout: float = Field(default=20.0)
    log_level: str = Field(default="INFO")

    @field_validator("protocol", mode="before")
    @classmethod
    def _normalize_protocol(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized not in SUPPORTED_PROTOCOLS:
                raise ValueError("SYNCX_PROTOCOL must be one of ssh, http")
            return normalized
        return value

    @field_validator("parallel")
    @classmethod
    def _validate_parallel(cls, value: int) -> int:
        if not MIN_PARALLEL <= value <= MAX_PARALLEL:
            raise ValueError(f"SYNCX_PARALLEL must be between {MIN_PARALLEL} and {MAX_PARALLEL}")
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "SYNCX_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("strip_prefixes", mode="before")
    @classmethod
    def _parse_strip_prefixes(cls, value):
        if value is None or value == "":
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(str(item).strip().lower() for item in value if str(item).strip())
        if isinstance(value, str):
            return tuple(part.strip().lower() for part in value.split(",") if part.strip())
        raise ValueError("SYNCX_STRIP_PREFIXES must be a list or a comma-separated string")

    @field_validator("clone_timeout", "fetch_timeout", "inspect_timeout")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Git timeouts must be positive")
        return value


def build_settings(**overrides: Any) -> SyncSettings:
    """Construct settings, turning validation failures into ``ConfigurationError``.

    ``None`` overrides are ignored so unset CLI flags fall through to the
    environment and defaults.
    """

    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return SyncSettings(**values)
    except ValidationError as exc:
        raise ConfigurationError(str(exc)) from exc


@lru_cache(maxsize=1)
def get_settings() -> SyncSettings:
    """Return cached settings instance."""

    settings = build_settings()
    if settings.output_dir is not None:
        settings = settings.model_copy(update={"output_dir": settings.output_dir.expanduser()})
    return settings


__all__ = [
    "ConfigurationError",
    "DEFAULT_STRIP_PREFIXES",
    "MAX_PARALLEL",
    "MIN_PARALLEL",
    "SUPPORTED_PROTOCOLS",
    "SyncSettings",
    "build_settings",
    "get_settings",
]
