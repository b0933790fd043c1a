"""Configuration management for FocusFlow."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FocusFlowSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    api_base_url: str = Field(
        default="http://localhost:3001/api", validation_alias="FOCUSFLOW_API_URL"
    )
    overlay_path: Path = Field(
        default=Path("./storage/focusflow_metadata.json"),
        validation_alias="FOCUSFLOW_OVERLAY_PATH",
    )
    log_level: str = Field(default="INFO", validation_alias="FOCUSFLOW_LOG_LEVEL")
    request_timeout: float = Field(default=30.0, validation_alias="FOCUSFLOW_REQUEST_TIMEOUT")
    prune_on_refresh: bool = Field(default=False, validation_alias="FOCUSFLOW_PRUNE_ON_REFRESH")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "FOCUSFLOW_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not normalized:
            raise ValueError("FOCUSFLOW_API_URL must not be empty")
        return normalized

    @field_validator("request_timeout")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("FOCUSFLOW_REQUEST_TIMEOUT must be > 0")
        return value


@lru_cache(maxsize=1)
def get_settings() -> FocusFlowSettings:
    """Return cached settings instance."""

    settings = FocusFlowSettings()
    settings.overlay_path = settings.overlay_path.expanduser().resolve()
    return settings


__all__ = ["FocusFlowSettings", "get_settings"]
