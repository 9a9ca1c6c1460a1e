"""Runtime settings for Prompt Runner."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RunnerSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = Field(default="WARNING", validation_alias="PROMPT_RUNNER_LOG_LEVEL")
    config_path: Path | None = Field(default=None, validation_alias="PROMPT_RUNNER_CONFIG")
    claude_path: str | None = Field(default=None, validation_alias="CLAUDE_PATH")
    codex_path: str | None = Field(default=None, validation_alias="CODEX_PATH")
    amp_path: str | None = Field(default=None, validation_alias="AMP_PATH")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "PROMPT_RUNNER_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("config_path", mode="before")
    @classmethod
    def _empty_config_path(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return value

    def executable_for(self, provider: str) -> str | None:
        """Return the explicitly configured executable for ``provider`` if any."""

        return {
            "claude": self.claude_path,
            "codex": self.codex_path,
            "amp": self.amp_path,
        }.get(str(provider))


@lru_cache(maxsize=1)
def get_settings() -> RunnerSettings:
    """Return cached settings instance."""

    settings = RunnerSettings()
    if settings.config_path is not None:
        settings.config_path = settings.config_path.expanduser().resolve()
    return settings


__all__ = ["RunnerSettings", "get_settings"]
