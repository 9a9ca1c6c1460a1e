"""Typed models for the project configuration document."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from .aliases import (
    InvalidProviderError,
    Provider,
    TimeoutSentinel,
    is_valid_timeout,
    normalize_choice,
    normalize_cli_confirmation,
    normalize_permission_mode,
    normalize_prompt_num,
    normalize_provider,
    normalize_timeout,
)

PROVIDER_KEYS = ("sdk", "llm_sdk", "provider")
OPTION_BLOCKS = ("claude_opts", "codex_opts", "codex_thread_opts", "amp_opts", "adapter_opts")
LLM_FIELDS = (
    "provider",
    "model",
    "allowed_tools",
    "permission_mode",
    "timeout",
    "cli_confirmation",
    "max_turns",
    "system_prompt",
    *OPTION_BLOCKS,
)

LOG_MODES = ("compact", "verbose")
LOG_META_MODES = ("none", "full")
EVENTS_MODES = ("compact", "full", "off")


def fold_provider_aliases(data: dict[str, Any]) -> dict[str, Any]:
    """Collapse ``sdk``/``llm_sdk``/``provider`` into a single ``provider`` key.

    ``sdk`` wins over ``llm_sdk`` which wins over ``provider`` inside one scope.
    """

    folded = {key: value for key, value in data.items() if key not in PROVIDER_KEYS}
    for key in PROVIDER_KEYS:
        if data.get(key) is not None:
            folded["provider"] = data[key]
            break
    return folded


class RepoSpec(BaseModel):
    """A named git repository prompts may target."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(..., description="Unique repo name referenced by prompts and groups.")
    path: Path = Field(..., description="Absolute path of the working tree.")
    is_default: bool = Field(
        default=False,
        alias="default",
        description="Whether prompts without explicit targets commit here.",
    )

    @field_validator("name", mode="before")
    @classmethod
    def _normalize_name(cls, value: Any) -> str:
        normalized = str(value).strip() if value is not None else ""
        if not normalized:
            raise ValueError("Repo name must not be empty")
        return normalized


class _LLMFields(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    model: str | None = None
    allowed_tools: list[str] | None = None
    permission_mode: str | None = None
    timeout: int | TimeoutSentinel | None = None
    cli_confirmation: str | None = None
    max_turns: int | None = None
    system_prompt: str | None = None
    claude_opts: dict[str, Any] = Field(default_factory=dict)
    codex_opts: dict[str, Any] = Field(default_factory=dict)
    codex_thread_opts: dict[str, Any] = Field(default_factory=dict)
    amp_opts: dict[str, Any] = Field(default_factory=dict)
    adapter_opts: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_provider(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return fold_provider_aliases(data)
        return data

    @field_validator("allowed_tools", mode="before")
    @classmethod
    def _split_tools(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("permission_mode", mode="before")
    @classmethod
    def _normalize_permission_mode(cls, value: Any) -> Any:
        return normalize_permission_mode(value)

    @field_validator("timeout", mode="before")
    @classmethod
    def _normalize_timeout(cls, value: Any) -> Any:
        if not is_valid_timeout(value):
            raise PydanticCustomError(
                "invalid_timeout",
                "invalid timeout {value!r}",
                {"value": value},
            )
        return normalize_timeout(value)

    @field_validator("cli_confirmation", mode="before")
    @classmethod
    def _normalize_cli_confirmation(cls, value: Any) -> Any:
        if value is None:
            return None
        return normalize_cli_confirmation(value)

    @field_validator(*OPTION_BLOCKS, mode="before")
    @classmethod
    def _empty_options(cls, value: Any) -> Any:
        return {} if value is None else value


class PromptOverride(_LLMFields):
    """Per-prompt settings delta; only explicitly set fields take effect.

    An unrecognized provider is kept verbatim so the effective configuration can fall
    back to the base provider instead of rejecting the whole document.
    """

    provider: Provider | str | None = None

    @field_validator("provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: Any) -> Any:
        if value is None:
            return None
        try:
            return normalize_provider(value)
        except InvalidProviderError:
            return str(value)


class LLMSettings(_LLMFields):
    """Shared LLM settings: root-level keys overlaid by the ``llm`` section."""

    provider: Provider = Provider.CLAUDE
    model: str
    prompt_overrides: dict[str, PromptOverride] = Field(default_factory=dict)

    @field_validator("provider", mode="before")
    @classmethod
    def _normalize_provider(cls, value: Any) -> Provider:
        if value is None:
            return Provider.CLAUDE
        try:
            return normalize_provider(value)
        except InvalidProviderError as exc:
            raise PydanticCustomError(
                "invalid_provider",
                "invalid provider {value!r}",
                {"value": exc.value},
            ) from exc

    @field_validator("model", mode="before")
    @classmethod
    def _require_model(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise PydanticCustomError("missing", "a default model is required")
        return value

    @field_validator("prompt_overrides", mode="before")
    @classmethod
    def _normalize_override_keys(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        return {normalize_prompt_num(key): override for key, override in value.items()}

    def override_for(self, num: Any) -> PromptOverride | None:
        return self.prompt_overrides.get(normalize_prompt_num(num))


class ProjectConfig(BaseModel):
    """Validated configuration document with paths resolved against ``config_dir``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    config_dir: Path
    config_path: Path | None = None
    project_dir: Path
    prompts_file: Path
    commit_messages_file: Path
    progress_file: Path
    log_dir: Path
    llm: LLMSettings
    target_repos: list[RepoSpec] = Field(default_factory=list)
    repo_groups: dict[str, Any] = Field(default_factory=dict)
    phase_names: dict[int, str] = Field(default_factory=dict)
    log_mode: str = "compact"
    log_meta: str = "none"
    events_mode: str = "compact"

    @field_validator("target_repos", mode="before")
    @classmethod
    def _ensure_repo_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("target_repos")
    @classmethod
    def _unique_repo_names(cls, value: list[RepoSpec]) -> list[RepoSpec]:
        seen: set[str] = set()
        for repo in value:
            if repo.name in seen:
                raise PydanticCustomError(
                    "duplicate_repo",
                    "repo {value!r} is configured more than once",
                    {"value": repo.name},
                )
            seen.add(repo.name)
        return value

    @field_validator("repo_groups", "phase_names", mode="before")
    @classmethod
    def _empty_mapping(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("log_mode", mode="before")
    @classmethod
    def _normalize_log_mode(cls, value: Any) -> str:
        return normalize_choice(value, LOG_MODES, field="log_mode")

    @field_validator("log_meta", mode="before")
    @classmethod
    def _normalize_log_meta(cls, value: Any) -> str:
        return normalize_choice(value, LOG_META_MODES, field="log_meta")

    @field_validator("events_mode", mode="before")
    @classmethod
    def _normalize_events_mode(cls, value: Any) -> str:
        return normalize_choice(value, EVENTS_MODES, field="events_mode")

    @property
    def is_multi_repo(self) -> bool:
        return len(self.target_repos) > 1

    def repo_named(self, name: str) -> RepoSpec | None:
        for repo in self.target_repos:
            if repo.name == name:
                return repo
        return None

    def resolve_path(self, relative: str | Path) -> Path:
        """Resolve a path from the document relative to the configuration directory."""

        path = Path(relative).expanduser()
        if path.is_absolute():
            return path
        return (self.config_dir / path).resolve()


__all__ = [
    "EVENTS_MODES",
    "LLMSettings",
    "LLM_FIELDS",
    "LOG_META_MODES",
    "LOG_MODES",
    "OPTION_BLOCKS",
    "ProjectConfig",
    "PromptOverride",
    "RepoSpec",
    "fold_provider_aliases",
]
