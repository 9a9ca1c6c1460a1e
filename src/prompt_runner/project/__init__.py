"""Project configuration: loading, alias normalization and per-prompt resolution."""

from .aliases import EMERGENCY_TIMEOUT_MS, Provider, TimeoutSentinel
from .effective import EffectiveLLMConfig, default_repo, default_target, llm_for_prompt
from .loader import ProjectLoader, load_project_config, with_overrides
from .models import LLMSettings, ProjectConfig, PromptOverride, RepoSpec

__all__ = [
    "EMERGENCY_TIMEOUT_MS",
    "EffectiveLLMConfig",
    "LLMSettings",
    "ProjectConfig",
    "ProjectLoader",
    "PromptOverride",
    "Provider",
    "RepoSpec",
    "TimeoutSentinel",
    "default_repo",
    "default_target",
    "llm_for_prompt",
    "load_project_config",
    "with_overrides",
]
