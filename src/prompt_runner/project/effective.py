"""Per-prompt effective LLM configuration."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from .. import targets
from .aliases import (
    Provider,
    effective_timeout_ms,
    normalize_cli_confirmation,
    normalize_permission_mode,
    stream_idle_timeout_ms,
)
from .models import LLM_FIELDS, OPTION_BLOCKS, ProjectConfig, RepoSpec

logger = logging.getLogger(__name__)

DEFAULT_REPO_NAME = "default"


class PromptLike(Protocol):
    num: str
    target_repos: Sequence[str] | None


@dataclass(frozen=True, slots=True)
class EffectiveLLMConfig:
    """Fully merged and normalized settings for one prompt execution."""

    num: str
    provider: Provider
    model: str | None
    cwd: Path
    timeout_ms: int
    idle_timeout_ms: int
    cli_confirmation: str
    timeout: Any = None
    allowed_tools: list[str] | None = None
    permission_mode: str | None = None
    max_turns: int | None = None
    system_prompt: str | None = None
    claude_opts: dict[str, Any] = field(default_factory=dict)
    codex_opts: dict[str, Any] = field(default_factory=dict)
    codex_thread_opts: dict[str, Any] = field(default_factory=dict)
    amp_opts: dict[str, Any] = field(default_factory=dict)
    adapter_opts: dict[str, Any] = field(default_factory=dict)
    additional_directories: list[Path] = field(default_factory=list)
    target_names: list[str] = field(default_factory=list)
    target_errors: list[str] = field(default_factory=list)


def default_repo(config: ProjectConfig) -> RepoSpec | None:
    """Return the repo flagged default, else the first configured repo."""

    for repo in config.target_repos:
        if repo.is_default:
            return repo
    return config.target_repos[0] if config.target_repos else None


def default_target(config: ProjectConfig) -> tuple[str, Path]:
    repo = default_repo(config)
    if repo is None:
        return DEFAULT_REPO_NAME, config.project_dir
    return repo.name, repo.path


def resolve_prompt_paths(config: ProjectConfig, prompt: PromptLike) -> tuple[list[str], list[Path], list[str]]:
    """Advisory target resolution used at execution time.

    Returns the resolved repo names, their paths (unknown names are skipped) and the
    human-readable expansion errors.
    """

    names, errors = targets.expand(prompt.target_repos, config.repo_groups)
    messages = [targets.format_error(error) for error in errors]
    if names is None:
        name, path = default_target(config)
        return [name], [path], messages

    paths: list[Path] = []
    for name in names:
        repo = config.repo_named(name)
        if repo is None:
            messages.append(f"Repo not configured: {name}")
            continue
        paths.append(repo.path)
    return names, paths, messages


def llm_for_prompt(config: ProjectConfig, prompt: PromptLike) -> EffectiveLLMConfig:
    """Compute the effective LLM settings for ``prompt``.

    Root-level settings are overlaid by the ``llm`` section at load time; here the
    per-prompt override is applied field by field, with recursive merging only for the
    provider option blocks.
    """

    names, paths, messages = resolve_prompt_paths(config, prompt)
    cwd = paths[0] if paths else config.project_dir

    llm = config.llm
    settings: dict[str, Any] = {name: copy.deepcopy(getattr(llm, name)) for name in LLM_FIELDS}

    override = llm.override_for(prompt.num)
    if override is not None:
        for name in override.model_fields_set:
            value = getattr(override, name)
            if name == "provider":
                if isinstance(value, Provider):
                    settings["provider"] = value
                else:
                    logger.warning(
                        "Ignoring invalid provider override %r for prompt %s",
                        value,
                        prompt.num,
                        extra={"prompt": prompt.num},
                    )
            elif name in OPTION_BLOCKS:
                settings[name] = deep_merge(settings[name], value)
            else:
                settings[name] = copy.deepcopy(value)

    extra_dirs = _additional_directories(paths, cwd)
    if extra_dirs:
        settings["codex_thread_opts"] = _with_directories(
            settings["codex_thread_opts"], "additional_directories", extra_dirs, cwd
        )
        settings["claude_opts"] = _with_directories(settings["claude_opts"], "add_dirs", extra_dirs, cwd)

    timeout_ms = effective_timeout_ms(settings["timeout"])
    adapter_opts = settings["adapter_opts"]
    idle = adapter_opts.get("stream_idle_timeout") or adapter_opts.get("idle_timeout")

    return EffectiveLLMConfig(
        num=prompt.num,
        provider=settings["provider"],
        model=settings["model"],
        cwd=cwd,
        timeout=settings["timeout"],
        timeout_ms=timeout_ms,
        idle_timeout_ms=stream_idle_timeout_ms(idle, timeout_ms),
        cli_confirmation=normalize_cli_confirmation(settings["cli_confirmation"]),
        allowed_tools=settings["allowed_tools"],
        permission_mode=normalize_permission_mode(settings["permission_mode"]),
        max_turns=settings["max_turns"],
        system_prompt=settings["system_prompt"],
        claude_opts=settings["claude_opts"],
        codex_opts=settings["codex_opts"],
        codex_thread_opts=settings["codex_thread_opts"],
        amp_opts=settings["amp_opts"],
        adapter_opts=adapter_opts,
        additional_directories=extra_dirs,
        target_names=names,
        target_errors=messages,
    )


def deep_merge(base: Mapping[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``update`` into a copy of ``base``; nested mappings merge, other values replace."""

    merged = copy.deepcopy(dict(base))
    for key, value in update.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _additional_directories(paths: Sequence[Path], cwd: Path) -> list[Path]:
    extras: list[Path] = []
    for path in paths:
        if path == cwd or path in extras:
            continue
        extras.append(path)
    return extras


def _with_directories(
    options: Mapping[str, Any],
    key: str,
    extras: Sequence[Path],
    cwd: Path,
) -> dict[str, Any]:
    existing = options.get(key) or []
    if isinstance(existing, (str, Path)):
        existing = [existing]
    combined: list[str] = []
    for entry in [*existing, *extras]:
        text = str(entry)
        if text == str(cwd) or text in combined:
            continue
        combined.append(text)
    updated = dict(options)
    updated[key] = combined
    return updated


__all__ = [
    "DEFAULT_REPO_NAME",
    "EffectiveLLMConfig",
    "deep_merge",
    "default_repo",
    "default_target",
    "llm_for_prompt",
    "resolve_prompt_paths",
]
