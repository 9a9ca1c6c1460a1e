"""Configuration document loading and CLI-level overrides."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml
from pydantic import ValidationError

from ..errors import ConfigError, ConfigLoadError
from .models import (
    EVENTS_MODES,
    LLM_FIELDS,
    LOG_META_MODES,
    LOG_MODES,
    PROVIDER_KEYS,
    ProjectConfig,
    RepoSpec,
    fold_provider_aliases,
)

logger = logging.getLogger(__name__)

PATH_FIELDS = ("project_dir", "prompts_file", "commit_messages_file", "progress_file", "log_dir")
MUST_EXIST = ("project_dir", "prompts_file", "commit_messages_file")
_TYPED_ERRORS = {"invalid_timeout", "invalid_provider", "duplicate_repo"}


class ProjectLoader:
    """Loads and validates a project configuration document from disk."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser().resolve()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> ProjectConfig:
        """Parse the document and return a validated :class:`ProjectConfig`.

        Every problem found is collected and raised together in one
        :class:`~prompt_runner.errors.ConfigLoadError`.
        """

        if not self._path.is_file():
            raise ConfigLoadError([ConfigError("config", ("config_not_found", str(self._path)))])

        try:
            document = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ConfigLoadError([ConfigError("config", ("parse_error", str(exc)))]) from exc

        if document is None:
            document = {}
        if not isinstance(document, Mapping):
            raise ConfigLoadError(
                [ConfigError("config", ("invalid_document", type(document).__name__))]
            )

        return build_project_config(document, config_dir=self._path.parent, config_path=self._path)


def load_project_config(path: str | Path) -> ProjectConfig:
    """Convenience wrapper around :class:`ProjectLoader`."""

    return ProjectLoader(path).load()


def build_project_config(
    document: Mapping[str, Any],
    *,
    config_dir: Path,
    config_path: Path | None = None,
) -> ProjectConfig:
    """Validate an already-parsed document; relative paths resolve against ``config_dir``."""

    config_dir = Path(config_dir).resolve()
    errors: list[ConfigError] = []
    payload: dict[str, Any] = {"config_dir": config_dir, "config_path": config_path}

    for key, value in document.items():
        if key in LLM_FIELDS or key in PROVIDER_KEYS or key in ("llm", "prompt_overrides"):
            continue
        payload[key] = value

    payload["llm"] = _merge_llm_scopes(document, errors)

    for field in PATH_FIELDS:
        value = payload.pop(field, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        resolved = _resolve(config_dir, value)
        payload[field] = resolved
        if field in MUST_EXIST and not resolved.exists():
            errors.append(ConfigError(field, ("path_not_found", str(resolved))))

    repos = payload.get("target_repos")
    if isinstance(repos, list):
        payload["target_repos"] = [_resolve_repo(config_dir, repo) for repo in repos]

    try:
        config = ProjectConfig.model_validate(payload)
    except ValidationError as exc:
        errors.extend(config_errors_from(exc))
        config = None

    if errors:
        raise ConfigLoadError(errors)
    return config


def config_errors_from(exc: ValidationError) -> list[ConfigError]:
    """Translate pydantic validation errors into :class:`ConfigError` entries."""

    converted: list[ConfigError] = []
    for item in exc.errors():
        loc = [str(part) for part in item.get("loc", ())]
        if loc and loc[0] == "llm":
            loc = loc[1:]
        kind = item.get("type", "invalid")
        context = item.get("ctx") or {}

        if kind in _TYPED_ERRORS:
            field = "target_repos" if kind == "duplicate_repo" else (loc[-1] if loc else kind)
            converted.append(ConfigError(field, (kind, context.get("value"))))
        elif kind == "missing":
            converted.append(ConfigError(".".join(loc) or "config", "missing_value"))
        elif kind == "extra_forbidden":
            converted.append(ConfigError(".".join(loc), ("unknown_key", loc[-1] if loc else None)))
        else:
            converted.append(ConfigError(".".join(loc) or "config", (kind, item.get("msg"))))
    return converted


def with_overrides(
    config: ProjectConfig,
    *,
    project_dir: str | Path | None = None,
    repo_overrides: Iterable[str] = (),
    log_mode: str | None = None,
    log_meta: str | None = None,
    events_mode: str | None = None,
) -> ProjectConfig:
    """Apply command-line overrides on top of a loaded configuration.

    Malformed repo overrides and unknown log settings are logged and ignored.
    """

    update: dict[str, Any] = {}
    if project_dir:
        update["project_dir"] = Path(project_dir).expanduser().resolve()

    repos = apply_repo_overrides(config.target_repos, repo_overrides)
    if repos != config.target_repos:
        update["target_repos"] = repos

    for field, value, choices in (
        ("log_mode", log_mode, LOG_MODES),
        ("log_meta", log_meta, LOG_META_MODES),
        ("events_mode", events_mode, EVENTS_MODES),
    ):
        if value is None:
            continue
        token = str(value).strip().lower()
        if token in choices:
            update[field] = token
        else:
            logger.warning("Ignoring invalid %s override %r", field, value)

    if not update:
        return config
    return config.model_copy(update=update)


def apply_repo_overrides(repos: list[RepoSpec], overrides: Iterable[str]) -> list[RepoSpec]:
    """Upsert ``name:path`` overrides by repo name; unknown names are appended."""

    result = list(repos)
    for entry in overrides:
        parsed = parse_repo_override(entry)
        if parsed is None:
            logger.warning("Ignoring malformed repo override %r (expected NAME:PATH)", entry)
            continue
        name, path = parsed
        for index, repo in enumerate(result):
            if repo.name == name:
                result[index] = repo.model_copy(update={"path": path})
                break
        else:
            result.append(RepoSpec(name=name, path=path))
    return result


def parse_repo_override(entry: str) -> tuple[str, Path] | None:
    name, sep, raw_path = str(entry).partition(":")
    name = name.strip()
    raw_path = raw_path.strip()
    if not sep or not name or not raw_path:
        return None
    return name, Path(raw_path).expanduser().resolve()


def _merge_llm_scopes(document: Mapping[str, Any], errors: list[ConfigError]) -> dict[str, Any]:
    root = {key: document[key] for key in (*LLM_FIELDS, *PROVIDER_KEYS, "prompt_overrides") if key in document}
    section = document.get("llm")
    if section is None:
        section = {}
    elif not isinstance(section, Mapping):
        errors.append(ConfigError("llm", ("invalid_value", section)))
        section = {}

    merged = fold_provider_aliases(root)
    for key, value in fold_provider_aliases(dict(section)).items():
        if _is_blank(value) and key in merged:
            continue
        merged[key] = value
    return merged


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _resolve(config_dir: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    if path.is_absolute():
        return path
    return (config_dir / path).resolve()


def _resolve_repo(config_dir: Path, repo: Any) -> Any:
    if not isinstance(repo, Mapping) or repo.get("path") in (None, ""):
        return repo
    resolved = dict(repo)
    resolved["path"] = _resolve(config_dir, repo["path"])
    return resolved


__all__ = [
    "ProjectLoader",
    "apply_repo_overrides",
    "build_project_config",
    "config_errors_from",
    "load_project_config",
    "parse_repo_override",
    "with_overrides",
]
