from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from prompt_runner.config import get_settings

DEFAULT_PROMPTS = "01|1|1|Alpha|001.md\n"
DEFAULT_MESSAGES = "=== COMMIT 01 ===\nchore: demo\n"


def init_git_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    for args in (
        ["init", "-q"],
        ["config", "user.email", "runner@example.com"],
        ["config", "user.name", "Prompt Runner"],
        ["config", "commit.gpgsign", "false"],
    ):
        subprocess.run(["git", *args], cwd=path, check=True, capture_output=True)
    return path


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def write_project(tmp_path: Path) -> Callable[..., Path]:
    """Write a runnable project layout under ``tmp_path`` and return the config path."""

    def _write(
        settings: dict[str, Any] | None = None,
        *,
        prompts: str = DEFAULT_PROMPTS,
        messages: str = DEFAULT_MESSAGES,
        files: tuple[str, ...] = ("001.md",),
    ) -> Path:
        document: dict[str, Any] = {
            "project_dir": ".",
            "prompts_file": "prompts.txt",
            "commit_messages_file": "commit-messages.txt",
            "progress_file": ".progress",
            "log_dir": "logs",
            "model": "haiku",
        }
        document.update(settings or {})
        (tmp_path / "prompts.txt").write_text(prompts, encoding="utf-8")
        (tmp_path / "commit-messages.txt").write_text(messages, encoding="utf-8")
        for name in files:
            (tmp_path / name).write_text(f"# {name}\nDo the work.\n", encoding="utf-8")
        config_path = tmp_path / "runner_config.yaml"
        config_path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
        return config_path

    return _write
