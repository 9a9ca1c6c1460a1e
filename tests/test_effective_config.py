from __future__ import annotations

from pathlib import Path

from prompt_runner.project import EMERGENCY_TIMEOUT_MS, Provider, load_project_config
from prompt_runner.project.effective import deep_merge, default_target, llm_for_prompt
from prompt_runner.storage.models import Prompt


def _prompt(num: str = "01", target_repos: list[str] | None = None) -> Prompt:
    return Prompt(num=num, phase=1, story_points=1, name="Alpha", file="001.md", target_repos=target_repos)


def _repos(tmp_path: Path, *names: str) -> list[dict]:
    repos = []
    for name in names:
        (tmp_path / name).mkdir(exist_ok=True)
        repos.append({"name": name, "path": name})
    return repos


def test_prompt_override_wins_over_root_settings(write_project) -> None:
    config = load_project_config(
        write_project({"model": "haiku", "prompt_overrides": {"02": {"model": "gpt-5.3-codex"}}})
    )

    assert llm_for_prompt(config, _prompt("02")).model == "gpt-5.3-codex"
    assert llm_for_prompt(config, _prompt("01")).model == "haiku"


def test_override_keeps_unset_fields(write_project) -> None:
    config = load_project_config(
        write_project(
            {
                "allowed_tools": "Read, Edit,Bash",
                "max_turns": 5,
                "prompt_overrides": {"01": {"sdk": "codex", "permission_mode": "bypass_permissions"}},
            }
        )
    )

    effective = llm_for_prompt(config, _prompt("01"))

    assert effective.provider is Provider.CODEX
    assert effective.allowed_tools == ["Read", "Edit", "Bash"]
    assert effective.max_turns == 5
    assert effective.permission_mode == "full_auto"


def test_invalid_override_provider_falls_back(write_project, caplog) -> None:
    config = load_project_config(
        write_project({"sdk": "amp", "prompt_overrides": {"01": {"provider": "gemini", "model": "x"}}})
    )

    effective = llm_for_prompt(config, _prompt("01"))

    assert effective.provider is Provider.AMP
    assert effective.model == "x"
    assert "gemini" in caplog.text


def test_option_blocks_merge_recursively(write_project) -> None:
    config = load_project_config(
        write_project(
            {
                "codex_thread_opts": {"reasoning_effort": "high", "nested": {"a": 1, "b": 2}},
                "prompt_overrides": {"01": {"codex_thread_opts": {"nested": {"b": 3}}}},
            }
        )
    )

    effective = llm_for_prompt(config, _prompt("01"))

    assert effective.codex_thread_opts == {"reasoning_effort": "high", "nested": {"a": 1, "b": 3}}
    assert config.llm.codex_thread_opts["nested"] == {"a": 1, "b": 2}


def test_timeouts_resolve_to_milliseconds(write_project) -> None:
    config = load_project_config(
        write_project(
            {
                "timeout": 60_000,
                "adapter_opts": {"stream_idle_timeout": 5_000},
                "prompt_overrides": {"02": {"timeout": "infinity", "adapter_opts": {"stream_idle_timeout": None}}},
            }
        )
    )

    first = llm_for_prompt(config, _prompt("01"))
    second = llm_for_prompt(config, _prompt("02"))

    assert (first.timeout_ms, first.idle_timeout_ms) == (60_000, 5_000)
    assert second.timeout_ms == EMERGENCY_TIMEOUT_MS
    assert second.idle_timeout_ms == EMERGENCY_TIMEOUT_MS + 30_000


def test_cli_confirmation_defaults_to_warn(write_project) -> None:
    config = load_project_config(
        write_project({"prompt_overrides": {"02": {"cli_confirmation": "require"}}})
    )

    assert llm_for_prompt(config, _prompt("01")).cli_confirmation == "warn"
    assert llm_for_prompt(config, _prompt("02")).cli_confirmation == "require"


def test_single_repo_uses_project_dir(write_project, tmp_path: Path) -> None:
    config = load_project_config(write_project())

    effective = llm_for_prompt(config, _prompt())

    assert effective.cwd == tmp_path.resolve()
    assert effective.target_names == ["default"]
    assert effective.additional_directories == []
    assert default_target(config) == ("default", tmp_path.resolve())


def test_default_repo_flag(write_project, tmp_path: Path) -> None:
    repos = _repos(tmp_path, "web", "api")
    repos[1]["default"] = True
    config = load_project_config(write_project({"target_repos": repos}))

    assert default_target(config) == ("api", (tmp_path / "api").resolve())
    assert llm_for_prompt(config, _prompt()).cwd == (tmp_path / "api").resolve()


def test_multi_repo_prompt_adds_directories(write_project, tmp_path: Path) -> None:
    config = load_project_config(
        write_project(
            {
                "target_repos": _repos(tmp_path, "web", "api", "docs"),
                "repo_groups": {"backend": ["api", "docs"]},
                "codex_thread_opts": {"additional_directories": ["/opt/shared"]},
            }
        )
    )

    effective = llm_for_prompt(config, _prompt(target_repos=["web", "@backend", "ghost"]))

    api, docs = (tmp_path / "api").resolve(), (tmp_path / "docs").resolve()
    assert effective.cwd == (tmp_path / "web").resolve()
    assert effective.target_names == ["web", "api", "docs", "ghost"]
    assert effective.additional_directories == [api, docs]
    assert effective.codex_thread_opts["additional_directories"] == ["/opt/shared", str(api), str(docs)]
    assert effective.claude_opts["add_dirs"] == [str(api), str(docs)]
    assert effective.target_errors == ["Repo not configured: ghost"]


def test_group_errors_surface_without_raising(write_project, tmp_path: Path) -> None:
    config = load_project_config(write_project({"target_repos": _repos(tmp_path, "web")}))

    effective = llm_for_prompt(config, _prompt(target_repos=["@missing"]))

    assert effective.cwd == tmp_path.resolve()
    assert effective.target_errors == ["Unknown repo group: @missing"]


def test_deep_merge_does_not_alias_inputs() -> None:
    base = {"a": {"b": [1]}, "c": 1}
    merged = deep_merge(base, {"a": {"d": 2}, "c": {"e": 3}})

    merged["a"]["b"].append(2)

    assert merged == {"a": {"b": [1, 2], "d": 2}, "c": {"e": 3}}
    assert base == {"a": {"b": [1]}, "c": 1}
