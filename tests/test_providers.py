from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from prompt_runner.config import RunnerSettings
from prompt_runner.errors import ProviderNotFoundError, ProviderStartError
from prompt_runner.project.aliases import Provider
from prompt_runner.project.effective import EffectiveLLMConfig
from prompt_runner.providers import (
    AmpProvider,
    ClaudeProvider,
    CodexProvider,
    FakeProvider,
    get_provider,
    start_stream,
)
from prompt_runner.providers.base import (
    ERROR_OCCURRED,
    RUN_COMPLETED,
    RUN_FAILED,
    RUN_STARTED,
    TEXT_DELTA,
    TOOL_COMPLETED,
    TOOL_STARTED,
)
from prompt_runner.providers.fake import successful_run
from prompt_runner.providers.process import CliProcess
from prompt_runner.providers.utils import option_flags, sanitize_environment


def _script(tmp_path: Path, name: str, body: str) -> Path:
    script = tmp_path / name
    script.write_text("#!/bin/sh\n" + body, encoding="utf-8")
    script.chmod(0o755)
    return script


def _effective(tmp_path: Path, **overrides) -> EffectiveLLMConfig:
    values = dict(
        num="01",
        provider=Provider.CLAUDE,
        model="sonnet",
        cwd=tmp_path,
        timeout_ms=60_000,
        idle_timeout_ms=120_000,
        cli_confirmation="warn",
    )
    values.update(overrides)
    return EffectiveLLMConfig(**values)


def _stub_process(lines: list[str], *, exit_code: int = 0, timed_out: str | None = None, stderr: str = ""):
    return SimpleNamespace(
        lines=lambda: iter(lines),
        wait=lambda: exit_code,
        timed_out=timed_out,
        timeout_label="200 ms",
        stderr=stderr,
    )


def test_missing_executable(tmp_path: Path, monkeypatch) -> None:
    with pytest.raises(ProviderNotFoundError):
        ClaudeProvider(tmp_path / "missing")

    monkeypatch.setenv("PATH", str(tmp_path))
    with pytest.raises(ProviderNotFoundError, match="not found on PATH"):
        CodexProvider()


def test_get_provider_uses_configured_path(tmp_path: Path, monkeypatch) -> None:
    script = _script(tmp_path, "amp-cli", "exit 0\n")
    monkeypatch.setenv("AMP_PATH", str(script))

    provider = get_provider(Provider.AMP, RunnerSettings())

    assert isinstance(provider, AmpProvider)
    assert provider.executable == script


def test_start_stream_dispatches_on_provider(tmp_path: Path, monkeypatch) -> None:
    script = _script(tmp_path, "codex-cli", "cat > /dev/null\necho '{\"type\":\"turn.completed\",\"usage\":{}}'\n")
    monkeypatch.setenv("CODEX_PATH", str(script))

    handle = start_stream(_effective(tmp_path, provider=Provider.CODEX), "prompt", settings=RunnerSettings())
    try:
        events = list(handle.events)
    finally:
        handle.close()

    assert [event.type for event in events] == [RUN_COMPLETED]
    assert handle.meta["provider"] == "codex"


def test_claude_command(tmp_path: Path) -> None:
    provider = ClaudeProvider(_script(tmp_path, "claude", "exit 0\n"))
    effective = _effective(
        tmp_path,
        allowed_tools=["Read", "Edit"],
        permission_mode="accept_edits",
        max_turns=3,
        system_prompt="Be brief",
        claude_opts={"add_dirs": ["/x"], "fallback_model": "haiku", "debug": True, "quiet": False},
    )

    assert provider.build_command(effective, "prompt") == [
        str(provider.executable),
        "-p",
        "--output-format",
        "stream-json",
        "--verbose",
        "--model",
        "claude-sonnet-4-5-20250929",
        "--allowedTools",
        "Read,Edit",
        "--permission-mode",
        "acceptEdits",
        "--max-turns",
        "3",
        "--append-system-prompt",
        "Be brief",
        "--add-dir",
        "/x",
        "--fallback-model",
        "haiku",
        "--debug",
    ]


def test_claude_normalize(tmp_path: Path) -> None:
    provider = ClaudeProvider(_script(tmp_path, "claude", "exit 0\n"))

    [started] = provider.normalize({"type": "system", "subtype": "init", "model": "m", "session_id": "s"})
    assistant = provider.normalize(
        {
            "type": "assistant",
            "message": {
                "content": [
                    {"type": "text", "text": "Working"},
                    {"type": "tool_use", "id": "t1", "name": "Bash", "input": {"command": "ls"}},
                ]
            },
        }
    )
    [tool_done] = provider.normalize(
        {"type": "user", "message": {"content": [{"type": "tool_result", "tool_use_id": "t1", "content": "ok"}]}}
    )
    [finished] = provider.normalize({"type": "result", "subtype": "success", "result": "done"})
    [failed] = provider.normalize({"type": "result", "subtype": "error_max_turns", "is_error": True})

    assert started.type == RUN_STARTED and started.data["model"] == "m"
    assert [event.type for event in assistant] == [TEXT_DELTA, TOOL_STARTED]
    assert assistant[1].data == {"name": "Bash", "id": "t1", "input": {"command": "ls"}}
    assert tool_done.type == TOOL_COMPLETED and not tool_done.data["is_error"]
    assert finished.type == RUN_COMPLETED and finished.data["result"] == "done"
    assert failed.type == RUN_FAILED and failed.error_message == "error_max_turns"
    assert provider.normalize({"type": "stream_event"}) == []


def test_codex_command(tmp_path: Path) -> None:
    provider = CodexProvider(_script(tmp_path, "codex", "exit 0\n"))
    effective = _effective(
        tmp_path,
        provider=Provider.CODEX,
        model="gpt-5.3-codex",
        permission_mode="plan",
        codex_thread_opts={
            "reasoning_effort": "high",
            "additional_directories": ["/a"],
            "skip_git_repo_check": True,
            "hide_agent_reasoning": True,
        },
        codex_opts={"profile": "ci", "model": "ignored", "show_raw": False},
    )

    assert provider.build_command(effective, "prompt") == [
        str(provider.executable),
        "exec",
        "--json",
        "--cd",
        str(tmp_path),
        "--model",
        "gpt-5.3-codex",
        "--sandbox",
        "read-only",
        "-c",
        "approval_policy=on-request",
        "-c",
        "model_reasoning_effort=high",
        "--skip-git-repo-check",
        "--add-dir",
        "/a",
        "-c",
        "hide_agent_reasoning=true",
        "--profile",
        "ci",
        "-c",
        "show_raw=false",
        "-",
    ]


def test_codex_explicit_thread_options_beat_permission_mode(tmp_path: Path) -> None:
    provider = CodexProvider(_script(tmp_path, "codex", "exit 0\n"))
    effective = _effective(
        tmp_path,
        provider=Provider.CODEX,
        permission_mode="full_auto",
        codex_thread_opts={"sandbox": "danger_full_access", "ask_for_approval": "on_failure"},
    )

    command = provider.build_command(effective, "prompt")

    assert command[command.index("--sandbox") + 1] == "danger-full-access"
    assert "approval_policy=on-failure" in command


def test_codex_normalize(tmp_path: Path) -> None:
    provider = CodexProvider(_script(tmp_path, "codex", "exit 0\n"))

    [started] = provider.normalize(
        {
            "type": "thread.started",
            "thread_id": "t1",
            "model": "gpt-5.3-codex",
            "metadata": {"config": {"model_reasoning_effort": "high"}},
        }
    )
    [message] = provider.normalize(
        {"type": "item.completed", "item": {"type": "agent_message", "text": "All done"}}
    )
    [tool] = provider.normalize(
        {"type": "item.started", "item": {"id": "i1", "type": "command_execution", "command": "ls"}}
    )
    [tool_failed] = provider.normalize(
        {"type": "item.completed", "item": {"id": "i1", "type": "command_execution", "status": "failed"}}
    )
    [turn_failed] = provider.normalize({"type": "turn.failed", "error": {"message": "boom"}})
    [error] = provider.normalize({"type": "error", "message": "stream reset"})

    assert started.type == RUN_STARTED
    assert started.data == {
        "thread_id": "t1",
        "model": "gpt-5.3-codex",
        "reasoning_effort": "high",
        "confirmation_source": "codex_cli.run_started",
    }
    assert message.type == TEXT_DELTA and message.data["text"] == "All done"
    assert tool.type == TOOL_STARTED and tool.data["input"] == "ls"
    assert tool_failed.type == TOOL_COMPLETED and tool_failed.data["is_error"]
    assert turn_failed.type == RUN_FAILED and turn_failed.error_message == "boom"
    assert error.type == ERROR_OCCURRED and error.error_message == "stream reset"
    assert provider.normalize({"type": "item.started", "item": {"type": "agent_message"}}) == []


def test_amp_command(tmp_path: Path) -> None:
    provider = AmpProvider(_script(tmp_path, "amp", "exit 0\n"))
    effective = _effective(
        tmp_path, provider=Provider.AMP, permission_mode="full_auto", amp_opts={"mode": "smart"}
    )

    assert provider.build_command(effective, "prompt") == [
        str(provider.executable),
        "--execute",
        "--stream-json",
        "--dangerously-allow-all",
        "--mode",
        "smart",
    ]


def test_events_wrap_plain_text_and_synthesize_completion(tmp_path: Path) -> None:
    provider = ClaudeProvider(_script(tmp_path, "claude", "exit 0\n"))
    process = _stub_process(
        ["not json", "", '{"type":"assistant","message":{"content":[{"type":"text","text":"hi"}]}}']
    )

    events = list(provider._events(process))

    assert [event.type for event in events] == [TEXT_DELTA, TEXT_DELTA, RUN_COMPLETED]
    assert events[0].data == {"text": "not json\n"}
    assert events[2].data == {"exit_code": 0}


def test_events_report_transport_exit(tmp_path: Path) -> None:
    provider = ClaudeProvider(_script(tmp_path, "claude", "exit 0\n"))

    events = list(provider._events(_stub_process([], exit_code=2, stderr="boom\n")))

    assert [event.type for event in events] == [RUN_FAILED]
    assert events[0].data == {
        "kind": "transport_exit",
        "exit_code": 2,
        "stderr": "boom",
        "error_message": "claude exited with status 2",
    }


def test_events_nonzero_exit_after_terminal_event_is_not_reported(tmp_path: Path) -> None:
    provider = ClaudeProvider(_script(tmp_path, "claude", "exit 0\n"))
    lines = ['{"type":"result","subtype":"success","result":"done"}']

    events = list(provider._events(_stub_process(lines, exit_code=1)))

    assert [event.type for event in events] == [RUN_COMPLETED]


def test_events_report_timeout(tmp_path: Path) -> None:
    provider = CodexProvider(_script(tmp_path, "codex", "exit 0\n"))

    [event] = list(provider._events(_stub_process([], exit_code=-9, timed_out="idle timeout")))

    assert event.type == RUN_FAILED
    assert event.data["kind"] == "timeout"
    assert event.error_message == "codex idle timeout after 200 ms"


def test_start_stream_runs_cli_with_prompt_on_stdin(tmp_path: Path) -> None:
    script = _script(
        tmp_path,
        "claude",
        "read -r prompt\n"
        "printf '%s\\n' '{\"type\":\"system\",\"subtype\":\"init\",\"model\":\"m\"}'\n"
        "printf '{\"type\":\"assistant\",\"message\":{\"content\":[{\"type\":\"text\",\"text\":\"%s\"}]}}\\n' \"$prompt\"\n"
        "printf '%s\\n' '{\"type\":\"result\",\"subtype\":\"success\",\"result\":\"done\"}'\n",
    )
    handle = ClaudeProvider(script).start_stream(_effective(tmp_path), "hello\n")
    try:
        events = list(handle.events)
    finally:
        handle.close()

    assert [event.type for event in events] == [RUN_STARTED, TEXT_DELTA, RUN_COMPLETED]
    assert events[1].data["text"] == "hello"
    assert handle.meta["provider"] == "claude"
    assert handle.meta["command"][0] == str(script)


def test_start_stream_kills_process_on_timeout(tmp_path: Path) -> None:
    script = _script(tmp_path, "claude", "exec sleep 5\n")
    handle = ClaudeProvider(script).start_stream(_effective(tmp_path, timeout_ms=200), "ignored")
    try:
        events = list(handle.events)
    finally:
        handle.close()

    assert [event.type for event in events] == [RUN_FAILED]
    assert events[0].data["kind"] == "timeout"
    assert events[0].error_message == "claude timed out after 200 ms"


def test_process_start_failure(tmp_path: Path) -> None:
    with pytest.raises(ProviderStartError):
        CliProcess(["true"], cwd=tmp_path / "missing-dir").start()


def test_fake_provider_replays_scripts(tmp_path: Path) -> None:
    fake = FakeProvider([successful_run("first"), ProviderStartError("boom")])
    effective = _effective(tmp_path)

    handle = fake.start_stream(effective, "prompt text")
    events = list(handle.events)
    handle.close()

    assert events[1].data == {"text": "first"}
    assert fake.closed == 1
    with pytest.raises(ProviderStartError):
        fake.start_stream(effective, "again")
    assert [prompt for _, prompt in fake.calls] == ["prompt text", "again"]


def test_option_flags() -> None:
    assert option_flags({"a_b": 1, "on": True, "off": False, "none": None, "many": [1, 2]}) == [
        "--a-b",
        "1",
        "--on",
        "--many",
        "1",
        "--many",
        "2",
    ]


def test_sanitize_environment(monkeypatch) -> None:
    monkeypatch.setenv("PYTHONPATH", "/tmp")
    monkeypatch.setenv("VIRTUAL_ENV", "/venv")

    env = sanitize_environment({"EXTRA": "1"})

    assert "PYTHONPATH" not in env
    assert "VIRTUAL_ENV" not in env
    assert env["EXTRA"] == "1"
