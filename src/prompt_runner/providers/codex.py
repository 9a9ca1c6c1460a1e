"""Codex CLI adapter (``codex exec --json``)."""

from __future__ import annotations

import json
from typing import Any, ClassVar

from ..project.aliases import Provider
from ..project.effective import EffectiveLLMConfig
from .base import (
    ERROR_OCCURRED,
    RUN_COMPLETED,
    RUN_FAILED,
    RUN_STARTED,
    TEXT_DELTA,
    TOOL_COMPLETED,
    TOOL_STARTED,
    CliProvider,
    StreamEvent,
)

APPROVAL_BY_PERMISSION = {
    "accept_edits": "never",
    "full_auto": "never",
    "plan": "on-request",
}
SANDBOX_BY_PERMISSION = {
    "accept_edits": "workspace-write",
    "full_auto": "workspace-write",
    "plan": "read-only",
}
TOOL_ITEMS = {"command_execution", "file_change", "mcp_tool_call", "web_search"}
_THREAD_KEYS = (
    "reasoning_effort",
    "sandbox",
    "ask_for_approval",
    "approval_policy",
    "additional_directories",
    "working_directory",
    "skip_git_repo_check",
)


def configured_reasoning(effective: EffectiveLLMConfig) -> str | None:
    value = effective.codex_thread_opts.get("reasoning_effort")
    return None if value is None else str(value)


def approval_policy(effective: EffectiveLLMConfig) -> str | None:
    opts = effective.codex_thread_opts
    value = opts.get("ask_for_approval") or opts.get("approval_policy")
    if value is not None:
        return str(value).replace("_", "-")
    return APPROVAL_BY_PERMISSION.get(effective.permission_mode or "")


def sandbox_mode(effective: EffectiveLLMConfig) -> str | None:
    value = effective.codex_thread_opts.get("sandbox")
    if value is not None:
        return str(value).replace("_", "-")
    return SANDBOX_BY_PERMISSION.get(effective.permission_mode or "")


def _config_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


class CodexProvider(CliProvider):
    name: ClassVar[Provider] = Provider.CODEX
    binary: ClassVar[str] = "codex"

    def build_command(self, effective: EffectiveLLMConfig, prompt: str) -> list[str]:
        args = [str(self.executable), "exec", "--json", "--cd", str(effective.cwd)]
        if effective.model:
            args += ["--model", effective.model]
        sandbox = sandbox_mode(effective)
        if sandbox:
            args += ["--sandbox", sandbox]
        approval = approval_policy(effective)
        if approval:
            args += ["-c", f"approval_policy={approval}"]
        reasoning = configured_reasoning(effective)
        if reasoning:
            args += ["-c", f"model_reasoning_effort={reasoning}"]
        if effective.codex_thread_opts.get("skip_git_repo_check"):
            args.append("--skip-git-repo-check")
        for directory in effective.codex_thread_opts.get("additional_directories") or []:
            args += ["--add-dir", str(directory)]
        for key, value in effective.codex_thread_opts.items():
            if key not in _THREAD_KEYS and value is not None:
                args += ["-c", f"{key}={_config_value(value)}"]
        for key, value in effective.codex_opts.items():
            if key == "profile" and value:
                args += ["--profile", str(value)]
            elif key != "model" and value is not None:
                args += ["-c", f"{key}={_config_value(value)}"]
        args.append("-")
        return args

    def normalize(self, payload: dict[str, Any]) -> list[StreamEvent]:
        kind = payload.get("type")
        if kind == "thread.started":
            return [StreamEvent(RUN_STARTED, _confirmation(payload), raw=payload)]
        if kind == "turn.completed":
            return [StreamEvent(RUN_COMPLETED, {"usage": payload.get("usage")}, raw=payload)]
        if kind == "turn.failed":
            return [
                StreamEvent(
                    RUN_FAILED,
                    {"kind": "provider", "error_message": _error_message(payload.get("error"))},
                    raw=payload,
                )
            ]
        if kind == "error":
            return [StreamEvent(ERROR_OCCURRED, {"error_message": _error_message(payload)}, raw=payload)]
        if kind in ("item.started", "item.completed"):
            return self._item_events(kind, payload)
        return []

    def _item_events(self, kind: str, payload: dict[str, Any]) -> list[StreamEvent]:
        item = payload.get("item")
        if not isinstance(item, dict):
            return []
        item_type = item.get("type") or item.get("item_type")
        if item_type == "agent_message":
            text = item.get("text") or ""
            if kind == "item.completed" and text.strip():
                return [StreamEvent(TEXT_DELTA, {"text": text}, raw=payload)]
            return []
        if item_type not in TOOL_ITEMS:
            return []
        if kind == "item.started":
            return [
                StreamEvent(
                    TOOL_STARTED,
                    {"name": item_type, "id": item.get("id"), "input": _tool_input(item)},
                    raw=payload,
                )
            ]
        return [
            StreamEvent(
                TOOL_COMPLETED,
                {
                    "name": item_type,
                    "id": item.get("id"),
                    "result": item.get("aggregated_output") or item.get("status"),
                    "is_error": item.get("status") == "failed",
                },
                raw=payload,
            )
        ]


def _confirmation(payload: dict[str, Any]) -> dict[str, Any]:
    """Pull the CLI-confirmed model and reasoning effort out of a thread start event."""

    metadata = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else {}
    config = metadata.get("config") if isinstance(metadata.get("config"), dict) else {}
    reasoning = (
        payload.get("reasoning_effort")
        or metadata.get("reasoning_effort")
        or metadata.get("reasoningEffort")
        or config.get("model_reasoning_effort")
        or config.get("reasoning_effort")
    )
    return {
        "thread_id": payload.get("thread_id"),
        "model": payload.get("model") or metadata.get("model"),
        "reasoning_effort": None if reasoning is None else str(reasoning),
        "confirmation_source": "codex_cli.run_started",
    }


def _tool_input(item: dict[str, Any]) -> Any:
    for key in ("command", "changes", "arguments", "query"):
        if item.get(key) is not None:
            return item[key]
    return None


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error.get("error") or "unknown error")
    if error:
        return str(error)
    return "unknown error"


__all__ = ["CodexProvider", "approval_policy", "configured_reasoning", "sandbox_mode"]
