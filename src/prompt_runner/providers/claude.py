"""Claude Code CLI adapter (``claude -p --output-format stream-json``)."""

from __future__ import annotations

from typing import Any, ClassVar

from ..project.aliases import Provider
from ..project.effective import EffectiveLLMConfig
from .base import (
    RUN_COMPLETED,
    RUN_FAILED,
    RUN_STARTED,
    TEXT_DELTA,
    TOOL_COMPLETED,
    TOOL_STARTED,
    CliProvider,
    StreamEvent,
)
from .utils import option_flags

MODEL_ALIASES = {
    "haiku": "claude-haiku-4-5-20251001",
    "sonnet": "claude-sonnet-4-5-20250929",
    "opus": "claude-opus-4-6",
}

PERMISSION_FLAGS = {
    "default": "default",
    "accept_edits": "acceptEdits",
    "plan": "plan",
    "full_auto": "bypassPermissions",
    "delegate": "default",
}


def expand_model(model: str | None) -> str | None:
    if model is None:
        return None
    return MODEL_ALIASES.get(model.strip().lower(), model)


class ClaudeProvider(CliProvider):
    name: ClassVar[Provider] = Provider.CLAUDE
    binary: ClassVar[str] = "claude"

    def build_command(self, effective: EffectiveLLMConfig, prompt: str) -> list[str]:
        args = [str(self.executable), "-p", "--output-format", "stream-json", "--verbose"]
        model = expand_model(effective.model)
        if model:
            args += ["--model", model]
        if effective.allowed_tools:
            args += ["--allowedTools", ",".join(effective.allowed_tools)]
        if effective.permission_mode:
            mode = PERMISSION_FLAGS.get(effective.permission_mode, effective.permission_mode)
            args += ["--permission-mode", mode]
        if effective.max_turns:
            args += ["--max-turns", str(effective.max_turns)]
        if effective.system_prompt:
            args += ["--append-system-prompt", effective.system_prompt]
        for directory in effective.claude_opts.get("add_dirs") or []:
            args += ["--add-dir", str(directory)]
        args += option_flags(effective.claude_opts, skip=("add_dirs",))
        return args

    def normalize(self, payload: dict[str, Any]) -> list[StreamEvent]:
        kind = payload.get("type")
        if kind == "system" and payload.get("subtype") == "init":
            return [
                StreamEvent(
                    RUN_STARTED,
                    {
                        "model": payload.get("model"),
                        "session_id": payload.get("session_id"),
                        "tools": payload.get("tools") or [],
                    },
                    raw=payload,
                )
            ]
        if kind == "assistant":
            return self._assistant_events(payload)
        if kind == "user":
            return self._tool_results(payload)
        if kind == "result":
            return [self._result_event(payload)]
        return []

    def _assistant_events(self, payload: dict[str, Any]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for block in _content(payload):
            if block.get("type") == "text" and block.get("text"):
                events.append(StreamEvent(TEXT_DELTA, {"text": block["text"]}, raw=payload))
            elif block.get("type") == "tool_use":
                events.append(
                    StreamEvent(
                        TOOL_STARTED,
                        {"name": block.get("name"), "id": block.get("id"), "input": block.get("input")},
                        raw=payload,
                    )
                )
        return events

    def _tool_results(self, payload: dict[str, Any]) -> list[StreamEvent]:
        return [
            StreamEvent(
                TOOL_COMPLETED,
                {
                    "id": block.get("tool_use_id"),
                    "result": block.get("content"),
                    "is_error": bool(block.get("is_error")),
                },
                raw=payload,
            )
            for block in _content(payload)
            if block.get("type") == "tool_result"
        ]

    def _result_event(self, payload: dict[str, Any]) -> StreamEvent:
        failed = bool(payload.get("is_error")) or str(payload.get("subtype", "success")).startswith("error")
        if failed:
            message = payload.get("result") or payload.get("error") or payload.get("subtype") or "unknown error"
            return StreamEvent(RUN_FAILED, {"kind": "provider", "error_message": str(message)}, raw=payload)
        return StreamEvent(
            RUN_COMPLETED,
            {
                "result": payload.get("result"),
                "duration_ms": payload.get("duration_ms"),
                "num_turns": payload.get("num_turns"),
                "total_cost_usd": payload.get("total_cost_usd"),
            },
            raw=payload,
        )


def _content(payload: dict[str, Any]) -> list[dict[str, Any]]:
    message = payload.get("message")
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [block for block in content if isinstance(block, dict)]


__all__ = ["ClaudeProvider", "MODEL_ALIASES", "expand_model"]
