"""Shared execution plumbing for the provider CLIs.

Each provider turns an :class:`~prompt_runner.project.effective.EffectiveLLMConfig` and
a prompt into a command line, runs it through :class:`~.process.CliProcess` and
translates the JSON lines it prints into :class:`StreamEvent` objects.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, ClassVar, Iterator

from ..errors import ProviderNotFoundError
from ..project.aliases import Provider
from ..project.effective import EffectiveLLMConfig
from .process import CliProcess
from .utils import truncate

logger = logging.getLogger(__name__)

RUN_STARTED = "run_started"
TEXT_DELTA = "text_delta"
TOOL_STARTED = "tool_started"
TOOL_COMPLETED = "tool_completed"
RUN_COMPLETED = "run_completed"
RUN_FAILED = "run_failed"
ERROR_OCCURRED = "error_occurred"

TERMINAL_EVENTS = frozenset({RUN_COMPLETED, RUN_FAILED})
FAILURE_EVENTS = frozenset({RUN_FAILED, ERROR_OCCURRED})


@dataclass(slots=True)
class StreamEvent:
    """A provider-neutral lifecycle, content or error event."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    raw: Any = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_failure(self) -> bool:
        return self.type in FAILURE_EVENTS

    @property
    def error_message(self) -> str | None:
        if not self.is_failure:
            return None
        return self.data.get("error_message") or "unknown error"

    def to_dict(self, *, full: bool = False) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }
        if full and self.raw is not None:
            payload["raw"] = self.raw
        return payload


@dataclass(slots=True)
class StreamHandle:
    """Lazily consumed event stream plus the callable that releases its process."""

    events: Iterator[StreamEvent]
    close: Callable[[], None]
    meta: dict[str, Any] = field(default_factory=dict)


class CliProvider:
    """Base class for the provider command-line adapters."""

    name: ClassVar[Provider]
    binary: ClassVar[str]

    def __init__(self, executable: Path | str | None = None) -> None:
        self._executable_path = self._resolve_executable(executable)

    @classmethod
    def _resolve_executable(cls, explicit: Path | str | None) -> Path:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            found = shutil.which(str(explicit))
            if found is not None:
                return Path(found)
            raise ProviderNotFoundError(f"{cls.name} executable not found at {candidate}")

        binary = shutil.which(cls.binary)
        if binary is None:
            raise ProviderNotFoundError(f"{cls.name} CLI executable '{cls.binary}' not found on PATH")
        return Path(binary)

    @property
    def executable(self) -> Path:
        return self._executable_path

    def build_command(self, effective: EffectiveLLMConfig, prompt: str) -> list[str]:
        raise NotImplementedError

    def normalize(self, payload: dict[str, Any]) -> list[StreamEvent]:
        raise NotImplementedError

    def meta(self, effective: EffectiveLLMConfig) -> dict[str, Any]:
        return {"provider": str(self.name), "model": effective.model, "cwd": str(effective.cwd)}

    def start_stream(self, effective: EffectiveLLMConfig, prompt: str) -> StreamHandle:
        """Start the CLI and return its event stream; raises ``ProviderStartError``."""

        command = self.build_command(effective, prompt)
        process = CliProcess(
            command,
            cwd=effective.cwd,
            stdin_text=prompt,
            timeout_ms=effective.timeout_ms,
            idle_timeout_ms=effective.idle_timeout_ms,
        )
        process.start()
        logger.info(
            "Started %s for prompt %s",
            self.name,
            effective.num,
            extra={"provider": str(self.name), "prompt": effective.num, "cwd": str(effective.cwd)},
        )
        meta = self.meta(effective)
        meta["command"] = command
        return StreamHandle(events=self._events(process), close=process.close, meta=meta)

    def _events(self, process: CliProcess) -> Iterator[StreamEvent]:
        terminal_seen = False
        for line in process.lines():
            if not line.strip():
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError:
                yield StreamEvent(TEXT_DELTA, {"text": line + "\n"}, raw=line)
                continue
            if not isinstance(payload, dict):
                continue
            for event in self.normalize(payload):
                terminal_seen = terminal_seen or event.type in TERMINAL_EVENTS
                yield event

        exit_code = process.wait()
        if process.timed_out is not None:
            yield StreamEvent(
                RUN_FAILED,
                {
                    "kind": "timeout",
                    "error_message": f"{self.name} {process.timed_out} after {process.timeout_label}",
                },
            )
        elif exit_code != 0 and not terminal_seen:
            yield StreamEvent(
                RUN_FAILED,
                {
                    "kind": "transport_exit",
                    "exit_code": exit_code,
                    "stderr": truncate(process.stderr),
                    "error_message": f"{self.name} exited with status {exit_code}",
                },
            )
        elif not terminal_seen:
            yield StreamEvent(RUN_COMPLETED, {"exit_code": exit_code})


__all__ = [
    "CliProvider",
    "ERROR_OCCURRED",
    "FAILURE_EVENTS",
    "RUN_COMPLETED",
    "RUN_FAILED",
    "RUN_STARTED",
    "StreamEvent",
    "StreamHandle",
    "TERMINAL_EVENTS",
    "TEXT_DELTA",
    "TOOL_COMPLETED",
    "TOOL_STARTED",
]
