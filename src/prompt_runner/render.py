"""Event rendering: fan a provider stream out to sinks and classify the outcome."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Sequence, TextIO

from .providers.base import (
    RUN_STARTED,
    TEXT_DELTA,
    TOOL_COMPLETED,
    TOOL_STARTED,
    StreamEvent,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class StreamOutcome:
    """Terminal result of one execution stream."""

    ok: bool
    error: str | None = None
    provider_error: dict[str, Any] | None = None

    @classmethod
    def success(cls) -> "StreamOutcome":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: str, provider_error: dict[str, Any] | None = None) -> "StreamOutcome":
        return cls(ok=False, error=error, provider_error=provider_error)


class Sink:
    """Observer of stream events; sinks never influence the outcome."""

    def handle(self, event: StreamEvent) -> None:
        pass

    def finish(self) -> None:
        pass


def _compact_input(value: Any, limit: int = 120) -> str:
    if value is None:
        return ""
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    text = " ".join(text.split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


class _TextSink(Sink):
    def __init__(self, stream: TextIO, *, mode: str = "compact") -> None:
        self._stream = stream
        self._mode = mode

    def handle(self, event: StreamEvent) -> None:
        line = self.format(event)
        if line:
            self._stream.write(line)
            self._stream.flush()

    def format(self, event: StreamEvent) -> str | None:
        data = event.data
        if event.type == TEXT_DELTA:
            return str(data.get("text") or "")
        if event.type == TOOL_STARTED:
            line = f"\n> {data.get('name') or 'tool'}"
            if self._mode == "verbose":
                detail = _compact_input(data.get("input"), limit=500)
            else:
                detail = _compact_input(data.get("input"))
            return f"{line} {detail}\n" if detail else line + "\n"
        if event.type == TOOL_COMPLETED:
            if data.get("is_error"):
                return f"  x {data.get('name') or data.get('id') or 'tool'} failed\n"
            if self._mode == "verbose":
                return f"  ok {_compact_input(data.get('result'), limit=500)}\n"
            return None
        if event.is_failure:
            return f"\nERROR: {event.error_message}\n"
        if event.type == RUN_STARTED and self._mode == "verbose":
            return f"[run started] {_compact_input(data)}\n"
        return None


class ConsoleSink(_TextSink):
    def __init__(self, *, mode: str = "compact", stream: TextIO | None = None) -> None:
        super().__init__(stream or sys.stdout, mode=mode)

    def finish(self) -> None:
        self._stream.write("\n")
        self._stream.flush()


class LogFileSink(_TextSink):
    """Writes the rendered transcript to an already-open run log."""


class JsonlSink(Sink):
    """One JSON object per event; ``full`` mode keeps the raw provider payload."""

    def __init__(self, path: Path, *, mode: str = "compact") -> None:
        self._path = Path(path)
        self._full = mode == "full"
        self._handle: TextIO | None = None

    def handle(self, event: StreamEvent) -> None:
        if self._handle is None:
            self._handle = self._path.open("w", encoding="utf-8")
        self._handle.write(json.dumps(event.to_dict(full=self._full), default=str) + "\n")

    def finish(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None


def render_stream(events: Iterable[StreamEvent], sinks: Sequence[Sink]) -> StreamOutcome:
    """Drive ``events`` once through ``sinks`` and return the terminal outcome.

    The last failure event decides the error message; an exception raised while
    iterating is reported as ``stream_failed``.
    """

    outcome = StreamOutcome.success()
    try:
        for event in events:
            for sink in sinks:
                sink.handle(event)
            if event.is_failure:
                outcome = StreamOutcome.failure(event.error_message or "unknown error", dict(event.data))
    except Exception as exc:
        logger.exception("Event stream raised")
        outcome = StreamOutcome.failure(f"stream_failed: {exc}")
    finally:
        for sink in sinks:
            sink.finish()
    return outcome


__all__ = [
    "ConsoleSink",
    "JsonlSink",
    "LogFileSink",
    "Sink",
    "StreamOutcome",
    "render_stream",
]
