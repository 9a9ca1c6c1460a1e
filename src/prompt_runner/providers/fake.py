"""In-memory provider used by tests and dry integrations."""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Iterable

from ..project.aliases import Provider
from ..project.effective import EffectiveLLMConfig
from .base import RUN_COMPLETED, RUN_STARTED, TEXT_DELTA, CliProvider, StreamEvent, StreamHandle


def successful_run(text: str = "done") -> list[StreamEvent]:
    return [
        StreamEvent(RUN_STARTED, {"model": "fake"}),
        StreamEvent(TEXT_DELTA, {"text": text}),
        StreamEvent(RUN_COMPLETED, {}),
    ]


class FakeProvider(CliProvider):
    """Test double that replays scripted event lists, one list per started stream.

    An ``Exception`` in the script is raised from :meth:`start_stream` instead.
    """

    name: ClassVar[Provider] = Provider.CLAUDE
    binary: ClassVar[str] = "fake"

    def __init__(
        self,
        scripts: Iterable[list[StreamEvent] | Exception] | None = None,
        *,
        on_start: Any = None,
    ) -> None:  # type: ignore[override]
        self._scripts = list(scripts or [])
        self._on_start = on_start
        self._calls: list[tuple[EffectiveLLMConfig, str]] = []
        self._closed = 0
        self._executable_path = Path("/tmp/fake-provider")

    def start_stream(self, effective: EffectiveLLMConfig, prompt: str) -> StreamHandle:  # type: ignore[override]
        self._calls.append((effective, prompt))
        script = self._scripts.pop(0) if self._scripts else successful_run()
        if isinstance(script, Exception):
            raise script
        if self._on_start is not None:
            self._on_start(effective, prompt)
        return StreamHandle(
            events=iter(list(script)),
            close=self._close,
            meta={"provider": str(effective.provider), "model": effective.model, "cwd": str(effective.cwd)},
        )

    def _close(self) -> None:
        self._closed += 1

    @property
    def calls(self) -> list[tuple[EffectiveLLMConfig, str]]:
        return self._calls

    @property
    def closed(self) -> int:
        return self._closed


__all__ = ["FakeProvider", "successful_run"]
