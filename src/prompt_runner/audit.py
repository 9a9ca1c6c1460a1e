"""Codex CLI confirmation audit.

The codex CLI reports the model (and, when available, the reasoning effort) it actually
runs with in its ``run_started`` event. The audit compares those against the configured
values, writes ``LLM_AUDIT*`` lines to the run log and, under the ``require`` policy,
turns a mismatch or missing confirmation into a failed outcome.
"""

from __future__ import annotations

from typing import Callable, TextIO

from .project.aliases import Provider
from .project.effective import EffectiveLLMConfig
from .providers.base import RUN_STARTED, StreamEvent
from .providers.codex import configured_reasoning
from .render import Sink, StreamOutcome

MATCHED = "matched"
MISMATCH = "mismatch"
MISSING = "missing"


def _na(value: str | None) -> str:
    return value if value else "n/a"


def _differs(configured: str | None, confirmed: str | None) -> bool:
    return bool(configured) and bool(confirmed) and configured != confirmed


class CliConfirmationAudit(Sink):
    def __init__(
        self,
        effective: EffectiveLLMConfig,
        log: TextIO,
        *,
        echo: Callable[[str], None] = print,
    ) -> None:
        self.enabled = effective.provider == Provider.CODEX
        self.policy = effective.cli_confirmation
        self.configured_model = effective.model
        self.configured_reasoning = configured_reasoning(effective)
        self.confirmed_model: str | None = None
        self.confirmed_reasoning: str | None = None
        self.source: str | None = None
        self._log = log
        self._echo = echo

    def start(self) -> None:
        if not self.enabled:
            return
        self._write(
            f"LLM_AUDIT configured_model={_na(self.configured_model)} "
            f"configured_reasoning={_na(self.configured_reasoning)} cli_confirmation={self.policy}"
        )

    def handle(self, event: StreamEvent) -> None:
        if not self.enabled or event.type != RUN_STARTED:
            return
        model = event.data.get("confirmed_model") or event.data.get("model")
        if not model:
            return
        reasoning = event.data.get("reasoning_effort") or event.data.get("confirmed_reasoning_effort")
        self.confirmed_model = str(model)
        self.confirmed_reasoning = None if reasoning is None else str(reasoning)
        self.source = event.data.get("confirmation_source") or "codex_cli.run_started"
        if self.confirmed_reasoning:
            self._echo(
                f"\nLLM confirmed (codex_cli): model={self.confirmed_model} reasoning={self.confirmed_reasoning}"
            )
        self._write(
            f"LLM_AUDIT_CONFIRMED source={self.source} confirmed_model={self.confirmed_model} "
            f"confirmed_reasoning={_na(self.confirmed_reasoning)}"
        )

    @property
    def status(self) -> str:
        if _differs(self.configured_model, self.confirmed_model) or _differs(
            self.configured_reasoning, self.confirmed_reasoning
        ):
            return MISMATCH
        if self.configured_reasoning is not None and not self.confirmed_reasoning:
            return MISSING
        return MATCHED

    def finalize(self, outcome: StreamOutcome) -> StreamOutcome:
        """Apply the confirmation policy to ``outcome`` and write the result line."""

        if not self.enabled:
            return outcome

        status = self.status
        details = {
            "configured_model": self.configured_model,
            "configured_reasoning": self.configured_reasoning,
            "confirmed_model": self.confirmed_model,
            "confirmed_reasoning": self.confirmed_reasoning,
            "confirmation_source": self.source,
        }
        summary = (
            f"configured_model={_na(self.configured_model)} "
            f"configured_reasoning={_na(self.configured_reasoning)}"
        )

        if status != MATCHED and self.policy == "require":
            outcome = StreamOutcome.failure(f"cli_confirmation_{status}", details)
        elif status == MISMATCH and self.policy == "warn":
            warning = (
                f"WARNING: codex_cli confirmation mismatch {summary} "
                f"confirmed_model={_na(self.confirmed_model)} "
                f"confirmed_reasoning={_na(self.confirmed_reasoning)}"
            )
            self._echo(warning)
            self._write(f"LLM_AUDIT_MISMATCH {warning}")
        elif status == MISSING and self.policy == "warn":
            warning = f"WARNING: codex_cli confirmation missing reasoning_effort {summary}"
            self._echo(warning)
            self._write(f"LLM_AUDIT_WARNING {warning}")

        self._write(
            f"LLM_AUDIT_RESULT status={status} {summary} "
            f"confirmed_model={_na(self.confirmed_model)} "
            f"confirmed_reasoning={_na(self.confirmed_reasoning)} "
            f"source={_na(self.source)} cli_confirmation={self.policy}"
        )
        return outcome

    def _write(self, line: str) -> None:
        self._log.write(line + "\n")
        self._log.flush()


__all__ = ["CliConfirmationAudit", "MATCHED", "MISMATCH", "MISSING"]
