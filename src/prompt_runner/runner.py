"""Orchestration: select prompts, execute them, commit the results and record progress.

Prompts run strictly one at a time. The first prompt that fails halts the batch; within
one prompt's commit step every target repo is attempted even if an earlier one failed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, TextIO

from . import targets
from .audit import CliConfirmationAudit
from .commits import CommitCoordinator, resolve_commit_targets
from .errors import (
    ExecutionFailedError,
    NoTargetError,
    PromptFileNotFoundError,
    PromptIOError,
    PromptNotFoundError,
    PromptRunnerError,
)
from .git_ops import GitClient
from .project.aliases import Provider
from .project.effective import EffectiveLLMConfig, default_target, llm_for_prompt
from .project.models import ProjectConfig
from .providers import get_provider
from .providers.base import CliProvider
from .providers.codex import configured_reasoning
from .render import ConsoleSink, JsonlSink, LogFileSink, Sink, render_stream
from .storage.commit_messages import CommitMessageStore
from .storage.models import NO_COMMIT, CommitInfo, ProgressRecord, Prompt
from .storage.progress import ProgressLedger, commit_repo_count
from .storage.prompts import PromptCatalog
from .validator import ValidationReport, validate_all

logger = logging.getLogger(__name__)

PROMPT_PREVIEW_LINES = 10
COMMIT_PREVIEW_LINES = 10
RULE = "=" * 60

ProviderFactory = Callable[[Provider], CliProvider]


def format_commit_suffix(commit: str | None) -> str:
    if not commit:
        return ""
    if commit in ("no_commit", "no_changes"):
        return f" ({commit})"
    count = commit_repo_count(commit)
    if count:
        return f" ({count} repos)"
    return f" (sha {commit[:8]})"


def llm_summary(effective: EffectiveLLMConfig) -> str:
    if effective.provider == Provider.CODEX:
        reasoning = configured_reasoning(effective)
        if reasoning:
            return f"codex model={effective.model} reasoning={reasoning} (configured)"
    return f"{effective.provider} model={effective.model}"


class Runner:
    def __init__(
        self,
        config: ProjectConfig,
        *,
        provider_factory: ProviderFactory | None = None,
        git: GitClient | None = None,
        echo: Callable[[str], None] = print,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        self.catalog = PromptCatalog(config.prompts_file)
        self.messages = CommitMessageStore(config.commit_messages_file)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.ledger = ProgressLedger(config.progress_file, clock=self._clock)
        self.coordinator = CommitCoordinator(self.messages, git, echo=echo)
        self._provider_factory = provider_factory or get_provider
        self._echo = echo

    # -- target selection -------------------------------------------------

    def build_targets(
        self,
        *,
        num: str | None = None,
        phase: int | None = None,
        resume: bool = False,
        run_all: bool = False,
    ) -> list[str]:
        if num:
            return [num]
        if phase is not None:
            return self.catalog.phase_nums(phase)
        if resume:
            return self.catalog.nums_after(self.ledger.last_completed())
        if run_all:
            return self.catalog.nums()
        raise NoTargetError()

    # -- read-only commands -----------------------------------------------

    def validate(self) -> ValidationReport:
        return validate_all(self.config, echo=self._echo)

    def list_prompts(self) -> tuple[int, int]:
        """Print prompts grouped by phase with their ledger status; returns (completed, total)."""

        echo = self._echo
        echo("")
        echo("Implementation Prompts")
        echo(f"Config: {self.config.config_dir}")
        echo(f"Project: {self.config.project_dir}")
        echo("")

        statuses = self.ledger.statuses()
        completed = total = 0
        last_phase: int | None = None
        for prompt in self.catalog.list():
            if prompt.phase != last_phase:
                if last_phase is not None:
                    echo("")
                echo(f"Phase {prompt.phase}: {self.config.phase_names.get(prompt.phase, 'Unknown')}")
                last_phase = prompt.phase

            record = self.ledger.status(prompt.num, statuses)
            label = {"completed": "[x]", "failed": "[!]"}.get(record.status, "[ ]")
            repos = f" [{', '.join(prompt.target_repos)}]" if prompt.target_repos else ""
            missing = "" if self.config.resolve_path(prompt.file).exists() else " (missing)"
            echo(
                f"  {label} {prompt.num} - {prompt.name} ({prompt.story_points} SP)"
                f"{repos}{format_commit_suffix(record.commit)}{missing}"
            )
            if record.status == "completed":
                completed += 1
            total += 1

        echo("")
        echo("Progress:")
        echo(f"{completed}/{total} completed")
        echo("")
        return completed, total

    def dry_run(self, nums: Iterable[str], *, no_commit: bool = False) -> None:
        for num in nums:
            prompt = self.catalog.get(num)
            if prompt is None:
                self._echo(f"ERROR: Prompt {num} not found")
                continue
            effective = llm_for_prompt(self.config, prompt)
            self._echo("")
            self._echo(f"[DRY RUN] Prompt {num}: {prompt.name}")
            self._echo("")
            self._print_prompt_file(self.config.resolve_path(prompt.file))
            self._print_execution(prompt, effective)
            self._print_commit_plan(prompt, no_commit)
            self._echo("")

    # -- execution ----------------------------------------------------------

    def run(self, nums: Iterable[str], *, no_commit: bool = False) -> list[ProgressRecord]:
        """Run ``nums`` in order, stopping at the first failure (which is re-raised)."""

        records: list[ProgressRecord] = []
        for num in nums:
            records.append(self.run_prompt(num, no_commit=no_commit))
        return records

    def run_prompt(self, num: str, *, no_commit: bool = False) -> ProgressRecord:
        prompt = self.catalog.get(num)
        if prompt is None:
            raise PromptNotFoundError(num)
        prompt_path = self.config.resolve_path(prompt.file)
        if not prompt_path.exists():
            raise PromptFileNotFoundError(num, prompt_path)

        try:
            commit_info = self._attempt(prompt, prompt_path, no_commit=no_commit)
        except PromptRunnerError:
            self._fail(num)
            raise
        except OSError as exc:
            self._fail(num)
            raise PromptIOError(num, exc) from exc

        record = self.ledger.mark_completed(prompt.num, commit_info)
        self._echo(f"Prompt {prompt.num} completed")
        return record

    def _attempt(self, prompt: Prompt, prompt_path: Path, *, no_commit: bool) -> CommitInfo:
        """Execute one prompt and commit its changes; return the ledger commit info."""

        effective = llm_for_prompt(self.config, prompt)
        provider = self._provider_factory(effective.provider)

        self._print_run_header(prompt, prompt_path, effective)
        log_file, events_file = self._log_paths(prompt.num)
        self._echo(f"Log: {log_file}")
        if events_file is not None:
            self._echo(f"Events: {events_file}")
        self._echo("")

        prompt_text = prompt_path.read_text(encoding="utf-8")
        self._print_preview(prompt_text)
        self._echo(f"Starting {effective.provider} session...")
        self._echo("")

        with log_file.open("w", encoding="utf-8") as log:
            handle = provider.start_stream(effective, prompt_text)
            try:
                self._write_session_header(log, effective, handle.meta, prompt_path)
                audit = CliConfirmationAudit(effective, log, echo=self._echo)
                audit.start()
                sinks: list[Sink] = [
                    ConsoleSink(mode=self.config.log_mode),
                    LogFileSink(log, mode=self.config.log_mode),
                    audit,
                ]
                if events_file is not None:
                    sinks.append(JsonlSink(events_file, mode=self.config.events_mode))
                outcome = audit.finalize(render_stream(handle.events, sinks))
            finally:
                handle.close()

        self._echo("")
        if not outcome.ok:
            raise ExecutionFailedError(outcome.error or "unknown error", outcome.provider_error)

        self._echo("LLM completed successfully")
        if no_commit:
            return NO_COMMIT
        repos = resolve_commit_targets(self.config, prompt)
        return self.coordinator.commit(prompt.num, repos)

    def _fail(self, num: str) -> None:
        self.ledger.mark_failed(num)

    def _log_paths(self, num: str) -> tuple[Path, Path | None]:
        self.config.log_dir.mkdir(parents=True, exist_ok=True)
        stamp = self._clock().strftime("%Y%m%d-%H%M%S")
        log_file = self.config.log_dir / f"prompt-{num}-{stamp}.log"
        if self.config.events_mode == "off":
            return log_file, None
        return log_file, self.config.log_dir / f"prompt-{num}-{stamp}.events.jsonl"

    # -- output helpers ---------------------------------------------------

    def _print_run_header(self, prompt: Prompt, prompt_path: Path, effective: EffectiveLLMConfig) -> None:
        echo = self._echo
        echo("")
        echo(RULE)
        echo(f"Prompt {prompt.num}: {prompt.name}")
        echo(RULE)
        echo("")
        echo(f"Prompt: {prompt_path}")
        echo(f"Project: {effective.cwd}")
        echo(f"LLM: {llm_summary(effective)}")
        echo("")

    def _print_preview(self, prompt_text: str) -> None:
        self._echo(f"Prompt preview (first {PROMPT_PREVIEW_LINES} lines):")
        for line in prompt_text.split("\n")[:PROMPT_PREVIEW_LINES]:
            self._echo(f"  {line}")
        self._echo("  ...")
        self._echo("")

    def _write_session_header(
        self,
        log: TextIO,
        effective: EffectiveLLMConfig,
        meta: dict,
        prompt_path: Path,
    ) -> None:
        if self.config.log_meta == "full":
            header = f"Session: {meta!r}\n"
        else:
            tools = ",".join(effective.allowed_tools) if effective.allowed_tools else "n/a"
            header = (
                f"Session: provider={meta.get('provider', effective.provider)} "
                f"model={meta.get('model', effective.model)} tools=[{tools}] "
                f"cwd={meta.get('cwd', effective.cwd)}\n"
            )
        log.write(f"{header}Prompt: {prompt_path}\nProject: {effective.cwd}\n\n")
        log.flush()

    def _print_prompt_file(self, prompt_path: Path) -> None:
        self._echo("1. Prompt file:")
        if prompt_path.exists():
            line_count = len(prompt_path.read_text(encoding="utf-8").split("\n"))
            self._echo(f"   {prompt_path}")
            self._echo(f"   {line_count} lines, {prompt_path.stat().st_size} bytes")
        else:
            self._echo(f"   NOT FOUND: {prompt_path}")
        self._echo("")

    def _print_execution(self, prompt: Prompt, effective: EffectiveLLMConfig) -> None:
        echo = self._echo
        echo("2. Execution:")
        echo(f"   LLM provider: {effective.provider}")
        echo(f"   - model: {effective.model}")
        if effective.provider == Provider.CODEX and configured_reasoning(effective):
            echo(f"   - reasoning_effort: {configured_reasoning(effective)}")
        echo(f"   - cwd: {effective.cwd}")
        if effective.allowed_tools is not None:
            echo(f"   - allowed_tools: {', '.join(effective.allowed_tools)}")
        if effective.permission_mode is not None:
            echo(f"   - permission_mode: {effective.permission_mode}")
        echo(f"   - timeout_ms: {effective.timeout_ms}")
        if effective.adapter_opts:
            echo(f"   - adapter_opts: {effective.adapter_opts!r}")
        if effective.provider == Provider.CODEX and effective.codex_thread_opts:
            echo(f"   - codex_thread_opts: {effective.codex_thread_opts!r}")
        if effective.additional_directories:
            echo("   - additional_directories: " + ", ".join(str(path) for path in effective.additional_directories))

        if prompt.target_repos is None:
            echo(f"   - target_repo: {effective.cwd}")
        else:
            echo(f"   - target_repos: {', '.join(prompt.target_repos)}")
            names, errors = targets.expand(prompt.target_repos, self.config.repo_groups)
            for error in errors:
                echo(f"     - ERR {targets.format_error(error)}")
            for name in names or []:
                repo = self.config.repo_named(name)
                echo(f"     - {name}: {repo.path if repo else '(not configured)'}")
        echo("")

    def _print_commit_plan(self, prompt: Prompt, no_commit: bool) -> None:
        self._echo("3. Git commit:")
        if no_commit:
            self._echo("   SKIPPED (--no-commit)")
        elif prompt.target_repos is None:
            message = self.messages.get_message(prompt.num, default_target(self.config)[0])
            if message is None:
                self._echo(f"   COMMIT MESSAGE NOT FOUND for {prompt.num}")
            else:
                self._print_message_preview(message)
        else:
            names, errors = targets.expand(prompt.target_repos, self.config.repo_groups)
            for error in errors:
                self._echo(f"   ERR {targets.format_error(error)}")
            for name in names or []:
                self._echo(f"   {name}:")
                message = self.messages.get_message(prompt.num, name)
                if message is None:
                    self._echo(f"   COMMIT MESSAGE NOT FOUND for {prompt.num}:{name}")
                else:
                    self._print_message_preview(message)
                self._echo("")
        self._echo("")

    def _print_message_preview(self, message: str) -> None:
        lines = message.split("\n")
        for line in lines[:COMMIT_PREVIEW_LINES]:
            self._echo(f"   {line}")
        if len(lines) > COMMIT_PREVIEW_LINES:
            self._echo(f"   ... ({len(lines) - COMMIT_PREVIEW_LINES} more lines)")


__all__ = ["Runner", "format_commit_suffix", "llm_summary"]
