"""Configuration cross-checks run by ``--validate``.

Nothing here raises on a bad reference: every finding is printed and collected in the
returned :class:`ValidationReport`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from . import targets
from .project.effective import default_target
from .project.models import ProjectConfig
from .storage.commit_messages import CommitMessageStore
from .storage.models import Prompt
from .storage.prompts import PromptCatalog

RULE = "=" * 60


@dataclass(slots=True, frozen=True)
class ValidationIssue:
    num: str
    repo: str | None
    message: str

    def describe(self) -> str:
        where = f"Prompt {self.num}" if self.repo is None else f"Prompt {self.num}:{self.repo}"
        return f"{where}: {self.message}"


@dataclass(slots=True)
class ValidationReport:
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def add(self, num: str, repo: str | None, message: str) -> None:
        self.issues.append(ValidationIssue(num, repo, message))


class Validator:
    def __init__(self, config: ProjectConfig, *, echo: Callable[[str], None] = print) -> None:
        self.config = config
        self.catalog = PromptCatalog(config.prompts_file)
        self.messages = CommitMessageStore(config.commit_messages_file)
        self._echo = echo

    def run(self) -> ValidationReport:
        prompts = self.catalog.list()
        report = ValidationReport()
        self._header(prompts)
        self._check_commit_messages(prompts, report)
        self._check_prompt_files(prompts, report)
        self._check_repo_refs(prompts, report)
        self._summary(report)
        return report

    def _header(self, prompts: list[Prompt]) -> None:
        echo = self._echo
        echo("")
        echo("[VALIDATION] Comprehensive Configuration Check")
        echo(RULE)
        echo("")
        echo(f"1. Prompts file ({self.config.prompts_file}):")
        echo(f"   {len(prompts)} prompts defined")
        echo("")
        echo(f"2. Commit messages file ({self.config.commit_messages_file}):")
        echo(f"   {len(self.messages.all_markers())} commit markers defined")
        echo("")
        echo("3. Target repos configuration:")
        repos = self.config.target_repos
        if not repos:
            echo(f"   Single-repo mode (project_dir: {self.config.project_dir})")
            return
        echo(f"   Multi-repo mode ({len(repos)} repos):")
        for repo in repos:
            status = "OK" if repo.path.is_dir() else "ERR"
            default = " (default)" if repo.is_default else ""
            echo(f"   {status} {repo.name}: {repo.path}{default}")

    def _check_commit_messages(self, prompts: list[Prompt], report: ValidationReport) -> None:
        self._echo("")
        self._echo("4. Commit message correlation check:")
        for prompt in prompts:
            if prompt.target_repos is None:
                repo_name, _ = default_target(self.config)
                if self.messages.get_message(prompt.num, repo_name):
                    self._echo(f"   OK Prompt {prompt.num}: commit message found")
                else:
                    self._echo(f"   ERR Prompt {prompt.num}: missing commit message")
                    report.add(prompt.num, None, "missing commit message")
                continue

            names, _ = targets.expand(prompt.target_repos, self.config.repo_groups)
            for repo_name in names or []:
                if self.messages.get_message(prompt.num, repo_name):
                    self._echo(f"   OK Prompt {prompt.num}:{repo_name}: commit message found")
                else:
                    self._echo(f"   ERR Prompt {prompt.num}:{repo_name}: missing commit message")
                    report.add(prompt.num, repo_name, "missing commit message")

    def _check_prompt_files(self, prompts: list[Prompt], report: ValidationReport) -> None:
        self._echo("")
        self._echo("5. Prompt file existence check:")
        for prompt in prompts:
            if self.config.resolve_path(prompt.file).exists():
                self._echo(f"   OK {prompt.num}: {prompt.file}")
            else:
                self._echo(f"   ERR {prompt.num}: {prompt.file} not found")
                report.add(prompt.num, None, f"prompt file not found: {prompt.file}")

    def _check_repo_refs(self, prompts: list[Prompt], report: ValidationReport) -> None:
        self._echo("")
        self._echo("6. Target repo reference check:")
        configured = {repo.name for repo in self.config.target_repos}
        for prompt in prompts:
            if prompt.target_repos is None:
                continue
            names, errors = targets.expand(prompt.target_repos, self.config.repo_groups)
            for error in errors:
                message = targets.format_error(error)
                self._echo(f"   ERR Prompt {prompt.num}: {message}")
                report.add(prompt.num, None, message)
            for repo_name in names or []:
                if repo_name in configured:
                    self._echo(f"   OK Prompt {prompt.num} -> {repo_name}")
                else:
                    self._echo(f"   ERR Prompt {prompt.num} -> {repo_name}: not configured")
                    report.add(prompt.num, repo_name, "repo not configured in target_repos")

    def _summary(self, report: ValidationReport) -> None:
        self._echo("")
        self._echo(RULE)
        if report.ok:
            self._echo("All validation checks passed")
            return
        self._echo(f"{len(report.issues)} validation error(s) found:")
        for issue in report.issues:
            self._echo(f"  - {issue.describe()}")


def validate_all(config: ProjectConfig, *, echo: Callable[[str], None] = print) -> ValidationReport:
    return Validator(config, echo=echo).run()


__all__ = ["ValidationIssue", "ValidationReport", "Validator", "validate_all"]
