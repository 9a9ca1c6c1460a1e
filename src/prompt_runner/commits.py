"""Commit step: resolve target repos and commit each one with its prepared message."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Sequence

from . import targets
from .errors import CommitMessageNotFoundError, TargetResolutionError
from .git_ops import GitClient
from .project.effective import default_target
from .project.models import ProjectConfig
from .storage.commit_messages import CommitMessageStore
from .storage.models import (
    NO_CHANGES,
    CommitError,
    CommitOk,
    CommitResult,
    Prompt,
    RepoCommitResults,
)

logger = logging.getLogger(__name__)

RepoTarget = tuple[str, Path]


def resolve_commit_targets(config: ProjectConfig, prompt: Prompt) -> list[RepoTarget]:
    """Resolve where ``prompt``'s changes are committed.

    Prompts without targets use the default repo. Named targets are expanded strictly:
    unknown groups, cycles, empty expansions and unconfigured repo names raise.
    """

    if prompt.target_repos is None:
        return [default_target(config)]

    if not config.target_repos:
        raise TargetResolutionError(
            f"Prompt {prompt.num} defines target repos but no target_repos are configured"
        )

    names = targets.expand_strict(prompt.target_repos, config.repo_groups) or []
    if not names:
        raise TargetResolutionError(
            f"Prompt {prompt.num} did not resolve any target repos from: "
            + ", ".join(prompt.target_repos)
        )

    resolved: list[RepoTarget] = []
    for name in names:
        repo = config.repo_named(name)
        if repo is None:
            raise TargetResolutionError(f"Repo not configured for prompt {prompt.num}: {name}")
        resolved.append((repo.name, repo.path))
    return resolved


def commit_repo(
    git: GitClient,
    repo_name: str,
    repo_path: Path,
    message: str,
    num: str,
    *,
    echo: Callable[[str], None] = print,
) -> CommitResult:
    """Stage and commit everything in ``repo_path``; git failures become results, never raise."""

    try:
        status = git.status_porcelain(cwd=repo_path)
    except (subprocess.CalledProcessError, OSError) as exc:
        logger.warning("git status failed for %s: %s", repo_name, _stderr(exc), extra={"repo": repo_name})
        echo(f"ERROR: git status failed for {repo_name}")
        return CommitError("git_status_failed", _stderr(exc))

    if not status.strip():
        echo(f"No changes in {repo_name}")
        return NO_CHANGES

    echo(f"Committing to {repo_name}...")
    safe_name = repo_name.replace(os.sep, "_")
    handle, tmp_name = tempfile.mkstemp(prefix=f"prompt-{num}-{safe_name}-commit-msg-", suffix=".txt")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as stream:
            stream.write(message + "\n")
        git.add_all(cwd=repo_path)
        git.commit_file(tmp_path, cwd=repo_path)
        sha = git.short_head(cwd=repo_path)
    except (subprocess.CalledProcessError, OSError) as exc:
        logger.warning("git commit failed for %s: %s", repo_name, _stderr(exc), extra={"repo": repo_name})
        echo(f"ERROR: Git commit failed for {repo_name}")
        return CommitError("commit_failed", _stderr(exc))
    finally:
        tmp_path.unlink(missing_ok=True)

    echo(f"Committed to {repo_name}: {sha[:8]}")
    return CommitOk(sha)


class CommitCoordinator:
    """Commits a prompt's changes to each resolved repo in order."""

    def __init__(
        self,
        messages: CommitMessageStore,
        git: GitClient | None = None,
        *,
        echo: Callable[[str], None] = print,
    ) -> None:
        self._messages = messages
        self._git = git or GitClient()
        self._echo = echo

    def messages_for(self, num: str, repos: Sequence[RepoTarget]) -> list[tuple[str, Path, str]]:
        """Look up every repo's message up front so no repo is committed when one is missing."""

        planned: list[tuple[str, Path, str]] = []
        for name, path in repos:
            message = self._messages.get_message(num, name)
            if message is None:
                raise CommitMessageNotFoundError(f"Commit message not found for prompt {num}:{name}")
            planned.append((name, path, message))
        return planned

    def commit(self, num: str, repos: Sequence[RepoTarget]) -> CommitResult | RepoCommitResults:
        """Commit ``repos``; a single repo yields one result, several yield ``(name, result)`` pairs.

        A failure in one repo never stops the remaining repos from being attempted.
        """

        planned = self.messages_for(num, repos)
        if len(planned) == 1:
            name, path, message = planned[0]
            return commit_repo(self._git, name, path, message, num, echo=self._echo)

        results: RepoCommitResults = []
        for name, path, message in planned:
            self._echo("")
            self._echo(f"Checking {name} ({path})...")
            results.append((name, commit_repo(self._git, name, path, message, num, echo=self._echo)))
        return results


def _stderr(exc: BaseException) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        return (exc.stderr or exc.stdout or str(exc)).strip()
    return str(exc)


__all__ = ["CommitCoordinator", "RepoTarget", "commit_repo", "resolve_commit_targets"]
