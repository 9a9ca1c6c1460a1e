"""Data records for the prompt index, commit messages, commit results and the progress ledger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

ProgressStatus = Literal["completed", "failed"]


@dataclass(slots=True, frozen=True)
class Prompt:
    num: str
    phase: int
    story_points: int
    name: str
    file: str
    target_repos: list[str] | None = None


@dataclass(slots=True, frozen=True)
class CommitMarker:
    num: str
    repo: str | None = None


@dataclass(slots=True, frozen=True)
class CommitOk:
    sha: str


@dataclass(slots=True, frozen=True)
class CommitSkip:
    reason: str


@dataclass(slots=True, frozen=True)
class CommitError:
    reason: str
    detail: str | None = None


CommitResult = Union[CommitOk, CommitSkip, CommitError]
RepoCommitResults = list[tuple[str, CommitResult]]
CommitInfo = Union[CommitResult, RepoCommitResults, None]

NO_COMMIT = CommitSkip("no_commit")
NO_CHANGES = CommitSkip("no_changes")


@dataclass(slots=True, frozen=True)
class ProgressRecord:
    num: str
    status: ProgressStatus
    timestamp: str | None
    commit: str | None = None


__all__ = [
    "CommitError",
    "CommitInfo",
    "CommitMarker",
    "CommitOk",
    "CommitResult",
    "CommitSkip",
    "NO_CHANGES",
    "NO_COMMIT",
    "ProgressRecord",
    "ProgressStatus",
    "Prompt",
    "RepoCommitResults",
]
