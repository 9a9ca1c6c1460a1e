"""Append-only progress ledger.

Each execution attempt appends one line::

    NUM:STATUS:ISO8601_TIMESTAMP[:COMMIT_SUFFIX]

Readers fold the file in order so the last line for a prompt number wins. Because the
timestamp itself contains colons, the optional suffix is recognised from the right: the
``no_commit``/``no_changes`` tokens first, then a short or full SHA, then a
``repo=sha,...`` list.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from .models import CommitInfo, CommitOk, CommitSkip, ProgressRecord
from .prompts import prompt_sort_key

logger = logging.getLogger(__name__)

SKIP_TOKENS = ("no_commit", "no_changes")
_SHA = re.compile(r"[0-9a-fA-F]{7,40}")
_REPO_SHAS = re.compile(r"[\w.-]+=[0-9a-fA-F]{7,40}(?:,[\w.-]+=[0-9a-fA-F]{7,40})*")

PENDING = "pending"


def encode_commit_suffix(commit_info: CommitInfo) -> str | None:
    """Render commit info as the ledger suffix, or ``None`` when there is nothing to record."""

    if isinstance(commit_info, list):
        pairs = [
            f"{repo}={result.sha}" for repo, result in commit_info if isinstance(result, CommitOk)
        ]
        return ",".join(pairs) if pairs else "no_changes"
    if isinstance(commit_info, CommitOk):
        return commit_info.sha
    if isinstance(commit_info, CommitSkip):
        return commit_info.reason
    return None


def split_suffix(rest: str) -> tuple[str, str | None]:
    """Split ``TIMESTAMP[:SUFFIX]`` into its parts."""

    if ":" not in rest:
        return rest, None
    head, last = rest.rsplit(":", 1)
    if last in SKIP_TOKENS or _SHA.fullmatch(last) or _REPO_SHAS.fullmatch(last):
        return head, last
    return rest, None


def parse_progress_line(line: str) -> ProgressRecord | None:
    parts = line.split(":", 2)
    if len(parts) != 3:
        return None
    num, status, rest = parts
    timestamp, commit = split_suffix(rest)
    return ProgressRecord(num=num, status=status, timestamp=timestamp, commit=commit)


def commit_repo_count(commit: str | None) -> int:
    """Number of repos recorded in a multi-repo suffix (``0`` for other suffixes)."""

    if commit and _REPO_SHAS.fullmatch(commit):
        return commit.count(",") + 1
    return 0


class ProgressLedger:
    """Reads and appends the progress file at ``path``."""

    def __init__(
        self,
        path: Path,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = Path(path)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def path(self) -> Path:
        return self._path

    def mark_completed(self, num: str, commit_info: CommitInfo = None) -> ProgressRecord:
        return self._append(num, "completed", encode_commit_suffix(commit_info))

    def mark_failed(self, num: str) -> ProgressRecord:
        return self._append(num, "failed", None)

    def statuses(self) -> dict[str, ProgressRecord]:
        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}

        records: dict[str, ProgressRecord] = {}
        for line in content.splitlines():
            if not line.strip():
                continue
            record = parse_progress_line(line)
            if record is None:
                logger.debug("Skipping unreadable progress line %r", line)
                continue
            records[record.num] = record
        return records

    def status(self, num: str, statuses: dict[str, ProgressRecord] | None = None) -> ProgressRecord:
        known = self.statuses() if statuses is None else statuses
        return known.get(num) or ProgressRecord(num=num, status=PENDING, timestamp=None)

    def is_completed(self, num: str, statuses: dict[str, ProgressRecord] | None = None) -> bool:
        return self.status(num, statuses).status == "completed"

    def last_completed(self) -> str | None:
        completed = [num for num, record in self.statuses().items() if record.status == "completed"]
        if not completed:
            return None
        return max(completed, key=prompt_sort_key)

    def _append(self, num: str, status: str, suffix: str | None) -> ProgressRecord:
        timestamp = self._clock().isoformat().replace("+00:00", "Z")
        line = f"{num}:{status}:{timestamp}"
        if suffix:
            line = f"{line}:{suffix}"
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
        logger.info("Recorded prompt %s as %s", num, status, extra={"prompt": num, "commit": suffix})
        return ProgressRecord(num=num, status=status, timestamp=timestamp, commit=suffix)


__all__ = [
    "PENDING",
    "ProgressLedger",
    "commit_repo_count",
    "encode_commit_suffix",
    "parse_progress_line",
    "split_suffix",
]
