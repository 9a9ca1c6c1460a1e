"""Commit message file lookup.

Messages are grouped under marker lines::

    === COMMIT 01 ===
    feat: generic message for prompt 01

    === COMMIT 01:frontend ===
    feat(frontend): message used only when committing the frontend repo

A message runs until the next marker or the end of the file. A repo-qualified marker
takes precedence for that repo; the unqualified marker is the fallback for every repo
of the prompt. Blank bodies count as missing.
"""

from __future__ import annotations

import re
from pathlib import Path

from .models import CommitMarker

MARKER_PATTERN = re.compile(r"=== COMMIT (\d+)(?::([\w.-]+))? ===")
_NEXT_MARKER = re.compile(r"\n=== COMMIT ")


def marker_line(num: str, repo: str | None = None) -> str:
    return f"=== COMMIT {num}:{repo} ===" if repo else f"=== COMMIT {num} ==="


class CommitMessageStore:
    """Reads commit messages from disk on each lookup."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get_message(self, num: str, repo: str | None = None) -> str | None:
        """Return the trimmed message for ``num``, preferring the ``repo`` marker."""

        content = self._read()
        candidates = [marker_line(num, repo), marker_line(num)] if repo else [marker_line(num)]
        for marker in candidates:
            message = _message_after(content, marker)
            if message:
                return message
        return None

    def all_markers(self) -> list[CommitMarker]:
        return [
            CommitMarker(num=match.group(1), repo=match.group(2))
            for match in MARKER_PATTERN.finditer(self._read())
        ]

    def _read(self) -> str:
        return self._path.read_text(encoding="utf-8")


def _message_after(content: str, marker: str) -> str | None:
    # First occurrence wins when a marker is duplicated.
    index = content.find(marker)
    while index != -1:
        start = index + len(marker)
        # Markers only count at the start of a line.
        if index == 0 or content[index - 1] == "\n":
            body = _NEXT_MARKER.split(content[start:], maxsplit=1)[0].strip()
            return body or None
        index = content.find(marker, start)
    return None


__all__ = ["CommitMessageStore", "MARKER_PATTERN", "marker_line"]
