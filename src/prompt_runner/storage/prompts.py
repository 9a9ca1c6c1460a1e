"""Prompt index parsing.

The index is a pipe-delimited text file, one prompt per line::

    NUM|PHASE|SP|NAME|FILE[|TARGET_REPOS]

Blank lines and lines starting with ``#`` are ignored. ``TARGET_REPOS`` is a comma
separated list of repo names and ``@group`` references; it is kept verbatim here and
expanded later against the configured groups.
"""

from __future__ import annotations

from pathlib import Path

from ..errors import PromptIndexError
from .models import Prompt


def prompt_sort_key(num: str) -> tuple[int, int | str]:
    """Order numeric prompt numbers numerically, anything else after them."""

    stripped = num.strip()
    if stripped.isdigit():
        return (0, int(stripped))
    return (1, stripped)


def parse_prompt_line(line: str, *, lineno: int | None = None) -> Prompt:
    parts = line.split("|", 5)
    if len(parts) not in (5, 6):
        raise PromptIndexError(_describe(f"Invalid prompt line: {line}", lineno))

    num, phase, story_points, name, file = (part.strip() for part in parts[:5])
    try:
        phase_value = int(phase)
        points_value = int(story_points)
    except ValueError as exc:
        raise PromptIndexError(_describe(f"Invalid prompt line: {line}", lineno)) from exc

    return Prompt(
        num=num,
        phase=phase_value,
        story_points=points_value,
        name=name,
        file=file,
        target_repos=parse_target_repos(parts[5]) if len(parts) == 6 else None,
    )


def parse_target_repos(raw: str) -> list[str] | None:
    tokens = [token.strip() for token in raw.split(",")]
    tokens = [token for token in tokens if token]
    return tokens or None


class PromptCatalog:
    """Reads the prompt index; the file is re-read on every call."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def list(self) -> list[Prompt]:
        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise PromptIndexError(f"Prompt index not found: {self._path}") from exc

        prompts: list[Prompt] = []
        for lineno, raw in enumerate(content.splitlines(), start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            prompts.append(parse_prompt_line(line, lineno=lineno))
        return prompts

    def get(self, num: str) -> Prompt | None:
        for prompt in self.list():
            if prompt.num == num:
                return prompt
        return None

    def nums(self) -> list[str]:
        return sorted((prompt.num for prompt in self.list()), key=prompt_sort_key)

    def phase_nums(self, phase: int) -> list[str]:
        return sorted(
            (prompt.num for prompt in self.list() if prompt.phase == phase),
            key=prompt_sort_key,
        )

    def nums_after(self, last: str | None) -> list[str]:
        """Prompt numbers strictly after ``last``; all of them when ``last`` is ``None``."""

        nums = self.nums()
        if last is None:
            return nums
        threshold = prompt_sort_key(last)
        return [num for num in nums if prompt_sort_key(num) > threshold]


def _describe(message: str, lineno: int | None) -> str:
    return message if lineno is None else f"line {lineno}: {message}"


__all__ = ["PromptCatalog", "parse_prompt_line", "parse_target_repos", "prompt_sort_key"]
