"""Thin wrapper around the ``git`` executable.

Every method maps onto a single git command run in ``cwd``. Invocations go through
``_git(...)``, which uses ``check=True``; failures surface as
``subprocess.CalledProcessError`` (or ``OSError`` when ``git`` or ``cwd`` is missing)
and callers decide how to report them.
"""

from __future__ import annotations

import subprocess
from pathlib import Path


class GitClient:
    def __init__(self, *, executable: str = "git") -> None:
        self.executable = executable

    def status_porcelain(self, *, cwd: Path) -> str:
        return self._git(["status", "--porcelain"], cwd=cwd)

    def has_changes(self, *, cwd: Path) -> bool:
        return bool(self.status_porcelain(cwd=cwd).strip())

    def add_all(self, *, cwd: Path) -> None:
        self._git(["add", "-A"], cwd=cwd)

    def commit_file(self, message_path: Path, *, cwd: Path) -> None:
        self._git(["commit", "--file", str(message_path)], cwd=cwd)

    def short_head(self, *, cwd: Path) -> str:
        return self._git(["rev-parse", "--short", "HEAD"], cwd=cwd).strip()

    def _git(self, args: list[str], *, cwd: Path) -> str:
        p = subprocess.run(
            [self.executable, *args],
            cwd=cwd,
            text=True,
            capture_output=True,
            check=True,
        )
        return p.stdout


__all__ = ["GitClient"]
