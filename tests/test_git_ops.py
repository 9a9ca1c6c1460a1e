from __future__ import annotations

import subprocess
from pathlib import Path
from types import SimpleNamespace

import pytest

from prompt_runner import git_ops
from prompt_runner.git_ops import GitClient


def _record_runs(monkeypatch, stdout: str = "") -> list[dict]:
    calls: list[dict] = []

    def fake_run(args, **kwargs):
        calls.append({"args": args, **kwargs})
        return SimpleNamespace(returncode=0, stdout=stdout, stderr="")

    monkeypatch.setattr(git_ops.subprocess, "run", fake_run)
    return calls


def test_commands_run_in_repo(monkeypatch, tmp_path: Path) -> None:
    calls = _record_runs(monkeypatch)
    client = GitClient()

    client.add_all(cwd=tmp_path)
    client.commit_file(tmp_path / "msg.txt", cwd=tmp_path)

    assert [call["args"] for call in calls] == [
        ["git", "add", "-A"],
        ["git", "commit", "--file", str(tmp_path / "msg.txt")],
    ]
    assert all(call["cwd"] == tmp_path and call["check"] for call in calls)


def test_short_head_strips_output(monkeypatch, tmp_path: Path) -> None:
    calls = _record_runs(monkeypatch, stdout="abc1234\n")

    assert GitClient(executable="/usr/bin/git").short_head(cwd=tmp_path) == "abc1234"
    assert calls[0]["args"] == ["/usr/bin/git", "rev-parse", "--short", "HEAD"]


@pytest.mark.parametrize("stdout, expected", [("", False), ("\n", False), (" M file.py\n", True)])
def test_has_changes(monkeypatch, tmp_path: Path, stdout: str, expected: bool) -> None:
    _record_runs(monkeypatch, stdout=stdout)

    assert GitClient().has_changes(cwd=tmp_path) is expected


def test_failures_propagate(monkeypatch, tmp_path: Path) -> None:
    def failing_run(args, **kwargs):
        raise subprocess.CalledProcessError(128, args, stderr="fatal: not a git repository")

    monkeypatch.setattr(git_ops.subprocess, "run", failing_run)

    with pytest.raises(subprocess.CalledProcessError):
        GitClient().status_porcelain(cwd=tmp_path)
