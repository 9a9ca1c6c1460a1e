from __future__ import annotations

from pathlib import Path

from prompt_runner.storage import CommitMarker, CommitMessageStore

MESSAGES = """\
=== COMMIT 01 ===
feat: generic message

Body line.

=== COMMIT 01:frontend ===
feat(frontend): qualified message
=== COMMIT 02 ===

=== COMMIT 03:api.v2 ===
fix(api): dotted repo name
"""


def _store(tmp_path: Path, text: str = MESSAGES) -> CommitMessageStore:
    path = tmp_path / "commit-messages.txt"
    path.write_text(text, encoding="utf-8")
    return CommitMessageStore(path)


def test_generic_message_is_trimmed(tmp_path: Path) -> None:
    assert _store(tmp_path).get_message("01") == "feat: generic message\n\nBody line."


def test_qualified_marker_wins_for_its_repo(tmp_path: Path) -> None:
    store = _store(tmp_path)

    assert store.get_message("01", "frontend") == "feat(frontend): qualified message"
    assert store.get_message("01", "backend") == "feat: generic message\n\nBody line."


def test_blank_body_counts_as_missing(tmp_path: Path) -> None:
    assert _store(tmp_path).get_message("02") is None


def test_qualified_only_marker_has_no_generic_fallback(tmp_path: Path) -> None:
    store = _store(tmp_path)

    assert store.get_message("03", "api.v2") == "fix(api): dotted repo name"
    assert store.get_message("03") is None
    assert store.get_message("03", "web") is None


def test_prompt_number_prefix_does_not_match(tmp_path: Path) -> None:
    store = _store(tmp_path, "=== COMMIT 011 ===\nwrong\n=== COMMIT 01 ===\nright\n")

    assert store.get_message("01") == "right"


def test_marker_inside_a_line_is_ignored(tmp_path: Path) -> None:
    store = _store(tmp_path, "see === COMMIT 05 === below\n=== COMMIT 05 ===\nreal\n")

    assert store.get_message("05") == "real"


def test_first_duplicate_marker_wins(tmp_path: Path) -> None:
    store = _store(tmp_path, "=== COMMIT 01 ===\nfirst\n=== COMMIT 01 ===\nsecond\n")

    assert store.get_message("01") == "first"


def test_all_markers(tmp_path: Path) -> None:
    assert _store(tmp_path).all_markers() == [
        CommitMarker("01"),
        CommitMarker("01", "frontend"),
        CommitMarker("02"),
        CommitMarker("03", "api.v2"),
    ]
