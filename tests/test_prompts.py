from __future__ import annotations

from pathlib import Path

import pytest

from prompt_runner.errors import PromptIndexError
from prompt_runner.storage import Prompt, PromptCatalog
from prompt_runner.storage.prompts import parse_prompt_line, prompt_sort_key

INDEX = """\
# num|phase|sp|name|file|targets
01|1|3|Scaffold|prompts/001.md
02|1|5|Wire API|prompts/002.md|api, @frontend

10|2|2|Polish|prompts/010.md|
03|2|1|Docs|prompts/003.md|docs
"""


def _catalog(tmp_path: Path, text: str = INDEX) -> PromptCatalog:
    path = tmp_path / "prompts.txt"
    path.write_text(text, encoding="utf-8")
    return PromptCatalog(path)


def test_list_skips_comments_and_blank_lines(tmp_path: Path) -> None:
    prompts = _catalog(tmp_path).list()

    assert [prompt.num for prompt in prompts] == ["01", "02", "10", "03"]
    assert prompts[0] == Prompt("01", 1, 3, "Scaffold", "prompts/001.md", None)
    assert prompts[1].target_repos == ["api", "@frontend"]
    assert prompts[2].target_repos is None


def test_lookup_and_ordering(tmp_path: Path) -> None:
    catalog = _catalog(tmp_path)

    assert catalog.get("03").name == "Docs"
    assert catalog.get("99") is None
    assert catalog.nums() == ["01", "02", "03", "10"]
    assert catalog.phase_nums(2) == ["03", "10"]
    assert catalog.phase_nums(7) == []


def test_nums_after_compares_numerically(tmp_path: Path) -> None:
    catalog = _catalog(tmp_path)

    assert catalog.nums_after(None) == ["01", "02", "03", "10"]
    assert catalog.nums_after("02") == ["03", "10"]
    assert catalog.nums_after("9") == ["10"]
    assert catalog.nums_after("10") == []


def test_catalog_rereads_file(tmp_path: Path) -> None:
    catalog = _catalog(tmp_path, "01|1|1|One|001.md\n")
    assert catalog.nums() == ["01"]

    catalog.path.write_text("01|1|1|One|001.md\n02|1|1|Two|002.md\n", encoding="utf-8")

    assert catalog.nums() == ["01", "02"]


@pytest.mark.parametrize("line", ["01|1|1|missing-file", "01|x|1|Name|file.md", "01|1|y|Name|file.md"])
def test_malformed_lines_raise(line: str) -> None:
    with pytest.raises(PromptIndexError, match="Invalid prompt line"):
        parse_prompt_line(line)


def test_malformed_line_reports_line_number(tmp_path: Path) -> None:
    catalog = _catalog(tmp_path, "01|1|1|One|001.md\nbroken\n")

    with pytest.raises(PromptIndexError, match="line 2:"):
        catalog.list()


def test_missing_index_file(tmp_path: Path) -> None:
    with pytest.raises(PromptIndexError, match="not found"):
        PromptCatalog(tmp_path / "absent.txt").list()


def test_fields_are_trimmed() -> None:
    prompt = parse_prompt_line(" 04 | 1 | 2 | Name with spaces | file.md | a ,, b ")

    assert prompt == Prompt("04", 1, 2, "Name with spaces", "file.md", ["a", "b"])


def test_sort_key_puts_non_numeric_last() -> None:
    assert sorted(["b", "10", "02"], key=prompt_sort_key) == ["02", "10", "b"]
