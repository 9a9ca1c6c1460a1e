"""Repo-group expansion and repo lookup.

Prompts name their target repos with a small reference language: literal repo names
(``command``) and group references (``@pipeline``). Groups are declared in the
configuration document as ``repo_groups: {name: [member, ...]}`` where each member is
again a literal name or a group reference, so groups may nest.

Expansion semantics
- Order is preserved: members expand in declaration order, depth first.
- Duplicates across the whole call are dropped at the end; the first occurrence wins.
- Cycle detection is per branch: expanding ``@g`` pushes ``g`` onto a stack and any
  reference to a stacked name yields a :class:`GroupCycle` carrying the path from the
  first reference to the repeated name. The cyclic branch contributes no names.
- Errors are accumulated, never fail-fast; sibling branches still expand.
- The group table is treated as read-only input.

:func:`expand` is the advisory form used by validation and dry runs.
:func:`expand_strict` raises :class:`~prompt_runner.errors.RepoGroupError` on the first
error and is used when resolving commit targets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from .errors import RepoGroupError

GROUP_PREFIX = "@"


@dataclass(frozen=True)
class UnknownGroup:
    name: str

    @property
    def message(self) -> str:
        return f"Unknown repo group: @{self.name}"


@dataclass(frozen=True)
class GroupCycle:
    path: tuple[str, ...]

    @property
    def message(self) -> str:
        return "Repo group cycle detected: " + " -> ".join(f"@{name}" for name in self.path)


@dataclass(frozen=True)
class InvalidGroupValue:
    name: str
    value: Any

    @property
    def message(self) -> str:
        return f"Invalid repo group definition for @{self.name}: {self.value!r}"


ExpandError = UnknownGroup | GroupCycle | InvalidGroupValue


def format_error(error: ExpandError) -> str:
    """Return the human-readable message for an expansion error."""

    return error.message


def expand(
    targets: Sequence[Any] | None,
    groups: Mapping[str, Any] | None,
) -> tuple[list[str] | None, list[ExpandError]]:
    """Expand repo references into an ordered, de-duplicated list of repo names.

    ``None`` targets mean the prompt did not name any repos; ``(None, [])`` is returned
    and the caller applies default-repo semantics.
    """

    if targets is None:
        return None, []

    table: Mapping[str, Any] = groups or {}
    names: list[str] = []
    errors: list[ExpandError] = []
    for target in targets:
        found, found_errors = _expand_token(target, table, ())
        names.extend(found)
        errors.extend(found_errors)

    return _unique(names), errors


def expand_strict(targets: Sequence[Any] | None, groups: Mapping[str, Any] | None) -> list[str] | None:
    """Like :func:`expand` but raise on the first error."""

    names, errors = expand(targets, groups)
    if errors:
        raise RepoGroupError(format_error(errors[0]))
    return names


def is_group_ref(token: Any) -> bool:
    return isinstance(token, str) and token.startswith(GROUP_PREFIX)


def _expand_token(
    token: Any,
    groups: Mapping[str, Any],
    stack: tuple[str, ...],
) -> tuple[list[str], list[ExpandError]]:
    if not isinstance(token, str):
        owner = stack[-1] if stack else "(prompt targets)"
        return [], [InvalidGroupValue(owner, token)]

    if not token.startswith(GROUP_PREFIX):
        return [token], []

    group_name = token[len(GROUP_PREFIX):]
    if group_name in stack:
        return [], [GroupCycle((*stack, group_name))]

    if group_name not in groups:
        return [], [UnknownGroup(group_name)]

    members = groups[group_name]
    if not isinstance(members, (list, tuple)):
        return [], [InvalidGroupValue(group_name, members)]

    names: list[str] = []
    errors: list[ExpandError] = []
    branch = (*stack, group_name)
    for member in members:
        found, found_errors = _expand_token(member, groups, branch)
        names.extend(found)
        errors.extend(found_errors)
    return names, errors


def _unique(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        ordered.append(name)
    return ordered


__all__ = [
    "ExpandError",
    "GroupCycle",
    "InvalidGroupValue",
    "UnknownGroup",
    "expand",
    "expand_strict",
    "format_error",
    "is_group_ref",
]
