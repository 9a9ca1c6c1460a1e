"""Helpers shared by the provider CLIs."""

from __future__ import annotations

import json
import os
from typing import Any, Mapping

_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "PIP_RESPECT_VIRTUALENV",
}


def sanitize_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a sanitized environment suitable for subprocess execution."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    if additional:
        env.update({key: str(value) for key, value in additional.items()})
    return env


def option_flags(options: Mapping[str, Any], *, skip: tuple[str, ...] = ()) -> list[str]:
    """Render an option block as ``--kebab-case value`` flags.

    ``True`` becomes a bare flag, ``False``/``None`` are dropped, lists repeat the flag.
    """

    flags: list[str] = []
    for key, value in options.items():
        if key in skip or value is None or value is False:
            continue
        flag = "--" + str(key).replace("_", "-")
        if value is True:
            flags.append(flag)
        elif isinstance(value, (list, tuple)):
            for item in value:
                flags.extend([flag, str(item)])
        elif isinstance(value, Mapping):
            flags.extend([flag, json.dumps(value)])
        else:
            flags.extend([flag, str(value)])
    return flags


def truncate(text: str, limit: int = 2000) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[-limit:]


__all__ = ["option_flags", "sanitize_environment", "truncate"]
