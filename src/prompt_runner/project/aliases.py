"""Alias tables and normalizers for aliased configuration fields.

Each aliased setting has exactly one normalizer here; the configuration models call
them from their field validators and the effective-config builder calls them again on
merged per-prompt values (overrides may carry raw spellings).
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Any, Iterable


class Provider(str, Enum):
    CLAUDE = "claude"
    CODEX = "codex"
    AMP = "amp"

    def __str__(self) -> str:
        return self.value


class TimeoutSentinel(str, Enum):
    """Unbounded timeout markers; both resolve to :data:`EMERGENCY_TIMEOUT_MS`."""

    UNBOUNDED = "unbounded"
    INFINITY = "infinity"

    def __str__(self) -> str:
        return self.value


class InvalidProviderError(ValueError):
    """Raised for provider names outside the alias table."""

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"invalid provider: {value!r}")


PROVIDER_ALIASES: dict[str, Provider] = {
    "claude": Provider.CLAUDE,
    "claude_agent": Provider.CLAUDE,
    "claude_agent_sdk": Provider.CLAUDE,
    "claude_code": Provider.CLAUDE,
    "codex": Provider.CODEX,
    "codex_sdk": Provider.CODEX,
    "codex_cli": Provider.CODEX,
    "amp": Provider.AMP,
    "amp_sdk": Provider.AMP,
    "amp_cli": Provider.AMP,
}

PERMISSION_MODES = frozenset({"default", "accept_edits", "plan", "full_auto", "delegate"})

LEGACY_PERMISSION_MODES: dict[str, str] = {
    "bypass_permissions": "full_auto",
    "dangerously_allow_all": "full_auto",
    "dangerously_skip_permissions": "full_auto",
}

CLI_CONFIRMATION_MODES = ("off", "warn", "require")
DEFAULT_CLI_CONFIRMATION = "warn"

EMERGENCY_TIMEOUT_MS = 7 * 86_400_000
DEFAULT_STREAM_IDLE_TIMEOUT_MS = 120_000
STREAM_IDLE_TIMEOUT_BUFFER_MS = 30_000

_TIMEOUT_SENTINELS: dict[str, TimeoutSentinel] = {
    "unbounded": TimeoutSentinel.UNBOUNDED,
    "infinity": TimeoutSentinel.INFINITY,
    "infinite": TimeoutSentinel.INFINITY,
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_INTEGER = re.compile(r"[+-]?\d+")


def _token(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    text = str(value).strip().lstrip(":")
    text = _CAMEL_BOUNDARY.sub("_", text)
    return text.replace("-", "_").replace(" ", "_").lower()


def normalize_provider(value: Any) -> Provider:
    """Resolve a provider name or alias, case-insensitively."""

    if isinstance(value, Provider):
        return value
    if isinstance(value, (str, Enum)):
        provider = PROVIDER_ALIASES.get(_token(value))
        if provider is not None:
            return provider
    raise InvalidProviderError(value)


def normalize_permission_mode(value: Any) -> Any:
    """Map permission-mode spellings onto the canonical provider-neutral tokens.

    Unknown modes are returned unchanged so newer provider modes keep working.
    """

    if value is None:
        return None
    if not isinstance(value, (str, Enum)):
        return value
    token = _token(value)
    token = LEGACY_PERMISSION_MODES.get(token, token)
    if token in PERMISSION_MODES:
        return token
    return value.value if isinstance(value, Enum) else value


def normalize_timeout(value: Any) -> Any:
    """Normalize a timeout to a positive int (ms) or a :class:`TimeoutSentinel`.

    Values that are neither are returned untouched so validation can reject them.
    """

    if value is None or isinstance(value, TimeoutSentinel):
        return value
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and math.isinf(value) and value > 0:
        return TimeoutSentinel.INFINITY
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        token = value.strip().lstrip(":").lower()
        if token in _TIMEOUT_SENTINELS:
            return _TIMEOUT_SENTINELS[token]
        if _INTEGER.fullmatch(token):
            return int(token)
    return value


def is_valid_timeout(value: Any) -> bool:
    normalized = normalize_timeout(value)
    if normalized is None or isinstance(normalized, TimeoutSentinel):
        return True
    return isinstance(normalized, int) and not isinstance(normalized, bool) and normalized > 0


def effective_timeout_ms(value: Any) -> int:
    """Resolve a configured timeout to milliseconds, capped at the emergency limit."""

    normalized = normalize_timeout(value)
    if isinstance(normalized, int) and not isinstance(normalized, bool) and normalized > 0:
        return min(normalized, EMERGENCY_TIMEOUT_MS)
    return EMERGENCY_TIMEOUT_MS


def stream_idle_timeout_ms(explicit: Any, timeout_ms: int) -> int:
    if isinstance(explicit, int) and not isinstance(explicit, bool) and explicit > 0:
        return explicit
    return max(DEFAULT_STREAM_IDLE_TIMEOUT_MS, timeout_ms + STREAM_IDLE_TIMEOUT_BUFFER_MS)


def normalize_cli_confirmation(value: Any) -> str:
    if value is None:
        return DEFAULT_CLI_CONFIRMATION
    if isinstance(value, (str, Enum)):
        token = _token(value)
        if token in CLI_CONFIRMATION_MODES:
            return token
    return DEFAULT_CLI_CONFIRMATION


def normalize_prompt_num(num: Any) -> str:
    """Zero-pad numeric prompt keys to two digits (``2`` -> ``"02"``)."""

    if isinstance(num, int) and not isinstance(num, bool):
        return f"{num:02d}"
    if isinstance(num, str):
        trimmed = num.strip()
        if trimmed.isdigit():
            return normalize_prompt_num(int(trimmed))
        return trimmed
    return str(num)


def normalize_choice(value: Any, choices: Iterable[str], *, field: str) -> str:
    token = _token(value)
    allowed = tuple(choices)
    if token not in allowed:
        raise ValueError(f"{field} must be one of {', '.join(allowed)}; got {value!r}")
    return token


__all__ = [
    "CLI_CONFIRMATION_MODES",
    "DEFAULT_CLI_CONFIRMATION",
    "EMERGENCY_TIMEOUT_MS",
    "InvalidProviderError",
    "PERMISSION_MODES",
    "PROVIDER_ALIASES",
    "Provider",
    "TimeoutSentinel",
    "effective_timeout_ms",
    "is_valid_timeout",
    "normalize_choice",
    "normalize_cli_confirmation",
    "normalize_permission_mode",
    "normalize_prompt_num",
    "normalize_provider",
    "normalize_timeout",
    "stream_idle_timeout_ms",
]
