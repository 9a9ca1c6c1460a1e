"""Exception types raised by Prompt Runner."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class PromptRunnerError(RuntimeError):
    """Base class for Prompt Runner errors."""


@dataclass(frozen=True, slots=True)
class ConfigError:
    """A single configuration problem: the offending field and a detail token or tuple."""

    field: str
    detail: Any

    def describe(self) -> str:
        return f"{self.field}: {self.detail!r}"


class ConfigLoadError(PromptRunnerError):
    """Raised when a configuration document fails to load or validate.

    All problems found are carried in ``errors``; callers must not assume the
    first one is the only one.
    """

    def __init__(self, errors: list[ConfigError]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(error.describe() for error in self.errors))


class PromptIndexError(PromptRunnerError, ValueError):
    """Raised when the prompt index contains a malformed line."""


class RepoGroupError(PromptRunnerError):
    """Raised by strict group expansion."""


class TargetResolutionError(PromptRunnerError):
    """Raised when a prompt's commit targets cannot be resolved to configured repos."""


class CommitMessageNotFoundError(PromptRunnerError):
    """Raised when no usable commit message exists for a prompt/repo pair."""


class PromptNotFoundError(PromptRunnerError):
    """Raised when a requested prompt number is absent from the prompt index."""

    def __init__(self, num: str) -> None:
        self.num = num
        super().__init__(f"Prompt {num} not found")


class PromptFileNotFoundError(PromptRunnerError):
    """Raised when a prompt's file does not exist on disk."""

    def __init__(self, num: str, path: Any) -> None:
        self.num = num
        self.path = path
        super().__init__(f"Prompt file not found for {num}: {path}")


class ProviderError(PromptRunnerError):
    """Base class for execution provider errors."""


class ProviderNotFoundError(ProviderError):
    """Raised when a provider CLI executable cannot be located."""


class ProviderStartError(ProviderError):
    """Raised when a provider process could not be started."""


class ExecutionFailedError(PromptRunnerError):
    """Raised when a prompt's execution stream ends in failure."""

    def __init__(self, message: str, provider_error: dict[str, Any] | None = None) -> None:
        self.message = message
        self.provider_error = provider_error
        super().__init__(message)


class PromptIOError(PromptRunnerError):
    """Raised when a started prompt cannot read or write one of its files."""

    def __init__(self, num: str, error: OSError) -> None:
        self.num = num
        self.error = error
        super().__init__(f"Prompt {num} failed: {error}")


class NoTargetError(PromptRunnerError):
    """Raised when a run or dry run is requested without any prompt target."""

    def __init__(self) -> None:
        super().__init__("No target specified")


__all__ = [
    "CommitMessageNotFoundError",
    "ConfigError",
    "ConfigLoadError",
    "ExecutionFailedError",
    "NoTargetError",
    "PromptFileNotFoundError",
    "PromptIOError",
    "PromptIndexError",
    "PromptNotFoundError",
    "PromptRunnerError",
    "ProviderError",
    "ProviderNotFoundError",
    "ProviderStartError",
    "RepoGroupError",
    "TargetResolutionError",
]
