"""Execution providers: one CLI adapter per supported LLM backend."""

from __future__ import annotations

from ..config import RunnerSettings, get_settings
from ..project.aliases import Provider
from ..project.effective import EffectiveLLMConfig
from .amp import AmpProvider
from .base import CliProvider, StreamEvent, StreamHandle
from .claude import ClaudeProvider
from .codex import CodexProvider
from .fake import FakeProvider

PROVIDERS: dict[Provider, type[CliProvider]] = {
    Provider.CLAUDE: ClaudeProvider,
    Provider.CODEX: CodexProvider,
    Provider.AMP: AmpProvider,
}


def get_provider(provider: Provider, settings: RunnerSettings | None = None) -> CliProvider:
    """Instantiate the adapter for ``provider``; raises ``ProviderNotFoundError``."""

    settings = settings or get_settings()
    return PROVIDERS[provider](settings.executable_for(provider.value))


def start_stream(
    effective: EffectiveLLMConfig,
    prompt: str,
    *,
    settings: RunnerSettings | None = None,
) -> StreamHandle:
    return get_provider(effective.provider, settings).start_stream(effective, prompt)


__all__ = [
    "AmpProvider",
    "ClaudeProvider",
    "CliProvider",
    "CodexProvider",
    "FakeProvider",
    "PROVIDERS",
    "StreamEvent",
    "StreamHandle",
    "get_provider",
    "start_stream",
]
