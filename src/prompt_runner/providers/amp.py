"""Amp CLI adapter (``amp --execute --stream-json``).

Amp's stream JSON follows the Claude Code message format, so event translation is
shared with :class:`~.claude.ClaudeProvider`.
"""

from __future__ import annotations

from typing import ClassVar

from ..project.aliases import Provider
from ..project.effective import EffectiveLLMConfig
from .claude import ClaudeProvider
from .utils import option_flags


class AmpProvider(ClaudeProvider):
    name: ClassVar[Provider] = Provider.AMP
    binary: ClassVar[str] = "amp"

    def build_command(self, effective: EffectiveLLMConfig, prompt: str) -> list[str]:
        args = [str(self.executable), "--execute", "--stream-json"]
        if effective.permission_mode == "full_auto":
            args.append("--dangerously-allow-all")
        args += option_flags(effective.amp_opts)
        return args


__all__ = ["AmpProvider"]
