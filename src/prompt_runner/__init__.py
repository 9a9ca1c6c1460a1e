"""Prompt Runner: run ordered LLM edit prompts against git repositories and commit each result."""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
