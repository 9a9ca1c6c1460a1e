"""On-disk stores: prompt index, commit messages and the progress ledger."""

from .commit_messages import CommitMessageStore
from .models import (
    CommitError,
    CommitMarker,
    CommitOk,
    CommitSkip,
    ProgressRecord,
    Prompt,
)
from .progress import ProgressLedger
from .prompts import PromptCatalog

__all__ = [
    "CommitError",
    "CommitMarker",
    "CommitMessageStore",
    "CommitOk",
    "CommitSkip",
    "ProgressLedger",
    "ProgressRecord",
    "Prompt",
    "PromptCatalog",
]
