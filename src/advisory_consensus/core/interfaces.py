"""Protocol interfaces for the advisory subsystem.

All module boundaries to collaborators are defined here as Protocol classes.
Implementations can be swapped (HTTP / scripted / persistent) without
changing callers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from .models import AdvisoryHistoryEntry, PromptContext, Recommendation


# ---------------------------------------------------------------------------
# Advisor port
# ---------------------------------------------------------------------------

@runtime_checkable
class IAdvisorPort(Protocol):
    """A single external recommendation provider.

    ``recommend`` returns a Recommendation or raises a classified
    ``ProviderError`` (transient or fatal).
    """

    @property
    def name(self) -> str: ...

    async def recommend(self, context: PromptContext) -> Recommendation: ...


# ---------------------------------------------------------------------------
# History store
# ---------------------------------------------------------------------------

@runtime_checkable
class IHistoryStore(Protocol):
    """Narrow read/append interface over persisted advisory history."""

    async def list_entries(
        self, user_id: str, since: datetime | None = None
    ) -> list[AdvisoryHistoryEntry]: ...

    async def append(self, entry: AdvisoryHistoryEntry) -> None: ...

    async def touch(self, entry_id: str, seen_at: datetime) -> None: ...
