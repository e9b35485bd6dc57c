"""Advisory history storage and per-(user, topic) serialization.

``InMemoryHistoryStore`` implements :class:`IHistoryStore` for tests and
single-process deployments.  Persistent stores live with the collaborator
that owns the database; the throttle engine only sees the protocol.

``LockRegistry`` hands out one ``asyncio.Lock`` per (user, topic) so the
throttle's read -> decide -> append sequence cannot interleave for the
same key.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from collections import defaultdict
from datetime import datetime

from advisory_consensus.core.clock import IClock, WallClock
from advisory_consensus.core.models import AdvisoryHistoryEntry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# In-Memory Implementation
# ---------------------------------------------------------------------------


class InMemoryHistoryStore:
    """Per-user list-backed history.  Expired entries are pruned on read."""

    def __init__(self, clock: IClock | None = None) -> None:
        self._clock = clock or WallClock()
        self._entries: dict[str, list[AdvisoryHistoryEntry]] = defaultdict(list)

    async def list_entries(
        self, user_id: str, since: datetime | None = None
    ) -> list[AdvisoryHistoryEntry]:
        """Unexpired entries for *user_id*, oldest first."""
        self._prune(user_id)
        entries = self._entries.get(user_id, [])
        if since is not None:
            entries = [e for e in entries if e.timestamp >= since]
        return sorted(entries, key=lambda e: e.timestamp)

    async def append(self, entry: AdvisoryHistoryEntry) -> None:
        self._entries[entry.user_id].append(entry)
        logger.debug(
            "History append: user=%s topic=%s type=%s",
            entry.user_id, entry.topic, entry.event_type.value,
        )

    async def touch(self, entry_id: str, seen_at: datetime) -> None:
        """Replace the entry with a copy carrying a bumped reference count
        and last-seen time.  Unknown ids are ignored.
        """
        for entries in self._entries.values():
            for i, entry in enumerate(entries):
                if entry.entry_id == entry_id:
                    entries[i] = entry.model_copy(update={
                        "reference_count": entry.reference_count + 1,
                        "last_seen_at": seen_at,
                    })
                    return
        logger.debug("touch: no history entry %s", entry_id)

    def _prune(self, user_id: str) -> None:
        entries = self._entries.get(user_id)
        if not entries:
            return
        now = self._clock.now()
        kept = [e for e in entries if not e.is_expired(now)]
        if len(kept) != len(entries):
            logger.debug("Pruned %d expired entries for %s", len(entries) - len(kept), user_id)
            self._entries[user_id] = kept

    def __len__(self) -> int:
        return sum(len(v) for v in self._entries.values())


# ---------------------------------------------------------------------------
# Lock registry
# ---------------------------------------------------------------------------


class LockRegistry:
    """One asyncio lock per (user, topic) key, created on first use.

    Locks are held weakly: once no caller holds or awaits a key's lock it
    drops out of the registry, so the map tracks live keys only.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, user_id: str, topic: str) -> asyncio.Lock:
        key = (user_id, topic)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)
