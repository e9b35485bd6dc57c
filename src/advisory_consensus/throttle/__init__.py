"""Throttle layer — cooldowns, frequency caps, holds and impact floors.

ThrottleEngine          Rule evaluation and serialized decide-and-record
InMemoryHistoryStore    Process-local advisory / user-action history
LockRegistry            Per-(user, topic) asyncio locks
"""

from __future__ import annotations

from .engine import ThrottleEngine
from .history import InMemoryHistoryStore, LockRegistry

__all__ = [
    "InMemoryHistoryStore",
    "LockRegistry",
    "ThrottleEngine",
]
