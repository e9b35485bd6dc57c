"""Shared fixtures for the advisory-consensus test suite."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

import pytest
import structlog

from advisory_consensus.consensus.engine import ConsensusEngine
from advisory_consensus.core.clock import SimClock
from advisory_consensus.core.config import (
    ConsensusConfig,
    OrchestrationConfig,
    ThrottleConfig,
)
from advisory_consensus.core.models import PromptContext, Recommendation
from advisory_consensus.observability.audit import AdvisoryAudit
from advisory_consensus.throttle.engine import ThrottleEngine
from advisory_consensus.throttle.history import InMemoryHistoryStore


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

@pytest.fixture
def sim_clock() -> SimClock:
    return SimClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def no_sleep():
    """Backoff sleep that returns immediately."""

    async def _sleep(_: float) -> None:
        return None

    return _sleep


@pytest.fixture
def recorded_sleeps() -> list[float]:
    return []


@pytest.fixture
def recording_sleep(recorded_sleeps):
    async def _sleep(delay: float) -> None:
        recorded_sleeps.append(delay)

    return _sleep


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------

CONSERVATIVE_BODY = """\
Build liquidity before taking on more market exposure.
- Move cash to high-yield savings
- Increase TSP contribution
Consider the risk of a thin emergency fund and review it quarterly."""

AGGRESSIVE_BODY = """\
Put idle money to work for long-term growth.
- Increase TSP contribution
- Consider Roth conversion
Equity exposure is a strong, beneficial choice at your horizon."""


@pytest.fixture
def prompt_context() -> PromptContext:
    return PromptContext(
        system_prompt="You are a financial advisor.",
        user_prompt="How should I allocate my savings this year?",
        cacheable_context="Accounts: checking 12,000; TSP 85,000; brokerage 20,000.",
        user_id="user-1",
    )


@pytest.fixture
def conservative_rec() -> Recommendation:
    return Recommendation(
        provider="claude",
        body=CONSERVATIVE_BODY,
        reasoning="Build liquidity before taking on more market exposure.",
        action_items=("Move cash to high-yield savings", "Increase TSP contribution"),
        confidence=0.85,
    )


@pytest.fixture
def aggressive_rec() -> Recommendation:
    return Recommendation(
        provider="gemini",
        body=AGGRESSIVE_BODY,
        reasoning="Put idle money to work for long-term growth.",
        action_items=("Increase TSP contribution", "Consider Roth conversion"),
        confidence=0.8,
    )


# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------

@pytest.fixture
def consensus_config() -> ConsensusConfig:
    return ConsensusConfig()


@pytest.fixture
def consensus_engine(consensus_config) -> ConsensusEngine:
    return ConsensusEngine(consensus_config)


@pytest.fixture
def orchestration_config() -> OrchestrationConfig:
    return OrchestrationConfig(
        overall_call_timeout_seconds=1.0,
        retry_max_attempts=3,
        retry_base_delay_seconds=0.0,
    )


@pytest.fixture
def audit() -> AdvisoryAudit:
    return AdvisoryAudit()


@pytest.fixture
def history_store(sim_clock) -> InMemoryHistoryStore:
    return InMemoryHistoryStore(sim_clock)


@pytest.fixture
def throttle(sim_clock, history_store) -> ThrottleEngine:
    return ThrottleEngine(ThrottleConfig(), sim_clock, history_store)


class YieldingHistoryStore(InMemoryHistoryStore):
    """History store that suspends after each read and before each append.

    Concurrent callers interleave at every store access, the way they do
    against a networked database, so a read -> decide -> append sequence
    that is not serialized sees stale history.
    """

    def __init__(self, clock) -> None:
        super().__init__(clock)
        self.readers = 0
        self.peak_readers = 0

    async def list_entries(self, user_id, since=None):
        self.readers += 1
        self.peak_readers = max(self.peak_readers, self.readers)
        try:
            entries = await super().list_entries(user_id, since)
            await asyncio.sleep(0)
            return entries
        finally:
            self.readers -= 1

    async def append(self, entry) -> None:
        await asyncio.sleep(0)
        await super().append(entry)


@pytest.fixture
def yielding_store(sim_clock) -> YieldingHistoryStore:
    return YieldingHistoryStore(sim_clock)


@pytest.fixture
def contended_throttle(sim_clock, yielding_store) -> ThrottleEngine:
    return ThrottleEngine(ThrottleConfig(), sim_clock, yielding_store)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

@pytest.fixture
def restore_logging():
    """Undo setup_logging side effects on the root logger and structlog."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
