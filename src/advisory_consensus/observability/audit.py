"""Advisory audit trail.

Emits one structured event per orchestration call and per throttle
decision:

    orchestrated -> throttled (suppressed_by_policy or surfaced)
    orchestrated -> failed

Every event is tagged with the current trace_id for end-to-end correlation.
Suppression events carry ``suppressed_by_policy=True`` so they never read
as failures.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from advisory_consensus.core.enums import OrchestrationStrategy
from advisory_consensus.core.models import (
    AdvisoryCandidate,
    ConsensusResult,
    ThrottleDecision,
)

from .logger import get_logger, get_trace_id

log = get_logger(__name__)


class AdvisoryAudit:
    """Logs and stores advisory events for observability."""

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled
        self._events: list[dict[str, Any]] = []

    @property
    def events(self) -> list[dict[str, Any]]:
        return list(self._events)

    def log_orchestration(
        self,
        strategy: OrchestrationStrategy,
        result: ConsensusResult,
        elapsed_ms: float,
    ) -> None:
        """Log a completed orchestration call."""
        if not self._enabled:
            return
        self._emit("advisory.orchestrated", {
            "strategy": strategy.value,
            "elapsed_ms": round(elapsed_ms, 1),
            "agreement_score": round(result.agreement_score, 4),
            "reached_consensus": result.reached_consensus,
            "total_cost_usd": round(result.total_cost_usd, 6),
            "total_tokens": result.total_tokens,
            "providers": result.providers,
            "consensus_id": result.consensus_id,
        })

    def log_failure(
        self,
        strategy: OrchestrationStrategy,
        error: BaseException,
        elapsed_ms: float,
    ) -> None:
        """Log an orchestration call that produced nothing."""
        if not self._enabled:
            return
        self._emit("advisory.failed", {
            "strategy": strategy.value,
            "elapsed_ms": round(elapsed_ms, 1),
            "error_type": type(error).__name__,
        })

    def log_throttle(
        self,
        candidate: AdvisoryCandidate,
        decision: ThrottleDecision,
    ) -> None:
        """Log a throttle verdict. Suppression is tagged, not an error."""
        if not self._enabled:
            return
        self._emit("advisory.throttled", {
            "user_id": candidate.user_id,
            "topic": candidate.topic,
            "consensus_id": candidate.consensus.consensus_id,
            "allow_alert": decision.allow_alert,
            "allow_advice": decision.allow_advice,
            "reason": decision.reason.value,
            "alert_reason": decision.alert_reason.value,
            "advice_reason": decision.advice_reason.value,
            "suppressed_by_policy": decision.suppressed,
        })

    def get_events(
        self, event: str | None = None, trace_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Get audit trail, optionally filtered by event name and trace_id."""
        return [
            e for e in self._events
            if (event is None or e["event"] == event)
            and (trace_id is None or e["trace_id"] == trace_id)
        ]

    def clear(self) -> None:
        self._events.clear()

    def _emit(self, event: str, data: dict[str, Any]) -> None:
        entry = {
            "event": event,
            "trace_id": get_trace_id(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **data,
        }
        self._events.append(entry)
        log.info(event, **data)
