"""Advisory service — orchestrate, throttle, record.

Control flow for one request::

    strategy.get_advisory(context)          -> ConsensusResult
    throttle.decide_and_record(candidate)   -> ThrottleDecision
    AdvisoryOutcome(SURFACED | SUPPRESSED)

Total failure reaches the caller as :class:`AdvisoryUnavailableError`
with a fixed user-facing message; provider error text is logged, never
shown.  Suppression is an ordinary outcome, not an error.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict

from advisory_consensus.consensus.engine import ConsensusEngine
from advisory_consensus.core.clock import IClock
from advisory_consensus.core.config import Settings
from advisory_consensus.core.enums import AdvisoryKind, OutcomeStatus
from advisory_consensus.core.errors import AdvisoryUnavailableError, OrchestrationError
from advisory_consensus.core.interfaces import IAdvisorPort, IHistoryStore
from advisory_consensus.core.models import (
    AdvisoryCandidate,
    AdvisoryHistoryEntry,
    ConsensusResult,
    PromptContext,
    ThrottleDecision,
)
from advisory_consensus.observability.audit import AdvisoryAudit
from advisory_consensus.observability.logger import advisory_context
from advisory_consensus.orchestration.registry import AdvisorRegistry
from advisory_consensus.orchestration.strategies import AdvisoryStrategy, build_strategy
from advisory_consensus.throttle.engine import ThrottleEngine

logger = logging.getLogger(__name__)

NO_NEW_ADVISORY = "No new advisory at this time."


class AdvisoryOutcome(BaseModel):
    """What the caller receives for one advisory request."""

    model_config = ConfigDict(frozen=True)

    status: OutcomeStatus
    consensus: ConsensusResult
    decision: ThrottleDecision
    trace_id: str = ""

    @property
    def surfaced(self) -> bool:
        return self.status == OutcomeStatus.SURFACED

    @property
    def message(self) -> str:
        """Text to show the user: the advisory, or a neutral no-op line."""
        if not self.surfaced:
            return NO_NEW_ADVISORY
        return self.consensus.narrative

    def allows(self, kind: AdvisoryKind) -> bool:
        return self.decision.allows(kind)


class AdvisoryService:
    """Entry point composing strategy, throttle and audit.

    Parameters
    ----------
    strategy:
        Panel or hierarchical orchestration.
    throttle:
        Throttle engine owning the history store.
    audit:
        Structured event sink; shared with *strategy* when built via
        :meth:`from_settings`.
    """

    def __init__(
        self,
        strategy: AdvisoryStrategy,
        throttle: ThrottleEngine,
        audit: AdvisoryAudit | None = None,
    ) -> None:
        self._strategy = strategy
        self._throttle = throttle
        self._audit = audit or AdvisoryAudit()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        advisors_by_name: dict[str, IAdvisorPort],
        *,
        clock: IClock | None = None,
        store: IHistoryStore | None = None,
        **strategy_kwargs: Any,
    ) -> AdvisoryService:
        """Wire a service from settings and named advisor ports."""
        audit = AdvisoryAudit(enabled=settings.observability.audit_enabled)
        registry = AdvisorRegistry.from_settings(settings, advisors_by_name)
        strategy = build_strategy(
            registry,
            ConsensusEngine(settings.consensus),
            settings.orchestration,
            audit,
            **strategy_kwargs,
        )
        throttle = ThrottleEngine(settings.throttle, clock, store)
        return cls(strategy, throttle, audit)

    @property
    def audit(self) -> AdvisoryAudit:
        return self._audit

    @property
    def throttle(self) -> ThrottleEngine:
        return self._throttle

    async def run(
        self,
        context: PromptContext,
        *,
        user_id: str,
        topic: str,
        estimated_impact: float = 0.0,
        base_amount: float = 0.0,
    ) -> AdvisoryOutcome:
        """Produce, throttle and record one advisory for *user_id*.

        Log records and audit events emitted while the request runs carry
        its trace id, user, topic and strategy.
        """
        with advisory_context(
            user_id=user_id, topic=topic, strategy=self._strategy.kind.value,
        ) as trace_id:
            try:
                consensus = await self._strategy.get_advisory(context)
            except OrchestrationError as exc:
                logger.error("Advisory unavailable for %s/%s: %s", user_id, topic, exc)
                raise AdvisoryUnavailableError() from exc

            candidate = AdvisoryCandidate(
                user_id=user_id,
                topic=topic,
                consensus=consensus,
                estimated_impact=estimated_impact,
                base_amount=base_amount,
            )
            decision = await self._throttle.decide_and_record(candidate)
            self._audit.log_throttle(candidate, decision)

            status = OutcomeStatus.SUPPRESSED if decision.suppressed else OutcomeStatus.SURFACED
            logger.info(
                "Advisory %s for %s/%s (score=%.3f consensus=%s reason=%s)",
                status.value, user_id, topic, consensus.agreement_score,
                consensus.reached_consensus, decision.reason.value,
            )
        return AdvisoryOutcome(
            status=status,
            consensus=consensus,
            decision=decision,
            trace_id=trace_id,
        )

    async def record_user_action(
        self,
        user_id: str,
        topic: str,
        summary: str = "",
        *,
        significant: bool = True,
        amount: float | None = None,
    ) -> AdvisoryHistoryEntry:
        """Remember a user action; significant ones hold further advice."""
        if amount is not None:
            summary = f"{summary} (amount: {amount:,.2f})".strip()
        return await self._throttle.record_user_action(
            user_id, topic, summary, significant=significant,
        )
