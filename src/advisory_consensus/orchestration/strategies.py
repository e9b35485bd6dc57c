"""Orchestration strategies — Panel and Hierarchical.

Both implement ``get_advisory(context) -> ConsensusResult`` under one
overall deadline that bounds the whole call, however many retry attempts
each advisor invocation uses internally.

Panel
    Conservative and aggressive advisors are invoked concurrently.  The
    call waits until both finish or the deadline passes; advisors still
    running at the deadline are cancelled and their results discarded.
    One survivor yields a degenerate result (score 0, no consensus)
    unless ``require_both_responses`` is set.

Hierarchical
    The primary runs first; its failure is total.  The backup then
    reviews the primary's text.  Backup failure degrades to a
    primary-only result (score 1.0, consensus, merged text = primary).

Advisor outcomes travel as :class:`AdvisorResult` values.  Only total
failure, or partial failure when both responses are required, raises.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from advisory_consensus.advisors.result import AdvisorResult
from advisory_consensus.consensus.engine import ConsensusEngine
from advisory_consensus.core.config import OrchestrationConfig
from advisory_consensus.core.enums import AdvisorRole, FailureKind, OrchestrationStrategy
from advisory_consensus.core.errors import (
    OrchestrationError,
    PartialFailureError,
    TotalFailureError,
)
from advisory_consensus.core.interfaces import IAdvisorPort
from advisory_consensus.core.models import ConsensusResult, PromptContext
from advisory_consensus.observability.audit import AdvisoryAudit

from .prompts import build_review_prompt
from .registry import AdvisorRegistry
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class AdvisoryStrategy:
    """Base strategy: deadline bookkeeping, retry wiring and audit.

    Subclasses implement :meth:`_run` and declare ``required_roles``.

    Parameters
    ----------
    registry:
        Role-keyed advisor ports, validated at construction.
    engine:
        Consensus engine shared by both strategies.
    config:
        Deadline, retry and partial-failure settings.
    audit:
        Receives one event per call.
    sleep:
        Backoff sleep passed to the retry policy.
    """

    kind: OrchestrationStrategy
    required_roles: tuple[AdvisorRole, ...] = ()

    def __init__(
        self,
        registry: AdvisorRegistry,
        engine: ConsensusEngine | None = None,
        config: OrchestrationConfig | None = None,
        audit: AdvisoryAudit | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        registry.require(*self.required_roles)
        self._registry = registry
        self._engine = engine or ConsensusEngine()
        self._config = config or OrchestrationConfig()
        self._audit = audit or AdvisoryAudit()
        self._retry = RetryPolicy(
            max_attempts=self._config.retry_max_attempts,
            base_delay=self._config.retry_base_delay_seconds,
            sleep=sleep,
        )

    @property
    def config(self) -> OrchestrationConfig:
        return self._config

    async def get_advisory(self, context: PromptContext) -> ConsensusResult:
        """Run the strategy within the overall deadline."""
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + self._config.overall_call_timeout_seconds
        try:
            result = await self._run(context, deadline)
        except OrchestrationError as exc:
            elapsed_ms = (loop.time() - started) * 1000
            logger.warning("%s orchestration failed: %s", self.kind.value, exc)
            self._audit.log_failure(self.kind, exc, elapsed_ms)
            raise
        elapsed_ms = (loop.time() - started) * 1000
        self._audit.log_orchestration(self.kind, result, elapsed_ms)
        return result

    async def _run(self, context: PromptContext, deadline: float) -> ConsensusResult:
        raise NotImplementedError

    # -- Helpers -------------------------------------------------------------

    async def _invoke(
        self, role: AdvisorRole, context: PromptContext
    ) -> AdvisorResult:
        """Retried call to the advisor wired to *role*, role stamped on output."""
        advisor: IAdvisorPort = self._registry[role]

        async def _call():
            return await advisor.recommend(context)

        result = await self._retry.invoke(_call, provider=advisor.name)
        if result.recommendation is not None:
            rec = result.recommendation.model_copy(update={"role": role})
            return AdvisorResult(
                provider=result.provider,
                recommendation=rec,
                attempts=result.attempts,
                role=role,
            )
        return AdvisorResult(
            provider=result.provider,
            error=result.error,
            failure_kind=result.failure_kind,
            attempts=result.attempts,
            role=role,
        )

    def _timed_out(self, role: AdvisorRole) -> AdvisorResult:
        name = self._registry[role].name
        return AdvisorResult(
            provider=name,
            error=asyncio.TimeoutError(
                f"{name} did not respond within "
                f"{self._config.overall_call_timeout_seconds:g}s"
            ),
            failure_kind=FailureKind.TIMEOUT,
            role=role,
        )

    @staticmethod
    def _remaining(deadline: float) -> float:
        return max(0.0, deadline - asyncio.get_running_loop().time())


# ---------------------------------------------------------------------------
# Panel
# ---------------------------------------------------------------------------


class PanelStrategy(AdvisoryStrategy):
    """Two peers polled concurrently; conservative is ``first``."""

    kind = OrchestrationStrategy.PANEL
    required_roles = (AdvisorRole.CONSERVATIVE, AdvisorRole.AGGRESSIVE)

    async def _run(self, context: PromptContext, deadline: float) -> ConsensusResult:
        roles = self.required_roles
        tasks = {
            role: asyncio.ensure_future(self._invoke(role, context))
            for role in roles
        }
        done, pending = await asyncio.wait(
            tasks.values(), timeout=self._remaining(deadline),
        )
        # Abandoned calls are cancelled, never awaited.
        for task in pending:
            task.cancel()

        results: dict[AdvisorRole, AdvisorResult] = {}
        for role, task in tasks.items():
            if task in done:
                results[role] = task.result()
            else:
                logger.warning(
                    "Panel deadline reached, abandoning %s",
                    self._registry[role].name,
                )
                results[role] = self._timed_out(role)

        first = results[AdvisorRole.CONSERVATIVE]
        second = results[AdvisorRole.AGGRESSIVE]

        if first.ok and second.ok:
            assert first.recommendation is not None and second.recommendation is not None
            return self._engine.build_consensus(
                first.recommendation, second.recommendation, OrchestrationStrategy.PANEL,
            )

        if not first.ok and not second.ok:
            raise TotalFailureError(
                f"No panel advisor responded ({first.describe()}; {second.describe()})"
            )

        survivor, missing = (first, second) if first.ok else (second, first)
        if self._config.require_both_responses:
            raise PartialFailureError(
                f"{missing.provider} unavailable and both responses are required "
                f"({missing.describe()})"
            )
        assert survivor.recommendation is not None
        logger.info(
            "Panel degraded to single response from %s (%s)",
            survivor.provider, missing.describe(),
        )
        return self._engine.build_single_response(
            survivor.recommendation,
            missing.provider,
            survivor_first=survivor is first,
            reason=_failure_label(missing),
        )


# ---------------------------------------------------------------------------
# Hierarchical
# ---------------------------------------------------------------------------


class HierarchicalStrategy(AdvisoryStrategy):
    """Primary generates, backup reviews.  Strictly sequential."""

    kind = OrchestrationStrategy.HIERARCHICAL
    required_roles = (AdvisorRole.PRIMARY, AdvisorRole.BACKUP)

    async def _run(self, context: PromptContext, deadline: float) -> ConsensusResult:
        primary = await self._invoke_before(AdvisorRole.PRIMARY, context, deadline)
        if not primary.ok:
            raise TotalFailureError(f"Primary advisor failed: {primary.describe()}")
        assert primary.recommendation is not None

        review_context = build_review_prompt(context, primary.recommendation, self._config)
        backup = await self._invoke_before(AdvisorRole.BACKUP, review_context, deadline)

        if backup.ok:
            assert backup.recommendation is not None
            return self._engine.build_corroboration(
                primary.recommendation, backup.recommendation,
            )

        if self._config.require_both_responses:
            raise PartialFailureError(
                f"Backup review unavailable and both responses are required "
                f"({backup.describe()})"
            )
        logger.info(
            "Backup review unavailable (%s); returning primary-only result",
            backup.describe(),
        )
        return self._engine.build_primary_only(
            primary.recommendation, backup.provider, _failure_label(backup),
        )

    async def _invoke_before(
        self, role: AdvisorRole, context: PromptContext, deadline: float
    ) -> AdvisorResult:
        remaining = self._remaining(deadline)
        if remaining <= 0:
            return self._timed_out(role)
        try:
            return await asyncio.wait_for(self._invoke(role, context), timeout=remaining)
        except asyncio.TimeoutError:
            logger.warning("%s timed out at the orchestration deadline", role.value)
            return self._timed_out(role)


def _failure_label(result: AdvisorResult) -> str:
    if result.failure_kind is None:
        return "failed"
    return {
        FailureKind.TIMEOUT: "timed out",
        FailureKind.TRANSIENT: "retries exhausted",
        FailureKind.FATAL: "provider error",
    }[result.failure_kind]


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


_STRATEGIES: dict[OrchestrationStrategy, type[AdvisoryStrategy]] = {
    OrchestrationStrategy.PANEL: PanelStrategy,
    OrchestrationStrategy.HIERARCHICAL: HierarchicalStrategy,
}


def build_strategy(
    registry: AdvisorRegistry,
    engine: ConsensusEngine | None = None,
    config: OrchestrationConfig | None = None,
    audit: AdvisoryAudit | None = None,
    *,
    kind: OrchestrationStrategy | None = None,
    sleep: Sleep = asyncio.sleep,
) -> AdvisoryStrategy:
    """Instantiate the strategy named by *kind* (default ``config.strategy``)."""
    cfg = config or OrchestrationConfig()
    cls = _STRATEGIES[kind or cfg.strategy]
    return cls(registry, engine, cfg, audit, sleep=sleep)
