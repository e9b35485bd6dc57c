"""Unit tests for HierarchicalStrategy.

Tests cover:
- Primary then backup, strictly sequential
- Review prompt carries primary text, confidence, original prompt and context
- Backup failure degrades to primary-only (merged text = primary body)
- Primary failure is total
- Deadline applies across both calls
"""

from __future__ import annotations

import pytest

from advisory_consensus.advisors.scripted import ScriptedAdvisor
from advisory_consensus.core.config import OrchestrationConfig
from advisory_consensus.core.enums import AdvisorRole, OrchestrationStrategy
from advisory_consensus.core.errors import (
    FatalProviderError,
    PartialFailureError,
    TotalFailureError,
    TransientProviderError,
)
from advisory_consensus.core.models import Recommendation
from advisory_consensus.orchestration.prompts import REVIEWER_SYSTEM_PROMPT
from advisory_consensus.orchestration.registry import AdvisorRegistry
from advisory_consensus.orchestration.strategies import HierarchicalStrategy, build_strategy

PRIMARY_BODY = """\
Shift 10% of the brokerage account into bonds.
- Move 10% of brokerage into bond funds
- Keep six months of expenses in cash"""

REVIEW_BODY = """\
- **Agreement Level**: Agree
- **Key Points of Agreement**: The bond shift fits the stated horizon
- **Concerns**:
  - Bond funds carry interest rate risk
- **Adjustments**:
  - Prefer short-duration bond funds
- **Final Recommendation**: Shift 10% of brokerage into short-duration bonds."""


def _make_primary_rec() -> Recommendation:
    return Recommendation(
        provider="claude",
        body=PRIMARY_BODY,
        reasoning="Shift 10% of the brokerage account into bonds.",
        action_items=(
            "Move 10% of brokerage into bond funds",
            "Keep six months of expenses in cash",
        ),
        confidence=0.9,
    )


def _make_strategy(primary, backup, config, engine, audit, sleep) -> HierarchicalStrategy:
    registry = AdvisorRegistry({
        AdvisorRole.PRIMARY: primary,
        AdvisorRole.BACKUP: backup,
    })
    return HierarchicalStrategy(registry, engine, config, audit, sleep=sleep)


class TestHierarchicalHappyPath:
    async def test_backup_reviews_primary(
        self, prompt_context, orchestration_config, consensus_engine, audit, no_sleep,
    ):
        primary = ScriptedAdvisor("claude", [_make_primary_rec()])
        backup = ScriptedAdvisor("gpt", [REVIEW_BODY])
        strategy = _make_strategy(primary, backup, orchestration_config, consensus_engine, audit, no_sleep)

        result = await strategy.get_advisory(prompt_context)

        assert result.strategy == OrchestrationStrategy.HIERARCHICAL
        assert result.first.provider == "claude"
        assert result.first.role == AdvisorRole.PRIMARY
        assert result.second.provider == "gpt"
        assert result.second.role == AdvisorRole.BACKUP
        assert result.metadata["agreement_level"] == "Agree"
        assert result.second_only_items == ("Prefer short-duration bond funds",)
        assert primary.calls == [prompt_context]
        assert len(backup.calls) == 1

    async def test_review_prompt_contents(
        self, prompt_context, orchestration_config, consensus_engine, audit, no_sleep,
    ):
        primary = ScriptedAdvisor("claude", [_make_primary_rec()])
        backup = ScriptedAdvisor("gpt", [REVIEW_BODY])
        strategy = _make_strategy(primary, backup, orchestration_config, consensus_engine, audit, no_sleep)

        await strategy.get_advisory(prompt_context)

        review = backup.calls[0]
        assert review.system_prompt == REVIEWER_SYSTEM_PROMPT
        assert PRIMARY_BODY in review.user_prompt
        assert "PRIMARY CONFIDENCE: 90%" in review.user_prompt
        assert prompt_context.user_prompt in review.user_prompt
        assert review.cacheable_context == prompt_context.cacheable_context
        assert review.user_id == prompt_context.user_id
        assert review.temperature == orchestration_config.backup_temperature
        assert review.max_tokens == orchestration_config.backup_max_tokens

    async def test_factory_builds_hierarchical(
        self, prompt_context, consensus_engine, audit, no_sleep,
    ):
        config = OrchestrationConfig(strategy=OrchestrationStrategy.HIERARCHICAL)
        registry = AdvisorRegistry({
            AdvisorRole.PRIMARY: ScriptedAdvisor("claude", [_make_primary_rec()]),
            AdvisorRole.BACKUP: ScriptedAdvisor("gpt", [REVIEW_BODY]),
        })
        strategy = build_strategy(registry, consensus_engine, config, audit, sleep=no_sleep)
        assert isinstance(strategy, HierarchicalStrategy)


class TestHierarchicalFailure:
    async def test_backup_fatal_returns_primary_only(
        self, prompt_context, orchestration_config, consensus_engine, audit, no_sleep,
    ):
        primary = ScriptedAdvisor("claude", [_make_primary_rec()])
        backup = ScriptedAdvisor("gpt", [FatalProviderError("gpt", "HTTP 400")])
        strategy = _make_strategy(primary, backup, orchestration_config, consensus_engine, audit, no_sleep)

        result = await strategy.get_advisory(prompt_context)

        assert result.agreement_score == 1.0
        assert result.reached_consensus is True
        assert result.merged_text == PRIMARY_BODY
        assert result.second is None
        assert len(backup.calls) == 1

    async def test_backup_exhausts_retries(
        self, prompt_context, orchestration_config, consensus_engine, audit, no_sleep,
    ):
        primary = ScriptedAdvisor("claude", [_make_primary_rec()])
        backup = ScriptedAdvisor("gpt", [TransientProviderError("gpt", "HTTP 503")])
        strategy = _make_strategy(primary, backup, orchestration_config, consensus_engine, audit, no_sleep)

        result = await strategy.get_advisory(prompt_context)
        assert result.merged_text == PRIMARY_BODY
        assert len(backup.calls) == orchestration_config.retry_max_attempts

    async def test_backup_failure_with_require_both(
        self, prompt_context, consensus_engine, audit, no_sleep,
    ):
        config = OrchestrationConfig(require_both_responses=True, overall_call_timeout_seconds=1.0)
        primary = ScriptedAdvisor("claude", [_make_primary_rec()])
        backup = ScriptedAdvisor("gpt", [FatalProviderError("gpt", "HTTP 400")])
        strategy = _make_strategy(primary, backup, config, consensus_engine, audit, no_sleep)

        with pytest.raises(PartialFailureError):
            await strategy.get_advisory(prompt_context)

    async def test_primary_failure_is_total(
        self, prompt_context, orchestration_config, consensus_engine, audit, no_sleep,
    ):
        primary = ScriptedAdvisor("claude", [FatalProviderError("claude", "HTTP 401")])
        backup = ScriptedAdvisor("gpt", [REVIEW_BODY])
        strategy = _make_strategy(primary, backup, orchestration_config, consensus_engine, audit, no_sleep)

        with pytest.raises(TotalFailureError):
            await strategy.get_advisory(prompt_context)
        # The backup is never consulted without a primary recommendation.
        assert backup.calls == []
        assert audit.get_events(event="advisory.failed")[0]["strategy"] == "hierarchical"

    async def test_primary_timeout_is_total(
        self, prompt_context, consensus_engine, audit, no_sleep,
    ):
        config = OrchestrationConfig(overall_call_timeout_seconds=0.05)
        primary = ScriptedAdvisor("claude", [_make_primary_rec()], delay=5.0)
        backup = ScriptedAdvisor("gpt", [REVIEW_BODY])
        strategy = _make_strategy(primary, backup, config, consensus_engine, audit, no_sleep)

        with pytest.raises(TotalFailureError):
            await strategy.get_advisory(prompt_context)
        assert primary.cancelled == 1

    async def test_deadline_spans_both_calls(
        self, prompt_context, consensus_engine, audit, no_sleep,
    ):
        config = OrchestrationConfig(overall_call_timeout_seconds=0.3)
        primary = ScriptedAdvisor("claude", [_make_primary_rec()], delay=0.2)
        backup = ScriptedAdvisor("gpt", [REVIEW_BODY], delay=0.2)
        strategy = _make_strategy(primary, backup, config, consensus_engine, audit, no_sleep)

        result = await strategy.get_advisory(prompt_context)

        # Each call fits the deadline alone; together they do not.
        assert result.second is None
        assert result.merged_text == PRIMARY_BODY
        assert backup.completed == 0
