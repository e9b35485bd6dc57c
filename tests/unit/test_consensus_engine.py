"""Unit tests for ConsensusEngine.

Tests cover:
- Panel scenario: overlap component, derived item sets, disagreement text
- Threshold boundary on agreement and confidence
- Merged text structure when consensus is reached
- Conservative tie-break note (role and sentiment based)
- Source recommendations are held by value
- Corroboration: stated level, concerns, adjustments, metadata
- Degenerate single-response and primary-only results
"""

from __future__ import annotations

import math

import pytest

from advisory_consensus.consensus.engine import ConsensusEngine
from advisory_consensus.core.config import ConsensusConfig
from advisory_consensus.core.enums import AdvisorRole, OrchestrationStrategy
from advisory_consensus.core.models import Recommendation, ResourceCost


def _make_rec(
    provider: str = "claude",
    body: str = "Keep building your emergency fund.",
    items: tuple[str, ...] = ("Build emergency fund",),
    confidence: float = 0.85,
    role: AdvisorRole | None = None,
    cost: ResourceCost | None = None,
) -> Recommendation:
    return Recommendation(
        provider=provider,
        role=role,
        body=body,
        reasoning=body.splitlines()[0],
        action_items=items,
        confidence=confidence,
        cost=cost or ResourceCost(),
    )


class TestBuildConsensusScenario:
    def test_overlap_component(self, consensus_engine, conservative_rec, aggressive_rec):
        breakdown, match = consensus_engine.score(conservative_rec, aggressive_rec)
        assert breakdown.action_overlap == pytest.approx(0.5)
        assert 0.4 * breakdown.action_overlap == pytest.approx(0.2)
        assert match.common() == ["Increase TSP contribution"]

    def test_derived_sets(self, consensus_engine, conservative_rec, aggressive_rec):
        result = consensus_engine.build_consensus(conservative_rec, aggressive_rec)
        assert result.common_items == ("Increase TSP contribution",)
        assert result.first_only_items == ("Move cash to high-yield savings",)
        assert result.second_only_items == ("Consider Roth conversion",)

    def test_no_consensus_yields_disagreement(self, consensus_engine, conservative_rec, aggressive_rec):
        result = consensus_engine.build_consensus(conservative_rec, aggressive_rec)
        assert result.agreement_score < 0.8
        assert result.reached_consensus is False
        assert result.merged_text is None
        assert "different perspectives" in result.disagreement_explanation
        assert "Move cash to high-yield savings" in result.disagreement_explanation
        assert "Consider Roth conversion" in result.disagreement_explanation

    def test_conservative_note_picks_lower_sentiment(
        self, consensus_engine, conservative_rec, aggressive_rec,
    ):
        result = consensus_engine.build_consensus(conservative_rec, aggressive_rec)
        # The conservative body leans cautious (consider, risk, review).
        assert "more cautious approach from claude" in result.disagreement_explanation

    def test_conservative_note_prefers_role(self, consensus_engine, conservative_rec, aggressive_rec):
        aggressive = aggressive_rec.model_copy(update={"role": AdvisorRole.AGGRESSIVE})
        conservative = conservative_rec.model_copy(update={"role": AdvisorRole.CONSERVATIVE})
        result = consensus_engine.build_consensus(aggressive, conservative)
        assert "more cautious approach from claude (conservative)" in result.disagreement_explanation

    def test_conservative_note_disabled(self, conservative_rec, aggressive_rec):
        engine = ConsensusEngine(ConsensusConfig(default_to_conservative=False))
        result = engine.build_consensus(conservative_rec, aggressive_rec)
        assert "When in doubt" not in result.disagreement_explanation

    def test_costs_aggregate(self, consensus_engine):
        a = _make_rec(cost=ResourceCost(input_tokens=100, output_tokens=50, cost_usd=0.01))
        b = _make_rec("gemini", cost=ResourceCost(input_tokens=10, output_tokens=5, cost_usd=0.002))
        result = consensus_engine.build_consensus(a, b)
        assert result.total_tokens == 165
        assert result.total_cost_usd == pytest.approx(0.012)

    def test_sources_held_by_value(self, consensus_engine, conservative_rec, aggressive_rec):
        result = consensus_engine.build_consensus(conservative_rec, aggressive_rec)
        assert result.first == conservative_rec
        assert result.first is not conservative_rec
        assert result.second is not aggressive_rec

    def test_argument_order_only_swaps_labels(self, consensus_engine, conservative_rec, aggressive_rec):
        ab = consensus_engine.build_consensus(conservative_rec, aggressive_rec)
        ba = consensus_engine.build_consensus(aggressive_rec, conservative_rec)
        assert ab.agreement_score == ba.agreement_score
        assert ab.first_only_items == ba.second_only_items
        assert ab.second_only_items == ba.first_only_items


class TestThresholdBoundary:
    def _pair(self, confidence: float) -> tuple[Recommendation, Recommendation]:
        a = _make_rec("claude", confidence=0.7)
        b = _make_rec("gemini", confidence=confidence)
        return a, b

    def _engine_at(self, a: Recommendation, b: Recommendation, bump: bool = False) -> ConsensusEngine:
        breakdown, _ = ConsensusEngine().score(a, b)
        threshold = breakdown.score
        if bump:
            threshold = math.nextafter(threshold, 2.0)
        return ConsensusEngine(ConsensusConfig(
            minimum_agreement_score=threshold,
            minimum_confidence_score=0.7,
        ))

    def test_exactly_at_thresholds_reaches_consensus(self):
        a, b = self._pair(0.7)
        result = self._engine_at(a, b).build_consensus(a, b)
        assert result.reached_consensus is True
        assert result.merged_text
        assert result.disagreement_explanation is None

    def test_score_just_below_threshold(self):
        a, b = self._pair(0.7)
        breakdown, _ = ConsensusEngine().score(a, b)
        if breakdown.score >= 1.0:
            # Identical sides score the maximum; lower the score instead.
            b = _make_rec("gemini", body="Keep building your emergency fund today.", confidence=0.7)
        engine = self._engine_at(a, b, bump=True)
        assert engine.build_consensus(a, b).reached_consensus is False

    def test_confidence_just_below_threshold(self):
        a, b = self._pair(0.7)
        engine = self._engine_at(a, b)
        below = b.model_copy(update={"confidence": math.nextafter(0.7, 0.0)})
        assert engine.build_consensus(a, below).reached_consensus is False


class TestMergedText:
    def test_lists_common_actions_and_both_perspectives(self):
        body = "Stay the course with a diversified index portfolio.\n- Rebalance annually"
        a = _make_rec("claude", body=body, items=("Rebalance annually",), role=AdvisorRole.CONSERVATIVE)
        b = _make_rec("gemini", body=body, items=("Rebalance annually",), role=AdvisorRole.AGGRESSIVE)
        result = ConsensusEngine().build_consensus(a, b)
        assert result.reached_consensus
        text = result.merged_text
        assert "**Recommended Actions:**" in text
        assert "- Rebalance annually" in text
        assert "claude (conservative) perspective" in text
        assert "gemini (aggressive) perspective" in text
        assert text.index("Recommended Actions") < text.index("perspective")


class TestCorroboration:
    PRIMARY = (
        "Shift 10% of the brokerage account into bonds.\n"
        "- Move 10% of brokerage into bond funds\n"
        "- Keep six months of expenses in cash"
    )

    def test_strong_agreement_corroborates(self, consensus_engine):
        primary = _make_rec("claude", body=self.PRIMARY, items=(
            "Move 10% of brokerage into bond funds",
            "Keep six months of expenses in cash",
        ), confidence=0.9)
        backup_body = (
            "- **Agreement Level**: Strongly Agree\n"
            "- **Key Points of Agreement**: Shift brokerage into bonds, keep cash reserve\n"
            "- **Concerns**:\n"
            "  - Bond funds carry interest rate risk\n"
            "- **Adjustments**:\n"
            "  - Prefer short-duration bond funds\n"
            "- **Final Recommendation**: Shift 10% of brokerage into bonds and keep six months of cash."
        )
        backup = _make_rec("gpt", body=backup_body, items=(), confidence=0.8)
        result = consensus_engine.build_corroboration(primary, backup)

        assert result.strategy == OrchestrationStrategy.HIERARCHICAL
        assert result.metadata["agreement_level"] == "Strongly Agree"
        assert result.metadata["mode"] == "corroboration"
        breakdown = result.metadata["scoring"]
        assert breakdown["action_overlap"] == pytest.approx(1.0)
        assert result.second_only_items == ("Prefer short-duration bond funds",)

        if result.reached_consensus:
            assert self.PRIMARY in result.merged_text
            assert "corroborated (Strongly Agree)" in result.merged_text
            assert "Bond funds carry interest rate risk" in result.merged_text
        else:
            assert "Strongly Agree" in result.disagreement_explanation

    def test_corroboration_reached_with_aligned_texts(self):
        engine = ConsensusEngine(ConsensusConfig(minimum_agreement_score=0.6))
        primary = _make_rec("claude", body=self.PRIMARY, items=(
            "Move 10% of brokerage into bond funds",
        ), confidence=0.9)
        backup_body = (
            "**Agreement Level**: Agree\n"
            "Shift 10% of the brokerage account into bonds.\n"
            "- Move 10% of brokerage into bond funds\n"
            "- Keep six months of expenses in cash"
        )
        backup = _make_rec("gpt", body=backup_body, items=(
            "Move 10% of brokerage into bond funds",
            "Keep six months of expenses in cash",
        ), confidence=0.8)
        result = engine.build_corroboration(primary, backup)
        assert result.reached_consensus
        assert result.merged_text.startswith("**Primary recommendation (claude):**")
        assert "corroborated (Agree)" in result.merged_text
        assert result.common_items == ("Move 10% of brokerage into bond funds",)

    def test_disagreement_embeds_concerns_and_full_response(self, consensus_engine):
        primary = _make_rec("claude", body=self.PRIMARY, confidence=0.9)
        backup_body = (
            "**Agreement Level**: Strongly Disagree\n"
            "**Concerns**\n"
            "- The brokerage balance was misread as 200,000\n"
            "- Bonds do not fit a 2-year goal\n"
            "**Final Recommendation**: Keep the brokerage allocation unchanged."
        )
        backup = _make_rec("gpt", body=backup_body, items=(), confidence=0.8)
        result = consensus_engine.build_corroboration(primary, backup)
        assert result.reached_consensus is False
        text = result.disagreement_explanation
        assert "Strongly Disagree" in text
        assert "- The brokerage balance was misread as 200,000" in text
        assert backup_body in text
        assert result.metadata["backup_concerns"] == 2


class TestDegenerateResults:
    def test_single_response(self, consensus_engine, aggressive_rec):
        result = consensus_engine.build_single_response(
            aggressive_rec, "claude", survivor_first=False, reason="timed out",
        )
        assert result.agreement_score == 0.0
        assert result.reached_consensus is False
        assert result.first is None
        assert result.second == aggressive_rec
        assert result.action_items == aggressive_rec.action_items
        assert result.second_only_items == aggressive_rec.action_items
        assert "Only gemini responded" in result.disagreement_explanation

    def test_primary_only(self, consensus_engine, conservative_rec):
        result = consensus_engine.build_primary_only(conservative_rec, "gpt", "provider error")
        assert result.agreement_score == 1.0
        assert result.reached_consensus is True
        assert result.merged_text == conservative_rec.body
        assert result.second is None
        assert any("unavailable" in n for n in result.notes)
