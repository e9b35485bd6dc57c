"""Consensus engine — merges or corroborates two recommendations.

Two entry points share one scoring machinery (``consensus.scoring``):

``build_consensus(a, b)``
    Peer mode.  Both sides are scored symmetrically; the agreement
    score does not depend on argument order.

``build_corroboration(primary, backup)``
    Review mode.  The backup is assessed for agreement *with* the
    primary rather than equality to it: the action-item signal becomes
    the better of the backup's stated agreement level and the share of
    the backup's own items that match a primary item.

Consensus is reached iff ``score >= minimum_agreement_score`` and both
confidences are ``>= minimum_confidence_score``.  A reached consensus
yields merged text; otherwise a disagreement explanation, never both.

The engine also builds the two degenerate results orchestration needs
when a side is missing (single panel survivor, primary-only).
"""

from __future__ import annotations

import logging
from typing import Any

from advisory_consensus.core.config import ConsensusConfig
from advisory_consensus.core.enums import AdvisorRole, OrchestrationStrategy
from advisory_consensus.core.models import ConsensusResult, Recommendation

from .review import BackupReview, parse_review
from .scoring import (
    AgreementBreakdown,
    ItemMatch,
    keyword_jaccard,
    match_items,
    sentiment_alignment,
    sentiment_value,
)

logger = logging.getLogger(__name__)

_NO_ITEMS = "- (no additional actions)"


class ConsensusEngine:
    """Scores two recommendations and builds a :class:`ConsensusResult`.

    Parameters
    ----------
    config:
        Thresholds, lexicons and tie-break preference.
    """

    def __init__(self, config: ConsensusConfig | None = None) -> None:
        self._config = config or ConsensusConfig()

    @property
    def config(self) -> ConsensusConfig:
        return self._config

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def sentiment(self, rec: Recommendation) -> int:
        return sentiment_value(
            rec.body, self._config.positive_terms, self._config.cautious_terms,
        )

    def score(self, a: Recommendation, b: Recommendation) -> tuple[AgreementBreakdown, ItemMatch]:
        """Peer agreement breakdown and the item matching behind it."""
        match = match_items(a.action_items, b.action_items, self._config.similarity_threshold)
        sent_a = self.sentiment(a)
        sent_b = self.sentiment(b)
        breakdown = AgreementBreakdown(
            action_overlap=match.overlap_score(),
            keyword_overlap=keyword_jaccard(a.body, b.body),
            sentiment_alignment=sentiment_alignment(
                sent_a, sent_b, self._config.sentiment_scale,
            ),
            sentiment_a=sent_a,
            sentiment_b=sent_b,
        )
        return breakdown, match

    def reaches_consensus(self, score: float, a: Recommendation, b: Recommendation) -> bool:
        cfg = self._config
        return (
            score >= cfg.minimum_agreement_score
            and a.confidence >= cfg.minimum_confidence_score
            and b.confidence >= cfg.minimum_confidence_score
        )

    # ------------------------------------------------------------------
    # Peer mode
    # ------------------------------------------------------------------

    def build_consensus(
        self,
        a: Recommendation,
        b: Recommendation,
        strategy: OrchestrationStrategy = OrchestrationStrategy.PANEL,
    ) -> ConsensusResult:
        breakdown, match = self.score(a, b)
        score = breakdown.score
        reached = self.reaches_consensus(score, a, b)

        common = match.common()
        only_a = match.only_a()
        only_b = match.only_b()

        merged: str | None = None
        disagreement: str | None = None
        if reached:
            merged = self._merged_text(a, b, common, score)
        else:
            disagreement = self._disagreement_text(a, b, only_a, only_b, score, breakdown)

        logger.info(
            "Consensus %s vs %s: reached=%s score=%.3f common=%d only=%d/%d",
            a.provider, b.provider, reached, score, len(common), len(only_a), len(only_b),
        )
        return ConsensusResult(
            strategy=strategy,
            first=a.model_copy(deep=True),
            second=b.model_copy(deep=True),
            agreement_score=score,
            reached_consensus=reached,
            merged_text=merged,
            disagreement_explanation=disagreement,
            common_items=tuple(common),
            first_only_items=tuple(only_a),
            second_only_items=tuple(only_b),
            total_cost_usd=a.cost.cost_usd + b.cost.cost_usd,
            total_tokens=a.cost.total_tokens + b.cost.total_tokens,
            metadata={"mode": "consensus", "scoring": breakdown.as_dict()},
        )

    def _merged_text(
        self,
        a: Recommendation,
        b: Recommendation,
        common: list[str],
        score: float,
    ) -> str:
        lines = [f"Both advisors agree (agreement: {score:.0%}).", ""]
        if common:
            lines.append("**Recommended Actions:**")
            lines.extend(f"- {item}" for item in common)
            lines.append("")
        lines.append(f"**{_heading(a)} perspective:**")
        lines.append(a.reasoning or a.body)
        lines.append("")
        lines.append(f"**{_heading(b)} perspective:**")
        lines.append(b.reasoning or b.body)
        return "\n".join(lines)

    def _disagreement_text(
        self,
        a: Recommendation,
        b: Recommendation,
        only_a: list[str],
        only_b: list[str],
        score: float,
        breakdown: AgreementBreakdown,
    ) -> str:
        lines = [f"The advisors have different perspectives (agreement: {score:.0%}).", ""]
        for rec, items in ((a, only_a), (b, only_b)):
            lines.append(f"**{_heading(rec)} recommends:**")
            lines.extend(_bullets(items))
            lines.append("")
        closing = (
            "**What this means:** Weigh your risk tolerance and goals when "
            "choosing between these approaches."
        )
        cautious = self._more_cautious(a, b, breakdown.sentiment_a, breakdown.sentiment_b)
        if self._config.default_to_conservative and cautious is not None:
            closing += f" When in doubt, the more cautious approach from {_heading(cautious)} may be safer."
        lines.append(closing)
        return "\n".join(lines)

    @staticmethod
    def _more_cautious(
        a: Recommendation,
        b: Recommendation,
        sentiment_a: int,
        sentiment_b: int,
    ) -> Recommendation | None:
        """Side designated conservative, else the lower-sentiment side."""
        for rec in (a, b):
            if rec.role == AdvisorRole.CONSERVATIVE:
                return rec
        if sentiment_a < sentiment_b:
            return a
        if sentiment_b < sentiment_a:
            return b
        return None

    # ------------------------------------------------------------------
    # Corroboration mode
    # ------------------------------------------------------------------

    def build_corroboration(
        self,
        primary: Recommendation,
        backup: Recommendation,
    ) -> ConsensusResult:
        review = parse_review(backup.body)
        match = match_items(
            primary.action_items, backup.action_items, self._config.similarity_threshold,
        )
        coverage = len(match.pairs) / len(backup.action_items) if backup.action_items else 0.0
        sent_p = self.sentiment(primary)
        sent_b = self.sentiment(backup)
        breakdown = AgreementBreakdown(
            action_overlap=max(review.score, coverage),
            keyword_overlap=keyword_jaccard(primary.body, backup.body),
            sentiment_alignment=sentiment_alignment(
                sent_p, sent_b, self._config.sentiment_scale,
            ),
            sentiment_a=sent_p,
            sentiment_b=sent_b,
        )
        score = breakdown.score
        reached = self.reaches_consensus(score, primary, backup)

        merged: str | None = None
        disagreement: str | None = None
        if reached:
            merged = self._corroborated_text(primary, backup, review)
        else:
            disagreement = self._corroboration_disagreement(primary, backup, review, breakdown)

        metadata: dict[str, Any] = {
            "mode": "corroboration",
            "agreement_level": review.level.value,
            "agreement_level_stated": review.stated,
            "stated_agreement_score": review.score,
            "backup_concerns": len(review.concerns),
            "backup_adjustments": len(review.adjustments),
            "scoring": breakdown.as_dict(),
        }
        logger.info(
            "Corroboration %s by %s: reached=%s score=%.3f level=%s concerns=%d",
            primary.provider, backup.provider, reached, score,
            review.level.value, len(review.concerns),
        )
        return ConsensusResult(
            strategy=OrchestrationStrategy.HIERARCHICAL,
            first=primary.model_copy(deep=True),
            second=backup.model_copy(deep=True),
            agreement_score=score,
            reached_consensus=reached,
            merged_text=merged,
            disagreement_explanation=disagreement,
            common_items=tuple(match.common()),
            first_only_items=tuple(match.only_a()),
            second_only_items=review.adjustments,
            total_cost_usd=primary.cost.cost_usd + backup.cost.cost_usd,
            total_tokens=primary.cost.total_tokens + backup.cost.total_tokens,
            metadata=metadata,
        )

    def _corroborated_text(
        self,
        primary: Recommendation,
        backup: Recommendation,
        review: BackupReview,
    ) -> str:
        lines = [f"**Primary recommendation ({primary.provider}):**", "", primary.body, ""]
        if review.score >= self._config.corroboration_threshold:
            verdict = f"corroborated ({review.level.value})"
        else:
            verdict = f"accepted with reservations ({review.level.value})"
        lines.append(f"**Backup review ({backup.provider}):** {verdict}")
        if review.adjustments:
            lines.append("")
            lines.append("**Suggested adjustments:**")
            lines.extend(f"- {item}" for item in review.adjustments)
        if review.concerns:
            lines.append("")
            lines.append("**Cautions:**")
            lines.extend(f"- {item}" for item in review.concerns)
        return "\n".join(lines)

    def _corroboration_disagreement(
        self,
        primary: Recommendation,
        backup: Recommendation,
        review: BackupReview,
        breakdown: AgreementBreakdown,
    ) -> str:
        lines = [
            f"**Backup review ({backup.provider}): {review.level.value}**",
            "",
            f"The backup advisor did not corroborate the primary recommendation "
            f"from {primary.provider}.",
        ]
        if review.concerns:
            lines.append("")
            lines.append("**Concerns raised:**")
            lines.extend(f"- {item}" for item in review.concerns)
        closing = (
            "**What this means:** The primary recommendation may need adjustment. "
            "Review the backup response below before acting."
        )
        cautious = self._more_cautious(primary, backup, breakdown.sentiment_a, breakdown.sentiment_b)
        if self._config.default_to_conservative and cautious is not None:
            closing += f" When in doubt, the more cautious approach from {_heading(cautious)} may be safer."
        lines.extend(["", closing, "", "**Backup response:**", backup.body])
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Degenerate results
    # ------------------------------------------------------------------

    def build_single_response(
        self,
        survivor: Recommendation,
        missing_provider: str,
        *,
        survivor_first: bool,
        strategy: OrchestrationStrategy = OrchestrationStrategy.PANEL,
        reason: str = "",
    ) -> ConsensusResult:
        """Panel result when only *survivor* responded.

        Score 0, no consensus; the survivor's items sit in its own only-set.
        """
        items = tuple(survivor.action_items)
        explanation = [
            f"Only {survivor.provider} responded; {missing_provider} was unavailable"
            + (f" ({reason})." if reason else "."),
            "",
            f"**{_heading(survivor)} recommends:**",
        ]
        explanation.extend(_bullets(items))
        explanation.extend([
            "",
            "**What this means:** This advice has not been cross-checked by a "
            "second advisor.",
        ])
        copy = survivor.model_copy(deep=True)
        return ConsensusResult(
            strategy=strategy,
            first=copy if survivor_first else None,
            second=None if survivor_first else copy,
            agreement_score=0.0,
            reached_consensus=False,
            disagreement_explanation="\n".join(explanation),
            first_only_items=items if survivor_first else (),
            second_only_items=() if survivor_first else items,
            total_cost_usd=survivor.cost.cost_usd,
            total_tokens=survivor.cost.total_tokens,
            notes=(f"{missing_provider} did not respond",),
            metadata={"mode": "single_response", "missing_provider": missing_provider},
        )

    def build_primary_only(
        self,
        primary: Recommendation,
        backup_provider: str,
        reason: str = "",
    ) -> ConsensusResult:
        """Hierarchical result when the backup review is unavailable."""
        note = f"Backup corroboration from {backup_provider} was unavailable"
        note += f" ({reason}); " if reason else "; "
        note += "proceeding with the primary recommendation only."
        return ConsensusResult(
            strategy=OrchestrationStrategy.HIERARCHICAL,
            first=primary.model_copy(deep=True),
            second=None,
            agreement_score=1.0,
            reached_consensus=True,
            merged_text=primary.body or note,
            common_items=tuple(primary.action_items),
            total_cost_usd=primary.cost.cost_usd,
            total_tokens=primary.cost.total_tokens,
            notes=(note,),
            metadata={"mode": "primary_only", "missing_provider": backup_provider},
        )


def _heading(rec: Recommendation) -> str:
    if rec.role is not None:
        return f"{rec.provider} ({rec.role.value})"
    return rec.provider


def _bullets(items: list[str] | tuple[str, ...]) -> list[str]:
    if not items:
        return [_NO_ITEMS]
    return [f"- {item}" for item in items]
