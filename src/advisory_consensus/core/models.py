"""Core domain models used across the advisory subsystem.

These are the canonical "truth models" for the system.  Recommendations
and consensus results are immutable once created; history entries only
allow reference-count / last-seen bookkeeping.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .enums import (
    AdvisorRole,
    AdvisoryKind,
    HistoryEventType,
    OrchestrationStrategy,
    SuppressionReason,
)
from .ids import new_id, text_fingerprint, utc_now


# ---------------------------------------------------------------------------
# Advisor input
# ---------------------------------------------------------------------------

class PromptContext(BaseModel):
    """Everything an advisor port needs to produce one recommendation.

    The cacheable context is opaque text assembled by collaborators
    (account snapshots, market summaries).  It is passed through verbatim.
    """

    model_config = ConfigDict(frozen=True)

    system_prompt: str = ""
    user_prompt: str
    cacheable_context: str | None = None
    max_tokens: int = Field(default=4000, gt=0)
    temperature: float = Field(default=0.3, ge=0.0, le=1.0)
    user_id: str = ""


# ---------------------------------------------------------------------------
# Advisor output
# ---------------------------------------------------------------------------

class ResourceCost(BaseModel):
    """Metered resources consumed by one advisor call."""

    model_config = ConfigDict(frozen=True)

    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    cost_usd: float = Field(default=0.0, ge=0.0)

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class Recommendation(BaseModel):
    """One advisor's output.

    Attributes
    ----------
    provider:
        Stable provider name of the advisor that produced it.
    role:
        Role the producing port was wired into (set by orchestration).
    body:
        Full free-text recommendation.
    reasoning:
        Free-text reasoning behind the recommendation.
    action_items:
        Ordered action-item strings extracted from the body.
    confidence:
        Advisor confidence, 0.0 - 1.0.
    """

    model_config = ConfigDict(frozen=True)

    recommendation_id: str = Field(default_factory=new_id)
    provider: str
    role: AdvisorRole | None = None
    model: str = ""
    body: str
    reasoning: str = ""
    action_items: tuple[str, ...] = ()
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    cost: ResourceCost = Field(default_factory=ResourceCost)
    generated_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ConsensusResult(BaseModel):
    """Outcome of merging (or corroborating) two recommendations.

    Exactly one of ``merged_text`` / ``disagreement_explanation`` is
    non-empty.  Source recommendations are held by value: each result owns
    deep copies of its inputs.  A side is ``None`` only when that advisor
    did not respond.
    """

    model_config = ConfigDict(frozen=True)

    consensus_id: str = Field(default_factory=new_id)
    strategy: OrchestrationStrategy
    first: Recommendation | None = None
    second: Recommendation | None = None
    agreement_score: float = Field(ge=0.0, le=1.0)
    reached_consensus: bool
    merged_text: str | None = None
    disagreement_explanation: str | None = None
    common_items: tuple[str, ...] = ()
    first_only_items: tuple[str, ...] = ()
    second_only_items: tuple[str, ...] = ()
    total_cost_usd: float = 0.0
    total_tokens: int = 0
    notes: tuple[str, ...] = ()
    generated_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _exactly_one_narrative(self) -> ConsensusResult:
        has_merged = bool(self.merged_text)
        has_disagreement = bool(self.disagreement_explanation)
        if has_merged == has_disagreement:
            raise ValueError(
                "ConsensusResult requires exactly one of merged_text or "
                "disagreement_explanation"
            )
        return self

    @property
    def narrative(self) -> str:
        """Whichever text is present: merged recommendation or disagreement."""
        return self.merged_text or self.disagreement_explanation or ""

    @property
    def action_items(self) -> tuple[str, ...]:
        return self.common_items + self.first_only_items + self.second_only_items

    @property
    def providers(self) -> list[str]:
        return [r.provider for r in (self.first, self.second) if r is not None]


# ---------------------------------------------------------------------------
# Throttling
# ---------------------------------------------------------------------------

class AdvisoryHistoryEntry(BaseModel):
    """A surfaced advisory or a recorded user action.

    Immutable.  The history store's ``touch`` swaps in a copy with a
    bumped ``reference_count`` and ``last_seen_at``.
    """

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=new_id)
    user_id: str
    topic: str
    event_type: HistoryEventType
    timestamp: datetime
    significant: bool = False
    expires_at: datetime
    summary: str = ""
    fingerprint: str = ""
    reference_count: int = 0
    last_seen_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class AdvisoryCandidate(BaseModel):
    """A consensus result proposed for surfacing to one user."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    topic: str
    consensus: ConsensusResult
    estimated_impact: float = 0.0  # Currency amount the advice moves or protects
    base_amount: float = 0.0  # Account balance / portfolio value it is measured against

    @property
    def impact_ratio(self) -> float:
        if self.base_amount <= 0:
            return 0.0
        return abs(self.estimated_impact) / self.base_amount

    @property
    def text(self) -> str:
        return self.consensus.narrative

    @property
    def fingerprint(self) -> str:
        return text_fingerprint(self.text)


class ThrottleDecision(BaseModel):
    """Verdict of the throttle engine for one candidate."""

    model_config = ConfigDict(frozen=True)

    allow_alert: bool
    allow_advice: bool
    reason: SuppressionReason = SuppressionReason.NONE
    alert_reason: SuppressionReason = SuppressionReason.NONE
    advice_reason: SuppressionReason = SuppressionReason.NONE

    @property
    def suppressed(self) -> bool:
        return not (self.allow_alert or self.allow_advice)

    def allows(self, kind: AdvisoryKind) -> bool:
        return self.allow_alert if kind == AdvisoryKind.ALERT else self.allow_advice
