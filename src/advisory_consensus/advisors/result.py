"""Explicit success/failure result for one advisor invocation.

A provider being slow or down is routine, so orchestration passes these
values around instead of raising across the fan-out seam.
"""

from __future__ import annotations

from dataclasses import dataclass

from advisory_consensus.core.enums import AdvisorRole, FailureKind
from advisory_consensus.core.models import Recommendation


@dataclass(frozen=True)
class AdvisorResult:
    """Outcome of one retried advisor call.

    Exactly one of ``recommendation`` / ``error`` is set.
    """

    provider: str
    recommendation: Recommendation | None = None
    error: BaseException | None = None
    failure_kind: FailureKind | None = None
    attempts: int = 0
    role: AdvisorRole | None = None

    @property
    def ok(self) -> bool:
        return self.recommendation is not None

    @classmethod
    def success(
        cls, provider: str, recommendation: Recommendation, attempts: int
    ) -> AdvisorResult:
        return cls(provider=provider, recommendation=recommendation, attempts=attempts)

    @classmethod
    def failure(
        cls,
        provider: str,
        kind: FailureKind,
        error: BaseException,
        attempts: int,
    ) -> AdvisorResult:
        return cls(provider=provider, error=error, failure_kind=kind, attempts=attempts)

    def describe(self) -> str:
        if self.ok:
            return f"{self.provider}: ok after {self.attempts} attempt(s)"
        return f"{self.provider}: {self.failure_kind.value if self.failure_kind else 'failed'}"
