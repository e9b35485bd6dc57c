"""Retry policy for single advisor invocations.

Wraps one Advisor Port call with bounded exponential backoff.  Attempt
``n`` that fails transiently is followed by a sleep of
``base_delay * 2 ** (n - 1)`` before attempt ``n + 1``.

Classification:

- ``TransientProviderError`` (and bare ``TimeoutError`` / ``ConnectionError``)
  is retried until ``max_attempts`` is reached, then reported as
  ``FailureKind.TRANSIENT`` carrying a ``RetryExhaustedError`` whose
  ``last_cause`` is the final underlying error.
- Anything else is fatal and returned immediately without retrying.

The policy holds no state between calls, so one instance can wrap any
number of concurrent invocations.  It does not own cancellation: an
outer deadline cancelling the surrounding task interrupts a pending
backoff sleep like any other await.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from advisory_consensus.advisors.result import AdvisorResult
from advisory_consensus.core.enums import FailureKind
from advisory_consensus.core.errors import ProviderError, RetryExhaustedError
from advisory_consensus.core.models import Recommendation

logger = logging.getLogger(__name__)

Operation = Callable[[], Awaitable[Recommendation]]
Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay to wait after failed attempt number *attempt* (1-based)."""
    return base_delay * (2 ** (attempt - 1))


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, ProviderError):
        return exc.transient
    return isinstance(exc, (TimeoutError, ConnectionError))


async def invoke_with_retry(
    operation: Operation,
    max_attempts: int,
    base_delay: float,
    *,
    provider: str = "",
    sleep: Sleep = asyncio.sleep,
) -> AdvisorResult:
    """Run *operation* until it succeeds, fails fatally, or attempts run out.

    Parameters
    ----------
    operation:
        Zero-argument coroutine factory; called once per attempt.
    max_attempts:
        Attempt ceiling (>= 1).
    base_delay:
        Backoff base in seconds.
    provider:
        Provider name used for logging and failure reporting.
    sleep:
        Awaitable sleep; injectable so tests never wait on real backoff.

    Returns
    -------
    AdvisorResult
        Success with the recommendation, or a classified failure.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        try:
            recommendation = await operation()
        except Exception as exc:
            if not is_transient(exc):
                logger.warning(
                    "%s fatal failure on attempt %d: %s",
                    provider, attempt, exc,
                )
                return AdvisorResult.failure(provider, FailureKind.FATAL, exc, attempt)

            if attempt == max_attempts:
                logger.warning(
                    "%s retries exhausted after %d attempt(s): %s",
                    provider, attempt, exc,
                )
                exhausted = RetryExhaustedError(provider, attempt, exc)
                return AdvisorResult.failure(
                    provider, FailureKind.TRANSIENT, exhausted, attempt,
                )

            wait = backoff_delay(attempt, base_delay)
            logger.info(
                "%s transient failure (attempt %d/%d), retrying in %.2fs: %s",
                provider, attempt, max_attempts, wait, exc,
            )
            await sleep(wait)
            continue

        return AdvisorResult.success(provider, recommendation, attempt)

    # Unreachable: the loop always returns.
    raise AssertionError("retry loop exited without a result")


@dataclass(frozen=True)
class RetryPolicy:
    """Configured retry ceiling and backoff base."""

    max_attempts: int = 3
    base_delay: float = 1.0
    sleep: Sleep = field(default=asyncio.sleep, compare=False, repr=False)

    async def invoke(self, operation: Operation, *, provider: str = "") -> AdvisorResult:
        return await invoke_with_retry(
            operation,
            self.max_attempts,
            self.base_delay,
            provider=provider,
            sleep=self.sleep,
        )
