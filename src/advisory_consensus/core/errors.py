"""Custom exception hierarchy for the advisory subsystem."""

from __future__ import annotations


class AdvisoryError(Exception):
    """Base exception for all advisory subsystem errors."""


# --- Configuration ---
class ConfigError(AdvisoryError):
    """Invalid or missing configuration (e.g. an unwired advisor role)."""


# --- Provider ---
class ProviderError(AdvisoryError):
    """An advisor port failed to produce a recommendation."""

    transient: bool = False

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class TransientProviderError(ProviderError):
    """Network error, rate limit or timeout. Safe to retry."""

    transient = True


class FatalProviderError(ProviderError):
    """Failure that will not go away on retry."""


class MalformedResponseError(FatalProviderError):
    """Provider answered but the body could not be interpreted."""


class ProviderAuthenticationError(FatalProviderError):
    """Provider rejected the credentials."""


class RetryExhaustedError(AdvisoryError):
    """Every attempt allowed by the retry policy failed transiently."""

    def __init__(self, provider: str, attempts: int, last_cause: BaseException) -> None:
        self.provider = provider
        self.attempts = attempts
        self.last_cause = last_cause
        super().__init__(
            f"[{provider}] gave up after {attempts} attempt(s): {last_cause}"
        )


# --- Orchestration ---
class OrchestrationError(AdvisoryError):
    """An orchestration call could not produce a consensus result."""


class PartialFailureError(OrchestrationError):
    """One advisor is unavailable and both responses are required."""


class TotalFailureError(OrchestrationError):
    """No advisor produced a usable recommendation."""


class AdvisoryUnavailableError(AdvisoryError):
    """User-facing failure. Never carries raw provider error text."""

    user_message = "Advisory temporarily unavailable. Please try again later."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)
