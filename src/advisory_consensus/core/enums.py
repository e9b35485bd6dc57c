"""Enumerations used across the advisory subsystem."""

from enum import Enum


class AdvisorRole(str, Enum):
    """Role an advisor port is wired into at construction time."""

    PRIMARY = "primary"
    BACKUP = "backup"
    CONSERVATIVE = "conservative"
    AGGRESSIVE = "aggressive"


class OrchestrationStrategy(str, Enum):
    PANEL = "panel"  # two peers polled concurrently
    HIERARCHICAL = "hierarchical"  # primary generates, backup reviews


class ProviderKind(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    SCRIPTED = "scripted"


class FailureKind(str, Enum):
    """Why an advisor invocation produced no recommendation."""

    TRANSIENT = "transient"  # retries exhausted on network / rate-limit / timeout
    FATAL = "fatal"  # malformed response / authentication, never retried
    TIMEOUT = "timeout"  # abandoned at the orchestration deadline


class AdvisoryKind(str, Enum):
    ALERT = "alert"
    ADVICE = "advice"


class HistoryEventType(str, Enum):
    ALERT = "alert"
    ADVICE = "advice"
    USER_ACTION = "user_action"


class SuppressionReason(str, Enum):
    NONE = "none"
    COOLDOWN_ACTIVE = "cooldown_active"
    FREQUENCY_CAP_EXCEEDED = "frequency_cap_exceeded"
    POST_ACTION_HOLD = "post_action_hold"
    IMPACT_BELOW_THRESHOLD = "impact_below_threshold"


class AgreementLevel(str, Enum):
    """Agreement level a backup reviewer states about the primary."""

    STRONGLY_AGREE = "Strongly Agree"
    AGREE = "Agree"
    NEUTRAL = "Neutral"
    DISAGREE = "Disagree"
    STRONGLY_DISAGREE = "Strongly Disagree"


class OutcomeStatus(str, Enum):
    SURFACED = "surfaced"
    SUPPRESSED = "suppressed"
