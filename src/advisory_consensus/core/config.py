"""Configuration management.

Loads from TOML config files + environment variables.
Uses pydantic-settings for validation and env var overriding, so every
threshold below can be retuned without a code change.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import tomli
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, EnvSettingsSource, SettingsConfigDict

from .enums import AdvisorRole, OrchestrationStrategy, ProviderKind


# ---------------------------------------------------------------------------
# Sentiment lexicons
# ---------------------------------------------------------------------------

DEFAULT_POSITIVE_TERMS: list[str] = [
    "good", "great", "excellent", "strong", "recommend",
    "beneficial", "advantageous", "optimal",
]

DEFAULT_CAUTIOUS_TERMS: list[str] = [
    "careful", "cautious", "risk", "consider", "evaluate",
    "review", "conservative", "prudent",
]


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class ProviderConfig(BaseModel):
    name: str
    kind: ProviderKind
    role: AdvisorRole
    model: str = ""
    api_key_env: str = ""  # Name of env var holding the API key
    base_url: str = ""  # Empty = provider default
    timeout_seconds: float = Field(default=60.0, gt=0)
    max_tokens: int = Field(default=4000, gt=0)
    temperature: float = Field(default=0.3, ge=0.0, le=1.0)
    input_cost_per_mtok: float = Field(default=0.0, ge=0.0)  # USD per 1M input tokens
    output_cost_per_mtok: float = Field(default=0.0, ge=0.0)  # USD per 1M output tokens
    script: list[str] = Field(default_factory=list)  # Canned responses, scripted kind only

    @property
    def api_key(self) -> str:
        return os.environ.get(self.api_key_env, "") if self.api_key_env else ""


class ConsensusConfig(BaseModel):
    minimum_agreement_score: float = Field(default=0.8, ge=0.0, le=1.0)
    minimum_confidence_score: float = Field(default=0.7, ge=0.0, le=1.0)
    default_to_conservative: bool = True  # Tie-break favour on disagreement
    similarity_threshold: float = Field(default=0.6, ge=0.0, le=1.0)  # Action-item keyword overlap
    sentiment_scale: int = Field(default=10, gt=0)
    corroboration_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    positive_terms: list[str] = Field(
        default_factory=lambda: list(DEFAULT_POSITIVE_TERMS)
    )
    cautious_terms: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CAUTIOUS_TERMS)
    )


class OrchestrationConfig(BaseModel):
    strategy: OrchestrationStrategy = OrchestrationStrategy.HIERARCHICAL
    require_both_responses: bool = False  # Partial panel failure is fatal when True
    overall_call_timeout_seconds: float = Field(default=30.0, gt=0)
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay_seconds: float = Field(default=1.0, ge=0.0)
    backup_temperature: float = Field(default=0.4, ge=0.0, le=1.0)
    backup_max_tokens: int = Field(default=3000, gt=0)


class ThrottleConfig(BaseModel):
    same_advice_cooldown_days: int = Field(default=14, ge=0)
    max_advice_per_week: int = Field(default=3, ge=0)
    max_alerts_per_week: int = Field(default=3, ge=0)
    post_action_hold_days: int = Field(default=14, ge=0)
    minimum_impact_threshold: float = Field(default=0.05, ge=0.0)  # 5% of base amount
    content_similarity_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    advisory_memory_days: int = Field(default=30, gt=0)  # Expiry of surfaced advisories
    action_memory_days: int = Field(default=30, gt=0)  # Expiry of recorded user actions


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: str = "json"  # "json" or "console"
    audit_enabled: bool = True


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Top-level advisory settings.

    Precedence, lowest first: field defaults, TOML file, environment
    variables (``ADVISORY_CONSENSUS__MINIMUM_AGREEMENT_SCORE=0.75`` and so
    on), explicit overrides.  See :func:`load_settings`.
    """

    consensus: ConsensusConfig = Field(default_factory=ConsensusConfig)
    orchestration: OrchestrationConfig = Field(default_factory=OrchestrationConfig)
    throttle: ThrottleConfig = Field(default_factory=ThrottleConfig)
    providers: list[ProviderConfig] = Field(default_factory=list)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = SettingsConfigDict(env_prefix="ADVISORY_", env_nested_delimiter="__")

    def provider_for(self, role: AdvisorRole) -> ProviderConfig | None:
        """Return the provider wired to *role*, if any."""
        for provider in self.providers:
            if provider.role == role:
                return provider
        return None


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def read_config_file(config_path: str | Path) -> dict[str, Any]:
    """Parse a TOML config file.  A missing file reads as empty."""
    path = Path(config_path)
    if not path.exists():
        return {}
    with open(path, "rb") as f:
        return tomli.load(f)


def merge_config(base: dict[str, Any], top: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *top* over *base*; tables merge, other values replace."""
    merged = dict(base)
    for key, value in top.items():
        current = merged.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            merged[key] = merge_config(current, value)
        else:
            merged[key] = value
    return merged


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Build settings from a TOML file, the environment and overrides.

    ``Settings`` gives constructor arguments priority over the
    environment, so the file is merged under the ``ADVISORY_*`` variables
    here rather than passed in directly.  A single nested variable such
    as ``ADVISORY_ORCHESTRATION__STRATEGY`` replaces only that key of the
    file's ``[orchestration]`` table.

    Parameters
    ----------
    config_path:
        TOML file; ignored when ``None`` or absent.
    overrides:
        Nested values applied last, above the environment.
    """
    data = read_config_file(config_path) if config_path else {}
    data = merge_config(data, EnvSettingsSource(Settings)())
    if overrides:
        data = merge_config(data, overrides)
    return Settings(**data)
