"""Orchestration layer — retried advisor fan-out under one deadline.

Modules:
    retry: stateless exponential-backoff wrapper around one advisor call
    registry: role-keyed advisor wiring
    prompts: backup review prompt synthesis
    strategies: Panel and Hierarchical strategies
"""

from __future__ import annotations

from .registry import AdvisorRegistry
from .retry import RetryPolicy, backoff_delay, invoke_with_retry
from .strategies import (
    AdvisoryStrategy,
    HierarchicalStrategy,
    PanelStrategy,
    build_strategy,
)

__all__ = [
    "AdvisorRegistry",
    "AdvisoryStrategy",
    "HierarchicalStrategy",
    "PanelStrategy",
    "RetryPolicy",
    "backoff_delay",
    "build_strategy",
    "invoke_with_retry",
]
