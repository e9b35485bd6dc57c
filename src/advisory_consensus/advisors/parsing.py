"""Heuristics that turn free-text advisor output into structured fields.

Providers answer in prose.  These helpers pull out the pieces the
consensus engine scores: a one-line reasoning summary, bullet / numbered
action items and a language-based confidence estimate.
"""

from __future__ import annotations

import re
from typing import Any

from advisory_consensus.core.models import Recommendation, ResourceCost

_BULLET = re.compile(r"^(?:[-•*]\s+|\d+[.)]\s+)")

# Ordered: first matching tier wins.
_CONFIDENCE_TIERS: list[tuple[tuple[str, ...], float]] = [
    (("certainly", "definitely"), 0.9),
    (("likely", "should"), 0.8),
    (("might", "could"), 0.7),
    (("possibly", "maybe"), 0.6),
]
DEFAULT_CONFIDENCE = 0.75


def extract_reasoning(content: str) -> str:
    """First non-empty line of the response, or the whole text."""
    for line in content.splitlines():
        if line.strip():
            return line.strip()
    return content.strip()


def extract_action_items(content: str) -> list[str]:
    """Bullet (``-``, ``•``, ``*``) and numbered lines, markers stripped."""
    items: list[str] = []
    for line in content.splitlines():
        trimmed = line.strip()
        match = _BULLET.match(trimmed)
        if not match:
            continue
        item = trimmed[match.end():].replace("**", "").strip()
        if item:
            items.append(item)
    return items


def estimate_confidence(content: str) -> float:
    lower = content.lower()
    for words, score in _CONFIDENCE_TIERS:
        if any(re.search(rf"\b{w}\b", lower) for w in words):
            return score
    return DEFAULT_CONFIDENCE


def build_recommendation(
    provider: str,
    content: str,
    *,
    model: str = "",
    cost: ResourceCost | None = None,
    metadata: dict[str, Any] | None = None,
) -> Recommendation:
    """Assemble a Recommendation from raw response text."""
    return Recommendation(
        provider=provider,
        model=model,
        body=content,
        reasoning=extract_reasoning(content),
        action_items=tuple(extract_action_items(content)),
        confidence=estimate_confidence(content),
        cost=cost or ResourceCost(),
        metadata=metadata or {},
    )
