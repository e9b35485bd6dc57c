"""Agreement scoring shared by peer consensus and corroboration.

The agreement score is a weighted sum of three signals in [0, 1]:

    0.4  action-item overlap   matched item pairs / max(|items_a|, |items_b|)
    0.3  keyword overlap       Jaccard over full-text keywords
    0.3  sentiment alignment   1 - min(1, |sent_a - sent_b| / scale)

Keywords are lower-cased tokens longer than three characters with common
stop words removed.  Two action items are similar when their keyword
overlap ``|A & B| / max(|A|, |B|)`` reaches the similarity threshold.

Item pairs are matched one-to-one with a maximum bipartite matching, so
the matched-pair count (and with it the score) does not depend on which
recommendation is passed first.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

ACTION_WEIGHT = 0.4
KEYWORD_WEIGHT = 0.3
SENTIMENT_WEIGHT = 0.3

MIN_KEYWORD_LENGTH = 4

STOP_WORDS: frozenset[str] = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "be",
    "have", "has", "had", "do", "does", "did", "will", "would", "should",
    "could", "may", "might", "can", "your", "you", "i", "we", "they", "it",
})

_TOKEN_SPLIT = re.compile(r"[\s,.!?;:]+")


# ---------------------------------------------------------------------------
# Keywords
# ---------------------------------------------------------------------------

def extract_keywords(text: str) -> set[str]:
    """Stop-word-filtered, lower-cased tokens longer than three characters."""
    return {
        token
        for token in _TOKEN_SPLIT.split(text.lower())
        if len(token) >= MIN_KEYWORD_LENGTH and token not in STOP_WORDS
    }


def keyword_overlap_ratio(a: str, b: str) -> float:
    """``|A & B| / max(|A|, |B|)`` over the keywords of *a* and *b*."""
    words_a = extract_keywords(a)
    words_b = extract_keywords(b)
    largest = max(len(words_a), len(words_b))
    if largest == 0:
        return 0.0
    return len(words_a & words_b) / largest


def keyword_jaccard(a: str, b: str) -> float:
    words_a = extract_keywords(a)
    words_b = extract_keywords(b)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def items_similar(a: str, b: str, threshold: float) -> bool:
    return keyword_overlap_ratio(a, b) >= threshold


# ---------------------------------------------------------------------------
# Action-item matching
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ItemMatch:
    """One-to-one pairing of similar action items between two sides.

    ``pairs`` holds ``(index_a, index_b)`` tuples ordered by ``index_a``.
    """

    items_a: tuple[str, ...]
    items_b: tuple[str, ...]
    pairs: tuple[tuple[int, int], ...] = field(default=())

    @property
    def matched_a(self) -> set[int]:
        return {i for i, _ in self.pairs}

    @property
    def matched_b(self) -> set[int]:
        return {j for _, j in self.pairs}

    def common(self) -> list[str]:
        """Matched items as worded on side a, de-duplicated, in a's order."""
        return _dedupe(self.items_a[i] for i, _ in self.pairs)

    def only_a(self) -> list[str]:
        return _dedupe(
            item for i, item in enumerate(self.items_a) if i not in self.matched_a
        )

    def only_b(self) -> list[str]:
        return _dedupe(
            item for j, item in enumerate(self.items_b) if j not in self.matched_b
        )

    def overlap_score(self) -> float:
        largest = max(len(self.items_a), len(self.items_b))
        if largest == 0:
            return 0.0
        return len(self.pairs) / largest


def match_items(
    items_a: Sequence[str],
    items_b: Sequence[str],
    threshold: float,
) -> ItemMatch:
    """Maximum one-to-one matching of similar items (augmenting paths)."""
    a = tuple(items_a)
    b = tuple(items_b)
    edges: list[list[int]] = [
        [j for j, item_b in enumerate(b) if items_similar(item_a, item_b, threshold)]
        for item_a in a
    ]
    owner: dict[int, int] = {}  # index_b -> index_a

    def _augment(i: int, seen: set[int]) -> bool:
        for j in edges[i]:
            if j in seen:
                continue
            seen.add(j)
            if j not in owner or _augment(owner[j], seen):
                owner[j] = i
                return True
        return False

    for i in range(len(a)):
        _augment(i, set())

    pairs = tuple(sorted((i, j) for j, i in owner.items()))
    return ItemMatch(items_a=a, items_b=b, pairs=pairs)


# ---------------------------------------------------------------------------
# Sentiment
# ---------------------------------------------------------------------------

def sentiment_value(
    text: str,
    positive_terms: Iterable[str],
    cautious_terms: Iterable[str],
) -> int:
    """Signed sentiment: positive keyword count minus cautious keyword count."""
    words = extract_keywords(text)
    positive = sum(1 for term in set(positive_terms) if term.lower() in words)
    cautious = sum(1 for term in set(cautious_terms) if term.lower() in words)
    return positive - cautious


def sentiment_alignment(sentiment_a: int, sentiment_b: int, scale: int = 10) -> float:
    return 1.0 - min(1.0, abs(sentiment_a - sentiment_b) / scale)


# ---------------------------------------------------------------------------
# Agreement score
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AgreementBreakdown:
    """Component signals behind one agreement score."""

    action_overlap: float
    keyword_overlap: float
    sentiment_alignment: float
    sentiment_a: int
    sentiment_b: int

    @property
    def score(self) -> float:
        raw = (
            ACTION_WEIGHT * self.action_overlap
            + KEYWORD_WEIGHT * self.keyword_overlap
            + SENTIMENT_WEIGHT * self.sentiment_alignment
        )
        return clamp_unit(raw)

    def as_dict(self) -> dict[str, float]:
        return {
            "action_overlap": round(self.action_overlap, 4),
            "keyword_overlap": round(self.keyword_overlap, 4),
            "sentiment_alignment": round(self.sentiment_alignment, 4),
            "sentiment_a": self.sentiment_a,
            "sentiment_b": self.sentiment_b,
        }


def clamp_unit(value: float) -> float:
    return max(0.0, min(1.0, value))


def _dedupe(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        key = item.strip().lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(item)
    return out
