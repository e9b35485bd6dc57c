"""Parsing of a backup advisor's review of a primary recommendation.

The reviewer is asked to answer under bold headings (see
``orchestration.prompts``).  From its free text we recover:

- the stated agreement level and its numeric score,
- bullets under a concerns / cautions / risks heading,
- bullets under an adjustments / alternatives / suggestions heading.

A section runs from its heading to the next bold heading.  A heading may
carry its content inline (``- **Concerns**: fees are high``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from advisory_consensus.core.enums import AgreementLevel

AGREEMENT_SCORES: dict[AgreementLevel, float] = {
    AgreementLevel.STRONGLY_AGREE: 1.0,
    AgreementLevel.AGREE: 0.8,
    AgreementLevel.NEUTRAL: 0.5,
    AgreementLevel.DISAGREE: 0.3,
    AgreementLevel.STRONGLY_DISAGREE: 0.0,
}

# Most specific phrases first: "disagree" contains "agree".
_LEVEL_PATTERNS: list[tuple[re.Pattern[str], AgreementLevel]] = [
    (re.compile(r"\bstrongly\s+disagree\b"), AgreementLevel.STRONGLY_DISAGREE),
    (re.compile(r"\bdisagree\b"), AgreementLevel.DISAGREE),
    (re.compile(r"\bstrongly\s+agree\b"), AgreementLevel.STRONGLY_AGREE),
    (re.compile(r"\bagree\b"), AgreementLevel.AGREE),
    (re.compile(r"\b(?:neutral|mixed)\b"), AgreementLevel.NEUTRAL),
]

_BOLD_HEADING = re.compile(r"^(?:[-•*]\s+)?\*\*(?P<name>[^*]+?)\*\*\s*:?\s*(?P<rest>.*)$")
_PLAIN_HEADING = re.compile(r"^#*\s*(?P<name>[A-Za-z][A-Za-z ]{2,40}):\s*$")
_BULLET = re.compile(r"^(?:[-•*]\s+|\d+[.)]\s+)")
_PLACEHOLDERS = {"", "none", "n/a", "none.", "no concerns", "no adjustments"}

_CONCERN_WORDS = ("concern", "caution", "risk")
_ADJUSTMENT_WORDS = ("adjustment", "alternative", "suggestion")


@dataclass(frozen=True)
class BackupReview:
    """Structured reading of a backup advisor's review."""

    level: AgreementLevel = AgreementLevel.NEUTRAL
    stated: bool = False
    concerns: tuple[str, ...] = field(default=())
    adjustments: tuple[str, ...] = field(default=())

    @property
    def score(self) -> float:
        return AGREEMENT_SCORES[self.level]


def parse_agreement_level(text: str) -> tuple[AgreementLevel, bool]:
    """Return ``(level, stated)``; ``stated`` is False when defaulted.

    The line naming the agreement level is preferred over the rest of
    the text, so phrases like "Key Points of Agreement" do not count.
    """
    for line in text.splitlines():
        lower = line.lower()
        if "agreement level" in lower:
            remainder = lower.split("agreement level", 1)[1]
            level = _match_level(remainder)
            if level is not None:
                return level, True
    level = _match_level(text.lower())
    if level is not None:
        return level, True
    return AgreementLevel.NEUTRAL, False


def _match_level(lower: str) -> AgreementLevel | None:
    for pattern, level in _LEVEL_PATTERNS:
        if pattern.search(lower):
            return level
    return None


def _section_for(name: str) -> str | None:
    lower = name.lower()
    if any(w in lower for w in _CONCERN_WORDS):
        return "concerns"
    if any(w in lower for w in _ADJUSTMENT_WORDS):
        return "adjustments"
    return None


def extract_sections(text: str) -> dict[str, list[str]]:
    """Bullets under concern and adjustment headings."""
    sections: dict[str, list[str]] = {"concerns": [], "adjustments": []}
    current: str | None = None

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue

        heading = _BOLD_HEADING.match(line) or _PLAIN_HEADING.match(line)
        if heading:
            current = _section_for(heading.group("name"))
            rest = heading.groupdict().get("rest") or ""
            rest = rest.strip().strip("[]").strip()
            if current and rest.lower() not in _PLACEHOLDERS:
                sections[current].append(rest)
            continue

        if current is None:
            continue
        bullet = _BULLET.match(line)
        if bullet:
            item = line[bullet.end():].replace("**", "").strip()
            if item and item.lower() not in _PLACEHOLDERS:
                sections[current].append(item)

    return sections


def parse_review(text: str) -> BackupReview:
    level, stated = parse_agreement_level(text)
    sections = extract_sections(text)
    return BackupReview(
        level=level,
        stated=stated,
        concerns=tuple(sections["concerns"]),
        adjustments=tuple(sections["adjustments"]),
    )
