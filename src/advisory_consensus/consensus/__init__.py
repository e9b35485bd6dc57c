"""Consensus layer — agreement scoring, merge and corroboration.

ConsensusEngine     Peer consensus and primary/backup corroboration
BackupReview        Parsed agreement level, concerns and adjustments of a review
"""

from __future__ import annotations

from .engine import ConsensusEngine
from .review import BackupReview, parse_review
from .scoring import AgreementBreakdown, extract_keywords, match_items

__all__ = [
    "AgreementBreakdown",
    "BackupReview",
    "ConsensusEngine",
    "extract_keywords",
    "match_items",
    "parse_review",
]
