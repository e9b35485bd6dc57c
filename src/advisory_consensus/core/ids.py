"""Canonical ID, timestamp and fingerprint factories.

All modules import from here instead of defining local _uuid()/_now() copies.

Timestamp Rule
--------------
All timestamps are ``datetime`` with ``tzinfo=timezone.utc``, never naive.
"""

from __future__ import annotations

import hashlib
import re
import uuid
from datetime import datetime, timezone

_WHITESPACE = re.compile(r"\s+")


def new_id() -> str:
    """Generate a new UUID v4 string.  Use for all internal entity IDs."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


def content_hash(*parts: str, length: int = 16) -> str:
    """Generate a deterministic SHA256-based ID from content strings.

    Concatenates all *parts* with ``':'`` before hashing.
    """
    raw = ":".join(parts)
    return hashlib.sha256(raw.encode()).hexdigest()[:length]


def text_fingerprint(text: str, *, length: int = 16) -> str:
    """Fingerprint of advisory text, insensitive to case and whitespace runs.

    Two advisories whose wording differs only in spacing or capitalisation
    produce the same fingerprint.
    """
    normalised = _WHITESPACE.sub(" ", text.strip().lower())
    return content_hash(normalised, length=length)
