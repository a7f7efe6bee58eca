"""
Error types raised by the scoring engine.

Every mutation either succeeds completely or raises one of these
before anything is persisted.
"""

from __future__ import annotations


class ScoringError(Exception):
    """Base class for all scoring engine errors."""


class ValidationError(ScoringError):
    """Malformed input: out-of-range runs, missing dismissed player, etc."""


class StateError(ScoringError):
    """The operation is not allowed in the current innings/match state."""


class NotFoundError(ScoringError):
    """An innings, over, match or player id does not exist."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id
