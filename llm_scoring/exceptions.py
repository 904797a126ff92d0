"""
Exception hierarchy for the LLM Scoring Suite.
"""

from typing import Optional


class ScoringError(Exception):
    """Base exception for all scoring errors."""

    pass


class ApiError(ScoringError):
    """
    Raised when a call to the remote generation API fails.

    Covers transport failures, non-success HTTP statuses, rate limits
    that could not be waited out, and malformed catalog responses.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ParseError(ScoringError):
    """Raised when a judge reply cannot be parsed as structured data."""

    pass


class NotFoundError(ScoringError):
    """Raised when a requested model, artifact or input file is absent."""

    pass


class StorageError(ScoringError):
    """Raised when reading or writing the data directory fails."""

    pass


class StateTransitionError(ScoringError):
    """Raised when an evaluation state transition is not allowed."""

    pass
