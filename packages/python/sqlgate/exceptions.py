"""Exception types for SQLGate."""

from __future__ import annotations


class SQLGateError(Exception):
    """Base class for all SQLGate errors."""


class ParseError(SQLGateError):
    """Raised by the parser when SQL text cannot be turned into statements.

    The analyzer never lets this escape: a parse failure is converted into a
    fail-closed AnalysisResult that always requires human review.
    """


class ConfigurationError(SQLGateError):
    """Raised when settings or policy values are invalid."""


class ReviewChannelError(SQLGateError):
    """Raised by a review channel that could not obtain a verdict.

    The gate treats it (and any other exception from a channel) as a
    rejection and records it as a channel failure.
    """
