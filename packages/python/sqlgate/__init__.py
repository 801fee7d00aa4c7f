"""SQLGate - human approval gate for SQL issued by automated callers.

SQLGate sits between an agent that produces arbitrary SQL and the database
that runs it. Every submission is analyzed; anything risky is shown to a
human who must approve it before it executes. SQL that cannot be parsed is
always treated as risky.

Quick Start:
    >>> import sqlgate

    # Analysis (default action keywords: DELETE, UPDATE, DROP, TRUNCATE, ALTER, MERGE)
    >>> sqlgate.analyze("SELECT * FROM users").dangerous
    False
    >>> sqlgate.analyze("DELETE FROM users WHERE id = 1").matched_actions
    ('DELETE',)

    # Quick boolean check
    >>> sqlgate.requires_review("DROP TABLE users")
    True

    # Full gate with a review channel
    >>> from sqlgate import ConfirmationGate, SqlAnalyzer, ReviewPolicy, default_review_channel
    >>> gate = ConfirmationGate(
    ...     analyzer=SqlAnalyzer(whole_text_keywords=["users"], action_keywords=["DELETE"]),
    ...     channel=default_review_channel(timeout=300),
    ...     policy=ReviewPolicy(always_review_ddl=True),
    ... )
    >>> gate.evaluate("SELECT 1").approved
    True

Detection:
    - Whole-text keywords: phrases found anywhere in the SQL text as whole words
    - Action keywords: statement types (DELETE, UPDATE...) of every parsed
      statement, including those nested in BEGIN ... END blocks and
      stored-procedure bodies
    - DDL: optionally always reviewed, since it is auto-committed

Review channels:
    - DarwinReviewChannel: native macOS dialog
    - ConsoleReviewChannel: terminal prompt
    - CallableReviewChannel: any function ``request -> bool``
    - BoundedReviewChannel: rejects when no verdict arrives in time
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .analyzer import SqlAnalyzer
from .audit import AuditEntry, AuditSink, JsonlAuditSink, MemoryAuditSink, record_safely
from .channels import (
    BoundedReviewChannel,
    CallableReviewChannel,
    ConsoleReviewChannel,
    DarwinReviewChannel,
    ReviewChannel,
    UnsupportedReviewChannel,
    default_review_channel,
)
from .confirm import ConfirmationRequest, build_header, build_message
from .exceptions import ConfigurationError, ParseError, ReviewChannelError, SQLGateError
from .gate import ConfirmationGate, GateDecision, ReviewContext, ReviewPolicy, Verdict
from .keywords import DEFAULT_ACTION_KEYWORDS, KeywordMatcher
from .orchestrator import (
    ConnectionInfo,
    GatedExecutor,
    LogThrottle,
    Outcome,
    OutcomeCode,
    StaticConnections,
)
from .result import AnalysisResult

if TYPE_CHECKING:
    from collections.abc import Sequence

__version__ = "0.1.0"
__all__ = [
    # Main API
    "analyze",
    "requires_review",
    "SqlAnalyzer",
    "ConfirmationGate",
    # Types
    "AnalysisResult",
    "ConfirmationRequest",
    "GateDecision",
    "KeywordMatcher",
    "ReviewContext",
    "ReviewPolicy",
    "Verdict",
    "build_header",
    "build_message",
    "DEFAULT_ACTION_KEYWORDS",
    # Channels
    "ReviewChannel",
    "BoundedReviewChannel",
    "CallableReviewChannel",
    "ConsoleReviewChannel",
    "DarwinReviewChannel",
    "UnsupportedReviewChannel",
    "default_review_channel",
    # Execution and audit
    "GatedExecutor",
    "ConnectionInfo",
    "StaticConnections",
    "LogThrottle",
    "Outcome",
    "OutcomeCode",
    "AuditEntry",
    "AuditSink",
    "JsonlAuditSink",
    "MemoryAuditSink",
    "record_safely",
    # Exceptions
    "SQLGateError",
    "ParseError",
    "ConfigurationError",
    "ReviewChannelError",
]

# Default analyzer instance for simple API
_default_analyzer = SqlAnalyzer(action_keywords=DEFAULT_ACTION_KEYWORDS)


def analyze(
    sql: str | None,
    *,
    dialect: str | None = None,
    whole_text_keywords: Sequence[str] | None = None,
    action_keywords: Sequence[str] | None = None,
) -> AnalysisResult:
    """Analyze a SQL submission.

    For repeated analysis with the same configuration, create a SqlAnalyzer
    instance instead.

    Args:
        sql: The SQL text. May hold several statements and procedural blocks.
        dialect: SQL dialect for parsing ('oracle', 'mysql', 'postgres', 'tsql').
        whole_text_keywords: Phrases that make the SQL dangerous wherever
            they appear as whole words.
        action_keywords: Statement types that make the SQL dangerous.
            Defaults to DEFAULT_ACTION_KEYWORDS.

    Returns:
        AnalysisResult. Unparseable SQL yields a dangerous result.

    Examples:
        >>> import sqlgate
        >>> sqlgate.analyze("BEGIN DELETE FROM t; END;").statement_type
        'DELETE'
        >>> sqlgate.analyze("SELEKT * FORM users").parse_succeeded
        False
    """
    is_default = dialect is None and whole_text_keywords is None and action_keywords is None
    if is_default:
        return _default_analyzer.analyze(sql)

    analyzer = SqlAnalyzer(
        dialect=dialect,
        whole_text_keywords=whole_text_keywords or (),
        action_keywords=DEFAULT_ACTION_KEYWORDS if action_keywords is None else action_keywords,
    )
    return analyzer.analyze(sql)


def requires_review(
    sql: str | None,
    *,
    dialect: str | None = None,
    whole_text_keywords: Sequence[str] | None = None,
    action_keywords: Sequence[str] | None = None,
    always_review_ddl: bool = False,
) -> bool:
    """Check whether a SQL submission needs human approval.

    Examples:
        >>> import sqlgate
        >>> sqlgate.requires_review("SELECT * FROM users")
        False
        >>> sqlgate.requires_review("CREATE TABLE t (id INT)")
        False
        >>> sqlgate.requires_review("CREATE TABLE t (id INT)", always_review_ddl=True)
        True
    """
    result = analyze(
        sql,
        dialect=dialect,
        whole_text_keywords=whole_text_keywords,
        action_keywords=action_keywords,
    )
    return result.dangerous or (always_review_ddl and result.is_ddl)
