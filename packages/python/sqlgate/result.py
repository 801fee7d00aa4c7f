"""Analysis result types."""

from __future__ import annotations

from dataclasses import dataclass

UNKNOWN = "UNKNOWN"
SQL_ERROR = "SQL Error"


@dataclass(frozen=True)
class AnalysisResult:
    """Immutable risk assessment of one SQL submission.

    Attributes:
        original_sql: The submitted text, trimmed.
        normalized_sql: Pretty-printed SQL when parsing succeeded, else the
            trimmed original.
        preview_sql: The text shown to a human reviewer.
        parse_succeeded: Whether the text parsed into at least one statement.
        statement_count: Number of top-level statements (0 on parse failure).
        is_multi_statement: More than one top-level statement. On parse
            failure this is a heuristic: the text contains a ``;``.
        contains_nested_block: Any statement has an inner statement sequence.
        is_ddl: Any statement at any depth changes structure. Always True
            on parse failure.
        matched_keywords: Whole-text keyword hits on the original and the
            normalized text, case-insensitively deduplicated.
        matched_keywords_for_highlight: Hits on the preview text only. Used
            for emphasis, never for the dangerous decision.
        matched_actions: Statement tags that are configured action keywords.
        statement_type: First matched action, else the first classified
            type, else UNKNOWN / "SQL Error".
        dangerous: Any keyword or action matched. Always True on parse failure.
    """

    original_sql: str
    normalized_sql: str
    preview_sql: str
    parse_succeeded: bool
    statement_count: int = 0
    is_multi_statement: bool = False
    contains_nested_block: bool = False
    is_ddl: bool = False
    matched_keywords: tuple[str, ...] = ()
    matched_keywords_for_highlight: tuple[str, ...] = ()
    matched_actions: tuple[str, ...] = ()
    statement_type: str = UNKNOWN
    dangerous: bool = False

    @classmethod
    def empty(cls, sql: str = "") -> AnalysisResult:
        """Result for blank input: nothing matched, nothing to review."""
        return cls(
            original_sql=sql.strip(),
            normalized_sql="",
            preview_sql="",
            parse_succeeded=False,
        )

    @property
    def is_error(self) -> bool:
        """True if this result came from the fail-closed parse-error path."""
        return self.statement_type == SQL_ERROR
