"""Confirmation requests shown to a human reviewer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .preview import highlight_html, highlight_text, sql_to_html

if TYPE_CHECKING:
    from .gate import ReviewContext
    from .result import AnalysisResult

DEFAULT_HEADER = "Confirm SQL execution"
_SEPARATOR = "    |    "


@dataclass(frozen=True)
class ConfirmationRequest:
    """Everything a reviewer needs to approve or reject one submission.

    Built by the gate only when review is required and discarded once the
    review channel returns; it is never persisted.

    Attributes:
        sql: Preview text (normalized SQL, or the original on parse failure).
        matched_keywords: Whole-text hits shown as "Keywords".
        matched_keywords_for_highlight: Hits on the preview text, for emphasis.
        matched_actions: Matched statement tags shown as "Action".
        statement_type: Primary statement type, shown when no action matched.
        is_ddl: Whether the submission changes structure (auto-committed).
        connection: Human-readable connection label.
        source_label: Where the SQL came from, e.g. "File: /path/to/x.sql".
        database: Database name metadata.
        schema: Schema metadata.
        driver: Driver metadata.
        formatted_html: Optional pre-rendered HTML for the preview.
    """

    sql: str
    matched_keywords: tuple[str, ...] = ()
    matched_keywords_for_highlight: tuple[str, ...] = ()
    matched_actions: tuple[str, ...] = ()
    statement_type: str | None = None
    is_ddl: bool = False
    connection: str = ""
    source_label: str | None = None
    database: str | None = None
    schema: str | None = None
    driver: str | None = None
    formatted_html: str | None = None

    @classmethod
    def from_analysis(cls, analysis: AnalysisResult, context: ReviewContext) -> ConfirmationRequest:
        """Build the request for an analysis and caller-supplied context."""
        preview = analysis.preview_sql or analysis.original_sql
        return cls(
            sql=preview,
            matched_keywords=analysis.matched_keywords,
            matched_keywords_for_highlight=analysis.matched_keywords_for_highlight,
            matched_actions=analysis.matched_actions,
            statement_type=analysis.statement_type,
            is_ddl=analysis.is_ddl,
            connection=context.connection,
            source_label=context.source_label,
            database=context.database,
            schema=context.schema,
            driver=context.driver,
            formatted_html=sql_to_html(preview),
        )

    @property
    def highlight_terms(self) -> tuple[str, ...]:
        """Keywords to emphasise: preview-text hits, else all keyword hits."""
        return self.matched_keywords_for_highlight or self.matched_keywords

    def rendered_html(self) -> str:
        """HTML preview with keyword and action hits emphasised."""
        document = self.formatted_html
        if not document or not document.strip().startswith("<"):
            document = sql_to_html(self.sql)
        return highlight_html(document, self.highlight_terms, self.matched_actions)

    def rendered_text(self, marker: str = "**") -> str:
        """Plain-text preview with hits wrapped in ``marker``."""
        return highlight_text(self.sql, self.highlight_terms, self.matched_actions, marker)


def build_header(request: ConfirmationRequest) -> str:
    """One-line summary for the top of a review dialog."""
    parts: list[str] = []
    if request.connection:
        parts.append(f"Database: {request.connection}")
    if request.matched_actions:
        parts.append(f"Action: {', '.join(request.matched_actions)}")
    elif request.statement_type:
        parts.append(f"Action: {request.statement_type}")
    if request.matched_keywords:
        parts.append(f"Keywords: {', '.join(request.matched_keywords)}")
    if request.is_ddl:
        parts.append("DDL (auto-committed)")

    header = _SEPARATOR.join(parts)
    if request.source_label:
        header = f"{header}\n{request.source_label}" if header else request.source_label
    return header or DEFAULT_HEADER


def build_message(request: ConfirmationRequest, sql: str | None = None) -> str:
    """Full plain-text review message.

    Args:
        request: The confirmation request.
        sql: Text to show in place of ``request.sql``, e.g. a highlighted
            rendering.
    """
    sections: list[str] = []
    if request.connection:
        sections.append(f"Database: {request.connection}")
    if request.matched_keywords:
        sections.append(f"Keywords (whole text match): {', '.join(request.matched_keywords)}")
    if request.matched_actions:
        sections.append(f"Action (statement match): {', '.join(request.matched_actions)}")
    elif request.statement_type:
        sections.append(f"Statement Type: {request.statement_type}")
    sections.append(f"SQL:\n{request.sql if sql is None else sql}")
    if request.is_ddl:
        sections.append("WARNING: DDL is auto-committed and cannot be rolled back!")
    if request.source_label:
        sections.append(request.source_label)
    return "\n\n".join(sections) + "\n"
