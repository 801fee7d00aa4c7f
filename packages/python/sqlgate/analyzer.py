"""SqlAnalyzer - turns raw SQL into an AnalysisResult."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger

from .classifier import StatementClassifier
from .exceptions import ParseError
from .keywords import KeywordMatcher, merge_keywords
from .parser import Parser
from .result import SQL_ERROR, UNKNOWN, AnalysisResult

if TYPE_CHECKING:
    from collections.abc import Iterable


class SqlAnalyzer:
    """Risk assessment for SQL submissions.

    Two independent detection strategies are combined:

    1. Whole-text match: configured phrases found by a whole-word scan of
       the original text and of the pretty-printed text.
    2. Action match: statement tags (DELETE, UPDATE...) of every parsed
       statement, including statements nested in procedural blocks, that
       equal a configured action keyword.

    A submission is dangerous when either strategy finds anything. When the
    text cannot be parsed the analyzer fails closed: the result is dangerous
    and DDL regardless of content.

    The analyzer holds only immutable configuration, so one instance can be
    shared by concurrent callers.

    Example:
        >>> analyzer = SqlAnalyzer(action_keywords=["DELETE"])
        >>> result = analyzer.analyze("DELETE FROM accounts WHERE id = 1")
        >>> result.dangerous, result.matched_actions
        (True, ('DELETE',))

        >>> analyzer.analyze("SELECT * FROM accounts").dangerous
        False
    """

    def __init__(
        self,
        dialect: str | None = None,
        whole_text_keywords: Iterable[str | None] = (),
        action_keywords: Iterable[str | None] = (),
    ) -> None:
        """Initialize the analyzer.

        Args:
            dialect: sqlglot dialect name ('oracle', 'mysql', 'postgres',
                'tsql'...). None uses sqlglot's default dialect.
            whole_text_keywords: Phrases that trigger review wherever they
                appear as whole words in the SQL text.
            action_keywords: Statement tags that trigger review. They are
                also eligible as literal text hits.
        """
        self.dialect = dialect
        self._parser = Parser(dialect=dialect)
        self._whole_text = KeywordMatcher(whole_text_keywords)
        self._actions = KeywordMatcher(action_keywords)
        # Parse failure: both lists are matched as one against the original
        self._merged = KeywordMatcher(merge_keywords(self._whole_text.keywords, self._actions.keywords))
        self._classifier = StatementClassifier(self._actions.keywords)

    @property
    def whole_text_keywords(self) -> tuple[str, ...]:
        return self._whole_text.keywords

    @property
    def action_keywords(self) -> tuple[str, ...]:
        return self._actions.keywords

    def analyze(self, sql: str | None) -> AnalysisResult:
        """Analyze one SQL submission.

        Multi-statement text and procedural blocks are analyzed as a whole;
        every statement at every depth contributes to the result.

        Args:
            sql: The SQL text. None and blank text yield an empty result
                that requires no review.

        Returns:
            An AnalysisResult. Parse errors never propagate; they produce
            the fail-closed result instead.
        """
        trimmed = (sql or "").strip()
        if not trimmed:
            return AnalysisResult.empty()

        try:
            statements = self._parser.parse(trimmed)
            if not statements:
                raise ParseError("No SQL statements found")
            normalized = self._parser.render(statements).strip()
        except ParseError as e:
            logger.debug("SQL parse failed, review required: {}", e)
            return self._fail_closed(trimmed)
        except Exception as e:
            # sqlglot internals (RecursionError on deep nesting...)
            logger.debug("SQL parser crashed, review required: {!r}", e)
            return self._fail_closed(trimmed)

        on_original = self._match(trimmed)
        on_normalized = self._match(normalized)
        matched_keywords = tuple(merge_keywords(on_original, on_normalized))

        traversal = self._classifier.collect_all(statements)
        actions = traversal.actions
        if actions:
            statement_type = actions[0]
        else:
            statement_type = traversal.first_type or UNKNOWN

        return AnalysisResult(
            original_sql=trimmed,
            normalized_sql=normalized,
            preview_sql=normalized,
            parse_succeeded=True,
            statement_count=len(statements),
            is_multi_statement=len(statements) > 1,
            contains_nested_block=traversal.has_block,
            is_ddl=traversal.is_ddl,
            matched_keywords=matched_keywords,
            matched_keywords_for_highlight=tuple(on_normalized),
            matched_actions=actions,
            statement_type=statement_type,
            dangerous=bool(matched_keywords) or bool(actions),
        )

    def _match(self, text: str) -> list[str]:
        """Whole-text hits followed by action-keyword literal hits, deduped."""
        return merge_keywords(self._whole_text.match(text), self._actions.match(text))

    def _fail_closed(self, trimmed: str) -> AnalysisResult:
        hits = tuple(self._merged.match(trimmed))
        return AnalysisResult(
            original_sql=trimmed,
            normalized_sql=trimmed,
            preview_sql=trimmed,
            parse_succeeded=False,
            statement_count=0,
            # Heuristic only: the text could not be split into statements
            is_multi_statement=";" in trimmed,
            contains_nested_block=False,
            is_ddl=True,
            matched_keywords=hits,
            matched_keywords_for_highlight=hits,
            matched_actions=(),
            statement_type=SQL_ERROR,
            dangerous=True,
        )
