"""Tests for SqlAnalyzer."""

from concurrent.futures import ThreadPoolExecutor

import pytest

import sqlgate
from sqlgate import SqlAnalyzer
from sqlgate.result import SQL_ERROR, UNKNOWN


class TestEmptyInput:
    """Test blank submissions."""

    @pytest.mark.parametrize("sql", ["", "   ", "\n\t", None])
    def test_blank_is_not_dangerous(self, sql: "str | None") -> None:
        """Nothing to run means nothing to review."""
        result = SqlAnalyzer(whole_text_keywords=["x"], action_keywords=["DELETE"]).analyze(sql)
        assert result.dangerous is False
        assert result.matched_keywords == ()
        assert result.matched_actions == ()
        assert result.statement_type == UNKNOWN


class TestSafeSql:
    """Test SQL that needs no review."""

    def test_plain_select(self) -> None:
        """A SELECT with no keywords configured is safe."""
        result = SqlAnalyzer().analyze("SELECT * FROM accounts")
        assert result.dangerous is False
        assert result.is_ddl is False
        assert result.parse_succeeded is True
        assert result.statement_type == "SELECT"
        assert result.statement_count == 1
        assert result.is_multi_statement is False

    def test_select_with_action_keywords(self) -> None:
        """Configured actions that do not occur leave SQL safe."""
        result = SqlAnalyzer(action_keywords=["DELETE", "DROP"]).analyze("SELECT * FROM accounts")
        assert result.dangerous is False

    def test_ddl_without_keywords(self) -> None:
        """DDL is flagged but not dangerous unless a keyword matched."""
        result = SqlAnalyzer().analyze("CREATE TABLE t (id INT)")
        assert result.is_ddl is True
        assert result.dangerous is False

    def test_normalized_is_pretty_printed(self) -> None:
        """The preview is the normalized SQL."""
        result = SqlAnalyzer().analyze("select a from t")
        assert result.normalized_sql.startswith("SELECT")
        assert result.preview_sql == result.normalized_sql
        assert result.original_sql == "select a from t"


class TestActionMatch:
    """Test matching statement types against action keywords."""

    def test_delete(self) -> None:
        """A DELETE matches the DELETE action."""
        result = SqlAnalyzer(action_keywords=["DELETE"]).analyze("DELETE FROM accounts WHERE id=1")
        assert result.matched_actions == ("DELETE",)
        assert result.dangerous is True
        assert result.statement_type == "DELETE"

    def test_action_case_insensitive(self) -> None:
        """Lower-case configuration matches upper-case tags."""
        result = SqlAnalyzer(action_keywords=["update"]).analyze("UPDATE t SET a = 1")
        assert result.matched_actions == ("UPDATE",)

    def test_nested_block_actions(self) -> None:
        """An inner DELETE makes a block dangerous."""
        result = SqlAnalyzer(action_keywords=["DELETE"]).analyze(
            "BEGIN\n  INSERT INTO audit VALUES (1);\n  DELETE FROM accounts WHERE id = 1;\nEND;"
        )
        assert result.contains_nested_block is True
        assert "DELETE" in result.matched_actions
        assert result.dangerous is True
        assert result.statement_count == 1

    def test_primary_type_is_inner_first(self) -> None:
        """The first statement inside a block is the primary type."""
        result = SqlAnalyzer().analyze("BEGIN DELETE FROM t; END;")
        assert result.statement_type == "DELETE"

    def test_statement_type_prefers_actions(self) -> None:
        """The first matched action wins over the first statement type."""
        result = SqlAnalyzer(action_keywords=["DELETE"]).analyze("SELECT 1; DELETE FROM t")
        assert result.statement_type == "DELETE"
        assert result.is_multi_statement is True
        assert result.statement_count == 2

    def test_multi_statement_without_actions(self) -> None:
        """Without action hits the first statement's type is used."""
        result = SqlAnalyzer().analyze("SELECT 1; DELETE FROM t")
        assert result.statement_type == "SELECT"

    def test_nested_ddl(self) -> None:
        """DDL inside a routine body is DDL."""
        result = SqlAnalyzer(dialect="mysql").analyze(
            "CREATE PROCEDURE reset_t()\nBEGIN\n  TRUNCATE TABLE t;\nEND"
        )
        assert result.is_ddl is True
        assert result.contains_nested_block is True


class TestWholeTextMatch:
    """Test literal keyword scanning."""

    def test_keyword_found_once(self) -> None:
        """A keyword in both original and normalized text is reported once."""
        result = SqlAnalyzer(whole_text_keywords=["DROP"]).analyze("drop table t")
        assert result.matched_keywords == ("DROP",)
        assert result.dangerous is True

    def test_keyword_in_string_literal(self) -> None:
        """Text scanning sees string literals too."""
        result = SqlAnalyzer(whole_text_keywords=["password"]).analyze("SELECT 'password' FROM t")
        assert result.matched_keywords == ("password",)

    def test_action_keyword_as_literal_text(self) -> None:
        """An action keyword that appears only as text is a keyword hit, not an action."""
        result = SqlAnalyzer(action_keywords=["DELETE"]).analyze("SELECT 'DELETE' AS op FROM t")
        assert result.matched_keywords == ("DELETE",)
        assert result.matched_actions == ()
        assert result.dangerous is True

    def test_keywords_before_actions(self) -> None:
        """Whole-text keywords are listed before action keyword text hits."""
        analyzer = SqlAnalyzer(whole_text_keywords=["accounts"], action_keywords=["DELETE"])
        result = analyzer.analyze("DELETE FROM accounts")
        assert result.matched_keywords == ("accounts", "DELETE")

    def test_partial_word_not_matched(self) -> None:
        """Keywords only match whole words."""
        result = SqlAnalyzer(whole_text_keywords=["drop"]).analyze("SELECT dropped_at FROM t")
        assert result.dangerous is False

    def test_highlight_uses_preview_text(self) -> None:
        """Highlight hits come from the normalized text."""
        result = SqlAnalyzer(whole_text_keywords=["users"]).analyze("SELECT * FROM users")
        assert result.matched_keywords_for_highlight == ("users",)


class TestFailClosed:
    """Test unparseable SQL."""

    def test_gibberish(self) -> None:
        """Unparseable text is dangerous DDL of type SQL Error."""
        result = SqlAnalyzer().analyze("SELEKT * FORM")
        assert result.parse_succeeded is False
        assert result.dangerous is True
        assert result.is_ddl is True
        assert result.statement_type == SQL_ERROR
        assert result.is_error is True
        assert result.matched_keywords == result.matched_keywords_for_highlight

    def test_keywords_matched_on_original(self) -> None:
        """Both keyword lists are matched against the original text."""
        analyzer = SqlAnalyzer(whole_text_keywords=["users"], action_keywords=["DELETE"])
        result = analyzer.analyze("SELEKT * FORM users; DELETE")
        assert result.matched_keywords == ("users", "DELETE")
        assert result.matched_keywords_for_highlight == ("users", "DELETE")
        assert result.matched_actions == ()
        assert result.preview_sql == "SELEKT * FORM users; DELETE"

    def test_multi_statement_heuristic(self) -> None:
        """On parse failure, a semicolon means multi-statement."""
        assert SqlAnalyzer().analyze("SELEKT 1; SELEKT 2").is_multi_statement is True
        assert SqlAnalyzer().analyze("SELEKT * FORM").is_multi_statement is False

    def test_unterminated_block(self) -> None:
        """A block without END fails closed."""
        result = SqlAnalyzer().analyze("BEGIN DELETE FROM t;")
        assert result.parse_succeeded is False
        assert result.dangerous is True

    def test_division_alone_on_a_line(self) -> None:
        """A lone "/" line splits the statement, so the halves fail closed."""
        result = SqlAnalyzer().analyze("SELECT a\n/\nb FROM t")
        assert result.parse_succeeded is False
        assert result.dangerous is True

    def test_parser_crash(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Errors other than ParseError inside the parser also fail closed."""
        analyzer = SqlAnalyzer(action_keywords=["DELETE"])

        def crash(sql: str) -> list:
            raise RecursionError("maximum recursion depth exceeded")

        monkeypatch.setattr(analyzer._parser, "parse", crash)
        result = analyzer.analyze("DELETE FROM t")
        assert result.parse_succeeded is False
        assert result.dangerous is True
        assert result.statement_type == SQL_ERROR
        assert result.matched_keywords == ("DELETE",)

    def test_deeply_nested_expression(self) -> None:
        """Pathological nesting never raises out of analyze()."""
        sql = "SELECT " + "(" * 3000 + "1" + ")" * 3000
        result = SqlAnalyzer(action_keywords=["DELETE"]).analyze(sql)
        if not result.parse_succeeded:
            assert result.dangerous is True
            assert result.statement_type == SQL_ERROR


class TestPurity:
    """Test that analysis is deterministic and shareable."""

    def test_repeatable(self) -> None:
        """Identical input and configuration give identical results."""
        analyzer = SqlAnalyzer(whole_text_keywords=["t"], action_keywords=["DELETE"])
        sql = "BEGIN DELETE FROM t; END; SELECT 1"
        assert analyzer.analyze(sql) == analyzer.analyze(sql)

    def test_concurrent_calls(self) -> None:
        """One analyzer serves concurrent callers with identical results."""
        analyzer = SqlAnalyzer(action_keywords=["DELETE", "UPDATE"])
        statements = ["DELETE FROM t", "SELECT 1", "UPDATE t SET a = 1", "SELEKT"] * 10
        expected = [analyzer.analyze(s) for s in statements]
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(analyzer.analyze, statements))
        assert results == expected


class TestModuleHelpers:
    """Test the package-level convenience API."""

    def test_analyze_uses_default_actions(self) -> None:
        """The default analyzer reviews destructive statements."""
        assert sqlgate.analyze("DROP TABLE users").matched_actions == ("DROP",)
        assert sqlgate.analyze("SELECT * FROM users").dangerous is False

    def test_analyze_with_custom_keywords(self) -> None:
        """Custom keyword lists build a one-off analyzer."""
        result = sqlgate.analyze("SELECT * FROM salaries", whole_text_keywords=["salaries"])
        assert result.matched_keywords == ("salaries",)

    def test_requires_review(self) -> None:
        """DDL needs review only when the policy says so."""
        assert sqlgate.requires_review("DELETE FROM t") is True
        assert sqlgate.requires_review("CREATE TABLE t (id INT)") is False
        assert sqlgate.requires_review("CREATE TABLE t (id INT)", always_review_ddl=True) is True
