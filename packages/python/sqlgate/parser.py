"""SQL parsing built on sqlglot, with procedural block support.

sqlglot parses individual statements but has no model for procedural code
(``BEGIN ... END`` blocks, stored routine bodies, ``IF``/``LOOP`` bodies).
The Parser therefore splits the token stream itself, builds a Statement
tree in which every block exposes its inner statements, and hands each
plain statement to sqlglot.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError
from sqlglot.tokens import TokenType

from .exceptions import ParseError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlglot.expressions import Expression
    from sqlglot.tokens import Token


# Top-level parse results that are expressions, not statements.
# "SELEKT * FORM" parses as a multiplication of two columns, for example.
_BARE_EXPRESSIONS = (exp.Condition, exp.Identifier, exp.Alias, exp.Tuple, exp.Star)

# Words after BEGIN that make it a transaction statement rather than a block
_TRANSACTION_WORDS = frozenset(
    {"TRANSACTION", "TRAN", "WORK", "DEFERRED", "IMMEDIATE", "EXCLUSIVE", "ISOLATION", "READ"}
)

_ROUTINE_WORDS = frozenset({"PROCEDURE", "FUNCTION", "TRIGGER"})
_NOT_ROUTINE_WORDS = frozenset(
    {"TABLE", "VIEW", "INDEX", "SCHEMA", "DATABASE", "SEQUENCE", "USER", "ROLE", "TYPE", "PACKAGE"}
)

# A routine body introduced by one of these after AS is a single statement, not a block
_STATEMENT_WORDS = frozenset(
    {"SELECT", "INSERT", "UPDATE", "DELETE", "MERGE", "WITH", "SET", "EXEC", "EXECUTE", "RETURN"}
)

_CONTROL_WORDS = frozenset({"IF", "WHILE", "FOR", "LOOP", "REPEAT", "CASE"})

# Statements that only exist inside procedural code
_PROCEDURAL_WORDS = frozenset(
    {
        "RETURN",
        "NULL",
        "RAISE",
        "EXIT",
        "CONTINUE",
        "OPEN",
        "FETCH",
        "CLOSE",
        "LEAVE",
        "ITERATE",
        "SIGNAL",
        "RESIGNAL",
        "PRINT",
        "GOTO",
        "PERFORM",
        "DECLARE",
    }
)

_BLOCK_END = frozenset({"END", "EXCEPTION"})
_ASSIGNMENT = re.compile(r"^[\w.@$\"]+\s*:=")


@dataclass(frozen=True)
class Statement:
    """One node of a parsed SQL submission.

    Attributes:
        kind: Type discriminator. For statements parsed by sqlglot this is
            the expression key (``select``, ``delete``, ``command``...). For
            procedural constructs it is one of ``block``, ``routine``,
            ``if``, ``while``, ``for``, ``loop``, ``repeat``, ``case`` or
            ``procedural``.
        sql: The statement's source text.
        expression: The sqlglot expression, None for procedural constructs.
        inner_statements: The inner statement sequence of a block, or None
            when the node is not a block.
    """

    kind: str
    sql: str
    expression: Expression | None = None
    inner_statements: tuple[Statement, ...] | None = None

    @property
    def is_block(self) -> bool:
        """True if this node contains an inner statement sequence."""
        return self.inner_statements is not None


class Parser:
    """Turns SQL text into Statement trees and renders them back.

    Example:
        >>> parser = Parser(dialect="oracle")
        >>> [s.kind for s in parser.parse("DELETE FROM t; BEGIN UPDATE t SET a = 1; END;")]
        ['delete', 'block']
    """

    def __init__(self, dialect: str | None = None) -> None:
        self.dialect = dialect

    def parse(self, sql: str) -> list[Statement]:
        """Parse SQL text into top-level statements.

        Raises:
            ParseError: If the text cannot be tokenized, a block is not
                terminated, or any statement fails to parse.
        """
        try:
            tokens = sqlglot.tokenize(sql, read=self.dialect)
        except SqlglotError as e:
            raise ParseError(str(e)) from e
        return _Splitter(sql, tokens, self._parse_plain).split()

    def parse_one(self, sql: str) -> Statement:
        """Parse text that must contain exactly one statement."""
        statements = self.parse(sql)
        if len(statements) != 1:
            raise ParseError(f"Expected one statement, found {len(statements)}")
        return statements[0]

    def render(self, statements: Sequence[Statement]) -> str:
        """Render statements back to normalized SQL text."""
        return ";\n".join(self.render_statement(s) for s in statements)

    def render_statement(self, statement: Statement) -> str:
        """Pretty-print one statement.

        Procedural constructs and opaque commands are rendered from their
        source text so the reviewer sees exactly what will run.
        """
        expression = statement.expression
        if expression is None or isinstance(expression, exp.Command):
            return statement.sql.strip()
        try:
            return expression.sql(dialect=self.dialect, pretty=True)
        except SqlglotError as e:
            raise ParseError(f"Cannot render statement: {e}") from e

    def _parse_plain(self, sql: str) -> Expression:
        try:
            expression = sqlglot.parse_one(sql, read=self.dialect)
        except SqlglotError as e:
            raise ParseError(str(e)) from e
        if expression is None or isinstance(expression, _BARE_EXPRESSIONS):
            raise ParseError(f"Not a SQL statement: {sql[:80]!r}")
        return expression


class _Splitter:
    """Recursive-descent walk over a token stream, one instance per parse."""

    def __init__(
        self,
        sql: str,
        tokens: list[Token],
        parse_plain: Callable[[str], Expression],
    ) -> None:
        self._sql = sql
        self._tokens = tokens
        self._parse_plain = parse_plain
        self._pos = 0

    def split(self) -> list[Statement]:
        statements = self._sequence(frozenset(), in_block=False)
        if not self._at_end():
            raise ParseError(f"Unexpected '{self._word()}'")
        return statements

    # -- token helpers -----------------------------------------------------

    def _at_end(self, index: int | None = None) -> bool:
        return (self._pos if index is None else index) >= len(self._tokens)

    def _word(self, index: int | None = None) -> str:
        """Upper-cased source text of a token ('' past the end).

        Using the source slice keeps quoted strings and identifiers from ever
        looking like keywords.
        """
        i = self._pos if index is None else index
        if i >= len(self._tokens):
            return ""
        token = self._tokens[i]
        return self._sql[token.start : token.end + 1].upper()

    def _is_separator(self, index: int) -> bool:
        """True for a semicolon, or for "/" or GO alone on a line.

        The line rule is a heuristic: a division operator written alone on
        its own line also splits the statement, which then fails to parse
        and is reviewed.
        """
        token = self._tokens[index]
        if token.token_type == TokenType.SEMICOLON:
            return True
        # SQL*Plus "/" or T-SQL GO on a line of its own
        if self._word(index) not in ("/", "GO"):
            return False
        before = index == 0 or self._tokens[index - 1].line < token.line
        after = index + 1 >= len(self._tokens) or self._tokens[index + 1].line > token.line
        return before and after

    def _skip_separators(self) -> None:
        while not self._at_end() and self._is_separator(self._pos):
            self._pos += 1

    def _find(
        self,
        words: frozenset[str],
        start: int,
        barrier: frozenset[str] = frozenset(),
    ) -> int | None:
        """Index of the first token in ``words`` before the next separator.

        Returns None when a separator, a ``barrier`` word or the end of input
        comes first.
        """
        i = start
        while not self._at_end(i) and not self._is_separator(i):
            word = self._word(i)
            if word in words:
                return i
            if word in barrier:
                return None
            i += 1
        return None

    def _text(self, first: int, last: int) -> str:
        return self._sql[self._tokens[first].start : self._tokens[last].end + 1]

    def _expect(self, words: frozenset[str], what: str) -> None:
        if self._word() not in words:
            found = self._word() or "end of input"
            raise ParseError(f"Expected {' or '.join(sorted(words))} to close {what}, found {found}")
        self._pos += 1

    def _opens_block(self, index: int) -> bool:
        """True if the BEGIN at ``index`` starts a block, not a transaction."""
        nxt = index + 1
        if self._at_end(nxt) or self._is_separator(nxt):
            return False
        return self._word(nxt) not in _TRANSACTION_WORDS

    # -- grammar -----------------------------------------------------------

    def _sequence(self, stop: frozenset[str], in_block: bool) -> list[Statement]:
        statements: list[Statement] = []
        while True:
            self._skip_separators()
            if self._at_end() or self._word() in stop:
                return statements
            statements.append(self._statement(in_block))

    def _statement(self, in_block: bool) -> Statement:
        word = self._word()
        if word == "BEGIN" and self._opens_block(self._pos):
            return self._block(self._pos)
        if word == "DECLARE" and not in_block:
            begin = self._declare_section_end()
            if begin is not None:
                start = self._pos
                self._pos = begin
                return self._block(start)
        if word == "CREATE":
            routine = self._routine()
            if routine is not None:
                return routine
        # Outside blocks only T-SQL style IF/WHILE can start a control statement
        if word in _CONTROL_WORDS and (in_block or word in ("IF", "WHILE")):
            control = self._control(word)
            if control is not None:
                return control
        return self._plain(in_block)

    def _block(self, start: int) -> Statement:
        """BEGIN ... [EXCEPTION WHEN ... THEN ...] END [label].

        ``start`` is the first token of the statement (BEGIN or DECLARE); the
        current position must be on the BEGIN.
        """
        inner = self._block_body()
        return Statement(
            kind="block",
            sql=self._text(start, self._pos - 1),
            inner_statements=inner,
        )

    def _block_body(self) -> tuple[Statement, ...]:
        """Consume BEGIN ... END from the current position."""
        self._pos += 1
        inner = self._sequence(_BLOCK_END, in_block=True)
        if self._word() == "EXCEPTION":
            self._pos += 1
            while self._word() == "WHEN":
                then = self._find(frozenset({"THEN"}), self._pos)
                if then is None:
                    raise ParseError("Exception handler without THEN")
                self._pos = then + 1
                inner.extend(self._sequence(frozenset({"END", "WHEN"}), in_block=True))
        self._expect(frozenset({"END"}), "BEGIN block")
        # Optional label on the END line: END proc_name; END TRY
        end_line = self._tokens[self._pos - 1].line
        if not self._at_end() and not self._is_separator(self._pos):
            token = self._tokens[self._pos]
            if token.token_type in (TokenType.VAR, TokenType.IDENTIFIER) and token.line == end_line:
                self._pos += 1
        return tuple(inner)

    def _declare_section_end(self) -> int | None:
        """Index of the BEGIN that closes a PL/SQL DECLARE section, if any."""
        nxt = self._pos + 1
        if self._at_end(nxt):
            return None
        # T-SQL: DECLARE @var ... is a plain statement
        if self._sql[self._tokens[nxt].start :].lstrip().startswith("@"):
            return None
        i = nxt
        while not self._at_end(i):
            if self._word(i) == "BEGIN" and self._opens_block(i):
                return i
            i += 1
        return None

    def _routine(self) -> Statement | None:
        """CREATE PROCEDURE/FUNCTION/TRIGGER with a BEGIN ... END body."""
        start = self._pos
        i = start + 1
        while not self._at_end(i) and not self._is_separator(i) and i < start + 12:
            word = self._word(i)
            if word in _ROUTINE_WORDS:
                break
            if word in _NOT_ROUTINE_WORDS:
                return None
            i += 1
        else:
            return None

        saw_as = False
        while not self._at_end(i):
            word = self._word(i)
            if self._is_separator(i) and not saw_as:
                return None
            if word in ("AS", "IS") and not saw_as:
                saw_as = True
                following = self._word(i + 1)
                # Body given as a string ($$...$$, '...') or a single statement
                if following[:1] in ("'", '"', "$") or following in _STATEMENT_WORDS:
                    return None
            elif word == "BEGIN" and self._opens_block(i):
                self._pos = i
                inner = self._block_body()
                return Statement(
                    kind="routine",
                    sql=self._text(start, self._pos - 1),
                    inner_statements=inner,
                )
            i += 1
        return None

    def _control(self, word: str) -> Statement | None:
        start = self._pos
        if word == "IF":
            inner = self._if()
        elif word in ("WHILE", "FOR"):
            inner = self._loop_with_header(word)
        elif word == "LOOP":
            self._pos += 1
            inner = self._sequence(frozenset({"END"}), in_block=True)
            self._expect(frozenset({"END"}), "LOOP")
            self._expect(frozenset({"LOOP"}), "LOOP")
        elif word == "REPEAT":
            inner = self._repeat()
        else:
            inner = self._case()
        if inner is None:
            self._pos = start
            return None
        return Statement(
            kind=word.lower(),
            sql=self._text(start, self._pos - 1),
            inner_statements=tuple(inner),
        )

    def _if(self) -> list[Statement] | None:
        then = self._find(frozenset({"THEN"}), self._pos, barrier=frozenset({"BEGIN"}))
        if then is None:
            return self._tsql_branch()
        self._pos = then + 1
        branch_end = frozenset({"ELSIF", "ELSEIF", "ELSE", "END"})
        inner = self._sequence(branch_end, in_block=True)
        while self._word() in ("ELSIF", "ELSEIF"):
            then = self._find(frozenset({"THEN"}), self._pos)
            if then is None:
                raise ParseError("ELSIF without THEN")
            self._pos = then + 1
            inner.extend(self._sequence(branch_end, in_block=True))
        if self._word() == "ELSE":
            self._pos += 1
            inner.extend(self._sequence(frozenset({"END"}), in_block=True))
        self._expect(frozenset({"END"}), "IF")
        self._expect(frozenset({"IF"}), "IF")
        return inner

    def _tsql_branch(self) -> list[Statement] | None:
        """IF/WHILE condition followed by a BEGIN ... END body (T-SQL)."""
        begin = self._find(frozenset({"BEGIN"}), self._pos)
        if begin is None or not self._opens_block(begin):
            return None
        self._pos = begin
        inner = [self._block(begin)]
        if self._word() == "ELSE":
            self._pos += 1
            self._skip_separators()
            inner.append(self._statement(in_block=True))
        return inner

    def _loop_with_header(self, word: str) -> list[Statement] | None:
        body = self._find(frozenset({"LOOP", "DO"}), self._pos, barrier=frozenset({"BEGIN"}))
        if body is None:
            return self._tsql_branch() if word == "WHILE" else None
        self._pos = body + 1
        inner = self._sequence(frozenset({"END"}), in_block=True)
        self._expect(frozenset({"END"}), word)
        self._expect(frozenset({"LOOP", "WHILE", "FOR"}), word)
        return inner

    def _repeat(self) -> list[Statement]:
        self._pos += 1
        inner = self._sequence(frozenset({"UNTIL"}), in_block=True)
        self._expect(frozenset({"UNTIL"}), "REPEAT")
        while not self._at_end() and not (
            self._word() == "END" and self._word(self._pos + 1) == "REPEAT"
        ):
            self._pos += 1
        self._expect(frozenset({"END"}), "REPEAT")
        self._expect(frozenset({"REPEAT"}), "REPEAT")
        return inner

    def _case(self) -> list[Statement] | None:
        when = self._find(frozenset({"WHEN"}), self._pos)
        if when is None:
            return None
        self._pos = when
        inner: list[Statement] = []
        while self._word() == "WHEN":
            then = self._find(frozenset({"THEN"}), self._pos)
            if then is None:
                raise ParseError("CASE branch without THEN")
            self._pos = then + 1
            inner.extend(self._sequence(frozenset({"WHEN", "ELSE", "END"}), in_block=True))
        if self._word() == "ELSE":
            self._pos += 1
            inner.extend(self._sequence(frozenset({"END"}), in_block=True))
        self._expect(frozenset({"END"}), "CASE")
        self._expect(frozenset({"CASE"}), "CASE")
        return inner

    def _plain(self, in_block: bool) -> Statement:
        start = self._pos
        case_depth = 0
        while not self._at_end() and not self._is_separator(self._pos):
            word = self._word()
            if word == "CASE":
                case_depth += 1
            elif word == "END" and case_depth > 0:
                case_depth -= 1
            elif (
                in_block
                and case_depth == 0
                and self._pos > start
                and word in ("END", "ELSE", "ELSIF", "ELSEIF")
            ):
                # T-SQL blocks do not require semicolons
                break
            self._pos += 1
        if self._pos == start:
            raise ParseError(f"Unexpected '{self._word()}'")

        text = self._text(start, self._pos - 1)
        if in_block and (self._word(start) in _PROCEDURAL_WORDS or _ASSIGNMENT.match(text)):
            return Statement(kind="procedural", sql=text)
        expression = self._parse_plain(text)
        return Statement(kind=expression.key, sql=text, expression=expression)
