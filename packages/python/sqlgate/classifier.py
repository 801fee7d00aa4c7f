"""Statement classification: canonical type tags and DDL detection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlglot import exp

from .keywords import dedupe_keywords, keyword_key
from .result import UNKNOWN

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlglot.expressions import Expression

    from .parser import Statement

# sqlglot expression key -> canonical tag. Keys are used instead of classes
# so that renamed expression classes (AlterTable -> Alter) map the same way.
_TAG_BY_KEY = {
    "select": "SELECT",
    "union": "SELECT",
    "intersect": "SELECT",
    "except": "SELECT",
    "subquery": "SELECT",
    "values": "SELECT",
    "insert": "INSERT",
    "update": "UPDATE",
    "delete": "DELETE",
    "merge": "MERGE",
    "truncatetable": "TRUNCATE",
    "drop": "DROP",
    "create": "CREATE",
    "alter": "ALTER",
    "altertable": "ALTER",
    "comment": "COMMENT",
    "grant": "GRANT",
    "revoke": "REVOKE",
    "transaction": "BEGIN",
    "commit": "COMMIT",
    "rollback": "ROLLBACK",
    "set": "SET",
    "use": "USE",
    "execute": "EXECUTE",
}

# Leading keywords of opaque sqlglot Commands that map to a tag
_COMMAND_TAGS = frozenset(
    {
        "CREATE",
        "DROP",
        "ALTER",
        "TRUNCATE",
        "COMMENT",
        "RENAME",
        "GRANT",
        "REVOKE",
        "CALL",
        "EXEC",
        "EXECUTE",
        "INSERT",
        "UPDATE",
        "DELETE",
        "MERGE",
        "SET",
        "USE",
    }
)

_DDL_TAGS = frozenset({"CREATE", "DROP", "ALTER", "TRUNCATE", "COMMENT", "RENAME"})
_DML_KEYS = frozenset({"insert", "update", "delete", "merge"})

# Procedural node kinds (see parser.Statement) -> tag
_PROCEDURAL_TAGS = {
    "block": "BLOCK",
    "routine": "CREATE",
    "if": "IF",
    "while": "WHILE",
    "for": "FOR",
    "loop": "LOOP",
    "repeat": "REPEAT",
    "case": "CASE",
}


@dataclass(frozen=True)
class Classification:
    """Canonical type of a single statement node."""

    tag: str
    is_ddl: bool = False


@dataclass(frozen=True)
class Traversal:
    """Partial analysis of one statement subtree.

    Produced per node by StatementClassifier.collect() and folded with
    merge(), so no accumulator is shared between recursive calls.

    Attributes:
        first_type: First tag met in traversal order (None if no node).
        actions: Tags that are configured action keywords, first-seen order.
        is_ddl: True if any node in the subtree is DDL.
        has_block: True if any node in the subtree has inner statements.
    """

    first_type: str | None = None
    actions: tuple[str, ...] = ()
    is_ddl: bool = False
    has_block: bool = False

    def merge(self, other: Traversal) -> Traversal:
        """Combine with a later subtree; this traversal's values win on order."""
        seen = {keyword_key(a) for a in self.actions}
        extra = tuple(a for a in other.actions if keyword_key(a) not in seen)
        return Traversal(
            first_type=self.first_type if self.first_type is not None else other.first_type,
            actions=self.actions + extra,
            is_ddl=self.is_ddl or other.is_ddl,
            has_block=self.has_block or other.has_block,
        )


def _expression_tag(expression: Expression) -> str:
    if isinstance(expression, exp.Command):
        keyword = str(expression.this or "").strip().upper()
        return keyword if keyword in _COMMAND_TAGS else UNKNOWN

    # Writable CTE: WITH d AS (DELETE ... RETURNING *) SELECT * FROM d
    if isinstance(expression, exp.Query):
        for cte in expression.find_all(exp.CTE):
            if cte.this is not None and cte.this.key in _DML_KEYS:
                return _TAG_BY_KEY[cte.this.key]

    return _TAG_BY_KEY.get(expression.key, UNKNOWN)


def classify(statement: Statement) -> Classification:
    """Map one statement node to its tag and DDL flag.

    Unknown node shapes classify as UNKNOWN instead of failing.

    Example:
        >>> from sqlgate.parser import Parser
        >>> classify(Parser().parse_one("DROP TABLE users"))
        Classification(tag='DROP', is_ddl=True)
    """
    if statement.expression is None:
        tag = _PROCEDURAL_TAGS.get(statement.kind, UNKNOWN)
        return Classification(tag=tag, is_ddl=statement.kind == "routine")

    expression = statement.expression
    tag = _expression_tag(expression)
    is_ddl = tag in _DDL_TAGS
    # SELECT ... INTO new_table creates a table
    if isinstance(expression, exp.Select) and expression.args.get("into") is not None:
        is_ddl = True
    return Classification(tag=tag, is_ddl=is_ddl)


class StatementClassifier:
    """Classifies statement trees against a configured action-keyword list.

    Blocks are not opaque: every inner statement, at any depth, contributes
    its own tag and DDL flag. Inner statements are visited before the block
    node itself, so ``BEGIN DELETE FROM t; END`` has first type DELETE.

    Example:
        >>> from sqlgate.parser import Parser
        >>> classifier = StatementClassifier(action_keywords=["delete"])
        >>> stmt = Parser().parse_one("BEGIN DELETE FROM t WHERE id = 1; END")
        >>> classifier.collect(stmt).actions
        ('DELETE',)
    """

    def __init__(self, action_keywords: Iterable[str | None] = ()) -> None:
        self._action_keys = frozenset(keyword_key(k) for k in dedupe_keywords(action_keywords))

    def classify(self, statement: Statement) -> Classification:
        """Classify a single node (no recursion)."""
        return classify(statement)

    def is_action(self, tag: str) -> bool:
        """True if the tag equals a configured action keyword (case-insensitive)."""
        return keyword_key(tag) in self._action_keys

    def collect(self, statement: Statement) -> Traversal:
        """Traverse a statement and its inner statements depth-first.

        Inner statements come before their enclosing node. Nodes without a
        statement tag (assignments, RETURN, NULL...) are skipped when picking
        first_type, so a block opening with "v := 1" reports the type of the
        first real statement instead of UNKNOWN. A tree with no tagged node
        at all leaves first_type as None and the result type is UNKNOWN.
        """
        result = Traversal()
        if statement.inner_statements is not None:
            result = Traversal(has_block=True)
            for inner in statement.inner_statements:
                result = result.merge(self.collect(inner))

        classification = self.classify(statement)
        tag = classification.tag
        own = Traversal(
            first_type=tag if tag != UNKNOWN else None,
            actions=(tag,) if self.is_action(tag) else (),
            is_ddl=classification.is_ddl,
        )
        return result.merge(own)

    def collect_all(self, statements: Iterable[Statement]) -> Traversal:
        """Fold collect() over top-level statements in order."""
        result = Traversal()
        for statement in statements:
            result = result.merge(self.collect(statement))
        return result
