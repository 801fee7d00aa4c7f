"""Gated execution: the boundary between callers and a SQL engine.

The GatedExecutor owns no database code. It resolves which connection a
request targets, runs SQL through the ConfirmationGate, hands approved SQL
to a caller-supplied SqlExecutor, and records every outcome to an
AuditSink. Failures are returned as Outcome values; one failed submission
never affects the next.
"""

from __future__ import annotations

import re
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Protocol

from loguru import logger

from .audit import AuditEntry, record_safely
from .gate import ReviewContext, Verdict

if TYPE_CHECKING:
    from .audit import AuditSink
    from .gate import ConfirmationGate, GateDecision

_TRAILING_SLASH_LINE = re.compile(r"(?:\r?\n|^)[ \t]*/[ \t]*(?:\r?\n)*\Z")


class SqlExecutor(Protocol):
    """Runs SQL against a named connection."""

    def execute(self, connection: str, sql: str) -> Any: ...

    def query_to_csv(self, connection: str, sql: str, path: Path) -> int: ...

    def query_to_text(self, connection: str, sql: str, path: Path) -> int: ...


@dataclass(frozen=True)
class ConnectionInfo:
    """Metadata about a configured connection."""

    name: str
    database: str | None = None
    schema: str | None = None
    driver: str | None = None


class ConnectionResolver(Protocol):
    """Lists configured connections and their metadata."""

    def names(self) -> list[str]: ...

    def info(self, name: str) -> ConnectionInfo | None: ...


class StaticConnections:
    """ConnectionResolver over a fixed list of connections."""

    def __init__(self, connections: list[ConnectionInfo] | None = None) -> None:
        self._connections = {c.name: c for c in connections or []}

    def names(self) -> list[str]:
        return list(self._connections)

    def info(self, name: str) -> ConnectionInfo | None:
        return self._connections.get(name)


class OutcomeCode(str, Enum):
    SUCCESS = "SUCCESS"
    USER_REJECTED = "USER_REJECTED"
    CONFIRM_ERROR = "CONFIRM_ERROR"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"


@dataclass(frozen=True)
class Outcome:
    """Result of one orchestrated operation.

    Attributes:
        code: What happened.
        message: Human-readable summary.
        result: Executor return value on success (rows written for exports).
        matched_keywords: Keywords that triggered review, for rejections.
        output_path: Output file for export operations.
    """

    code: OutcomeCode
    message: str = ""
    result: Any = None
    matched_keywords: tuple[str, ...] = ()
    output_path: str | None = None

    @property
    def ok(self) -> bool:
        return self.code is OutcomeCode.SUCCESS

    @classmethod
    def invalid(cls, message: str) -> Outcome:
        return cls(OutcomeCode.INVALID_REQUEST, message)


@dataclass(frozen=True)
class _Target:
    key: str
    context: ReviewContext


class LogThrottle:
    """Drops a diagnostic message identical to the previous one within ``window`` seconds.

    Owned by the caller; nothing about it is process-wide.
    """

    def __init__(self, window: float = 2.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self._last_message: str | None = None
        self._last_at = 0.0

    def allow(self, message: str) -> bool:
        """True if ``message`` should be emitted now."""
        with self._lock:
            now = self._clock()
            if message == self._last_message and now - self._last_at < self.window:
                return False
            self._last_message = message
            self._last_at = now
            return True

    def debug(self, message: str) -> None:
        if self.allow(message):
            logger.debug(message)


def strip_trailing_slash_lines(sql: str) -> str:
    """Remove trailing lines that hold only ``/`` (SQL*Plus run command)."""
    previous = None
    while previous != sql:
        previous = sql
        sql = _TRAILING_SLASH_LINE.sub("", sql.rstrip("\r\n"))
    return sql


class GatedExecutor:
    """Runs SQL through the gate and an executor, auditing every outcome.

    Direct SQL and SQL files go through the gate. Exports to CSV or text
    files bypass it: they are read-only by policy of the host.

    Example:
        executor = GatedExecutor(
            gate=settings.build_gate(),
            executor=my_engine,
            connections=StaticConnections([ConnectionInfo("prod", database="sales")]),
            audit=JsonlAuditSink("audit.log"),
        )
        outcome = executor.execute_sql("DELETE FROM orders WHERE id = 7")
        if not outcome.ok:
            print(outcome.code, outcome.message)
    """

    def __init__(
        self,
        gate: ConfirmationGate,
        executor: SqlExecutor,
        connections: ConnectionResolver | None = None,
        audit: AuditSink | None = None,
        throttle: LogThrottle | None = None,
    ) -> None:
        self.gate = gate
        self.executor = executor
        self.connections = connections or StaticConnections()
        self.audit = audit
        self.throttle = throttle

    def execute_sql(self, sql: str | None, connection: str | None = None) -> Outcome:
        """Execute SQL text after gating it."""
        text = (sql or "").strip()
        if not text:
            return Outcome.invalid("sql cannot be empty")
        target = self._resolve(connection)
        if isinstance(target, Outcome):
            return target
        return self._gated(text, target)

    def execute_sql_file(self, file_path: str | Path, connection: str | None = None) -> Outcome:
        """Execute the SQL in a UTF-8 file after gating it.

        Relative paths are resolved against the working directory. Trailing
        ``/`` lines are removed before analysis.
        """
        if not str(file_path).strip():
            return Outcome.invalid("file_path cannot be empty")
        path = Path(str(file_path).strip()).absolute()
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return Outcome.invalid(f"Cannot read file: {e}")
        if not content.strip():
            return Outcome.invalid("File is empty")
        sql = strip_trailing_slash_lines(content).strip()
        if not sql:
            return Outcome.invalid('File contains no SQL (only "/" lines)')

        target = self._resolve(connection, source_label=f"File: {path}")
        if isinstance(target, Outcome):
            return target
        return self._gated(sql, target)

    def query_to_csv_file(self, sql: str | None, file_path: str | Path, connection: str | None = None) -> Outcome:
        """Write query results to a CSV file. Not gated."""
        return self._export(sql, file_path, connection, "QUERY_TO_CSV", self.executor.query_to_csv)

    def query_to_text_file(self, sql: str | None, file_path: str | Path, connection: str | None = None) -> Outcome:
        """Write query results to a plain-text file. Not gated."""
        return self._export(sql, file_path, connection, "QUERY_TO_TEXT", self.executor.query_to_text)

    def _resolve(self, connection: str | None, source_label: str | None = None) -> _Target | Outcome:
        name = (connection or "").strip()
        names = self.connections.names()
        if not name:
            if len(names) > 1:
                return Outcome.invalid("Multiple connections configured; specify 'connection'.")
            name = names[0] if names else ""
        elif names and name not in names:
            return Outcome.invalid(f"Unknown connection '{name}'. Configured: {', '.join(names)}")

        label = name or "default"
        info = self.connections.info(name) if name else None
        context = ReviewContext(
            connection=label,
            source_label=source_label,
            database=(info.database if info else None) or label,
            schema=info.schema if info else None,
            driver=info.driver if info else None,
        )
        return _Target(key=name, context=context)

    def _gated(self, sql: str, target: _Target) -> Outcome:
        decision = self.gate.evaluate(sql, target.context)
        keywords = decision.analysis.matched_keywords

        if decision.rejected:
            self._audit(sql, keywords, False, decision.audit_action() or "", target)
            return self._rejection(decision)

        try:
            result = self.executor.execute(target.key, sql)
        except Exception as e:
            logger.warning("SQL execution failed on {}: {}", target.context.connection, e)
            self._audit(sql, keywords, False, f"EXECUTION_ERROR: {e}", target)
            return Outcome(OutcomeCode.EXECUTION_ERROR, f"SQL execution failed: {e}")

        self._audit(sql, keywords, True, "SUCCESS", target)
        if self.throttle is not None:
            message = f"Execute Action: {decision.analysis.statement_type}, Connection: {target.context.connection}"
            if target.context.source_label:
                message = f"{message}, {target.context.source_label}"
            self.throttle.debug(message)
        return Outcome(OutcomeCode.SUCCESS, "OK", result=result)

    def _rejection(self, decision: GateDecision) -> Outcome:
        keywords = decision.analysis.matched_keywords
        if decision.verdict is Verdict.CHANNEL_ERROR:
            return Outcome(
                OutcomeCode.CONFIRM_ERROR,
                f"Confirmation dialog error: {decision.error}",
                matched_keywords=keywords,
            )
        return Outcome(OutcomeCode.USER_REJECTED, "Execution cancelled by user", matched_keywords=keywords)

    def _export(
        self,
        sql: str | None,
        file_path: str | Path,
        connection: str | None,
        action: str,
        run: Callable[[str, str, Path], int],
    ) -> Outcome:
        text = (sql or "").strip()
        if not text:
            return Outcome.invalid("sql cannot be empty")
        path = Path(str(file_path).strip())
        if not path.is_absolute():
            return Outcome.invalid("file_path must be an absolute path")
        target = self._resolve(connection)
        if isinstance(target, Outcome):
            return target

        try:
            rows = run(target.key, text, path)
        except Exception as e:
            logger.warning("{} failed on {}: {}", action, target.context.connection, e)
            self._audit(text, (), False, f"{action}_ERROR: {e}", target, output_path=str(path))
            return Outcome(OutcomeCode.EXECUTION_ERROR, f"{action.lower()}_file failed: {e}", output_path=str(path))

        self._audit(text, (), True, action, target, output_path=str(path))
        return Outcome(OutcomeCode.SUCCESS, f"{rows} rows written to {path}", result=rows, output_path=str(path))

    def _audit(
        self,
        sql: str,
        keywords: tuple[str, ...],
        approved: bool,
        action: str,
        target: _Target,
        output_path: str | None = None,
    ) -> None:
        context = target.context
        record_safely(
            self.audit,
            AuditEntry(
                sql=sql,
                matched_keywords=keywords,
                approved=approved,
                action=action,
                connection=context.connection,
                database=context.database,
                schema=context.schema,
                driver=context.driver,
                output_path=output_path,
            ),
        )
