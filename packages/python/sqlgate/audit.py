"""Audit trail of gate decisions and execution outcomes."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from loguru import logger


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


@dataclass(frozen=True)
class AuditEntry:
    """One audit record.

    Attributes:
        sql: The submitted SQL.
        matched_keywords: Keyword hits that triggered review, if any.
        approved: Whether the SQL was allowed to run (and ran successfully).
        action: SUCCESS, USER_REJECTED, CONFIRM_ERROR: <msg>,
            EXECUTION_ERROR: <msg>, QUERY_TO_CSV, QUERY_TO_TEXT...
        connection: Connection label.
        database: Database name.
        schema: Schema name.
        driver: Driver name.
        output_path: Output file for export operations.
        timestamp: UTC ISO-8601 time the entry was created.
    """

    sql: str
    matched_keywords: tuple[str, ...] = ()
    approved: bool = False
    action: str = ""
    connection: str = ""
    database: str | None = None
    schema: str | None = None
    driver: str | None = None
    output_path: str | None = None
    timestamp: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["matched_keywords"] = list(self.matched_keywords)
        return data


class AuditSink(Protocol):
    """Anything that can record audit entries."""

    def record(self, entry: AuditEntry) -> None: ...


class JsonlAuditSink:
    """Appends one JSON object per line to a file through loguru.

    Each sink owns a loguru file handler that only accepts records bound
    to it, so audit lines never mix with diagnostics. Records are written
    from loguru's queue thread; call close() to flush and detach.
    """

    def __init__(self, path: str | Path, rotation: str | None = "50 MB", enqueue: bool = True) -> None:
        self.path = Path(path)
        self._token = uuid4().hex
        self._logger = logger.bind(audit_sink=self._token)
        self._handler_id: int | None = logger.add(
            str(self.path),
            # TRACE sits below the default stderr handler's DEBUG threshold
            level="TRACE",
            format="{message}",
            filter=lambda record: record["extra"].get("audit_sink") == self._token,
            rotation=rotation,
            enqueue=enqueue,
            encoding="utf-8",
        )

    def record(self, entry: AuditEntry) -> None:
        if self._handler_id is None:
            raise RuntimeError(f"Audit sink for {self.path} is closed")
        self._logger.trace("{}", json.dumps(entry.to_dict(), ensure_ascii=False))

    def close(self) -> None:
        if self._handler_id is None:
            return
        handler_id, self._handler_id = self._handler_id, None
        try:
            logger.remove(handler_id)
        except ValueError:
            # Detached by a host calling logger.remove()
            logger.debug("Audit handler for {} was already removed", self.path)

    def __enter__(self) -> JsonlAuditSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"JsonlAuditSink({str(self.path)!r})"


class MemoryAuditSink:
    """Keeps entries in memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: list[AuditEntry] = []

    @property
    def entries(self) -> list[AuditEntry]:
        with self._lock:
            return list(self._entries)

    def record(self, entry: AuditEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def record_safely(sink: AuditSink | None, entry: AuditEntry) -> None:
    """Record ``entry``, logging instead of raising on failure."""
    if sink is None:
        return
    try:
        sink.record(entry)
    except Exception as e:
        logger.error("Audit record failed ({}): {}", entry.action, e)
