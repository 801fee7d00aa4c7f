"""Tests for audit sinks."""

import json
from pathlib import Path

from sqlgate.audit import AuditEntry, JsonlAuditSink, MemoryAuditSink, record_safely


class FailingSink:
    def record(self, entry: AuditEntry) -> None:
        raise OSError("disk full")


class TestAuditEntry:
    """Test audit record contents."""

    def test_timestamp_is_utc_iso8601(self) -> None:
        """Entries are stamped with a UTC ISO-8601 time."""
        entry = AuditEntry(sql="SELECT 1")
        assert entry.timestamp.endswith("+00:00")
        assert "T" in entry.timestamp

    def test_to_dict(self) -> None:
        """Serialisable form uses plain lists."""
        entry = AuditEntry(sql="DROP TABLE t", matched_keywords=("DROP",), action="USER_REJECTED")
        data = entry.to_dict()
        assert data["matched_keywords"] == ["DROP"]
        assert data["approved"] is False
        assert data["action"] == "USER_REJECTED"


class TestJsonlAuditSink:
    """Test the loguru-backed JSONL file sink."""

    def test_one_json_object_per_line(self, tmp_path: Path) -> None:
        """Each record becomes one parseable line."""
        path = tmp_path / "audit.log"
        with JsonlAuditSink(path, rotation=None, enqueue=False) as sink:
            sink.record(AuditEntry(sql="DELETE FROM t", matched_keywords=("DELETE",), approved=True, action="SUCCESS"))
            sink.record(AuditEntry(sql="SELECT '{x}'", action="QUERY_TO_CSV", output_path="/tmp/out.csv"))

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        first, second = (json.loads(line) for line in lines)
        assert first["sql"] == "DELETE FROM t"
        assert first["approved"] is True
        assert second["sql"] == "SELECT '{x}'"
        assert second["output_path"] == "/tmp/out.csv"

    def test_sinks_do_not_mix(self, tmp_path: Path) -> None:
        """Two sinks write only their own records."""
        with JsonlAuditSink(tmp_path / "a.log", rotation=None, enqueue=False) as a:
            with JsonlAuditSink(tmp_path / "b.log", rotation=None, enqueue=False) as b:
                a.record(AuditEntry(sql="A"))
                b.record(AuditEntry(sql="B"))

        assert [json.loads(line)["sql"] for line in (tmp_path / "a.log").read_text().splitlines()] == ["A"]
        assert [json.loads(line)["sql"] for line in (tmp_path / "b.log").read_text().splitlines()] == ["B"]


class TestMemoryAuditSink:
    """Test the in-memory sink."""

    def test_records_in_order(self) -> None:
        """Entries are kept in arrival order."""
        sink = MemoryAuditSink()
        sink.record(AuditEntry(sql="1"))
        sink.record(AuditEntry(sql="2"))
        assert [e.sql for e in sink.entries] == ["1", "2"]
        sink.clear()
        assert sink.entries == []


class TestRecordSafely:
    """Test fire-and-forget recording."""

    def test_failure_is_swallowed(self) -> None:
        """A failing sink never raises into the caller."""
        record_safely(FailingSink(), AuditEntry(sql="SELECT 1"))

    def test_no_sink(self) -> None:
        """Recording without a sink is a no-op."""
        record_safely(None, AuditEntry(sql="SELECT 1"))
