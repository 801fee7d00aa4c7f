"""Tests for logging setup."""

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from loguru import logger

from sqlgate.audit import AuditEntry, JsonlAuditSink
from sqlgate.logs import configure_logging


@pytest.fixture
def restore_logger() -> Iterator[None]:
    logger.remove()
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestConfigureLogging:
    """Test the host logging helper."""

    def test_console_handler(self, restore_logger: None, capsys: pytest.CaptureFixture[str]) -> None:
        """Diagnostics go to stderr at the configured level."""
        configure_logging("info")
        logger.debug("hidden detail")
        logger.warning("review channel failed")
        captured = capsys.readouterr()
        assert "review channel failed" in captured.err
        assert "hidden detail" not in captured.err
        assert captured.out == ""

    def test_audit_records_stay_out_of_console(
        self, restore_logger: None, capsys: pytest.CaptureFixture[str], tmp_path: Path
    ) -> None:
        """Audit lines are written only to their own file."""
        configure_logging("TRACE")
        with JsonlAuditSink(tmp_path / "audit.log", rotation=None, enqueue=False) as sink:
            sink.record(AuditEntry(sql="DROP TABLE secret_stuff"))
        assert "secret_stuff" not in capsys.readouterr().err
        assert "secret_stuff" in (tmp_path / "audit.log").read_text(encoding="utf-8")

    def test_console_disabled(self, restore_logger: None, capsys: pytest.CaptureFixture[str]) -> None:
        """With console off nothing is printed."""
        configure_logging(console=False)
        logger.error("nobody hears this")
        assert capsys.readouterr().err == ""

    def test_audit_sink_survives_reconfiguration(self, restore_logger: None, tmp_path: Path) -> None:
        """Reconfiguring the console leaves existing audit sinks attached."""
        path = tmp_path / "audit.log"
        sink = JsonlAuditSink(path, rotation=None, enqueue=False)
        configure_logging("INFO")
        configure_logging("DEBUG")
        sink.record(AuditEntry(sql="DROP TABLE t"))
        sink.close()
        assert "DROP TABLE t" in path.read_text(encoding="utf-8")

    def test_close_after_host_removed_handlers(self, restore_logger: None, tmp_path: Path) -> None:
        """Closing a sink whose handler the host already removed is harmless."""
        sink = JsonlAuditSink(tmp_path / "audit.log", rotation=None, enqueue=False)
        logger.remove()
        sink.close()
        sink.close()
