"""Diagnostic logging setup for hosts embedding SQLGate."""

from __future__ import annotations

import sys

from loguru import logger

# loguru installs its stderr handler with id 0 on import
_DEFAULT_HANDLER_ID = 0
_console_handler_id: int | None = None


def _not_audit(record: dict) -> bool:
    return "audit_sink" not in record["extra"]


def _remove_handler(handler_id: int) -> None:
    try:
        logger.remove(handler_id)
    except ValueError:
        # Already removed by the host
        pass


def configure_logging(level: str = "INFO", console: bool = True) -> None:
    """Replace loguru's default handler with a stderr handler at ``level``.

    Only loguru's default handler and the handler installed by a previous
    call are replaced; audit sinks and handlers added by the host stay
    attached. Audit records never reach this handler. Nothing is written
    to stdout, which may be carrying a request/response protocol. The
    library itself never calls this; hosts do.
    """
    global _console_handler_id

    _remove_handler(_DEFAULT_HANDLER_ID)
    if _console_handler_id is not None:
        _remove_handler(_console_handler_id)
        _console_handler_id = None

    if console:
        _console_handler_id = logger.add(
            sys.stderr,
            level=level.upper(),
            filter=_not_audit,
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {name}:{line} - {message}",
            backtrace=False,
            diagnose=False,
        )
