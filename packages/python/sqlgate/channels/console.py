"""Terminal review channel."""

from __future__ import annotations

import selectors
import sys
import threading
import time
from typing import TYPE_CHECKING, TextIO
from weakref import WeakKeyDictionary

from loguru import logger

from ..confirm import build_header, build_message
from .base import ReviewChannel, review_deadline

if TYPE_CHECKING:
    from ..confirm import ConfirmationRequest

_RULE = "=" * 60

# One prompt at a time per input stream
_stream_locks: WeakKeyDictionary[TextIO, threading.Lock] = WeakKeyDictionary()
_stream_locks_guard = threading.Lock()


def _stream_lock(stream: TextIO) -> threading.Lock:
    with _stream_locks_guard:
        lock = _stream_locks.get(stream)
        if lock is None:
            lock = _stream_locks[stream] = threading.Lock()
        return lock


def _wait_readable(stream: TextIO, timeout: float) -> bool:
    """Wait up to ``timeout`` seconds for input on ``stream``.

    Streams without a selectable descriptor (in-memory streams, Windows
    consoles) are reported readable and read directly.
    """
    try:
        fd = stream.fileno()
    except (AttributeError, OSError, ValueError):
        return True
    try:
        with selectors.DefaultSelector() as selector:
            selector.register(fd, selectors.EVENT_READ)
            return bool(selector.select(timeout))
    except (OSError, ValueError):
        return True


class ConsoleReviewChannel(ReviewChannel):
    """Asks for approval on an interactive terminal.

    The prompt is written to stderr by default so that a line protocol on
    stdout is never disturbed. When the input stream is not a terminal
    (piped input, test harness, service) the request is denied: an
    unattended process cannot approve on a human's behalf.

    Prompts sharing an input stream are shown one at a time, so an answer
    always belongs to the prompt on screen. Inside a BoundedReviewChannel
    the prompt stops reading at the review deadline and leaves any later
    input to the next prompt.
    """

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self._stdin = stdin
        self._stdout = stdout

    @property
    def name(self) -> str:
        return "console"

    def present(self, request: ConfirmationRequest) -> bool:
        stdin = self._stdin if self._stdin is not None else sys.stdin
        stdout = self._stdout if self._stdout is not None else sys.stderr
        if not stdin.isatty():
            logger.warning("Non-interactive stdin; denying SQL review for {}", request.connection or "default")
            return False

        deadline = review_deadline()
        lock = _stream_lock(stdin)
        if not lock.acquire(timeout=-1 if deadline is None else max(0.0, deadline - time.monotonic())):
            logger.warning("Terminal busy with another review until the deadline; treating as reject")
            return False
        try:
            message = build_message(request, sql=request.rendered_text())
            stdout.write(f"\n{_RULE}\n{build_header(request)}\n{_RULE}\n{message}\n")
            stdout.write("Execute? [y/N]: ")
            stdout.flush()

            if deadline is not None:
                ready = _wait_readable(stdin, max(0.0, deadline - time.monotonic()))
                # Input arriving after the deadline belongs to the next prompt
                if not ready or time.monotonic() >= deadline:
                    stdout.write("\n")
                    stdout.flush()
                    return False
            answer = stdin.readline()
        finally:
            lock.release()
        # Empty string means EOF
        return answer.strip().lower() in ("y", "yes")
