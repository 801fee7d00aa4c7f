"""macOS review dialog via osascript."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

from loguru import logger

from ..confirm import build_header, build_message
from ..exceptions import ReviewChannelError
from .base import DEFAULT_TIMEOUT_SECONDS, ReviewChannel

if TYPE_CHECKING:
    from ..confirm import ConfirmationRequest

# osascript exits 1 when the user presses Cancel
_CANCELLED = 1


def applescript_string(text: str) -> str:
    """Quote text as an AppleScript string literal."""
    escaped = (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\r\n", "\n")
        .replace("\r", "\n")
        .replace("\n", "\\n")
    )
    return f'"{escaped}"'


class DarwinReviewChannel(ReviewChannel):
    """Native ``display dialog`` with Cancel (default) and Execute buttons."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS, osascript: str = "osascript") -> None:
        self.timeout = timeout
        self.osascript = osascript

    @property
    def name(self) -> str:
        return "darwin"

    def build_script(self, request: ConfirmationRequest) -> str:
        message = build_message(request, sql=request.rendered_text())
        return (
            f"display dialog {applescript_string(message)} "
            f"with title {applescript_string(build_header(request))} "
            'buttons {"Cancel", "Execute"} default button "Cancel" with icon caution'
        )

    def present(self, request: ConfirmationRequest) -> bool:
        try:
            completed = subprocess.run(
                [self.osascript, "-e", self.build_script(request)],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.warning("macOS review dialog timed out after {}s", self.timeout)
            return False
        except OSError as e:
            raise ReviewChannelError(f"Cannot start {self.osascript}: {e}") from e

        if completed.returncode == _CANCELLED:
            return False
        if completed.returncode != 0:
            raise ReviewChannelError(
                f"{self.osascript} exited with {completed.returncode}: {completed.stderr.strip()}"
            )
        return "Execute" in completed.stdout
