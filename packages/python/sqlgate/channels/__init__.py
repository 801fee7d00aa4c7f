"""Review channels: the ways a human can approve or reject SQL."""

from __future__ import annotations

import sys
from typing import TextIO

from .base import (
    DEFAULT_TIMEOUT_SECONDS,
    BoundedReviewChannel,
    CallableReviewChannel,
    ReviewChannel,
    UnsupportedReviewChannel,
)
from .console import ConsoleReviewChannel
from .darwin import DarwinReviewChannel

__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "BoundedReviewChannel",
    "CallableReviewChannel",
    "ConsoleReviewChannel",
    "DarwinReviewChannel",
    "ReviewChannel",
    "UnsupportedReviewChannel",
    "default_review_channel",
]


def default_review_channel(
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    platform: str | None = None,
    stdin: TextIO | None = None,
) -> BoundedReviewChannel:
    """Pick the best channel for this host, bounded by ``timeout`` seconds.

    macOS gets a native dialog, an interactive terminal gets a console
    prompt, anything else rejects every request.
    """
    platform = platform or sys.platform
    stdin = stdin if stdin is not None else sys.stdin

    inner: ReviewChannel
    if platform == "darwin":
        inner = DarwinReviewChannel(timeout=timeout)
    elif stdin is not None and stdin.isatty():
        inner = ConsoleReviewChannel(stdin=stdin)
    else:
        inner = UnsupportedReviewChannel(f"no review dialog for platform {platform!r} and no terminal")
    return BoundedReviewChannel(inner, timeout=timeout)
