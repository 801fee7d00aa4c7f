"""Base classes for review channels."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TYPE_CHECKING

from loguru import logger

from ..exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..confirm import ConfirmationRequest

DEFAULT_TIMEOUT_SECONDS = 300.0

_review_state = threading.local()


def review_deadline() -> float | None:
    """Monotonic time at which the caller of the current review stops waiting.

    Set inside BoundedReviewChannel workers; None elsewhere. Channels that
    read a shared resource use it to let go of that resource in time.
    """
    return getattr(_review_state, "deadline", None)


class ReviewChannel(ABC):
    """Presents a confirmation request to a human and returns the verdict.

    Channels are stateless between calls: every present() is independent
    and may run concurrently with others. A channel returns True only on
    explicit approval. It returns False for an explicit rejection, and
    raises for a fault it could not turn into a verdict; the gate treats
    a raised exception as a rejection caused by a channel failure.

    Subclasses must implement:
    - name: Short identifier used in logs
    - present(): Show the request and wait for the verdict
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier for this channel (e.g. 'console')."""
        ...

    @abstractmethod
    def present(self, request: ConfirmationRequest) -> bool:
        """Show the request and block until a verdict is available.

        Args:
            request: The confirmation request to present.

        Returns:
            True if the human approved execution, False otherwise.
        """
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class CallableReviewChannel(ReviewChannel):
    """Adapts a plain function ``request -> bool`` to a channel.

    Example:
        >>> channel = CallableReviewChannel(lambda request: False)
        >>> channel.present(request)
        False
    """

    def __init__(self, func: Callable[[ConfirmationRequest], bool], name: str = "callable") -> None:
        self._func = func
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    def present(self, request: ConfirmationRequest) -> bool:
        return bool(self._func(request))


class UnsupportedReviewChannel(ReviewChannel):
    """Channel for hosts with no way to ask a human: always rejects."""

    def __init__(self, reason: str = "no interactive review surface available") -> None:
        self.reason = reason

    @property
    def name(self) -> str:
        return "unsupported"

    def present(self, request: ConfirmationRequest) -> bool:
        logger.warning("Review not possible ({}); treating as reject", self.reason)
        return False


class BoundedReviewChannel(ReviewChannel):
    """Enforces a maximum wait on another channel.

    Each present() runs the inner channel in its own daemon thread, so
    concurrent invocations never wait on each other. If no verdict arrives
    within ``timeout`` seconds the result is False; a late verdict is
    discarded. The inner channel can read the deadline with
    review_deadline() to give up shared resources when the caller stops
    waiting. Exceptions raised by the inner channel are re-raised in the
    caller.

    Example:
        >>> channel = BoundedReviewChannel(ConsoleReviewChannel(), timeout=300)
    """

    def __init__(self, inner: ReviewChannel, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        if timeout <= 0:
            raise ConfigurationError(f"Review timeout must be positive, got {timeout}")
        self.inner = inner
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.inner.name

    def present(self, request: ConfirmationRequest) -> bool:
        future: Future[bool] = Future()
        deadline = time.monotonic() + self.timeout

        def run() -> None:
            _review_state.deadline = deadline
            try:
                future.set_result(bool(self.inner.present(request)))
            except Exception as e:
                future.set_exception(e)

        worker = threading.Thread(target=run, name=f"sqlgate-review-{self.inner.name}", daemon=True)
        worker.start()
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            logger.warning(
                "No verdict from {} review within {}s; treating as reject",
                self.inner.name,
                self.timeout,
            )
            return False

    def __repr__(self) -> str:
        return f"BoundedReviewChannel({self.inner!r}, timeout={self.timeout})"
