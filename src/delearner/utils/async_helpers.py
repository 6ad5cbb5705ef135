"""Async utilities shared by the analysis pipeline and the session coordinator.

This module provides:
- The base exception hierarchy
- Opt-in retry decorators with exponential backoff
- Request sequencing for single-flight result handling
- Cancellable delayed callbacks on the running event loop
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


# =============================================================================
# Custom Exceptions
# =============================================================================


class AssistantError(Exception):
    """Base exception for all DeLearner errors."""


class AnalysisFailure(AssistantError):
    """The generation backend call failed or returned an unusable payload.

    The message is always user-presentable. The underlying provider or parse
    error is chained as ``__cause__`` and logged, never embedded in the text.
    """

    DEFAULT_MESSAGE = (
        "Failed to get a valid analysis from the AI. "
        "The response may be malformed or the API call failed."
    )

    def __init__(self, message: str = DEFAULT_MESSAGE) -> None:
        super().__init__(message)


class IngestionError(AssistantError):
    """A file in an upload batch could not be read; the batch is rejected.

    Attributes:
        file_name: Name of the first file that failed to read.
    """

    def __init__(self, message: str, file_name: str | None = None) -> None:
        super().__init__(message)
        self.file_name = file_name


# =============================================================================
# Retry Decorator
# =============================================================================


def _log_retry(retry_state: RetryCallState) -> None:
    """Log retry attempts for debugging."""
    if retry_state.outcome is None:
        return

    exception = retry_state.outcome.exception()
    if exception:
        log.warning(
            "retrying_operation",
            attempt=retry_state.attempt_number,
            exception_type=type(exception).__name__,
            exception_message=str(exception),
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )


def create_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
    retry_on: tuple[type[Exception], ...] = (AnalysisFailure,),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Create a retry decorator for callers that opt into retrying analyses.

    The analysis client itself never retries; a caller that wants bounded
    retry wraps its own call with this.

    Args:
        max_attempts: Maximum number of attempts, including the first.
        min_wait: Minimum wait time between retries (seconds).
        max_wait: Maximum wait time between retries (seconds).
        retry_on: Tuple of exception types to retry on.

    Returns:
        A retry decorator configured with the given parameters.
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry,
        reraise=True,
    )


# =============================================================================
# Single-flight sequencing
# =============================================================================


class RequestSequencer:
    """Issues monotonically increasing tokens for one family of requests.

    Only the most recently issued token is current. A response that arrives
    carrying an older token belongs to a superseded request and must be
    dropped by the caller.

    Example:
        sequencer = RequestSequencer()
        token = sequencer.issue()
        result = await slow_call()
        if sequencer.is_current(token):
            publish(result)
    """

    def __init__(self) -> None:
        self._latest = 0

    @property
    def latest(self) -> int:
        """Return the most recently issued token (0 before any request)."""
        return self._latest

    def issue(self) -> int:
        """Issue a new token, superseding every earlier one."""
        self._latest += 1
        return self._latest

    def invalidate(self) -> None:
        """Supersede all outstanding tokens without starting a request."""
        self._latest += 1

    def is_current(self, token: int) -> bool:
        """Return True if ``token`` is the latest issued token."""
        return token == self._latest


# =============================================================================
# Delayed callbacks
# =============================================================================


class DelayedCall:
    """A cancellable callback scheduled on the running event loop.

    Must be created from inside a running loop.

    Example:
        pending = DelayedCall(2.5, clear_highlight)
        ...
        pending.cancel()  # superseded before it fired
    """

    def __init__(self, delay: float, callback: Callable[[], Any]) -> None:
        """Schedule ``callback`` to run after ``delay`` seconds.

        Raises:
            RuntimeError: If no event loop is running.
        """
        self._callback = callback
        self._fired = False
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire)

    def _fire(self) -> None:
        self._fired = True
        self._callback()

    @property
    def fired(self) -> bool:
        """Return True once the callback has run."""
        return self._fired

    @property
    def cancelled(self) -> bool:
        """Return True if the call was cancelled before firing."""
        return self._handle.cancelled()

    @property
    def pending(self) -> bool:
        """Return True while the callback is still scheduled."""
        return not self._fired and not self._handle.cancelled()

    def cancel(self) -> None:
        """Cancel the callback; a no-op if it already fired."""
        if not self._fired:
            self._handle.cancel()
