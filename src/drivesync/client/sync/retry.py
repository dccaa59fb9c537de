"""Retry logic with exponential backoff.

This module provides:
- should_retry: Classifies an error as transient (retry) or fatal
- RetryExecutor: Runs an operation, retrying transient failures with backoff
- retry_with_backoff: One-shot convenience wrapper around RetryExecutor

Retries are unbounded by default: a transient failure is retried with a
geometrically growing delay until it succeeds or fails fatally. A maximum
attempt count and a cancellation event can be supplied.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TypeVar

import httpx

from drivesync.client.api import APIError
from drivesync.client.sync.joblog import JobLogger
from drivesync.client.sync.types import ChecksumMismatchError, RetryCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0

# Transport-level exceptions that indicate connectivity issues
NETWORK_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
)

RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


def is_rate_limited(error: APIError) -> bool:
    """Check if an API error is a rate-limiting response."""
    if error.status_code == 429:
        return True
    if error.status_code != 403:
        return False
    return error.reason in RATE_LIMIT_REASONS or "rate limit" in error.message.lower()


def should_retry(error: BaseException) -> bool:
    """Check if an error is worth retrying.

    Server-side errors (5xx), rate limiting, checksum mismatches and
    transport errors are transient; everything else is fatal.
    """
    if isinstance(error, APIError):
        if error.status_code is None:
            return False
        return is_rate_limited(error) or 500 <= error.status_code <= 599
    if isinstance(error, ChecksumMismatchError):
        return True
    return isinstance(error, NETWORK_EXCEPTIONS)


class RetryExecutor:
    """Runs operations with exponential backoff on transient failures.

    Usage:
        executor = RetryExecutor(initial_backoff=1.0, backoff_multiplier=2.0)
        folder_id = executor.run(lambda: store.create_folder(name, parent), job="1a2b3")
    """

    def __init__(
        self,
        initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
        backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
        max_attempts: int | None = None,
        classifier: Callable[[BaseException], bool] = should_retry,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            initial_backoff: Delay before the first retry, in seconds.
            backoff_multiplier: Factor applied to the delay after each retry.
            max_attempts: Total attempts allowed (None retries forever).
            classifier: Default transient/fatal classifier.
            cancel_event: When set, a pending backoff wait is abandoned.
                A private event is used when none is given.
            sleep: Sleep function (defaults to waiting on cancel_event).
        """
        self._initial_backoff = initial_backoff
        self._multiplier = backoff_multiplier
        self._max_attempts = max_attempts
        self._classifier = classifier
        self._cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self._sleep = sleep

    @property
    def cancelled(self) -> bool:
        """Check if retrying has been cancelled."""
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop retrying: pending and future backoff waits raise RetryCancelledError.

        Cancelling is permanent for this executor.
        """
        self._cancel_event.set()

    def _wait(self, delay: float) -> None:
        """Sleep before the next attempt, honoring cancellation."""
        if self._cancel_event.is_set():
            raise RetryCancelledError("retry cancelled")
        if self._sleep is not None:
            self._sleep(delay)
        elif self._cancel_event.wait(delay):
            raise RetryCancelledError("retry cancelled")

    def run(
        self,
        func: Callable[[], T],
        classifier: Callable[[BaseException], bool] | None = None,
        job: str | None = None,
    ) -> T:
        """Execute a function, retrying it while it fails transiently.

        Args:
            func: Operation to run.
            classifier: Overrides the executor's classifier for this call.
            job: Job id used to tag log records.

        Returns:
            Result of the function.

        Raises:
            The first fatal exception, or the last transient one once
            max_attempts is exhausted.
        """
        is_transient = classifier or self._classifier
        log = JobLogger(logger, job)
        delay = self._initial_backoff
        attempt = 1

        while True:
            try:
                return func()
            except Exception as e:
                if not is_transient(e):
                    raise
                if self._max_attempts is not None and attempt >= self._max_attempts:
                    log.error(f"All {self._max_attempts} attempts failed: {e}")
                    raise
                log.warning(f"Attempt {attempt} failed: {e}. Retrying in {delay:.1f}s...")
                self._wait(delay)
                delay *= self._multiplier
                attempt += 1


def retry_with_backoff(
    func: Callable[[], T],
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    max_attempts: int | None = None,
    classifier: Callable[[BaseException], bool] = should_retry,
) -> T:
    """Execute a function with exponential backoff retry.

    Args:
        func: Function to execute.
        initial_backoff: Initial backoff time in seconds.
        backoff_multiplier: Multiplier for each retry.
        max_attempts: Maximum number of attempts (None for unbounded).
        classifier: Decides which exceptions are retried.

    Returns:
        Result of the function.
    """
    executor = RetryExecutor(
        initial_backoff=initial_backoff,
        backoff_multiplier=backoff_multiplier,
        max_attempts=max_attempts,
        classifier=classifier,
    )
    return executor.run(func)
