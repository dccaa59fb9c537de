"""Tests for retry logic with exponential backoff."""

import threading
from unittest.mock import MagicMock

import httpx
import pytest

from drivesync.client.api import APIError, AuthenticationError, NotFoundError
from drivesync.client.sync import (
    ChecksumMismatchError,
    RetryCancelledError,
    RetryExecutor,
    is_rate_limited,
    retry_with_backoff,
    should_retry,
)


class TestShouldRetry:
    """Tests for the transient/fatal classifier."""

    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_errors_are_transient(self, status: int) -> None:
        """5xx responses should be retried."""
        assert should_retry(APIError("Backend Error", status))

    def test_rate_limit_reason_is_transient(self) -> None:
        """403 with a rate limit reason should be retried."""
        assert should_retry(APIError("Rate Limit Exceeded", 403, "rateLimitExceeded"))
        assert should_retry(APIError("User Rate Limit Exceeded", 403, "userRateLimitExceeded"))

    def test_rate_limit_message_is_transient(self) -> None:
        """403 mentioning rate limit without a reason should be retried."""
        assert should_retry(APIError("User rate limit exceeded.", 403))

    def test_too_many_requests_is_transient(self) -> None:
        """429 should be retried."""
        assert should_retry(APIError("Too Many Requests", 429))

    def test_plain_forbidden_is_fatal(self) -> None:
        """403 without rate limiting should not be retried."""
        assert not should_retry(APIError("The user does not have sufficient permissions", 403))

    @pytest.mark.parametrize(
        "error",
        [
            AuthenticationError("Invalid Credentials", 401),
            NotFoundError("File not found", 404),
            APIError("Bad Request", 400),
            APIError("no status"),
            ValueError("boom"),
            OSError("disk error"),
        ],
    )
    def test_other_errors_are_fatal(self, error: Exception) -> None:
        """Client errors, local errors and unknown errors should not be retried."""
        assert not should_retry(error)

    def test_checksum_mismatch_is_transient(self) -> None:
        """A corrupted upload should be retried."""
        assert should_retry(ChecksumMismatchError("aaa", "bbb"))

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("Connection refused"),
            httpx.ReadTimeout("timed out"),
            ConnectionError("reset"),
            TimeoutError("timeout"),
        ],
    )
    def test_network_errors_are_transient(self, error: Exception) -> None:
        """Transport failures should be retried."""
        assert should_retry(error)

    def test_is_rate_limited_ignores_other_statuses(self) -> None:
        """Only 403 and 429 can be rate limiting."""
        assert not is_rate_limited(APIError("rate limit", 500))


class TestRetryExecutor:
    """Tests for RetryExecutor."""

    def test_returns_first_success(self) -> None:
        """Should not sleep when the first attempt succeeds."""
        sleeps: list[float] = []
        executor = RetryExecutor(sleep=sleeps.append)

        assert executor.run(lambda: "ok") == "ok"
        assert sleeps == []

    def test_backoff_grows_geometrically(self) -> None:
        """Delays should be initial, initial*ratio, initial*ratio^2..."""
        sleeps: list[float] = []
        func = MagicMock(
            side_effect=[APIError("err", 503), APIError("err", 503), APIError("err", 503), "done"]
        )
        executor = RetryExecutor(initial_backoff=0.5, backoff_multiplier=3.0, sleep=sleeps.append)

        assert executor.run(func) == "done"
        assert func.call_count == 4
        assert sleeps == [0.5, 1.5, 4.5]

    def test_fatal_error_is_not_retried(self) -> None:
        """A fatal error should propagate after a single attempt."""
        sleeps: list[float] = []
        func = MagicMock(side_effect=AuthenticationError("Invalid Credentials", 401))
        executor = RetryExecutor(sleep=sleeps.append)

        with pytest.raises(AuthenticationError):
            executor.run(func)
        assert func.call_count == 1
        assert sleeps == []

    def test_fatal_error_after_transient_ones(self) -> None:
        """Retrying should stop at the first fatal error."""
        func = MagicMock(side_effect=[APIError("err", 500), ValueError("bad")])
        executor = RetryExecutor(sleep=lambda delay: None)

        with pytest.raises(ValueError, match="bad"):
            executor.run(func)
        assert func.call_count == 2

    def test_unbounded_by_default(self) -> None:
        """Without max_attempts, transient errors keep being retried."""
        errors = [httpx.ConnectError("down")] * 25
        func = MagicMock(side_effect=[*errors, "up"])
        executor = RetryExecutor(initial_backoff=0.1, sleep=lambda delay: None)

        assert executor.run(func) == "up"
        assert func.call_count == 26

    def test_max_attempts_caps_retries(self) -> None:
        """The last transient error should propagate once attempts run out."""
        sleeps: list[float] = []
        func = MagicMock(side_effect=APIError("err", 503))
        executor = RetryExecutor(max_attempts=3, sleep=sleeps.append)

        with pytest.raises(APIError):
            executor.run(func)
        assert func.call_count == 3
        assert len(sleeps) == 2

    def test_custom_classifier(self) -> None:
        """A per-call classifier should override the default one."""
        func = MagicMock(side_effect=[KeyError("x"), 42])
        executor = RetryExecutor(sleep=lambda delay: None)

        assert executor.run(func, classifier=lambda e: isinstance(e, KeyError)) == 42

    def test_cancel_before_wait(self) -> None:
        """A set cancel event should abort at the next retry boundary."""
        cancel = threading.Event()
        cancel.set()
        func = MagicMock(side_effect=APIError("err", 503))
        executor = RetryExecutor(cancel_event=cancel)

        with pytest.raises(RetryCancelledError):
            executor.run(func)
        assert func.call_count == 1

    def test_cancel_during_wait(self) -> None:
        """Setting the cancel event should interrupt a long backoff."""
        cancel = threading.Event()
        func = MagicMock(side_effect=APIError("err", 503))
        executor = RetryExecutor(initial_backoff=60.0, cancel_event=cancel)
        timer = threading.Timer(0.05, cancel.set)
        timer.start()

        try:
            with pytest.raises(RetryCancelledError):
                executor.run(func)
        finally:
            timer.cancel()

    def test_cancel_method(self) -> None:
        """cancel() should interrupt a backoff even without an explicit event."""
        func = MagicMock(side_effect=APIError("err", 503))
        executor = RetryExecutor(initial_backoff=60.0)
        timer = threading.Timer(0.05, executor.cancel)
        timer.start()

        try:
            with pytest.raises(RetryCancelledError):
                executor.run(func)
        finally:
            timer.cancel()
        assert executor.cancelled
        assert func.call_count == 1

    def test_cancel_sets_shared_event(self) -> None:
        """cancel() should set the event shared with the caller."""
        cancel = threading.Event()

        RetryExecutor(cancel_event=cancel).cancel()

        assert cancel.is_set()

    def test_logs_retries_with_job_tag(self, caplog: pytest.LogCaptureFixture) -> None:
        """Each retry should log the cause and the job id."""
        func = MagicMock(side_effect=[APIError("Backend Error", 500), "ok"])
        executor = RetryExecutor(sleep=lambda delay: None)

        with caplog.at_level("WARNING", logger="drivesync"):
            executor.run(func, job="abc12")

        assert "[Job #abc12]" in caplog.text
        assert "Backend Error" in caplog.text
        assert caplog.records[0].job == "abc12"


class TestRetryWithBackoff:
    """Tests for the convenience wrapper."""

    def test_retries_then_succeeds(self) -> None:
        """Should retry transient errors with the given backoff."""
        func = MagicMock(side_effect=[httpx.ConnectError("down"), "ok"])

        assert retry_with_backoff(func, initial_backoff=0.001) == "ok"
        assert func.call_count == 2

    def test_max_attempts(self) -> None:
        """Should give up after max_attempts."""
        func = MagicMock(side_effect=httpx.ConnectError("down"))

        with pytest.raises(httpx.ConnectError):
            retry_with_backoff(func, initial_backoff=0.001, max_attempts=2)
        assert func.call_count == 2
