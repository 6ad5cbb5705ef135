"""Tests for async utility functions."""

from __future__ import annotations

import asyncio

import pytest

from delearner.utils.async_helpers import (
    AnalysisFailure,
    AssistantError,
    DelayedCall,
    IngestionError,
    RequestSequencer,
    create_retry,
)


class TestCustomExceptions:
    """Test custom exception classes."""

    def test_assistant_error_base(self) -> None:
        """Test that both errors share the base class."""
        assert issubclass(AnalysisFailure, AssistantError)
        assert issubclass(IngestionError, AssistantError)

    def test_analysis_failure_default_message(self) -> None:
        """Test the fixed user-facing message."""
        error = AnalysisFailure()
        assert str(error) == (
            "Failed to get a valid analysis from the AI. "
            "The response may be malformed or the API call failed."
        )

    def test_analysis_failure_custom_message(self) -> None:
        """Test overriding the message."""
        assert str(AnalysisFailure("custom")) == "custom"

    def test_ingestion_error_file_name(self) -> None:
        """Test that the failing file name is kept."""
        error = IngestionError("Could not read a.py", file_name="a.py")
        assert error.file_name == "a.py"
        assert IngestionError("x").file_name is None


class TestRetryDecorator:
    """Test create_retry."""

    async def test_succeeds_first_try(self) -> None:
        """Test that successful calls don't trigger retry."""
        call_count = 0

        @create_retry(max_attempts=3, min_wait=0, max_wait=0)
        async def successful_call() -> str:
            nonlocal call_count
            call_count += 1
            return "success"

        assert await successful_call() == "success"
        assert call_count == 1

    async def test_retries_analysis_failure(self) -> None:
        """Test that AnalysisFailure is retried by default."""
        call_count = 0

        @create_retry(max_attempts=3, min_wait=0, max_wait=0)
        async def flaky_call() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise AnalysisFailure()
            return "success"

        assert await flaky_call() == "success"
        assert call_count == 3

    async def test_gives_up_after_max_attempts(self) -> None:
        """Test that retry stops after max attempts and re-raises."""
        call_count = 0

        @create_retry(max_attempts=2, min_wait=0, max_wait=0)
        async def always_fails() -> str:
            nonlocal call_count
            call_count += 1
            raise AnalysisFailure()

        with pytest.raises(AnalysisFailure):
            await always_fails()
        assert call_count == 2

    async def test_does_not_retry_other_exceptions(self) -> None:
        """Test that non-retryable exceptions are not retried."""
        call_count = 0

        @create_retry(max_attempts=3, min_wait=0, max_wait=0)
        async def raises_value_error() -> str:
            nonlocal call_count
            call_count += 1
            raise ValueError("not retryable")

        with pytest.raises(ValueError):
            await raises_value_error()

        assert call_count == 1

    async def test_custom_exception_types(self) -> None:
        """Test creating a retry decorator for other exceptions."""
        call_count = 0

        custom_retry = create_retry(
            max_attempts=2,
            min_wait=0.01,
            max_wait=0.1,
            retry_on=(ValueError,),
        )

        @custom_retry
        async def custom_flaky() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ValueError("retry me")
            return "success"

        assert await custom_flaky() == "success"
        assert call_count == 2


class TestRequestSequencer:
    """Test RequestSequencer."""

    def test_initial_state(self) -> None:
        """Test that no token is current before the first request."""
        sequencer = RequestSequencer()
        assert sequencer.latest == 0

    def test_latest_token_is_current(self) -> None:
        """Test that only the newest token is current."""
        sequencer = RequestSequencer()
        first = sequencer.issue()
        second = sequencer.issue()

        assert second > first
        assert sequencer.is_current(second)
        assert not sequencer.is_current(first)

    def test_invalidate(self) -> None:
        """Test that invalidate supersedes every outstanding token."""
        sequencer = RequestSequencer()
        token = sequencer.issue()

        sequencer.invalidate()

        assert not sequencer.is_current(token)
        assert sequencer.issue() > token


class TestDelayedCall:
    """Test DelayedCall."""

    async def test_fires_after_delay(self) -> None:
        """Test that the callback runs once the delay passes."""
        calls: list[str] = []
        pending = DelayedCall(0.01, lambda: calls.append("fired"))
        assert pending.pending

        await asyncio.sleep(0.05)

        assert calls == ["fired"]
        assert pending.fired
        assert not pending.pending

    async def test_cancel(self) -> None:
        """Test that a cancelled call never runs."""
        calls: list[str] = []
        pending = DelayedCall(0.01, lambda: calls.append("fired"))

        pending.cancel()
        await asyncio.sleep(0.05)

        assert calls == []
        assert pending.cancelled
        assert not pending.fired
        assert not pending.pending

    async def test_cancel_after_fire_is_noop(self) -> None:
        """Test that cancelling a fired call changes nothing."""
        pending = DelayedCall(0, lambda: None)
        await asyncio.sleep(0.01)

        pending.cancel()

        assert pending.fired
        assert not pending.cancelled

    def test_requires_running_loop(self) -> None:
        """Test that scheduling outside a loop raises."""
        with pytest.raises(RuntimeError):
            DelayedCall(1.0, lambda: None)
