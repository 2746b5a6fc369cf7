"""
Unit tests for the error taxonomy, retry helper and failure descriptions.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from mediaprobe.extraction.errors import (
    BackendLoadCause,
    BackendLoadError,
    ExtractionTimeout,
    ParseError,
    ParseErrorKind,
    ValidationError,
    classify_load_error,
    describe_failure,
)
from mediaprobe.extraction.retry import RetryConfig, calculate_backoff, retry_with_backoff


@pytest.mark.unit
class TestLoadErrors:
    """Tests for backend load error classification."""

    def test_missing_binary(self):
        """Test that a missing executable is a missing capability."""
        assert classify_load_error(FileNotFoundError(2, "No such file or directory")) == BackendLoadCause.MISSING_CAPABILITY

    def test_permission(self):
        """Test that a refused executable is a cross-origin style refusal."""
        assert classify_load_error(PermissionError(13, "Permission denied")) == BackendLoadCause.CROSS_ORIGIN

    def test_network_message(self):
        """Test message based network classification."""
        assert classify_load_error(RuntimeError("Failed to fetch core")) == BackendLoadCause.NETWORK

    def test_unknown(self):
        """Test the unknown fallback."""
        assert classify_load_error(RuntimeError("boom")) == BackendLoadCause.UNKNOWN

    def test_user_message_hint(self):
        """Test that load errors carry actionable text per cause."""
        error = BackendLoadError("spawn failed", cause=BackendLoadCause.MISSING_CAPABILITY)

        assert "MEDIAPROBE_FFMPEG_PATH" in error.user_message

    def test_user_message_unknown(self):
        """Test that unknown causes show the raw message."""
        assert "spawn failed" in BackendLoadError("spawn failed").user_message


@pytest.mark.unit
class TestDescribeFailure:
    """Tests for user-facing failure text."""

    def test_known_error(self):
        """Test that taxonomy errors use their own message."""
        assert describe_failure(ValidationError("File appears to be empty")) == "File appears to be empty"

    def test_parse_error_message(self):
        """Test the distinct message per parse error kind."""
        message = describe_failure(ParseError(ParseErrorKind.UNSUPPORTED_CODEC))

        assert "unsupported codec" in message

    def test_memory_hint(self):
        """Test the hint appended to memory failures."""
        assert describe_failure(MemoryError("out of memory")).endswith("free some memory.")

    def test_timeout_hint(self):
        """Test the hint appended to timeouts."""
        assert "took too long" in describe_failure(RuntimeError("operation timed out"))


@pytest.mark.unit
class TestRetry:
    """Tests for retry_with_backoff."""

    def test_backoff_is_exponential_and_capped(self):
        """Test backoff growth and cap."""
        config = RetryConfig(backoff_base=0.5, backoff_max=3.0)

        assert [calculate_backoff(a, config) for a in range(4)] == [0.5, 1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_succeeds_after_failures(self):
        """Test that a transient failure is retried."""
        operation = AsyncMock(side_effect=[OSError("busy"), OSError("busy"), "ok"])

        result = await retry_with_backoff(operation, RetryConfig(attempts=3, backoff_base=0), "write")

        assert result == "ok"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_raises_last_error(self):
        """Test that exhausting attempts raises the last error."""
        operation = AsyncMock(side_effect=OSError("disk full"))

        with pytest.raises(OSError, match="disk full"):
            await retry_with_backoff(operation, RetryConfig(attempts=2, backoff_base=0), "write")

        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_timeout_becomes_extraction_timeout(self):
        """Test that a hung attempt is bounded by the timeout."""

        async def hang():
            await asyncio.sleep(10)

        with pytest.raises(ExtractionTimeout):
            await retry_with_backoff(hang, RetryConfig(attempts=2, backoff_base=0, timeout=0.01), "write")

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates(self):
        """Test that errors outside retry_on are not retried."""
        operation = AsyncMock(side_effect=ValueError("bad name"))

        with pytest.raises(ValueError):
            await retry_with_backoff(operation, RetryConfig(attempts=3, backoff_base=0), "write", retry_on=(OSError,))

        assert operation.await_count == 1
