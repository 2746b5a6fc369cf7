"""
Retry with exponential backoff and a hard per-attempt timeout.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from mediaprobe.extraction.errors import ExtractionTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry attempts."""

    attempts: int = 3
    backoff_base: float = 0.5
    backoff_max: float = 10.0
    timeout: float | None = None


def calculate_backoff(attempt: int, config: RetryConfig) -> float:
    """Delay before retry number ``attempt + 1`` (attempt is zero based)."""
    return min(config.backoff_base * (2 ** attempt), config.backoff_max)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig,
    operation_name: str = "operation",
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """
    Execute an async operation, retrying failures with exponential backoff.

    Each attempt is bounded by ``config.timeout``; a timed out attempt counts
    as a failed attempt.

    Args:
        operation: Zero-argument coroutine factory.
        config: Attempt count, backoff and timeout.
        operation_name: Name used in log messages.
        retry_on: Exception types that trigger another attempt.

    Returns:
        Result of the first successful attempt.

    Raises:
        ExtractionTimeout: If the last attempt timed out.
        Exception: The last attempt's error when all attempts fail.
    """
    last_error: BaseException | None = None

    for attempt in range(config.attempts):
        try:
            if config.timeout is not None:
                result = await asyncio.wait_for(operation(), timeout=config.timeout)
            else:
                result = await operation()

            if attempt > 0:
                logger.info(f"{operation_name} succeeded after {attempt} retry attempt(s)")
            return result

        except asyncio.TimeoutError as e:
            last_error = ExtractionTimeout(
                f"{operation_name} timed out after {config.timeout}s", original_error=e
            )
        except retry_on as e:
            last_error = e

        if attempt < config.attempts - 1:
            delay = calculate_backoff(attempt, config)
            logger.warning(
                f"{operation_name} failed (attempt {attempt + 1}/{config.attempts}): "
                f"{last_error}. Retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    logger.error(f"{operation_name} failed after {config.attempts} attempts: {last_error}")
    if last_error is None:
        raise RuntimeError(f"{operation_name} failed after retries")
    raise last_error
