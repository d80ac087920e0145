"""Retry logic with exponential backoff and jitter

Implements retry logic for progression writes that:
1. Only retries transient errors (version conflicts, dropped DB connections)
2. Uses exponential backoff with jitter so racing writers spread out
3. Gives up after max retries and re-raises the last error
"""

import asyncio
import random
import logging
from typing import Callable, Any, Optional, TypeVar

import psycopg

from progression import config
from progression.exceptions import ConcurrentModificationError, ConnectionError
from progression.monitoring.prometheus_metrics import record_retry

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Retry configuration
MAX_DELAY = 2.0  # seconds
JITTER = 0.1  # 10% random jitter


def is_retryable_error(exc: Exception) -> bool:
    """
    Determine if error is transient and the whole operation can be re-run.

    Retryable errors:
    - ConcurrentModificationError (another writer saved first)
    - Database connection failures (psycopg OperationalError or our wrapper)

    Non-retryable errors:
    - RecordNotFoundError, ValidationError
    - Anything unknown

    Args:
        exc: The exception to check

    Returns:
        True if error should be retried, False otherwise
    """
    if isinstance(exc, (ConcurrentModificationError, ConnectionError)):
        return True

    return isinstance(exc, psycopg.OperationalError)


def calculate_backoff(attempt: int, base_delay: Optional[float] = None) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Formula: delay = min(base_delay * (2 ** attempt), MAX_DELAY) + jitter
    Jitter is random value between -10% and +10% of delay

    Args:
        attempt: The retry attempt number (0-indexed)
        base_delay: First delay in seconds (default: COMPLETION_RETRY_BASE_DELAY)

    Returns:
        Delay in seconds
    """
    if base_delay is None:
        base_delay = config.COMPLETION_RETRY_BASE_DELAY

    # Exponential backoff
    delay = min(base_delay * (2 ** attempt), MAX_DELAY)

    # Add jitter to prevent thundering herd
    jitter_amount = random.uniform(-JITTER * delay, JITTER * delay)
    final_delay = delay + jitter_amount

    return max(final_delay, 0.0)  # Ensure non-negative


async def retry_with_backoff(
    func: Callable[..., T],
    *args: Any,
    max_retries: Optional[int] = None,
    **kwargs: Any
) -> T:
    """
    Retry async function with exponential backoff.

    Only retries transient errors. Gives up after max_retries attempts.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retry attempts (default: COMPLETION_MAX_RETRIES)
        *args, **kwargs: Arguments to pass to func

    Returns:
        Result from func

    Raises:
        Last exception if all retries exhausted or non-retryable error

    Example:
        result = await retry_with_backoff(self._run_completion, event, max_retries=3)
    """
    if max_retries is None:
        max_retries = config.COMPLETION_MAX_RETRIES

    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)

        except Exception as e:
            if not is_retryable_error(e):
                raise

            # If this was the last attempt, give up
            if attempt == max_retries:
                logger.error(
                    f"[RETRY] All {max_retries} retries exhausted for {func.__name__}"
                )
                raise

            backoff = calculate_backoff(attempt)

            record_retry(func.__name__, type(e).__name__)

            logger.info(
                f"[RETRY] Attempt {attempt + 1}/{max_retries} for {func.__name__} "
                f"after {backoff:.2f}s (error: {type(e).__name__})"
            )

            await asyncio.sleep(backoff)

    raise RuntimeError("Retry logic failed unexpectedly")
