"""Resilience patterns for progression writes

This module provides retry logic for operations that can lose a race with
another writer (optimistic concurrency conflicts) or hit a transient
database failure.
"""

from progression.resilience.retry import retry_with_backoff, is_retryable_error

__all__ = [
    "retry_with_backoff",
    "is_retryable_error",
]
