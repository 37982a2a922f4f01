"""Retry Patterns.

Provides configurable retry with backoff, deadlines and cancellation
for operations against eventually-consistent remote state.
"""

from .config import (
    RetryStrategy,
    RetryConfig,
)
from .retry import (
    MaxRetriesExceeded,
    RetryCancelled,
    call_with_retry,
    retry,
)

__all__ = [
    # Config / Enums
    "RetryStrategy",
    "RetryConfig",
    # Retry
    "MaxRetriesExceeded",
    "RetryCancelled",
    "call_with_retry",
    "retry",
]
