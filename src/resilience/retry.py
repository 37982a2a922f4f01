"""Retry with configurable backoff.

Provides a call helper and a decorator for retrying failed calls with
constant, linear or exponential backoff, optional jitter, a total
deadline and cooperative cancellation.
"""

import dataclasses
import functools
import logging
import random
import threading
import time
from typing import Any, Callable, Optional, Tuple, Type

from .config import RetryConfig, RetryStrategy

logger = logging.getLogger(__name__)

RetryNotify = Callable[[Exception, float, int], None]


class MaxRetriesExceeded(Exception):
    """Raised when all retry attempts have been exhausted."""

    outcome = "Gave up"

    def __init__(self, attempts: int, last_exception: Optional[Exception]):
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(
            f"{self.outcome} after {attempts} attempt(s). "
            f"Last error: {last_exception}"
        )


class RetryCancelled(MaxRetriesExceeded):
    """Raised when the cancel event is set while waiting to retry."""

    outcome = "Cancelled"


def _compute_delay(attempt: int, config: RetryConfig) -> float:
    """Compute the delay for the given attempt number.

    Args:
        attempt: Zero-based attempt index (0 = first retry).
        config: Retry configuration.

    Returns:
        Delay in seconds, capped at max_delay.
    """
    if config.strategy == RetryStrategy.EXPONENTIAL:
        delay = config.base_delay * (2 ** attempt)
    elif config.strategy == RetryStrategy.LINEAR:
        delay = config.base_delay * (attempt + 1)
    else:  # CONSTANT
        delay = config.base_delay

    if config.jitter_max > 0:
        delay = delay + random.uniform(0, config.jitter_max)

    return min(delay, config.max_delay)


def call_with_retry(
    func: Callable[[], Any],
    config: Optional[RetryConfig] = None,
    on_retry: Optional[RetryNotify] = None,
    cancel_event: Optional[threading.Event] = None,
    deadline: Optional[float] = None,
) -> Any:
    """Call ``func`` until it succeeds or the retry budget runs out.

    Args:
        func: Zero-argument callable. Raising one of
            ``config.retryable_exceptions`` fails the attempt; any other
            exception propagates immediately.
        config: Retry configuration.
        on_retry: Called as ``on_retry(exc, delay, attempt)`` before each
            sleep. Defaults to a WARNING log line.
        cancel_event: When set, the wait is abandoned with RetryCancelled.
        deadline: Upper bound in seconds on the total time spent; no retry
            is scheduled whose delay would cross it.

    Returns:
        Whatever ``func`` returned on the first successful attempt.

    Raises:
        MaxRetriesExceeded: All attempts failed or the deadline was reached.
        RetryCancelled: ``cancel_event`` was set.
    """
    cfg = config or RetryConfig()
    started = time.monotonic()
    last_exc: Optional[Exception] = None
    attempts = 0

    for attempt in range(cfg.max_attempts):
        if cancel_event is not None and cancel_event.is_set():
            raise RetryCancelled(attempts, last_exc)

        attempts = attempt + 1
        try:
            return func()
        except cfg.retryable_exceptions as exc:
            last_exc = exc

        if attempts >= cfg.max_attempts:
            break

        delay = _compute_delay(attempt, cfg)
        if deadline is not None and time.monotonic() - started + delay > deadline:
            logger.warning("Retry deadline of %.1fs reached after %d attempt(s)", deadline, attempts)
            break

        if on_retry is not None:
            on_retry(last_exc, delay, attempts)
        else:
            logger.warning(
                "Retry %d/%d after %.2fs: %s",
                attempts,
                cfg.max_retries,
                delay,
                last_exc,
            )

        if cancel_event is not None:
            if cancel_event.wait(delay):
                raise RetryCancelled(attempts, last_exc)
        else:
            time.sleep(delay)

    logger.warning("All %d attempts exhausted: %s", attempts, last_exc)
    raise MaxRetriesExceeded(attempts, last_exc)


def retry(
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    jitter_max: Optional[float] = None,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    strategy: Optional[RetryStrategy] = None,
    config: Optional[RetryConfig] = None,
) -> Callable:
    """Decorator that retries a function on failure with backoff.

    Explicit arguments override the matching fields of ``config``.

    Usage:
        @retry(max_retries=3, strategy=RetryStrategy.CONSTANT)
        def flaky_call():
            ...
    """
    cfg = config or RetryConfig()
    overrides = {
        name: value
        for name, value in (
            ("max_retries", max_retries),
            ("base_delay", base_delay),
            ("max_delay", max_delay),
            ("jitter_max", jitter_max),
            ("retryable_exceptions", retryable_exceptions),
            ("strategy", strategy),
        )
        if value is not None
    }
    if overrides:
        cfg = dataclasses.replace(cfg, **overrides)

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return call_with_retry(lambda: func(*args, **kwargs), cfg)

        wrapper._retry_config = cfg  # type: ignore[attr-defined]
        return wrapper

    return decorator
