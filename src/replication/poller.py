"""Convergence polling.

Enable/disable writes are accepted asynchronously; the mode change only
becomes visible once it propagates. The poller watches the unauthenticated
health endpoint, which any node (standbys included) can answer, until it
reports the target mode or the attempt budget runs out.
"""

import json
import logging
import threading
from typing import Optional, Union

from src.logging_config import PerformanceTimer
from src.resilience import (
    MaxRetriesExceeded,
    RetryCancelled,
    RetryConfig,
    RetryStrategy,
    call_with_retry,
)

from .client import APIClient
from .config import (
    HEALTH_PATH,
    HEALTH_QUERY,
    RUNNING_STATE,
    ConvergenceConfig,
    ReplicationMode,
    ReplicationType,
    coerce_type,
)
from .decode import require_str
from .exceptions import ConvergenceTimeoutError, MalformedResponseError, TransportError
from .paths import health_mode_field

logger = logging.getLogger(__name__)


class ReplicationPending(Exception):
    """The health endpoint answered but does not report the target mode yet."""

    def __init__(self, field: str, expected: str, actual: str):
        super().__init__(f"{field} is {actual!r}, waiting for {expected!r}")
        self.field = field
        self.expected = expected
        self.actual = actual


RETRYABLE = (ReplicationPending, TransportError, MalformedResponseError)


def resolve_target(target_state: Union[ReplicationMode, str]) -> str:
    """Map a logical target onto the mode string the health endpoint reports."""
    value = target_state.value if isinstance(target_state, ReplicationMode) else str(target_state)
    if value == RUNNING_STATE:
        return ReplicationMode.PRIMARY.value
    return value


class ConvergencePoller:
    """Blocks until ``replication_<type>_mode`` equals the target.

    Example:
        poller = ConvergencePoller(client)
        poller.wait_for("dr", "running")   # waits for replication_dr_mode == "primary"
    """

    def __init__(self, client: APIClient, config: Optional[ConvergenceConfig] = None):
        self.client = client
        self.config = config or ConvergenceConfig()

    @property
    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_retries=self.config.max_attempts - 1,
            base_delay=self.config.interval,
            max_delay=self.config.interval,
            jitter_max=0.0,
            strategy=RetryStrategy.CONSTANT,
            retryable_exceptions=RETRYABLE,
        )

    def check(self, replication_type: ReplicationType, expected: str) -> str:
        """Single health check. Returns the observed mode or raises a retryable error."""
        field = health_mode_field(replication_type)
        body = self.client.raw_health_request(HEALTH_QUERY)
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise TransportError(f"invalid JSON from {HEALTH_PATH}: {e}", path=HEALTH_PATH) from e
        if not isinstance(payload, dict):
            raise MalformedResponseError("body", "an object", payload, path=HEALTH_PATH)

        observed = require_str(payload, field)
        logger.debug("Replication state: %s", observed)
        if observed != expected:
            raise ReplicationPending(field, expected, observed)
        return observed

    def wait_for(
        self,
        replication_type: Union[ReplicationType, str],
        target_state: Union[ReplicationMode, str],
        path: str = "",
        cancel_event: Optional[threading.Event] = None,
    ) -> int:
        """Poll until the target mode is observed.

        Args:
            replication_type: ``dr`` or ``performance``.
            target_state: Mode to wait for; ``running`` means ``primary``.
            path: Path of the write being confirmed, used in errors.
            cancel_event: Abort the wait when set.

        Returns:
            Number of attempts made.

        Raises:
            ConvergenceTimeoutError: Budget exhausted, deadline hit or cancelled.
        """
        repl_type = coerce_type(replication_type)
        expected = resolve_target(target_state)
        path = path or HEALTH_PATH
        attempts = 0

        def attempt() -> str:
            nonlocal attempts
            attempts += 1
            return self.check(repl_type, expected)

        def notify(exc: Exception, delay: float, attempt_no: int) -> None:
            logger.warning(
                "Replication pending, retrying in %.1fs (attempt %d/%d): %s",
                delay, attempt_no, self.config.max_attempts, exc,
                extra={"attempt": attempt_no, "delay_s": delay, "path": path},
            )

        logger.debug("Waiting for replication state to be %s", expected)
        try:
            with PerformanceTimer(f"convergence wait {repl_type.value}->{expected}"):
                call_with_retry(
                    attempt,
                    self.retry_config,
                    on_retry=notify,
                    cancel_event=cancel_event,
                    deadline=self.config.deadline,
                )
        except RetryCancelled as e:
            raise ConvergenceTimeoutError(
                path, expected, e.attempts, e.last_exception,
                replication_type=repl_type.value, cancelled=True,
            ) from e
        except MaxRetriesExceeded as e:
            raise ConvergenceTimeoutError(
                path, expected, e.attempts, e.last_exception,
                replication_type=repl_type.value,
            ) from e

        logger.debug("Replication reached %s after %d attempt(s)", expected, attempts)
        return attempts
