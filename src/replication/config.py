"""Replication types, modes and convergence defaults."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .exceptions import InvalidReplicationTypeError


class ReplicationType(str, Enum):
    """Replication stream a configuration or token applies to."""
    DR = "dr"
    PERFORMANCE = "performance"


class ReplicationRole(str, Enum):
    """Role a cluster holds within one replication type."""
    PRIMARY = "primary"
    SECONDARY = "secondary"


class ReplicationMode(str, Enum):
    """Mode reported by the status and health endpoints."""
    PRIMARY = "primary"
    SECONDARY = "secondary"
    DISABLED = "disabled"


# Logical target accepted by wait_for; the health endpoint reports it as "primary".
RUNNING_STATE = "running"

REPLICATION_PATH = "/sys/replication/"
HEALTH_PATH = "/v1/sys/health"
HEALTH_QUERY = {"standbyok": "true", "perfstandbyok": "true"}

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_INTERVAL = 1.0  # seconds


@dataclass(frozen=True)
class ConvergenceConfig:
    """Polling budget for convergence waits."""

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    interval: float = DEFAULT_INTERVAL
    deadline: Optional[float] = None  # seconds; None = bounded by attempts only

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval < 0:
            raise ValueError("interval must not be negative")


def coerce_type(value) -> ReplicationType:
    """Accept a ReplicationType or its string value.

    Raises:
        InvalidReplicationTypeError: ``value`` is not ``dr`` or ``performance``.
    """
    if isinstance(value, ReplicationType):
        return value
    try:
        return ReplicationType(str(value))
    except ValueError:
        raise InvalidReplicationTypeError(value) from None
