"""Replication Exception Hierarchy.

Every error raised by the replication package derives from
ReplicationError so callers can catch the whole family at once.
"""

from typing import Any, List, Optional


class ReplicationError(Exception):
    """Base exception for all replication errors."""

    def __init__(self, message: str, path: str = "", replication_type: str = ""):
        super().__init__(message)
        self.message = message
        self.path = path
        self.replication_type = replication_type


class InvalidReplicationTypeError(ReplicationError, ValueError):
    """Raised for a replication type other than ``dr`` or ``performance``."""

    def __init__(self, value: Any):
        super().__init__(
            f"invalid replication type {value!r}: expected 'dr' or 'performance'",
            replication_type=str(value),
        )
        self.value = value


class TransportError(ReplicationError):
    """Raised by the API client when a request fails or returns >= 400."""

    def __init__(
        self,
        message: str,
        path: str = "",
        status_code: Optional[int] = None,
        errors: Optional[List[str]] = None,
    ):
        super().__init__(message, path=path)
        self.status_code = status_code
        self.errors = errors or []


class RemoteWriteError(ReplicationError):
    """Raised when a write fails or its response carries an ``Errors`` field."""

    def __init__(self, message: str, path: str = "", replication_type: str = "", cause: Any = None):
        super().__init__(message, path=path, replication_type=replication_type)
        self.cause = cause


class RemoteReadError(ReplicationError):
    """Raised when a read fails or its response carries an ``Errors`` field."""

    def __init__(self, message: str, path: str = "", replication_type: str = "", cause: Any = None):
        super().__init__(message, path=path, replication_type=replication_type)
        self.cause = cause


class MalformedResponseError(ReplicationError):
    """Raised when an expected response field is absent or has the wrong type."""

    def __init__(self, field: str, expected: str = "", actual: Any = None, path: str = ""):
        if expected:
            message = f"malformed response: field {field!r} must be {expected}, got {type(actual).__name__}"
        else:
            message = f"malformed response: field {field!r} is missing"
        super().__init__(message, path=path)
        self.field = field
        self.expected = expected


class ConvergenceTimeoutError(ReplicationError):
    """Raised when the cluster never reports the target mode within budget."""

    def __init__(
        self,
        path: str,
        target_state: str,
        attempts: int,
        last_error: Optional[Exception] = None,
        replication_type: str = "",
        cancelled: bool = False,
    ):
        verb = "cancelled waiting" if cancelled else "error waiting"
        super().__init__(
            f"{verb} for replication to reach {target_state!r} at {path} "
            f"after {attempts} attempt(s): {last_error}",
            path=path,
            replication_type=replication_type,
        )
        self.target_state = target_state
        self.attempts = attempts
        self.last_error = last_error
        self.cancelled = cancelled


class NotFoundError(ReplicationError):
    """Raised when a secondary token is not listed by the primary."""

    def __init__(self, token_id: str, replication_type: str = "", path: str = ""):
        super().__init__(
            f"replication token {token_id!r} not found",
            path=path,
            replication_type=replication_type,
        )
        self.token_id = token_id
