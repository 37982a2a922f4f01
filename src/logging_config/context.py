"""Operation Context Management.

Binds an operation ID, the replication type and the resource identifier
to every log entry emitted while a replication transition runs.
"""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


_operation_id_var: ContextVar[str] = ContextVar("operation_id", default="")
_replication_type_var: ContextVar[str] = ContextVar("replication_type", default="")
_resource_id_var: ContextVar[str] = ContextVar("resource_id", default="")
_extra_context_var: ContextVar[dict] = ContextVar("extra_context", default={})


def generate_operation_id() -> str:
    """Generate a unique operation ID using UUID4."""
    return str(uuid.uuid4())


def get_operation_id() -> str:
    return _operation_id_var.get()


def get_replication_type() -> str:
    return _replication_type_var.get()


def get_resource_id() -> str:
    return _resource_id_var.get()


def get_context_dict() -> dict[str, Any]:
    """Get all context variables as a dictionary for log binding."""
    ctx = {}
    op_id = _operation_id_var.get()
    if op_id:
        ctx["operation_id"] = op_id
    repl_type = _replication_type_var.get()
    if repl_type:
        ctx["replication_type"] = repl_type
    resource_id = _resource_id_var.get()
    if resource_id:
        ctx["resource_id"] = resource_id
    extra = _extra_context_var.get()
    if extra:
        ctx.update(extra)
    return ctx


@dataclass
class OperationContext:
    """Context manager for operation-scoped logging context.

    Example:
        with OperationContext(replication_type="dr", resource_id=path):
            logger.info("enabling")  # includes operation_id, replication_type, resource_id
    """

    replication_type: str = ""
    resource_id: str = ""
    operation_id: str = ""
    extra: dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    _tokens: list = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not self.operation_id:
            self.operation_id = generate_operation_id()

    def __enter__(self) -> "OperationContext":
        self._tokens = [
            (_operation_id_var, _operation_id_var.set(self.operation_id)),
            (_replication_type_var, _replication_type_var.set(self.replication_type)),
            (_resource_id_var, _resource_id_var.set(self.resource_id)),
            (_extra_context_var, _extra_context_var.set(self.extra.copy())),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        # Restore in reverse so nested contexts unwind to the outer values
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since context was created."""
        delta = datetime.now(timezone.utc) - self.started_at
        return delta.total_seconds() * 1000

    def bind(self, **kwargs: Any) -> None:
        """Add extra key-value pairs to the context."""
        current = _extra_context_var.get()
        _extra_context_var.set({**current, **kwargs})
        self.extra.update(kwargs)
