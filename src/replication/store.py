"""Resource state store.

ResourceData is an in-memory implementation of the config-store capability
the resource lifecycles consume: typed field access with required /
optional / computed / force-new semantics, an identifier slot that is
cleared to signal non-existence, and the last projected status record.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple, runtime_checkable

from .projector import ReplicationState


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of one resource field."""
    name: str
    required: bool = False
    computed: bool = False
    force_new: bool = False
    sensitive: bool = False
    default: Any = ""


def _schema(*fields: FieldSpec) -> Dict[str, FieldSpec]:
    return {f.name: f for f in fields}


_OBSERVED = ("cluster_id", "mode", "state")

PRIMARY_CONFIG_SCHEMA = _schema(
    FieldSpec("type", required=True, force_new=True),
    FieldSpec("primary_cluster_addr", force_new=True),
    *[FieldSpec(name, computed=True) for name in _OBSERVED],
    FieldSpec("known_secondaries", computed=True, default=()),
    FieldSpec("secondaries", computed=True, default=()),
)

SECONDARY_CONFIG_SCHEMA = _schema(
    FieldSpec("type", required=True, force_new=True),
    FieldSpec("token", required=True, force_new=True, sensitive=True),
    FieldSpec("primary_api_addr", force_new=True),
    FieldSpec("ca_file", force_new=True),
    FieldSpec("ca_path", force_new=True),
    FieldSpec("primary_cluster_addr", computed=True),
    *[FieldSpec(name, computed=True) for name in _OBSERVED],
    FieldSpec("known_primary_cluster_addrs", computed=True, default=()),
    FieldSpec("primaries", computed=True, default=()),
)

TOKEN_SCHEMA = _schema(
    FieldSpec("type", required=True, force_new=True),
    FieldSpec("token_id", required=True, force_new=True),
    FieldSpec("ttl", force_new=True),
    FieldSpec("secondary_public_key", force_new=True),
    FieldSpec("secondary_token", computed=True, sensitive=True),
)


@runtime_checkable
class ConfigStore(Protocol):
    """Capability the resource lifecycles need from their host."""

    @property
    def id(self) -> str:
        ...

    def set_id(self, value: str) -> None:
        ...

    def get(self, name: str) -> Any:
        ...

    def get_ok(self, name: str) -> Tuple[Any, bool]:
        ...

    def set(self, name: str, value: Any) -> None:
        ...


class ResourceData:
    """In-memory ConfigStore bound to one schema.

    Example:
        d = ResourceData(PRIMARY_CONFIG_SCHEMA, {"type": "dr"})
        PrimaryConfigResource(controller).create(d)
        d.id      # "/sys/replication/dr/primary/enable"
        d.record  # PrimaryReplicationState(...)
    """

    def __init__(self, schema: Mapping[str, FieldSpec], values: Optional[Mapping[str, Any]] = None):
        self.schema = dict(schema)
        self._values: Dict[str, Any] = {}
        self._id = ""
        self._record: Optional[ReplicationState] = None

        for name, value in (values or {}).items():
            self._spec(name)
            self._values[name] = value

    # ── Identity ─────────────────────────────────────────────────────

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: str) -> None:
        self._id = value or ""

    @property
    def exists(self) -> bool:
        return bool(self._id)

    # ── Fields ───────────────────────────────────────────────────────

    def _spec(self, name: str) -> FieldSpec:
        try:
            return self.schema[name]
        except KeyError:
            raise KeyError(f"unknown field {name!r}") from None

    def get(self, name: str) -> Any:
        spec = self._spec(name)
        return self._values.get(name, spec.default)

    def get_ok(self, name: str) -> Tuple[Any, bool]:
        """Value plus whether it is set to a non-zero value."""
        value = self.get(name)
        return value, bool(value)

    def set(self, name: str, value: Any) -> None:
        spec = self._spec(name)
        if spec.force_new and self.exists and self._values.get(name, spec.default) != value:
            raise ValueError(f"field {name!r} cannot change after creation")
        self._values[name] = value

    def validate(self) -> None:
        """Raise ValueError listing required fields that are unset."""
        missing = [
            name for name, spec in self.schema.items()
            if spec.required and not self._values.get(name)
        ]
        if missing:
            raise ValueError(f"missing required field(s): {', '.join(sorted(missing))}")

    # ── Observed state ───────────────────────────────────────────────

    @property
    def record(self) -> Optional[ReplicationState]:
        return self._record

    def apply_record(self, record: Optional[ReplicationState]) -> None:
        """Replace the observed record and mirror its fields."""
        self._record = record
        if record is None:
            return
        for name, value in record.to_dict().items():
            spec = self.schema.get(name)
            if spec is not None and spec.computed:
                self._values[name] = value

    def as_dict(self, redact: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self._id}
        for name, spec in self.schema.items():
            value = self.get(name)
            if redact and spec.sensitive and value:
                value = "<sensitive>"
            out[name] = list(value) if isinstance(value, tuple) else value
        return out
