"""Status projection.

Turns a raw ``/sys/replication/<type>/status`` payload into an immutable
record and decides whether the local resource should be treated as gone.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Mapping, Tuple, Union

from .config import ReplicationMode, ReplicationRole
from .decode import (
    as_mapping,
    optional_list,
    optional_str,
    require_list,
    require_str,
    require_str_list,
)
from .exceptions import MalformedResponseError

logger = logging.getLogger(__name__)


# =====================================================================
# Records
# =====================================================================


@dataclass(frozen=True)
class SecondaryNode:
    """A secondary as listed by its primary."""
    api_address: str = ""
    cluster_address: str = ""
    connection_status: str = ""
    last_heartbeat: str = ""
    node_id: str = ""

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "SecondaryNode":
        return cls(
            api_address=optional_str(data, "api_address"),
            cluster_address=optional_str(data, "cluster_address"),
            connection_status=optional_str(data, "connection_status"),
            last_heartbeat=optional_str(data, "last_heartbeat"),
            node_id=optional_str(data, "node_id"),
        )


@dataclass(frozen=True)
class PrimaryNode:
    """A primary as listed by one of its secondaries."""
    api_address: str = ""
    cluster_address: str = ""
    connection_status: str = ""
    last_heartbeat: str = ""

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "PrimaryNode":
        return cls(
            api_address=optional_str(data, "api_address"),
            cluster_address=optional_str(data, "cluster_address"),
            connection_status=optional_str(data, "connection_status"),
            last_heartbeat=optional_str(data, "last_heartbeat"),
        )


@dataclass(frozen=True)
class PrimaryReplicationState:
    """Observed state of a cluster configured as primary."""
    primary_cluster_addr: str = ""
    cluster_id: str = ""
    mode: str = ""
    state: str = ""
    known_secondaries: Tuple[str, ...] = ()
    secondaries: Tuple[SecondaryNode, ...] = ()

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SecondaryReplicationState:
    """Observed state of a cluster configured as secondary."""
    primary_cluster_addr: str = ""
    cluster_id: str = ""
    mode: str = ""
    state: str = ""
    known_primary_cluster_addrs: Tuple[str, ...] = ()
    primaries: Tuple[PrimaryNode, ...] = ()

    def to_dict(self) -> dict:
        return asdict(self)


ReplicationState = Union[PrimaryReplicationState, SecondaryReplicationState]


@dataclass(frozen=True)
class ProjectionResult:
    record: ReplicationState
    should_purge: bool


# =====================================================================
# Projector
# =====================================================================


def _nodes(items: List[Any], field: str, factory: Callable[[Mapping[str, Any]], Any]) -> tuple:
    return tuple(factory(as_mapping(item, f"{field}[{i}]")) for i, item in enumerate(items))


class StateProjector:
    """Maps status payloads onto immutable replication records.

    Fields are decoded strictly: a missing or mistyped field raises
    MalformedResponseError. The one exception is a ``disabled`` mode, where
    Vault omits most fields; the record is purged anyway so absent fields
    decode to empty values.
    """

    def project(self, data: Mapping[str, Any], role: ReplicationRole) -> ProjectionResult:
        if not isinstance(data, Mapping):
            raise MalformedResponseError("data", "an object", data)

        mode = require_str(data, "mode")
        should_purge = mode == ReplicationMode.DISABLED.value
        if should_purge:
            logger.debug("Replication disabled, record will be purged")

        if ReplicationRole(role) == ReplicationRole.PRIMARY:
            record = self._primary(data, mode, strict=not should_purge)
        else:
            record = self._secondary(data, mode, strict=not should_purge)
        return ProjectionResult(record=record, should_purge=should_purge)

    def project_primary(self, data: Mapping[str, Any]) -> ProjectionResult:
        return self.project(data, ReplicationRole.PRIMARY)

    def project_secondary(self, data: Mapping[str, Any]) -> ProjectionResult:
        return self.project(data, ReplicationRole.SECONDARY)

    @staticmethod
    def _primary(data: Mapping[str, Any], mode: str, strict: bool) -> PrimaryReplicationState:
        text = require_str if strict else optional_str
        if strict:
            known = require_str_list(data, "known_secondaries")
            secondaries = require_list(data, "secondaries")
        else:
            known = [k for k in optional_list(data, "known_secondaries") if isinstance(k, str)]
            secondaries = optional_list(data, "secondaries")

        return PrimaryReplicationState(
            primary_cluster_addr=text(data, "primary_cluster_addr"),
            cluster_id=text(data, "cluster_id"),
            mode=mode,
            state=text(data, "state"),
            known_secondaries=tuple(known),
            secondaries=_nodes(secondaries, "secondaries", SecondaryNode.from_api),
        )

    @staticmethod
    def _secondary(data: Mapping[str, Any], mode: str, strict: bool) -> SecondaryReplicationState:
        text = require_str if strict else optional_str
        if strict:
            known = require_str_list(data, "known_primary_cluster_addrs")
            primaries = require_list(data, "primaries")
        else:
            known = [k for k in optional_list(data, "known_primary_cluster_addrs") if isinstance(k, str)]
            primaries = optional_list(data, "primaries")

        return SecondaryReplicationState(
            primary_cluster_addr=text(data, "primary_cluster_addr"),
            cluster_id=text(data, "cluster_id"),
            mode=mode,
            state=text(data, "state"),
            known_primary_cluster_addrs=tuple(known),
            primaries=_nodes(primaries, "primaries", PrimaryNode.from_api),
        )


def record_to_fields(record: ReplicationState) -> Dict[str, Any]:
    """Flatten a record into plain lists/dicts for storage or JSON output."""
    fields = record.to_dict()
    for key, value in fields.items():
        if isinstance(value, tuple):
            fields[key] = list(value)
    return fields
