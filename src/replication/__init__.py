"""Vault Replication Lifecycle.

Enables and disables DR / performance replication, issues and revokes
secondary tokens, and waits for the cluster to converge on the desired
mode through the health endpoint.
"""

from .config import (
    ConvergenceConfig,
    ReplicationMode,
    ReplicationRole,
    ReplicationType,
)
from .exceptions import (
    ConvergenceTimeoutError,
    InvalidReplicationTypeError,
    MalformedResponseError,
    NotFoundError,
    RemoteReadError,
    RemoteWriteError,
    ReplicationError,
    TransportError,
)
from .client import (
    APIClient,
    VaultClient,
    VaultResponse,
    WrapInfo,
)
from .projector import (
    PrimaryNode,
    PrimaryReplicationState,
    ProjectionResult,
    SecondaryNode,
    SecondaryReplicationState,
    StateProjector,
)
from .poller import ConvergencePoller
from .controller import (
    DisableOutcome,
    ReplicationController,
)
from .store import (
    ConfigStore,
    PRIMARY_CONFIG_SCHEMA,
    ResourceData,
    SECONDARY_CONFIG_SCHEMA,
    TOKEN_SCHEMA,
)
from .resources import (
    PrimaryConfigResource,
    ReplicationTokenResource,
    SecondaryConfigResource,
)

__all__ = [
    # Config
    "ConvergenceConfig",
    "ReplicationMode",
    "ReplicationRole",
    "ReplicationType",
    # Errors
    "ConvergenceTimeoutError",
    "InvalidReplicationTypeError",
    "MalformedResponseError",
    "NotFoundError",
    "RemoteReadError",
    "RemoteWriteError",
    "ReplicationError",
    "TransportError",
    # Client
    "APIClient",
    "VaultClient",
    "VaultResponse",
    "WrapInfo",
    # Projection
    "PrimaryNode",
    "PrimaryReplicationState",
    "ProjectionResult",
    "SecondaryNode",
    "SecondaryReplicationState",
    "StateProjector",
    # Polling / control
    "ConvergencePoller",
    "DisableOutcome",
    "ReplicationController",
    # Resources
    "ConfigStore",
    "PRIMARY_CONFIG_SCHEMA",
    "ResourceData",
    "SECONDARY_CONFIG_SCHEMA",
    "TOKEN_SCHEMA",
    "PrimaryConfigResource",
    "ReplicationTokenResource",
    "SecondaryConfigResource",
]
