"""Control-plane paths for replication endpoints."""

from typing import Union

from .config import REPLICATION_PATH, ReplicationRole, ReplicationType, coerce_type

TypeLike = Union[ReplicationType, str]


def _base(replication_type: TypeLike) -> str:
    return REPLICATION_PATH + coerce_type(replication_type).value


def primary_enable_path(replication_type: TypeLike) -> str:
    return _base(replication_type) + "/primary/enable"


def primary_disable_path(replication_type: TypeLike) -> str:
    return _base(replication_type) + "/primary/disable"


def secondary_enable_path(replication_type: TypeLike) -> str:
    return _base(replication_type) + "/secondary/enable"


def secondary_disable_path(replication_type: TypeLike) -> str:
    return _base(replication_type) + "/secondary/disable"


def status_path(replication_type: TypeLike) -> str:
    return _base(replication_type) + "/status"


def token_issue_path(replication_type: TypeLike) -> str:
    return _base(replication_type) + "/primary/secondary-token"


def token_revoke_path(replication_type: TypeLike) -> str:
    return _base(replication_type) + "/primary/revoke-secondary"


def enable_path(replication_type: TypeLike, role: ReplicationRole) -> str:
    if ReplicationRole(role) == ReplicationRole.PRIMARY:
        return primary_enable_path(replication_type)
    return secondary_enable_path(replication_type)


def disable_path(replication_type: TypeLike, role: ReplicationRole) -> str:
    if ReplicationRole(role) == ReplicationRole.PRIMARY:
        return primary_disable_path(replication_type)
    return secondary_disable_path(replication_type)


def health_mode_field(replication_type: TypeLike) -> str:
    """Health endpoint field reporting the mode, e.g. ``replication_dr_mode``."""
    return f"replication_{coerce_type(replication_type).value}_mode"
