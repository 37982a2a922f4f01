"""Replication Controller.

Drives replication mode transitions (enable/disable as primary or
secondary), issues and revokes secondary tokens, and reads back the
observed status.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from src.logging_config import OperationContext, log_performance

from .client import APIClient, VaultResponse
from .config import ReplicationMode, ReplicationRole, ReplicationType, RUNNING_STATE, coerce_type
from .decode import as_mapping, optional_list
from .exceptions import (
    ConvergenceTimeoutError,
    MalformedResponseError,
    NotFoundError,
    RemoteReadError,
    RemoteWriteError,
    TransportError,
)
from .paths import (
    primary_disable_path,
    primary_enable_path,
    secondary_disable_path,
    secondary_enable_path,
    status_path,
    token_issue_path,
    token_revoke_path,
)
from .poller import ConvergencePoller
from .projector import ProjectionResult, SecondaryNode, StateProjector

logger = logging.getLogger(__name__)

TypeLike = Union[ReplicationType, str]

ERRORS_FIELD = "Errors"


@dataclass(frozen=True)
class DisableOutcome:
    """Result of a disable transition.

    The write itself succeeded. ``wait_error`` carries a failed convergence
    wait, which is reported as a warning rather than raised.
    """
    path: str
    waited: bool = False
    wait_error: Optional[ConvergenceTimeoutError] = None

    @property
    def converged(self) -> bool:
        return self.waited and self.wait_error is None


class ReplicationController:
    """Orchestrates replication transitions against one cluster.

    Example:
        controller = ReplicationController(VaultClient(addr, token=token))
        resource_id = controller.enable_primary("dr", "10.0.0.1:8201")
        status = controller.read_status("dr", ReplicationRole.PRIMARY)
    """

    def __init__(
        self,
        client: APIClient,
        poller: Optional[ConvergencePoller] = None,
        projector: Optional[StateProjector] = None,
    ):
        self.client = client
        self.poller = poller or ConvergencePoller(client)
        self.projector = projector or StateProjector()

    # ── Enable / disable ─────────────────────────────────────────────

    @log_performance()
    def enable_primary(
        self,
        replication_type: TypeLike,
        primary_cluster_addr: str = "",
        wait: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Enable replication as primary and wait for the mode to show up.

        Returns:
            The enable path, used as the resource identifier.
        """
        repl_type = coerce_type(replication_type)
        path = primary_enable_path(repl_type)

        data: Optional[Dict[str, Any]] = None
        if primary_cluster_addr:
            data = {"primary_cluster_addr": primary_cluster_addr}

        with OperationContext(replication_type=repl_type.value, resource_id=path):
            self._write(path, data, repl_type, f"error enabling {repl_type.value} replication")
            logger.info("Replication (%s) enabled", repl_type.value)

            if wait:
                self.poller.wait_for(repl_type, RUNNING_STATE, path=path, cancel_event=cancel_event)
                logger.info("Replication (%s) started", repl_type.value)
        return path

    @log_performance()
    def enable_secondary(
        self,
        replication_type: TypeLike,
        token: str,
        primary_api_addr: str = "",
        ca_file: str = "",
        ca_path: str = "",
        wait: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Enable replication as secondary using a token issued by the primary.

        All four fields are always sent; unset ones go out as empty strings.
        """
        repl_type = coerce_type(replication_type)
        path = secondary_enable_path(repl_type)
        data = {
            "token": token,
            "primary_api_addr": primary_api_addr or "",
            "ca_file": ca_file or "",
            "ca_path": ca_path or "",
        }

        with OperationContext(replication_type=repl_type.value, resource_id=path):
            self._write(path, data, repl_type, f"error enabling {repl_type.value} replication")
            logger.info("Replication (%s) enabled as secondary", repl_type.value)

            if wait:
                self.poller.wait_for(
                    repl_type, ReplicationMode.SECONDARY, path=path, cancel_event=cancel_event,
                )
        return path

    @log_performance()
    def disable_primary(
        self,
        replication_type: TypeLike,
        wait: bool = True,
        cancel_event: Optional[threading.Event] = None,
    ) -> DisableOutcome:
        """Disable primary replication.

        A failed convergence wait is logged and returned in the outcome;
        the disable write already succeeded.
        """
        repl_type = coerce_type(replication_type)
        path = primary_disable_path(repl_type)

        with OperationContext(replication_type=repl_type.value, resource_id=path):
            self._write(path, None, repl_type, f"error disabling {repl_type.value} replication")
            if not wait:
                return DisableOutcome(path=path)

            try:
                self.poller.wait_for(
                    repl_type, ReplicationMode.DISABLED, path=path, cancel_event=cancel_event,
                )
            except ConvergenceTimeoutError as e:
                logger.warning("Replication (%s) disable not confirmed: %s", repl_type.value, e)
                return DisableOutcome(path=path, waited=True, wait_error=e)

            logger.info("Replication (%s) stopped/disabled", repl_type.value)
            return DisableOutcome(path=path, waited=True)

    def disable_secondary(self, replication_type: TypeLike) -> DisableOutcome:
        repl_type = coerce_type(replication_type)
        path = secondary_disable_path(repl_type)

        with OperationContext(replication_type=repl_type.value, resource_id=path):
            self._write(path, None, repl_type, f"error disabling {repl_type.value} replication")
            logger.info("Replication (%s) secondary disabled", repl_type.value)
        return DisableOutcome(path=path)

    # ── Secondary tokens ─────────────────────────────────────────────

    def issue_token(
        self,
        replication_type: TypeLike,
        token_id: str,
        ttl: str = "",
        secondary_public_key: str = "",
    ) -> str:
        """Issue a secondary activation token.

        The token is only ever returned here, inside the response-wrapping
        envelope; nothing can read it back later.
        """
        repl_type = coerce_type(replication_type)
        path = token_issue_path(repl_type)

        data: Dict[str, Any] = {"id": token_id}
        if ttl:
            data["ttl"] = ttl
        if secondary_public_key:
            data["secondary_public_key"] = secondary_public_key

        with OperationContext(replication_type=repl_type.value, resource_id=token_id):
            resp = self._write(path, data, repl_type, "error creating replication token")
            if resp is None or resp.wrap_info is None or not resp.wrap_info.token:
                raise MalformedResponseError("wrap_info.token", path=path)

            logger.info("Replication token created (%s)", repl_type.value)
            return resp.wrap_info.token

    def revoke_token(self, replication_type: TypeLike, token_id: str) -> None:
        repl_type = coerce_type(replication_type)
        path = token_revoke_path(repl_type)

        with OperationContext(replication_type=repl_type.value, resource_id=token_id):
            self._write(path, {"id": token_id}, repl_type, "error revoking secondary token")
            logger.info("Replication token %s revoked (%s)", token_id, repl_type.value)

    def find_token(self, replication_type: TypeLike, token_id: str) -> SecondaryNode:
        """Return the primary's entry for ``token_id`` or raise NotFoundError."""
        repl_type = coerce_type(replication_type)
        path = status_path(repl_type)
        data = self._read(path, repl_type, "error checking replication token")

        for i, entry in enumerate(optional_list(data, "secondaries")):
            node = SecondaryNode.from_api(as_mapping(entry, f"secondaries[{i}]"))
            if node.node_id == token_id:
                logger.debug("Found replication token with id %s", token_id)
                return node

        raise NotFoundError(token_id, replication_type=repl_type.value, path=path)

    def token_exists(self, replication_type: TypeLike, token_id: str) -> bool:
        try:
            self.find_token(replication_type, token_id)
        except NotFoundError:
            return False
        return True

    # ── Status ───────────────────────────────────────────────────────

    def read_status(self, replication_type: TypeLike, role: ReplicationRole) -> ProjectionResult:
        repl_type = coerce_type(replication_type)
        path = status_path(repl_type)
        data = self._read(path, repl_type, f"error reading {repl_type.value} replication status")
        logger.debug("Read %s: %s", path, data)
        return self.projector.project(data, role)

    def replication_exists(self, replication_type: TypeLike) -> bool:
        """True unless the status endpoint reports mode ``disabled``."""
        repl_type = coerce_type(replication_type)
        data = self._read(status_path(repl_type), repl_type, f"error checking {repl_type.value} replication")
        logger.debug("Replication (%s) is %s", repl_type.value, data.get("state"))
        return data.get("mode") != ReplicationMode.DISABLED.value

    # ── Internals ────────────────────────────────────────────────────

    def _write(
        self,
        path: str,
        data: Optional[Dict[str, Any]],
        repl_type: ReplicationType,
        context: str,
    ) -> Optional[VaultResponse]:
        try:
            resp = self.client.write(path, data)
        except TransportError as e:
            raise RemoteWriteError(f"{context}: {e}", path=path,
                                   replication_type=repl_type.value, cause=e) from e

        if resp is None:
            logger.debug("Response from client was nil")
            return None
        if ERRORS_FIELD in resp.data:
            errors = resp.data[ERRORS_FIELD]
            raise RemoteWriteError(f"{context}: {errors}", path=path,
                                   replication_type=repl_type.value, cause=errors)
        return resp

    def _read(self, path: str, repl_type: ReplicationType, context: str) -> Dict[str, Any]:
        try:
            resp = self.client.read(path)
        except TransportError as e:
            raise RemoteReadError(f"{context}: {e}", path=path,
                                  replication_type=repl_type.value, cause=e) from e

        if resp is None:
            raise RemoteReadError(f"{context}: no data returned from {path}", path=path,
                                  replication_type=repl_type.value)
        if resp.data.get(ERRORS_FIELD) is not None:
            errors = resp.data[ERRORS_FIELD]
            raise RemoteReadError(f"{context}: {errors}", path=path,
                                  replication_type=repl_type.value, cause=errors)
        return resp.data
