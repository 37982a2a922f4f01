"""Replication resource lifecycles.

Create / read / delete / exists for the three replication resources,
binding ReplicationController calls to a ConfigStore. Create always
finishes with a read so the store holds the freshly observed record.
"""

import logging
import threading
from typing import Optional

from .config import ReplicationRole
from .controller import DisableOutcome, ReplicationController
from .store import ResourceData

logger = logging.getLogger(__name__)


class _ConfigResource:
    role: ReplicationRole

    def __init__(self, controller: ReplicationController):
        self.controller = controller

    def read(self, d: ResourceData) -> None:
        """Refresh the observed record; a disabled mode clears the id."""
        result = self.controller.read_status(d.get("type"), self.role)
        if result.should_purge:
            logger.debug("Replication disabled, removing from state")
            d.set_id("")
        d.apply_record(result.record)

    def exists(self, d: ResourceData) -> bool:
        logger.debug("Checking if replication configuration exists")
        return self.controller.replication_exists(d.get("type"))


class PrimaryConfigResource(_ConfigResource):
    """Replication enabled as primary for one type."""

    role = ReplicationRole.PRIMARY

    def create(self, d: ResourceData, cancel_event: Optional[threading.Event] = None) -> None:
        d.validate()
        resource_id = self.controller.enable_primary(
            d.get("type"),
            d.get("primary_cluster_addr"),
            cancel_event=cancel_event,
        )
        d.set_id(resource_id)
        self.read(d)

    def delete(self, d: ResourceData, cancel_event: Optional[threading.Event] = None) -> DisableOutcome:
        logger.debug("Deleting replication configuration")
        outcome = self.controller.disable_primary(d.get("type"), cancel_event=cancel_event)
        d.set_id("")
        return outcome


class SecondaryConfigResource(_ConfigResource):
    """Replication enabled as secondary for one type."""

    role = ReplicationRole.SECONDARY

    def __init__(self, controller: ReplicationController, wait_for_convergence: bool = False):
        super().__init__(controller)
        self.wait_for_convergence = wait_for_convergence

    def create(self, d: ResourceData, cancel_event: Optional[threading.Event] = None) -> None:
        d.validate()
        resource_id = self.controller.enable_secondary(
            d.get("type"),
            d.get("token"),
            primary_api_addr=d.get("primary_api_addr"),
            ca_file=d.get("ca_file"),
            ca_path=d.get("ca_path"),
            wait=self.wait_for_convergence,
            cancel_event=cancel_event,
        )
        d.set_id(resource_id)
        self.read(d)

    def delete(self, d: ResourceData) -> DisableOutcome:
        logger.debug("Deleting replication configuration")
        outcome = self.controller.disable_secondary(d.get("type"))
        d.set_id("")
        return outcome


class ReplicationTokenResource:
    """Secondary activation token issued by a primary."""

    def __init__(self, controller: ReplicationController):
        self.controller = controller

    def create(self, d: ResourceData) -> None:
        d.validate()
        token_id = d.get("token_id")
        secondary_token = self.controller.issue_token(
            d.get("type"),
            token_id,
            ttl=d.get("ttl"),
            secondary_public_key=d.get("secondary_public_key"),
        )
        d.set_id(token_id)
        # Only chance to capture it; later reads cannot recover the token.
        d.set("secondary_token", secondary_token)
        self.read(d)

    def read(self, d: ResourceData) -> None:
        """Confirm the primary is readable; a disabled primary clears the id.

        Whether the token is still listed is left to ``exists``: a freshly
        issued token is not listed until a secondary activates with it.
        """
        if not self.controller.replication_exists(d.get("type")):
            logger.debug("Replication disabled, removing token %s from state", d.get("token_id"))
            d.set_id("")

    def delete(self, d: ResourceData) -> None:
        logger.debug("Deleting replication token")
        self.controller.revoke_token(d.get("type"), d.get("token_id"))
        d.set_id("")

    def exists(self, d: ResourceData) -> bool:
        logger.debug("Checking if replication token exists")
        return self.controller.token_exists(d.get("type"), d.get("token_id"))
