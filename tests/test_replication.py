"""Tests for replication paths, projection, polling, control and resources."""

import logging
import threading
from unittest.mock import MagicMock, patch

import pytest

from src.replication import (
    ConvergenceConfig,
    ConvergencePoller,
    ConvergenceTimeoutError,
    InvalidReplicationTypeError,
    MalformedResponseError,
    NotFoundError,
    PRIMARY_CONFIG_SCHEMA,
    PrimaryConfigResource,
    PrimaryReplicationState,
    RemoteReadError,
    RemoteWriteError,
    ReplicationError,
    ReplicationController,
    ReplicationMode,
    ReplicationRole,
    ReplicationTokenResource,
    ReplicationType,
    ResourceData,
    SECONDARY_CONFIG_SCHEMA,
    SecondaryConfigResource,
    SecondaryReplicationState,
    StateProjector,
    TOKEN_SCHEMA,
    TransportError,
    VaultResponse,
)
from src.replication.config import coerce_type
from src.replication.paths import (
    disable_path,
    enable_path,
    health_mode_field,
    primary_disable_path,
    primary_enable_path,
    secondary_disable_path,
    secondary_enable_path,
    status_path,
    token_issue_path,
    token_revoke_path,
)
from src.replication.poller import ReplicationPending, resolve_target
from src.replication.projector import record_to_fields
from src.replication.store import ConfigStore
from conftest import health_body, primary_status, secondary_status


# =============================================================================
# Paths and config
# =============================================================================


class TestPaths:
    @pytest.mark.parametrize("t", ["dr", "performance"])
    def test_templates(self, t):
        assert primary_enable_path(t) == f"/sys/replication/{t}/primary/enable"
        assert primary_disable_path(t) == f"/sys/replication/{t}/primary/disable"
        assert secondary_enable_path(t) == f"/sys/replication/{t}/secondary/enable"
        assert secondary_disable_path(t) == f"/sys/replication/{t}/secondary/disable"
        assert status_path(t) == f"/sys/replication/{t}/status"
        assert token_issue_path(t) == f"/sys/replication/{t}/primary/secondary-token"
        assert token_revoke_path(t) == f"/sys/replication/{t}/primary/revoke-secondary"

    def test_accepts_enum(self):
        assert status_path(ReplicationType.PERFORMANCE) == "/sys/replication/performance/status"

    def test_role_dispatch(self):
        assert enable_path("dr", ReplicationRole.SECONDARY) == "/sys/replication/dr/secondary/enable"
        assert disable_path("dr", "primary") == "/sys/replication/dr/primary/disable"

    def test_health_field(self):
        assert health_mode_field("dr") == "replication_dr_mode"
        assert health_mode_field(ReplicationType.PERFORMANCE) == "replication_performance_mode"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            status_path("standby")

    def test_unknown_type_is_replication_error(self):
        with pytest.raises(InvalidReplicationTypeError) as exc_info:
            primary_enable_path("DR")
        assert isinstance(exc_info.value, ReplicationError)
        assert exc_info.value.value == "DR"


class TestConvergenceConfig:
    def test_defaults(self):
        cfg = ConvergenceConfig()
        assert cfg.max_attempts == 10
        assert cfg.interval == 1.0
        assert cfg.deadline is None

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            ConvergenceConfig(max_attempts=0)

    def test_rejects_negative_interval(self):
        with pytest.raises(ValueError):
            ConvergenceConfig(interval=-1)

    def test_coerce_type(self):
        assert coerce_type("dr") is ReplicationType.DR
        assert coerce_type(ReplicationType.PERFORMANCE) is ReplicationType.PERFORMANCE


# =============================================================================
# Projector
# =============================================================================


class TestStateProjector:
    def setup_method(self):
        self.projector = StateProjector()

    def test_primary_projection(self):
        result = self.projector.project(primary_status(), ReplicationRole.PRIMARY)
        assert result.should_purge is False
        record = result.record
        assert isinstance(record, PrimaryReplicationState)
        assert record.mode == "primary"
        assert record.state == "running"
        assert record.known_secondaries == ("sec-1",)
        assert record.secondaries[0].node_id == "sec-1"
        assert record.secondaries[0].connection_status == "connected"

    def test_secondary_projection(self):
        result = self.projector.project_secondary(secondary_status())
        record = result.record
        assert isinstance(record, SecondaryReplicationState)
        assert record.primary_cluster_addr == "https://10.0.0.1:8201"
        assert record.known_primary_cluster_addrs == ("https://10.0.0.1:8201",)
        assert record.primaries[0].api_address == "https://10.0.0.1:8200"
        assert result.should_purge is False

    @pytest.mark.parametrize("mode,purge", [
        ("primary", False), ("secondary", False), ("disabled", True),
    ])
    def test_should_purge_iff_disabled(self, mode, purge):
        assert self.projector.project_primary(primary_status(mode=mode)).should_purge is purge

    def test_disabled_with_sparse_payload(self):
        result = self.projector.project({"mode": "disabled"}, ReplicationRole.PRIMARY)
        assert result.should_purge is True
        assert result.record.known_secondaries == ()
        assert result.record.cluster_id == ""

    def test_missing_mode_is_malformed(self):
        data = primary_status()
        del data["mode"]
        with pytest.raises(MalformedResponseError, match="mode"):
            self.projector.project_primary(data)

    def test_missing_field_is_malformed(self):
        data = primary_status()
        del data["cluster_id"]
        with pytest.raises(MalformedResponseError, match="cluster_id"):
            self.projector.project_primary(data)

    def test_wrong_type_is_malformed(self):
        with pytest.raises(MalformedResponseError) as exc_info:
            self.projector.project_primary(primary_status(known_secondaries="sec-1"))
        assert exc_info.value.field == "known_secondaries"

    def test_null_list_is_malformed_when_enabled(self):
        with pytest.raises(MalformedResponseError):
            self.projector.project_primary(primary_status(secondaries=None))

    def test_record_is_immutable(self):
        record = self.projector.project_primary(primary_status()).record
        with pytest.raises(AttributeError):
            record.mode = "disabled"

    def test_record_to_fields_uses_lists(self):
        fields = record_to_fields(self.projector.project_primary(primary_status()).record)
        assert fields["known_secondaries"] == ["sec-1"]
        assert fields["secondaries"][0]["node_id"] == "sec-1"


# =============================================================================
# Poller
# =============================================================================


@patch("src.resilience.retry.time.sleep")
class TestConvergencePoller:
    def _poller(self, *bodies, **config):
        client = MagicMock()
        client.raw_health_request.side_effect = list(bodies)
        return ConvergencePoller(client, ConvergenceConfig(**config)), client

    def test_resolve_target(self, mock_sleep):
        assert resolve_target("running") == "primary"
        assert resolve_target(ReplicationMode.DISABLED) == "disabled"
        assert resolve_target("secondary") == "secondary"

    def test_stops_at_first_match(self, mock_sleep):
        poller, client = self._poller(
            health_body(replication_dr_mode="disabled"),
            health_body(replication_dr_mode="disabled"),
            health_body(replication_dr_mode="primary"),
            health_body(replication_dr_mode="primary"),
        )
        assert poller.wait_for("dr", "running") == 3
        assert client.raw_health_request.call_count == 3
        client.raw_health_request.assert_called_with(
            {"standbyok": "true", "perfstandbyok": "true"}
        )

    def test_fails_after_ten_attempts(self, mock_sleep):
        bodies = [health_body(replication_performance_mode="disabled")] * 20
        poller, client = self._poller(*bodies)
        with pytest.raises(ConvergenceTimeoutError) as exc_info:
            poller.wait_for("performance", "running", path="/sys/replication/performance/primary/enable")
        err = exc_info.value
        assert err.attempts == 10
        assert err.target_state == "primary"
        assert err.cancelled is False
        assert isinstance(err.last_error, ReplicationPending)
        assert client.raw_health_request.call_count == 10
        assert mock_sleep.call_count == 9
        assert all(call.args[0] >= 1.0 for call in mock_sleep.call_args_list)

    def test_transport_and_malformed_errors_are_retried(self, mock_sleep):
        poller, client = self._poller(
            TransportError("connection refused"),
            health_body(),
            b"not json",
            health_body(replication_dr_mode="disabled"),
        )
        assert poller.wait_for("dr", ReplicationMode.DISABLED) == 4

    def test_non_string_mode_is_retried(self, mock_sleep):
        poller, _ = self._poller(
            health_body(replication_dr_mode=3),
            health_body(replication_dr_mode="secondary"),
        )
        assert poller.wait_for("dr", "secondary") == 2

    def test_custom_budget(self, mock_sleep):
        poller, client = self._poller(*[health_body()] * 5, max_attempts=3, interval=2.0)
        with pytest.raises(ConvergenceTimeoutError):
            poller.wait_for("dr", "running")
        assert client.raw_health_request.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [2.0, 2.0]

    def test_pending_logged_as_warning(self, mock_sleep, caplog):
        poller, _ = self._poller(
            health_body(replication_dr_mode="disabled"),
            health_body(replication_dr_mode="primary"),
        )
        with caplog.at_level(logging.WARNING, logger="src.replication.poller"):
            poller.wait_for("dr", "running")
        pending = [r for r in caplog.records if "Replication pending" in r.message]
        assert len(pending) == 1
        assert pending[0].attempt == 1

    def test_deadline_ends_wait_early(self, mock_sleep):
        clock = [0.0]
        mock_sleep.side_effect = lambda seconds: clock.__setitem__(0, clock[0] + seconds)
        poller, client = self._poller(*[health_body(replication_dr_mode="disabled")] * 10, deadline=2.5)

        with patch("src.resilience.retry.time.monotonic", side_effect=lambda: clock[0]):
            with pytest.raises(ConvergenceTimeoutError) as exc_info:
                poller.wait_for("dr", "running")

        # health checks at t=0, 1, 2; the next 1s wait would cross 2.5s
        assert exc_info.value.attempts == 3
        assert exc_info.value.attempts < poller.config.max_attempts
        assert exc_info.value.cancelled is False
        assert client.raw_health_request.call_count == 3

    def test_cancel_event(self, mock_sleep):
        event = threading.Event()
        event.set()
        poller, client = self._poller(health_body())
        with pytest.raises(ConvergenceTimeoutError) as exc_info:
            poller.wait_for("dr", "running", cancel_event=event)
        assert exc_info.value.cancelled is True
        client.raw_health_request.assert_not_called()


# =============================================================================
# Controller
# =============================================================================


@patch("src.resilience.retry.time.sleep")
class TestReplicationController:
    def test_dr_primary_enable_scenario(self, mock_sleep, mock_client):
        controller = ReplicationController(mock_client)
        path = controller.enable_primary("dr", "10.0.0.1:8201")

        assert path == "/sys/replication/dr/primary/enable"
        mock_client.write.assert_called_once_with(
            "/sys/replication/dr/primary/enable", {"primary_cluster_addr": "10.0.0.1:8201"}
        )
        mock_client.raw_health_request.assert_called_once()

    def test_primary_payload_omitted_without_addr(self, mock_sleep, mock_client):
        ReplicationController(mock_client).enable_primary("performance")
        mock_client.write.assert_called_once_with("/sys/replication/performance/primary/enable", None)

    def test_enable_primary_no_wait(self, mock_sleep, mock_client):
        ReplicationController(mock_client).enable_primary("dr", wait=False)
        mock_client.raw_health_request.assert_not_called()

    def test_enable_primary_timeout_propagates(self, mock_sleep, mock_client):
        mock_client.raw_health_request.return_value = health_body(replication_dr_mode="disabled")
        with pytest.raises(ConvergenceTimeoutError):
            ReplicationController(mock_client).enable_primary("dr")
        assert mock_client.raw_health_request.call_count == 10

    def test_secondary_sends_all_four_fields(self, mock_sleep, mock_client):
        ReplicationController(mock_client).enable_secondary("dr", "hvs.token")
        mock_client.write.assert_called_once_with(
            "/sys/replication/dr/secondary/enable",
            {"token": "hvs.token", "primary_api_addr": "", "ca_file": "", "ca_path": ""},
        )
        mock_client.raw_health_request.assert_not_called()

    def test_secondary_wait_targets_secondary_mode(self, mock_sleep, mock_client):
        mock_client.raw_health_request.return_value = health_body(replication_dr_mode="secondary")
        ReplicationController(mock_client).enable_secondary(
            "dr", "hvs.token", primary_api_addr="https://10.0.0.1:8200", wait=True,
        )
        mock_client.raw_health_request.assert_called_once()

    def test_write_transport_error_wrapped(self, mock_sleep, mock_client):
        mock_client.write.side_effect = TransportError("Code 400: already enabled")
        with pytest.raises(RemoteWriteError) as exc_info:
            ReplicationController(mock_client).enable_primary("dr")
        assert "error enabling dr replication" in str(exc_info.value)
        assert exc_info.value.path == "/sys/replication/dr/primary/enable"
        assert isinstance(exc_info.value.cause, TransportError)

    def test_write_errors_field_raises(self, mock_sleep, mock_client):
        mock_client.write.return_value = VaultResponse(data={"Errors": ["boom"]})
        with pytest.raises(RemoteWriteError, match="boom"):
            ReplicationController(mock_client).enable_primary("dr")
        mock_client.raw_health_request.assert_not_called()

    def test_disable_primary_converges(self, mock_sleep, mock_client):
        mock_client.raw_health_request.return_value = health_body(replication_dr_mode="disabled")
        outcome = ReplicationController(mock_client).disable_primary("dr")
        assert outcome.path == "/sys/replication/dr/primary/disable"
        assert outcome.converged is True
        mock_client.write.assert_called_once_with("/sys/replication/dr/primary/disable", None)

    def test_disable_primary_wait_failure_is_reported(self, mock_sleep, mock_client, caplog):
        with caplog.at_level(logging.DEBUG):
            outcome = ReplicationController(mock_client).disable_primary("dr")
        assert outcome.waited is True
        assert outcome.converged is False
        assert isinstance(outcome.wait_error, ConvergenceTimeoutError)
        assert [r for r in caplog.records if r.levelno >= logging.ERROR] == []
        assert any(
            r.levelno == logging.WARNING and "disable not confirmed" in r.message
            for r in caplog.records
        )

    def test_disable_primary_cancelled_wait(self, mock_sleep, mock_client):
        event = threading.Event()
        event.set()
        outcome = ReplicationController(mock_client).disable_primary("dr", cancel_event=event)

        mock_client.write.assert_called_once_with("/sys/replication/dr/primary/disable", None)
        mock_client.raw_health_request.assert_not_called()
        assert outcome.converged is False
        assert outcome.wait_error.cancelled is True

    def test_disable_secondary(self, mock_sleep, mock_client):
        outcome = ReplicationController(mock_client).disable_secondary("performance")
        mock_client.write.assert_called_once_with("/sys/replication/performance/secondary/disable", None)
        assert outcome.waited is False

    def test_performance_token_scenario(self, mock_sleep, mock_client, wrapped_response):
        mock_client.write.return_value = wrapped_response
        token = ReplicationController(mock_client).issue_token("performance", "sec-1", ttl="30m")
        assert token == "hvs.wrapped-secondary-token"
        mock_client.write.assert_called_once_with(
            "/sys/replication/performance/primary/secondary-token", {"id": "sec-1", "ttl": "30m"}
        )

    def test_issue_token_with_public_key(self, mock_sleep, mock_client, wrapped_response):
        mock_client.write.return_value = wrapped_response
        ReplicationController(mock_client).issue_token("dr", "sec-2", secondary_public_key="pk")
        mock_client.write.assert_called_once_with(
            "/sys/replication/dr/primary/secondary-token", {"id": "sec-2", "secondary_public_key": "pk"}
        )

    def test_issue_token_without_wrap_info(self, mock_sleep, mock_client):
        mock_client.write.return_value = VaultResponse(data={})
        with pytest.raises(MalformedResponseError, match="wrap_info.token"):
            ReplicationController(mock_client).issue_token("dr", "sec-1")

    def test_revoke_token(self, mock_sleep, mock_client):
        ReplicationController(mock_client).revoke_token("dr", "sec-1")
        mock_client.write.assert_called_once_with(
            "/sys/replication/dr/primary/revoke-secondary", {"id": "sec-1"}
        )

    def test_token_exists(self, mock_sleep, mock_client):
        controller = ReplicationController(mock_client)
        assert controller.token_exists("dr", "sec-1") is True
        assert controller.token_exists("dr", "sec-9") is False
        mock_client.read.assert_called_with("/sys/replication/dr/status")

    def test_token_exists_with_no_secondaries(self, mock_sleep, mock_client):
        mock_client.read.return_value = VaultResponse(data=primary_status(secondaries=None))
        assert ReplicationController(mock_client).token_exists("dr", "sec-1") is False

    def test_find_token_raises_not_found(self, mock_sleep, mock_client):
        with pytest.raises(NotFoundError) as exc_info:
            ReplicationController(mock_client).find_token("dr", "sec-9")
        assert exc_info.value.token_id == "sec-9"

    def test_read_status(self, mock_sleep, mock_client):
        result = ReplicationController(mock_client).read_status("dr", ReplicationRole.PRIMARY)
        assert result.record.cluster_id == "5b3e4a8f-0000-4c1e-9d6a-1f2e3d4c5b6a"

    def test_read_errors(self, mock_sleep, mock_client):
        controller = ReplicationController(mock_client)
        mock_client.read.return_value = None
        with pytest.raises(RemoteReadError):
            controller.read_status("dr", ReplicationRole.PRIMARY)

        mock_client.read.return_value = VaultResponse(data={"Errors": "denied"})
        with pytest.raises(RemoteReadError, match="denied"):
            controller.read_status("dr", ReplicationRole.PRIMARY)

        mock_client.read.side_effect = TransportError("Code 403")
        with pytest.raises(RemoteReadError):
            controller.replication_exists("dr")

    def test_replication_exists(self, mock_sleep, mock_client):
        controller = ReplicationController(mock_client)
        assert controller.replication_exists("dr") is True
        mock_client.read.return_value = VaultResponse(data={"mode": "disabled"})
        assert controller.replication_exists("dr") is False


# =============================================================================
# Store and resources
# =============================================================================


class TestResourceData:
    def test_satisfies_config_store(self):
        assert isinstance(ResourceData(PRIMARY_CONFIG_SCHEMA), ConfigStore)

    def test_defaults_and_get_ok(self):
        d = ResourceData(PRIMARY_CONFIG_SCHEMA, {"type": "dr"})
        assert d.get("primary_cluster_addr") == ""
        assert d.get_ok("type") == ("dr", True)
        assert d.get_ok("primary_cluster_addr") == ("", False)

    def test_unknown_field(self):
        with pytest.raises(KeyError):
            ResourceData(PRIMARY_CONFIG_SCHEMA, {"bogus": 1})

    def test_validate_required(self):
        with pytest.raises(ValueError, match="token"):
            ResourceData(SECONDARY_CONFIG_SCHEMA, {"type": "dr"}).validate()

    def test_force_new_after_creation(self):
        d = ResourceData(PRIMARY_CONFIG_SCHEMA, {"type": "dr"})
        d.set("type", "performance")
        d.set_id("/sys/replication/performance/primary/enable")
        d.set("type", "performance")
        with pytest.raises(ValueError, match="cannot change"):
            d.set("type", "dr")

    def test_sensitive_fields_redacted(self):
        d = ResourceData(SECONDARY_CONFIG_SCHEMA, {"type": "dr", "token": "hvs.secret"})
        assert d.as_dict()["token"] == "<sensitive>"
        assert d.as_dict(redact=False)["token"] == "hvs.secret"


@patch("src.resilience.retry.time.sleep")
class TestResources:
    def test_primary_create_then_read(self, mock_sleep, mock_client):
        d = ResourceData(PRIMARY_CONFIG_SCHEMA, {"type": "dr", "primary_cluster_addr": "10.0.0.1:8201"})
        PrimaryConfigResource(ReplicationController(mock_client)).create(d)

        assert d.id == "/sys/replication/dr/primary/enable"
        assert d.record.mode == "primary"
        assert d.get("state") == "running"
        assert d.get("known_secondaries") == ("sec-1",)
        mock_client.read.assert_called_once_with("/sys/replication/dr/status")

    def test_read_purges_disabled(self, mock_sleep, mock_client):
        d = ResourceData(PRIMARY_CONFIG_SCHEMA, {"type": "dr"})
        d.set_id("/sys/replication/dr/primary/enable")
        mock_client.read.return_value = VaultResponse(data={"mode": "disabled"})
        PrimaryConfigResource(ReplicationController(mock_client)).read(d)
        assert d.exists is False
        assert d.get("mode") == "disabled"

    def test_primary_delete(self, mock_sleep, mock_client):
        mock_client.raw_health_request.return_value = health_body(replication_dr_mode="disabled")
        d = ResourceData(PRIMARY_CONFIG_SCHEMA, {"type": "dr"})
        d.set_id("/sys/replication/dr/primary/enable")
        outcome = PrimaryConfigResource(ReplicationController(mock_client)).delete(d)
        assert outcome.converged is True
        assert d.id == ""

    def test_primary_exists(self, mock_sleep, mock_client):
        d = ResourceData(PRIMARY_CONFIG_SCHEMA, {"type": "dr"})
        assert PrimaryConfigResource(ReplicationController(mock_client)).exists(d) is True

    def test_secondary_create(self, mock_sleep, mock_client):
        mock_client.read.return_value = VaultResponse(data=secondary_status())
        d = ResourceData(SECONDARY_CONFIG_SCHEMA, {"type": "performance", "token": "hvs.token"})
        SecondaryConfigResource(ReplicationController(mock_client)).create(d)

        assert d.id == "/sys/replication/performance/secondary/enable"
        assert d.get("primary_cluster_addr") == "https://10.0.0.1:8201"
        mock_client.raw_health_request.assert_not_called()

    def test_create_with_unknown_type(self, mock_sleep, mock_client):
        d = ResourceData(PRIMARY_CONFIG_SCHEMA, {"type": "DR"})
        with pytest.raises(ReplicationError, match="invalid replication type"):
            PrimaryConfigResource(ReplicationController(mock_client)).create(d)
        mock_client.write.assert_not_called()
        assert d.exists is False

    def test_secondary_create_validates(self, mock_sleep, mock_client):
        d = ResourceData(SECONDARY_CONFIG_SCHEMA, {"type": "dr"})
        with pytest.raises(ValueError):
            SecondaryConfigResource(ReplicationController(mock_client)).create(d)
        mock_client.write.assert_not_called()

    def test_secondary_delete(self, mock_sleep, mock_client):
        d = ResourceData(SECONDARY_CONFIG_SCHEMA, {"type": "dr", "token": "t"})
        d.set_id("/sys/replication/dr/secondary/enable")
        SecondaryConfigResource(ReplicationController(mock_client)).delete(d)
        mock_client.write.assert_called_once_with("/sys/replication/dr/secondary/disable", None)
        assert d.exists is False

    def test_token_create(self, mock_sleep, mock_client, wrapped_response):
        mock_client.write.return_value = wrapped_response
        d = ResourceData(TOKEN_SCHEMA, {"type": "performance", "token_id": "sec-1", "ttl": "30m"})
        ReplicationTokenResource(ReplicationController(mock_client)).create(d)

        assert d.id == "sec-1"
        assert d.get("secondary_token") == "hvs.wrapped-secondary-token"
        assert d.as_dict()["secondary_token"] == "<sensitive>"

    def test_token_read_purges_when_disabled(self, mock_sleep, mock_client):
        d = ResourceData(TOKEN_SCHEMA, {"type": "dr", "token_id": "sec-1"})
        d.set_id("sec-1")
        mock_client.read.return_value = VaultResponse(data={"mode": "disabled"})
        ReplicationTokenResource(ReplicationController(mock_client)).read(d)
        assert d.exists is False

    def test_token_exists_and_delete(self, mock_sleep, mock_client):
        resource = ReplicationTokenResource(ReplicationController(mock_client))
        d = ResourceData(TOKEN_SCHEMA, {"type": "dr", "token_id": "sec-1"})
        d.set_id("sec-1")
        assert resource.exists(d) is True

        resource.delete(d)
        mock_client.write.assert_called_once_with(
            "/sys/replication/dr/primary/revoke-secondary", {"id": "sec-1"}
        )
        assert d.id == ""
