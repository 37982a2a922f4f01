"""Pytest configuration and shared fixtures."""

import json
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.replication.client import VaultResponse, WrapInfo  # noqa: E402
from src.settings import get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def reset_settings():
    """Drop the cached settings so env changes in one test don't leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def health_body(**fields) -> bytes:
    """Encode a /sys/health payload."""
    payload = {"initialized": True, "sealed": False, "standby": False}
    payload.update(fields)
    return json.dumps(payload).encode()


def primary_status(mode="primary", **overrides) -> dict:
    data = {
        "primary_cluster_addr": "",
        "cluster_id": "5b3e4a8f-0000-4c1e-9d6a-1f2e3d4c5b6a",
        "mode": mode,
        "state": "running",
        "known_secondaries": ["sec-1"],
        "secondaries": [
            {
                "api_address": "https://10.0.0.2:8200",
                "cluster_address": "https://10.0.0.2:8201",
                "connection_status": "connected",
                "last_heartbeat": "2026-10-19T12:00:00Z",
                "node_id": "sec-1",
            }
        ],
    }
    data.update(overrides)
    return data


def secondary_status(mode="secondary", **overrides) -> dict:
    data = {
        "primary_cluster_addr": "https://10.0.0.1:8201",
        "cluster_id": "5b3e4a8f-0000-4c1e-9d6a-1f2e3d4c5b6a",
        "mode": mode,
        "state": "stream-wals",
        "known_primary_cluster_addrs": ["https://10.0.0.1:8201"],
        "primaries": [
            {
                "api_address": "https://10.0.0.1:8200",
                "cluster_address": "https://10.0.0.1:8201",
                "connection_status": "connected",
                "last_heartbeat": "2026-10-19T12:00:00Z",
            }
        ],
    }
    data.update(overrides)
    return data


@pytest.fixture
def mock_client():
    """APIClient double: empty writes, primary status reads, converged health."""
    client = MagicMock()
    client.write.return_value = None
    client.read.return_value = VaultResponse(data=primary_status())
    client.raw_health_request.return_value = health_body(
        replication_dr_mode="primary",
        replication_performance_mode="primary",
    )
    return client


@pytest.fixture
def wrapped_response():
    return VaultResponse(
        data={},
        wrap_info=WrapInfo(token="hvs.wrapped-secondary-token", accessor="acc", ttl=1800),
    )
