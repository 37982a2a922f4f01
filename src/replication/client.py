"""Vault HTTP API client.

Thin synchronous wrapper over ``httpx.Client`` exposing the three calls the
replication controller needs: logical read, logical write and the raw
unauthenticated health request.
"""

import logging
import ssl
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

import httpx

from src.settings import Settings

from .config import HEALTH_PATH
from .decode import as_mapping, optional_int, optional_str, optional_str_list
from .exceptions import MalformedResponseError, TransportError

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-Vault-Token"
NAMESPACE_HEADER = "X-Vault-Namespace"


# =====================================================================
# Response Models
# =====================================================================


@dataclass(frozen=True)
class WrapInfo:
    """Response-wrapping envelope returned alongside (not inside) ``data``."""
    token: str = ""
    accessor: str = ""
    ttl: int = 0
    creation_time: str = ""
    creation_path: str = ""

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "WrapInfo":
        return cls(
            token=optional_str(data, "token"),
            accessor=optional_str(data, "accessor"),
            ttl=optional_int(data, "ttl"),
            creation_time=optional_str(data, "creation_time"),
            creation_path=optional_str(data, "creation_path"),
        )


@dataclass(frozen=True)
class VaultResponse:
    """Decoded logical response."""
    data: Dict[str, Any] = field(default_factory=dict)
    wrap_info: Optional[WrapInfo] = None
    warnings: List[str] = field(default_factory=list)
    request_id: str = ""

    @classmethod
    def from_api(cls, body: Mapping[str, Any]) -> "VaultResponse":
        data = body.get("data")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise MalformedResponseError("data", "an object", data)

        wrap = body.get("wrap_info")
        return cls(
            data=data,
            wrap_info=WrapInfo.from_api(as_mapping(wrap, "wrap_info")) if wrap is not None else None,
            warnings=list(optional_str_list(body, "warnings")),
            request_id=optional_str(body, "request_id"),
        )


# =====================================================================
# Client
# =====================================================================


@runtime_checkable
class APIClient(Protocol):
    """Capability consumed by the controller and the poller."""

    def read(self, path: str) -> Optional[VaultResponse]:
        ...

    def write(self, path: str, data: Optional[Dict[str, Any]] = None) -> Optional[VaultResponse]:
        ...

    def raw_health_request(self, params: Mapping[str, str]) -> bytes:
        ...


class VaultClient:
    """Token-authenticated Vault API client.

    Example:
        client = VaultClient("https://vault.example.com:8200", token="s.xxx")
        resp = client.read("/sys/replication/dr/status")
        print(resp.data["mode"])
    """

    def __init__(
        self,
        addr: str,
        token: str = "",
        namespace: str = "",
        timeout: float = 30.0,
        verify: Any = True,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        headers = {}
        if token:
            headers[TOKEN_HEADER] = token
        if namespace:
            headers[NAMESPACE_HEADER] = namespace

        self.addr = addr.rstrip("/")
        self._http = httpx.Client(
            base_url=self.addr,
            headers=headers,
            timeout=timeout,
            verify=verify,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, transport: Optional[httpx.BaseTransport] = None) -> "VaultClient":
        if settings.skip_verify:
            verify: Any = False
        elif settings.cacert:
            verify = ssl.create_default_context(cafile=settings.cacert)
        else:
            verify = True
        return cls(
            settings.addr,
            token=settings.token,
            namespace=settings.namespace,
            timeout=settings.request_timeout,
            verify=verify,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "VaultClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ── Logical API ──────────────────────────────────────────────────

    @staticmethod
    def _logical_url(path: str) -> str:
        return "/v1/" + path.lstrip("/")

    def read(self, path: str) -> Optional[VaultResponse]:
        """GET a logical path. Returns None for a bare 404."""
        response = self._send("GET", self._logical_url(path))
        if response.status_code == 404:
            errors = self._errors(response)
            if not errors:
                logger.debug("Read %s: not found", path)
                return None
            raise self._status_error(response, path, errors)
        return self._decode(response, path)

    def write(self, path: str, data: Optional[Dict[str, Any]] = None) -> Optional[VaultResponse]:
        """PUT a JSON body to a logical path. Returns None for an empty reply."""
        response = self._send("PUT", self._logical_url(path), json=data or {})
        return self._decode(response, path)

    def raw_health_request(self, params: Mapping[str, str]) -> bytes:
        """GET the health endpoint and return the raw body."""
        response = self._send("GET", HEALTH_PATH, params=dict(params))
        if response.status_code >= 400:
            raise self._status_error(response, HEALTH_PATH, self._errors(response))
        return response.content

    # ── Internals ────────────────────────────────────────────────────

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        logger.debug("%s %s", method, url)
        try:
            return self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {url} timed out: {e}", path=url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{method} {url} failed: {e}", path=url) from e

    def _decode(self, response: httpx.Response, path: str) -> Optional[VaultResponse]:
        if response.status_code >= 400:
            raise self._status_error(response, path, self._errors(response))
        if response.status_code == 204 or not response.content:
            logger.debug("Response from %s was empty", path)
            return None
        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(f"invalid JSON from {path}: {e}", path=path,
                                 status_code=response.status_code) from e
        if not isinstance(body, dict):
            raise MalformedResponseError("body", "an object", body, path=path)
        return VaultResponse.from_api(body)

    @staticmethod
    def _errors(response: httpx.Response) -> List[str]:
        try:
            body = response.json()
        except ValueError:
            return []
        if isinstance(body, dict) and isinstance(body.get("errors"), list):
            return [str(e) for e in body["errors"]]
        return []

    @staticmethod
    def _status_error(response: httpx.Response, path: str, errors: List[str]) -> TransportError:
        detail = "; ".join(errors) if errors else response.reason_phrase
        return TransportError(
            f"Error making API request to {path}: Code {response.status_code}: {detail}",
            path=path,
            status_code=response.status_code,
            errors=errors,
        )
