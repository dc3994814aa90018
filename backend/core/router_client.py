# backend/core/router_client.py
"""
MikroTik Router Client
Manages WireGuard peers on a RouterOS device through its REST API
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .exceptions import NotFound, UpstreamFailure

logger = logging.getLogger(__name__)

PEERS_PATH = "/interface/wireguard/peers"
INTERFACES_PATH = "/interface/wireguard"


class CreateOutcome(str, enum.Enum):
    """Shape of the identifier returned by a peer create call"""
    DIRECT_ID = "direct_id"      # {"ret": "*1"} or {"after": "*1"}
    NESTED_ID = "nested_id"      # {".id": "*1"} or [{".id": "*1"}]
    NO_ID = "no_id"              # nothing usable, caller must look the peer up


@dataclass(frozen=True)
class PeerCreateResult:
    outcome: CreateOutcome
    peer_id: Optional[str] = None
    raw: Any = None


def interpret_create_response(payload: Any) -> PeerCreateResult:
    """
    Map every response shape RouterOS versions return for an `add` call
    onto a tagged PeerCreateResult
    """
    if isinstance(payload, dict):
        for key in ("ret", "after"):
            if payload.get(key):
                return PeerCreateResult(CreateOutcome.DIRECT_ID, str(payload[key]), payload)
        if payload.get(".id"):
            return PeerCreateResult(CreateOutcome.NESTED_ID, str(payload[".id"]), payload)
    elif isinstance(payload, list) and payload:
        first = payload[0]
        if isinstance(first, dict) and first.get(".id"):
            return PeerCreateResult(CreateOutcome.NESTED_ID, str(first[".id"]), payload)

    return PeerCreateResult(CreateOutcome.NO_ID, None, payload)


def _to_router_value(value: Any) -> str:
    """RouterOS REST expects every field as a string"""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class RouterClient:
    """
    Async client for the RouterOS v7 REST API

    Responsibilities:
    - List, read, create, update and delete WireGuard peers
    - Resolve the WireGuard interface peers are attached to
    - Read interface info (server public key, listen port)
    """

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        interface_name: Optional[str] = None,
        timeout: float = 15.0,
        verify: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.configured_interface = interface_name
        self._interface_name: Optional[str] = None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=(username, password),
            timeout=timeout,
            verify=verify,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_settings(cls, settings) -> "RouterClient":
        return cls(
            base_url=settings.router_base_url,
            username=settings.ROUTER_USERNAME,
            password=settings.ROUTER_PASSWORD,
            interface_name=settings.WG_INTERFACE_NAME,
            timeout=settings.ROUTER_TIMEOUT,
            verify=settings.ROUTER_VERIFY_TLS,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        """Send a request and return the decoded JSON body (None when empty)"""
        logger.debug(f"RouterOS {method} {path}")
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise UpstreamFailure(f"Router request failed: {e}") from e

        if response.status_code == 404:
            raise NotFound(f"Router object not found: {path}")
        if response.is_error:
            raise UpstreamFailure(
                f"Router returned {response.status_code}: {self._error_message(response)}",
                details={"status_code": response.status_code, "path": path},
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamFailure(f"Router returned invalid JSON for {path}") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict):
            return body.get("detail") or body.get("message") or str(body)
        return str(body)

    async def check_connection(self) -> bool:
        """Check if the router API answers"""
        try:
            await self._request("GET", "/system/resource")
            return True
        except (UpstreamFailure, NotFound) as e:
            logger.error(f"Router connection check failed: {e}")
            return False

    # === Interface ===

    async def list_interfaces(self) -> List[Dict[str, Any]]:
        return await self._request("GET", INTERFACES_PATH) or []

    async def resolve_interface_name(self) -> str:
        """
        Name of the WireGuard interface peers belong to

        Uses the configured interface when set, otherwise the first one.
        """
        if self._interface_name:
            return self._interface_name

        interfaces = await self.list_interfaces()
        if not interfaces:
            raise UpstreamFailure(
                "No WireGuard interfaces found. Please create a WireGuard interface first."
            )

        if self.configured_interface:
            names = [iface.get("name") for iface in interfaces]
            if self.configured_interface not in names:
                raise UpstreamFailure(
                    f"WireGuard interface '{self.configured_interface}' not found. "
                    f"Available: {', '.join(str(n) for n in names)}"
                )
            self._interface_name = self.configured_interface
        else:
            self._interface_name = interfaces[0].get("name")
            logger.info(f"Using WireGuard interface: {self._interface_name}")

        return self._interface_name

    async def get_interface_info(self) -> Dict[str, Any]:
        """Interface row (public-key, listen-port, name); empty dict if none"""
        interfaces = await self.list_interfaces()
        if self.configured_interface:
            for iface in interfaces:
                if iface.get("name") == self.configured_interface:
                    return iface
        return interfaces[0] if interfaces else {}

    # === Peers ===

    async def list_peers(self) -> List[Dict[str, Any]]:
        """All peers on the resolved interface"""
        peers = await self._request("GET", PEERS_PATH) or []
        interface_name = await self.resolve_interface_name()
        return [p for p in peers if not p.get("interface") or p.get("interface") == interface_name]

    async def get_peer(self, peer_id: str) -> Dict[str, Any]:
        # Filtering on the router is inconsistent across versions, match locally
        peers = await self._request("GET", PEERS_PATH) or []
        for peer in peers:
            if peer.get(".id") == peer_id:
                return peer
        logger.info(f"Peer {peer_id} not found. Available IDs: {[p.get('.id') for p in peers]}")
        raise NotFound(f"Peer {peer_id} not found")

    async def create_peer(self, fields: Dict[str, Any]) -> PeerCreateResult:
        body = {key: _to_router_value(value) for key, value in fields.items()}
        if "interface" not in body:
            body["interface"] = await self.resolve_interface_name()

        payload = await self._request("POST", f"{PEERS_PATH}/add", json=body)
        result = interpret_create_response(payload)
        logger.info(f"Router create peer: outcome={result.outcome.value} id={result.peer_id}")
        return result

    async def update_peer(self, peer_id: str, fields: Dict[str, Any]) -> None:
        body = {key: _to_router_value(value) for key, value in fields.items()}
        await self._request("PATCH", f"{PEERS_PATH}/{peer_id}", json=body)

    async def delete_peer(self, peer_id: str) -> None:
        await self._request("DELETE", f"{PEERS_PATH}/{peer_id}")
