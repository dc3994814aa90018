# backend/schemas/peer.py
"""
Peer-related Pydantic schemas
"""

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List, Any, Dict
from datetime import datetime

from core.validation import validate_allowed_address


# === Domain Models ===

class KeyCustodyRecord(BaseModel):
    """Locally custodied secrets for one router peer"""
    router_id: str
    name: str
    private_key: str = Field(..., repr=False)
    preshared_key: Optional[str] = Field(None, repr=False)
    allowed_address: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PeerIdentity(BaseModel):
    """
    Router-visible peer
    Telemetry fields are read straight from the router, never cached
    """
    id: str
    public_key: Optional[str] = None
    allowed_address: Optional[str] = None
    display_name: str = "Unnamed"
    enabled: bool = True
    preshared_key_present: bool = False
    endpoint: str = ""
    last_handshake: str = "Never"
    rx_bytes: str = "0"
    tx_bytes: str = "0"

    @classmethod
    def from_router(cls, row: Dict[str, Any]) -> "PeerIdentity":
        return cls(
            id=str(row.get(".id")),
            public_key=row.get("public-key"),
            allowed_address=row.get("allowed-address"),
            display_name=row.get("comment") or "Unnamed",
            enabled=str(row.get("disabled", "false")).lower() != "true",
            preshared_key_present=bool(row.get("preshared-key")),
            endpoint=row.get("endpoint") or row.get("current-endpoint-address") or "",
            last_handshake=str(row.get("last-handshake") or row.get("last-seen") or "Never"),
            rx_bytes=str(row.get("rx") or row.get("rx-bytes") or "0"),
            tx_bytes=str(row.get("tx") or row.get("tx-bytes") or "0"),
        )


# === Request Schemas ===

class _PeerRequest(BaseModel):
    name: str = Field(..., max_length=255, description="Peer display name", examples=["alice-laptop"])

    model_config = ConfigDict(populate_by_name=True)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Peer name is required')
        return v


class PeerCreate(_PeerRequest):
    """Schema for creating a new peer"""
    allowed_address: Optional[str] = Field(
        None,
        alias="allowedIPs",
        description="Tunnel address; allocated automatically when omitted",
        examples=["172.16.0.5/32"]
    )
    use_preshared_key: bool = Field(True, alias="usePresharedKey")

    @field_validator('allowed_address')
    @classmethod
    def validate_address(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return validate_allowed_address(v)


class PeerUpdate(_PeerRequest):
    """Schema for updating an existing peer"""
    allowed_address: str = Field(..., alias="allowedIPs", examples=["172.16.0.5/32"])
    enabled: bool = True
    update_preshared_key: bool = Field(False, alias="updatePresharedKey")
    regenerate_completely: bool = Field(False, alias="regenerateCompletely")

    @field_validator('allowed_address')
    @classmethod
    def validate_address(cls, v: str) -> str:
        return validate_allowed_address(v)


# === Response Schemas ===

class PeerResponse(BaseModel):
    """Peer as shown to API clients"""
    id: str
    name: str
    public_key: Optional[str] = Field(None, alias="publicKey")
    allowed_ips: Optional[str] = Field(None, alias="allowedIPs")
    endpoint: str = ""
    enabled: bool = True
    last_handshake: str = Field("Never", alias="lastHandshake")
    transfer_rx: str = Field("0", alias="transferRx")
    transfer_tx: str = Field("0", alias="transferTx")
    has_preshared_key: bool = Field(False, alias="hasPresharedKey")
    has_stored_keys: bool = Field(False, alias="hasStoredKeys")
    key_created_at: Optional[datetime] = Field(None, alias="keyCreatedAt")
    regenerated: Optional[bool] = None
    new_preshared_key: Optional[str] = Field(None, alias="newPresharedKey")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_identity(cls, peer: PeerIdentity, record: Optional[KeyCustodyRecord] = None) -> "PeerResponse":
        return cls(
            id=peer.id,
            name=peer.display_name,
            public_key=peer.public_key,
            allowed_ips=peer.allowed_address,
            endpoint=peer.endpoint,
            enabled=peer.enabled,
            last_handshake=peer.last_handshake,
            transfer_rx=peer.rx_bytes,
            transfer_tx=peer.tx_bytes,
            has_preshared_key=peer.preshared_key_present,
            has_stored_keys=record is not None,
            key_created_at=record.created_at if record else None,
        )


class PeerToggleResponse(BaseModel):
    id: str
    name: str
    enabled: bool
    message: str


class PeerDeleteResult(BaseModel):
    id: str
    removed_records: int = Field(..., alias="removedRecords")

    model_config = ConfigDict(populate_by_name=True)


class PeerConfigFile(BaseModel):
    """Rendered client config ready for download"""
    filename: str
    content: str


class CleanupResponse(BaseModel):
    success: bool = True
    message: str
    cleaned_count: int = Field(..., alias="cleanedCount")

    model_config = ConfigDict(populate_by_name=True)


class ServerInfoResponse(BaseModel):
    public_key: Optional[str] = Field(None, alias="publicKey")
    endpoint: str
    port: int
    allowed_ips: str = Field(..., alias="allowedIPs")
    interface_name: str = Field(..., alias="interfaceName")
    pool: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(populate_by_name=True)


class CustodyRecordSummary(BaseModel):
    """Custody row without secrets"""
    router_id: str
    name: str
    allowed_address: str
    has_preshared_key: bool
    created_at: Optional[datetime] = None


class CustodyListResponse(BaseModel):
    count: int
    peers: List[CustodyRecordSummary]
