"""
Pydantic Schemas for the WireGuard Peer Manager API
"""

from .base import BaseResponse, ErrorResponse, HealthResponse
from .peer import (
    KeyCustodyRecord,
    PeerIdentity,
    PeerCreate,
    PeerUpdate,
    PeerResponse,
    PeerToggleResponse,
    PeerConfigFile,
    PeerDeleteResult,
    CleanupResponse,
    ServerInfoResponse,
    CustodyRecordSummary,
    CustodyListResponse,
)

__all__ = [
    # Base
    "BaseResponse",
    "ErrorResponse",
    "HealthResponse",
    # Peer
    "KeyCustodyRecord",
    "PeerIdentity",
    "PeerCreate",
    "PeerUpdate",
    "PeerResponse",
    "PeerToggleResponse",
    "PeerConfigFile",
    "PeerDeleteResult",
    "CleanupResponse",
    "ServerInfoResponse",
    "CustodyRecordSummary",
    "CustodyListResponse",
]
