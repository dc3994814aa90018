# backend/core/__init__.py
"""
Core business logic modules

Import submodules directly (core.peer_service, core.keygen, ...);
schemas import core.validation, so this package stays import-light.
"""

from .exceptions import (
    PeerManagerError,
    InvalidRequest,
    NotFound,
    KeyGenerationUnavailable,
    InvalidGeneratedKey,
    PeerIdResolutionFailed,
    AddressPoolExhausted,
    ConfigUnavailable,
    ServerNotConfigured,
    UpstreamFailure,
    CompensationFailed,
)

__all__ = [
    "PeerManagerError",
    "InvalidRequest",
    "NotFound",
    "KeyGenerationUnavailable",
    "InvalidGeneratedKey",
    "PeerIdResolutionFailed",
    "AddressPoolExhausted",
    "ConfigUnavailable",
    "ServerNotConfigured",
    "UpstreamFailure",
    "CompensationFailed",
]
