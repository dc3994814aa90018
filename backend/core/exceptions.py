# backend/core/exceptions.py
"""
Error taxonomy for peer provisioning
Each error carries an error_code and the HTTP status the API layer maps it to
"""

from typing import Any, Dict, List, Optional


class PeerManagerError(Exception):
    """Base class for every error surfaced by the core"""

    error_code = "PEER_MANAGER_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidRequest(PeerManagerError):
    """Rejected before any mutating call"""
    error_code = "VALIDATION_ERROR"
    status_code = 400


class NotFound(PeerManagerError):
    error_code = "NOT_FOUND"
    status_code = 404


class KeyGenerationUnavailable(PeerManagerError):
    """No key generation backend could produce keys"""
    error_code = "KEY_GENERATION_UNAVAILABLE"


class InvalidGeneratedKey(PeerManagerError):
    """A backend produced a malformed key"""
    error_code = "INVALID_GENERATED_KEY"


class PeerIdResolutionFailed(PeerManagerError):
    """The router accepted a peer but its identifier could not be determined"""
    error_code = "PEER_ID_RESOLUTION_FAILED"


class AddressPoolExhausted(PeerManagerError):
    error_code = "ADDRESS_POOL_EXHAUSTED"


class ConfigUnavailable(PeerManagerError):
    """No custody record exists for the peer, so no config can be built"""
    error_code = "CONFIG_UNAVAILABLE"
    status_code = 404

    def __init__(self, peer_id: str, available_ids: List[str]):
        super().__init__(
            "Peer configuration not found. Keys may not be stored for this peer.",
            details={"requested_id": peer_id, "available_ids": available_ids},
        )
        self.peer_id = peer_id
        self.available_ids = available_ids


class ServerNotConfigured(PeerManagerError):
    error_code = "SERVER_NOT_CONFIGURED"

    def __init__(self, message: str = "Server public key not configured. "
                                      "Please check WireGuard interface setup."):
        super().__init__(message)


class UpstreamFailure(PeerManagerError):
    """Router or custody store I/O failed"""
    error_code = "UPSTREAM_FAILURE"
    status_code = 500


class CompensationFailed(PeerManagerError):
    """
    A multi-step operation failed and undoing it failed too.
    Carries the original error and every compensation error.
    """
    error_code = "COMPENSATION_FAILED"

    def __init__(self, primary: BaseException, compensation_errors: List[BaseException]):
        message = f"{primary}; compensation also failed: " + "; ".join(
            str(e) for e in compensation_errors
        )
        super().__init__(
            message,
            details={
                "primary_error": str(primary),
                "compensation_errors": [str(e) for e in compensation_errors],
            },
        )
        self.primary = primary
        self.compensation_errors = compensation_errors
