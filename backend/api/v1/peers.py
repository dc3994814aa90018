# backend/api/v1/peers.py
"""
Peer API Endpoints
Thin HTTP layer over PeerProvisioner; core errors are mapped by main.py
"""

from fastapi import APIRouter, Depends, HTTPException, Header, Query, Request, status
from fastapi.responses import PlainTextResponse
from typing import List, Optional
import logging

from core.peer_service import PeerProvisioner
from schemas.base import BaseResponse
from schemas.peer import (
    PeerCreate,
    PeerUpdate,
    PeerResponse,
    PeerToggleResponse,
    PeerDeleteResult,
    CleanupResponse,
    ServerInfoResponse,
    CustodyListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# === Dependencies ===

def get_provisioner(request: Request) -> PeerProvisioner:
    return request.app.state.provisioner


async def verify_admin_token(
    request: Request,
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
):
    """Verify admin token when ADMIN_SECRET is configured"""
    secret = request.app.state.settings.ADMIN_SECRET
    if secret and x_admin_token != secret:
        logger.warning("Invalid admin token attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Invalid or missing admin token", "error_code": "UNAUTHORIZED"},
        )
    return True


# === Peer Endpoints ===

@router.get(
    "/peers",
    response_model=List[PeerResponse],
    summary="List peers",
    description="Router peers joined with key custody status. cleanup=true removes orphaned custody records first."
)
async def list_peers(
    cleanup: bool = Query(False, description="Remove orphaned custody records first"),
    provisioner: PeerProvisioner = Depends(get_provisioner),
    _: bool = Depends(verify_admin_token)
):
    return await provisioner.list_peers(include_cleanup=cleanup)


@router.post(
    "/peers",
    response_model=PeerResponse,
    summary="Create peer",
    description="Generate keys, create the router peer and store its private key"
)
async def create_peer(
    peer: PeerCreate,
    provisioner: PeerProvisioner = Depends(get_provisioner),
    _: bool = Depends(verify_admin_token)
):
    return await provisioner.create_peer(
        name=peer.name,
        allowed_address=peer.allowed_address,
        use_preshared_key=peer.use_preshared_key,
    )


@router.put(
    "/peers/{peer_id}",
    response_model=PeerResponse,
    response_model_exclude_none=True,
    summary="Update peer",
    description="Update in place, rotate the preshared key, or regenerate under a new ID"
)
async def update_peer(
    peer_id: str,
    peer: PeerUpdate,
    provisioner: PeerProvisioner = Depends(get_provisioner),
    _: bool = Depends(verify_admin_token)
):
    return await provisioner.update_peer(
        peer_id,
        name=peer.name,
        allowed_address=peer.allowed_address,
        enabled=peer.enabled,
        update_preshared_key=peer.update_preshared_key,
        regenerate_completely=peer.regenerate_completely,
    )


@router.delete(
    "/peers/{peer_id}",
    response_model=BaseResponse[PeerDeleteResult],
    summary="Delete peer",
    description="Remove the router peer (if still present) and its stored keys"
)
async def delete_peer(
    peer_id: str,
    provisioner: PeerProvisioner = Depends(get_provisioner),
    _: bool = Depends(verify_admin_token)
):
    removed = await provisioner.delete_peer(peer_id)
    return BaseResponse[PeerDeleteResult](
        message="Peer deleted (including orphaned data if any)",
        data=PeerDeleteResult(id=peer_id, removed_records=removed),
    )


@router.patch(
    "/peers/{peer_id}/toggle",
    response_model=PeerToggleResponse,
    summary="Enable/disable peer"
)
async def toggle_peer(
    peer_id: str,
    provisioner: PeerProvisioner = Depends(get_provisioner),
    _: bool = Depends(verify_admin_token)
):
    return await provisioner.toggle_peer(peer_id)


@router.get(
    "/peers/{peer_id}/config",
    response_class=PlainTextResponse,
    summary="Download peer config",
    description="WireGuard client config as a plain text file"
)
async def download_config(
    peer_id: str,
    provisioner: PeerProvisioner = Depends(get_provisioner),
    _: bool = Depends(verify_admin_token)
):
    config_file = await provisioner.export_config(peer_id)
    return PlainTextResponse(
        content=config_file.content,
        media_type="text/plain",
        headers={
            "Content-Disposition": f'attachment; filename="{config_file.filename}"'
        }
    )


# === Maintenance Endpoints ===

@router.post(
    "/cleanup-orphaned-peers",
    response_model=CleanupResponse,
    summary="Remove orphaned custody records"
)
async def cleanup_orphaned_peers(
    provisioner: PeerProvisioner = Depends(get_provisioner),
    _: bool = Depends(verify_admin_token)
):
    cleaned = await provisioner.reconcile_orphans()
    return CleanupResponse(
        message=f"Cleaned up {cleaned} orphaned entries",
        cleaned_count=cleaned,
    )


@router.get(
    "/server-info",
    response_model=ServerInfoResponse,
    summary="Server info",
    description="WireGuard interface public key, endpoint and address pool usage"
)
async def server_info(
    provisioner: PeerProvisioner = Depends(get_provisioner),
    _: bool = Depends(verify_admin_token)
):
    return await provisioner.get_server_info()


@router.get(
    "/debug/database-peers",
    response_model=CustodyListResponse,
    summary="List custody records (debug only)"
)
async def debug_database_peers(
    request: Request,
    provisioner: PeerProvisioner = Depends(get_provisioner),
    _: bool = Depends(verify_admin_token)
):
    if not request.app.state.settings.DEBUG:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    records = provisioner.list_custody_records()
    return CustodyListResponse(count=len(records), peers=records)
