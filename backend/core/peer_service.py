# backend/core/peer_service.py
"""
Peer Provisioning Service
Keeps the router's peer table and the local key custody store in agreement
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from schemas.peer import (
    KeyCustodyRecord,
    PeerIdentity,
    PeerResponse,
    PeerToggleResponse,
    PeerConfigFile,
    ServerInfoResponse,
    CustodyRecordSummary,
)
from .config_builder import render_client_config, config_filename
from .exceptions import (
    ConfigUnavailable,
    InvalidRequest,
    NotFound,
    PeerIdResolutionFailed,
    PeerManagerError,
    ServerNotConfigured,
)
from .keygen import KeyPair
from .router_client import CreateOutcome, PeerCreateResult
from .saga import Saga
from .validation import require_valid_key

logger = logging.getLogger(__name__)


class PeerProvisioner:
    """
    Sequences key generation, the router and the custody store

    Responsibilities:
    1. Create peers (router first, then custody; router peer removed if custody fails)
    2. Update peers in place or regenerate them under a new id
    3. Toggle and delete peers
    4. Export client configs from custody records
    5. List peers joined with custody status, optionally reconciling first

    No locking: concurrent creates may allocate the same address and
    concurrent updates of one peer are last-write-wins.
    """

    def __init__(self, settings, router, key_store, keygen, allocator, reconciler):
        self.settings = settings
        self.router = router
        self.key_store = key_store
        self.keygen = keygen
        self.allocator = allocator
        self.reconciler = reconciler

    # === Helpers ===

    async def _generate_keys(self, include_preshared_key: bool) -> KeyPair:
        # wg subprocesses must not stall the event loop
        keys = await asyncio.to_thread(self.keygen.generate, include_preshared_key)
        require_valid_key(keys.public_key, "public key")
        if keys.preshared_key is not None:
            require_valid_key(keys.preshared_key, "preshared key")
        return keys

    async def resolve_created_peer_id(self, result: PeerCreateResult, fields: Dict[str, Any]) -> str:
        """
        Turn a router create result into the new peer id

        When the router returned no id, the peer list is searched for the
        (public-key, comment) pair just submitted. Public keys are unique,
        so at most one peer matches.

        Raises:
            PeerIdResolutionFailed: If neither path yields an id
        """
        if result.outcome in (CreateOutcome.DIRECT_ID, CreateOutcome.NESTED_ID) and result.peer_id:
            return result.peer_id

        logger.info("No ID returned, searching for newly created peer...")
        peers = await self.router.list_peers()
        for peer in peers:
            if (peer.get("public-key") == fields["public-key"]
                    and peer.get("comment") == fields["comment"]):
                peer_id = str(peer.get(".id"))
                logger.info(f"Found newly created peer with ID: {peer_id}")
                return peer_id

        # Not deleted: on an ambiguous state a delete could hit an unrelated peer
        logger.error(
            f"Router peer for '{fields['comment']}' (public key {fields['public-key'][:8]}...) "
            f"may exist without a known ID"
        )
        raise PeerIdResolutionFailed("Failed to get ID for newly created peer")

    async def _create_router_peer(self, fields: Dict[str, Any]) -> str:
        result = await self.router.create_peer(fields)
        return await self.resolve_created_peer_id(result, fields)

    def _peer_fields(
        self,
        interface_name: str,
        keys: KeyPair,
        allowed_address: str,
        name: str,
        enabled: bool = True,
    ) -> Dict[str, Any]:
        fields = {
            "interface": interface_name,
            "public-key": keys.public_key,
            "allowed-address": allowed_address,
            "comment": name,
            "disabled": not enabled,
        }
        if keys.preshared_key:
            fields["preshared-key"] = keys.preshared_key
        return fields

    async def _provision(self, saga: Saga, fields: Dict[str, Any], keys: KeyPair) -> str:
        """
        Append router-create and custody-save steps to the saga and run it
        Returns the new router id
        """
        async def create_on_router():
            return await self._create_router_peer(fields)

        async def remove_from_router():
            await self.router.delete_peer(saga.results["router-create"])
            logger.info("Cleaned up router peer after custody store error")

        async def save_keys():
            return self.key_store.save(KeyCustodyRecord(
                router_id=saga.results["router-create"],
                name=fields["comment"],
                private_key=keys.private_key,
                preshared_key=keys.preshared_key,
                allowed_address=fields["allowed-address"],
            ))

        saga.add_step("router-create", create_on_router, compensation=remove_from_router)
        saga.add_step("custody-save", save_keys)
        await saga.run()
        return saga.results["router-create"]

    @staticmethod
    def _require_name(name: Optional[str]) -> str:
        if not name or not name.strip():
            raise InvalidRequest("Peer name is required")
        return name.strip()

    @staticmethod
    def _require_id(peer_id: Optional[str]) -> str:
        peer_id = str(peer_id).strip() if peer_id is not None else ""
        if not peer_id or peer_id in ("undefined", "null"):
            raise InvalidRequest("Invalid peer ID provided")
        return peer_id

    # === Operations ===

    async def create_peer(
        self,
        name: str,
        allowed_address: Optional[str] = None,
        use_preshared_key: bool = True,
    ) -> PeerResponse:
        """
        Create a router peer and store its private material

        Raises:
            InvalidRequest, KeyGenerationUnavailable, InvalidGeneratedKey,
            AddressPoolExhausted, PeerIdResolutionFailed, UpstreamFailure,
            CompensationFailed
        """
        name = self._require_name(name)
        interface_name = await self.router.resolve_interface_name()

        keys = await self._generate_keys(use_preshared_key)
        address = allowed_address or await self.allocator.next_address()

        fields = self._peer_fields(interface_name, keys, address, name)
        logger.info(f"Creating peer '{name}' at {address} (psk={keys.preshared_key is not None})")

        peer_id = await self._provision(Saga("create-peer"), fields, keys)
        logger.info(f"Created peer '{name}' with router ID {peer_id}")

        return PeerResponse(
            id=peer_id,
            name=name,
            public_key=keys.public_key,
            allowed_ips=address,
            enabled=True,
            has_preshared_key=keys.preshared_key is not None,
            has_stored_keys=True,
        )

    async def update_peer(
        self,
        peer_id: str,
        name: str,
        allowed_address: str,
        enabled: bool,
        update_preshared_key: bool = False,
        regenerate_completely: bool = False,
    ) -> PeerResponse:
        """
        Update a peer in place, or regenerate it under a new router id

        Regeneration returns the new id; callers must use it from then on.
        """
        peer_id = self._require_id(peer_id)
        name = self._require_name(name)

        if regenerate_completely:
            return await self._regenerate_peer(peer_id, name, allowed_address, enabled)

        update_data = {
            "comment": name,
            "allowed-address": allowed_address,
            "disabled": not enabled,
        }

        new_preshared_key = None
        if update_preshared_key:
            new_preshared_key = await asyncio.to_thread(self.keygen.generate_preshared_key)
            require_valid_key(new_preshared_key, "preshared key")
            update_data["preshared-key"] = new_preshared_key

        await self.router.update_peer(peer_id, update_data)

        # Router first: a custody failure below propagates and leaves the stored PSK stale
        if new_preshared_key:
            if not self.key_store.update_preshared_key(peer_id, new_preshared_key):
                logger.warning(f"No custody record for peer {peer_id}; new preshared key not stored")
            else:
                logger.info(f"Updated preshared key for peer: '{name}'")

        record = self.key_store.get(peer_id)
        return PeerResponse(
            id=peer_id,
            name=name,
            allowed_ips=allowed_address,
            enabled=enabled,
            has_preshared_key=bool(new_preshared_key or (record and record.preshared_key)),
            has_stored_keys=record is not None,
            new_preshared_key=new_preshared_key,
        )

    async def _regenerate_peer(self, peer_id: str, name: str, allowed_address: str, enabled: bool) -> PeerResponse:
        keys = await self._generate_keys(True)
        require_valid_key(keys.preshared_key, "preshared key")
        interface_name = await self.router.resolve_interface_name()

        async def delete_old_router_peer():
            try:
                await self.router.delete_peer(peer_id)
            except NotFound:
                logger.warning(f"Old peer {peer_id} already absent on router")

        async def delete_old_keys():
            return self.key_store.delete(peer_id)

        saga = Saga("regenerate-peer")
        saga.add_step("router-delete-old", delete_old_router_peer)
        saga.add_step("custody-delete-old", delete_old_keys)

        fields = self._peer_fields(interface_name, keys, allowed_address, name, enabled)
        new_id = await self._provision(saga, fields, keys)
        logger.info(f"Peer '{name}' regenerated: {peer_id} -> {new_id}")

        return PeerResponse(
            id=new_id,
            name=name,
            public_key=keys.public_key,
            allowed_ips=allowed_address,
            enabled=enabled,
            has_preshared_key=True,
            has_stored_keys=True,
            regenerated=True,
        )

    async def toggle_peer(self, peer_id: str) -> PeerToggleResponse:
        """Flip the router's disabled flag (last write wins)"""
        peer_id = self._require_id(peer_id)

        current = PeerIdentity.from_router(await self.router.get_peer(peer_id))
        new_enabled = not current.enabled
        logger.info(
            f"Peer '{current.display_name}' - Current: {'Enabled' if current.enabled else 'Disabled'}, "
            f"New: {'Enabled' if new_enabled else 'Disabled'}"
        )

        await self.router.update_peer(peer_id, {"disabled": not new_enabled})
        updated = PeerIdentity.from_router(await self.router.get_peer(peer_id))

        return PeerToggleResponse(
            id=updated.id,
            name=updated.display_name,
            enabled=updated.enabled,
            message=f"Peer {'enabled' if new_enabled else 'disabled'} successfully",
        )

    async def delete_peer(self, peer_id: str) -> int:
        """
        Delete the router peer and its custody record

        A router failure (e.g. peer already removed out-of-band) is logged
        and the custody record is removed anyway.

        Returns:
            Number of custody records removed
        """
        peer_id = self._require_id(peer_id)
        try:
            await self.router.delete_peer(peer_id)
        except PeerManagerError as e:
            logger.warning(f"Failed to delete peer from router (may already be deleted): {e}")

        return self.key_store.delete(peer_id)

    async def export_config(self, peer_id: str) -> PeerConfigFile:
        """
        Render the client config for a peer

        Raises:
            ConfigUnavailable: If no custody record exists
            ServerNotConfigured: If the interface has no public key
        """
        peer_id = self._require_id(peer_id)

        record = self.key_store.get(peer_id)
        if record is None:
            available_ids = [r.router_id for r in self.key_store.list_all()]
            logger.info(f"No stored keys for {peer_id}. Available peer IDs: {available_ids}")
            raise ConfigUnavailable(peer_id, available_ids)

        server_info = await self.router.get_interface_info()
        if not server_info.get("public-key"):
            raise ServerNotConfigured()

        content = render_client_config(
            private_key=record.private_key,
            address=record.allowed_address,
            dns=self.settings.DNS_SERVER,
            server_public_key=server_info["public-key"],
            endpoint=self.settings.SERVER_ENDPOINT,
            allowed_ips=self.settings.ALLOWED_IPS,
            preshared_key=record.preshared_key,
        )
        filename = config_filename(record.name)
        logger.info(f"Config generated for: {record.name} (file: {filename})")
        return PeerConfigFile(filename=filename, content=content)

    async def list_peers(self, include_cleanup: bool = False) -> List[PeerResponse]:
        """Router peers joined with custody status"""
        if include_cleanup:
            await self.reconciler.reconcile_orphans()

        peers = [PeerIdentity.from_router(row) for row in await self.router.list_peers()]
        records = {r.router_id: r for r in self.key_store.list_all()}

        return [PeerResponse.from_identity(peer, records.get(peer.id)) for peer in peers]

    async def reconcile_orphans(self) -> int:
        return await self.reconciler.reconcile_orphans()

    async def get_server_info(self) -> ServerInfoResponse:
        info = await self.router.get_interface_info()
        if not info.get("public-key"):
            logger.warning("No server public key found. Please check WireGuard interface configuration.")

        return ServerInfoResponse(
            public_key=info.get("public-key"),
            endpoint=self.settings.SERVER_ENDPOINT,
            port=int(info.get("listen-port") or self.settings.SERVER_PORT),
            allowed_ips=self.settings.ALLOWED_IPS,
            interface_name=info.get("name") or self.settings.WG_INTERFACE_NAME or "wg0",
            pool=await self.allocator.pool_stats(),
        )

    def list_custody_records(self) -> List[CustodyRecordSummary]:
        """Custody rows without secrets"""
        return [
            CustodyRecordSummary(
                router_id=r.router_id,
                name=r.name,
                allowed_address=r.allowed_address,
                has_preshared_key=bool(r.preshared_key),
                created_at=r.created_at,
            )
            for r in self.key_store.list_all()
        ]
