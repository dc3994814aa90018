"""
Shared fixtures: in-memory router, in-memory SQLite custody store,
and a provisioner wired with PyNaCl-only key generation.
"""
import pytest

from config import Settings
from core.exceptions import NotFound, UpstreamFailure
from core.ipam import AddressAllocator
from core.key_store import KeyCustodyStore
from core.keygen import KeyGenerator, NaClStrategy
from core.peer_service import PeerProvisioner
from core.reconciler import Reconciler
from core.router_client import interpret_create_response
from database.session import Database

SERVER_PUBLIC_KEY = "c2VydmVyLXB1YmxpYy1rZXktZm9yLXRlc3RzLTAwMDA="


class FakeRouter:
    """
    In-memory stand-in for RouterClient

    create_response selects the payload shape returned by create_peer:
    "ret", "after", "nested", "list" or "none".
    """

    def __init__(self, interface_name="wg0", server_public_key=SERVER_PUBLIC_KEY):
        self.interface_name = interface_name
        self.interface = {
            ".id": "*A",
            "name": interface_name,
            "public-key": server_public_key,
            "listen-port": "13231",
        }
        self.peers = {}
        self.create_response = "ret"
        self.fail_create = False
        self.fail_delete = False
        self.fail_list = False
        self.calls = []
        self._next_id = 1

    def add_peer(self, **fields):
        """Seed a peer directly, bypassing create_peer"""
        peer_id = f"*{self._next_id:X}"
        self._next_id += 1
        row = {".id": peer_id, "interface": self.interface_name, "disabled": "false"}
        row.update({k.replace("_", "-"): v for k, v in fields.items()})
        self.peers[peer_id] = row
        return peer_id

    async def resolve_interface_name(self):
        return self.interface_name

    async def get_interface_info(self):
        return dict(self.interface)

    async def list_peers(self):
        self.calls.append(("list",))
        if self.fail_list:
            raise UpstreamFailure("router unreachable")
        return [dict(p) for p in self.peers.values()]

    async def get_peer(self, peer_id):
        if peer_id not in self.peers:
            raise NotFound(f"Peer {peer_id} not found")
        return dict(self.peers[peer_id])

    async def create_peer(self, fields):
        self.calls.append(("create", dict(fields)))
        if self.fail_create:
            raise UpstreamFailure("router rejected peer")

        row = {k: (("true" if v else "false") if isinstance(v, bool) else v) for k, v in fields.items()}
        peer_id = self.add_peer()
        self.peers[peer_id].update(row)

        payloads = {
            "ret": {"ret": peer_id},
            "after": {"after": peer_id},
            "nested": {".id": peer_id},
            "list": [{".id": peer_id}],
            "none": [],
        }
        return interpret_create_response(payloads[self.create_response])

    async def update_peer(self, peer_id, fields):
        self.calls.append(("update", peer_id, dict(fields)))
        if peer_id not in self.peers:
            raise NotFound(f"Peer {peer_id} not found")
        for key, value in fields.items():
            self.peers[peer_id][key] = ("true" if value else "false") if isinstance(value, bool) else value

    async def delete_peer(self, peer_id):
        self.calls.append(("delete", peer_id))
        if self.fail_delete:
            raise UpstreamFailure("router delete failed")
        if peer_id not in self.peers:
            raise NotFound(f"Peer {peer_id} not found")
        del self.peers[peer_id]


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite:///:memory:",
        KEYGEN_PREFER_WG_TOOL=False,
        CLIENT_SUBNET="172.16.0",
        SERVER_ENDPOINT="vpn.example.com:51820",
        ALLOWED_IPS="0.0.0.0/0",
        DNS_SERVER="172.16.0.1",
        WG_INTERFACE_NAME="wg0",
    )


@pytest.fixture
def database(settings):
    db = Database(settings.DATABASE_URL)
    db.init_db()
    yield db
    db.dispose()


@pytest.fixture
def key_store(database):
    return KeyCustodyStore(database)


@pytest.fixture
def router():
    return FakeRouter()


@pytest.fixture
def keygen():
    return KeyGenerator([NaClStrategy()])


@pytest.fixture
def provisioner(settings, router, key_store, keygen):
    return PeerProvisioner(
        settings=settings,
        router=router,
        key_store=key_store,
        keygen=keygen,
        allocator=AddressAllocator.from_settings(router, settings),
        reconciler=Reconciler(router, key_store),
    )
