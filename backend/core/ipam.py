# backend/core/ipam.py
"""
IP Address Management (IPAM) Service
Picks tunnel addresses for new peers from the addresses the router reports
"""

import logging
from typing import List, Optional, Set

from .exceptions import AddressPoolExhausted

logger = logging.getLogger(__name__)

FIRST_HOST = 2    # .1 is the router
LAST_HOST = 254


def strip_mask(address: str) -> str:
    """'172.16.0.5/32' -> '172.16.0.5'"""
    return address.split('/')[0].strip() if address else ""


class AddressAllocator:
    """
    Allocates the next free /32 inside the client subnet

    The scan is deterministic (lowest free host index first) and advisory:
    nothing is reserved, so two concurrent creates can pick the same
    address unless the caller serializes them.
    """

    def __init__(self, router, client_subnet: str = "172.16.0"):
        """
        Args:
            router: RouterClient (only list_peers is used)
            client_subnet: First three octets of the /24 base (e.g. "172.16.0")
        """
        self.router = router
        self.client_subnet = client_subnet.rstrip(".")

    @classmethod
    def from_settings(cls, router, settings) -> "AddressAllocator":
        return cls(router, settings.CLIENT_SUBNET)

    @property
    def total_hosts(self) -> int:
        return LAST_HOST - FIRST_HOST + 1

    async def used_addresses(self) -> Set[str]:
        """All host addresses currently assigned on the router, mask stripped"""
        peers = await self.router.list_peers()
        used = set()
        for peer in peers:
            for entry in (peer.get("allowed-address") or "").split(","):
                ip = strip_mask(entry)
                if ip:
                    used.add(ip)
        return used

    async def next_address(self, subnet_prefix: Optional[str] = None) -> str:
        """
        Next unused address with /32 mask

        Raises:
            AddressPoolExhausted: If hosts .2 through .254 are all taken
        """
        base = (subnet_prefix or self.client_subnet).rstrip(".")
        used = await self.used_addresses()

        for host in range(FIRST_HOST, LAST_HOST + 1):
            candidate = f"{base}.{host}"
            if candidate not in used:
                logger.info(f"Allocated address {candidate}/32")
                return f"{candidate}/32"

        logger.error(f"Address pool {base}.0/24 exhausted")
        raise AddressPoolExhausted("No available IP addresses", details={"subnet": f"{base}.0/24"})

    async def pool_stats(self) -> dict:
        """Allocation statistics for the client subnet"""
        used = await self.used_addresses()
        in_pool: List[str] = [
            ip for ip in used
            if ip.startswith(f"{self.client_subnet}.")
            and ip.rsplit(".", 1)[1].isdigit()
            and FIRST_HOST <= int(ip.rsplit(".", 1)[1]) <= LAST_HOST
        ]
        return {
            "subnet": f"{self.client_subnet}.0/24",
            "total_hosts": self.total_hosts,
            "used": len(in_pool),
            "available": self.total_hosts - len(in_pool),
        }
