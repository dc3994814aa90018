# backend/core/reconciler.py
"""
Orphan Reconciler
Removes custody records whose router peer no longer exists
"""

import logging

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Repairs the custody invariant after out-of-band router changes

    Runs only when asked (manual trigger or list with cleanup), so plain
    reads stay side-effect free.
    """

    def __init__(self, router, key_store):
        self.router = router
        self.key_store = key_store

    async def reconcile_orphans(self) -> int:
        """
        Delete every custody record whose router_id is not a live router peer

        Returns:
            Number of records removed
        """
        logger.info("Cleaning up orphaned custody records...")

        peers = await self.router.list_peers()
        live_ids = {str(peer.get(".id")) for peer in peers}

        orphans = [r for r in self.key_store.list_all() if r.router_id not in live_ids]
        if not orphans:
            logger.info("No orphaned entries found")
            return 0

        for record in orphans:
            self.key_store.delete(record.router_id)
            logger.info(f"Cleaned up orphaned entry: {record.name} (ID: {record.router_id})")

        logger.info(f"Cleanup completed: removed {len(orphans)} orphaned entries")
        return len(orphans)
