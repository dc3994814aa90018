"""
Tests for orphaned custody record cleanup.
"""
import pytest

from core.exceptions import UpstreamFailure
from core.reconciler import Reconciler
from schemas.peer import KeyCustodyRecord


def store_record(key_store, router_id, name):
    key_store.save(KeyCustodyRecord(
        router_id=router_id, name=name, private_key="P", allowed_address="172.16.0.2/32"
    ))


@pytest.mark.asyncio
async def test_removes_only_orphans(router, key_store):
    live_id = router.add_peer(comment="A")
    store_record(key_store, live_id, "A")
    store_record(key_store, "*2", "B")

    removed = await Reconciler(router, key_store).reconcile_orphans()

    assert removed == 1
    assert [r.name for r in key_store.list_all()] == ["A"]


@pytest.mark.asyncio
async def test_nothing_to_do(router, key_store):
    live_id = router.add_peer(comment="A")
    store_record(key_store, live_id, "A")

    assert await Reconciler(router, key_store).reconcile_orphans() == 0
    assert len(key_store.list_all()) == 1


@pytest.mark.asyncio
async def test_router_peer_without_custody_is_left_alone(router, key_store):
    router.add_peer(comment="config unavailable")

    assert await Reconciler(router, key_store).reconcile_orphans() == 0
    assert len(router.peers) == 1


@pytest.mark.asyncio
async def test_router_failure_propagates_and_keeps_records(router, key_store):
    store_record(key_store, "*5", "B")
    router.fail_list = True

    with pytest.raises(UpstreamFailure):
        await Reconciler(router, key_store).reconcile_orphans()
    assert len(key_store.list_all()) == 1
