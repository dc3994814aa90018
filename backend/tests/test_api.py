"""
HTTP layer tests: routing, request aliases and error status mapping.
"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch

from core.exceptions import UpstreamFailure
from main import create_app
from schemas.peer import KeyCustodyRecord


@pytest.fixture
def client(settings, provisioner, database):
    app = create_app(settings, provisioner=provisioner, database=database)
    with TestClient(app) as test_client:
        yield test_client


def test_create_list_and_download(client, router):
    response = client.post("/api/peers", json={"name": "alice"})
    assert response.status_code == 200
    created = response.json()
    assert created["allowedIPs"] == "172.16.0.2/32"
    assert created["hasStoredKeys"] is True
    assert created["hasPresharedKey"] is True

    peers = client.get("/api/peers").json()
    assert [p["id"] for p in peers] == [created["id"]]

    download = client.get(f"/api/peers/{created['id']}/config")
    assert download.status_code == 200
    assert download.headers["content-type"].startswith("text/plain")
    assert download.headers["content-disposition"] == 'attachment; filename="alice.conf"'
    assert download.text.startswith("[Interface]\nPrivateKey = ")
    assert download.text.endswith("PersistentKeepalive = 25")


def test_camel_case_request_fields(client, router):
    response = client.post("/api/peers", json={
        "name": "bob", "allowedIPs": "10.0.0.9/32", "usePresharedKey": False
    })
    assert response.status_code == 200
    assert response.json()["hasPresharedKey"] is False
    assert router.peers[response.json()["id"]]["allowed-address"] == "10.0.0.9/32"


def test_validation_errors_are_400(client, router):
    assert client.post("/api/peers", json={"name": "   "}).status_code == 400
    response = client.post("/api/peers", json={"name": "x", "allowedIPs": "999.1.1.1/32"})
    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"
    assert router.peers == {}


def test_missing_config_is_404_with_available_ids(client, key_store):
    key_store.save(KeyCustodyRecord(router_id="*1", name="a", private_key="P", allowed_address="x"))

    response = client.get("/api/peers/*2/config")

    assert response.status_code == 404
    body = response.json()
    assert body["error_code"] == "CONFIG_UNAVAILABLE"
    assert body["details"]["available_ids"] == ["*1"]


def test_update_regenerate_returns_new_id(client):
    created = client.post("/api/peers", json={"name": "alice"}).json()

    response = client.put(f"/api/peers/{created['id']}", json={
        "name": "alice", "allowedIPs": created["allowedIPs"], "enabled": True, "regenerateCompletely": True
    })

    assert response.status_code == 200
    assert response.json()["id"] != created["id"]
    assert response.json()["regenerated"] is True


def test_toggle_and_delete(client, router):
    created = client.post("/api/peers", json={"name": "alice"}).json()

    toggled = client.patch(f"/api/peers/{created['id']}/toggle")
    assert toggled.json()["enabled"] is False

    router.fail_delete = True
    deleted = client.delete(f"/api/peers/{created['id']}")
    assert deleted.status_code == 200
    assert deleted.json()["success"] is True
    assert deleted.json()["data"] == {"id": created["id"], "removedRecords": 1}

    again = client.delete(f"/api/peers/{created['id']}")
    assert again.json()["data"]["removedRecords"] == 0


def test_toggle_unknown_peer_is_404(client):
    assert client.patch("/api/peers/*404/toggle").status_code == 404


def test_cleanup_endpoint(client, key_store):
    key_store.save(KeyCustodyRecord(router_id="*9", name="gone", private_key="P", allowed_address="x"))

    response = client.post("/api/cleanup-orphaned-peers")

    assert response.json() == {"success": True, "message": "Cleaned up 1 orphaned entries", "cleanedCount": 1}


def test_server_info(client):
    body = client.get("/api/server-info").json()
    assert body["interfaceName"] == "wg0"
    assert body["port"] == 13231
    assert body["allowedIPs"] == "0.0.0.0/0"


def test_upstream_failure_is_5xx(client, router):
    router.fail_list = True
    response = client.get("/api/peers")
    assert response.status_code == 500
    assert response.json()["error_code"] == "UPSTREAM_FAILURE"


def test_debug_route_hidden_unless_debug(client):
    assert client.get("/api/debug/database-peers").status_code == 404


def test_admin_token_enforced_when_configured(settings, provisioner, database):
    secured = settings.model_copy(update={"ADMIN_SECRET": "s3cret"})
    app = create_app(secured, provisioner=provisioner, database=database)

    with TestClient(app) as test_client:
        assert test_client.get("/api/peers").status_code == 401
        assert test_client.get("/api/peers", headers={"X-Admin-Token": "s3cret"}).status_code == 200


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"


def test_create_failure_after_router_is_compensated(client, router, key_store):
    with patch.object(key_store, "save", side_effect=UpstreamFailure("disk full")):
        response = client.post("/api/peers", json={"name": "alice"})

    assert response.status_code == 500
    assert router.peers == {}
