"""HTTP route tests for the External Portal FastAPI surface."""

from __future__ import annotations

import pytest
from fastapi import APIRouter
from fastapi.testclient import TestClient

from packages.shipgate_shared.http import create_app
from services.portal.external_portal.api import (
    register_exception_handlers,
    register_routes,
)

SHIPMENT_ID = "shp-1001"
STAFF_HEADERS = {"X-Tenant-Id": "tenant-acme", "X-User-Id": "staff-7"}


@pytest.fixture
def client(service) -> TestClient:
    app = create_app(title="portal-test")
    register_exception_handlers(app)
    router = APIRouter()
    register_routes(router=router, service=service)
    app.include_router(router)
    return TestClient(app)


def _grant(client: TestClient, **capabilities) -> dict:
    response = client.post(
        "/portal/grants",
        headers=STAFF_HEADERS,
        json={
            "shipment_id": SHIPMENT_ID,
            "agent_type": "freight_forwarder",
            "agent_name": "Northwind Forwarding",
            "agent_email": "ops@northwind.example.com",
            "capabilities": capabilities,
            "expires_in_days": 14,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_grant_then_read_my_shipment(client: TestClient) -> None:
    issued = _grant(client)

    response = client.get("/portal/my-shipment", headers=_auth(issued["token"]))

    assert response.status_code == 200
    body = response.json()
    assert body["shipment"]["shipment_id"] == SHIPMENT_ID
    assert body["agent"]["agent_name"] == "Northwind Forwarding"
    assert "fob_total" not in body["shipment"]
    assert issued["portal_url"] == f"/portal/{issued['token']}"
    assert "secret_hash" not in issued["grant"]


def test_token_query_parameter_is_accepted(client: TestClient) -> None:
    issued = _grant(client)

    response = client.get("/portal/my-shipment", params={"token": issued["token"]})

    assert response.status_code == 200


def test_missing_bearer_is_401(client: TestClient) -> None:
    response = client.get("/portal/my-shipment")

    assert response.status_code == 401
    assert response.json()["errors"][0]["code"] == "UNAUTHORIZED"


def test_non_bearer_scheme_is_401(client: TestClient) -> None:
    response = client.get(
        "/portal/my-shipment", headers={"Authorization": "Basic dXNlcjpwYXNz"}
    )

    assert response.status_code == 401


def test_non_bearer_scheme_falls_back_to_query_token(client: TestClient) -> None:
    issued = _grant(client)

    response = client.get(
        "/portal/my-shipment",
        params={"token": issued["token"]},
        headers={"Authorization": "Basic dXNlcjpwYXNz"},
    )

    assert response.status_code == 200
    assert response.json()["shipment"]["shipment_id"] == SHIPMENT_ID


def test_invalid_token_is_401_and_revoked_is_403(client: TestClient) -> None:
    issued = _grant(client)

    invalid = client.get("/portal/my-shipment", headers=_auth("ext_bad.token"))
    assert invalid.status_code == 401
    assert invalid.json()["errors"][0]["code"] == "CREDENTIAL_INVALID"

    revoke = client.delete(
        f"/portal/grants/{issued['grant']['credential_id']}", headers=STAFF_HEADERS
    )
    assert revoke.status_code == 200
    assert revoke.json()["active"] is False

    revoked = client.get("/portal/my-shipment", headers=_auth(issued["token"]))
    assert revoked.status_code == 403
    assert revoked.json()["errors"][0]["code"] == "CREDENTIAL_REVOKED"


def test_field_update_denied_is_403_and_lists_permitted(client: TestClient) -> None:
    issued = _grant(client, allowed_fields=["bl_number"])

    response = client.patch(
        "/portal/my-shipment/fields",
        headers=_auth(issued["token"]),
        json={"freight_cost": 100, "bl_number": "X"},
    )

    assert response.status_code == 403
    error = response.json()["errors"][0]
    assert error["code"] == "PERMISSION_DENIED"
    assert "Permitted: bl_number" in error["message"]


def test_field_update_applies_and_records_client_address(client: TestClient) -> None:
    issued = _grant(client, may_edit_scheduling_dates=True)

    response = client.patch(
        "/portal/my-shipment/fields",
        headers={**_auth(issued["token"]), "X-Forwarded-For": "198.51.100.4, 10.0.0.1"},
        json={"eta": "2026-12-24"},
    )

    assert response.status_code == 200
    assert response.json()["shipment"]["eta"] == "2026-12-24"
    log = client.get("/portal/my-shipment/log", headers=_auth(issued["token"])).json()
    assert log["entries"][0]["ip_address"] == "198.51.100.4"
    assert log["entries"][0]["field_name"] == "eta"
    assert log["next_offset"] is None


def test_illegal_status_is_409_and_bad_status_value_is_400(client: TestClient) -> None:
    issued = _grant(client, may_change_status=True)

    illegal = client.patch(
        "/portal/my-shipment/status",
        headers=_auth(issued["token"]),
        json={"new_status": "closed"},
    )
    assert illegal.status_code == 409

    unknown = client.patch(
        "/portal/my-shipment/status",
        headers=_auth(issued["token"]),
        json={"new_status": "teleported"},
    )
    assert unknown.status_code == 400
    assert unknown.json()["errors"][0]["code"] == "VALIDATION_ERROR"


def test_document_and_note_endpoints(client: TestClient) -> None:
    issued = _grant(client, may_upload_documents=True)

    document = client.post(
        "/portal/my-shipment/documents",
        headers=_auth(issued["token"]),
        json={"name": "Invoice 77", "type": "commercial_invoice", "url": "https://x/77"},
    )
    assert document.status_code == 201
    assert document.json()[0]["document_type"] == "commercial_invoice"

    note = client.post(
        "/portal/my-shipment/notes",
        headers=_auth(issued["token"]),
        json={"content": "Docs sent to broker"},
    )
    assert note.status_code == 201
    assert "Docs sent to broker" in note.json()["notes"]

    too_long = client.post(
        "/portal/my-shipment/notes",
        headers=_auth(issued["token"]),
        json={"content": "x" * 2001},
    )
    assert too_long.status_code == 400


def test_internal_routes_require_staff_headers(client: TestClient) -> None:
    response = client.get(f"/portal/grants/shipment/{SHIPMENT_ID}")

    assert response.status_code == 401


def test_rotate_list_log_and_activity_routes(client: TestClient) -> None:
    issued = _grant(client)
    credential_id = issued["grant"]["credential_id"]
    client.post(
        "/portal/my-shipment/notes",
        headers=_auth(issued["token"]),
        json={"content": "hello"},
    )

    rotated = client.post(f"/portal/grants/{credential_id}/rotate", headers=STAFF_HEADERS)
    assert rotated.status_code == 200
    assert rotated.json()["token"] != issued["token"]
    assert rotated.json()["grant"]["use_count"] == 0

    grants = client.get(f"/portal/grants/shipment/{SHIPMENT_ID}", headers=STAFF_HEADERS)
    assert [item["credential_id"] for item in grants.json()] == [credential_id]

    log = client.get(f"/portal/grants/log/{SHIPMENT_ID}", headers=STAFF_HEADERS)
    assert log.status_code == 200
    assert log.json()["entries"][0]["origin"] == "internal"

    page = client.get(
        f"/portal/grants/log/{SHIPMENT_ID}",
        params={"limit": 1, "offset": 1},
        headers=STAFF_HEADERS,
    )
    assert page.status_code == 200
    assert page.json()["limit"] == 1
    assert len(page.json()["entries"]) == 1

    oversized = client.get(
        f"/portal/grants/log/{SHIPMENT_ID}",
        params={"limit": 100000},
        headers=STAFF_HEADERS,
    )
    assert oversized.status_code == 400

    activity = client.get(f"/portal/grants/activity/{SHIPMENT_ID}", headers=STAFF_HEADERS)
    assert activity.json()[0]["actions"] == {"note_added": 1}


def test_grant_request_validation(client: TestClient) -> None:
    response = client.post(
        "/portal/grants",
        headers=STAFF_HEADERS,
        json={
            "shipment_id": SHIPMENT_ID,
            "agent_type": "customs_broker",
            "agent_name": "Broker",
            "agent_email": "not-an-email",
            "expires_in_days": 400,
        },
    )

    assert response.status_code == 400


def test_unknown_credential_is_404(client: TestClient) -> None:
    response = client.delete("/portal/grants/01J00000000000000000000000", headers=STAFF_HEADERS)

    assert response.status_code == 404


def test_health_route(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["persistence_ready"] is True
