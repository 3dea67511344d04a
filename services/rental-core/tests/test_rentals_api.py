from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from rental_core.api.dependencies import (
    get_external_client,
    get_lifecycle_engine,
    get_session,
)
from rental_core.core.exceptions import PaymentGatewayUnavailableException
from rental_core.main import app
from shared.lifecycle import LifecycleEngine

RENTAL = {
    "outfit_id": "outfit-1",
    "renter_user_id": "user-1",
    "start_date": "2025-03-10",
    "end_date": "2025-03-13",
    "renter_name": "Asha",
    "delivery_address": {
        "full_name": "Asha Rao",
        "phone": "+91 90000 00000",
        "address_line1": "12 MG Road",
        "city": "Bengaluru",
        "state": "KA",
        "zip_code": "560001",
    },
}

PAYMENT = {"payment_id": "pay_1", "order_id": "order_1", "signature": "sig"}


@pytest.fixture
def external_client():
    client = Mock()
    client.verify_payment.return_value = True
    client.get_circuit_breaker_stats.return_value = {
        "payment": {"state": "closed", "fail_counter": 0}
    }
    return client


@pytest.fixture
def client(sqlite_sessionmaker, repositories, clock, external_client):  # noqa: ARG001
    def _session():
        session = sqlite_sessionmaker()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_lifecycle_engine] = lambda: LifecycleEngine(clock=clock)
    app.dependency_overrides[get_external_client] = lambda: external_client

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def _create(client) -> dict:
    resp = client.post("/api/v1/rentals", json=RENTAL)
    assert resp.status_code == 201, resp.text
    return resp.json()


def _patch(client, rental_id: str, **body):
    return client.patch(f"/api/v1/rentals/{rental_id}/status", json=body)


def test_health(client):
    assert client.get("/api/v1/health").json() == {"ok": True}

    breakers = client.get("/api/v1/health/circuit-breakers").json()
    assert breakers["status"] == "ok"
    assert breakers["circuit_breakers"]["payment"]["state"] == "closed"


def test_status_catalogue(client):
    resp = client.get("/api/v1/rentals/statuses")

    assert resp.status_code == 200
    entries = {e["status"]: e for e in resp.json()}
    assert len(entries) == 12
    assert entries["requested"]["next_statuses"] == ["cancelled", "paid"]
    assert entries["completed"]["terminal"] is True
    assert entries["paid"]["blocks_calendar"] is True


def test_pricing_preview(client):
    resp = client.post(
        "/api/v1/rentals/pricing",
        json={"outfit_id": "outfit-1", "start_date": "2025-03-10", "end_date": "2025-03-13"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["available"] is True
    assert body["pricing"]["total"] == 1880


def test_pricing_for_unknown_outfit(client):
    resp = client.post(
        "/api/v1/rentals/pricing",
        json={"outfit_id": "missing", "start_date": "2025-03-10", "end_date": "2025-03-13"},
    )

    assert resp.status_code == 404


def test_create_and_read_rental(client):
    created = _create(client)

    resp = client.get(f"/api/v1/rentals/{created['id']}")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "requested"
    assert body["nights"] == 3
    assert body["delivery_address"]["city"] == "Bengaluru"
    assert body["timeline"][0]["note"] == "Rental requested"


def test_create_rental_with_empty_range(client):
    resp = client.post("/api/v1/rentals", json={**RENTAL, "end_date": "2025-03-10"})

    assert resp.status_code == 400


def test_unknown_rental(client):
    assert client.get("/api/v1/rentals/nope").status_code == 404
    assert _patch(client, "nope", status="paid").status_code == 404


def test_invalid_transition(client):
    rental = _create(client)

    resp = _patch(client, rental["id"], status="shipped")

    assert resp.status_code == 409
    assert 'cannot move from "requested" to "shipped"' in resp.json()["detail"]
    assert client.get(f"/api/v1/rentals/{rental['id']}").json()["status"] == "requested"


def test_payment_confirmation_blocks_overlapping_requests(client, external_client):
    rental = _create(client)

    resp = client.post(f"/api/v1/rentals/{rental['id']}/payment", json=PAYMENT)

    assert resp.status_code == 200
    assert resp.json()["status"] == "paid"
    assert resp.json()["payment_details"]["payment_id"] == "pay_1"
    external_client.verify_payment.assert_called_once_with("pay_1", "order_1", "sig")

    overlap = client.post("/api/v1/rentals", json={**RENTAL, "start_date": "2025-03-12"})
    assert overlap.status_code == 409


def test_failed_payment_cancels(client, external_client):
    external_client.verify_payment.return_value = False
    rental = _create(client)

    resp = client.post(f"/api/v1/rentals/{rental['id']}/payment", json=PAYMENT)

    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"


def test_replayed_payment_does_not_cancel(client, external_client):
    rental = _create(client)
    client.post(f"/api/v1/rentals/{rental['id']}/payment", json=PAYMENT)
    assert _patch(client, rental["id"], status="accepted").status_code == 200

    external_client.verify_payment.return_value = False
    resp = client.post(
        f"/api/v1/rentals/{rental['id']}/payment", json={**PAYMENT, "signature": "bogus"}
    )

    assert resp.status_code == 409
    assert external_client.verify_payment.call_count == 1
    stored = client.get(f"/api/v1/rentals/{rental['id']}").json()
    assert stored["status"] == "accepted"
    assert stored["payment_details"]["signature"] == "sig"


def test_payment_gateway_outage_is_retryable(client, external_client):
    external_client.verify_payment.side_effect = PaymentGatewayUnavailableException(
        "pay_1", "breaker open"
    )
    rental = _create(client)

    resp = client.post(f"/api/v1/rentals/{rental['id']}/payment", json=PAYMENT)

    assert resp.status_code == 503
    assert client.get(f"/api/v1/rentals/{rental['id']}").json()["status"] == "requested"

    external_client.verify_payment.side_effect = None
    retry = client.post(f"/api/v1/rentals/{rental['id']}/payment", json=PAYMENT)
    assert retry.json()["status"] == "paid"


def test_delivery_qc_flow(client):
    rental = _create(client)
    rental_id = rental["id"]
    client.post(f"/api/v1/rentals/{rental_id}/payment", json=PAYMENT)
    for status in ("accepted", "shipped"):
        assert _patch(client, rental_id, status=status).status_code == 200
    delivered = _patch(
        client, rental_id, status="delivered", note="Left with reception", link="https://track/1"
    )
    assert delivered.json()["delivery_qc"]["status"] == "pending"

    # delivered -> in_use only through the QC endpoint
    assert _patch(client, rental_id, status="in_use").status_code == 409

    qc = {"items_received": True, "condition_ok": True, "size_ok": True}
    resp = client.post(f"/api/v1/rentals/{rental_id}/delivery-qc", json=qc)
    assert resp.status_code == 200
    assert resp.json()["status"] == "in_use"

    again = client.post(f"/api/v1/rentals/{rental_id}/delivery-qc", json=qc)
    assert again.status_code == 409


def test_tracking_update(client):
    rental = _create(client)

    resp = _patch(
        client,
        rental["id"],
        tracking={"courier_name": "BlueDart", "tracking_number": "BD1"},
    )

    assert resp.status_code == 200
    assert resp.json()["tracking"]["tracking_number"] == "BD1"
    assert resp.json()["version"] == 1


def test_issue_report_and_resolution(client):
    rental = _create(client)
    rental_id = rental["id"]

    not_disputed = client.post(
        f"/api/v1/rentals/{rental_id}/issues/resolve",
        json={"new_status": "completed", "note": "n/a"},
    )
    assert not_disputed.status_code == 409

    reported = client.post(
        f"/api/v1/rentals/{rental_id}/issues",
        json={
            "reporter_id": "user-1",
            "reporter_type": "user",
            "category": "Wrong item",
            "description": "Got a different outfit",
        },
    )
    assert reported.status_code == 200
    assert reported.json()["status"] == "disputed"

    resolved = client.post(
        f"/api/v1/rentals/{rental_id}/issues/resolve",
        json={"new_status": "cancelled", "note": "Full refund"},
    )
    assert resolved.status_code == 200
    assert resolved.json()["timeline"][-1]["note"] == "Issue resolved: Full refund"


def test_timeline_annotations(client):
    rental = _create(client)
    url = f"/api/v1/rentals/{rental['id']}/timeline/annotations"

    bad = client.post(url, json={"entry_index": 3, "note": "x", "author_id": "admin-1"})
    ok = client.post(url, json={"entry_index": 0, "note": "Verified ID", "author_id": "admin-1"})

    assert bad.status_code == 400
    assert ok.status_code == 200
    assert ok.json()["annotations"][0]["note"] == "Verified ID"


def test_outfit_rentals_listing(client):
    _create(client)

    resp = client.get("/api/v1/outfits/outfit-1/rentals")

    assert resp.status_code == 200
    assert len(resp.json()) == 1
    assert client.get("/api/v1/outfits/missing/rentals").status_code == 404


def test_curator_and_user_listings(client):
    rental = _create(client)

    curator = client.get("/api/v1/curators/curator-1/rentals")
    user = client.get("/api/v1/users/user-1/rentals")

    assert curator.status_code == 200
    assert [r["id"] for r in curator.json()] == [rental["id"]]
    assert [r["id"] for r in user.json()] == [rental["id"]]
    assert client.get("/api/v1/users/user-9/rentals").json() == []


def test_curator_calendar(client):
    url = "/api/v1/outfits/outfit-1/blocked-dates"

    put = client.put(url, json={"start_date": "2025-03-12", "end_date": "2025-03-13"})
    assert put.status_code == 200
    assert put.json()["manual_dates"] == ["2025-03-12", "2025-03-13"]

    refused = client.post("/api/v1/rentals", json=RENTAL)
    assert refused.status_code == 409

    deleted = client.delete(url, params={"start_date": "2025-03-01", "end_date": "2025-03-31"})
    assert deleted.status_code == 200
    assert deleted.json() == {"outfit_id": "outfit-1", "blocked_dates": [], "manual_dates": []}

    _create(client)
    assert client.get(url).json()["blocked_dates"] == []


def test_curator_calendar_errors(client):
    reversed_range = {"start_date": "2025-03-13", "end_date": "2025-03-12"}

    assert client.put(
        "/api/v1/outfits/outfit-1/blocked-dates", json=reversed_range
    ).status_code == 400
    assert client.get("/api/v1/outfits/missing/blocked-dates").status_code == 404
    assert client.delete(
        "/api/v1/outfits/missing/blocked-dates",
        params={"start_date": "2025-03-01", "end_date": "2025-03-02"},
    ).status_code == 404
