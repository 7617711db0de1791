from __future__ import annotations

from sqlalchemy.orm import Session

from target_ledger.models import AuditLog


def _create_target(client, headers, amount: str = "1000", period: str = "2024-01-01") -> dict:
    response = client.post(
        "/api/targets",
        json={"target_amount": amount, "category": "EMPLOYEE", "period_start": period},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_target_progress_transfer_flow(client, headers_for, root_headers, db_session: Session) -> None:
    owner_a = headers_for(101)
    owner_b = headers_for(102)
    target_a = _create_target(client, owner_a)
    target_b = _create_target(client, owner_b, amount="500")
    assert target_a["target"]["owner_id"] == 101
    assert target_a["metrics"]["remaining_amount"] == "1000.00"

    submitted = client.post(
        f"/api/targets/{target_a['target']['id']}/progress",
        json={"amount": "300", "transaction_date": "2024-01-15", "source_reference": "report-1"},
        headers=owner_a,
    )
    assert submitted.status_code == 201
    assert submitted.json()["status"] == "PENDING"

    approved = client.put(
        f"/api/targets/progress/{submitted.json()['id']}/decision",
        json={"decision": "APPROVED"},
        headers=root_headers,
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"

    metrics = client.get(f"/api/targets/{target_a['target']['id']}", headers=owner_a).json()["metrics"]
    assert metrics["net_amount"] == "300.00"
    assert metrics["progress_percentage"] == "30.00"
    assert metrics["remaining_amount"] == "700.00"

    shared = client.post(
        "/api/targets/fund-transfers",
        json={"to_owner_id": 102, "amount": "100", "reason": "joint client"},
        headers=owner_a,
    )
    assert shared.status_code == 201
    assert shared.json()["from_owner_id"] == 101

    b_metrics = client.get(f"/api/targets/{target_b['target']['id']}", headers=owner_b).json()["metrics"]
    assert b_metrics["shared_in"] == "100.00"

    too_much = client.post(
        "/api/targets/fund-transfers",
        json={"to_owner_id": 102, "amount": "500"},
        headers=owner_a,
    )
    assert too_much.status_code == 409

    reversed_response = client.post(
        f"/api/targets/fund-transfers/{shared.json()['id']}/reverse",
        json={"reason": "duplicate"},
        headers=root_headers,
    )
    assert reversed_response.status_code == 200
    assert reversed_response.json()["status"] == "REVERSED"

    rollup = client.get("/api/targets/rollups/2024-01-01", headers=root_headers)
    assert rollup.status_code == 200
    assert rollup.json()["target"]["target_amount"] == "1500.00"
    assert rollup.json()["metrics"]["net_amount"] == "300.00"

    history = client.get("/api/targets/fund-transfers", params={"owner_id": 102}, headers=owner_b)
    assert [item["status"] for item in history.json()] == ["REVERSED"]

    assert db_session.query(AuditLog).count() >= 6


def test_error_mapping(client, headers_for, root_headers) -> None:
    owner_a = headers_for(101)
    target = _create_target(client, owner_a)
    target_id = target["target"]["id"]

    duplicate = client.post(
        "/api/targets",
        json={"target_amount": "10", "period_start": "2024-01-01"},
        headers=owner_a,
    )
    assert duplicate.status_code == 409

    forbidden = client.delete(f"/api/targets/{target_id}", headers=owner_a)
    assert forbidden.status_code == 403

    missing = client.get("/api/targets/9999", headers=owner_a)
    assert missing.status_code == 404

    invalid = client.post(
        "/api/targets/fund-transfers",
        json={"to_owner_id": 1, "amount": "5"},
        headers=owner_a,
    )
    assert invalid.status_code == 422

    no_identity = client.get("/api/targets")
    assert no_identity.status_code == 422

    no_rollup = client.get("/api/targets/rollups/2030-01-01", headers=root_headers)
    assert no_rollup.status_code == 404


def test_extend_update_delete(client, headers_for, root_headers) -> None:
    owner_a = headers_for(101)
    target_id = _create_target(client, owner_a)["target"]["id"]

    extended = client.post(f"/api/targets/{target_id}/extend", json={"additional_amount": "500"}, headers=owner_a)
    assert extended.status_code == 201
    body = extended.json()
    assert body["target"]["target_amount"] == "1500.00"
    assert body["target"]["extended_from_id"] == target_id
    assert body["metrics"]["total_progress"] == "0.00"

    old = client.get(f"/api/targets/{target_id}", headers=owner_a).json()
    assert old["target"]["status"] == "EXTENDED"

    again = client.post(f"/api/targets/{target_id}/extend", json={"additional_amount": "1"}, headers=owner_a)
    assert again.status_code == 409

    new_id = body["target"]["id"]
    updated = client.put(f"/api/targets/{new_id}", json={"notes": "stretch goal"}, headers=root_headers)
    assert updated.status_code == 200
    assert updated.json()["target"]["notes"] == "stretch goal"

    listed = client.get("/api/targets", params={"status": "ACTIVE", "owner_id": 101}, headers=owner_a)
    assert [item["target"]["id"] for item in listed.json()] == [new_id]

    deleted = client.delete(f"/api/targets/{new_id}", headers=root_headers)
    assert deleted.status_code == 204
    assert client.get(f"/api/targets/{new_id}", headers=owner_a).status_code == 404


def test_reconciliation_and_diagnostics(client, headers_for, root_headers) -> None:
    owner_a = headers_for(101)
    target_id = _create_target(client, owner_a)["target"]["id"]

    forbidden = client.post("/api/targets/reconciliation", headers=owner_a)
    assert forbidden.status_code == 403

    report = client.post("/api/targets/reconciliation", headers=root_headers)
    assert report.status_code == 200
    assert report.json() == {"targets_recomputed": 1, "rollups_recomputed": 1, "periods": ["2024-01-01"]}

    diagnostics = client.get(f"/api/targets/{target_id}/diagnostics", headers=root_headers)
    assert diagnostics.status_code == 200
    assert diagnostics.json()["drift"] is False
    assert diagnostics.json()["progress_entries"] == []


def test_health_endpoints(client) -> None:
    assert client.get("/api/healthz").json()["status"] == "ok"
    assert client.get("/api/readyz").json()["status"] == "ready"


def test_update_with_null_amount_or_status_is_rejected(client, headers_for, root_headers) -> None:
    target_id = _create_target(client, headers_for(101))["target"]["id"]

    null_amount = client.put(f"/api/targets/{target_id}", json={"target_amount": None}, headers=root_headers)
    null_status = client.put(f"/api/targets/{target_id}", json={"status": None}, headers=root_headers)

    assert null_amount.status_code == 422
    assert null_status.status_code == 422
    current = client.get(f"/api/targets/{target_id}", headers=root_headers).json()
    assert current["target"]["target_amount"] == "1000.00"
    assert current["target"]["status"] == "ACTIVE"

    cleared = client.put(f"/api/targets/{target_id}", json={"category": None}, headers=root_headers)
    assert cleared.status_code == 200
    assert cleared.json()["target"]["category"] is None


def test_root_role_is_bound_to_the_rollup_owner(client, headers_for) -> None:
    impostor = headers_for(101, "ROOT")

    response = client.post("/api/targets/reconciliation", headers=impostor)

    assert response.status_code == 403
    assert "ROOT" in response.json()["detail"]
