from youpaidwhat.models import Audit, Contract

from conftest import ADMIN, ADMIN_EMAIL, USER, USER_EMAIL, submit


def test_admin_routes_require_identity(client):
    assert client.get("/admin/contracts").status_code == 401


def test_admin_routes_require_allow_listed_email(client):
    assert client.get("/admin/contracts", headers=USER).status_code == 403
    resp = client.post("/admin/contracts/x/status", json={"status": "APPROVED"}, headers=USER)
    assert resp.status_code == 403


def test_admin_email_match_ignores_case(client):
    assert client.get("/admin/contracts", headers={"X-User-Email": ADMIN_EMAIL.upper()}).status_code == 200


def test_review_queue(client):
    first = submit(client, data={"tags": ["roof"]}).json()["contract_id"]
    second = submit(client, price_cents="5000").json()["contract_id"]

    queue = client.get("/admin/contracts", headers=ADMIN).json()
    assert {c["id"] for c in queue} == {first, second}
    entry = next(c for c in queue if c["id"] == first)
    assert entry["uploader_email"] == USER_EMAIL
    assert entry["tags"] == ["roof"]
    assert entry["redactions"] == [{"x": 100, "y": 100, "width": 200, "height": 80}]

    resp = client.post(f"/admin/contracts/{second}/status", json={"status": "REJECTED"}, headers=ADMIN)
    assert resp.json() == {
        "success": True,
        "message": "Contract rejected successfully",
        "contract_id": second,
        "status": "REJECTED",
    }

    assert [c["id"] for c in client.get("/admin/contracts", headers=ADMIN).json()] == [first]
    rejected = client.get("/admin/contracts", params={"status": "rejected"}, headers=ADMIN).json()
    assert [c["id"] for c in rejected] == [second]
    assert len(client.get("/admin/contracts", params={"status": "ALL"}, headers=ADMIN).json()) == 2
    assert client.get("/admin/contracts", params={"status": "BOGUS"}, headers=ADMIN).status_code == 400


def test_status_update(client, session_factory):
    contract_id = submit(client).json()["contract_id"]

    resp = client.post(f"/admin/contracts/{contract_id}/status", json={"status": "APPROVED"}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Contract approved successfully"
    assert client.get(f"/contracts/{contract_id}").status_code == 200

    with session_factory() as db:
        assert db.get(Contract, contract_id).status == "APPROVED"
        actions = sorted(a.action for a in db.query(Audit).filter_by(contract_id=contract_id))
        assert actions == ["APPROVE", "SUBMIT"]


def test_status_update_rejects_unknown_status_and_contract(client):
    contract_id = submit(client).json()["contract_id"]
    resp = client.post(f"/admin/contracts/{contract_id}/status", json={"status": "PENDING"}, headers=ADMIN)
    assert resp.status_code == 422
    resp = client.post("/admin/contracts/missing/status", json={"status": "APPROVED"}, headers=ADMIN)
    assert resp.status_code == 404
