import io
import os

import pytest
from PIL import Image

from youpaidwhat.models import Audit, Contract
from youpaidwhat.routers import contracts as contracts_router

from conftest import PDF_BYTES, USER_EMAIL, approve, make_image, submit


def test_submit_requires_identity(client):
    assert submit(client, headers={}).status_code == 401


def test_submit_creates_pending_contract(client, session_factory):
    resp = submit(client, data={"tags": ["roof", "roof", "shingle"], "unit": "sqft",
                                "quantity": "1500", "vendor_name": "Acme", "taken_on": "2024-05-01"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["status"] == "PENDING"

    with session_factory() as db:
        c = db.get(Contract, body["contract_id"])
        assert c.price_cents == 30000
        assert c.uploader_email == USER_EMAIL
        assert sorted(t.tag for t in c.tags) == ["roof", "shingle"]
        assert [(r.x, r.y, r.width, r.height) for r in c.redactions] == [(100, 100, 200, 80)]
        assert len(c.sha256) == 64
        audit = db.query(Audit).filter_by(contract_id=c.id).one()
        assert audit.action == "SUBMIT"

    # pending contracts are not public
    assert client.get("/contracts").json()["items"] == []
    assert client.get(f"/contracts/{body['contract_id']}").status_code == 404


def test_submit_validates_price(client):
    resp = submit(client, price_cents="50")
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Price must be at least $1.00 (100 cents)"

    resp = submit(client, price_cents="100000001")
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Price cannot exceed $1,000,000.00"

    assert submit(client, price_cents="12.5").status_code == 422
    assert submit(client, price_cents="100").status_code == 200


def test_submit_requires_fields(client):
    assert submit(client, category="").status_code == 400
    assert submit(client, region=" ").status_code == 400
    assert submit(client, price_cents="").status_code == 400


def test_submit_rejects_bad_quantity(client):
    assert submit(client, data={"quantity": "0"}).status_code == 422


def test_browse_approved_contracts(client):
    cheap = submit(client, price_cents="15050", category="Plumbing",
                   data={"description": "Water heater swap"}).json()["contract_id"]
    pricey = submit(client, price_cents="2500000", category="Roofing",
                    data={"vendor_name": "Acme Roofing", "unit": "sqft", "quantity": "1000"}).json()["contract_id"]
    submit(client, price_cents="99999")  # stays pending
    approve(client, cheap)
    approve(client, pricey)

    body = client.get("/contracts").json()
    assert body["pagination"] == {"page": 1, "page_size": 20, "total": 2}
    assert body["stats"] == {"avg": 12575, "min": 151, "max": 25000}

    body = client.get("/contracts", params={"sort": "price-low"}).json()
    assert [i["id"] for i in body["items"]] == [cheap, pricey]
    assert body["items"][0]["price_display"] == "$151"
    assert body["items"][1]["price_per_unit"] == "$25.00/sqft"

    body = client.get("/contracts", params={"category": "Roofing"}).json()
    assert [i["id"] for i in body["items"]] == [pricey]

    body = client.get("/contracts", params={"min": 200}).json()
    assert [i["id"] for i in body["items"]] == [pricey]

    body = client.get("/contracts", params={"max": 200}).json()
    assert [i["id"] for i in body["items"]] == [cheap]

    body = client.get("/contracts", params={"q": "acme"}).json()
    assert [i["id"] for i in body["items"]] == [pricey]

    body = client.get("/contracts", params={"page": 2, "page_size": 1, "sort": "price-high"}).json()
    assert [i["id"] for i in body["items"]] == [cheap]
    assert body["pagination"]["total"] == 2


def test_empty_browse_has_no_stats(client):
    body = client.get("/contracts").json()
    assert body["stats"] is None
    assert body["pagination"]["total"] == 0


def test_contract_detail_file_and_thumbnail(client):
    content = make_image(1600, 1200)
    contract_id = submit(client, content=content).json()["contract_id"]
    approve(client, contract_id)

    detail = client.get(f"/contracts/{contract_id}").json()
    assert detail["price_cents"] == 30000
    assert detail["redaction_count"] == 1

    resp = client.get(f"/contracts/{contract_id}/file")
    assert resp.status_code == 200
    assert resp.content == content

    resp = client.get(f"/contracts/{contract_id}/thumbnail")
    assert resp.headers["content-type"] == "image/jpeg"
    thumb = Image.open(io.BytesIO(resp.content))
    assert thumb.size == (300, 225)


def test_pdf_submission_gets_placeholder_thumbnail(client):
    contract_id = submit(client, content=PDF_BYTES, name="contract.pdf",
                         mime="application/pdf").json()["contract_id"]
    approve(client, contract_id)
    resp = client.get(f"/contracts/{contract_id}/thumbnail")
    assert Image.open(io.BytesIO(resp.content)).size == (300, 400)


def test_per_unit_price_rounds_half_up(client):
    contract_id = submit(client, price_cents="101", data={"unit": "each", "quantity": "2"}).json()["contract_id"]
    approve(client, contract_id)
    assert client.get(f"/contracts/{contract_id}").json()["price_per_unit"] == "$0.51/each"


def test_upload_named_like_thumbnail_keeps_its_bytes(client, session_factory):
    content = make_image(1600, 1200, fmt="JPEG")
    contract_id = submit(client, content=content, name="thumbnail.jpg", mime="image/jpeg").json()["contract_id"]
    approve(client, contract_id)

    resp = client.get(f"/contracts/{contract_id}/file")
    assert resp.content == content
    assert Image.open(io.BytesIO(resp.content)).size == (1600, 1200)
    thumb = client.get(f"/contracts/{contract_id}/thumbnail")
    assert Image.open(io.BytesIO(thumb.content)).size == (300, 225)
    assert client.get(f"/contracts/{contract_id}").json()["filename"] == "thumbnail.jpg"

    with session_factory() as db:
        c = db.get(Contract, contract_id)
        assert os.path.basename(c.file_key) == "file.jpg"
        assert os.path.basename(c.thumb_key) == "thumbnail.jpg"


@pytest.mark.parametrize("name", ["..", ".", "../../escape.png"])
def test_odd_filenames_are_stored_under_fixed_names(client, session_factory, tmp_path, name):
    content = make_image(400, 300)
    resp = submit(client, content=content, name=name)
    assert resp.status_code == 200

    with session_factory() as db:
        c = db.get(Contract, resp.json()["contract_id"])
        assert os.path.dirname(c.file_key) == str(tmp_path / "contracts" / c.id)
        with open(c.file_key, "rb") as f:
            assert f.read() == content


def test_failed_submit_removes_written_files(client, session_factory, tmp_path, monkeypatch):
    def broken_audit(*args, **kwargs):
        raise RuntimeError("audit table unavailable")

    monkeypatch.setattr(contracts_router, "save_audit", broken_audit)
    resp = submit(client)
    assert resp.status_code == 500

    stored = tmp_path / "contracts"
    assert not stored.exists() or list(stored.iterdir()) == []
    with session_factory() as db:
        assert db.query(Contract).count() == 0
