import io
import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from youpaidwhat import models  # noqa: F401
from youpaidwhat.db import Base, get_db
from youpaidwhat.routers import admin, contracts, price, redactions
from youpaidwhat.settings import settings

ADMIN_EMAIL = "admin@example.com"
USER_EMAIL = "user@example.com"
PDF_BYTES = b"%PDF-1.4\n1 0 obj << /Type /Catalog >> endobj\ntrailer << >>\n%%EOF\n"


def make_image(width: int, height: int, color=(255, 255, 255), fmt: str = "PNG", mode: str = "RGB") -> bytes:
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 255)
    buf = io.BytesIO()
    Image.new(mode, (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def client(session_factory, tmp_path, monkeypatch) -> TestClient:
    monkeypatch.setattr(settings, "STORAGE_DIR", str(tmp_path))
    monkeypatch.setattr(settings, "ADMIN_EMAILS", ADMIN_EMAIL)

    app = FastAPI()
    for module in (redactions, price, contracts, admin):
        app.include_router(module.router)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


USER = {"X-User-Email": USER_EMAIL}
ADMIN = {"X-User-Email": ADMIN_EMAIL}


def submit(client, price_cents="30000", category="Roofing", region="California", headers=USER,
           data=None, content=None, name="redacted_quote.png", mime="image/png"):
    form = {
        "category": category,
        "region": region,
        "price_cents": price_cents,
        "redactions": json.dumps([{"x": 100, "y": 100, "width": 200, "height": 80}]),
    }
    form.update(data or {})
    files = {"file": (name, content if content is not None else make_image(1600, 1200), mime)}
    return client.post("/contracts", data=form, files=files, headers=headers)


def approve(client, contract_id):
    resp = client.post(f"/admin/contracts/{contract_id}/status", json={"status": "APPROVED"}, headers=ADMIN)
    assert resp.status_code == 200
    return resp
