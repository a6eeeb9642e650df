import pytest
from fastapi import HTTPException

from youpaidwhat.auth import get_current_identity, is_admin, require_admin
from youpaidwhat.settings import settings


def test_is_admin_predicate():
    allowed = {"boss@example.com", "ops@example.com"}
    assert is_admin("boss@example.com", allowed)
    assert is_admin(" Boss@Example.com ", allowed)
    assert not is_admin("user@example.com", allowed)
    assert not is_admin(None, allowed)
    assert not is_admin("boss@example.com", [])


def test_identity_required():
    with pytest.raises(HTTPException) as exc:
        get_current_identity(None)
    assert exc.value.status_code == 401
    assert get_current_identity(" User@Example.com").email == "user@example.com"


def test_require_admin(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAILS", "boss@example.com, ops@example.com")
    assert require_admin("ops@example.com").email == "ops@example.com"
    with pytest.raises(HTTPException) as exc:
        require_admin("user@example.com")
    assert exc.value.status_code == 403
