"""
Caller identity and admin gating.

Tokens are verified upstream by the identity provider, which forwards the
verified address in ``X-User-Email``. Admins are the addresses listed in
``ADMIN_EMAILS``.
"""
from dataclasses import dataclass
from typing import Iterable

from fastapi import Header, HTTPException

from .settings import settings


@dataclass(frozen=True)
class Identity:
    email: str


def is_admin(email: str | None, admin_emails: Iterable[str]) -> bool:
    if not email:
        return False
    return email.strip().lower() in {e.strip().lower() for e in admin_emails}


def get_current_identity(x_user_email: str | None = Header(None)) -> Identity:
    if not x_user_email or not x_user_email.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    return Identity(email=x_user_email.strip().lower())


def require_admin(x_user_email: str | None = Header(None)) -> Identity:
    identity = get_current_identity(x_user_email)
    if not is_admin(identity.email, settings.admin_emails):
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity
