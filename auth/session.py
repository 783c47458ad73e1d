"""
auth/session.py -- Session cookie resolution.

read_session() only decodes the cookie. resolve_session_principal() joins the
decoded email against the user store and builds a Principal whose role comes
from the store -- a cookie minted before a role change never carries the
stale role forward.

Both functions take the request explicitly. Nothing here reads globals other
than settings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from fastapi import Request

from auth.models import AuthMethod, Principal
from auth.tokens import decode_session_token
from core.config import get_settings

if TYPE_CHECKING:
    from auth.store import UserStore


@dataclass(frozen=True)
class SessionRecord:
    email: str
    role: str | None = None


def read_session(request: Request) -> SessionRecord | None:
    """Decode the session cookie on this request. None if absent, expired, or tampered."""
    token = request.cookies.get(get_settings().session_cookie_name)
    if not token:
        return None
    payload = decode_session_token(token)
    if payload is None:
        return None
    return SessionRecord(email=payload["sub"], role=payload.get("role"))


def resolve_session_principal(request: Request, user_store: UserStore) -> Principal | None:
    session = read_session(request)
    if session is None:
        return None
    user = user_store.get_by_email(session.email)
    if user is None or user.id is None:
        return None
    return Principal(
        user_id=user.id,
        email=user.email,
        role=user.role,
        method=AuthMethod.SESSION,
    )
