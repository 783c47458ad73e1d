"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

Two auth methods are checked in priority order:
  1. Session cookie ("session_token") -- browser admin UI, see auth/session.py.
  2. Authorization: Bearer sa_<hex> -- service accounts, see auth/bearer.py.

A session always wins when both are present. Both methods converge on a
Principal. For bearer tokens the principal is the account's creator (user id,
email, role) narrowed by the account's scopes; if the creator has been deleted
the token authenticates nobody.

authenticate_request() is the soft variant (returns None on failure).
require_auth() wraps it and raises UnauthorizedError (401).
require_role(*roles) / require_admin add the role check (403).
require_scopes(*scopes) adds the scope check for bearer principals (403).
principal_allows(principal, *scopes) is the same check without raising.

These are the only authorization entry points -- every protected route
depends on one of them.

Layer rule: no imports from api/ or blog/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request

from auth.bearer import verify_bearer_token
from auth.models import AuthMethod, Principal, Role
from auth.service_accounts import ADMIN_FULL_SCOPE
from auth.session import resolve_session_principal
from core.errors import ErrorCode, ForbiddenError, UnauthorizedError

logger = logging.getLogger("inkpress.auth")

_UNRESOLVED = object()


def authenticate_request(request: Request) -> Principal | None:
    """Resolve the request's principal via session cookie, then bearer token.

    Returns None on any failure. Never raises for bad credentials. The result
    is memoized on request.state so stacked dependencies pay for bcrypt once.
    """
    cached = getattr(request.state, "principal", _UNRESOLVED)
    if cached is not _UNRESOLVED:
        return cached

    principal = _resolve(request)
    request.state.principal = principal
    return principal


def _resolve(request: Request) -> Principal | None:
    user_store = request.app.state.user_store

    # 1. Session cookie
    principal = resolve_session_principal(request, user_store)
    if principal is not None:
        return principal

    # 2. Authorization: Bearer header
    auth = verify_bearer_token(user_store, request.headers.get("Authorization"))
    if auth is None:
        return None

    creator = user_store.get_by_id(auth.created_by_id)
    if creator is None or creator.id is None:
        logger.warning(
            "Service account %s authenticated but its creator %s no longer exists",
            auth.service_account_id,
            auth.created_by_id,
        )
        return None

    return Principal(
        user_id=creator.id,
        email=creator.email,
        role=creator.role,
        method=AuthMethod.BEARER_TOKEN,
        service_account_id=auth.service_account_id,
        scopes=auth.scopes,
    )


def require_auth(request: Request) -> Principal:
    """Require authentication. Raises UnauthorizedError (401) if unauthenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(principal: Principal = Depends(require_auth)): ...
    """
    principal = authenticate_request(request)
    if principal is None:
        raise UnauthorizedError()
    return principal


def require_role(*roles: Role) -> Callable[[Request], Principal]:
    """Build a dependency that admits only principals holding one of roles.

    401 if unauthenticated, 403 otherwise. The principal is returned unchanged.
    """
    allowed = tuple(Role(r) for r in roles)
    label = ", ".join(r.value for r in allowed)

    def _dependency(request: Request) -> Principal:
        principal = require_auth(request)
        if principal.role not in allowed:
            raise ForbiddenError(f"Insufficient permissions. Required role: {label}")
        return principal

    _dependency.__name__ = f"require_role_{'_'.join(r.value.lower() for r in allowed)}"
    return _dependency


require_admin = require_role(Role.ADMIN)


def principal_allows(principal: Principal | None, *scopes: str) -> bool:
    """Soft admin-plus-scope check for routes that widen their output rather than refuse.

    True for ADMIN session principals, and for ADMIN bearer principals holding
    every listed scope or admin:full. False otherwise, including None.
    """
    if principal is None or principal.role != Role.ADMIN:
        return False
    if principal.method != AuthMethod.BEARER_TOKEN:
        return True
    held = principal.scopes or ()
    return ADMIN_FULL_SCOPE in held or all(s in held for s in scopes)


def require_scopes(*scopes: str) -> Callable[[Request], Principal]:
    """Build a dependency for admin routes that also narrows bearer principals by scope.

    Session principals pass on role alone. Bearer principals must additionally
    hold every listed scope, or admin:full.
    """
    required = tuple(scopes)

    def _dependency(request: Request) -> Principal:
        principal = require_admin(request)
        if principal_allows(principal, *required):
            return principal
        raise ForbiddenError(
            f"Service account lacks required scope(s): {', '.join(required)}",
            code=ErrorCode.INSUFFICIENT_PERMISSIONS,
        )

    return _dependency
