"""
auth/bearer.py -- Resolve an Authorization: Bearer header to a service account.

verify_bearer_token() is the soft path: it returns None on any failure and
never raises. The hard 401 lives in auth/dependencies.require_auth().

Lookup is a linear scan. bcrypt hashes are salted, so the only way to find the
account a token belongs to is to checkpw it against every non-revoked hash.
Cost grows with the number of active accounts (roughly 250 ms per comparison
at cost 12). The format check runs first so malformed headers never reach the
store or bcrypt.

Scope helpers are plain set logic. admin:full is NOT treated as a superset
here -- route-level enforcement (require_scopes) decides that.

Layer rule: no imports from api/ or blog/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from auth.models import ServiceAccountAuth
from auth.tokens import extract_bearer_token, is_valid_token_format, verify_service_account_token
from core.background import fire_and_forget

if TYPE_CHECKING:
    from auth.store import UserStore

logger = logging.getLogger("inkpress.auth")

__all__ = [
    "extract_bearer_token",
    "has_all_scopes",
    "has_any_scope",
    "has_scope",
    "verify_bearer_token",
]


def verify_bearer_token(store: UserStore, header: str | None) -> ServiceAccountAuth | None:
    """Return the service account the header's token belongs to, or None.

    Steps:
      1. extract_bearer_token() -- None if the header is not "Bearer sa_..."
      2. is_valid_token_format() -- None if the body is not 64 hex chars
      3. scan non-revoked accounts, bcrypt-compare each until one matches
      4. on match, stamp last_used_at in the background (never awaited)
    """
    token = extract_bearer_token(header)
    if token is None or not is_valid_token_format(token):
        return None

    try:
        accounts = store.list_active_service_accounts()
    except Exception:
        logger.exception("Error loading service accounts for bearer verification")
        return None

    for account in accounts:
        if not verify_service_account_token(token, account.token_hash):
            continue
        fire_and_forget(
            store.touch_service_account_last_used,
            account.id,
            description=f"update last_used_at for service account {account.id}",
        )
        return ServiceAccountAuth(
            service_account_id=account.id,
            name=account.name,
            scopes=tuple(account.scopes),
            created_by_id=account.created_by_id,
        )

    return None


# ---------------------------------------------------------------------------
# Scope helpers
# ---------------------------------------------------------------------------


def has_scope(auth: ServiceAccountAuth, scope: str) -> bool:
    return scope in auth.scopes


def has_all_scopes(auth: ServiceAccountAuth, scopes: Iterable[str]) -> bool:
    return all(s in auth.scopes for s in scopes)


def has_any_scope(auth: ServiceAccountAuth, scopes: Iterable[str]) -> bool:
    return any(s in auth.scopes for s in scopes)
