"""
auth/service_accounts.py -- Service-account lifecycle: create, revoke, delete.

Every operation here is admin-only; the caller (api/routes/v1/service_accounts.py
or the main.py CLI) has already checked that. This module owns the rules:

  - scopes must be a non-empty subset of AVAILABLE_SCOPES, validated once at
    creation and de-duplicated in first-seen order
  - the plaintext token leaves this module exactly once, as the second
    element of create_service_account()'s return value
  - revoke is one-way; a second revoke is AlreadyRevokedError, not a no-op
  - delete is a hard delete
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from auth.models import ServiceAccount
from auth.tokens import generate_service_account_token
from core.errors import AlreadyRevokedError, ErrorCode, NotFoundError, ValidationError

if TYPE_CHECKING:
    from auth.store import UserStore

logger = logging.getLogger("inkpress.auth")

ADMIN_FULL_SCOPE = "admin:full"

AVAILABLE_SCOPES: tuple[str, ...] = (
    "posts:read",
    "posts:write",
    "posts:delete",
    "tags:read",
    "tags:write",
    "users:read",
    ADMIN_FULL_SCOPE,
)

TOKEN_WARNING = "This token will not be shown again. Save it securely."


def validate_scopes(scopes: Iterable[str]) -> tuple[str, ...]:
    """Return scopes de-duplicated in order, or raise ValidationError."""
    result: list[str] = []
    for scope in scopes:
        if scope not in AVAILABLE_SCOPES:
            raise ValidationError(f"Unknown scope: {scope}")
        if scope not in result:
            result.append(scope)
    if not result:
        raise ValidationError("At least one scope is required.")
    return tuple(result)


def create_service_account(
    store: UserStore,
    name: str,
    description: str | None,
    scopes: Iterable[str],
    created_by_id: str,
) -> tuple[ServiceAccount, str]:
    """Mint a token, persist its hash, and return (account, plaintext_token)."""
    valid_scopes = validate_scopes(scopes)
    generated = generate_service_account_token()
    account_id = store.create_service_account(
        ServiceAccount(
            name=name,
            description=description,
            token_hash=generated.token_hash,
            scopes=valid_scopes,
            created_by_id=created_by_id,
        )
    )
    account = store.get_service_account(account_id)
    if account is None:
        raise RuntimeError(f"Service account {account_id} vanished after insert")
    logger.info("Service account created: id=%s name=%r scopes=%s", account_id, name, ",".join(valid_scopes))
    return account, generated.token


def get_service_account(store: UserStore, account_id: str) -> ServiceAccount:
    account = store.get_service_account(account_id)
    if account is None:
        raise NotFoundError("Service account not found.", code=ErrorCode.SERVICE_ACCOUNT_NOT_FOUND)
    return account


def list_service_accounts(store: UserStore) -> list[ServiceAccount]:
    return store.list_service_accounts()


def revoke_service_account(store: UserStore, account_id: str) -> ServiceAccount:
    """Flip revoked to True and return the updated record.

    The store's conditional UPDATE decides the race: if two callers revoke at
    once, exactly one gets the record back and the other AlreadyRevokedError.
    """
    if store.revoke_service_account(account_id):
        logger.info("Service account revoked: id=%s", account_id)
        return get_service_account(store, account_id)
    # Nothing flipped: either missing or already revoked.
    get_service_account(store, account_id)
    raise AlreadyRevokedError()


def delete_service_account(store: UserStore, account_id: str) -> None:
    if not store.delete_service_account(account_id):
        raise NotFoundError("Service account not found.", code=ErrorCode.SERVICE_ACCOUNT_NOT_FOUND)
    logger.info("Service account deleted: id=%s", account_id)
