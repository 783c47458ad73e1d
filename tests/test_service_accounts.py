"""
tests/test_service_accounts.py -- Unit tests for auth/service_accounts.py.

Covers:
  - validate_scopes(): empty, unknown, and duplicate scopes
  - create: plaintext returned once, only the hash persisted, revoked starts False
  - revoke: one-way; second revoke is AlreadyRevokedError; unknown id is NotFoundError
  - delete: hard delete; unknown id is NotFoundError
  - the store never reverses a revocation
"""

from __future__ import annotations

import pytest

from auth.service_accounts import (
    AVAILABLE_SCOPES,
    create_service_account,
    delete_service_account,
    get_service_account,
    list_service_accounts,
    revoke_service_account,
    validate_scopes,
)
from auth.tokens import verify_service_account_token
from core.errors import AlreadyRevokedError, ErrorCode, NotFoundError, ValidationError


class TestValidateScopes:
    def test_available_scopes_are_fixed(self) -> None:
        assert AVAILABLE_SCOPES == (
            "posts:read",
            "posts:write",
            "posts:delete",
            "tags:read",
            "tags:write",
            "users:read",
            "admin:full",
        )

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_scopes([])
        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    def test_unknown_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_scopes(["posts:read", "posts:publish"])

    def test_duplicates_removed_in_order(self) -> None:
        assert validate_scopes(["tags:read", "posts:read", "tags:read"]) == ("tags:read", "posts:read")


class TestCreate:
    def test_returns_token_once_and_persists_hash(self, user_store, admin_user) -> None:
        account, token = create_service_account(
            user_store, "publisher", "CI publishing job", ["posts:write"], created_by_id=admin_user.id
        )
        assert account.id is not None
        assert account.revoked is False
        assert account.description == "CI publishing job"
        assert account.created_by_id == admin_user.id
        assert account.token_hash != token
        assert token not in account.token_hash
        assert verify_service_account_token(token, account.token_hash)

        # Nothing readable afterwards carries the plaintext.
        stored = get_service_account(user_store, account.id)
        assert stored.token_hash == account.token_hash
        assert token not in repr(stored)

    def test_invalid_scopes_persist_nothing(self, user_store, admin_user) -> None:
        with pytest.raises(ValidationError):
            create_service_account(user_store, "bad", None, ["root"], created_by_id=admin_user.id)
        assert list_service_accounts(user_store) == []


class TestRevoke:
    def test_revoke_then_revoke_again(self, user_store, admin_user) -> None:
        account, _ = create_service_account(user_store, "ci", None, ["posts:read"], created_by_id=admin_user.id)
        revoked = revoke_service_account(user_store, account.id)
        assert revoked.revoked is True

        with pytest.raises(AlreadyRevokedError) as exc_info:
            revoke_service_account(user_store, account.id)
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == ErrorCode.ALREADY_REVOKED

    def test_revoke_unknown_is_not_found(self, user_store) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            revoke_service_account(user_store, "does-not-exist")
        assert exc_info.value.code == ErrorCode.SERVICE_ACCOUNT_NOT_FOUND

    def test_store_flip_is_conditional(self, user_store, admin_user) -> None:
        """Only the first conditional UPDATE reports a flip."""
        account, _ = create_service_account(user_store, "ci", None, ["posts:read"], created_by_id=admin_user.id)
        assert user_store.revoke_service_account(account.id) is True
        assert user_store.revoke_service_account(account.id) is False
        assert user_store.get_service_account(account.id).revoked is True

    def test_revoked_account_stays_listed(self, user_store, admin_user) -> None:
        account, _ = create_service_account(user_store, "ci", None, ["posts:read"], created_by_id=admin_user.id)
        revoke_service_account(user_store, account.id)
        listed = {a.id: a for a in list_service_accounts(user_store)}
        assert listed[account.id].revoked is True
        assert user_store.list_active_service_accounts() == []


class TestDelete:
    def test_delete_removes_row(self, user_store, admin_user) -> None:
        account, _ = create_service_account(user_store, "ci", None, ["posts:read"], created_by_id=admin_user.id)
        delete_service_account(user_store, account.id)
        assert user_store.get_service_account(account.id) is None
        with pytest.raises(NotFoundError):
            get_service_account(user_store, account.id)

    def test_delete_unknown_is_not_found(self, user_store) -> None:
        with pytest.raises(NotFoundError):
            delete_service_account(user_store, "does-not-exist")
