"""
tests/test_api_admin.py -- Integration tests for user and service-account administration.

Covers:
  - GET /admin/users lists users with post counts
  - PATCH /admin/users error order and the last-admin guard
  - the full service-account lifecycle over HTTP:
      create (token shown once, no-store) -> use -> revoke -> token rejected
  - PATCH only accepts {"revoked": true}; a second revoke is ALREADY_REVOKED
  - no response ever contains a token hash
  - the OpenAPI document is served to admins only
"""

from __future__ import annotations

import pytest

from auth.service_accounts import AVAILABLE_SCOPES, create_service_account
from tests.conftest import ADMIN_EMAIL, READER_EMAIL, bearer, wait_for

_SA_URL = "/api/v1/admin/service-accounts"


def _create_account(api_env, scopes: list[str], name: str = "deploy-bot") -> dict:
    resp = api_env.client.post(
        _SA_URL,
        json={"name": name, "description": "CI pipeline", "scopes": scopes},
        headers=api_env.admin_headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class TestUsers:
    def test_list_with_post_counts(self, api_env) -> None:
        api_env.client.post(
            "/api/v1/admin/posts", json={"title": "Counted Post"}, headers=api_env.admin_headers
        )
        users = api_env.client.get("/api/v1/admin/users", headers=api_env.admin_headers).json()
        by_email = {u["email"]: u for u in users}
        assert [u["email"] for u in users] == sorted(by_email)
        assert by_email[ADMIN_EMAIL]["postCount"] >= 1
        assert by_email[READER_EMAIL]["postCount"] == 0
        assert all("hashedPassword" not in u for u in users)

    @pytest.mark.parametrize(
        ("body", "status", "code"),
        [
            ({"role": "ADMIN"}, 400, "MISSING_REQUIRED_FIELD"),
            ({"userId": "someone"}, 400, "MISSING_REQUIRED_FIELD"),
            ({"userId": "someone", "role": "SUPERUSER"}, 400, "INVALID_ROLE"),
            ({"userId": "someone", "role": "READER"}, 404, "USER_NOT_FOUND"),
        ],
    )
    def test_patch_errors(self, api_env, body, status, code) -> None:
        resp = api_env.client.patch("/api/v1/admin/users", json=body, headers=api_env.admin_headers)
        assert resp.status_code == status
        assert resp.json()["error"]["code"] == code

    def test_cannot_demote_last_admin(self, api_env) -> None:
        resp = api_env.client.patch(
            "/api/v1/admin/users",
            json={"userId": api_env.admin_id, "role": "READER"},
            headers=api_env.admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "BAD_REQUEST"
        assert api_env.user_store.get_by_id(api_env.admin_id).role.value == "ADMIN"

    def test_promote_and_demote(self, api_env) -> None:
        promoted = api_env.client.patch(
            "/api/v1/admin/users",
            json={"userId": api_env.reader_id, "role": "ADMIN"},
            headers=api_env.admin_headers,
        )
        assert promoted.status_code == 200
        assert promoted.json()["role"] == "ADMIN"

        # The reader's existing cookie picks up the new role immediately.
        me = api_env.client.get("/api/v1/auth/me", headers=api_env.reader_headers).json()
        assert me["role"] == "ADMIN"

        demoted = api_env.client.patch(
            "/api/v1/admin/users",
            json={"userId": api_env.reader_id, "role": "READER"},
            headers=api_env.admin_headers,
        )
        assert demoted.status_code == 200
        assert demoted.json()["role"] == "READER"

    def test_role_change_needs_admin_full(self, api_env) -> None:
        _, token = create_service_account(
            api_env.user_store, "reporting", None, ["users:read"], created_by_id=api_env.admin_id
        )
        assert api_env.client.get("/api/v1/admin/users", headers=bearer(token)).status_code == 200
        resp = api_env.client.patch(
            "/api/v1/admin/users",
            json={"userId": api_env.reader_id, "role": "ADMIN"},
            headers=bearer(token),
        )
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"


# ---------------------------------------------------------------------------
# Service accounts
# ---------------------------------------------------------------------------


class TestServiceAccountLifecycle:
    def test_create_use_revoke(self, api_env) -> None:
        resp = api_env.client.post(
            _SA_URL,
            json={"name": "deploy-bot", "description": "CI pipeline", "scopes": ["posts:read", "posts:write"]},
            headers=api_env.admin_headers,
        )
        assert resp.status_code == 201
        assert resp.headers["Cache-Control"] == "no-store"
        created = resp.json()
        token = created["token"]
        account = created["serviceAccount"]
        assert token.startswith("sa_") and len(token) == 67
        assert created["warning"] == "This token will not be shown again. Save it securely."
        assert account["revoked"] is False
        assert account["scopes"] == ["posts:read", "posts:write"]
        assert account["createdById"] == api_env.admin_id
        assert account["lastUsedAt"] is None
        assert "tokenHash" not in account

        # The token works and stamps lastUsedAt.
        assert api_env.client.get("/api/v1/admin/posts", headers=bearer(token)).status_code == 200
        url = f"{_SA_URL}/{account['id']}"
        assert wait_for(
            lambda: api_env.client.get(url, headers=api_env.admin_headers).json()["lastUsedAt"] is not None
        )

        revoked = api_env.client.patch(url, json={"revoked": True}, headers=api_env.admin_headers)
        assert revoked.status_code == 200
        assert revoked.json()["revoked"] is True

        assert api_env.client.get("/api/v1/admin/posts", headers=bearer(token)).status_code == 401

        again = api_env.client.patch(url, json={"revoked": True}, headers=api_env.admin_headers)
        assert again.status_code == 400
        assert again.json()["error"]["code"] == "ALREADY_REVOKED"

    @pytest.mark.parametrize("body", [{"revoked": False}, {}, {"name": "renamed"}])
    def test_patch_only_revokes(self, api_env, body) -> None:
        account = _create_account(api_env, ["tags:read"])["serviceAccount"]
        resp = api_env.client.patch(f"{_SA_URL}/{account['id']}", json=body, headers=api_env.admin_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_INPUT"
        assert api_env.user_store.get_service_account(account["id"]).revoked is False

    def test_revoke_unknown(self, api_env) -> None:
        resp = api_env.client.patch(f"{_SA_URL}/nope", json={"revoked": True}, headers=api_env.admin_headers)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "SERVICE_ACCOUNT_NOT_FOUND"

    def test_delete(self, api_env) -> None:
        created = _create_account(api_env, ["posts:read"])
        url = f"{_SA_URL}/{created['serviceAccount']['id']}"
        resp = api_env.client.delete(url, headers=api_env.admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        assert api_env.client.get(url, headers=api_env.admin_headers).status_code == 404
        assert api_env.client.delete(url, headers=api_env.admin_headers).status_code == 404
        assert api_env.client.get("/api/v1/admin/posts", headers=bearer(created["token"])).status_code == 401

    @pytest.mark.parametrize("scopes", [[], ["posts:publish"], ["posts:read", "root"]])
    def test_invalid_scopes(self, api_env, scopes) -> None:
        resp = api_env.client.post(
            _SA_URL, json={"name": "bad", "scopes": scopes}, headers=api_env.admin_headers
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_INPUT"

    def test_name_required(self, api_env) -> None:
        resp = api_env.client.post(_SA_URL, json={"name": "", "scopes": ["posts:read"]}, headers=api_env.admin_headers)
        assert resp.status_code == 422

    def test_list_never_exposes_hashes(self, api_env) -> None:
        _create_account(api_env, ["posts:read"], name="listed")
        resp = api_env.client.get(_SA_URL, headers=api_env.admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["availableScopes"] == list(AVAILABLE_SCOPES)
        assert any(a["name"] == "listed" for a in data["serviceAccounts"])
        assert "tokenHash" not in resp.text
        assert "token_hash" not in resp.text
        assert "$2b$" not in resp.text

    def test_admin_full_token_creates_accounts_for_its_creator(self, api_env) -> None:
        _, token = create_service_account(
            api_env.user_store, "automation", None, ["admin:full"], created_by_id=api_env.admin_id
        )
        resp = api_env.client.post(_SA_URL, json={"name": "child", "scopes": ["tags:read"]}, headers=bearer(token))
        assert resp.status_code == 201
        assert resp.json()["serviceAccount"]["createdById"] == api_env.admin_id


# ---------------------------------------------------------------------------
# API documentation
# ---------------------------------------------------------------------------


class TestOpenApi:
    def test_public_docs_disabled(self, api_env) -> None:
        for path in ("/openapi.json", "/docs", "/redoc"):
            assert api_env.client.get(path).status_code == 404, path

    def test_admin_schema(self, api_env) -> None:
        resp = api_env.client.get("/api/v1/admin/docs/openapi.json", headers=api_env.admin_headers)
        assert resp.status_code == 200
        assert "/api/v1/admin/service-accounts" in resp.json()["paths"]

    def test_schema_requires_admin(self, api_env) -> None:
        assert api_env.client.get("/api/v1/admin/docs/openapi.json").status_code == 401
        resp = api_env.client.get("/api/v1/admin/docs/openapi.json", headers=api_env.reader_headers)
        assert resp.status_code == 403
