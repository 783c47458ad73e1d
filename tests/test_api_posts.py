"""
tests/test_api_posts.py -- Integration tests for post, tag, and category endpoints.

Covers:
  - admin CRUD: 201 on create, slug derived from title, -1 suffix on duplicates
  - PUT keeps the post's own slug and replaces tags/categories
  - public by-slug read: published only, reports views + 1, increments in the background
  - public list and by-id read: drafts hidden unless an admin asks for them
    (a bearer admin also needs posts:read)
  - tag and category listings count and return published posts only
  - bearer-token authors act as the token's creator
"""

from __future__ import annotations

from auth.service_accounts import create_service_account
from tests.conftest import bearer, wait_for

_CONTENT = [{"type": "paragraph", "children": [{"text": "A short post about testing things."}]}]


def _create(api_env, title: str, **fields) -> dict:
    body = {"title": title, "content": _CONTENT, "published": True, **fields}
    resp = api_env.client.post("/api/v1/admin/posts", json=body, headers=api_env.admin_headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestAdminPosts:
    def test_create(self, api_env) -> None:
        post = _create(api_env, "Hello Inkpress", tags=["Python"], categories=["News"], excerpt="Intro")
        assert post["slug"] == "hello-inkpress"
        assert post["authorId"] == api_env.admin_id
        assert post["author"] == {"id": api_env.admin_id, "name": "Admin"}
        assert post["views"] == 0
        assert post["readingTime"] == 1
        assert post["excerpt"] == "Intro"
        assert [t["slug"] for t in post["tags"]] == ["python"]
        assert [c["name"] for c in post["categories"]] == ["News"]

    def test_duplicate_titles_get_suffixes(self, api_env) -> None:
        first = _create(api_env, "Same Title")
        second = _create(api_env, "Same Title")
        third = _create(api_env, "Same Title")
        assert [first["slug"], second["slug"], third["slug"]] == ["same-title", "same-title-1", "same-title-2"]

    def test_title_without_letters_rejected(self, api_env) -> None:
        resp = api_env.client.post("/api/v1/admin/posts", json={"title": "!!!"}, headers=api_env.admin_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "INVALID_INPUT"

    def test_missing_title_is_422(self, api_env) -> None:
        resp = api_env.client.post("/api/v1/admin/posts", json={"content": _CONTENT}, headers=api_env.admin_headers)
        assert resp.status_code == 422

    def test_update_keeps_own_slug_and_swaps_terms(self, api_env) -> None:
        post = _create(api_env, "Evergreen", tags=["Old"], categories=["Archive"])
        resp = api_env.client.put(
            f"/api/v1/admin/posts/{post['id']}",
            json={"title": "Evergreen", "content": _CONTENT, "published": False, "tags": ["New", "Fresh"]},
            headers=api_env.admin_headers,
        )
        assert resp.status_code == 200
        updated = resp.json()
        assert updated["slug"] == "evergreen"
        assert updated["published"] is False
        assert sorted(t["name"] for t in updated["tags"]) == ["Fresh", "New"]
        assert updated["categories"] == []

    def test_update_to_taken_title_gets_suffix(self, api_env) -> None:
        _create(api_env, "Taken Name")
        post = _create(api_env, "Other Name")
        resp = api_env.client.put(
            f"/api/v1/admin/posts/{post['id']}",
            json={"title": "Taken Name"},
            headers=api_env.admin_headers,
        )
        assert resp.json()["slug"] == "taken-name-1"

    def test_update_unknown_post(self, api_env) -> None:
        resp = api_env.client.put("/api/v1/admin/posts/nope", json={"title": "X"}, headers=api_env.admin_headers)
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "POST_NOT_FOUND"

    def test_delete(self, api_env) -> None:
        post = _create(api_env, "Short Lived")
        resp = api_env.client.delete(f"/api/v1/admin/posts/{post['id']}", headers=api_env.admin_headers)
        assert resp.status_code == 200
        assert resp.json() == {"message": "Post deleted successfully"}
        again = api_env.client.get(f"/api/v1/admin/posts/{post['id']}", headers=api_env.admin_headers)
        assert again.status_code == 404
        assert again.json()["error"]["code"] == "POST_NOT_FOUND"

    def test_admin_list_includes_drafts(self, api_env) -> None:
        draft = _create(api_env, "Admin Sees Draft", published=False)
        resp = api_env.client.get("/api/v1/admin/posts", headers=api_env.admin_headers)
        assert draft["id"] in {p["id"] for p in resp.json()}

    def test_bearer_author_is_creator(self, api_env) -> None:
        _, token = create_service_account(
            api_env.user_store, "publisher", None, ["posts:write"], created_by_id=api_env.admin_id
        )
        resp = api_env.client.post(
            "/api/v1/admin/posts",
            json={"title": "From CI", "content": _CONTENT, "published": True},
            headers=bearer(token),
        )
        assert resp.status_code == 201
        assert resp.json()["authorId"] == api_env.admin_id

        # posts:write alone does not allow deletion.
        post_id = resp.json()["id"]
        assert api_env.client.delete(f"/api/v1/admin/posts/{post_id}", headers=bearer(token)).status_code == 403


class TestPublicPosts:
    def test_by_slug_counts_views(self, api_env) -> None:
        post = _create(api_env, "Viewed Post")
        resp = api_env.client.get("/api/v1/posts/by-slug/viewed-post")
        assert resp.status_code == 200
        data = resp.json()
        assert data["views"] == 1
        assert data["readingTime"] == 1
        assert wait_for(lambda: api_env.content_store.get_post(post["id"]).views == 1)

    def test_by_slug_hides_drafts(self, api_env) -> None:
        _create(api_env, "Hidden Draft", published=False)
        resp = api_env.client.get("/api/v1/posts/by-slug/hidden-draft")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "POST_NOT_FOUND"

    def test_by_slug_unknown(self, api_env) -> None:
        assert api_env.client.get("/api/v1/posts/by-slug/never-written").status_code == 404

    def test_list_hides_drafts_from_public(self, api_env) -> None:
        draft = _create(api_env, "Public Cannot See", published=False)
        public = api_env.client.get("/api/v1/posts", params={"published": "false"}).json()
        assert draft["id"] not in {p["id"] for p in public}
        assert all(p["published"] for p in public)

        as_admin = api_env.client.get(
            "/api/v1/posts", params={"published": "false"}, headers=api_env.admin_headers
        ).json()
        assert draft["id"] in {p["id"] for p in as_admin}

    def test_drafts_need_posts_read_scope(self, api_env) -> None:
        """An admin's token narrowed to tags:read sees no more than the public does."""
        draft = _create(api_env, "Scoped Draft", published=False)
        _, tags_only = create_service_account(
            api_env.user_store, "tagger", None, ["tags:read"], created_by_id=api_env.admin_id
        )
        _, posts_read = create_service_account(
            api_env.user_store, "reader-bot", None, ["posts:read"], created_by_id=api_env.admin_id
        )

        narrowed = api_env.client.get("/api/v1/posts", params={"published": "false"}, headers=bearer(tags_only))
        assert narrowed.status_code == 200
        assert draft["id"] not in {p["id"] for p in narrowed.json()}
        assert api_env.client.get(f"/api/v1/posts/{draft['id']}", headers=bearer(tags_only)).status_code == 404

        scoped = api_env.client.get("/api/v1/posts", params={"published": "false"}, headers=bearer(posts_read))
        assert draft["id"] in {p["id"] for p in scoped.json()}
        assert api_env.client.get(f"/api/v1/posts/{draft['id']}", headers=bearer(posts_read)).status_code == 200

    def test_draft_by_id_hidden_from_public(self, api_env) -> None:
        draft = _create(api_env, "Unlisted Draft", published=False)
        resp = api_env.client.get(f"/api/v1/posts/{draft['id']}")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "POST_NOT_FOUND"
        assert api_env.client.get(f"/api/v1/posts/{draft['id']}", headers=api_env.admin_headers).status_code == 200

    def test_list_limit(self, api_env) -> None:
        _create(api_env, "Limit One")
        _create(api_env, "Limit Two")
        assert len(api_env.client.get("/api/v1/posts", params={"limit": 1}).json()) == 1
        assert api_env.client.get("/api/v1/posts", params={"limit": 0}).status_code == 422

    def test_get_by_id(self, api_env) -> None:
        post = _create(api_env, "Fetch By Id")
        resp = api_env.client.get(f"/api/v1/posts/{post['id']}")
        assert resp.status_code == 200
        assert resp.json()["slug"] == "fetch-by-id"
        assert api_env.client.get("/api/v1/posts/unknown-id").status_code == 404


class TestTaxonomy:
    def test_tag_listing_counts_published(self, api_env) -> None:
        _create(api_env, "Tagged Live", tags=["Counting"])
        _create(api_env, "Tagged Draft", tags=["Counting", "Only Drafts"], published=False)
        tags = {t["slug"]: t for t in api_env.client.get("/api/v1/tags").json()}
        assert tags["counting"]["postCount"] == 1
        assert tags["only-drafts"]["postCount"] == 0

    def test_tag_detail(self, api_env) -> None:
        _create(api_env, "Rust Intro", tags=["Rustacean"])
        _create(api_env, "Rust Draft", tags=["Rustacean"], published=False)
        data = api_env.client.get("/api/v1/tags/rustacean").json()
        assert data["tag"]["name"] == "Rustacean"
        assert data["count"] == 1
        assert [p["slug"] for p in data["posts"]] == ["rust-intro"]

    def test_category_detail(self, api_env) -> None:
        _create(api_env, "Release Notes", categories=["Announcements"])
        data = api_env.client.get("/api/v1/categories/announcements").json()
        assert data["category"]["slug"] == "announcements"
        assert data["count"] == 1

    def test_unknown_terms(self, api_env) -> None:
        for path in ("/api/v1/tags/none-such", "/api/v1/categories/none-such"):
            resp = api_env.client.get(path)
            assert resp.status_code == 404
            assert resp.json()["error"]["code"] == "NOT_FOUND"
