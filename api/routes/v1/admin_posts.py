"""
api/routes/v1/admin_posts.py -- Post authoring endpoints (admin).

Routes:
  GET    /api/v1/admin/posts        -- all posts, drafts included   [posts:read]
  POST   /api/v1/admin/posts        -- create                        [posts:write]
  GET    /api/v1/admin/posts/{id}   -- one post                      [posts:read]
  PUT    /api/v1/admin/posts/{id}   -- full replace                  [posts:write]
  DELETE /api/v1/admin/posts/{id}   -- hard delete                   [posts:delete]

Every route requires an ADMIN principal. Bearer-token principals must also
hold the bracketed scope (or admin:full) -- see auth.dependencies.require_scopes.

Slugs are always derived from the title via blog.slug.generate_unique_slug;
clients never send one. On PUT the post's own slug does not count as taken.
"""

import logging

from fastapi import APIRouter, Depends, Request

from api.limiter import ADMIN_LIMIT, limiter
from api.models import MessageResponse, PostResponse, PostWrite
from api.routes.v1.posts import build_post_responses, post_not_found
from auth.dependencies import require_scopes
from auth.models import Principal
from blog.models import Post
from blog.slug import generate_unique_slug
from blog.store import ContentStore
from core.errors import ValidationError

logger = logging.getLogger("inkpress.api")

router = APIRouter()


def _slug_for(content_store: ContentStore, title: str, exclude_id: str | None = None) -> str:
    slug = generate_unique_slug(content_store, title, exclude_id=exclude_id)
    if not slug:
        raise ValidationError("Title must contain at least one letter or digit.")
    return slug


@router.get("/admin/posts", response_model=list[PostResponse])
@limiter.limit(ADMIN_LIMIT)
def admin_list_posts(
    request: Request,
    principal: Principal = Depends(require_scopes("posts:read")),
) -> list[PostResponse]:
    content_store: ContentStore = request.app.state.content_store
    posts = content_store.list_posts(published_only=False)
    return build_post_responses(request.app.state.user_store, posts)


@router.post("/admin/posts", response_model=PostResponse, status_code=201)
@limiter.limit(ADMIN_LIMIT)
def admin_create_post(
    request: Request,
    body: PostWrite,
    principal: Principal = Depends(require_scopes("posts:write")),
) -> PostResponse:
    """Create a post authored by the principal (the creator, for bearer tokens)."""
    content_store: ContentStore = request.app.state.content_store
    slug = _slug_for(content_store, body.title)
    post_id = content_store.create_post(
        Post(
            title=body.title,
            slug=slug,
            author_id=principal.user_id,
            content=body.content,
            excerpt=body.excerpt,
            featured_image=body.featured_image,
            published=body.published,
        ),
        tags=body.tags,
        categories=body.categories,
    )
    logger.info("Post %s created by %s via %s", post_id, principal.email, principal.method.value)
    post = content_store.get_post(post_id)
    if post is None:
        raise post_not_found()
    return build_post_responses(request.app.state.user_store, [post])[0]


@router.get("/admin/posts/{post_id}", response_model=PostResponse)
@limiter.limit(ADMIN_LIMIT)
def admin_get_post(
    request: Request,
    post_id: str,
    principal: Principal = Depends(require_scopes("posts:read")),
) -> PostResponse:
    content_store: ContentStore = request.app.state.content_store
    post = content_store.get_post(post_id)
    if post is None:
        raise post_not_found()
    return build_post_responses(request.app.state.user_store, [post])[0]


@router.put("/admin/posts/{post_id}", response_model=PostResponse)
@limiter.limit(ADMIN_LIMIT)
def admin_update_post(
    request: Request,
    post_id: str,
    body: PostWrite,
    principal: Principal = Depends(require_scopes("posts:write")),
) -> PostResponse:
    """Replace a post. Tags and categories are swapped in a single transaction."""
    content_store: ContentStore = request.app.state.content_store
    if content_store.get_post(post_id) is None:
        raise post_not_found()

    slug = _slug_for(content_store, body.title, exclude_id=post_id)
    updated = content_store.update_post(
        post_id,
        title=body.title,
        slug=slug,
        content=body.content,
        excerpt=body.excerpt,
        featured_image=body.featured_image,
        published=body.published,
        tags=body.tags,
        categories=body.categories,
    )
    if not updated:
        raise post_not_found()
    post = content_store.get_post(post_id)
    if post is None:
        raise post_not_found()
    return build_post_responses(request.app.state.user_store, [post])[0]


@router.delete("/admin/posts/{post_id}", response_model=MessageResponse)
@limiter.limit(ADMIN_LIMIT)
def admin_delete_post(
    request: Request,
    post_id: str,
    principal: Principal = Depends(require_scopes("posts:delete")),
) -> MessageResponse:
    content_store: ContentStore = request.app.state.content_store
    if not content_store.delete_post(post_id):
        raise post_not_found()
    logger.info("Post %s deleted by %s", post_id, principal.email)
    return MessageResponse(message="Post deleted successfully")
