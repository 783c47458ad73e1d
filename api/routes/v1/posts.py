"""
api/routes/v1/posts.py -- Public read endpoints for posts.

Routes:
  GET /api/v1/posts                 -- newest first; published only unless an admin asks otherwise
  GET /api/v1/posts/by-slug/{slug}  -- one published post; bumps the view counter
  GET /api/v1/posts/{post_id}       -- one post by id; drafts under the listing rule

The by-slug view increment is fire-and-forget: the response reports the
stored count plus one and never waits for (or fails because of) the write.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, Request

from api.limiter import PUBLIC_LIMIT, limiter
from api.models import PostResponse
from auth.dependencies import authenticate_request, principal_allows
from auth.models import User
from auth.store import UserStore
from blog.models import Post
from blog.store import ContentStore
from core.background import fire_and_forget
from core.errors import ErrorCode, NotFoundError

logger = logging.getLogger("inkpress.api")

# Auth policy: all public. ?published=false is honored for admins only;
# bearer principals also need posts:read (or admin:full).
router = APIRouter()


def build_post_responses(user_store: UserStore, posts: list[Post]) -> list[PostResponse]:
    """Map posts to responses, resolving each distinct author once."""
    authors: dict[str, Optional[User]] = {}
    for post in posts:
        if post.author_id not in authors:
            authors[post.author_id] = user_store.get_by_id(post.author_id)
    return [PostResponse.from_post(p, author=authors[p.author_id]) for p in posts]


def post_not_found() -> NotFoundError:
    return NotFoundError("Post not found.", code=ErrorCode.POST_NOT_FOUND)


@router.get("/posts", response_model=list[PostResponse])
@limiter.limit(PUBLIC_LIMIT)
def list_posts(
    request: Request,
    published: Optional[bool] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=100),
) -> list[PostResponse]:
    """List posts newest first. Drafts are included only for admins passing published=false."""
    published_only = True
    if published is False:
        principal = authenticate_request(request)
        published_only = not principal_allows(principal, "posts:read")
    content_store: ContentStore = request.app.state.content_store
    posts = content_store.list_posts(published_only=published_only, limit=limit)
    return build_post_responses(request.app.state.user_store, posts)


@router.get("/posts/by-slug/{slug}", response_model=PostResponse)
@limiter.limit(PUBLIC_LIMIT)
def get_post_by_slug(request: Request, slug: str) -> PostResponse:
    """Return a published post and count the view.

    Unpublished posts are indistinguishable from missing ones (404).
    """
    content_store: ContentStore = request.app.state.content_store
    post = content_store.get_post_by_slug(slug)
    if post is None or not post.published:
        raise post_not_found()

    fire_and_forget(
        content_store.increment_views,
        post.id,
        description=f"increment views for post {post.id}",
    )

    author = request.app.state.user_store.get_by_id(post.author_id)
    return PostResponse.from_post(post, author=author, views=post.views + 1)


@router.get("/posts/{post_id}", response_model=PostResponse)
@limiter.limit(PUBLIC_LIMIT)
def get_post(request: Request, post_id: str) -> PostResponse:
    """Return one post by id. Drafts follow the same rule as the listing."""
    content_store: ContentStore = request.app.state.content_store
    post = content_store.get_post(post_id)
    if post is None:
        raise post_not_found()
    if not post.published and not principal_allows(authenticate_request(request), "posts:read"):
        raise post_not_found()
    author = request.app.state.user_store.get_by_id(post.author_id)
    return PostResponse.from_post(post, author=author)
