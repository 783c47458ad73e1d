"""
api/routes/v1/tags.py -- Public taxonomy endpoints.

Routes:
  GET /api/v1/tags                -- every tag with its published post count
  GET /api/v1/tags/{slug}         -- one tag plus its published posts
  GET /api/v1/categories/{slug}   -- one category plus its published posts
"""

from fastapi import APIRouter, Request

from api.limiter import PUBLIC_LIMIT, limiter
from api.models import CategoryPostsResponse, TagPostsResponse, TagSummary, TermResponse
from api.routes.v1.posts import build_post_responses
from blog.store import ContentStore
from core.errors import NotFoundError

# Auth policy: all public.
router = APIRouter()


@router.get("/tags", response_model=list[TagSummary])
@limiter.limit(PUBLIC_LIMIT)
def list_tags(request: Request) -> list[TagSummary]:
    """Tags ordered by name. Tags with no published posts are listed with a count of 0."""
    content_store: ContentStore = request.app.state.content_store
    return [
        TagSummary(id=tag.id, name=tag.name, slug=tag.slug, post_count=count)
        for tag, count in content_store.list_tags_with_counts()
    ]


@router.get("/tags/{slug}", response_model=TagPostsResponse)
@limiter.limit(PUBLIC_LIMIT)
def get_tag(request: Request, slug: str) -> TagPostsResponse:
    content_store: ContentStore = request.app.state.content_store
    tag = content_store.get_tag_by_slug(slug)
    if tag is None:
        raise NotFoundError("Tag not found.")
    posts = build_post_responses(request.app.state.user_store, content_store.list_posts_by_tag(slug))
    return TagPostsResponse(tag=TermResponse.from_term(tag), posts=posts, count=len(posts))


@router.get("/categories/{slug}", response_model=CategoryPostsResponse)
@limiter.limit(PUBLIC_LIMIT)
def get_category(request: Request, slug: str) -> CategoryPostsResponse:
    content_store: ContentStore = request.app.state.content_store
    category = content_store.get_category_by_slug(slug)
    if category is None:
        raise NotFoundError("Category not found.")
    posts = build_post_responses(request.app.state.user_store, content_store.list_posts_by_category(slug))
    return CategoryPostsResponse(category=TermResponse.from_term(category), posts=posts, count=len(posts))
