"""
API request and response models for Inkpress REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
blog/models.py, which own the internal domain representation. Route handlers
map between the two via the from_* factory classmethods below.

Wire format is camelCase (featuredImage, createdAt, serviceAccountScopes) to
match the admin UI. Python attribute names stay snake_case; alias_generator
does the mapping and populate_by_name lets request bodies use either form.

Separation of concerns: domain dataclasses = domain truth; api/ models = API contract.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import Principal, ServiceAccount, User
from blog.models import Category, Post, Tag
from blog.reading_time import calculate_reading_time

# ---------------------------------------------------------------------------
# Base configuration
# ---------------------------------------------------------------------------


class _RequestModel(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, alias_generator=to_camel, populate_by_name=True)


class _ResponseModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(_RequestModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class LoginResponse(_ResponseModel):
    user_id: str
    email: str
    role: str
    expires_in: int


class MeResponse(_ResponseModel):
    """The principal contract. service_account_* fields only appear for bearer tokens."""

    user_id: str
    email: str
    role: str
    method: str
    service_account_id: Optional[str] = None
    service_account_scopes: Optional[list[str]] = None

    @classmethod
    def from_principal(cls, principal: Principal) -> "MeResponse":
        return cls(
            user_id=principal.user_id,
            email=principal.email,
            role=principal.role.value,
            method=principal.method.value,
            service_account_id=principal.service_account_id,
            service_account_scopes=list(principal.scopes) if principal.scopes is not None else None,
        )


# ---------------------------------------------------------------------------
# Posts, tags, categories
# ---------------------------------------------------------------------------


class PostWrite(_RequestModel):
    """Request body for POST /admin/posts and PUT /admin/posts/{id}.

    tags and categories are names; the store connects existing terms by slug
    and creates the rest.
    """

    title: str = Field(min_length=1, max_length=255)
    content: Any = None
    excerpt: Optional[str] = Field(default=None, max_length=1000)
    featured_image: Optional[str] = Field(default=None, max_length=2048)
    published: bool = False
    tags: list[str] = Field(default_factory=list, max_length=50)
    categories: list[str] = Field(default_factory=list, max_length=20)


class TermResponse(_ResponseModel):
    id: str
    name: str
    slug: str

    @classmethod
    def from_term(cls, term: Tag | Category) -> "TermResponse":
        return cls(id=term.id, name=term.name, slug=term.slug)


class TagSummary(_ResponseModel):
    """One row of GET /tags. post_count counts published posts only."""

    id: str
    name: str
    slug: str
    post_count: int


class AuthorResponse(_ResponseModel):
    id: str
    name: Optional[str] = None


class PostResponse(_ResponseModel):
    id: str
    title: str
    slug: str
    content: Any = None
    excerpt: Optional[str] = None
    featured_image: Optional[str] = None
    published: bool
    views: int
    reading_time: int
    author_id: str
    author: Optional[AuthorResponse] = None
    created_at: str
    updated_at: str
    tags: list[TermResponse] = Field(default_factory=list)
    categories: list[TermResponse] = Field(default_factory=list)

    @classmethod
    def from_post(cls, post: Post, author: Optional[User] = None, views: Optional[int] = None) -> "PostResponse":
        """Factory Method: map a domain Post to its API shape.

        views overrides the stored counter (the by-slug read reports the
        post-increment value without waiting for the increment to land).
        """
        return cls(
            id=post.id,
            title=post.title,
            slug=post.slug,
            content=post.content,
            excerpt=post.excerpt,
            featured_image=post.featured_image,
            published=post.published,
            views=post.views if views is None else views,
            reading_time=calculate_reading_time(post.content),
            author_id=post.author_id,
            author=AuthorResponse(id=author.id, name=author.name) if author is not None and author.id else None,
            created_at=post.created_at,
            updated_at=post.updated_at,
            tags=[TermResponse.from_term(t) for t in post.tags],
            categories=[TermResponse.from_term(c) for c in post.categories],
        )


class TagPostsResponse(_ResponseModel):
    tag: TermResponse
    posts: list[PostResponse]
    count: int


class CategoryPostsResponse(_ResponseModel):
    category: TermResponse
    posts: list[PostResponse]
    count: int


class MessageResponse(_ResponseModel):
    message: str


# ---------------------------------------------------------------------------
# Users (admin)
# ---------------------------------------------------------------------------


class UserRolePatch(_RequestModel):
    """Request body for PATCH /admin/users.

    Both fields are optional at the schema level so the route can answer a
    missing field with MISSING_REQUIRED_FIELD and a bad role with INVALID_ROLE
    instead of a generic 422.
    """

    user_id: Optional[str] = None
    role: Optional[str] = None


class UserResponse(_ResponseModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str
    post_count: Optional[int] = None

    @classmethod
    def from_user(cls, user: User, post_count: Optional[int] = None) -> "UserResponse":
        return cls(id=user.id, email=user.email, name=user.name, role=user.role.value, post_count=post_count)


# ---------------------------------------------------------------------------
# Service accounts (admin)
# ---------------------------------------------------------------------------


class ServiceAccountCreate(_RequestModel):
    """Request body for POST /admin/service-accounts.

    Scope membership is checked by auth.service_accounts.validate_scopes so
    an unknown or empty scope list answers 400 INVALID_INPUT.
    """

    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    scopes: list[str] = Field(default_factory=list)


class ServiceAccountRevoke(_RequestModel):
    revoked: Optional[bool] = None


class ServiceAccountResponse(_ResponseModel):
    """Public view of a service account. There is no token_hash field."""

    id: str
    name: str
    description: Optional[str] = None
    scopes: list[str]
    revoked: bool
    last_used_at: Optional[str] = None
    created_by_id: str
    created_at: str
    updated_at: str

    @classmethod
    def from_account(cls, account: ServiceAccount) -> "ServiceAccountResponse":
        return cls(
            id=account.id,
            name=account.name,
            description=account.description,
            scopes=list(account.scopes),
            revoked=account.revoked,
            last_used_at=account.last_used_at,
            created_by_id=account.created_by_id,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class ServiceAccountListResponse(_ResponseModel):
    service_accounts: list[ServiceAccountResponse]
    available_scopes: list[str]


class ServiceAccountCreatedResponse(_ResponseModel):
    """Returned once, at creation. token is never retrievable again."""

    service_account: ServiceAccountResponse
    token: str
    warning: str


class SuccessResponse(_ResponseModel):
    success: bool = True


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    database: str = "ok"
