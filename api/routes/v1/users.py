"""
api/routes/v1/users.py -- User administration endpoints.

Routes:
  GET   /api/v1/admin/users  -- all users with post counts   [users:read]
  PATCH /api/v1/admin/users  -- change one user's role       [admin:full]

Security:
  [M4] PATCH refuses to demote the last remaining ADMIN, so the system can
       never lock itself out of its own admin surface.
"""

import logging

from fastapi import APIRouter, Depends, Request

from api.limiter import ADMIN_LIMIT, limiter
from api.models import UserResponse, UserRolePatch
from auth.dependencies import require_scopes
from auth.models import Principal, Role
from auth.service_accounts import ADMIN_FULL_SCOPE
from auth.store import UserStore
from blog.store import ContentStore
from core.errors import ErrorCode, NotFoundError, ValidationError

logger = logging.getLogger("inkpress.api")

router = APIRouter()

_ROLE_VALUES = {r.value for r in Role}


@router.get("/admin/users", response_model=list[UserResponse])
@limiter.limit(ADMIN_LIMIT)
def list_users(
    request: Request,
    principal: Principal = Depends(require_scopes("users:read")),
) -> list[UserResponse]:
    user_store: UserStore = request.app.state.user_store
    content_store: ContentStore = request.app.state.content_store
    counts = content_store.count_posts_by_author()
    return [UserResponse.from_user(u, post_count=counts.get(u.id, 0)) for u in user_store.list_users()]


@router.patch("/admin/users", response_model=UserResponse)
@limiter.limit(ADMIN_LIMIT)
def update_user_role(
    request: Request,
    body: UserRolePatch,
    principal: Principal = Depends(require_scopes(ADMIN_FULL_SCOPE)),
) -> UserResponse:
    """Set a user's role.

    Checks run in a fixed order: both fields present, role is a known value,
    user exists, last-admin guard [M4].
    """
    if not body.user_id or not body.role:
        raise ValidationError("User ID and role are required.", code=ErrorCode.MISSING_REQUIRED_FIELD)
    if body.role not in _ROLE_VALUES:
        raise ValidationError("Invalid role.", code=ErrorCode.INVALID_ROLE)
    new_role = Role(body.role)

    user_store: UserStore = request.app.state.user_store
    target = user_store.get_by_id(body.user_id)
    if target is None:
        raise NotFoundError("User not found.", code=ErrorCode.USER_NOT_FOUND)

    if target.role == Role.ADMIN and new_role != Role.ADMIN and user_store.count_admins() <= 1:  # [M4]
        raise ValidationError("Cannot demote the last admin.", code=ErrorCode.BAD_REQUEST)

    if not user_store.update_role(body.user_id, new_role):
        raise NotFoundError("User not found.", code=ErrorCode.USER_NOT_FOUND)
    logger.info("Role for user %s set to %s by %s", body.user_id, new_role.value, principal.email)

    updated = user_store.get_by_id(body.user_id)
    if updated is None:
        raise NotFoundError("User not found.", code=ErrorCode.USER_NOT_FOUND)
    return UserResponse.from_user(updated)
