"""
api/routes/v1/auth.py -- Session login/logout and principal introspection.

Routes:
  POST /api/v1/auth/login   -- email + password login; sets session cookie
  POST /api/v1/auth/logout  -- clears session cookie
  GET  /api/v1/auth/me      -- the resolved principal (session or bearer)

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT).
  [C1] authenticate_user() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on login responses.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_LIMIT, limiter
from api.models import ErrorDetail, ErrorResponse, LoginRequest, LoginResponse, MeResponse, MessageResponse
from auth.dependencies import require_auth
from auth.models import Principal
from auth.store import UserStore
from auth.tokens import authenticate_user, create_session_token, set_session_cookie
from core.config import get_settings
from core.errors import ErrorCode

logger = logging.getLogger("inkpress.api")

# Auth policy:
# - POST /api/v1/auth/login:   public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:  public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:      requires auth (require_auth)
router = APIRouter()


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(LOGIN_LIMIT)  # [H2] brute-force mitigation -- must be BELOW @router so the route holds the wrapper
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; set the session cookie.

    Returns the same generic error for unknown email and wrong password so
    the response does not reveal which accounts exist.
    """
    settings = get_settings()
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, body.email, body.password)
    if user is None or user.id is None:
        logger.info("Failed login attempt from %s", request.client.host if request.client else "unknown")
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error=ErrorDetail(code=ErrorCode.UNAUTHORIZED.value, message="Invalid email or password.")
            ).model_dump(exclude_none=True),
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp

    token = create_session_token(user.email, user.role.value)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            user_id=user.id,
            email=user.email,
            role=user.role.value,
            expires_in=settings.session_expire_seconds,
        ).model_dump(by_alias=True),
    )
    set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
def logout() -> JSONResponse:
    """Clear the session cookie."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie(get_settings().session_cookie_name)
    return resp


@router.get("/auth/me", response_model=MeResponse, response_model_exclude_none=True)
def me(principal: Principal = Depends(require_auth)) -> MeResponse:
    """Return the principal for this request, whichever method resolved it."""
    return MeResponse.from_principal(principal)
