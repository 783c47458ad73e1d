"""
api/main.py -- FastAPI application entry point for Inkpress.

Serves the blog's public read API and the authenticated admin API (posts,
users, service accounts) over one app.

Run with:      uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. request logging       -- method, path, status, latency
  2. origin check          -- CSRF guard for state-changing requests (api/security.py)
  3. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  4. CORSMiddleware        -- adds CORS headers for allowed browser origins
  5. SlowAPIMiddleware     -- default-limit bookkeeping for api.limiter

Lifespan opens both stores on startup and, on shutdown, drains the
fire-and-forget executor before closing them so no background write lands
on a disposed engine.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.admin_posts import router as admin_posts_router
from api.routes.v1.auth import router as auth_router
from api.routes.v1.posts import router as posts_router
from api.routes.v1.service_accounts import router as service_accounts_router
from api.routes.v1.tags import router as tags_router
from api.routes.v1.users import router as users_router
from api.security import validate_origin
from auth.dependencies import require_admin
from auth.models import Principal
from auth.store import UserStore
from blog.store import ContentStore
from core import background
from core.config import get_settings
from core.errors import AppError, ErrorCode

API_VERSION = "0.3.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("inkpress.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. Both stores share DATABASE_URL.
    """
    # Startup
    logger.info("Inkpress API starting up")
    app.state.user_store = UserStore()
    app.state.content_store = ContentStore()
    if not app.state.user_store.has_users():
        logger.warning("No users exist yet -- create an admin with: python main.py create-user --admin")
    logger.info("Stores initialized")

    yield

    # Shutdown
    background.shutdown(wait=True)
    app.state.content_store.close()
    app.state.user_store.close()
    logger.info("Inkpress API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Inkpress API",
    description="Content API for the Inkpress blog: public reads, admin authoring, service accounts.",
    version=API_VERSION,
    lifespan=lifespan,
    # The schema is served to admins only, via /api/v1/admin/docs/openapi.json.
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the current stack, so the LAST registration is the
# outermost layer. Register innermost first: SlowAPI -> CORS -> TrustedHost.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Origin check middleware
#
# Runs before routing, so a forged cross-site write is refused before any
# route dependency runs.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def check_origin(request: Request, call_next):
    if request.url.path.startswith("/api/") and not validate_origin(request, _settings):
        logger.warning(
            "Rejected %s %s: origin=%r referer=%r",
            request.method,
            request.url.path,
            request.headers.get("origin"),
            request.headers.get("referer"),
        )
        return JSONResponse(
            status_code=403,
            content=ErrorResponse(
                error=ErrorDetail(code=ErrorCode.FORBIDDEN.value, message="Request origin is not allowed.")
            ).model_dump(exclude_none=True),
        )
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Registered after check_origin, so it is the outer of the two and also logs
# requests the origin check rejected.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(posts_router, prefix="/api/v1", tags=["Posts"])
app.include_router(tags_router, prefix="/api/v1", tags=["Taxonomy"])
app.include_router(admin_posts_router, prefix="/api/v1", tags=["Admin: Posts"])
app.include_router(users_router, prefix="/api/v1", tags=["Admin: Users"])
app.include_router(service_accounts_router, prefix="/api/v1", tags=["Admin: Service Accounts"])


# ---------------------------------------------------------------------------
# Admin-only API documentation
#
# openapi_url=None on the constructor disables the public schema. Admins
# (session or bearer) fetch it here instead.
# ---------------------------------------------------------------------------


@app.get("/api/v1/admin/docs/openapi.json", include_in_schema=False)
def admin_openapi(principal: Principal = Depends(require_admin)) -> JSONResponse:
    resp = JSONResponse(content=app.openapi())
    resp.headers["Cache-Control"] = "private, max-age=3600"
    return resp


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(
            exclude_none=True
        ),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Typed domain errors (core/errors.py) carry their own status and code."""
    if exc.status_code >= 500:
        logger.error("AppError on %s %s: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.code.value, exc.message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, ErrorCode.RATE_LIMITED.value, "Too many requests.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error_response(422, ErrorCode.INVALID_INPUT.value, "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for framework-raised HTTP exceptions (404 route, 405, ...)."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is logged server-side only, never written to the
    response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, ErrorCode.INTERNAL_ERROR.value, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied -- health
# checks from load balancers and monitoring systems must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> JSONResponse:
    """Return API liveness, version, and whether the database answers."""
    try:
        request.app.state.content_store.ping()
    except Exception:
        logger.exception("Health check database ping failed")
        return JSONResponse(
            status_code=503,
            content=HealthResponse(status="degraded", version=API_VERSION, database="unavailable").model_dump(),
        )
    return JSONResponse(content=HealthResponse(version=API_VERSION).model_dump())
