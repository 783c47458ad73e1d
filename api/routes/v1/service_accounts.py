"""
api/routes/v1/service_accounts.py -- Service-account administration endpoints.

Routes (all require ADMIN; bearer principals additionally need admin:full):
  GET    /api/v1/admin/service-accounts        -- list + availableScopes
  POST   /api/v1/admin/service-accounts        -- create; returns the token ONCE (201)
  GET    /api/v1/admin/service-accounts/{id}   -- one account
  PATCH  /api/v1/admin/service-accounts/{id}   -- revoke; body must be {"revoked": true}
  DELETE /api/v1/admin/service-accounts/{id}   -- hard delete

No response from this module ever contains a token hash. The plaintext token
appears in exactly one place: the body of a successful POST.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import ADMIN_LIMIT, limiter
from api.models import (
    ServiceAccountCreate,
    ServiceAccountCreatedResponse,
    ServiceAccountListResponse,
    ServiceAccountResponse,
    ServiceAccountRevoke,
    SuccessResponse,
)
from auth import service_accounts
from auth.dependencies import require_scopes
from auth.models import Principal
from auth.service_accounts import ADMIN_FULL_SCOPE, AVAILABLE_SCOPES, TOKEN_WARNING
from auth.store import UserStore
from core.errors import ErrorCode, ValidationError

logger = logging.getLogger("inkpress.api")

router = APIRouter()

_require_admin_full = require_scopes(ADMIN_FULL_SCOPE)


@router.get("/admin/service-accounts", response_model=ServiceAccountListResponse)
@limiter.limit(ADMIN_LIMIT)
def list_service_accounts(
    request: Request,
    principal: Principal = Depends(_require_admin_full),
) -> ServiceAccountListResponse:
    user_store: UserStore = request.app.state.user_store
    accounts = service_accounts.list_service_accounts(user_store)
    return ServiceAccountListResponse(
        service_accounts=[ServiceAccountResponse.from_account(a) for a in accounts],
        available_scopes=list(AVAILABLE_SCOPES),
    )


@router.post("/admin/service-accounts", response_model=ServiceAccountCreatedResponse, status_code=201)
@limiter.limit(ADMIN_LIMIT)
def create_service_account(
    request: Request,
    body: ServiceAccountCreate,
    principal: Principal = Depends(_require_admin_full),
) -> JSONResponse:
    """Create a service account owned by the calling user.

    Cache-Control: no-store keeps the one-time token out of any HTTP cache.
    """
    user_store: UserStore = request.app.state.user_store
    account, token = service_accounts.create_service_account(
        user_store,
        name=body.name,
        description=body.description or None,
        scopes=body.scopes,
        created_by_id=principal.user_id,
    )
    resp = JSONResponse(
        status_code=201,
        content=ServiceAccountCreatedResponse(
            service_account=ServiceAccountResponse.from_account(account),
            token=token,
            warning=TOKEN_WARNING,
        ).model_dump(by_alias=True),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/admin/service-accounts/{account_id}", response_model=ServiceAccountResponse)
@limiter.limit(ADMIN_LIMIT)
def get_service_account(
    request: Request,
    account_id: str,
    principal: Principal = Depends(_require_admin_full),
) -> ServiceAccountResponse:
    user_store: UserStore = request.app.state.user_store
    return ServiceAccountResponse.from_account(service_accounts.get_service_account(user_store, account_id))


@router.patch("/admin/service-accounts/{account_id}", response_model=ServiceAccountResponse)
@limiter.limit(ADMIN_LIMIT)
def revoke_service_account(
    request: Request,
    account_id: str,
    body: ServiceAccountRevoke,
    principal: Principal = Depends(_require_admin_full),
) -> ServiceAccountResponse:
    """Revoke an account. Revocation is the only supported PATCH and cannot be undone."""
    if body.revoked is not True:
        raise ValidationError(
            'Only revocation is supported. Send {"revoked": true}.',
            code=ErrorCode.INVALID_INPUT,
        )
    user_store: UserStore = request.app.state.user_store
    account = service_accounts.revoke_service_account(user_store, account_id)
    logger.info("Service account %s revoked by %s", account_id, principal.email)
    return ServiceAccountResponse.from_account(account)


@router.delete("/admin/service-accounts/{account_id}", response_model=SuccessResponse)
@limiter.limit(ADMIN_LIMIT)
def delete_service_account(
    request: Request,
    account_id: str,
    principal: Principal = Depends(_require_admin_full),
) -> SuccessResponse:
    user_store: UserStore = request.app.state.user_store
    service_accounts.delete_service_account(user_store, account_id)
    logger.info("Service account %s deleted by %s", account_id, principal.email)
    return SuccessResponse()
