"""
api/routes/v1/auth.py -- Login and session identity endpoints.

Routes:
  POST /api/v1/auth/login   -- email/password login; returns a bearer token
  GET  /api/v1/auth/me      -- identity of the bearer (requires auth)

Security:
  LoginAuthenticator provides timing equalization -- use it, never inline
  get_by_email() + verify().
  Wrong email and wrong password produce the same 401 body.
  Cache-Control: no-store on login successes and credential failures.

Handlers are plain `def`: FastAPI runs them in its thread pool, so argon2
and store I/O never block the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, LoginRequest, LoginResponse, MeResponse
from auth.authenticator import LoginAuthenticator
from auth.dependencies import get_current_user
from core.errors import InvalidCredentials
from devices.models import DeviceUser

# Auth policy:
# - POST /api/v1/auth/login: public -- login endpoint must be unauthenticated
# - GET  /api/v1/auth/me:    requires auth (get_current_user)
router = APIRouter()


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a signed session token."""
    authenticator: LoginAuthenticator = request.app.state.authenticator
    try:
        result = authenticator.login(body.email, body.password)
    except InvalidCredentials as exc:
        resp = JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=ErrorDetail(code=exc.code, message=exc.client_message)).model_dump(),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            subject_id=result.subject_id,
            access_token=result.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=result.expires_in,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: DeviceUser = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the bearer of the session token."""
    return MeResponse(
        identity_id=current_user.identity_id,
        email=current_user.email,
        username=current_user.owner_name or "",
        serial_number=current_user.serial_number,
        device_name=current_user.device_name or "",
        created_at=current_user.created_at,
    )
