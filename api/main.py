"""
api/main.py -- FastAPI application entry point for WinkLink.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins

Lifespan builds every service once and wires them together explicitly:
DeviceStore -> CredentialHasher -> TokenIssuer -> RegistrationCoordinator /
LoginAuthenticator. Route handlers read them from app.state; nothing below
the API layer reaches for a global.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.devices import router as devices_router
from auth.authenticator import LoginAuthenticator
from auth.passwords import CredentialHasher
from auth.tokens import TokenIssuer
from core.config import get_settings
from core.errors import WinkLinkError
from devices.registration import RegistrationCoordinator
from devices.store import DeviceStore

_VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("winklink.api")

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the service graph on startup and dispose of the pool on shutdown."""
    logger.info("WinkLink API starting up")
    store = DeviceStore(_settings.database_url, transaction_timeout=_settings.transaction_timeout_seconds)
    hasher = CredentialHasher(
        time_cost=_settings.argon2_time_cost,
        memory_cost=_settings.argon2_memory_cost,
        parallelism=_settings.argon2_parallelism,
    )
    issuer = TokenIssuer(_settings.secret_key, _settings.token_expire_seconds)
    app.state.device_store = store
    app.state.token_issuer = issuer
    app.state.coordinator = RegistrationCoordinator(store, hasher)
    app.state.authenticator = LoginAuthenticator(store, hasher, issuer)
    logger.info("Device store initialized (%d registered devices)", store.count_users())

    yield

    store.close()
    logger.info("WinkLink API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="WinkLink API",
    description="Device registration, owner lookup and session login.",
    version=_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


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

app.include_router(devices_router, prefix="/api/v1", tags=["Devices"])
app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(WinkLinkError)
async def domain_error_handler(request: Request, exc: WinkLinkError) -> JSONResponse:
    """Map a domain error to its status code and a client-safe message.

    Server faults log the full chain (including the driver error) but the
    response carries only the generic public message.
    """
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.message,
            exc.context(),
            exc_info=exc,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=exc.code,
                message=exc.client_message,
                detail=exc.field if exc.status_code < 500 else None,
            )
        ).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or path params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and a read-only database probe."""
    database = "ok" if request.app.state.device_store.ping() else "error"
    return HealthResponse(version=_VERSION, components={"app": "ok", "database": database})
