"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Session tokens arrive as "Authorization: Bearer <token>". The token's sub
claim is an identity_id; it is resolved against the store on every request,
so a token for a record that no longer exists is rejected.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from devices.models import DeviceUser


def try_get_current_user(request: Request) -> DeviceUser | None:
    """Authenticate the request via its Bearer token. Never raises."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    claims = request.app.state.token_issuer.decode(auth_header[7:])
    if claims is None:
        return None
    return request.app.state.device_store.get_by_identity(claims["sub"])


def get_current_user(request: Request) -> DeviceUser:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: DeviceUser = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
