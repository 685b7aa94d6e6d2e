"""
API request and response models for WinkLink REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in devices/models.py and
auth/models.py, which own the internal domain representation. Route handlers
map between the two.

Length limits here only keep payloads sane. Domain rules (serial number at
most 12 characters, non-empty credentials) are enforced by the domain layer
so CLI and tests hit the same checks as HTTP clients.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from devices.models import DeviceOwner

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/register."""

    serial_number: str = Field(max_length=64)
    email: str = Field(max_length=255)
    username: str = Field(max_length=255)
    password: str = Field(max_length=1024)
    device_name: str = Field(max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(max_length=255)
    password: str = Field(max_length=1024)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    created: bool
    identity_id: str
    message: str


class DeviceResponse(BaseModel):
    """Response for GET /api/v1/devices/{serial_number}."""

    model_config = ConfigDict(frozen=True)

    device_owner: str
    device_name: str

    @classmethod
    def from_owner(cls, owner: DeviceOwner) -> "DeviceResponse":
        return cls(device_owner=owner.device_owner, device_name=owner.device_name)


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject_id: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class MeResponse(BaseModel):
    """Identity of the bearer, returned by GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    identity_id: str
    email: str
    username: str
    serial_number: str
    device_name: str
    created_at: str


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
    components: dict[str, str]
