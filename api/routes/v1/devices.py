"""
api/routes/v1/devices.py -- Device registration and lookup endpoints.

Routes:
  POST /api/v1/register                  -- register a device and its owner (201)
  GET  /api/v1/devices/{serial_number}   -- owner and display name of a device

Both routes are public. Domain errors (ValidationError, ConflictError,
NotFoundError, StorageError, ...) propagate to the shared WinkLinkError
handler in api/main.py, which maps them to the ErrorResponse envelope.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from api.models import DeviceResponse, RegisterRequest, RegisterResponse
from devices.models import Registration
from devices.registration import RegistrationCoordinator, lookup_device
from devices.store import DeviceStore

router = APIRouter()


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Register a device. Runs the full pre-check + atomic three-step protocol."""
    coordinator: RegistrationCoordinator = request.app.state.coordinator
    result = coordinator.register(
        Registration(
            serial_number=body.serial_number,
            email=body.email,
            username=body.username,
            password=body.password,
            device_name=body.device_name,
        )
    )
    return RegisterResponse(
        created=result.created,
        identity_id=result.identity_id,
        message=f"User {body.username} has been created at {datetime.now(timezone.utc)} [utc]",
    )


@router.get("/devices/{serial_number}", response_model=DeviceResponse)
def get_device(request: Request, serial_number: str) -> DeviceResponse:
    """Return the owner and display name of a registered device."""
    store: DeviceStore = request.app.state.device_store
    return DeviceResponse.from_owner(lookup_device(store, serial_number))
