"""
devices/registration.py -- Device registration protocol and owner lookup.

Protocol (RegistrationCoordinator.register):
  0. Every field must be non-empty.
  1. Pre-checks against committed state, in order: serial number, email,
     username. A hit raises ConflictError before any unit is opened.
  2. One atomic unit runs the ordered steps:
       step 1  insert identity_id (fresh UUID4), serial_number, email, created_at
       step 2  hash the password, then write owner_name + password_hash
       step 3  write device_name
     and commits. Steps 2 and 3 address the row by the identity_id minted in
     step 1, which is why the order is fixed.

Rollback lives in exactly one place: DeviceStore.transaction(). Any exception
from any step -- including a HashingError raised before step 2 writes
anything -- leaves the context manager, which rolls the whole unit back and
re-raises. There is no per-step error handling here.

The pre-checks are advisory. Two concurrent registrations for the same serial
can both pass them; the UNIQUE constraints make the loser fail inside its unit
with ConflictError, and its row never becomes visible.

Layer rule: no imports from api/. The hasher is injected, not imported.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from core.errors import ConflictError, NotFoundError, ValidationError
from devices.models import DeviceOwner, LookupField, Registration, RegistrationResult
from devices.store import FIELD_LABELS, SERIAL_NUMBER_MAX_LENGTH, DeviceStore, TransactionUnit

if TYPE_CHECKING:
    from auth.passwords import CredentialHasher

logger = logging.getLogger("winklink.devices")

# Fields checked before the unit opens, in this order.
_PRE_CHECKS: tuple[tuple[LookupField, str], ...] = (
    (LookupField.serial_number, "serial_number"),
    (LookupField.email, "email"),
    (LookupField.owner_name, "username"),
)

_REQUIRED_FIELDS = ("serial_number", "email", "username", "password", "device_name")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class _Draft:
    """State threaded through the steps of one registration unit."""

    registration: Registration
    identity_id: Optional[str] = None
    created_at: Optional[str] = None


Step = Callable[[TransactionUnit, _Draft], None]


class RegistrationCoordinator:
    """Runs the registration protocol against an injected store and hasher.

    Usage:
        coordinator = RegistrationCoordinator(store, hasher)
        result = coordinator.register(Registration("SN12345678", "a@x.com", "alice", "pw123", "phone"))
        result.identity_id
    """

    def __init__(self, store: DeviceStore, hasher: CredentialHasher) -> None:
        self.store = store
        self.hasher = hasher
        self.steps: tuple[Step, ...] = (
            self._write_identity,
            self._write_credentials,
            self._write_device_name,
        )

    def register(self, registration: Registration) -> RegistrationResult:
        """Register a device and its owner atomically.

        Raises:
            ValidationError: a field is empty or the serial number is too long.
            ConflictError:   serial number, email or username is taken.
            StorageError:    the unit failed or timed out (already rolled back).
            HashingError:    the password could not be hashed (already rolled back).
        """
        _require_fields(registration)
        self._ensure_unique(registration)

        draft = _Draft(registration=registration)
        with self.store.transaction() as unit:
            for step in self.steps:
                step(unit, draft)

        logger.info(
            "Registered device %s for identity %s",
            registration.serial_number,
            draft.identity_id,
        )
        return RegistrationResult(identity_id=draft.identity_id, created_at=draft.created_at)

    def _ensure_unique(self, registration: Registration) -> None:
        for field, attr in _PRE_CHECKS:
            if self.store.exists(field, getattr(registration, attr)):
                raise ConflictError(
                    f"{FIELD_LABELS[field.value]} already exists",
                    field=field.value,
                    operation="register",
                )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _write_identity(self, unit: TransactionUnit, draft: _Draft) -> None:
        serial_number = draft.registration.serial_number
        if len(serial_number) > SERIAL_NUMBER_MAX_LENGTH:
            raise ValidationError(
                f"Serial number must be at most {SERIAL_NUMBER_MAX_LENGTH} characters long",
                field="serial_number",
                operation="insert_identity",
            )
        draft.identity_id = str(uuid.uuid4())
        draft.created_at = _now_iso()
        unit.insert_identity(draft.identity_id, serial_number, draft.registration.email, draft.created_at)

    def _write_credentials(self, unit: TransactionUnit, draft: _Draft) -> None:
        password_hash = self.hasher.hash(draft.registration.password)
        unit.set_credentials(draft.identity_id, draft.registration.username, password_hash)

    def _write_device_name(self, unit: TransactionUnit, draft: _Draft) -> None:
        unit.set_device_name(draft.identity_id, draft.registration.device_name)


def lookup_device(store: DeviceStore, serial_number: str) -> DeviceOwner:
    """Return the owner and display name of the device with `serial_number`."""
    if not serial_number:
        raise ValidationError("Serial number is required", field="serial_number", operation="lookup_device")
    user = store.get_by_serial_number(serial_number)
    if user is None:
        raise NotFoundError("Device not found", field="serial_number", operation="lookup_device")
    return DeviceOwner(device_owner=user.owner_name or "", device_name=user.device_name or "")


def _require_fields(registration: Registration) -> None:
    for name in _REQUIRED_FIELDS:
        if not getattr(registration, name):
            raise ValidationError(f"{name} is required", field=name, operation="register")
