"""
devices/models.py -- Domain dataclasses for registered devices.

These are pure data containers with zero logic. The registration protocol
lives in devices/registration.py and persistence in devices/store.py.

Layer rule: no imports from api/.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LookupField(str, Enum):
    """Columns the uniqueness checker may count against.

    The enum is the whitelist: DeviceStore.exists() maps members straight to
    table columns, so no caller-supplied string ever names a column.
    """

    serial_number = "serial_number"
    email = "email"
    owner_name = "owner_name"
    device_name = "device_name"
    identity_id = "identity_id"


@dataclass
class DeviceUser:
    """One row of the users table: a device and the account that owns it.

    owner_name is the account's username. password_hash is the encoded
    argon2id string, never plaintext. Both are None only while a registration
    unit is still open; committed rows always carry them.
    """

    identity_id: str
    serial_number: str
    email: str
    created_at: str  # ISO 8601, fixed at step 1
    id: Optional[int] = None
    owner_name: Optional[str] = None
    device_name: Optional[str] = None
    password_hash: Optional[str] = None


@dataclass
class Registration:
    serial_number: str
    email: str
    username: str
    password: str
    device_name: str

    def __repr__(self) -> str:
        # Keep the plaintext password out of logs and tracebacks.
        return (
            f"Registration(serial_number={self.serial_number!r}, email={self.email!r}, "
            f"username={self.username!r}, password='***', device_name={self.device_name!r})"
        )


@dataclass
class RegistrationResult:
    identity_id: str
    created_at: str
    created: bool = True


@dataclass
class DeviceOwner:
    """Public view of a device returned by lookup_device()."""

    device_owner: str
    device_name: str
