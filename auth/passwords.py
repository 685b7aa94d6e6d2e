"""
auth/passwords.py -- Memory-hard password hashing (argon2id).

Security design decisions:
  argon2id via argon2-cffi's PasswordHasher. Each hash() call draws a fresh
  random salt; the output is the self-describing PHC string
  ($argon2id$v=19$m=...,t=...,p=...$salt$digest), so verify() needs nothing
  but the stored value. Cost parameters come from Settings and are recorded
  inside every hash, so changing them never invalidates existing records.

  verify() never raises. Mismatch, a malformed hash, and a missing hash all
  return False. For the malformed/missing cases a verification against
  _dummy_hash runs first so response time does not reveal which one it was.

Layer rule: no imports from api/ or devices/.
"""

from __future__ import annotations

import logging

from argon2 import PasswordHasher, Type
from argon2 import exceptions as argon2_exceptions

from core.errors import HashingError

logger = logging.getLogger("winklink.auth")


class CredentialHasher:
    """Hash and verify passwords.

    Usage:
        hasher = CredentialHasher(time_cost=3, memory_cost=65536, parallelism=4)
        stored = hasher.hash("pw123")
        hasher.verify("pw123", stored)   # True
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4) -> None:
        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            type=Type.ID,
        )
        # Computed once so the first failed login is not measurably slower.
        self._dummy_hash = self.hash("winklink_timing_dummy")

    def hash(self, plaintext: str) -> str:
        """Return an encoded argon2id hash of `plaintext` with a fresh salt."""
        try:
            return self._hasher.hash(plaintext)
        except argon2_exceptions.HashingError as exc:
            raise HashingError("Failed to hash password", operation="hash_password") from exc

    def verify(self, plaintext: str, hash_output: str | None) -> bool:
        """Return True iff `plaintext` matches `hash_output`. Never raises."""
        if not hash_output:
            self._burn(plaintext)
            return False
        try:
            return self._hasher.verify(hash_output, plaintext)
        except argon2_exceptions.VerifyMismatchError:
            return False
        except (argon2_exceptions.InvalidHashError, argon2_exceptions.VerificationError):
            logger.warning("Stored password hash could not be verified")
            self._burn(plaintext)
            return False

    def verify_dummy(self, plaintext: str) -> bool:
        """Spend one verification on a password for an unknown account."""
        self._burn(plaintext)
        return False

    def _burn(self, plaintext: str) -> None:
        try:
            self._hasher.verify(self._dummy_hash, plaintext)
        except argon2_exceptions.VerificationError:
            pass
