"""
auth/authenticator.py -- Email/password login with timing equalization.

The authenticator always runs exactly one argon2 verification per login,
whether or not the email exists:
  - Unknown email:  verification against the hasher's dummy hash
  - Wrong password: verification against the stored hash
Both end in the same InvalidCredentials error, so neither the response body
nor its timing tells an attacker which emails are registered.

Storage failures are not credentials failures: a StorageError from the
lookup propagates unchanged and surfaces as a server fault.

Layer rule: no imports from api/. devices/ is referenced for typing only;
the store is injected by the caller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from auth.models import LoginResult
from core.errors import InvalidCredentials, ValidationError

if TYPE_CHECKING:
    from auth.passwords import CredentialHasher
    from auth.tokens import TokenIssuer
    from devices.store import DeviceStore

logger = logging.getLogger("winklink.auth")


class LoginAuthenticator:
    def __init__(self, store: DeviceStore, hasher: CredentialHasher, issuer: TokenIssuer) -> None:
        self.store = store
        self.hasher = hasher
        self.issuer = issuer

    def login(self, email: str, password: str) -> LoginResult:
        """Authenticate `email`/`password` and return a signed session token.

        Raises:
            ValidationError:    empty email or password (store untouched).
            InvalidCredentials: unknown email or wrong password.
            StorageError:       the lookup itself failed.
            SigningError:       the token could not be signed.
        """
        if not email:
            raise ValidationError("Email is required", field="email", operation="login")
        if not password:
            raise ValidationError("Password is required", field="password", operation="login")

        user = self.store.get_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return before running argon2.
            self.hasher.verify_dummy(password)
            logger.info("Login rejected")
            raise InvalidCredentials()
        if not self.hasher.verify(password, user.password_hash):
            logger.info("Login rejected")
            raise InvalidCredentials()

        token = self.issuer.issue(user.identity_id)
        logger.info("Login succeeded for identity %s", user.identity_id)
        return LoginResult(subject_id=user.identity_id, token=token, expires_in=self.issuer.ttl_seconds)
