"""
auth/tokens.py -- Signed session tokens (JWT).

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       exactly three claims: sub (the user's identity_id), iat and exp.
       exp is always iat + ttl_seconds, so expiry is strictly after issue.

  SECRET_KEY: supplied by the caller (core.config.get_settings() in the app).
       The issuer holds no key of its own; an empty key fails with
       SigningError at issue time rather than producing an unsigned token.

  Decoding returns None on any failure -- the route layer turns that into a
  401 without telling the client why.

Layer rule: no imports from api/ or devices/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from jose import JWTError, jwt

from core.errors import SigningError

_ALGORITHM = "HS256"


class TokenIssuer:
    def __init__(self, secret_key: str, ttl_seconds: int) -> None:
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds

    def issue(self, subject_id: str) -> str:
        """Encode a signed JWT for `subject_id` expiring ttl_seconds from now."""
        if not self._secret_key:
            raise SigningError("Signing key is not configured", operation="issue_token")
        issued_at = int(datetime.now(timezone.utc).timestamp())
        claims = {
            "sub": subject_id,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
        }
        try:
            return jwt.encode(claims, self._secret_key, algorithm=_ALGORITHM)
        except JWTError as exc:
            raise SigningError("Failed to sign token", operation="issue_token") from exc

    def decode(self, token: str) -> dict | None:
        """Verify signature and expiry. Returns the claims dict or None on any failure."""
        if not self._secret_key:
            return None
        try:
            claims = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except JWTError:
            return None
        if not claims.get("sub"):
            return None
        return claims
