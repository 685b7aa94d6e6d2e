"""
auth/models.py -- Domain dataclasses for authentication results.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in devices/models.py -- dataclasses own domain shape; services and routes do
the work.

Layer rule: no imports from api/ or devices/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class LoginResult:
    """Outcome of a successful password login.

    subject_id is the account's identity_id -- the same value carried in the
    token's sub claim. The surrogate database id is never exposed.
    """

    subject_id: str
    token: str
    expires_in: int  # seconds
