"""
core/errors.py -- Closed error taxonomy for WinkLink.

Every failure a caller can observe is one of the WinkLinkError subclasses
below. Each class fixes its HTTP status and machine-readable code, so the
API layer maps errors to responses with a single exception handler instead
of per-route branching.

Context fields (field, operation) exist for logs. They name *where* a failure
happened without carrying raw driver text to the client: server-fault errors
expose only their generic public_message in responses.

Layer rule: core/ is the kernel. No imports from api/, auth/, or devices/.
"""

from __future__ import annotations


class WinkLinkError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "internal_error"
    public_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, field: str | None = None, operation: str | None = None) -> None:
        self.message = message or self.public_message
        self.field = field
        self.operation = operation
        super().__init__(self.message)

    @property
    def client_message(self) -> str:
        """Message safe to return to API clients."""
        if self.status_code >= 500:
            return self.public_message
        return self.message

    def context(self) -> dict[str, str]:
        return {k: v for k, v in (("field", self.field), ("operation", self.operation)) if v}


class ValidationError(WinkLinkError):
    """Malformed or oversized input, raised before any store mutation."""

    status_code = 422
    code = "validation_error"
    public_message = "Request validation failed."


class ConflictError(WinkLinkError):
    """A unique field is already taken (pre-check or constraint level)."""

    status_code = 409
    code = "conflict"
    public_message = "Resource already exists."


class InvalidCredentials(WinkLinkError):
    # Deliberately one message for unknown email and wrong password.
    status_code = 401
    code = "invalid_credentials"
    public_message = "Invalid email or password."

    def __init__(self, *, operation: str | None = "login") -> None:
        super().__init__(self.public_message, operation=operation)


class NotFoundError(WinkLinkError):
    status_code = 404
    code = "not_found"
    public_message = "Resource not found."


class StorageError(WinkLinkError):
    """Query, transaction, or timeout failure in the relational store."""

    status_code = 500
    code = "storage_error"
    public_message = "A storage error occurred."


class HashingError(WinkLinkError):
    public_message = "Password hashing failed."


class SigningError(WinkLinkError):
    public_message = "Token signing failed."
