"""
Error taxonomy for the booking lifecycle.

Every error carries a short ``code`` and a ``retryable`` flag so the HTTP layer
and the refund sweep can tell validation failures apart from transient
upstream failures.
"""

from typing import Optional


class EscrowError(Exception):
    """Base class for all booking lifecycle errors."""

    code = "error"
    http_status = 500
    retryable = False

    def __init__(self, message: str, *, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code, "retryable": self.retryable}
        if self.detail:
            body["detail"] = self.detail
        return body


class ValidationFailedError(EscrowError):
    """Request is malformed or violates a booking precondition."""

    code = "validation_error"
    http_status = 400


class NotFoundError(EscrowError):
    """Flight, booking or aircraft does not exist."""

    code = "not_found"
    http_status = 404


class ConflictError(EscrowError):
    """Seats or flight no longer available, duplicate flight number, overlapping sweep."""

    code = "conflict"
    http_status = 409


class InvalidStateError(EscrowError):
    """Operation is not valid for the booking's current status."""

    code = "invalid_state"
    http_status = 400


class UpstreamPaymentError(EscrowError):
    """Payment gateway call failed or timed out. Always safe to retry."""

    code = "upstream_payment_error"
    http_status = 502
    retryable = True


class SignatureInvalidError(EscrowError):
    """Webhook payload failed authenticity verification."""

    code = "signature_invalid"
    http_status = 400


class AuthorizationError(EscrowError):
    """Caller identity is missing or lacks the required role."""

    code = "unauthorized"
    http_status = 401

    def __init__(self, message: str, *, forbidden: bool = False):
        super().__init__(message)
        if forbidden:
            self.code = "forbidden"
            self.http_status = 403


__all__ = [
    "EscrowError",
    "ValidationFailedError",
    "NotFoundError",
    "ConflictError",
    "InvalidStateError",
    "UpstreamPaymentError",
    "SignatureInvalidError",
    "AuthorizationError",
]
