"""
Domain Exceptions

Services raise these; the FastAPI exception handlers in ``tableorder.main``
turn them into the standard JSON error envelope. Each exception carries the
HTTP status it maps to so handlers stay generic.
"""

from typing import Optional


class OrderingError(Exception):
    """Base class for all expected business errors."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, detail: Optional[str] = None, status_code: Optional[int] = None):
        self.detail = detail or self.error
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.detail)


class ValidationError(OrderingError):
    """Malformed or missing request fields."""

    status_code = 400
    error = "Validation failed"


class NotFoundError(OrderingError):
    """Referenced record does not exist."""

    status_code = 404
    error = "Not found"


class AuthError(OrderingError):
    """Bad credentials, missing session, or insufficient privileges."""

    status_code = 401
    error = "Authentication failed"

    @classmethod
    def forbidden(cls, detail: str = "Not authorized") -> "AuthError":
        return cls(detail, status_code=403)


class DeliveryError(OrderingError):
    """An OTP could not be handed to the email/SMS provider."""

    status_code = 500
    error = "Delivery failed"


class RateLimitedError(OrderingError):
    """Too many failed login attempts inside the rolling window."""

    status_code = 429
    error = "Too many attempts"


class OTPNotFoundError(NotFoundError):
    """No pending OTP for the identifier (never sent, or already consumed)."""

    status_code = 400
    error = "No OTP found. Please request a new OTP."


class OTPExpiredError(OrderingError):
    """The pending OTP passed its expiry timestamp."""

    status_code = 400
    error = "OTP has expired. Please request a new OTP."
