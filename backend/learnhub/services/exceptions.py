"""Domain exceptions raised by services and shaped by the central error handlers."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from learnhub.middleware.error_codes import ErrorCode


class AppError(Exception):
    """Base exception for errors that map to a client-visible response."""

    status_code: int = 500
    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class BadRequest(AppError):
    status_code = 400
    code = ErrorCode.BAD_REQUEST
    default_message = "Bad request"


class ValidationFailed(AppError):
    """Malformed input. ``details`` names the offending fields."""

    status_code = 400
    code = ErrorCode.VALIDATION_ERROR
    default_message = "Validation error"


class Unauthenticated(AppError):
    status_code = 401
    code = ErrorCode.UNAUTHENTICATED
    default_message = "Authentication required"


class TokenExpired(Unauthenticated):
    code = ErrorCode.TOKEN_EXPIRED
    default_message = "Token expired"


class InvalidCredentials(Unauthenticated):
    # Same message for unknown email and wrong password
    default_message = "Invalid credentials"


class InvalidRefreshToken(Unauthenticated):
    default_message = "Invalid or expired refresh token"


class NoRefreshToken(BadRequest):
    default_message = "Refresh token is required"


class Forbidden(AppError):
    status_code = 403
    code = ErrorCode.FORBIDDEN
    default_message = "Access denied"


class NotFound(AppError):
    status_code = 404
    code = ErrorCode.NOT_FOUND
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    code = ErrorCode.CONFLICT
    default_message = "Conflict"


class DuplicateAccount(Conflict):
    default_message = "An account with this email already exists"


class AlreadyOwned(Conflict):
    default_message = "You already purchased this course"


class PayloadTooLarge(AppError):
    status_code = 413
    code = ErrorCode.PAYLOAD_TOO_LARGE
    default_message = "Uploaded file is too large"


class UpstreamError(AppError):
    status_code = 502
    code = ErrorCode.UPSTREAM_ERROR
    default_message = "Upstream service error"
    retryable = False


class PaymentProviderUnavailable(UpstreamError):
    """Provider unreachable or failing; the caller may retry later."""

    default_message = "Payment provider is unavailable, please try again later"
    retryable = True


class PaymentProviderError(UpstreamError):
    """Provider rejected the request."""

    status_code = 400
    default_message = "Payment provider rejected the request"


class WebhookVerificationError(BadRequest):
    default_message = "Webhook signature verification failed"
