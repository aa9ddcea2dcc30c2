"""
Domain errors for the checkout and reconciliation flow.

Each error carries a user-safe message and the HTTP status the API layer
renders it with. Idempotent no-ops (duplicate webhooks, missing metadata)
are not errors and never raise.
"""

from enum import Enum


class ErrorCode(Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    AUTHENTICATION = "AUTHENTICATION"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    PAYMENTS_NOT_CONFIGURED = "PAYMENTS_NOT_CONFIGURED"
    UPSTREAM = "UPSTREAM"


class DomainError(Exception):
    """Base domain error with code, user-safe message and HTTP status."""

    code: ErrorCode = ErrorCode.VALIDATION
    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(DomainError):
    """Missing or out-of-range request input. No side effects were performed."""

    code = ErrorCode.VALIDATION
    status_code = 400


class NotFoundError(DomainError):
    code = ErrorCode.NOT_FOUND
    status_code = 404


class ForbiddenError(DomainError):
    code = ErrorCode.FORBIDDEN
    status_code = 403


class AuthenticationError(DomainError):
    code = ErrorCode.AUTHENTICATION
    status_code = 401


class InvalidSignatureError(DomainError):
    """Webhook body could not be authenticated against the signing secret."""

    code = ErrorCode.INVALID_SIGNATURE
    status_code = 400

    def __init__(self, message: str = "Invalid signature") -> None:
        super().__init__(message)


class PaymentsNotConfiguredError(DomainError):
    """The organizer has no connected payment account able to take charges."""

    code = ErrorCode.PAYMENTS_NOT_CONFIGURED
    status_code = 400

    def __init__(self) -> None:
        super().__init__(
            "This organizer has not finished setting up payments. Please contact the organizer."
        )


class UpstreamError(DomainError):
    """The payment processor was unreachable or rejected the request."""

    code = ErrorCode.UPSTREAM
    status_code = 500
