"""
Domain Errors — Exception taxonomy shared by services and routes.

Services raise these; ``main.py`` renders them as ``ErrorResponse`` bodies
with the matching HTTP status.
"""
from typing import Optional


class AppError(Exception):
    """Base class for every error that maps onto an HTTP response."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    detail: str = "Internal server error"

    def __init__(self, detail: Optional[str] = None, error_code: Optional[str] = None):
        self.detail = detail or self.detail
        self.error_code = error_code or self.error_code
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"detail": self.detail, "error_code": self.error_code}


class ValidationError(AppError):
    status_code = 400
    error_code = "VALIDATION_ERROR"
    detail = "Validation failed"

    def __init__(self, detail: Optional[str] = None, errors: Optional[list[dict]] = None):
        super().__init__(detail)
        self.errors = errors or []

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["errors"] = self.errors
        return body


class NotFoundError(AppError):
    status_code = 404
    error_code = "NOT_FOUND"
    detail = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    error_code = "CONFLICT"
    detail = "Request conflicts with the current state"


class AuthorizationError(AppError):
    status_code = 401
    error_code = "UNAUTHORIZED"
    detail = "Authentication required"


class ForbiddenError(AuthorizationError):
    status_code = 403
    error_code = "FORBIDDEN"
    detail = "You are not allowed to access this resource"


class RateLimitError(AppError):
    status_code = 429
    error_code = "RATE_LIMITED"
    detail = "Too many requests. Please try again later."


class GatewayUnavailableError(AppError):
    status_code = 503
    error_code = "SERVICE_UNAVAILABLE"
    detail = "Payment service is not configured"


class GatewaySignatureError(AppError):
    """Inbound webhook signature mismatch. The message stays generic on purpose."""

    status_code = 400
    error_code = "SIGNATURE_INVALID"
    detail = "Payment verification failed"

    def __init__(self, transaction_id: str):
        super().__init__()
        self.transaction_id = transaction_id


class EntitlementGrantFailure(AppError):
    """The gateway took the money but the local grant did not commit."""

    status_code = 500
    error_code = "ENTITLEMENT_GRANT_FAILED"
    detail = (
        "Payment was received but course access could not be granted. "
        "Support has been notified; please quote the transaction id."
    )

    def __init__(self, transaction_id: str):
        super().__init__()
        self.transaction_id = transaction_id

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["transactionId"] = self.transaction_id
        return body


class PaymentReconciliationRequired(EntitlementGrantFailure):
    """A verified gateway success arrived for a transaction already closed without payment."""

    error_code = "PAYMENT_RECONCILIATION_REQUIRED"
