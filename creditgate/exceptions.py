"""
Exception Classes - Strongly typed exception hierarchy.

Services raise these; routes translate them into HTTP responses.
"""

from uuid import UUID


class GateError(Exception):
    """Base exception for all credit gate errors."""

    pass


class ProfileNotFoundError(GateError):
    """Raised when no profile exists for a user id."""

    def __init__(self, user_id: UUID) -> None:
        self.user_id = user_id
        super().__init__(f"Profile not found: {user_id}")


class InsufficientCreditsError(GateError):
    """Raised when a metered profile cannot cover the cost of an operation."""

    def __init__(self, balance: int, required: int) -> None:
        self.balance = balance
        self.required = required
        super().__init__(
            f"Insufficient credits. Balance: {balance}, Required: {required}. "
            "Please upgrade your plan."
        )


class DuplicatePurchaseError(GateError):
    """Raised when a payment has already been credited."""

    def __init__(self, payment_id: str) -> None:
        self.payment_id = payment_id
        super().__init__(f"Payment already credited: {payment_id}")


class AuthenticationError(GateError):
    """Raised when a bearer token cannot be resolved to an identity."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")


class AuthorizationError(GateError):
    """Raised when an identity lacks the required role."""

    def __init__(self, required_role: str) -> None:
        self.required_role = required_role
        super().__init__(f"Authorization failed: role {required_role} required")


class UploadValidationError(GateError):
    """Raised when an uploaded file is missing, unreadable or of the wrong type."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthProviderError(GateError):
    """Raised when the auth provider rejects a signup or login request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class UpstreamServiceError(GateError):
    """Raised when an external API call fails or returns a non-success status."""

    def __init__(self, service: str, message: str, status_code: int | None = None) -> None:
        self.service = service
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class PaymentProviderError(GateError):
    """Raised when payment provider operation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class WebhookVerificationError(GateError):
    """Raised when webhook verification fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)
