"""
Domain Models - Internal business logic models using dataclasses.

All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from creditgate.models.api import ProfileRole


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity resolved from a bearer token by the auth provider."""

    id: UUID
    email: str | None


@dataclass(frozen=True)
class AuthUserRecord:
    """User record from the auth provider's admin listing."""

    id: UUID
    email: str | None


@dataclass(frozen=True)
class ProfileData:
    """Immutable profile snapshot."""

    user_id: UUID
    email: str
    credits: int
    role: ProfileRole


@dataclass(frozen=True)
class Metered:
    """Charge policy: debit ``cost`` credits and log a transaction."""

    cost: int

    def __post_init__(self) -> None:
        if self.cost <= 0:
            raise ValueError(f"Metered cost must be positive: {self.cost}")


@dataclass(frozen=True)
class Unmetered:
    """Charge policy: no balance check and no debit."""


ChargePolicy = Metered | Unmetered


@dataclass(frozen=True)
class ChargeIntent:
    """Request to pay for one AI operation."""

    user_id: UUID
    service_name: str
    cost: int

    def __post_init__(self) -> None:
        """Validate charge constraints."""
        if self.cost <= 0:
            raise ValueError(f"Charge cost must be positive: {self.cost}")
        if not self.service_name:
            raise ValueError("Service name cannot be empty")


@dataclass(frozen=True)
class ChargeResult:
    """Outcome of a successful gate decision."""

    user_id: UUID
    service_name: str
    metered: bool
    credits_spent: int
    balance_after: int
    transaction_recorded: bool


@dataclass(frozen=True)
class PurchaseData:
    """Credits added for a captured payment."""

    purchase_id: UUID
    user_id: UUID
    payment_id: str
    order_id: str | None
    amount_minor: int
    currency: str
    credits_added: int
    balance_after: int
    created_at: datetime


@dataclass(frozen=True)
class SignUpResult:
    """Auth provider response to a signup."""

    user: dict | None


@dataclass(frozen=True)
class SignInResult:
    """Auth provider response to a password login."""

    session: dict
    user: dict
