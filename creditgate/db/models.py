"""
Database Models - SQLAlchemy ORM models with strict typing.

All columns use Mapped[] type annotations. Generic ``Uuid`` columns map to
native UUID on PostgreSQL.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Profile(Base):
    """
    ORM model for profiles table.

    One row per auth identity; ``id`` is the auth subject id.
    """

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="user")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("credits >= 0", name="ck_profiles_credits_non_negative"),
        CheckConstraint("role IN ('user', 'admin')", name="ck_profiles_role"),
        Index("idx_profiles_email", "email"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Profile(id={self.id}, email={self.email}, credits={self.credits}, role={self.role})>"


class Transaction(Base):
    """
    ORM model for transactions table.

    Append-only audit log of paid operations.
    """

    __tablename__ = "transactions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_used: Mapped[str] = mapped_column(String(100), nullable=False)
    credits_spent: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("credits_spent >= 0", name="ck_transactions_credits_non_negative"),
        Index("idx_transactions_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Transaction(id={self.id}, user_id={self.user_id}, "
            f"service_used={self.service_used}, credits_spent={self.credits_spent})>"
        )


class CreditPurchase(Base):
    """
    ORM model for credit_purchases table.

    Immutable ledger of captured payments converted into credits.
    """

    __tablename__ = "credit_purchases"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    razorpay_payment_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    razorpay_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    credits_added: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("amount_minor > 0", name="ck_credit_purchases_amount_positive"),
        CheckConstraint("credits_added > 0", name="ck_credit_purchases_credits_positive"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<CreditPurchase(id={self.id}, user_id={self.user_id}, "
            f"payment_id={self.razorpay_payment_id}, credits_added={self.credits_added})>"
        )
