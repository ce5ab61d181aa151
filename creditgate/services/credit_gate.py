"""
Credit Gate - decides whether a paid AI operation may run and debits credits.

The balance check and the debit are one conditional UPDATE, so concurrent
requests from the same user can never spend the same credits twice.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from creditgate.db.models import CreditPurchase, Profile, Transaction, utc_now
from creditgate.exceptions import (
    DuplicatePurchaseError,
    InsufficientCreditsError,
    ProfileNotFoundError,
)
from creditgate.models.api import ProfileRole
from creditgate.models.domain import (
    ChargeIntent,
    ChargePolicy,
    ChargeResult,
    Metered,
    PurchaseData,
    Unmetered,
)
from creditgate.observability.metrics import metrics

logger = get_logger(__name__)


def resolve_charge_policy(role: str, cost: int) -> ChargePolicy:
    """Admins are unmetered; every other role pays ``cost``."""
    if role == ProfileRole.ADMIN:
        return Unmetered()
    return Metered(cost=cost)


class CreditGate:
    """
    Credit gate over the profiles table.

    ``record_admin_usage`` controls whether unmetered (admin) usage is
    written to the transaction log as a zero-credit row.
    """

    def __init__(self, session: AsyncSession, record_admin_usage: bool = False) -> None:
        self.session = session
        self.record_admin_usage = record_admin_usage

    async def authorize_and_charge(self, intent: ChargeIntent) -> ChargeResult:
        """
        Authorize one paid operation and charge for it.

        Raises:
            ProfileNotFoundError: No profile for the user
            InsufficientCreditsError: Metered profile cannot cover the cost
        """
        row = await self._find_profile(intent.user_id)
        if row is None:
            metrics.record_charge(intent.service_name, "not_found")
            raise ProfileNotFoundError(intent.user_id)

        credits, role = row
        policy = resolve_charge_policy(role, intent.cost)

        if isinstance(policy, Unmetered):
            logger.info(
                "unmetered_usage",
                user_id=str(intent.user_id),
                service=intent.service_name,
            )
            recorded = False
            if self.record_admin_usage:
                recorded = await self._record_transaction(intent.user_id, intent.service_name, 0)
            metrics.record_charge(intent.service_name, "unmetered")
            return ChargeResult(
                user_id=intent.user_id,
                service_name=intent.service_name,
                metered=False,
                credits_spent=0,
                balance_after=credits,
                transaction_recorded=recorded,
            )

        balance_after = await self._debit(intent.user_id, policy.cost)

        if balance_after is None:
            await self.session.rollback()
            current = await self._find_profile(intent.user_id)
            if current is None:
                metrics.record_charge(intent.service_name, "not_found")
                raise ProfileNotFoundError(intent.user_id)
            logger.info(
                "insufficient_credits",
                user_id=str(intent.user_id),
                service=intent.service_name,
                balance=current[0],
                required=policy.cost,
            )
            metrics.record_charge(intent.service_name, "insufficient")
            raise InsufficientCreditsError(balance=current[0], required=policy.cost)

        await self.session.commit()

        logger.info(
            "credits_debited",
            user_id=str(intent.user_id),
            service=intent.service_name,
            cost=policy.cost,
            balance_after=balance_after,
        )
        metrics.record_charge(intent.service_name, "metered", policy.cost)

        recorded = await self._record_transaction(
            intent.user_id, intent.service_name, policy.cost
        )

        return ChargeResult(
            user_id=intent.user_id,
            service_name=intent.service_name,
            metered=True,
            credits_spent=policy.cost,
            balance_after=balance_after,
            transaction_recorded=recorded,
        )

    async def add_purchased_credits(
        self,
        user_id: UUID,
        credits: int,
        payment_id: str,
        order_id: str | None,
        amount_minor: int,
        currency: str,
    ) -> PurchaseData:
        """
        Add credits for a captured payment, once per payment id.

        The increment and the ledger row commit together.

        Raises:
            ProfileNotFoundError: No profile for the user
            DuplicatePurchaseError: Payment already credited
        """
        if credits <= 0:
            raise ValueError(f"Credits to add must be positive: {credits}")

        if await self._find_purchase(payment_id) is not None:
            raise DuplicatePurchaseError(payment_id)

        stmt = (
            update(Profile)
            .where(Profile.id == user_id)
            .values(credits=Profile.credits + credits, updated_at=utc_now())
            .returning(Profile.credits)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        balance_after = result.scalar_one_or_none()

        if balance_after is None:
            await self.session.rollback()
            raise ProfileNotFoundError(user_id)

        purchase = CreditPurchase(
            user_id=user_id,
            razorpay_payment_id=payment_id,
            razorpay_order_id=order_id,
            amount_minor=amount_minor,
            currency=currency,
            credits_added=credits,
            created_at=utc_now(),
        )
        self.session.add(purchase)

        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as exc:
            # Another delivery of the same webhook won the race
            await self.session.rollback()
            raise DuplicatePurchaseError(payment_id) from exc

        logger.info(
            "credits_purchased",
            user_id=str(user_id),
            payment_id=payment_id,
            credits_added=credits,
            balance_after=balance_after,
        )
        metrics.record_purchase(credits)

        return PurchaseData(
            purchase_id=purchase.id,
            user_id=user_id,
            payment_id=payment_id,
            order_id=order_id,
            amount_minor=amount_minor,
            currency=currency,
            credits_added=credits,
            balance_after=balance_after,
            created_at=purchase.created_at,
        )

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _find_profile(self, user_id: UUID) -> tuple[int, str] | None:
        """Read (credits, role) for a user."""
        stmt = select(Profile.credits, Profile.role).where(Profile.id == user_id)
        result = await self.session.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return row[0], row[1]

    async def _debit(self, user_id: UUID, cost: int) -> int | None:
        """
        Conditionally debit ``cost`` credits.

        Returns the new balance, or None when the profile is missing or the
        balance is below ``cost`` (no row matched).
        """
        stmt = (
            update(Profile)
            .where(Profile.id == user_id, Profile.credits >= cost)
            .values(credits=Profile.credits - cost, updated_at=utc_now())
            .returning(Profile.credits)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_purchase(self, payment_id: str) -> CreditPurchase | None:
        """Find purchase by Razorpay payment id."""
        stmt = select(CreditPurchase).where(CreditPurchase.razorpay_payment_id == payment_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _record_transaction(self, user_id: UUID, service_name: str, credits_spent: int) -> bool:
        """Append a transaction row. Failure is logged, never raised."""
        self.session.add(
            Transaction(
                user_id=user_id,
                service_used=service_name,
                credits_spent=credits_spent,
                created_at=utc_now(),
            )
        )
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error(
                "transaction_log_failed",
                user_id=str(user_id),
                service=service_name,
                error=str(exc),
            )
            metrics.record_error(type(exc).__name__, "transaction_log")
            return False
        return True
