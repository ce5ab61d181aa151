"""
Tests for CreditGate.

Unit tests against a mocked database session.
"""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from creditgate.db.models import CreditPurchase, Transaction
from creditgate.exceptions import (
    DuplicatePurchaseError,
    InsufficientCreditsError,
    ProfileNotFoundError,
)
from creditgate.models.api import ProfileRole, ServiceName
from creditgate.models.domain import ChargeIntent, Metered, Unmetered
from creditgate.services.credit_gate import CreditGate, resolve_charge_policy
from tests.conftest import make_result


def intent(user_id=None, service=ServiceName.BACKGROUND_REMOVER, cost=1) -> ChargeIntent:
    return ChargeIntent(user_id=user_id or uuid4(), service_name=service.value, cost=cost)


class TestResolveChargePolicy:
    """Tests for role-to-policy resolution."""

    def test_user_is_metered(self):
        assert resolve_charge_policy("user", 2) == Metered(cost=2)

    def test_admin_is_unmetered(self):
        assert resolve_charge_policy("admin", 2) == Unmetered()

    def test_enum_role_accepted(self):
        assert resolve_charge_policy(ProfileRole.ADMIN, 1) == Unmetered()

    def test_metered_rejects_non_positive_cost(self):
        with pytest.raises(ValueError):
            resolve_charge_policy("user", 0)


class TestChargeIntent:
    """Tests for ChargeIntent validation."""

    def test_zero_cost_rejected(self):
        with pytest.raises(ValueError, match="positive"):
            ChargeIntent(user_id=uuid4(), service_name="Text to Image", cost=0)

    def test_negative_cost_rejected(self):
        with pytest.raises(ValueError):
            ChargeIntent(user_id=uuid4(), service_name="Text to Image", cost=-3)

    def test_empty_service_name_rejected(self):
        with pytest.raises(ValueError, match="Service name"):
            ChargeIntent(user_id=uuid4(), service_name="", cost=1)


class TestAuthorizeAndCharge:
    """Tests for CreditGate.authorize_and_charge."""

    @pytest.mark.asyncio
    async def test_metered_user_is_debited(self, db_session):
        """Balance 50, cost 1 -> 49 and one transaction row."""
        user_id = uuid4()
        db_session.execute = AsyncMock(
            side_effect=[make_result(row=(50, "user")), make_result(scalar=49)]
        )
        gate = CreditGate(db_session)

        result = await gate.authorize_and_charge(intent(user_id))

        assert result.metered is True
        assert result.credits_spent == 1
        assert result.balance_after == 49
        assert result.transaction_recorded is True

        db_session.add.assert_called_once()
        row = db_session.add.call_args[0][0]
        assert isinstance(row, Transaction)
        assert row.user_id == user_id
        assert row.service_used == "Background Remover"
        assert row.credits_spent == 1
        assert db_session.commit.await_count == 2

    @pytest.mark.asyncio
    async def test_insufficient_credits_raises_without_debit(self, db_session):
        """Balance 0, cost 2 -> InsufficientCreditsError and nothing logged."""
        db_session.execute = AsyncMock(
            side_effect=[
                make_result(row=(0, "user")),
                make_result(scalar=None),
                make_result(row=(0, "user")),
            ]
        )
        gate = CreditGate(db_session)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await gate.authorize_and_charge(intent(service=ServiceName.TEXT_TO_IMAGE, cost=2))

        assert exc_info.value.balance == 0
        assert exc_info.value.required == 2
        assert "Insufficient credits" in str(exc_info.value)
        db_session.add.assert_not_called()
        db_session.commit.assert_not_called()
        db_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_profile_raises(self, db_session):
        db_session.execute = AsyncMock(return_value=make_result(row=None))
        gate = CreditGate(db_session)

        with pytest.raises(ProfileNotFoundError):
            await gate.authorize_and_charge(intent())

        assert db_session.execute.await_count == 1
        db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_profile_deleted_between_read_and_debit(self, db_session):
        db_session.execute = AsyncMock(
            side_effect=[
                make_result(row=(5, "user")),
                make_result(scalar=None),
                make_result(row=None),
            ]
        )
        gate = CreditGate(db_session)

        with pytest.raises(ProfileNotFoundError):
            await gate.authorize_and_charge(intent())

    @pytest.mark.asyncio
    async def test_admin_is_not_debited(self, db_session):
        """Admin profile: no debit, no transaction row, balance unchanged."""
        db_session.execute = AsyncMock(return_value=make_result(row=(0, "admin")))
        gate = CreditGate(db_session)

        result = await gate.authorize_and_charge(intent(cost=2))

        assert result.metered is False
        assert result.credits_spent == 0
        assert result.balance_after == 0
        assert result.transaction_recorded is False
        assert db_session.execute.await_count == 1
        db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_admin_usage_recorded_when_enabled(self, db_session):
        db_session.execute = AsyncMock(return_value=make_result(row=(3, "admin")))
        gate = CreditGate(db_session, record_admin_usage=True)

        result = await gate.authorize_and_charge(intent(service=ServiceName.RESUME_ANALYZER))

        assert result.metered is False
        assert result.transaction_recorded is True
        row = db_session.add.call_args[0][0]
        assert row.credits_spent == 0
        assert row.service_used == "Resume Analyzer"

    @pytest.mark.asyncio
    async def test_transaction_log_failure_does_not_fail_charge(self, db_session):
        """Debit stands even when the transaction row cannot be written."""
        db_session.execute = AsyncMock(
            side_effect=[make_result(row=(10, "user")), make_result(scalar=8)]
        )
        db_session.commit = AsyncMock(
            side_effect=[None, OperationalError("INSERT", {}, Exception("disk full"))]
        )
        gate = CreditGate(db_session)

        result = await gate.authorize_and_charge(intent(cost=2))

        assert result.balance_after == 8
        assert result.credits_spent == 2
        assert result.transaction_recorded is False
        db_session.rollback.assert_awaited_once()


class TestAddPurchasedCredits:
    """Tests for CreditGate.add_purchased_credits."""

    @pytest.mark.asyncio
    async def test_adds_credits_and_records_purchase(self, db_session):
        user_id = uuid4()
        db_session.execute = AsyncMock(
            side_effect=[make_result(scalar=None), make_result(scalar=15)]
        )
        gate = CreditGate(db_session)

        purchase = await gate.add_purchased_credits(
            user_id=user_id,
            credits=5,
            payment_id="pay_123",
            order_id="order_456",
            amount_minor=500,
            currency="INR",
        )

        assert purchase.balance_after == 15
        assert purchase.credits_added == 5
        assert purchase.payment_id == "pay_123"

        row = db_session.add.call_args[0][0]
        assert isinstance(row, CreditPurchase)
        assert row.razorpay_payment_id == "pay_123"
        assert row.razorpay_order_id == "order_456"
        assert row.amount_minor == 500
        db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_known_payment_is_rejected(self, db_session):
        existing = CreditPurchase(razorpay_payment_id="pay_123")
        db_session.execute = AsyncMock(return_value=make_result(scalar=existing))
        gate = CreditGate(db_session)

        with pytest.raises(DuplicatePurchaseError) as exc_info:
            await gate.add_purchased_credits(uuid4(), 5, "pay_123", None, 500, "INR")

        assert exc_info.value.payment_id == "pay_123"
        assert db_session.execute.await_count == 1
        db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_is_rolled_back(self, db_session):
        db_session.execute = AsyncMock(
            side_effect=[make_result(scalar=None), make_result(scalar=15)]
        )
        db_session.flush = AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("unique violation"))
        )
        gate = CreditGate(db_session)

        with pytest.raises(DuplicatePurchaseError):
            await gate.add_purchased_credits(uuid4(), 5, "pay_123", None, 500, "INR")

        db_session.rollback.assert_awaited_once()
        db_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_profile_raises(self, db_session):
        db_session.execute = AsyncMock(
            side_effect=[make_result(scalar=None), make_result(scalar=None)]
        )
        gate = CreditGate(db_session)

        with pytest.raises(ProfileNotFoundError):
            await gate.add_purchased_credits(uuid4(), 5, "pay_123", None, 500, "INR")

        db_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_non_positive_credits_rejected(self, db_session):
        gate = CreditGate(db_session)

        with pytest.raises(ValueError):
            await gate.add_purchased_credits(uuid4(), 0, "pay_123", None, 50, "INR")

        db_session.execute.assert_not_called()
