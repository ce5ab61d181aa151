"""
Hypothesis Property-Based Tests for CreditGate.

Tests gate invariants over arbitrary balances and costs.
"""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from sqlalchemy.ext.asyncio import AsyncSession

from creditgate.exceptions import InsufficientCreditsError
from creditgate.models.api import ProfileRole, ServiceName
from creditgate.models.domain import ChargeIntent, Metered, Unmetered
from creditgate.services.credit_gate import CreditGate, resolve_charge_policy
from tests.conftest import make_result

# ============================================================================
# Hypothesis Strategies
# ============================================================================

balances = st.integers(min_value=0, max_value=1_000_000)
costs = st.integers(min_value=1, max_value=1000)
services = st.sampled_from(list(ServiceName))


def fresh_session() -> AsyncMock:
    session = AsyncMock(spec=AsyncSession)
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


def session_for(balance: int, role: str, cost: int) -> AsyncMock:
    """Session that answers the gate's queries like a database would."""
    session = fresh_session()
    if role == ProfileRole.ADMIN.value:
        session.execute = AsyncMock(return_value=make_result(row=(balance, role)))
    elif balance >= cost:
        session.execute = AsyncMock(
            side_effect=[make_result(row=(balance, role)), make_result(scalar=balance - cost)]
        )
    else:
        session.execute = AsyncMock(
            side_effect=[
                make_result(row=(balance, role)),
                make_result(scalar=None),
                make_result(row=(balance, role)),
            ]
        )
    return session


class TestChargePolicyProperties:
    """Property-based tests for resolve_charge_policy."""

    @given(costs)
    @settings(max_examples=50)
    def test_admin_always_unmetered(self, cost):
        assert resolve_charge_policy(ProfileRole.ADMIN.value, cost) == Unmetered()

    @given(costs)
    @settings(max_examples=50)
    def test_user_pays_exact_cost(self, cost):
        assert resolve_charge_policy(ProfileRole.USER.value, cost) == Metered(cost=cost)

    @given(st.integers(max_value=0))
    @settings(max_examples=30)
    def test_non_positive_cost_never_valid(self, cost):
        with pytest.raises(ValueError):
            ChargeIntent(user_id=uuid4(), service_name="Text to Image", cost=cost)


class TestGateProperties:
    """Property-based tests for authorize_and_charge outcomes."""

    @given(balances, costs, services)
    @settings(max_examples=100)
    @pytest.mark.asyncio
    async def test_metered_outcome_matches_balance(self, balance, cost, service):
        """Success iff balance >= cost; success debits exactly cost."""
        session = session_for(balance, ProfileRole.USER.value, cost)
        gate = CreditGate(session)
        intent = ChargeIntent(user_id=uuid4(), service_name=service.value, cost=cost)

        if balance >= cost:
            result = await gate.authorize_and_charge(intent)
            assert result.balance_after == balance - cost
            assert result.balance_after >= 0
            assert result.credits_spent == cost
            assert session.add.call_count == 1
        else:
            with pytest.raises(InsufficientCreditsError) as exc_info:
                await gate.authorize_and_charge(intent)
            assert exc_info.value.balance == balance
            assert exc_info.value.required == cost
            session.add.assert_not_called()

    @given(balances, costs, services)
    @settings(max_examples=100)
    @pytest.mark.asyncio
    async def test_admin_never_debited(self, balance, cost, service):
        session = session_for(balance, ProfileRole.ADMIN.value, cost)
        gate = CreditGate(session)

        result = await gate.authorize_and_charge(
            ChargeIntent(user_id=uuid4(), service_name=service.value, cost=cost)
        )

        assert result.balance_after == balance
        assert result.credits_spent == 0
        session.add.assert_not_called()
        session.commit.assert_not_called()
