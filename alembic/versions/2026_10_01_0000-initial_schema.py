"""initial schema

Revision ID: 2026_10_01_0000
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = '2026_10_01_0000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create profiles, transactions and credit_purchases."""

    # ========================================================================
    # Create profiles table (id is the auth subject id)
    # ========================================================================
    op.create_table(
        'profiles',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('role', sa.String(20), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('credits >= 0', name='ck_profiles_credits_non_negative'),
        sa.CheckConstraint("role IN ('user', 'admin')", name='ck_profiles_role'),
    )
    op.create_index('idx_profiles_email', 'profiles', ['email'])

    # ========================================================================
    # Create transactions table
    # ========================================================================
    op.create_table(
        'transactions',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('service_used', sa.String(100), nullable=False),
        sa.Column('credits_spent', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('credits_spent >= 0', name='ck_transactions_credits_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], name='fk_transactions_profile', ondelete='CASCADE'),
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])
    op.create_index('idx_transactions_created_at', 'transactions', ['created_at'])

    # ========================================================================
    # Create credit_purchases table
    # ========================================================================
    op.create_table(
        'credit_purchases',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('razorpay_payment_id', sa.String(64), nullable=False),
        sa.Column('razorpay_order_id', sa.String(64), nullable=True),
        sa.Column('amount_minor', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('credits_added', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('amount_minor > 0', name='ck_credit_purchases_amount_positive'),
        sa.CheckConstraint('credits_added > 0', name='ck_credit_purchases_credits_positive'),
        sa.UniqueConstraint('razorpay_payment_id', name='uq_credit_purchases_payment'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], name='fk_credit_purchases_profile', ondelete='CASCADE'),
    )
    op.create_index('ix_credit_purchases_user_id', 'credit_purchases', ['user_id'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('credit_purchases')
    op.drop_table('transactions')
    op.drop_index('idx_profiles_email', table_name='profiles')
    op.drop_table('profiles')
