"""create_payment_transactions

Revision ID: 3f9a2c1d7b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f9a2c1d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('transaction_id', sa.String(length=64), nullable=False, comment='Local transaction id'),
        sa.Column('order_id', sa.String(length=100), nullable=False, comment='Gateway order id'),
        sa.Column('payment_id', sa.String(length=100), nullable=True, comment='Gateway payment id'),
        sa.Column('user_id', sa.String(length=100), nullable=True),
        sa.Column('user_email', sa.String(length=255), nullable=True),
        sa.Column('user_phone', sa.String(length=32), nullable=True),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False, comment='Major units'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='INR'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(length=50), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('razorpay_order_id', sa.String(length=100), nullable=True),
        sa.Column('razorpay_payment_id', sa.String(length=100), nullable=True),
        sa.Column('razorpay_signature', sa.String(length=256), nullable=True),
        sa.Column('error_code', sa.String(length=100), nullable=True),
        sa.Column('error_description', sa.Text(), nullable=True),
        sa.Column('is_refunded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('refund_id', sa.String(length=100), nullable=True),
        sa.Column('refund_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('metadata', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('verification_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refund_date', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_index('ix_payment_transactions_transaction_id', 'payment_transactions', ['transaction_id'], unique=True)
    op.create_index('ix_payment_transactions_order_id', 'payment_transactions', ['order_id'], unique=True)
    op.create_index('ix_payment_transactions_payment_id', 'payment_transactions', ['payment_id'])
    op.create_index('ix_payment_transactions_razorpay_payment_id', 'payment_transactions', ['razorpay_payment_id'])
    op.create_index('ix_payment_transactions_user_id', 'payment_transactions', ['user_id'])
    op.create_index('ix_payment_transactions_payment_status', 'payment_transactions', ['payment_status'])
    op.create_index('ix_payment_transactions_created_at', 'payment_transactions', ['created_at'])
    op.create_index('ix_payment_transactions_status_created', 'payment_transactions', ['payment_status', 'created_at'])
    op.create_index('ix_payment_transactions_user_created', 'payment_transactions', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_payment_transactions_user_created', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_status_created', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_created_at', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_payment_status', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_user_id', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_razorpay_payment_id', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_payment_id', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_order_id', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_transaction_id', table_name='payment_transactions')

    op.drop_table('payment_transactions')
