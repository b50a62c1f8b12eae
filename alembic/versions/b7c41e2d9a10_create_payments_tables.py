"""create_payments_tables

Revision ID: b7c41e2d9a10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'b7c41e2d9a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

transaction_status = sa.Enum(
    'PENDING', 'SUCCESS', 'FAILED', 'DISPUTED', 'REFUNDED', 'REFUND_PENDING',
    name='payment_transaction_status_enum',
)
processor = sa.Enum('paystack', 'paystack_transfer', name='payment_processor_enum')
donation_status = sa.Enum('PENDING', 'SUCCESS', 'FAILED', name='donation_status_enum')
refund_status = sa.Enum('PENDING', 'SUCCESS', 'FAILED', name='refund_status_enum')
webhook_status = sa.Enum('PENDING', 'PROCESSED', 'FAILED', name='webhook_event_status_enum')
account_type = sa.Enum('mobile_money', 'ghipss', name='withdrawal_account_type_enum')


def upgrade() -> None:
    """Upgrade schema - Add payments service tables."""

    op.create_table(
        'payment_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.String(64), nullable=True),
        sa.Column('processor', processor, nullable=False),
        sa.Column('processor_ref', sa.String(128), nullable=False),
        sa.Column('processor_transaction_id', sa.String(128), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('fees', sa.Integer(), server_default='0', nullable=False),
        sa.Column('currency', sa.String(8), nullable=False),
        sa.Column('payment_method', sa.String(32), nullable=True),
        sa.Column('status', transaction_status, nullable=False),
        sa.Column('status_message', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            'amount > 0 AND amount <= 500000000', name='payment_amount_check'
        ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_payment_transactions_processor_ref',
        'payment_transactions',
        ['processor_ref'],
        unique=True,
    )
    op.create_index(
        'ix_payment_transactions_organization_id',
        'payment_transactions',
        ['organization_id'],
    )

    op.create_table(
        'donations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('campaign_id', sa.String(64), nullable=False),
        sa.Column('organization_id', sa.String(64), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(8), nullable=False),
        sa.Column('reference', sa.String(128), nullable=False),
        sa.Column('payment_transaction_id', sa.Uuid(), nullable=True),
        sa.Column('is_anonymous', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('donor_id', sa.String(64), nullable=True),
        sa.Column('donor_name', sa.String(255), nullable=True),
        sa.Column('donor_email', sa.String(255), nullable=True),
        sa.Column('donor_message', sa.Text(), nullable=True),
        sa.Column('show_message', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('status', donation_status, nullable=False),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            'amount > 0 AND amount <= 100000000', name='donation_amount_check'
        ),
        sa.ForeignKeyConstraint(['payment_transaction_id'], ['payment_transactions.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_donations_reference', 'donations', ['reference'], unique=True)
    op.create_index('ix_donations_campaign_id', 'donations', ['campaign_id'])
    op.create_index('ix_donations_organization_id', 'donations', ['organization_id'])
    op.create_index('ix_donations_donor_id', 'donations', ['donor_id'])
    op.create_index('ix_donations_donor_email', 'donations', ['donor_email'])
    op.create_index('ix_donations_status', 'donations', ['status'])
    op.create_index('ix_donations_completed_at', 'donations', ['completed_at'])

    op.create_table(
        'refunds',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('donation_id', sa.Uuid(), nullable=True),
        sa.Column('transaction_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('processor', sa.String(32), nullable=False),
        sa.Column('processor_refund_id', sa.String(128), nullable=True),
        sa.Column('status', refund_status, nullable=False),
        sa.Column('initiated_by', sa.String(64), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'amount > 0 AND amount <= 500000000', name='refund_amount_check'
        ),
        sa.ForeignKeyConstraint(['donation_id'], ['donations.id']),
        sa.ForeignKeyConstraint(['transaction_id'], ['payment_transactions.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_refunds_transaction_id', 'refunds', ['transaction_id'])

    op.create_table(
        'webhook_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('processor', sa.String(32), nullable=False),
        sa.Column('processor_event_id', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(64), nullable=False),
        sa.Column('signature', sa.Text(), nullable=False),
        sa.Column('raw_payload', sa.Text(), nullable=False),
        sa.Column('status', webhook_status, nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_webhook_events_processor_event_id',
        'webhook_events',
        ['processor_event_id'],
        unique=True,
    )

    op.create_table(
        'withdrawal_accounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.String(64), nullable=False),
        sa.Column('account_type', account_type, nullable=False),
        sa.Column('bank_code', sa.String(32), nullable=True),
        sa.Column('account_number', sa.String(32), nullable=False),
        sa.Column('account_name', sa.String(255), nullable=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('mobile_money_provider', sa.String(32), nullable=True),
        sa.Column('recipient_code', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_withdrawal_accounts_organization_id',
        'withdrawal_accounts',
        ['organization_id'],
    )


def downgrade() -> None:
    """Downgrade schema - Remove payments service tables."""

    op.drop_index('ix_withdrawal_accounts_organization_id', table_name='withdrawal_accounts')
    op.drop_table('withdrawal_accounts')
    op.drop_index('ix_webhook_events_processor_event_id', table_name='webhook_events')
    op.drop_table('webhook_events')
    op.drop_index('ix_refunds_transaction_id', table_name='refunds')
    op.drop_table('refunds')
    for index in (
        'ix_donations_completed_at',
        'ix_donations_status',
        'ix_donations_donor_email',
        'ix_donations_donor_id',
        'ix_donations_organization_id',
        'ix_donations_campaign_id',
        'ix_donations_reference',
    ):
        op.drop_index(index, table_name='donations')
    op.drop_table('donations')
    op.drop_index('ix_payment_transactions_organization_id', table_name='payment_transactions')
    op.drop_index('ix_payment_transactions_processor_ref', table_name='payment_transactions')
    op.drop_table('payment_transactions')

    bind = op.get_bind()
    for enum in (
        account_type,
        webhook_status,
        refund_status,
        donation_status,
        processor,
        transaction_status,
    ):
        enum.drop(bind, checkfirst=True)
