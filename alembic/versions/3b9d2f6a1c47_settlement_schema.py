"""Settlement schema: orders, ledger, commissions, withdrawals, credit scores

Revision ID: 3b9d2f6a1c47
Revises:
Create Date: 2026-10-18 10:12:41.508113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3b9d2f6a1c47'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('users',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('email', sa.String(), nullable=False),
    sa.Column('phone', sa.String(), nullable=True),
    sa.Column('role', sa.Enum('buyer', 'farmer', 'partner', 'admin', name='userrole'), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )
    op.create_table('partners',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('organization_type', sa.String(), nullable=True),
    sa.Column('contact_email', sa.String(), nullable=True),
    sa.Column('contact_phone', sa.String(), nullable=True),
    sa.Column('commission_balance', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_partners_user_id_users')),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id')
    )
    op.create_table('listings',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('farmer_id', sa.UUID(), nullable=False),
    sa.Column('product', sa.String(), nullable=False),
    sa.Column('price', sa.Integer(), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('status', sa.Enum('active', 'sold_out', 'inactive', name='listingstatus'), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['farmer_id'], ['users.id'], name=op.f('fk_listings_farmer_id_users')),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_listings_farmer_id'), 'listings', ['farmer_id'], unique=False)
    op.create_table('referrals',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('farmer_id', sa.UUID(), nullable=False),
    sa.Column('partner_id', sa.UUID(), nullable=False),
    sa.Column('status', sa.Enum('pending', 'completed', 'cancelled', name='referralstatus'), nullable=False),
    sa.Column('transaction_amount', sa.Integer(), nullable=False),
    sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['farmer_id'], ['users.id'], name=op.f('fk_referrals_farmer_id_users')),
    sa.ForeignKeyConstraint(['partner_id'], ['partners.id'], name=op.f('fk_referrals_partner_id_partners')),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('farmer_id')
    )
    op.create_index(op.f('ix_referrals_partner_id'), 'referrals', ['partner_id'], unique=False)
    op.create_table('orders',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('buyer_id', sa.UUID(), nullable=False),
    sa.Column('total', sa.Integer(), nullable=False),
    sa.Column('currency', sa.String(), nullable=False),
    sa.Column('status', sa.Enum('pending', 'paid', 'delivered', 'completed', 'cancelled', name='orderstatus'), nullable=False),
    sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['buyer_id'], ['users.id'], name=op.f('fk_orders_buyer_id_users')),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_orders_buyer_id'), 'orders', ['buyer_id'], unique=False)
    op.create_table('order_items',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('order_id', sa.UUID(), nullable=False),
    sa.Column('listing_id', sa.UUID(), nullable=False),
    sa.Column('farmer_id', sa.UUID(), nullable=False),
    sa.Column('quantity', sa.Integer(), nullable=False),
    sa.Column('price', sa.Integer(), nullable=False),
    sa.ForeignKeyConstraint(['order_id'], ['orders.id'], name=op.f('fk_order_items_order_id_orders')),
    sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], name=op.f('fk_order_items_listing_id_listings')),
    sa.ForeignKeyConstraint(['farmer_id'], ['users.id'], name=op.f('fk_order_items_farmer_id_users')),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_order_items_order_id'), 'order_items', ['order_id'], unique=False)
    op.create_table('transactions',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('type', sa.Enum('payment', 'commission', 'refund', 'withdrawal', 'platform_fee', name='transactiontype'), nullable=False),
    sa.Column('status', sa.Enum('pending', 'completed', 'failed', 'cancelled', name='transactionstatus'), nullable=False),
    sa.Column('amount', sa.Integer(), nullable=False),
    sa.Column('currency', sa.String(), nullable=False),
    sa.Column('reference', sa.String(), nullable=False),
    sa.Column('description', sa.String(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=True),
    sa.Column('partner_id', sa.UUID(), nullable=True),
    sa.Column('order_id', sa.UUID(), nullable=True),
    sa.Column('referral_id', sa.UUID(), nullable=True),
    sa.Column('payment_provider', sa.String(), nullable=False),
    sa.Column('payment_provider_reference', sa.String(), nullable=True),
    sa.Column('metadata_json', sa.JSON(), nullable=False),
    sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_transactions_user_id_users')),
    sa.ForeignKeyConstraint(['partner_id'], ['partners.id'], name=op.f('fk_transactions_partner_id_partners')),
    sa.ForeignKeyConstraint(['order_id'], ['orders.id'], name=op.f('fk_transactions_order_id_orders')),
    sa.ForeignKeyConstraint(['referral_id'], ['referrals.id'], name=op.f('fk_transactions_referral_id_referrals')),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('reference')
    )
    op.create_index('ix_transactions_user_created', 'transactions', ['user_id', 'created_at'], unique=False)
    op.create_index('ix_transactions_partner_created', 'transactions', ['partner_id', 'created_at'], unique=False)
    op.create_index('ix_transactions_status_type', 'transactions', ['status', 'type'], unique=False)
    op.create_table('commission_tiers',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('tier_code', sa.String(), nullable=False),
    sa.Column('name', sa.String(), nullable=False),
    sa.Column('description', sa.String(), nullable=False),
    sa.Column('min_transactions', sa.Integer(), nullable=False),
    sa.Column('max_transactions', sa.Integer(), nullable=True),
    sa.Column('commission_rate', sa.Numeric(precision=6, scale=4), nullable=False),
    sa.Column('bonus_rate', sa.Numeric(precision=6, scale=4), nullable=True),
    sa.Column('status', sa.Enum('active', 'inactive', 'archived', name='tierstatus'), nullable=False),
    sa.Column('effective_date', sa.DateTime(timezone=True), nullable=False),
    sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('tier_code')
    )
    op.create_index(op.f('ix_commission_tiers_status'), 'commission_tiers', ['status'], unique=False)
    op.create_table('commissions',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('commission_code', sa.String(), nullable=False),
    sa.Column('partner_id', sa.UUID(), nullable=False),
    sa.Column('referral_id', sa.UUID(), nullable=True),
    sa.Column('transaction_id', sa.UUID(), nullable=False),
    sa.Column('source_reference', sa.String(), nullable=False),
    sa.Column('transaction_type', sa.Enum('harvest', 'marketplace', 'fintech', 'subscription', 'other', name='commissionsource'), nullable=False),
    sa.Column('transaction_amount', sa.Integer(), nullable=False),
    sa.Column('commission_rate', sa.Numeric(precision=6, scale=4), nullable=False),
    sa.Column('commission_amount', sa.Integer(), nullable=False),
    sa.Column('currency', sa.String(), nullable=False),
    sa.Column('status', sa.Enum('pending', 'approved', 'paid', 'rejected', 'cancelled', name='commissionstatus'), nullable=False),
    sa.Column('payment_method', sa.Enum('bank_transfer', 'mobile_money', 'wallet', 'check', 'other', name='paymentmethod'), nullable=True),
    sa.Column('payment_reference', sa.String(), nullable=True),
    sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
    sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
    sa.Column('description', sa.String(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['partner_id'], ['partners.id'], name=op.f('fk_commissions_partner_id_partners')),
    sa.ForeignKeyConstraint(['referral_id'], ['referrals.id'], name=op.f('fk_commissions_referral_id_referrals')),
    sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], name=op.f('fk_commissions_transaction_id_transactions')),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('commission_code'),
    sa.UniqueConstraint('transaction_id')
    )
    op.create_index(op.f('ix_commissions_source_reference'), 'commissions', ['source_reference'], unique=False)
    op.create_index('ix_commissions_partner_status', 'commissions', ['partner_id', 'status'], unique=False)
    op.create_index('ix_commissions_due_status', 'commissions', ['due_date', 'status'], unique=False)
    op.create_table('commission_withdrawals',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('withdrawal_code', sa.String(), nullable=False),
    sa.Column('partner_id', sa.UUID(), nullable=False),
    sa.Column('amount', sa.Integer(), nullable=False),
    sa.Column('currency', sa.String(), nullable=False),
    sa.Column('payment_method', postgresql.ENUM('bank_transfer', 'mobile_money', 'wallet', 'check', 'other', name='paymentmethod', create_type=False), nullable=False),
    sa.Column('destination', sa.JSON(), nullable=False),
    sa.Column('processing_fee', sa.Integer(), nullable=False),
    sa.Column('net_amount', sa.Integer(), nullable=False),
    sa.Column('status', sa.Enum('pending', 'processing', 'completed', 'failed', 'cancelled', name='withdrawalstatus'), nullable=False),
    sa.Column('transaction_reference', sa.String(), nullable=False),
    sa.Column('failure_reason', sa.String(), nullable=True),
    sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
    sa.ForeignKeyConstraint(['partner_id'], ['partners.id'], name=op.f('fk_commission_withdrawals_partner_id_partners')),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('withdrawal_code'),
    sa.UniqueConstraint('transaction_reference')
    )
    op.create_index('ix_withdrawals_partner_status', 'commission_withdrawals', ['partner_id', 'status'], unique=False)
    op.create_table('credit_scores',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('user_id', sa.UUID(), nullable=False),
    sa.Column('score', sa.Integer(), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], name=op.f('fk_credit_scores_user_id_users')),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('user_id')
    )
    op.create_table('credit_score_entries',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('credit_score_id', sa.UUID(), nullable=False),
    sa.Column('transaction_reference', sa.String(), nullable=False),
    sa.Column('amount', sa.Integer(), nullable=False),
    sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['credit_score_id'], ['credit_scores.id'], name=op.f('fk_credit_score_entries_credit_score_id_credit_scores')),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('credit_score_id', 'transaction_reference', name='uq_credit_entry_reference')
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('credit_score_entries')
    op.drop_table('credit_scores')
    op.drop_index('ix_withdrawals_partner_status', table_name='commission_withdrawals')
    op.drop_table('commission_withdrawals')
    op.drop_index('ix_commissions_due_status', table_name='commissions')
    op.drop_index('ix_commissions_partner_status', table_name='commissions')
    op.drop_index(op.f('ix_commissions_source_reference'), table_name='commissions')
    op.drop_table('commissions')
    op.drop_index(op.f('ix_commission_tiers_status'), table_name='commission_tiers')
    op.drop_table('commission_tiers')
    op.drop_index('ix_transactions_status_type', table_name='transactions')
    op.drop_index('ix_transactions_partner_created', table_name='transactions')
    op.drop_index('ix_transactions_user_created', table_name='transactions')
    op.drop_table('transactions')
    op.drop_index(op.f('ix_order_items_order_id'), table_name='order_items')
    op.drop_table('order_items')
    op.drop_index(op.f('ix_orders_buyer_id'), table_name='orders')
    op.drop_table('orders')
    op.drop_index(op.f('ix_referrals_partner_id'), table_name='referrals')
    op.drop_table('referrals')
    op.drop_index(op.f('ix_listings_farmer_id'), table_name='listings')
    op.drop_table('listings')
    op.drop_table('partners')
    op.drop_table('users')
    for enum_name in ('withdrawalstatus', 'paymentmethod', 'commissionstatus', 'commissionsource',
                      'tierstatus', 'transactionstatus', 'transactiontype', 'orderstatus',
                      'referralstatus', 'listingstatus', 'userrole'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
