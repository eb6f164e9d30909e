"""Add users and LemonSqueezy mirror tables

Revision ID: 20261018_000001
Revises:
Create Date: 2026-10-18

WHAT:
    Creates the initial schema:
    - users (caller identities resolved from the token `sub` claim)
    - customers (user -> LemonSqueezy customer mapping)
    - subscriptions, variants, products (local mirror of vendor resources)

WHY:
    Every vendor id carries a unique constraint so that webhook redeliveries
    and concurrent sync runs can never create a second row for the same
    subscription, variant or product.

REFERENCES:
    - backend/app/models.py (User, Customer, Subscription, Variant, Product)
    - backend/app/services/lemonsqueezy_sync_service.py::upsert_by_vendor_id
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261018_000001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # 1. Users
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # 2. Customers (created once per user, never updated)
    op.create_table(
        'customers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('lemonsqueezy_customer_id', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', name='uq_customer_user'),
        sa.UniqueConstraint('lemonsqueezy_customer_id', name='uq_customer_lemonsqueezy_id'),
    )
    op.create_index('ix_customers_user_id', 'customers', ['user_id'])

    # 3. Subscriptions
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('subscription_id', sa.String(), nullable=False),
        sa.Column('lemonsqueezy_customer_id', sa.String(), nullable=True),
        sa.Column('variant_id', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('trial_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('trial_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('subscription_id', name='uq_subscription_vendor_id'),
    )
    op.create_index('ix_subscriptions_subscription_id', 'subscriptions', ['subscription_id'])

    # 4. Products
    op.create_table(
        'products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.String(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image', sa.String(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', name='uq_product_vendor_id'),
    )
    op.create_index('ix_products_product_id', 'products', ['product_id'])

    # 5. Variants (product_id is the vendor id, not a local FK)
    op.create_table(
        'variants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('variant_id', sa.String(), nullable=False),
        sa.Column('product_id', sa.String(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('currency', sa.String(), nullable=False, server_default='USD'),
        sa.Column('unit_amount', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(), nullable=True),
        sa.Column('interval', sa.String(), nullable=True),
        sa.Column('interval_count', sa.Integer(), nullable=True),
        sa.Column('trial_period_days', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variant_id', name='uq_variant_vendor_id'),
    )
    op.create_index('ix_variants_variant_id', 'variants', ['variant_id'])


def downgrade() -> None:
    op.drop_index('ix_variants_variant_id', table_name='variants')
    op.drop_table('variants')
    op.drop_index('ix_products_product_id', table_name='products')
    op.drop_table('products')
    op.drop_index('ix_subscriptions_subscription_id', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('ix_customers_user_id', table_name='customers')
    op.drop_table('customers')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
