"""Initial schema - marketplace accounts, tokens, mappings, ledger and stock buckets

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-10-02

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UTC_NOW = sa.text("timezone('utc', now())")


def upgrade() -> None:
    op.create_table(
        'marketplace_accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('provider', sa.String(), nullable=False, server_default='ebay'),
        sa.Column('environment', sa.String(), nullable=False, server_default='production'),
        sa.Column('name', sa.String()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('client_id', sa.String()),
        sa.Column('client_secret', sa.String()),
        sa.Column('default_currency', sa.String(), server_default='EUR'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=UTC_NOW),
    )
    op.create_index('ix_marketplace_accounts_provider', 'marketplace_accounts', ['provider'])
    op.create_index('ix_marketplace_accounts_is_active', 'marketplace_accounts', ['is_active'])

    op.create_table(
        'oauth_tokens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('marketplace_account_id', sa.Integer(), sa.ForeignKey('marketplace_accounts.id'), nullable=False),
        sa.Column('provider', sa.String(), nullable=False, server_default='ebay'),
        sa.Column('environment', sa.String(), nullable=False, server_default='production'),
        sa.Column('access_token', sa.String()),
        sa.Column('refresh_token', sa.String()),
        sa.Column('expires_in', sa.Integer()),
        sa.Column('scopes', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=UTC_NOW),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=UTC_NOW),
    )
    op.create_index('ix_oauth_tokens_account_updated', 'oauth_tokens', ['marketplace_account_id', 'updated_at'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sku', sa.String()),
        sa.Column('name', sa.String()),
        sa.Column('parent_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=UTC_NOW),
    )
    op.create_index('ix_products_sku', 'products', ['sku'])
    op.create_index('ix_products_parent_id', 'products', ['parent_id'])

    op.create_table(
        'marketplace_products_map',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('provider', sa.String(), nullable=False, server_default='ebay'),
        sa.Column('marketplace_account_id', sa.Integer(), sa.ForeignKey('marketplace_accounts.id'), nullable=False),
        sa.Column('remote_sku', sa.String(), nullable=False),
        sa.Column('remote_id', sa.String()),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('mapping_status', sa.String(), nullable=False, server_default='linked'),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=UTC_NOW),
        sa.UniqueConstraint(
            'provider', 'marketplace_account_id', 'remote_sku',
            name='uq_marketplace_products_map_account_sku',
        ),
    )

    # The unique key is the idempotency ledger: one row per applied order line
    op.create_table(
        'marketplace_orders_processed',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('provider', sa.String(), nullable=False),
        sa.Column('marketplace_account_id', sa.Integer(), sa.ForeignKey('marketplace_accounts.id'), nullable=False),
        sa.Column('remote_order_id', sa.String(), nullable=False),
        sa.Column('remote_line_id', sa.String(), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=False, server_default=UTC_NOW),
        sa.UniqueConstraint(
            'provider', 'marketplace_account_id', 'remote_order_id', 'remote_line_id',
            name='uq_marketplace_orders_processed_line',
        ),
    )

    op.create_table(
        'stock_buckets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('channel_id', sa.String(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=UTC_NOW),
        sa.UniqueConstraint('product_id', 'channel_id', name='uq_stock_bucket_product_channel'),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_bucket_quantity_non_negative'),
    )
    op.create_index('ix_stock_buckets_product_id', 'stock_buckets', ['product_id'])


def downgrade() -> None:
    op.drop_index('ix_stock_buckets_product_id', table_name='stock_buckets')
    op.drop_table('stock_buckets')
    op.drop_table('marketplace_orders_processed')
    op.drop_table('marketplace_products_map')
    op.drop_index('ix_products_parent_id', table_name='products')
    op.drop_index('ix_products_sku', table_name='products')
    op.drop_table('products')
    op.drop_index('ix_oauth_tokens_account_updated', table_name='oauth_tokens')
    op.drop_table('oauth_tokens')
    op.drop_index('ix_marketplace_accounts_is_active', table_name='marketplace_accounts')
    op.drop_index('ix_marketplace_accounts_provider', table_name='marketplace_accounts')
    op.drop_table('marketplace_accounts')
