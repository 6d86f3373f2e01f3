"""Initial schema - store integrations, products, sync logs and stock alerts

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Enum columns are stored as plain strings (native_enum=False on the models)
    op.create_table(
        'store_integrations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('platform', sa.String(length=7), nullable=False, index=True),
        sa.Column('shop_url', sa.String(length=255), nullable=True),
        sa.Column('api_key', sa.String(length=255), nullable=True),
        sa.Column('api_secret', sa.Text(), nullable=True),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('marketplace_id', sa.String(length=64), nullable=True),
        sa.Column('shop_id', sa.String(length=64), nullable=True),
        sa.Column('additional_data', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), index=True),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('products_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_integration_id', sa.Integer(),
                  sa.ForeignKey('store_integrations.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('external_id', sa.String(length=64), nullable=False, index=True),
        sa.Column('sku', sa.String(length=255), nullable=False, index=True),
        sa.Column('title', sa.String(length=512), nullable=False, server_default=''),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('price', sa.Numeric(10, 2), nullable=True),
        sa.Column('status', sa.String(length=8), nullable=False, server_default='active', index=True),
        sa.Column('image_url', sa.String(length=1024), nullable=True),
        sa.Column('external_url', sa.String(length=1024), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('variant_id', sa.String(length=64), nullable=True),
        sa.Column('inventory_item_id', sa.String(length=64), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('store_integration_id', 'external_id', name='uq_products_integration_external_id'),
    )

    op.create_table(
        'inventory_sync_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('store_integration_id', sa.Integer(),
                  sa.ForeignKey('store_integrations.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('product_id', sa.Integer(),
                  sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('kind', sa.String(length=6), nullable=False),
        sa.Column('trigger', sa.String(length=9), nullable=False, server_default='manual'),
        sa.Column('status', sa.String(length=11), nullable=False, server_default='in_progress', index=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('products_synced', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('products_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'stock_alerts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(),
                  sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.Integer(), nullable=False, index=True),
        sa.Column('threshold', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('notification_method', sa.String(length=7), nullable=False, server_default='email'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), index=True),
        sa.Column('status', sa.String(length=9), nullable=False, server_default='pending', index=True),
        sa.Column('triggered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('stock_alerts')
    op.drop_table('inventory_sync_logs')
    op.drop_table('products')
    op.drop_table('store_integrations')
