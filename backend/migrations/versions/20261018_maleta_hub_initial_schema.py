"""maleta hub initial schema

Revision ID: mh001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the consignment schema from scratch:
- representatives: consignees carrying a maleta
- products: catalog with central stock counter
- consignment_cycles: 60-day consignment periods and their settlements
- movements: append-only consignment ledger
- seller_rankings: cumulative per-representative aggregate fed by settlements
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'mh001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # representatives
    # ============================================================================
    op.create_table(
        'representatives',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('city', sa.String(length=120), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('maleta_status', sa.String(length=16), nullable=False, server_default='IN_FIELD'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_representatives_active_name', 'representatives', ['is_active', 'name'])

    # ============================================================================
    # products: central stock is a stored counter moved only by the ledger
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('category', sa.String(length=32), nullable=False, server_default='Brincos'),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_category_active', 'products', ['category', 'is_active'])

    # ============================================================================
    # consignment_cycles
    # ============================================================================
    op.create_table(
        'consignment_cycles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('representative_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='OPEN'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('due_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('settled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('settlement_key', sa.String(length=128), nullable=True),
        sa.Column('total_sales_cents', sa.Integer(), nullable=True),
        sa.Column('commission_rate_bps', sa.Integer(), nullable=True),
        sa.Column('commission_cents', sa.Integer(), nullable=True),
        sa.Column('net_profit_cents', sa.Integer(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['representative_id'], ['representatives.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('settlement_key', name='uq_cycles_settlement_key'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_consignment_cycles_representative_id', 'consignment_cycles', ['representative_id'])
    op.create_index('ix_consignment_cycles_status', 'consignment_cycles', ['status'])
    op.create_index('ix_cycles_rep_status', 'consignment_cycles', ['representative_id', 'status'])

    # ============================================================================
    # movements: append-only ledger (no UPDATE/DELETE through the application)
    # ============================================================================
    op.create_table(
        'movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('representative_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('cycle_id', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('unit_value_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('adjustment_target', sa.String(length=16), nullable=True),
        sa.Column('client_name', sa.String(length=255), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['representative_id'], ['representatives.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['cycle_id'], ['consignment_cycles.id']),
        sa.CheckConstraint('quantity >= 0', name='ck_movements_quantity_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_movements_representative_id', 'movements', ['representative_id'])
    op.create_index('ix_movements_product_id', 'movements', ['product_id'])
    op.create_index('ix_movements_cycle_id', 'movements', ['cycle_id'])
    op.create_index('ix_movements_type', 'movements', ['type'])
    op.create_index('ix_movements_occurred_at', 'movements', ['occurred_at'])
    op.create_index('ix_movements_rep_occurred', 'movements', ['representative_id', 'occurred_at'])
    op.create_index('ix_movements_rep_product_type', 'movements', ['representative_id', 'product_id', 'type'])

    # ============================================================================
    # seller_rankings: one row per (organization_key, representative)
    # ============================================================================
    op.create_table(
        'seller_rankings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('organization_key', sa.String(length=64), nullable=False),
        sa.Column('representative_id', sa.Integer(), nullable=False),
        sa.Column('total_sales_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_commission_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cycles_settled', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['representative_id'], ['representatives.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_key', 'representative_id', name='uq_rankings_org_rep'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_seller_rankings_organization_key', 'seller_rankings', ['organization_key'])
    op.create_index('ix_seller_rankings_representative_id', 'seller_rankings', ['representative_id'])


def downgrade():
    op.drop_table('seller_rankings')
    op.drop_table('movements')
    op.drop_table('consignment_cycles')
    op.drop_table('products')
    op.drop_table('representatives')
