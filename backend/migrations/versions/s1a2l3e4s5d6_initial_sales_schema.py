"""initial sales schema

Revision ID: s1a2l3e4s5d6
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the SalesDesk schema from scratch:
- products: stock entries (guarded on-hand counter, never negative)
- sales: sale headers with soft delete and optimistic locking
- sale_items: immutable line items
- payment_installments: installment schedule with pending/paid/overdue status
- stock_movements: append-only stock journal
- low_stock_alerts: open/resolved alerts per stock code
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 's1a2l3e4s5d6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # products: stock entries
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('stock_code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sale_price_cents', sa.Integer(), nullable=True),
        sa.Column('vat_rate_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_on_hand', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_stock_level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stock_code'),
        sa.CheckConstraint('quantity_on_hand >= 0', name='ck_products_quantity_non_negative'),
        sa.CheckConstraint('min_stock_level >= 0', name='ck_products_min_stock_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_name', 'products', ['name'], unique=False)
    op.create_index('ix_products_deleted_at', 'products', ['deleted_at'], unique=False)

    # ============================================================================
    # sales: sale headers
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_ref', sa.String(length=64), nullable=True),
        sa.Column('sale_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('final_amount_cents', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('is_installment', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('installment_count', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_status', 'sales', ['status'], unique=False)
    op.create_index('ix_sales_status_date', 'sales', ['status', 'sale_date'], unique=False)
    op.create_index('ix_sales_customer_ref', 'sales', ['customer_ref'], unique=False)
    op.create_index('ix_sales_deleted_at', 'sales', ['deleted_at'], unique=False)

    # ============================================================================
    # sale_items: immutable line items
    # ============================================================================
    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('stock_code', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('tax_rate_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_rate_bps', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('line_net_cents', sa.Integer(), nullable=False),
        sa.Column('line_tax_cents', sa.Integer(), nullable=False),
        sa.Column('line_gross_cents', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.ForeignKeyConstraint(['stock_code'], ['products.stock_code']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity >= 1', name='ck_sale_items_quantity_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'], unique=False)

    # ============================================================================
    # payment_installments: schedule + status
    # ============================================================================
    op.create_table(
        'payment_installments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id', 'sequence', name='uq_installments_sale_sequence'),
        sa.CheckConstraint('amount_cents >= 0', name='ck_installments_amount_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payment_installments_sale_id', 'payment_installments', ['sale_id'], unique=False)
    op.create_index('ix_installments_status_due', 'payment_installments', ['status', 'due_date'], unique=False)

    # ============================================================================
    # stock_movements: append-only stock journal
    # ============================================================================
    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('stock_code', sa.String(length=64), nullable=False),
        sa.Column('quantity_delta', sa.Integer(), nullable=False),
        sa.Column('quantity_after', sa.Integer(), nullable=False),
        sa.Column('movement_type', sa.String(length=32), nullable=False),
        sa.Column('reference_sale_id', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['stock_code'], ['products.stock_code']),
        sa.ForeignKeyConstraint(['reference_sale_id'], ['sales.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_movements_movement_type', 'stock_movements', ['movement_type'], unique=False)
    op.create_index('ix_stock_movements_code_occurred', 'stock_movements', ['stock_code', 'occurred_at'], unique=False)
    op.create_index('ix_stock_movements_sale_type', 'stock_movements', ['reference_sale_id', 'movement_type'], unique=False)

    # ============================================================================
    # low_stock_alerts
    # ============================================================================
    op.create_table(
        'low_stock_alerts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('stock_code', sa.String(length=64), nullable=False),
        sa.Column('current_stock_at_alert', sa.Integer(), nullable=False),
        sa.Column('min_stock_level_at_alert', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['stock_code'], ['products.stock_code']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_low_stock_alerts_status', 'low_stock_alerts', ['status'], unique=False)
    op.create_index('ix_low_stock_alerts_code_status', 'low_stock_alerts', ['stock_code', 'status'], unique=False)


def downgrade():
    op.drop_index('ix_low_stock_alerts_code_status', table_name='low_stock_alerts')
    op.drop_index('ix_low_stock_alerts_status', table_name='low_stock_alerts')
    op.drop_table('low_stock_alerts')

    op.drop_index('ix_stock_movements_sale_type', table_name='stock_movements')
    op.drop_index('ix_stock_movements_code_occurred', table_name='stock_movements')
    op.drop_index('ix_stock_movements_movement_type', table_name='stock_movements')
    op.drop_table('stock_movements')

    op.drop_index('ix_installments_status_due', table_name='payment_installments')
    op.drop_index('ix_payment_installments_sale_id', table_name='payment_installments')
    op.drop_table('payment_installments')

    op.drop_index('ix_sale_items_sale_id', table_name='sale_items')
    op.drop_table('sale_items')

    op.drop_index('ix_sales_deleted_at', table_name='sales')
    op.drop_index('ix_sales_customer_ref', table_name='sales')
    op.drop_index('ix_sales_status_date', table_name='sales')
    op.drop_index('ix_sales_status', table_name='sales')
    op.drop_table('sales')

    op.drop_index('ix_products_deleted_at', table_name='products')
    op.drop_index('ix_products_name', table_name='products')
    op.drop_table('products')
