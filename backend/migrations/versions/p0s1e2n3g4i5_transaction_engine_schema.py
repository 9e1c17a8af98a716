"""transaction engine schema

Revision ID: p0s1e2n3g4i5
Revises:
Create Date: 2026-03-02 00:00:00.000000

Creates the complete posengine schema from scratch:
- stores, currencies, store_currencies: tenancy and accepted currencies
- products, product_prices, product_stores, product_store_prices: catalog
  prices and store-level stock
- customers, payment_modes: reference data read by the engine
- transactions, transaction_items, transaction_payments: the POS aggregate
- transaction_versions: append-only snapshot history
- transaction_sequences: per-store, per-day numbering
- inventory_logs: one row per stock movement
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'p0s1e2n3g4i5'
down_revision = None
branch_labels = None
depends_on = None


MONEY = sa.Numeric(14, 4)
PERCENT = sa.Numeric(5, 2)


def _now():
    return sa.text('CURRENT_TIMESTAMP')


def upgrade():
    # ============================================================================
    # Tenancy
    # ============================================================================
    op.create_table(
        'stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('tax_percentage', PERCENT, nullable=False, server_default='0'),
        sa.Column('tax_inclusive', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_stores_code'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'currencies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=3), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('symbol', sa.String(length=8), nullable=True),
        sa.Column('decimal_places', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_currencies_code'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'store_currencies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('currency_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['currency_id'], ['currencies.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'currency_id', name='uq_store_currencies'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_store_currencies_store_id', 'store_currencies', ['store_id'])
    op.create_index('ix_store_currencies_currency_id', 'store_currencies', ['currency_id'])

    # ============================================================================
    # Catalog & stock
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_number', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('variant_name', sa.String(length=255), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_number', name='uq_products_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_barcode', 'products', ['barcode'])

    op.create_table(
        'product_prices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('currency_id', sa.Integer(), nullable=False),
        sa.Column('unit_price', MONEY, nullable=True),
        sa.Column('cost_price', MONEY, nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['currency_id'], ['currencies.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'currency_id', name='uq_product_prices_product_currency'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_product_prices_product_id', 'product_prices', ['product_id'])
    op.create_index('ix_product_prices_currency_id', 'product_prices', ['currency_id'])

    op.create_table(
        'product_stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'store_id', name='uq_product_stores_product_store'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_product_stores_product_id', 'product_stores', ['product_id'])
    op.create_index('ix_product_stores_store_id', 'product_stores', ['store_id'])

    op.create_table(
        'product_store_prices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_store_id', sa.Integer(), nullable=False),
        sa.Column('currency_id', sa.Integer(), nullable=False),
        sa.Column('unit_price', MONEY, nullable=True),
        sa.Column('cost_price', MONEY, nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(['product_store_id'], ['product_stores.id']),
        sa.ForeignKeyConstraint(['currency_id'], ['currencies.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_store_id', 'currency_id', name='uq_product_store_prices_currency'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_product_store_prices_product_store_id', 'product_store_prices', ['product_store_id'])
    op.create_index('ix_product_store_prices_currency_id', 'product_store_prices', ['currency_id'])

    # ============================================================================
    # Customers & payment modes
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=128), nullable=False),
        sa.Column('last_name', sa.String(length=128), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('discount_percentage', PERCENT, nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_is_active', 'customers', ['is_active'])

    op.create_table(
        'payment_modes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_payment_modes_name'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # transactions: POS aggregate root
    # ============================================================================
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_number', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('currency_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='DRAFT'),
        sa.Column('checkout_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('subtotal', MONEY, nullable=False, server_default='0'),
        sa.Column('offer_discount', MONEY, nullable=False, server_default='0'),
        sa.Column('bundle_discount', MONEY, nullable=False, server_default='0'),
        sa.Column('minimum_spend_discount', MONEY, nullable=False, server_default='0'),
        sa.Column('customer_discount', MONEY, nullable=False, server_default='0'),
        sa.Column('manual_discount', MONEY, nullable=False, server_default='0'),
        sa.Column('tax_percentage', PERCENT, nullable=False, server_default='0'),
        sa.Column('tax_inclusive', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('tax_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('total', MONEY, nullable=False, server_default='0'),
        sa.Column('amount_paid', MONEY, nullable=False, server_default='0'),
        sa.Column('refund_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('balance_due', MONEY, nullable=False, server_default='0'),
        sa.Column('change_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('customer_discount_percentage', PERCENT, nullable=True),
        sa.Column('manual_discount_type', sa.String(length=16), nullable=True),
        sa.Column('manual_discount_value', MONEY, nullable=True),
        sa.Column('bundle_offer_id', sa.Integer(), nullable=True),
        sa.Column('bundle_offer_name', sa.String(length=255), nullable=True),
        sa.Column('minimum_spend_offer_id', sa.Integer(), nullable=True),
        sa.Column('minimum_spend_offer_name', sa.String(length=255), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('version_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.Column('voided_by', sa.Integer(), nullable=True),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['currency_id'], ['currencies.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_number', name='uq_transactions_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transactions_store_id', 'transactions', ['store_id'])
    op.create_index('ix_transactions_employee_id', 'transactions', ['employee_id'])
    op.create_index('ix_transactions_customer_id', 'transactions', ['customer_id'])
    op.create_index('ix_transactions_status', 'transactions', ['status'])
    op.create_index('ix_transactions_store_status_created', 'transactions', ['store_id', 'status', 'created_at'])

    op.create_table(
        'transaction_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('product_number', sa.String(length=64), nullable=False),
        sa.Column('variant_name', sa.String(length=255), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('cost_price', MONEY, nullable=True),
        sa.Column('unit_price', MONEY, nullable=False),
        sa.Column('offer_id', sa.Integer(), nullable=True),
        sa.Column('offer_name', sa.String(length=255), nullable=True),
        sa.Column('offer_discount_type', sa.String(length=16), nullable=True),
        sa.Column('offer_discount_value', MONEY, nullable=True),
        sa.Column('offer_discount_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('offer_is_combinable', sa.Boolean(), nullable=True),
        sa.Column('offer_discount', MONEY, nullable=False, server_default='0'),
        sa.Column('customer_discount_percentage', PERCENT, nullable=True),
        sa.Column('customer_discount_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('line_subtotal', MONEY, nullable=False, server_default='0'),
        sa.Column('line_discount', MONEY, nullable=False, server_default='0'),
        sa.Column('line_total', MONEY, nullable=False, server_default='0'),
        sa.Column('is_refunded', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('refunded_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('refund_reason', sa.String(length=255), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transaction_items_transaction_id', 'transaction_items', ['transaction_id'])
    op.create_index('ix_transaction_items_product_id', 'transaction_items', ['product_id'])
    op.create_index('ix_transaction_items_txn_product', 'transaction_items', ['transaction_id', 'product_id'])

    op.create_table(
        'transaction_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('payment_mode_id', sa.Integer(), nullable=False),
        sa.Column('payment_mode_name', sa.String(length=64), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('payment_data', sa.JSON(), nullable=True),
        sa.Column('row_number', sa.Integer(), nullable=False),
        sa.Column('balance_after', MONEY, nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id']),
        sa.ForeignKeyConstraint(['payment_mode_id'], ['payment_modes.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transaction_payments_transaction_id', 'transaction_payments', ['transaction_id'])

    # ============================================================================
    # transaction_versions: append-only history
    # ============================================================================
    op.create_table(
        'transaction_versions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('change_type', sa.String(length=32), nullable=False),
        sa.Column('changed_by', sa.Integer(), nullable=False),
        sa.Column('change_summary', sa.String(length=500), nullable=True),
        sa.Column('snapshot_items', sa.JSON(), nullable=False),
        sa.Column('snapshot_payments', sa.JSON(), nullable=False),
        sa.Column('snapshot_totals', sa.JSON(), nullable=False),
        sa.Column('diff_data', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_id', 'version_number', name='uq_transaction_versions_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transaction_versions_transaction_id', 'transaction_versions', ['transaction_id'])

    op.create_table(
        'transaction_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'business_date', name='uq_transaction_sequences_store_date'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transaction_sequences_store_id', 'transaction_sequences', ['store_id'])

    # ============================================================================
    # inventory_logs: one row per stock movement
    # ============================================================================
    op.create_table(
        'inventory_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('activity_code', sa.String(length=4), nullable=False),
        sa.Column('quantity_in', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_out', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_quantity', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=True),
        sa.Column('stocktake_id', sa.Integer(), nullable=True),
        sa.Column('delivery_order_id', sa.Integer(), nullable=True),
        sa.Column('purchase_order_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=_now()),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_logs_product_id', 'inventory_logs', ['product_id'])
    op.create_index('ix_inventory_logs_store_id', 'inventory_logs', ['store_id'])
    op.create_index('ix_inventory_logs_activity_code', 'inventory_logs', ['activity_code'])
    op.create_index('ix_inventory_logs_transaction_id', 'inventory_logs', ['transaction_id'])
    op.create_index('ix_inventory_logs_stocktake_id', 'inventory_logs', ['stocktake_id'])
    op.create_index('ix_inventory_logs_delivery_order_id', 'inventory_logs', ['delivery_order_id'])
    op.create_index('ix_inventory_logs_purchase_order_id', 'inventory_logs', ['purchase_order_id'])
    op.create_index('ix_inventory_logs_created_at', 'inventory_logs', ['created_at'])
    op.create_index(
        'ix_inventory_logs_store_product_created', 'inventory_logs', ['store_id', 'product_id', 'created_at']
    )


def downgrade():
    op.drop_table('inventory_logs')
    op.drop_table('transaction_sequences')
    op.drop_table('transaction_versions')
    op.drop_table('transaction_payments')
    op.drop_table('transaction_items')
    op.drop_table('transactions')
    op.drop_table('payment_modes')
    op.drop_table('customers')
    op.drop_table('product_store_prices')
    op.drop_table('product_stores')
    op.drop_table('product_prices')
    op.drop_table('products')
    op.drop_table('store_currencies')
    op.drop_table('currencies')
    op.drop_table('stores')
