"""Order engine schema: tenants, products, stock, dining tables, orders, invoices

Revision ID: 001_order_engine_schema
Revises: 
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = '001_order_engine_schema'
down_revision = None

table_status = sa.Enum('AVAILABLE', 'OCCUPIED', 'RESERVED', 'CLEANING', 'BLOCKED', name='tablestatus')
payment_type = sa.Enum('CASH', 'UPI', 'MIXED', name='paymenttype')


def upgrade():
    op.create_table(
        'tenants',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, index=True),
        sa.Column('slug', sa.String(), nullable=False, unique=True, index=True),
        sa.Column('settings', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', index=True),
    )

    op.create_table(
        'products',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('cost_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('low_stock_threshold', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', index=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'stock_records',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False, index=True),
        sa.Column('location_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('product_id', 'location_id', name='uq_stock_product_location'),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_quantity_non_negative'),
    )

    op.create_table(
        'dining_tables',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='4'),
        sa.Column('area', sa.String(100), nullable=True),
        sa.Column('status', table_status, nullable=False, server_default='AVAILABLE', index=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true', index=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('location_id', postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column('table_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('dining_tables.id'), nullable=True, index=True),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('cash_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('upi_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('payment_type', payment_type, nullable=False, index=True),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default='false', index=True),
        sa.Column('sold_by', sa.String(120), nullable=True),
        sa.Column('sale_date', sa.DateTime(), nullable=False, index=True),
        sa.Column('opened_at', sa.DateTime(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, index=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint('cash_amount >= 0 AND upi_amount >= 0', name='ck_order_payment_non_negative'),
    )

    op.create_table(
        'order_line_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('product_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('products.id'), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('cost_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_line_item_quantity_positive'),
    )

    op.create_table(
        'invoice_counters',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('branch_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('branch_key', sa.String(64), nullable=False, server_default=''),
        sa.Column('period', sa.String(16), nullable=False),
        sa.Column('last_serial', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('tenant_id', 'branch_key', 'period', name='uq_invoice_counter_scope'),
        sa.CheckConstraint('last_serial >= 0', name='ck_invoice_counter_non_negative'),
    )

    op.create_table(
        'invoices',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False, index=True),
        sa.Column('branch_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('branch_key', sa.String(64), nullable=False, server_default=''),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id'), nullable=False, index=True),
        sa.Column('invoice_number', sa.String(64), nullable=False, index=True),
        sa.Column('invoice_prefix', sa.String(20), nullable=False),
        sa.Column('invoice_serial', sa.Integer(), nullable=False),
        sa.Column('invoice_period', sa.String(16), nullable=False),
        sa.Column('customer_name', sa.String(200), nullable=True),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('customer_gstin', sa.String(50), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('total', sa.Numeric(14, 2), nullable=False),
        sa.Column('document_url', sa.String(500), nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, index=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('order_id', name='uq_invoice_order'),
        sa.UniqueConstraint('tenant_id', 'branch_key', 'invoice_number', name='uq_invoice_branch_number'),
    )


def downgrade():
    op.drop_table('invoices')
    op.drop_table('invoice_counters')
    op.drop_table('order_line_items')
    op.drop_table('orders')
    op.drop_table('dining_tables')
    op.drop_table('stock_records')
    op.drop_table('products')
    op.drop_table('tenants')
    payment_type.drop(op.get_bind(), checkfirst=True)
    table_status.drop(op.get_bind(), checkfirst=True)
