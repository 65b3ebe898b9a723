"""Initial stockflow schema: accounts, shop profile, products, stock logs

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. users / session_tokens (accounts and hashed session tokens)
2. shop_profiles, employees, units (per-account profile data)
3. products (stock in main units, unit snapshot, optimistic version_id)
4. incoming_stock_logs / outgoing_stock_logs (append-only stock history;
   outgoing rows are grouped into gate passes by gate_pass_id)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. ACCOUNTS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_email'), ['email'], unique=True)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_session_tokens_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_session_tokens_token_hash'), ['token_hash'], unique=True)
        batch_op.create_index(batch_op.f('ix_session_tokens_expires_at'), ['expires_at'], unique=False)
        batch_op.create_index('ix_session_tokens_user_active', ['user_id', 'is_revoked'], unique=False)

    # ==========================================================================
    # 2. SHOP PROFILE
    # ==========================================================================
    op.create_table('shop_profiles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('shop_name', sa.String(length=120), nullable=False, server_default=''),
        sa.Column('contact_number', sa.String(length=64), nullable=False, server_default=''),
        sa.Column('address', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id'),
        sqlite_autoincrement=True
    )

    op.create_table('employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['account_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('employees', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_employees_account_id'), ['account_id'], unique=False)
        batch_op.create_index('ix_employees_account_position', ['account_id', 'position'], unique=False)

    op.create_table('units',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('abbreviation', sa.String(length=16), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'code', name='uq_units_account_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('units', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_units_account_id'), ['account_id'], unique=False)

    # ==========================================================================
    # 3. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('stock_quantity', sa.Numeric(precision=20, scale=9), nullable=False, server_default='0'),
        sa.Column('unit_id', sa.Integer(), nullable=True),
        sa.Column('unit_name', sa.String(length=64), nullable=False),
        sa.Column('unit_abbreviation', sa.String(length=16), nullable=True),
        sa.Column('pieces_per_unit', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price_cents', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Out of Stock'),
        sa.Column('low_stock_threshold', sa.Numeric(precision=20, scale=9), nullable=True),
        sa.Column('image_url', sa.String(length=1024), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_products_stock_non_negative'),
        sa.CheckConstraint('pieces_per_unit >= 1', name='ck_products_pieces_per_unit'),
        sa.ForeignKeyConstraint(['account_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id', 'sku', name='uq_products_account_sku'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_products_account_id'), ['account_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_products_status'), ['status'], unique=False)
        batch_op.create_index('ix_products_account_name', ['account_id', 'name'], unique=False)
        batch_op.create_index('ix_products_account_active', ['account_id', 'is_active'], unique=False)

    # ==========================================================================
    # 4. STOCK LOGS (append-only)
    # ==========================================================================
    op.create_table('incoming_stock_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('quantity_added', sa.Numeric(precision=20, scale=9), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=True),
        sa.Column('unit_name', sa.String(length=64), nullable=False),
        sa.Column('unit_abbreviation', sa.String(length=16), nullable=True),
        sa.Column('arrival_date', sa.Date(), nullable=False),
        sa.Column('po_number', sa.String(length=64), nullable=True),
        sa.Column('supplier', sa.String(length=120), nullable=True),
        sa.Column('logged_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('incoming_stock_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_incoming_stock_logs_account_id'), ['account_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_incoming_stock_logs_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_incoming_stock_logs_logged_at'), ['logged_at'], unique=False)
        batch_op.create_index('ix_incoming_logs_account_logged', ['account_id', 'logged_at'], unique=False)

    op.create_table('outgoing_stock_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=True),
        sa.Column('quantity_removed', sa.Numeric(precision=20, scale=9), nullable=False),
        sa.Column('unit_mode', sa.String(length=16), nullable=False, server_default='main'),
        sa.Column('stock_delta', sa.Numeric(precision=20, scale=9), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=True),
        sa.Column('unit_name', sa.String(length=64), nullable=False),
        sa.Column('unit_abbreviation', sa.String(length=16), nullable=True),
        sa.Column('destination', sa.String(length=255), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('gate_pass_id', sa.String(length=32), nullable=False),
        sa.Column('issued_to', sa.String(length=120), nullable=True),
        sa.Column('dispatch_date', sa.Date(), nullable=True),
        sa.Column('logged_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('outgoing_stock_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_outgoing_stock_logs_account_id'), ['account_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_outgoing_stock_logs_product_id'), ['product_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_outgoing_stock_logs_gate_pass_id'), ['gate_pass_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_outgoing_stock_logs_logged_at'), ['logged_at'], unique=False)
        batch_op.create_index('ix_outgoing_logs_account_pass', ['account_id', 'gate_pass_id'], unique=False)
        batch_op.create_index('ix_outgoing_logs_account_logged', ['account_id', 'logged_at'], unique=False)


def downgrade():
    op.drop_table('outgoing_stock_logs')
    op.drop_table('incoming_stock_logs')
    op.drop_table('products')
    op.drop_table('units')
    op.drop_table('employees')
    op.drop_table('shop_profiles')
    op.drop_table('session_tokens')
    op.drop_table('users')
