"""Initial schema: containers, accounts, holdings

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('containers',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('scope_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_containers_scope_id', 'containers', ['scope_id'])

    op.create_table('accounts',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('container_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('institution', sa.String(length=200), nullable=False, server_default=''),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('balance', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
        sa.Column('display_preference', sa.String(length=20), nullable=False, server_default='consolidated'),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['container_id'], ['containers.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_accounts_container_id', 'accounts', ['container_id'])

    op.create_table('holdings',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('container_id', sa.String(length=64), nullable=False),
        sa.Column('account_id', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=200), nullable=False, server_default=''),
        sa.Column('symbol', sa.String(length=32), nullable=True),
        sa.Column('instrument_type', sa.String(length=50), nullable=False, server_default='generic_asset'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=24, scale=8), nullable=False, server_default='0'),
        sa.Column('current_value', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
        sa.Column('cost_basis', sa.Numeric(precision=18, scale=4), nullable=True),
        sa.Column('day_change', sa.Numeric(precision=18, scale=4), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['container_id'], ['containers.id']),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_holdings_container_position', 'holdings', ['container_id', 'position'])


def downgrade():
    op.drop_index('ix_holdings_container_position', table_name='holdings')
    op.drop_table('holdings')
    op.drop_index('ix_accounts_container_id', table_name='accounts')
    op.drop_table('accounts')
    op.drop_index('ix_containers_scope_id', table_name='containers')
    op.drop_table('containers')
