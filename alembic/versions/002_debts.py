"""Debts table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('debts',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('scope_id', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False, server_default=''),
        sa.Column('debt_type', sa.String(length=30), nullable=False, server_default='personal_loan'),
        sa.Column('institution', sa.String(length=200), nullable=False, server_default=''),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('current_balance', sa.Numeric(precision=18, scale=4), nullable=False, server_default='0'),
        sa.Column('principal', sa.Numeric(precision=18, scale=4), nullable=True),
        sa.Column('interest_rate', sa.Numeric(precision=8, scale=4), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_debts_scope_id', 'debts', ['scope_id'])


def downgrade():
    op.drop_index('ix_debts_scope_id', table_name='debts')
    op.drop_table('debts')
