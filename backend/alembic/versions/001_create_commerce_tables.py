"""Create customers, replenishments and replenishment_payments tables

Revision ID: 001_create_commerce_tables
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_create_commerce_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False, unique=True),
        sa.Column('stripe_id', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('birthday', sa.Date(), nullable=True),
        sa.Column('loyalty_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )

    op.create_table(
        'replenishments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('scheduler_id', sa.String(255), nullable=False),
        sa.Column('next_job_id', sa.String(255), nullable=True),
        sa.Column('order_template', postgresql.JSONB(), nullable=False),
        sa.Column('interval', sa.Integer(), nullable=False),
        sa.Column('unit', sa.String(10), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('times', sa.Integer(), nullable=True),
        sa.Column('executions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('next_payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='scheduled'),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('interval > 0', name='ck_replenishments_interval_positive'),
        sa.CheckConstraint('times IS NULL OR times > 0', name='ck_replenishments_times_positive'),
        sa.CheckConstraint(
            "unit IN ('day', 'week', 'month', 'year', 'custom')",
            name='ck_replenishments_unit',
        ),
        sa.CheckConstraint(
            "status IN ('scheduled', 'active', 'canceled', 'finished', 'failed')",
            name='ck_replenishments_status',
        ),
    )
    op.create_index('idx_replenishments_scheduler_id', 'replenishments', ['scheduler_id'], unique=True)
    op.create_index(
        'idx_replenishments_customer',
        'replenishments',
        ['customer_id'],
        postgresql_where=sa.text('deleted_at IS NULL'),
    )

    op.create_table(
        'replenishment_payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('replenishment_id', sa.Integer(), sa.ForeignKey('replenishments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('executed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('succeeded', sa.Boolean(), nullable=False),
    )
    op.create_index('idx_replenishment_payments_replenishment', 'replenishment_payments', ['replenishment_id'])


def downgrade() -> None:
    op.drop_index('idx_replenishment_payments_replenishment', table_name='replenishment_payments')
    op.drop_table('replenishment_payments')
    op.drop_index('idx_replenishments_customer', table_name='replenishments')
    op.drop_index('idx_replenishments_scheduler_id', table_name='replenishments')
    op.drop_table('replenishments')
    op.drop_table('customers')
