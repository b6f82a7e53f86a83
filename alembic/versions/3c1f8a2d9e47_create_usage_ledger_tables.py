"""create_usage_ledger_tables

Revision ID: 3c1f8a2d9e47
Revises:
Create Date: 2026-10-18 09:42:11.318205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3c1f8a2d9e47'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

operation_type = postgresql.ENUM(
    'SCAN_IMAGE', 'CHAT', 'SHOPPING_LIST', 'BODY_SCAN', name='operationtype', create_type=False
)
reservation_status = postgresql.ENUM(
    'PENDING', 'COMMITTED', 'RELEASED', name='reservationstatus', create_type=False
)


def upgrade() -> None:
    # Shared by several tables, so created once up front
    operation_type.create(op.get_bind(), checkfirst=True)
    reservation_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        'usage_periods',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('ceiling_cents', sa.Integer(), nullable=False),
        sa.Column('total_cost_cents', sa.Integer(), nullable=False),
        sa.Column('reserved_cents', sa.Integer(), nullable=False),
        sa.Column('limit_reached', sa.Boolean(), nullable=False),
        sa.Column('limit_reached_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'year', 'month', name='uq_user_year_month'),
        sa.CheckConstraint('ceiling_cents > 0', name='ck_ceiling_positive'),
        sa.CheckConstraint('total_cost_cents >= 0', name='ck_total_non_negative'),
        sa.CheckConstraint('reserved_cents >= 0', name='ck_reserved_non_negative'),
    )
    op.create_index('ix_usage_periods_user_id', 'usage_periods', ['user_id'])

    op.create_table(
        'usage_category_totals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('operation_type', operation_type, nullable=False),
        sa.Column('cost_cents', sa.Integer(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False),
        sa.Column('cached_count', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['period_id'], ['usage_periods.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period_id', 'operation_type', name='uq_period_operation_type'),
    )
    op.create_index('ix_usage_category_totals_period_id', 'usage_category_totals', ['period_id'])

    op.create_table(
        'usage_charges',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=128), nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('operation_type', operation_type, nullable=False),
        sa.Column('cost_cents', sa.Integer(), nullable=False),
        sa.Column('was_cached', sa.Boolean(), nullable=False),
        sa.Column('reservation_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['period_id'], ['usage_periods.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key'),
    )
    op.create_index('ix_usage_charges_period_id', 'usage_charges', ['period_id'])
    op.create_index('ix_usage_charges_user_id', 'usage_charges', ['user_id'])

    op.create_table(
        'usage_reservations',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('period_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('operation_type', operation_type, nullable=False),
        sa.Column('estimated_cents', sa.Integer(), nullable=False),
        sa.Column('status', reservation_status, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['period_id'], ['usage_periods.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_usage_reservations_period_id', 'usage_reservations', ['period_id'])
    op.create_index('ix_usage_reservations_user_id', 'usage_reservations', ['user_id'])
    op.create_index('ix_usage_reservations_status', 'usage_reservations', ['status'])


def downgrade() -> None:
    op.drop_table('usage_reservations')
    op.drop_table('usage_charges')
    op.drop_table('usage_category_totals')
    op.drop_table('usage_periods')
    reservation_status.drop(op.get_bind(), checkfirst=True)
    operation_type.drop(op.get_bind(), checkfirst=True)
