"""create calendar tables

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '20261019_01'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EVENT_TYPES = ('fair', 'event', 'appointment', 'delivery', 'meeting')
EVENT_CATEGORIES = ('food_fair', 'corporate_event', 'private_event', 'delivery', 'meeting', 'other')
SYNC_STATUSES = ('not_synced', 'pending', 'synced', 'error')


def upgrade() -> None:
    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('customer_name', sa.String(255), nullable=True),
        sa.Column('delivery_address', sa.Text(), nullable=True),
        sa.Column('order_type', sa.Enum('delivery', 'pickup', 'dine_in', name='ordertype'), nullable=False, server_default='delivery'),
        sa.Column(
            'status',
            sa.Enum('pending', 'confirmed', 'preparing', 'ready', 'delivered', 'cancelled', name='orderstatus'),
            nullable=False,
            server_default='pending',
        ),
        sa.Column('scheduled_date', sa.DateTime(), nullable=True),
        sa.Column('delivery_date', sa.DateTime(), nullable=True),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_orders_scheduled_date', 'orders', ['scheduled_date'])

    op.create_table(
        'calendar_events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('account_id', sa.String(64), nullable=False, server_default='default'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('all_day', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('event_type', sa.Enum(*EVENT_TYPES, name='calendareventtype'), nullable=False),
        sa.Column('event_category', sa.Enum(*EVENT_CATEGORIES, name='calendareventcategory'), nullable=True),
        sa.Column('expected_attendees', sa.Integer(), nullable=True),
        sa.Column('products_to_bring', sa.Text(), nullable=True),
        sa.Column('special_requirements', sa.Text(), nullable=True),
        sa.Column('estimated_revenue', sa.Numeric(12, 2), nullable=True),
        sa.Column('google_event_id', sa.String(255), nullable=True),
        sa.Column('google_calendar_id', sa.String(255), nullable=False, server_default='primary'),
        sa.Column('sync_status', sa.Enum(*SYNC_STATUSES, name='calendarsyncstatus'), nullable=False, server_default='pending'),
        sa.Column('sync_error', sa.Text(), nullable=True),
        sa.Column('last_sync_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.String(255), nullable=True),
        sa.Column('assigned_to', sa.String(255), nullable=True),
        sa.Column('sync_version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('end_date IS NULL OR end_date >= start_date', name='ck_calendar_events_span'),
        sa.CheckConstraint('expected_attendees IS NULL OR expected_attendees >= 0', name='ck_calendar_events_attendees'),
        sa.CheckConstraint('estimated_revenue IS NULL OR estimated_revenue >= 0', name='ck_calendar_events_revenue'),
    )
    op.create_index('ix_calendar_events_account_id', 'calendar_events', ['account_id'])
    op.create_index('ix_calendar_events_start_date', 'calendar_events', ['start_date'])
    op.create_index('ix_calendar_events_google_event_id', 'calendar_events', ['google_event_id'])
    op.create_index('ix_calendar_events_sync_status', 'calendar_events', ['sync_status'])

    op.create_table(
        'calendar_provider_connections',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.String(64), nullable=False),
        sa.Column('provider', sa.Enum('google', name='calendarprovider'), nullable=False, server_default='google'),
        sa.Column('access_token', sa.Text(), nullable=True),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('expiry_date', sa.DateTime(), nullable=True),
        sa.Column('scope', sa.Text(), nullable=True),
        sa.Column('token_type', sa.String(32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index(
        'ix_calendar_provider_connections_account_id',
        'calendar_provider_connections',
        ['account_id'],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index('ix_calendar_provider_connections_account_id', table_name='calendar_provider_connections')
    op.drop_table('calendar_provider_connections')
    op.drop_index('ix_calendar_events_sync_status', table_name='calendar_events')
    op.drop_index('ix_calendar_events_google_event_id', table_name='calendar_events')
    op.drop_index('ix_calendar_events_start_date', table_name='calendar_events')
    op.drop_index('ix_calendar_events_account_id', table_name='calendar_events')
    op.drop_table('calendar_events')
    op.drop_index('ix_orders_scheduled_date', table_name='orders')
    op.drop_table('orders')
    if op.get_bind().dialect.name == "postgresql":
        for enum_name in ('calendarprovider', 'calendarsyncstatus', 'calendareventcategory', 'calendareventtype', 'orderstatus', 'ordertype'):
            op.execute(f"DROP TYPE IF EXISTS {enum_name}")
