"""initial_auction_schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-01-05

Creates users, auctions, invitations, the append-only bid log and the
per-bidder results table.

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_code', sa.String(20), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('company', sa.String(255), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='bidder'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('idx_users_role', 'users', ['role'])

    op.create_table(
        'auctions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('auction_code', sa.String(20), nullable=False, unique=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('sbu', sa.String(100), nullable=True),
        sa.Column('special_notices', sa.Text(), nullable=True),
        # Wall-clock schedule in the civil timezone, no offset stored
        sa.Column('auction_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('ceiling_price', sa.Numeric(15, 2), nullable=False),
        sa.Column('step_amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='LKR'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('approved_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('ceiling_price > 0', name='chk_auction_ceiling_positive'),
        sa.CheckConstraint('step_amount > 0', name='chk_auction_step_positive'),
        sa.CheckConstraint('step_amount < ceiling_price', name='chk_auction_step_below_ceiling'),
        sa.CheckConstraint('duration_minutes > 0', name='chk_auction_duration_positive'),
        sa.CheckConstraint("currency IN ('LKR', 'USD')", name='chk_auction_currency'),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'live', 'ended', 'cancelled')",
            name='chk_auction_status',
        ),
    )
    op.create_index('idx_auctions_status', 'auctions', ['status'])
    op.create_index('idx_auctions_schedule', 'auctions', ['auction_date', 'start_time'])

    op.create_table(
        'auction_bidders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('auction_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('auctions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('bidder_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('invited_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
    )
    op.create_index('idx_auction_bidders_pair', 'auction_bidders',
                    ['auction_id', 'bidder_id'], unique=True)

    # Append-only; sequence breaks ties between equal amount and bid_time
    op.create_table(
        'bids',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('sequence', sa.BigInteger(), sa.Identity(always=True),
                  nullable=False, unique=True),
        sa.Column('auction_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('auctions.id'), nullable=False),
        sa.Column('bidder_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('amount', sa.Numeric(15, 2), nullable=False),
        sa.Column('bid_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.CheckConstraint('amount > 0', name='chk_bid_amount_positive'),
    )
    op.create_index('idx_bids_auction_amount', 'bids', ['auction_id', 'amount', 'bid_time'])
    op.create_index('idx_bids_auction_bidder_time', 'bids', ['auction_id', 'bidder_id', 'bid_time'])

    op.create_table(
        'auction_results',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('auction_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('auctions.id'), nullable=False),
        sa.Column('bidder_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('disqualification_reason', sa.Text(), nullable=True),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        sa.Column('shortlisted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('short-listed', 'not-short-listed', 'awarded', "
            "'not_awarded', 'disqualified', 'cancel')",
            name='chk_result_status',
        ),
    )
    # Unique pair enables PostgreSQL UPSERT of result rows
    op.create_index('idx_results_auction_bidder', 'auction_results',
                    ['auction_id', 'bidder_id'], unique=True)


def downgrade() -> None:
    op.drop_index('idx_results_auction_bidder', table_name='auction_results')
    op.drop_table('auction_results')
    op.drop_index('idx_bids_auction_bidder_time', table_name='bids')
    op.drop_index('idx_bids_auction_amount', table_name='bids')
    op.drop_table('bids')
    op.drop_index('idx_auction_bidders_pair', table_name='auction_bidders')
    op.drop_table('auction_bidders')
    op.drop_index('idx_auctions_schedule', table_name='auctions')
    op.drop_index('idx_auctions_status', table_name='auctions')
    op.drop_table('auctions')
    op.drop_index('idx_users_role', table_name='users')
    op.drop_table('users')
