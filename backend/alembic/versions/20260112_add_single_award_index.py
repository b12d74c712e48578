"""add_single_award_index

Revision ID: 002_single_award
Revises: 001_initial_schema
Create Date: 2026-01-12

Adds a partial unique index so an auction can hold at most one `awarded`
result row. Two concurrent award requests can no longer both commit.

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002_single_award'
down_revision: Union[str, None] = '001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Keep the most recently updated award per auction, demote the rest
    op.execute("""
        UPDATE auction_results r1
        SET status = 'not_awarded', updated_at = now()
        FROM auction_results r2
        WHERE r1.auction_id = r2.auction_id
          AND r1.status = 'awarded'
          AND r2.status = 'awarded'
          AND (r1.updated_at, r1.id) < (r2.updated_at, r2.id)
    """)

    op.create_index(
        'idx_results_one_award',
        'auction_results',
        ['auction_id'],
        unique=True,
        postgresql_where=sa.text("status = 'awarded'"),
    )


def downgrade() -> None:
    op.drop_index('idx_results_one_award', table_name='auction_results')
