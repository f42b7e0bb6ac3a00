"""Mirror resolution fields onto reports

Revision ID: 002_resolution_columns
Revises: 001_initial
Create Date: 2024-03-01 00:00:00.000000

`resolved_by` backs per-admin statistics and `resolved_at` the average
response time in analytics. Existing rows are filled from the report document
the next time they are updated.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002_resolution_columns'
down_revision: Union[str, None] = '001_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add resolved_by and resolved_at to reports."""
    with op.batch_alter_table('reports') as batch_op:
        batch_op.add_column(sa.Column('resolved_by', sa.String(length=100), nullable=True))
        batch_op.add_column(sa.Column('resolved_at', sa.DateTime(), nullable=True))
        batch_op.create_index(batch_op.f('ix_reports_resolved_by'), ['resolved_by'], unique=False)


def downgrade() -> None:
    """Drop the resolution columns."""
    with op.batch_alter_table('reports') as batch_op:
        batch_op.drop_index(batch_op.f('ix_reports_resolved_by'))
        batch_op.drop_column('resolved_at')
        batch_op.drop_column('resolved_by')
