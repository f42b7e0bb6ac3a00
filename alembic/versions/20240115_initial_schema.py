"""Initial schema: reports, activities, counters

Revision ID: 001_initial
Revises:
Create Date: 2024-01-15 00:00:00.000000

Reports are stored document-style: `document` holds the full report JSON and
the remaining columns mirror the fields used for filtering, sorting and
statistics. `incident_types` is comma-delimited with surrounding commas
(",harassment,threats,") so membership is a LIKE '%,type,%' test.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create report, activity and counter tables."""
    op.create_table(
        'reports',
        sa.Column('case_id', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('severity', sa.String(length=16), nullable=False),
        sa.Column('severity_rank', sa.Integer(), nullable=False),
        sa.Column('is_anonymous', sa.Boolean(), nullable=False),
        sa.Column('is_emergency', sa.Boolean(), nullable=False),
        sa.Column('incident_types', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('reporter_name', sa.String(length=255), nullable=True),
        sa.Column('reporter_email', sa.String(length=255), nullable=True),
        sa.Column('action_taken', sa.Text(), nullable=True),
        sa.Column('assigned_to', sa.String(length=100), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('document', sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint('case_id')
    )
    op.create_index(op.f('ix_reports_case_id'), 'reports', ['case_id'], unique=False)
    op.create_index(op.f('ix_reports_status'), 'reports', ['status'], unique=False)
    op.create_index(op.f('ix_reports_severity'), 'reports', ['severity'], unique=False)
    op.create_index(op.f('ix_reports_reporter_email'), 'reports', ['reporter_email'], unique=False)
    op.create_index(op.f('ix_reports_assigned_to'), 'reports', ['assigned_to'], unique=False)
    op.create_index(op.f('ix_reports_submitted_at'), 'reports', ['submitted_at'], unique=False)

    op.create_table(
        'activities',
        sa.Column('activity_id', sa.String(length=36), nullable=False),
        sa.Column('actor_id', sa.String(length=100), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('target_case_id', sa.String(length=32), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('activity_id')
    )
    op.create_index(op.f('ix_activities_actor_id'), 'activities', ['actor_id'], unique=False)
    op.create_index(op.f('ix_activities_action'), 'activities', ['action'], unique=False)
    op.create_index(op.f('ix_activities_target_case_id'), 'activities', ['target_case_id'], unique=False)
    op.create_index(op.f('ix_activities_timestamp'), 'activities', ['timestamp'], unique=False)

    op.create_table(
        'counters',
        sa.Column('scope', sa.String(length=64), nullable=False),
        sa.Column('value', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('scope')
    )


def downgrade() -> None:
    """Drop report, activity and counter tables."""
    op.drop_table('counters')

    op.drop_index(op.f('ix_activities_timestamp'), table_name='activities')
    op.drop_index(op.f('ix_activities_target_case_id'), table_name='activities')
    op.drop_index(op.f('ix_activities_action'), table_name='activities')
    op.drop_index(op.f('ix_activities_actor_id'), table_name='activities')
    op.drop_table('activities')

    op.drop_index(op.f('ix_reports_submitted_at'), table_name='reports')
    op.drop_index(op.f('ix_reports_assigned_to'), table_name='reports')
    op.drop_index(op.f('ix_reports_reporter_email'), table_name='reports')
    op.drop_index(op.f('ix_reports_severity'), table_name='reports')
    op.drop_index(op.f('ix_reports_status'), table_name='reports')
    op.drop_index(op.f('ix_reports_case_id'), table_name='reports')
    op.drop_table('reports')
