"""Create meeting jobs and analysis results

Revision ID: 1c4e7a9b2d3f
Revises:
Create Date: 2025-06-02

Adds:
- meeting_jobs table tracking each uploaded meeting file and its status
- analysis_results table holding the transcript/summary per job
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '1c4e7a9b2d3f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JOB_STATUSES = ('PENDING', 'PROCESSING', 'COMPLETED', 'FAILED')


def upgrade() -> None:
    op.create_table(
        'meeting_jobs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=True),
        sa.Column('file_key', sa.String(length=500), nullable=True),
        sa.Column('file_url', sa.String(length=1000), nullable=True),
        sa.Column('content_type', sa.String(length=100), nullable=True),
        sa.Column(
            'status',
            sa.Enum(*JOB_STATUSES, name='job_status', native_enum=False, length=20),
            nullable=False,
            server_default='PENDING',
        ),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('task_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_meeting_jobs_id'), 'meeting_jobs', ['id'], unique=False)
    op.create_index(op.f('ix_meeting_jobs_user_id'), 'meeting_jobs', ['user_id'], unique=False)
    op.create_index(op.f('ix_meeting_jobs_status'), 'meeting_jobs', ['status'], unique=False)

    op.create_table(
        'analysis_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('transcript', sa.Text(), nullable=True),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('action_items', sa.JSON(), nullable=True),
        sa.Column('key_decisions', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['meeting_jobs.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_analysis_results_id'), 'analysis_results', ['id'], unique=False)
    op.create_index(op.f('ix_analysis_results_job_id'), 'analysis_results', ['job_id'], unique=True)


def downgrade() -> None:
    op.drop_index(op.f('ix_analysis_results_job_id'), table_name='analysis_results')
    op.drop_index(op.f('ix_analysis_results_id'), table_name='analysis_results')
    op.drop_table('analysis_results')

    op.drop_index(op.f('ix_meeting_jobs_status'), table_name='meeting_jobs')
    op.drop_index(op.f('ix_meeting_jobs_user_id'), table_name='meeting_jobs')
    op.drop_index(op.f('ix_meeting_jobs_id'), table_name='meeting_jobs')
    op.drop_table('meeting_jobs')
