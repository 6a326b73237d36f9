"""Create job pipeline tables

Revision ID: create_job_pipeline_tables
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'create_job_pipeline_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('jobs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pipeline', sa.String(32), nullable=False, server_default='bids'),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('site_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('client_type', sa.String(32), nullable=True),
        sa.Column('products', sa.JSON(), nullable=False),
        sa.Column('dates', sa.JSON(), nullable=False),
        sa.Column('recurring_occurrence_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('recurring_occurrence_id')
    )
    op.create_index('ix_jobs_pipeline', 'jobs', ['pipeline'])
    op.create_index('ix_jobs_client_id', 'jobs', ['client_id'])

    op.create_table('job_meta',
        sa.Column('meta_id', sa.Integer(), nullable=False),
        sa.Column('job_id', sa.Integer(), nullable=False),
        sa.Column('meta_key', sa.String(255), nullable=False),
        sa.Column('meta_value', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id']),
        sa.PrimaryKeyConstraint('meta_id'),
        sa.UniqueConstraint('job_id', 'meta_key', name='uq_job_meta_job_key')
    )
    op.create_index('ix_job_meta_job_id', 'job_meta', ['job_id'])

    op.create_table('bulk_action_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('action_type', sa.String(32), nullable=False),
        sa.Column('pipeline', sa.String(50), nullable=False),
        sa.Column('job_ids', sa.JSON(), nullable=False),
        sa.Column('job_count', sa.Integer(), nullable=False),
        sa.Column('performed_by', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='started'),
        sa.Column('error_details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_bulk_action_logs_action_type', 'bulk_action_logs', ['action_type'])
    op.create_index('ix_bulk_action_logs_status', 'bulk_action_logs', ['status'])
    op.create_index('ix_bulk_action_logs_performed_by', 'bulk_action_logs', ['performed_by'])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(100), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('link', sa.String(500), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])

    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(128), nullable=True),
        sa.Column('last_name', sa.String(128), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table('organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('primary_contact_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade():
    op.drop_table('organizations')
    op.drop_table('users')
    op.drop_index('ix_notifications_user_id', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('ix_bulk_action_logs_performed_by', table_name='bulk_action_logs')
    op.drop_index('ix_bulk_action_logs_status', table_name='bulk_action_logs')
    op.drop_index('ix_bulk_action_logs_action_type', table_name='bulk_action_logs')
    op.drop_table('bulk_action_logs')
    op.drop_index('ix_job_meta_job_id', table_name='job_meta')
    op.drop_table('job_meta')
    op.drop_index('ix_jobs_client_id', table_name='jobs')
    op.drop_index('ix_jobs_pipeline', table_name='jobs')
    op.drop_table('jobs')
