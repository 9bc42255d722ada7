"""Initial Handoff schema (freelancers, portals, clients, projects, feed, files, tracking)

Revision ID: a1c4e7f20b13
Revises:
Create Date: 2026-10-18T09:12:44.301118
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = 'a1c4e7f20b13'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- freelancers ---
    op.create_table(
        'freelancers',
        sa.Column('id', sa.String(12), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_freelancers_email', 'freelancers', ['email'], unique=True)

    # --- portals ---
    op.create_table(
        'portals',
        sa.Column('id', sa.String(12), nullable=False),
        sa.Column('owner_id', sa.String(12), sa.ForeignKey('freelancers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subdomain', sa.String(50), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('logo_url', sa.Text(), nullable=True),
        sa.Column('accent_color', sa.String(7), nullable=False, server_default='#6366f1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_portals_owner_id', 'portals', ['owner_id'])
    op.create_index('ix_portals_subdomain', 'portals', ['subdomain'], unique=True)

    # --- clients ---
    op.create_table(
        'clients',
        sa.Column('id', sa.String(12), nullable=False),
        sa.Column('portal_id', sa.String(12), sa.ForeignKey('portals.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('access_token', sa.String(64), nullable=False),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('portal_id', 'email', name='uq_client_portal_email'),
    )
    op.create_index('ix_clients_portal_id', 'clients', ['portal_id'])
    op.create_index('ix_clients_access_token', 'clients', ['access_token'], unique=True)

    # --- projects ---
    op.create_table(
        'projects',
        sa.Column('id', sa.String(12), nullable=False),
        sa.Column('client_id', sa.String(12), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_projects_client_id', 'projects', ['client_id'])

    # --- tasks ---
    op.create_table(
        'tasks',
        sa.Column('id', sa.String(12), nullable=False),
        sa.Column('project_id', sa.String(12), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('stage', sa.String(20), nullable=False, server_default='backlog'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tasks_project_id', 'tasks', ['project_id'])
    op.create_index('idx_task_project_stage_pos', 'tasks', ['project_id', 'stage', 'position'])

    # --- updates ---
    op.create_table(
        'updates',
        sa.Column('id', sa.String(12), nullable=False),
        sa.Column('project_id', sa.String(12), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('author_type', sa.String(10), nullable=False),
        sa.Column('author_id', sa.String(12), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_updates_project_id', 'updates', ['project_id'])
    op.create_index('ix_updates_created_at', 'updates', ['created_at'])

    # --- files ---
    op.create_table(
        'files',
        sa.Column('id', sa.String(12), nullable=False),
        sa.Column('project_id', sa.String(12), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('update_id', sa.String(12), sa.ForeignKey('updates.id', ondelete='SET NULL'), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('file_path', sa.Text(), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('mime_type', sa.String(100), nullable=True),
        sa.Column('uploaded_by', sa.String(12), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_files_project_id', 'files', ['project_id'])

    # --- file_downloads ---
    op.create_table(
        'file_downloads',
        sa.Column('id', sa.String(12), nullable=False),
        sa.Column('file_id', sa.String(12), sa.ForeignKey('files.id', ondelete='CASCADE'), nullable=False),
        sa.Column('client_id', sa.String(12), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('downloaded_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_file_downloads_file_id', 'file_downloads', ['file_id'])
    op.create_index('ix_file_downloads_client_id', 'file_downloads', ['client_id'])

    # --- client_views ---
    op.create_table(
        'client_views',
        sa.Column('id', sa.String(12), nullable=False),
        sa.Column('client_id', sa.String(12), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('project_id', sa.String(12), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=True),
        sa.Column('page', sa.String(50), nullable=False),
        sa.Column('viewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_client_views_client_id', 'client_views', ['client_id'])
    op.create_index('idx_view_client_time', 'client_views', ['client_id', 'viewed_at'])


def downgrade() -> None:
    op.drop_table('client_views')
    op.drop_table('file_downloads')
    op.drop_table('files')
    op.drop_table('updates')
    op.drop_table('tasks')
    op.drop_table('projects')
    op.drop_table('clients')
    op.drop_table('portals')
    op.drop_table('freelancers')
