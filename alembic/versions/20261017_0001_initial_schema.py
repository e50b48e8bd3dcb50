"""Initial schema - lectures, prerequisites, progress

Revision ID: 0001
Revises: 
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table (provisioned by the identity provider, read here)
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(50), nullable=False, default='student'),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Lectures table
    op.create_table(
        'lectures',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, default=''),
        sa.Column('category', sa.String(255), nullable=False, index=True),
        sa.Column('order', sa.Integer(), nullable=False, default=0),
        sa.Column('content_url', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('category', 'order', name='uq_lectures_category_order'),
    )

    # Prerequisite edges: lecture_id requires prerequisite_lecture_id
    op.create_table(
        'lecture_prerequisites',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('lecture_id', sa.Uuid(), sa.ForeignKey('lectures.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('prerequisite_lecture_id', sa.Uuid(), sa.ForeignKey('lectures.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('is_required', sa.Boolean(), nullable=False, default=True),
        sa.Column('importance_level', sa.Integer(), nullable=False, default=3),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('lecture_id', 'prerequisite_lecture_id', name='uq_lecture_prerequisites_pair'),
        sa.CheckConstraint('lecture_id <> prerequisite_lecture_id', name='ck_lecture_prerequisites_no_self_loop'),
        sa.CheckConstraint('importance_level BETWEEN 1 AND 5', name='ck_lecture_prerequisites_importance_range'),
    )

    # Per-student workflow position
    op.create_table(
        'lecture_progress',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('lecture_id', sa.Uuid(), sa.ForeignKey('lectures.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('status', sa.String(50), nullable=False, default='LOCKED'),
        sa.Column('last_viewed', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_mastery_score', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'lecture_id', name='uq_lecture_progress_user_lecture'),
    )
    op.create_index('ix_lecture_progress_user_status', 'lecture_progress', ['user_id', 'status'])

    # Event log table (append-only)
    op.create_table(
        'event_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False, index=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('payload', sa.JSON(), nullable=False, default={}),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )
    op.create_index('ix_event_logs_entity', 'event_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_event_logs_user_time', 'event_logs', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('event_logs')
    op.drop_index('ix_lecture_progress_user_status', table_name='lecture_progress')
    op.drop_table('lecture_progress')
    op.drop_table('lecture_prerequisites')
    op.drop_table('lectures')
    op.drop_table('users')
