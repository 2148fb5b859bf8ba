"""create_moderation_tables

Revision ID: 5c1f0a7d2e94
Revises:
Create Date: 2026-10-12 09:20:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5c1f0a7d2e94'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')


def upgrade() -> None:
    op.create_table('profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('bio', sa.String(), nullable=True),
        sa.Column('avatar_url', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)
    op.create_index('ix_profiles_username', 'profiles', ['username'], unique=True)

    op.create_table('auto_flags',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('content_type', sa.Enum('PROFILE', 'POST', 'COMMENT', 'MEDIA', name='contenttype'), nullable=False),
        sa.Column('content_id', sa.String(), nullable=False),
        sa.Column('flag_type', sa.Enum('TOXICITY', 'HATE_SPEECH', 'SPAM', 'NUDITY', 'COPYRIGHT', name='flagtype'), nullable=False),
        sa.Column('confidence_score', sa.Numeric(precision=3, scale=2), nullable=True),
        sa.Column('details', JSON_TYPE, nullable=True),
        sa.Column('status', sa.Enum('PENDING', 'REVIEWED', 'DISMISSED', name='flagstatus'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_auto_flags_content_id', 'auto_flags', ['content_id'], unique=False)

    op.create_table('reports',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('reporter_id', sa.Uuid(), nullable=False),
        sa.Column('report_type', sa.Enum('USER', 'CONTENT', 'TECHNICAL', name='reporttype'), nullable=False),
        sa.Column('target_id', sa.String(), nullable=True),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'REVIEWING', 'RESOLVED', 'DISMISSED', 'APPEALED', name='reportstatus'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['reporter_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('enforcement_actions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('report_id', sa.Uuid(), nullable=True),
        sa.Column('moderator_id', sa.Uuid(), nullable=True),
        sa.Column('action_type', sa.Enum('WARN', 'SUSPEND', 'BAN', 'DELETE_CONTENT', 'HIDE_CONTENT', 'RESET_PASSWORD', name='actiontype'), nullable=False),
        sa.Column('target_type', sa.Enum('USER', 'CONTENT', 'COMMENT', name='targettype'), nullable=False),
        sa.Column('target_id', sa.String(), nullable=False),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['report_id'], ['reports.id']),
        sa.ForeignKeyConstraint(['moderator_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table('appeals',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('report_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'REVIEWING', 'APPROVED', 'REJECTED', name='appealstatus'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['report_id'], ['reports.id']),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_appeals_user_id', 'appeals', ['user_id'], unique=False)

    op.create_table('moderation_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('moderator_id', sa.Uuid(), nullable=True),
        sa.Column('action_type', sa.String(), nullable=False),
        sa.Column('target_type', sa.String(), nullable=False),
        sa.Column('target_id', sa.String(), nullable=False),
        sa.Column('reason', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('user_agent', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['moderator_id'], ['profiles.id']),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_table('moderation_logs')
    op.drop_index('ix_appeals_user_id', table_name='appeals')
    op.drop_table('appeals')
    op.drop_table('enforcement_actions')
    op.drop_table('reports')
    op.drop_index('ix_auto_flags_content_id', table_name='auto_flags')
    op.drop_table('auto_flags')
    op.drop_index('ix_profiles_username', table_name='profiles')
    op.drop_index('ix_profiles_email', table_name='profiles')
    op.drop_table('profiles')

    for enum_name in ('appealstatus', 'targettype', 'actiontype', 'reportstatus', 'reporttype', 'flagstatus', 'flagtype', 'contenttype'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
