"""initial

Revision ID: 0001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('username', sa.String(150), nullable=False),
        sa.Column('display_name', sa.String(150), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=True),
        sa.Column('avatar_url', sa.String(), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('followers_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('following_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('device_id', sa.String(255), nullable=True),
        sa.Column('token_hash', sa.String(128), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    op.create_table('follows',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('follower_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('following_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('follower_id', 'following_id', name='uix_follow_pair'),
    )
    op.create_index('ix_follows_follower_id', 'follows', ['follower_id'])
    op.create_index('ix_follows_following_id', 'follows', ['following_id'])

    op.create_table('tags',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
    )
    op.create_index('ix_tags_name', 'tags', ['name'], unique=True)

    op.create_table('vlogs',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('youtube_id', sa.String(64), nullable=False, unique=True),
        sa.Column('thumbnail_url', sa.String(), nullable=False),
        sa.Column('duration', sa.String(16), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('likes_count', sa.Integer(), nullable=False, server_default='0'),
        sa.CheckConstraint('likes_count >= 0', name='ck_vlog_likes_non_negative'),
        sa.CheckConstraint('expires_at >= created_at', name='ck_vlog_expiry_after_creation'),
    )
    op.create_index('ix_vlogs_id', 'vlogs', ['id'])
    op.create_index('ix_vlogs_user_id', 'vlogs', ['user_id'])
    op.create_index('ix_vlogs_expires_at', 'vlogs', ['expires_at'])

    op.create_table('vlog_tags',
        sa.Column('vlog_id', sa.Integer, sa.ForeignKey('vlogs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tag_id', sa.Integer, sa.ForeignKey('tags.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('vlog_id', 'tag_id', name='uix_vlog_tag'),
    )

    op.create_table('vlog_likes',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('vlog_id', sa.Integer, sa.ForeignKey('vlogs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'vlog_id', name='uix_user_vlog_like'),
    )
    op.create_index('ix_vlog_likes_user_id', 'vlog_likes', ['user_id'])
    op.create_index('ix_vlog_likes_vlog_id', 'vlog_likes', ['vlog_id'])

    op.create_table('comments',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('vlog_id', sa.Integer, sa.ForeignKey('vlogs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_comments_id', 'comments', ['id'])
    op.create_index('ix_comments_vlog_id', 'comments', ['vlog_id'])

def downgrade():
    op.drop_table('comments')
    op.drop_table('vlog_likes')
    op.drop_table('vlog_tags')
    op.drop_table('vlogs')
    op.drop_table('tags')
    op.drop_table('follows')
    op.drop_table('session_tokens')
    op.drop_table('users')
