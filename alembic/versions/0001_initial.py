"""initial schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # users
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('username', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_username', 'users', ['username'])
    op.create_index('ix_users_email', 'users', ['email'])

    # game sessions
    op.create_table(
        'game_sessions',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=64), nullable=False, server_default='planifiée'),
        sa.Column('gm_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
    )
    op.create_index('ix_game_sessions_title', 'game_sessions', ['title'])
    op.create_index('ix_game_sessions_scheduled_at', 'game_sessions', ['scheduled_at'])
    op.create_index('ix_game_sessions_status', 'game_sessions', ['status'])
    op.create_index('ix_game_sessions_gm_id', 'game_sessions', ['gm_id'])

    # characters
    op.create_table(
        'characters',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('race', sa.String(length=255), nullable=False),
        sa.Column('character_class', sa.String(length=255), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('background', sa.Text(), nullable=True),
        sa.Column('inventory', sa.JSON(), nullable=True),
        sa.Column('stats', sa.JSON(), nullable=True),
        sa.Column('is_alive', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column(
            'session_id',
            sa.Integer(),
            sa.ForeignKey('game_sessions.id', ondelete='SET NULL'),
            nullable=True,
        ),
    )
    op.create_index('ix_characters_user_id', 'characters', ['user_id'])
    op.create_index('ix_characters_session_id', 'characters', ['session_id'])

    # session participants
    op.create_table(
        'session_participants',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('game_sessions.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column(
            'character_id',
            sa.Integer(),
            sa.ForeignKey('characters.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('role', sa.String(length=64), nullable=False),
        sa.UniqueConstraint('session_id', 'user_id', name='uq_session_participants_session_user'),
    )
    op.create_index('ix_session_participants_session_id', 'session_participants', ['session_id'])
    op.create_index('ix_session_participants_user_id', 'session_participants', ['user_id'])
    op.create_index('ix_session_participants_role', 'session_participants', ['role'])

    # dice rolls
    op.create_table(
        'dice_rolls',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('expression', sa.String(length=64), nullable=False),
        sa.Column('result', sa.Integer(), nullable=False),
        sa.Column('rolls', sa.JSON(), nullable=False),
        sa.Column('modifier', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column(
            'character_id',
            sa.Integer(),
            sa.ForeignKey('characters.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('session_id', sa.Integer(), sa.ForeignKey('game_sessions.id'), nullable=False),
    )
    op.create_index('ix_dice_rolls_timestamp', 'dice_rolls', ['timestamp'])
    op.create_index('ix_dice_rolls_user_id', 'dice_rolls', ['user_id'])
    op.create_index('ix_dice_rolls_session_id', 'dice_rolls', ['session_id'])

    # audit logs
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('owner_user_id', sa.Integer(), nullable=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_owner_user_id', 'audit_logs', ['owner_user_id'])
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade() -> None:
    for name in (
        'ix_audit_logs_created_at',
        'ix_audit_logs_actor_user_id',
        'ix_audit_logs_owner_user_id',
        'ix_audit_logs_action',
        'ix_audit_logs_entity_id',
        'ix_audit_logs_entity_type',
    ):
        op.drop_index(name, table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('ix_dice_rolls_session_id', table_name='dice_rolls')
    op.drop_index('ix_dice_rolls_user_id', table_name='dice_rolls')
    op.drop_index('ix_dice_rolls_timestamp', table_name='dice_rolls')
    op.drop_table('dice_rolls')

    op.drop_index('ix_session_participants_role', table_name='session_participants')
    op.drop_index('ix_session_participants_user_id', table_name='session_participants')
    op.drop_index('ix_session_participants_session_id', table_name='session_participants')
    op.drop_table('session_participants')

    op.drop_index('ix_characters_session_id', table_name='characters')
    op.drop_index('ix_characters_user_id', table_name='characters')
    op.drop_table('characters')

    op.drop_index('ix_game_sessions_gm_id', table_name='game_sessions')
    op.drop_index('ix_game_sessions_status', table_name='game_sessions')
    op.drop_index('ix_game_sessions_scheduled_at', table_name='game_sessions')
    op.drop_index('ix_game_sessions_title', table_name='game_sessions')
    op.drop_table('game_sessions')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
