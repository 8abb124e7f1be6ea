"""create account, game, player, event, game_invite, game_member

Revision ID: 4c1d7e2a9b30
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1d7e2a9b30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'account',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=256), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_account_email', 'account', ['email'], unique=True)

    op.create_table(
        'game',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('season', sa.String(length=32), nullable=False),
        sa.Column('fine_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('account.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_game_created_by', 'game', ['created_by'])

    op.create_table(
        'player',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('game_id', sa.String(length=36), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_player_game_id', 'player', ['game_id'])

    op.create_table(
        'event',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('game_id', sa.String(length=36), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('player_id', sa.String(length=36), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('date_iso', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_event_game_id', 'event', ['game_id'])
    op.create_index('ix_event_player_id', 'event', ['player_id'])

    op.create_table(
        'game_invite',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('game_id', sa.String(length=36), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('invited_email', sa.String(length=255), nullable=False),
        sa.Column('invited_by', sa.Integer(), sa.ForeignKey('account.id'), nullable=False),
        sa.Column('invite_code', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('accepted_by', sa.Integer(), sa.ForeignKey('account.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_game_invite_game_id', 'game_invite', ['game_id'])
    op.create_index('ix_game_invite_invited_email', 'game_invite', ['invited_email'])
    op.create_index('ix_game_invite_invite_code', 'game_invite', ['invite_code'], unique=True)

    op.create_table(
        'game_member',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('game_id', sa.String(length=36), sa.ForeignKey('game.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('account.id'), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('game_id', 'user_id', name='uq_game_member_game_user'),
    )
    op.create_index('ix_game_member_game_id', 'game_member', ['game_id'])
    op.create_index('ix_game_member_user_id', 'game_member', ['user_id'])


def downgrade():
    op.drop_table('game_member')
    op.drop_table('game_invite')
    op.drop_table('event')
    op.drop_table('player')
    op.drop_table('game')
    op.drop_table('account')
