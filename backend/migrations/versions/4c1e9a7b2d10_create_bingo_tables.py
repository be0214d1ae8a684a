"""create user, game_session, player and game_pattern tables

Revision ID: 4c1e9a7b2d10
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1e9a7b2d10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    if 'game_session' not in existing_tables:
        op.create_table(
            'game_session',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('session_id', sa.String(length=64), nullable=False),
            sa.Column('creator', sa.String(length=64), nullable=False),
            sa.Column('status', sa.String(length=16), nullable=False),
            sa.Column('modality', sa.String(length=64), nullable=False),
            sa.Column('pattern', sa.JSON(), nullable=False),
            sa.Column('card_count', sa.Integer(), nullable=False),
            sa.Column('voice_config', sa.JSON(), nullable=True),
            sa.Column('drawn_numbers', sa.JSON(), nullable=False),
            sa.Column('winner', sa.String(length=64), nullable=True),
            sa.Column('winner_uuid', sa.String(length=64), nullable=True),
            sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('duration', sa.Integer(), nullable=True),
            sa.Column('statistics', sa.JSON(), nullable=True),
        )
        op.create_index('ix_game_session_session_id', 'game_session', ['session_id'], unique=True)

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('uuid', sa.String(length=64), nullable=False),
            sa.Column('session_id', sa.String(length=64), sa.ForeignKey('game_session.session_id'), nullable=False),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('card', sa.JSON(), nullable=False),
            sa.Column('marked', sa.JSON(), nullable=False),
            sa.Column('connected', sa.Boolean(), nullable=False),
        )
        op.create_index('ix_player_uuid', 'player', ['uuid'], unique=True)
        op.create_index('ix_player_session_id', 'player', ['session_id'], unique=False)

    if 'game_pattern' not in existing_tables:
        op.create_table(
            'game_pattern',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=64), nullable=False, unique=True),
            sa.Column('description', sa.Text(), nullable=False),
            sa.Column('grid', sa.JSON(), nullable=False),
            sa.Column('predefined', sa.Boolean(), nullable=False),
        )


def downgrade():
    op.drop_table('game_pattern')
    op.drop_index('ix_player_session_id', table_name='player')
    op.drop_index('ix_player_uuid', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_game_session_session_id', table_name='game_session')
    op.drop_table('game_session')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
