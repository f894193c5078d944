"""create room, player, user and stats tables

Revision ID: 5c2e9a7d41b0
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a7d41b0'
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
            sa.Column('id', sa.String(length=64), primary_key=True),
            sa.Column('display_name', sa.String(length=64), nullable=True),
            sa.Column('active_room_id', sa.String(length=32), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('version', sa.Integer(), nullable=False),
        )
        op.create_index('ix_user_active_room_id', 'user', ['active_room_id'])

    if 'room' not in existing_tables:
        op.create_table(
            'room',
            sa.Column('id', sa.String(length=32), primary_key=True),
            sa.Column('host_uid', sa.String(length=64), nullable=False),
            sa.Column('state', sa.String(length=16), nullable=False),
            sa.Column('player_count', sa.Integer(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('last_active_at', sa.DateTime(), nullable=False),
            sa.Column('waiting_since', sa.DateTime(), nullable=True),
            sa.Column('version', sa.Integer(), nullable=False),
        )
        op.create_index('ix_room_host_uid', 'room', ['host_uid'])
        # Waiting-room list: state == 'waiting' ordered by created_at desc
        op.create_index('ix_room_state_created_at', 'room', ['state', 'created_at'])
        # Cleanup query: player_count <= N and waiting_since <= T
        op.create_index('ix_room_player_count_waiting_since', 'room', ['player_count', 'waiting_since'])

    if 'player' not in existing_tables:
        op.create_table(
            'player',
            sa.Column('room_id', sa.String(length=32), sa.ForeignKey('room.id'), primary_key=True),
            sa.Column('user_id', sa.String(length=64), primary_key=True),
            sa.Column('name', sa.String(length=64), nullable=False),
            sa.Column('is_host', sa.Boolean(), nullable=False),
            sa.Column('joined_at', sa.DateTime(), nullable=False),
            sa.Column('last_seen_at', sa.DateTime(), nullable=True),
        )

    if 'stats' not in existing_tables:
        op.create_table(
            'stats',
            sa.Column('key', sa.String(length=32), primary_key=True),
            sa.Column('count', sa.Integer(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
        )


def downgrade():
    op.drop_table('stats')
    op.drop_table('player')
    op.drop_index('ix_room_player_count_waiting_since', table_name='room')
    op.drop_index('ix_room_state_created_at', table_name='room')
    op.drop_index('ix_room_host_uid', table_name='room')
    op.drop_table('room')
    op.drop_index('ix_user_active_room_id', table_name='user')
    op.drop_table('user')
