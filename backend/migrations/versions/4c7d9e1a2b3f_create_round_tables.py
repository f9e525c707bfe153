"""create user, round, round_number, pick and round_winner tables

Revision ID: 4c7d9e1a2b3f
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c7d9e1a2b3f'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('user') as batch_op:
        batch_op.create_index(batch_op.f('ix_user_username'), ['username'], unique=True)

    op.create_table(
        'round',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('winning_number', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'round_number',
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('display_index', sa.Integer(), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['round_id'], ['round.id']),
        sa.PrimaryKeyConstraint('round_id', 'display_index'),
        sa.UniqueConstraint('round_id', 'number', name='uq_round_number_value'),
    )

    op.create_table(
        'pick',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('write_id', sa.String(length=36), nullable=True),
        sa.ForeignKeyConstraint(['round_id'], ['round.id']),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'round_id', name='uq_pick_user_round'),
    )
    with op.batch_alter_table('pick') as batch_op:
        batch_op.create_index(batch_op.f('ix_pick_round_id'), ['round_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_pick_user_id'), ['user_id'], unique=False)

    op.create_table(
        'round_winner',
        sa.Column('round_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['round_id'], ['round.id']),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('round_id', 'user_id'),
    )


def downgrade():
    op.drop_table('round_winner')
    with op.batch_alter_table('pick') as batch_op:
        batch_op.drop_index(batch_op.f('ix_pick_user_id'))
        batch_op.drop_index(batch_op.f('ix_pick_round_id'))
    op.drop_table('pick')
    op.drop_table('round_number')
    op.drop_table('round')
    with op.batch_alter_table('user') as batch_op:
        batch_op.drop_index(batch_op.f('ix_user_username'))
    op.drop_table('user')
