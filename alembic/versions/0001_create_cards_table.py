"""create cards table

Revision ID: 0001
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


card_column = sa.Enum('todo', 'inProgress', 'done', name='card_column')


def upgrade() -> None:
    op.create_table(
        'cards',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('card_id', sa.String(length=36), nullable=False),
        sa.Column('board_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('column_id', card_column, nullable=False, server_default='todo'),
        sa.Column('order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_cards_id', 'cards', ['id'])
    op.create_index('ix_cards_card_id', 'cards', ['card_id'], unique=True)
    op.create_index('ix_cards_board_id', 'cards', ['board_id'])
    op.create_index('ix_cards_board_column_order', 'cards', ['board_id', 'column_id', 'order'])


def downgrade() -> None:
    op.drop_index('ix_cards_board_column_order', table_name='cards')
    op.drop_index('ix_cards_board_id', table_name='cards')
    op.drop_index('ix_cards_card_id', table_name='cards')
    op.drop_index('ix_cards_id', table_name='cards')
    op.drop_table('cards')
    card_column.drop(op.get_bind(), checkfirst=True)
