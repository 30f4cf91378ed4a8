"""
Alembic migration: Add order item additions.

Stores quotation additions against the converted design line instead of as
synthetic "Adición" lines.

Revision ID: 002
Revises: 001
Create Date: 2024-05-20 10:30:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create order_item_additions with its item index."""
    op.create_table(
        'order_item_additions',
        sa.Column(
            'id',
            postgresql.UUID(as_uuid=True),
            nullable=False,
            server_default=sa.text('gen_random_uuid()'),
        ),
        sa.Column(
            'order_item_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('order_items.id'),
            nullable=False,
            comment='Design line carrying the addition',
        ),
        sa.Column(
            'addition_id',
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey('additions.id'),
            nullable=False,
            comment='Addition catalog entry',
        ),
        sa.Column(
            'quantity',
            sa.Numeric(12, 2),
            nullable=False,
            server_default=sa.text('1'),
        ),
        sa.Column(
            'unit_price',
            sa.Numeric(14, 2),
            nullable=False,
            server_default=sa.text('0'),
        ),
        sa.PrimaryKeyConstraint('id', name='pk_order_item_additions'),
    )
    op.create_index(
        'ix_order_item_additions_order_item_id',
        'order_item_additions',
        ['order_item_id'],
    )


def downgrade() -> None:
    """Drop order_item_additions."""
    op.drop_index(
        'ix_order_item_additions_order_item_id',
        table_name='order_item_additions',
    )
    op.drop_table('order_item_additions')
