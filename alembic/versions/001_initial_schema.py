"""Supported tokens, transfer ledger and address blacklist.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Supported tokens table
    op.create_table(
        'supported_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('network', sa.String(32), nullable=False),
        sa.Column('token_address', sa.String(42), nullable=False),
        sa.Column('symbol', sa.String(32), nullable=False),
        sa.Column('name', sa.String(128), nullable=False),
        sa.Column('decimals', sa.Integer(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_supported_tokens_network_address', 'supported_tokens', ['network', 'token_address'], unique=True
    )

    # Transactions table
    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('from_address', sa.String(42), nullable=False),
        sa.Column('to_address', sa.String(42), nullable=False),
        sa.Column('token_address', sa.String(42), nullable=False),
        sa.Column('amount', sa.String(80), nullable=False),
        sa.Column('network', sa.String(32), nullable=False),
        sa.Column('tx_hash', sa.String(66), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tx_hash'),
    )
    op.create_index('ix_transactions_from_address', 'transactions', ['from_address'])
    op.create_index('ix_transactions_to_address', 'transactions', ['to_address'])

    # Address blacklist table
    op.create_table(
        'address_blacklist',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('address', sa.String(42), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('address'),
    )


def downgrade() -> None:
    op.drop_table('address_blacklist')
    op.drop_index('ix_transactions_to_address', table_name='transactions')
    op.drop_index('ix_transactions_from_address', table_name='transactions')
    op.drop_table('transactions')
    op.drop_index('ix_supported_tokens_network_address', table_name='supported_tokens')
    op.drop_table('supported_tokens')
