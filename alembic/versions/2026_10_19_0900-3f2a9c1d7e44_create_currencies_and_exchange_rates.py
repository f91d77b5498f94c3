"""create currencies and exchange_rates tables

Revision ID: 3f2a9c1d7e44
Revises: 
Create Date: 2026-10-19 09:00:00.000000+00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3f2a9c1d7e44'
down_revision = None
branch_labels = None
depends_on = None

RATE_SOURCES = ('seed', 'exchangerate.host', 'yfinance')


def upgrade() -> None:
    """
    Create the rate store.

    - currencies: code as PK, at most one row flagged is_base (partial index)
    - exchange_rates: one row per ordered pair, positive rate, source tag
    """
    op.create_table(
        'currencies',
        sa.Column('code', sa.String(length=3), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('symbol', sa.String(length=10), nullable=False),
        sa.Column('is_base', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('decimal_places', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'decimal_places >= 0', name='ck_currencies_decimal_places_non_negative'
        ),
        sa.PrimaryKeyConstraint('code', name='pk_currencies'),
    )
    op.create_index(
        'uq_currencies_single_base',
        'currencies',
        ['is_base'],
        unique=True,
        postgresql_where=sa.text('is_base'),
        sqlite_where=sa.text('is_base = 1'),
    )

    op.create_table(
        'exchange_rates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('from_currency', sa.String(length=3), nullable=False),
        sa.Column('to_currency', sa.String(length=3), nullable=False),
        sa.Column('rate', sa.Numeric(precision=24, scale=12), nullable=False),
        sa.Column(
            'source',
            sa.Enum(*RATE_SOURCES, name='rate_source', native_enum=False, length=32),
            nullable=False,
        ),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('rate > 0', name='ck_exchange_rates_rate_positive'),
        sa.CheckConstraint(
            'from_currency <> to_currency', name='ck_exchange_rates_distinct_currencies'
        ),
        sa.ForeignKeyConstraint(
            ['from_currency'],
            ['currencies.code'],
            name='fk_exchange_rates_from_currency_currencies',
            ondelete='RESTRICT',
        ),
        sa.ForeignKeyConstraint(
            ['to_currency'],
            ['currencies.code'],
            name='fk_exchange_rates_to_currency_currencies',
            ondelete='RESTRICT',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_exchange_rates'),
        sa.UniqueConstraint('from_currency', 'to_currency', name='uq_exchange_rates_pair'),
    )
    op.create_index(
        'ix_exchange_rates_from_currency', 'exchange_rates', ['from_currency'], unique=False
    )
    op.create_index(
        'ix_exchange_rates_to_currency', 'exchange_rates', ['to_currency'], unique=False
    )


def downgrade() -> None:
    """Drop the rate store."""
    op.drop_index('ix_exchange_rates_to_currency', table_name='exchange_rates')
    op.drop_index('ix_exchange_rates_from_currency', table_name='exchange_rates')
    op.drop_table('exchange_rates')
    op.drop_index('uq_currencies_single_base', table_name='currencies')
    op.drop_table('currencies')
