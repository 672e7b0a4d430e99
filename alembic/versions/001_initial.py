# alembic/versions/001_initial.py

"""Initial schema

Revision ID: 001
Revises: 
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(precision=18, scale=2)
TOKENS = sa.Numeric(precision=18, scale=6)
RATE = sa.Numeric(precision=8, scale=4)

investment_category = sa.Enum('FIXED', 'FLEXIBLE', name='investmentcategory')
investment_status = sa.Enum('ACTIVE', 'MATURED', name='investmentstatus')
listing_status = sa.Enum('ACTIVE', 'SOLD_OUT', 'CLOSED', name='listingstatus')
plan_occurrence = sa.Enum('ONE_TIME', 'RECURRING', name='planoccurrence')
transaction_type = sa.Enum('CREDIT', 'DEBIT', name='transactiontype')


def upgrade():
    # Create users table
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('kyc_completed', sa.Boolean(), nullable=False),
        sa.Column('total_amount_invested', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Create wallets table
    op.create_table('wallets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('balance', MONEY, nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('balance >= 0', name='ck_wallet_balance_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    # Create listings table
    op.create_table('listings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_name', sa.String(length=255), nullable=False),
        sa.Column('holding_period', sa.Integer(), nullable=False),
        sa.Column('status', listing_status, nullable=False),
        sa.Column('returns', RATE, nullable=True),
        sa.Column('fixed_returns', RATE, nullable=True),
        sa.Column('flexible_returns', RATE, nullable=True),
        sa.Column('available_tokens', TOKENS, nullable=False),
        sa.Column('total_investments_made', sa.Integer(), nullable=False),
        sa.Column('total_investment_amount', MONEY, nullable=False),
        sa.Column('total_tokens_bought', TOKENS, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('available_tokens >= 0', name='ck_listing_tokens_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_listings_holding_period', 'listings', ['holding_period'])
    op.create_index('ix_listing_active_period', 'listings', ['status', 'holding_period', 'created_at'])

    # Create listing_investors table
    op.create_table('listing_investors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('listing_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('listing_id', 'user_id', name='uq_listing_investor')
    )

    # Create portfolios table
    op.create_table('portfolios',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('listing_id', sa.Integer(), nullable=True),
        sa.Column('plan_name', sa.String(length=255), nullable=False),
        sa.Column('investment_category', investment_category, nullable=False),
        sa.Column('plan_occurrence', plan_occurrence, nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('no_tokens', TOKENS, nullable=False),
        sa.Column('counts', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_portfolios_user_id', 'portfolios', ['user_id'])

    # Create transactions table
    op.create_table('transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('transaction_type', transaction_type, nullable=False),
        sa.Column('reference', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('balance_before', MONEY, nullable=True),
        sa.Column('balance_after', MONEY, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference')
    )
    op.create_index('ix_transactions_user_id', 'transactions', ['user_id'])

    # Create investments table
    op.create_table('investments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('listing_id', sa.Integer(), nullable=False),
        sa.Column('portfolio_id', sa.Integer(), nullable=True),
        sa.Column('transaction_id', sa.Integer(), nullable=True),
        sa.Column('investment_category', investment_category, nullable=False),
        sa.Column('investment_status', investment_status, nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('no_tokens', TOKENS, nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('last_dividends_date', sa.DateTime(), nullable=True),
        sa.Column('next_dividends_date', sa.DateTime(), nullable=True),
        sa.Column('dividends_count', sa.Integer(), nullable=False),
        sa.Column('cash_dividend', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('amount > 0', name='ck_investment_amount_positive'),
        sa.CheckConstraint('end_date > start_date', name='ck_investment_term'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id']),
        sa.ForeignKeyConstraint(['portfolio_id'], ['portfolios.id']),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_investments_user_id', 'investments', ['user_id'])
    op.create_index('ix_investments_listing_id', 'investments', ['listing_id'])
    op.create_index('ix_investments_portfolio_id', 'investments', ['portfolio_id'])
    op.create_index('ix_investment_user_status', 'investments', ['user_id', 'investment_status'])
    op.create_index(
        'ix_investment_dividends_due',
        'investments',
        ['investment_category', 'investment_status', 'next_dividends_date'],
    )


def downgrade():
    op.drop_table('investments')
    op.drop_table('transactions')
    op.drop_table('portfolios')
    op.drop_table('listing_investors')
    op.drop_table('listings')
    op.drop_table('wallets')
    op.drop_table('users')

    bind = op.get_bind()
    for enum in (transaction_type, plan_occurrence, listing_status, investment_status, investment_category):
        enum.drop(bind, checkfirst=True)
