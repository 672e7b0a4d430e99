"""
Database Models (SQLAlchemy ORM)
Money in Numeric columns; counters only change through atomic UPDATEs
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from keble.domain.models import (
    InvestmentCategory,
    InvestmentStatus,
    ListingStatus,
    PlanOccurrence,
    TransactionType,
)
from keble.infrastructure.db.database import Base
from keble.utils.time import now_utc_naive

MONEY = Numeric(18, 2)
TOKENS = Numeric(18, 6)
RATE = Numeric(8, 4)


class UserModel(Base):
    """Investor account"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    kyc_completed = Column(Boolean, nullable=False, default=False)
    total_amount_invested = Column(MONEY, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=now_utc_naive)

    wallet = relationship("WalletModel", back_populates="user", uselist=False)


class WalletModel(Base):
    """One wallet per user"""
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    balance = Column(MONEY, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=now_utc_naive, onupdate=now_utc_naive)

    user = relationship("UserModel", back_populates="wallet")

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
    )


class ListingModel(Base):
    """Investable asset"""
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    project_name = Column(String(255), nullable=False)
    holding_period = Column(Integer, nullable=False, index=True)  # months
    status = Column(SQLEnum(ListingStatus), nullable=False, default=ListingStatus.ACTIVE)

    returns = Column(RATE, nullable=True)
    fixed_returns = Column(RATE, nullable=True)
    flexible_returns = Column(RATE, nullable=True)

    available_tokens = Column(TOKENS, nullable=False, default=0)
    total_investments_made = Column(Integer, nullable=False, default=0)
    total_investment_amount = Column(MONEY, nullable=False, default=0)
    total_tokens_bought = Column(TOKENS, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=now_utc_naive)

    __table_args__ = (
        CheckConstraint("available_tokens >= 0", name="ck_listing_tokens_non_negative"),
        Index("ix_listing_active_period", "status", "holding_period", "created_at"),
    )


class ListingInvestorModel(Base):
    """Distinct investors of a listing (set semantics)"""
    __tablename__ = "listing_investors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    __table_args__ = (
        UniqueConstraint("listing_id", "user_id", name="uq_listing_investor"),
    )


class PortfolioModel(Base):
    """Investment plan grouping"""
    __tablename__ = "portfolios"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=True)
    plan_name = Column(String(255), nullable=False)
    investment_category = Column(SQLEnum(InvestmentCategory), nullable=False)
    plan_occurrence = Column(SQLEnum(PlanOccurrence), nullable=False, default=PlanOccurrence.ONE_TIME)
    duration = Column(Integer, nullable=False)  # months

    total_amount = Column(MONEY, nullable=False, default=0)
    no_tokens = Column(TOKENS, nullable=False, default=0)
    counts = Column(Integer, nullable=False, default=0)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=now_utc_naive)

    investments = relationship("InvestmentModel", back_populates="portfolio")


class TransactionModel(Base):
    """Money movement - AUDIT RECORD"""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    transaction_type = Column(SQLEnum(TransactionType), nullable=False)
    reference = Column(String(64), nullable=False, unique=True)
    description = Column(Text, nullable=False)
    balance_before = Column(MONEY, nullable=True)
    balance_after = Column(MONEY, nullable=True)
    created_at = Column(DateTime, nullable=False, default=now_utc_naive)


class InvestmentModel(Base):
    """Capital committed against a listing"""
    __tablename__ = "investments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    portfolio_id = Column(Integer, ForeignKey("portfolios.id"), nullable=True, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=True)

    investment_category = Column(SQLEnum(InvestmentCategory), nullable=False)
    investment_status = Column(SQLEnum(InvestmentStatus), nullable=False, default=InvestmentStatus.ACTIVE)

    amount = Column(MONEY, nullable=False)
    no_tokens = Column(TOKENS, nullable=False)
    duration = Column(Integer, nullable=False)  # months

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    last_dividends_date = Column(DateTime, nullable=True)
    next_dividends_date = Column(DateTime, nullable=True)
    dividends_count = Column(Integer, nullable=False, default=0)
    cash_dividend = Column(MONEY, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=now_utc_naive)

    portfolio = relationship("PortfolioModel", back_populates="investments")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_investment_amount_positive"),
        CheckConstraint("end_date > start_date", name="ck_investment_term"),
        Index("ix_investment_user_status", "user_id", "investment_status"),
        Index("ix_investment_dividends_due", "investment_category", "investment_status", "next_dividends_date"),
    )
