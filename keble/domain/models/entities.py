"""
Domain Models - Entities
Pure domain objects with no infrastructure dependencies
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from keble.domain.services.returns import to_display


class InvestmentCategory(str, Enum):
    """Which listing rate applies and where accrual is measured from"""
    FIXED = "FIXED"
    FLEXIBLE = "FLEXIBLE"


class InvestmentStatus(str, Enum):
    """Investment lifecycle status"""
    ACTIVE = "ACTIVE"
    MATURED = "MATURED"


class ListingStatus(str, Enum):
    """Listing availability"""
    ACTIVE = "ACTIVE"
    SOLD_OUT = "SOLD_OUT"
    CLOSED = "CLOSED"


class PlanOccurrence(str, Enum):
    """Portfolio funding occurrence"""
    ONE_TIME = "ONE_TIME"
    RECURRING = "RECURRING"


class TransactionType(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class FundingState(str, Enum):
    """Funding request state machine"""
    VALIDATING = "VALIDATING"
    DEBITING = "DEBITING"
    WRITING_INVESTMENT = "WRITING_INVESTMENT"
    ADJUSTING_LISTING = "ADJUSTING_LISTING"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"

    @property
    def is_terminal(self) -> bool:
        return self in (FundingState.COMMITTED, FundingState.ABORTED)


@dataclass(frozen=True)
class User:
    """Investor account - Immutable snapshot"""
    id: int
    email: str
    first_name: str
    last_name: str
    kyc_completed: bool
    total_amount_invested: Decimal = Decimal('0')

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class Wallet:
    """User wallet - Immutable snapshot"""
    id: int
    user_id: int
    balance: Decimal


@dataclass(frozen=True)
class Listing:
    """Investable asset - Immutable snapshot"""
    id: int
    project_name: str
    holding_period: int
    status: ListingStatus
    available_tokens: Decimal
    returns: Optional[Decimal] = None
    fixed_returns: Optional[Decimal] = None
    flexible_returns: Optional[Decimal] = None
    total_investments_made: int = 0
    total_investment_amount: Decimal = Decimal('0')
    total_tokens_bought: Decimal = Decimal('0')
    investor_ids: FrozenSet[int] = frozenset()
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if self.available_tokens < Decimal('0'):
            raise ValueError("Listing available tokens cannot be negative")


@dataclass(frozen=True)
class Portfolio:
    """Grouping of a user's investments (plan)"""
    id: int
    user_id: int
    plan_name: str
    investment_category: InvestmentCategory
    plan_occurrence: PlanOccurrence
    duration: int
    total_amount: Decimal
    no_tokens: Decimal
    start_date: datetime
    end_date: datetime
    listing_id: Optional[int] = None
    counts: int = 0


@dataclass(frozen=True)
class Investment:
    """Capital committed against a listing - Immutable snapshot"""
    id: int
    user_id: int
    listing_id: int
    investment_category: InvestmentCategory
    investment_status: InvestmentStatus
    amount: Decimal
    no_tokens: Decimal
    duration: int
    start_date: datetime
    end_date: datetime
    portfolio_id: Optional[int] = None
    transaction_id: Optional[int] = None
    last_dividends_date: Optional[datetime] = None
    next_dividends_date: Optional[datetime] = None
    dividends_count: int = 0
    cash_dividend: Decimal = Decimal('0')

    def __post_init__(self):
        if self.end_date <= self.start_date:
            raise ValueError("Investment end_date must be after start_date")
        if self.amount <= Decimal('0'):
            raise ValueError("Investment amount must be positive")

    @property
    def is_matured(self) -> bool:
        return self.investment_status == InvestmentStatus.MATURED

    @property
    def accrual_checkpoint(self) -> datetime:
        """Instant from which the next accrual is measured"""
        if self.investment_category == InvestmentCategory.FLEXIBLE and self.last_dividends_date:
            return self.last_dividends_date
        return self.start_date


@dataclass(frozen=True)
class Transaction:
    """Money movement record (payment audit)"""
    id: int
    user_id: int
    amount: Decimal
    transaction_type: TransactionType
    reference: str
    description: str
    balance_before: Optional[Decimal] = None
    balance_after: Optional[Decimal] = None
    created_at: Optional[datetime] = None


# ------------------------------------------------------------------
# Valuation results
# ------------------------------------------------------------------


@dataclass(frozen=True)
class InvestmentValuation:
    """Valuation of a single investment at an instant"""
    investment_id: int
    listing_id: int
    portfolio_id: Optional[int]
    rate: Decimal
    amount: Decimal
    elapsed_fraction: Decimal
    accumulated_return: Decimal
    current_value: Decimal
    expected_payout: Decimal
    periodic_dividend: Optional[Decimal] = None

    def rounded(self) -> "InvestmentValuation":
        return replace(
            self,
            amount=to_display(self.amount),
            accumulated_return=to_display(self.accumulated_return),
            current_value=to_display(self.current_value),
            expected_payout=to_display(self.expected_payout),
            periodic_dividend=(
                to_display(self.periodic_dividend)
                if self.periodic_dividend is not None
                else None
            ),
        )


@dataclass(frozen=True)
class AggregateValuation:
    """Totals across a set of investments"""
    total_current_value: Decimal
    total_accumulated_return: Decimal
    total_amount_invested: Decimal
    total_tokens: Decimal
    unique_asset_count: int
    skipped_investment_ids: Tuple[int, ...] = ()

    def rounded(self) -> "AggregateValuation":
        return replace(
            self,
            total_current_value=to_display(self.total_current_value),
            total_accumulated_return=to_display(self.total_accumulated_return),
            total_amount_invested=to_display(self.total_amount_invested),
            total_tokens=to_display(self.total_tokens),
        )


@dataclass(frozen=True)
class PortfolioValuation:
    """Totals for one portfolio (plan)"""
    portfolio_id: Optional[int]
    investment_count: int
    amount_invested: Decimal
    current_value: Decimal
    accumulated_return: Decimal

    def rounded(self) -> "PortfolioValuation":
        return replace(
            self,
            amount_invested=to_display(self.amount_invested),
            current_value=to_display(self.current_value),
            accumulated_return=to_display(self.accumulated_return),
        )


# ------------------------------------------------------------------
# Funding
# ------------------------------------------------------------------

@dataclass(frozen=True)
class FundingRequest:
    """Validated funding request (new portfolio or top-up)"""
    user_id: int
    amount: Decimal
    investment_category: InvestmentCategory = InvestmentCategory.FIXED
    duration: Optional[int] = None
    portfolio_id: Optional[int] = None
    plan_name: Optional[str] = None
    plan_occurrence: PlanOccurrence = PlanOccurrence.ONE_TIME

    @property
    def is_top_up(self) -> bool:
        return self.portfolio_id is not None


@dataclass(frozen=True)
class FundingResult:
    """Outcome of a committed funding request"""
    investment_id: int
    portfolio_id: int
    transaction_id: int
    listing_id: int
    amount: Decimal
    tokens: Decimal
    is_top_up: bool
    wallet_balance_after: Decimal
    state: FundingState = FundingState.COMMITTED
    history: Tuple[FundingState, ...] = ()
    notified: bool = False


@dataclass(frozen=True)
class DividendPayout:
    investment_id: int
    user_id: int
    amount: Decimal
    paid_at: datetime
    transaction_id: int


@dataclass
class DividendRunSummary:
    """Result of one dividend disbursement run"""
    run_at: datetime
    paid: List[DividendPayout] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    failed: List[Tuple[int, str]] = field(default_factory=list)

    @property
    def total_paid(self) -> Decimal:
        return sum((p.amount for p in self.paid), Decimal('0'))
