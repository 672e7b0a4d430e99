from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from keble.domain.models import (
    FundingRequest,
    FundingState,
    InvestmentCategory,
    InvestmentStatus,
    PlanOccurrence,
)


class FundInvestmentRequest(BaseModel):
    """Wallet-funded investment; ``portfolio_id`` makes it a top-up"""

    model_config = ConfigDict(extra="forbid")

    user_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0, max_digits=18, decimal_places=2)
    investment_category: InvestmentCategory = InvestmentCategory.FIXED
    duration: Optional[int] = Field(None, gt=0, description="Holding period in months")
    portfolio_id: Optional[int] = Field(None, gt=0)
    plan_name: Optional[str] = Field(None, max_length=255)
    plan_occurrence: PlanOccurrence = PlanOccurrence.ONE_TIME

    @model_validator(mode="after")
    def _duration_or_portfolio(self):
        if self.portfolio_id is None and self.duration is None:
            raise ValueError("duration is required unless topping up a portfolio")
        return self

    def to_domain(self) -> FundingRequest:
        return FundingRequest(
            user_id=self.user_id,
            amount=self.amount,
            investment_category=self.investment_category,
            duration=self.duration,
            portfolio_id=self.portfolio_id,
            plan_name=self.plan_name,
            plan_occurrence=self.plan_occurrence,
        )


class FundInvestmentResponse(BaseModel):
    investment_id: int
    portfolio_id: int
    transaction_id: int
    listing_id: int
    amount: Decimal
    tokens: Decimal
    is_top_up: bool
    wallet_balance_after: Decimal
    state: FundingState
    history: List[FundingState]
    notified: bool


class InvestmentValuationResponse(BaseModel):
    investment_id: int
    listing_id: int
    portfolio_id: Optional[int]
    project_name: str
    investment_category: InvestmentCategory
    investment_status: InvestmentStatus
    amount: Decimal
    no_tokens: Decimal
    rate: Decimal
    expected_earnings: Decimal
    current_returns: Decimal
    current_value: Decimal
    flexible_dividend: Optional[Decimal] = None
    start_date: datetime
    end_date: datetime
    valued_at: datetime
