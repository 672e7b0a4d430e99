from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class PortfolioBreakdownSchema(BaseModel):
    portfolio_id: Optional[int]
    investment_count: int
    amount_invested: Decimal
    current_value: Decimal
    accumulated_return: Decimal


class PortfolioOverviewSchema(BaseModel):
    user_id: int
    portfolio_value: Decimal
    total_returns: Decimal
    total_amount_invested: Decimal
    total_tokens: Decimal
    no_of_assets: int
    skipped_investment_ids: List[int]
    portfolios: List[PortfolioBreakdownSchema]
    valued_at: datetime
