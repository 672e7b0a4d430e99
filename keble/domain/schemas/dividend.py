from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class DisburseDividendsRequest(BaseModel):
    run_at: Optional[datetime] = None


class DividendPayoutSchema(BaseModel):
    investment_id: int
    user_id: int
    amount: Decimal
    paid_at: datetime
    transaction_id: int


class DividendFailureSchema(BaseModel):
    investment_id: int
    reason: str


class DividendRunSchema(BaseModel):
    run_at: datetime
    total_paid: Decimal
    paid: List[DividendPayoutSchema]
    skipped: List[int]
    failed: List[DividendFailureSchema]
