"""
Dividend Routes
Manual trigger for the monthly FLEXIBLE dividend run (called by an external scheduler)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from keble.api.dependencies import get_dividend_engine, get_notifier
from keble.domain.errors import NotificationFailure
from keble.domain.schemas.dividend import (
    DisburseDividendsRequest,
    DividendFailureSchema,
    DividendPayoutSchema,
    DividendRunSchema,
)
from keble.domain.services.dividend_engine import DividendEngine
from keble.services.notification_service import InvestmentNotifier
from keble.utils.time import to_utc_naive

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/disburse", response_model=DividendRunSchema)
async def disburse_dividends(
    request: Optional[DisburseDividendsRequest] = None,
    engine: DividendEngine = Depends(get_dividend_engine),
    notifier: InvestmentNotifier = Depends(get_notifier),
):
    run_at = None
    if request is not None and request.run_at is not None:
        run_at = to_utc_naive(request.run_at)

    summary = await engine.disburse_due(run_at)

    if summary.paid or summary.failed:
        try:
            await notifier.dividends_disbursed(summary)
        except NotificationFailure:
            logger.exception("Dividend run notification failed")

    return DividendRunSchema(
        run_at=summary.run_at,
        total_paid=summary.total_paid,
        paid=[
            DividendPayoutSchema(
                investment_id=p.investment_id,
                user_id=p.user_id,
                amount=p.amount,
                paid_at=p.paid_at,
                transaction_id=p.transaction_id,
            )
            for p in summary.paid
        ],
        skipped=summary.skipped,
        failed=[
            DividendFailureSchema(investment_id=i, reason=reason)
            for i, reason in summary.failed
        ],
    )
