"""
Investment Routes
Wallet funding and single-investment valuation
"""

import logging

from fastapi import APIRouter, Depends

from keble.api.dependencies import get_funding_engine, get_portfolio_service
from keble.api.errors import http_error
from keble.domain.errors import KebleError
from keble.domain.schemas.investment import (
    FundInvestmentRequest,
    FundInvestmentResponse,
    InvestmentValuationResponse,
)
from keble.domain.services.funding_engine import FundingEngine
from keble.services.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/fund", response_model=FundInvestmentResponse, status_code=201)
async def fund_investment(
    request: FundInvestmentRequest,
    engine: FundingEngine = Depends(get_funding_engine),
):
    """
    Fund a new investment plan from the wallet, or top up an existing one

    Rules:
    - KYC must be complete
    - Amount must meet the minimum and be covered by the wallet
    - Debit, investment and listing update succeed together or not at all
    """
    try:
        result = await engine.fund_investment(request.to_domain())
    except KebleError as exc:
        logger.info("Funding rejected | user=%s reason=%s", request.user_id, exc)
        raise http_error(exc) from exc

    return FundInvestmentResponse(
        investment_id=result.investment_id,
        portfolio_id=result.portfolio_id,
        transaction_id=result.transaction_id,
        listing_id=result.listing_id,
        amount=result.amount,
        tokens=result.tokens,
        is_top_up=result.is_top_up,
        wallet_balance_after=result.wallet_balance_after,
        state=result.state,
        history=list(result.history),
        notified=result.notified,
    )


@router.get("/{investment_id}/valuation", response_model=InvestmentValuationResponse)
async def investment_valuation(
    investment_id: int,
    service: PortfolioService = Depends(get_portfolio_service),
):
    """Current value, accrued returns and expected earnings of one investment"""
    try:
        detail = await service.investment_detail(investment_id)
    except KebleError as exc:
        raise http_error(exc) from exc

    investment = detail.investment
    valuation = detail.valuation
    return InvestmentValuationResponse(
        investment_id=investment.id,
        listing_id=investment.listing_id,
        portfolio_id=investment.portfolio_id,
        project_name=detail.project_name,
        investment_category=investment.investment_category,
        investment_status=investment.investment_status,
        amount=valuation.amount,
        no_tokens=investment.no_tokens,
        rate=valuation.rate,
        expected_earnings=valuation.expected_payout,
        current_returns=valuation.accumulated_return,
        current_value=valuation.current_value,
        flexible_dividend=valuation.periodic_dividend,
        start_date=investment.start_date,
        end_date=investment.end_date,
        valued_at=detail.valued_at,
    )
