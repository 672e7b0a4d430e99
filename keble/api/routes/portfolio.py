import logging

from fastapi import APIRouter, Depends

from keble.api.dependencies import get_portfolio_service
from keble.api.errors import http_error
from keble.domain.errors import KebleError
from keble.domain.schemas.portfolio import PortfolioBreakdownSchema, PortfolioOverviewSchema
from keble.services.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{user_id}/overview", response_model=PortfolioOverviewSchema)
async def portfolio_overview(
    user_id: int,
    service: PortfolioService = Depends(get_portfolio_service),
):
    try:
        overview = await service.user_overview(user_id)
    except KebleError as exc:
        raise http_error(exc) from exc

    totals = overview.valuation
    return PortfolioOverviewSchema(
        user_id=user_id,
        portfolio_value=totals.total_current_value,
        total_returns=totals.total_accumulated_return,
        total_amount_invested=totals.total_amount_invested,
        total_tokens=totals.total_tokens,
        no_of_assets=totals.unique_asset_count,
        skipped_investment_ids=list(totals.skipped_investment_ids),
        portfolios=[
            PortfolioBreakdownSchema(
                portfolio_id=p.portfolio_id,
                investment_count=p.investment_count,
                amount_invested=p.amount_invested,
                current_value=p.current_value,
                accumulated_return=p.accumulated_return,
            )
            for p in overview.portfolios
        ],
        valued_at=overview.valued_at,
    )
