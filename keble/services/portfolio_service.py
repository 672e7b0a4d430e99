"""
PORTFOLIO SERVICE

Read side: loads a user's investments and listings and hands them to the
valuation engine. Results are rounded for display here and nowhere earlier.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from keble.domain.errors import MissingInvestment, MissingListing, MissingUser
from keble.domain.models import (
    AggregateValuation,
    Investment,
    InvestmentStatus,
    InvestmentValuation,
    PortfolioValuation,
)
from keble.domain.services.valuation_engine import ValuationEngine
from keble.utils.time import now_utc_naive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserOverview:
    user_id: int
    valuation: AggregateValuation
    portfolios: List[PortfolioValuation]
    valued_at: datetime


@dataclass(frozen=True)
class InvestmentDetail:
    investment: Investment
    project_name: str
    valuation: InvestmentValuation
    valued_at: datetime


class PortfolioService:
    """Portfolio overview and single-investment valuation"""

    def __init__(
        self,
        uow_factory: Callable,
        engine: Optional[ValuationEngine] = None,
        strict: bool = True,
    ):
        self.uow_factory = uow_factory
        self.engine = engine or ValuationEngine()
        self.strict = strict

    async def user_overview(
        self,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> UserOverview:
        """
        Totals across a user's ACTIVE and MATURED investments

        Args:
            user_id: Investor
            now: Valuation instant (defaults to current UTC time)

        Returns:
            UserOverview with display-rounded totals and per-portfolio breakdown

        Raises:
            MissingUser: Unknown user
            MissingListing: A listing is gone and the service is strict
        """
        now = now or now_utc_naive()

        async with self.uow_factory() as uow:
            user = await uow.users.get(user_id)
            if user is None:
                raise MissingUser(user_id)

            investments = await uow.investments.find_for_user(
                user_id,
                statuses=(InvestmentStatus.ACTIVE, InvestmentStatus.MATURED),
            )
            listings = await uow.listings.get_many({i.listing_id for i in investments})

        valuation = self.engine.aggregate_valuation(
            investments, listings, now, strict=self.strict
        )
        portfolios = self.engine.aggregate_by_portfolio(
            investments, listings, now, strict=self.strict
        )

        logger.info(
            "Overview | user=%s investments=%d value=%s",
            user_id,
            len(investments),
            valuation.total_current_value,
        )

        return UserOverview(
            user_id=user_id,
            valuation=valuation.rounded(),
            portfolios=[p.rounded() for p in portfolios],
            valued_at=now,
        )

    async def investment_detail(
        self,
        investment_id: int,
        now: Optional[datetime] = None,
    ) -> InvestmentDetail:
        now = now or now_utc_naive()

        async with self.uow_factory() as uow:
            investment = await uow.investments.get(investment_id)
            if investment is None:
                raise MissingInvestment(investment_id)

            listing = await uow.listings.get(investment.listing_id)
            if listing is None:
                raise MissingListing(investment.listing_id)

        valuation = self.engine.compute_valuation(investment, listing, now)

        return InvestmentDetail(
            investment=investment,
            project_name=listing.project_name,
            valuation=valuation.rounded(),
            valued_at=now,
        )
