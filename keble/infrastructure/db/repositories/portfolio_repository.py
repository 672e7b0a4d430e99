"""
Portfolio Repository
Plans grouping a user's investments
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from keble.domain.errors import MissingPortfolio
from keble.domain.models import InvestmentCategory, PlanOccurrence, Portfolio
from keble.infrastructure.db.models import PortfolioModel


class PortfolioRepository:
    """Repository for Portfolio"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def create(
        self,
        *,
        user_id: int,
        plan_name: str,
        investment_category: InvestmentCategory,
        plan_occurrence: PlanOccurrence,
        duration: int,
        amount: Decimal,
        tokens: Decimal,
        listing_id: int,
        start_date: datetime,
        end_date: datetime,
    ) -> Portfolio:
        model = PortfolioModel(
            user_id=user_id,
            listing_id=listing_id,
            plan_name=plan_name,
            investment_category=investment_category,
            plan_occurrence=plan_occurrence,
            duration=duration,
            total_amount=amount,
            no_tokens=tokens,
            counts=1,
            start_date=start_date,
            end_date=end_date,
        )
        self.session.add(model)
        await self.session.flush()

        return self._to_domain(model)

    async def get(self, portfolio_id: int) -> Optional[Portfolio]:
        result = await self.session.execute(
            select(PortfolioModel)
            .where(PortfolioModel.id == portfolio_id)
            .execution_options(populate_existing=True)
        )
        return self._to_domain(result.scalar_one_or_none())

    async def add_funds(
        self,
        portfolio_id: int,
        amount: Decimal,
        tokens: Decimal,
        new_investment: bool,
    ) -> Portfolio:
        """Atomic increment of portfolio totals after a top-up"""
        result = await self.session.execute(
            update(PortfolioModel)
            .where(PortfolioModel.id == portfolio_id)
            .values(
                total_amount=PortfolioModel.total_amount + amount,
                no_tokens=PortfolioModel.no_tokens + tokens,
                counts=PortfolioModel.counts + (1 if new_investment else 0),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise MissingPortfolio(portfolio_id)

        return await self.get(portfolio_id)

    @staticmethod
    def _to_domain(model: Optional[PortfolioModel]) -> Optional[Portfolio]:
        """Convert database model to domain entity"""
        if model is None:
            return None

        return Portfolio(
            id=model.id,
            user_id=model.user_id,
            plan_name=model.plan_name,
            investment_category=InvestmentCategory(model.investment_category),
            plan_occurrence=PlanOccurrence(model.plan_occurrence),
            duration=model.duration,
            total_amount=Decimal(str(model.total_amount)),
            no_tokens=Decimal(str(model.no_tokens)),
            start_date=model.start_date,
            end_date=model.end_date,
            listing_id=model.listing_id,
            counts=model.counts,
        )
