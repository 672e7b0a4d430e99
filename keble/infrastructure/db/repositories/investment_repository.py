"""
Investment Repository
Investments, top-ups and dividend bookkeeping
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from keble.domain.errors import ConcurrencyConflict, MissingInvestment
from keble.domain.models import Investment, InvestmentCategory, InvestmentStatus
from keble.infrastructure.db.models import InvestmentModel


class InvestmentRepository:
    """Repository for Investment"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def create(
        self,
        *,
        user_id: int,
        listing_id: int,
        portfolio_id: Optional[int],
        investment_category: InvestmentCategory,
        amount: Decimal,
        no_tokens: Decimal,
        duration: int,
        start_date: datetime,
        end_date: datetime,
        transaction_id: Optional[int] = None,
        last_dividends_date: Optional[datetime] = None,
        next_dividends_date: Optional[datetime] = None,
        investment_status: InvestmentStatus = InvestmentStatus.ACTIVE,
    ) -> Investment:
        """
        Create new investment record

        Returns:
            Created Investment
        """
        model = InvestmentModel(
            user_id=user_id,
            listing_id=listing_id,
            portfolio_id=portfolio_id,
            transaction_id=transaction_id,
            investment_category=investment_category,
            investment_status=investment_status,
            amount=amount,
            no_tokens=no_tokens,
            duration=duration,
            start_date=start_date,
            end_date=end_date,
            last_dividends_date=last_dividends_date,
            next_dividends_date=next_dividends_date,
            dividends_count=0,
            cash_dividend=Decimal('0'),
        )
        self.session.add(model)
        await self.session.flush()

        return self._to_domain(model)

    async def get(self, investment_id: int) -> Optional[Investment]:
        result = await self.session.execute(
            select(InvestmentModel)
            .where(InvestmentModel.id == investment_id)
            .execution_options(populate_existing=True)
        )
        return self._to_domain(result.scalar_one_or_none())

    async def find_for_user(
        self,
        user_id: int,
        statuses: Iterable[InvestmentStatus] = (InvestmentStatus.ACTIVE, InvestmentStatus.MATURED),
    ) -> List[Investment]:
        """
        Get a user's investments, oldest first

        Args:
            user_id: Owner
            statuses: Statuses to include

        Returns:
            List of Investment
        """
        result = await self.session.execute(
            select(InvestmentModel)
            .where(
                InvestmentModel.user_id == user_id,
                InvestmentModel.investment_status.in_(list(statuses)),
            )
            .order_by(InvestmentModel.start_date, InvestmentModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def find_active_in_portfolio(
        self,
        portfolio_id: int,
        listing_id: int,
    ) -> Optional[Investment]:
        """ACTIVE investment of a portfolio in a given listing, if any"""
        result = await self.session.execute(
            select(InvestmentModel)
            .where(
                InvestmentModel.portfolio_id == portfolio_id,
                InvestmentModel.listing_id == listing_id,
                InvestmentModel.investment_status == InvestmentStatus.ACTIVE,
            )
            .order_by(InvestmentModel.id)
            .limit(1)
        )
        return self._to_domain(result.scalar_one_or_none())

    async def top_up(
        self,
        investment_id: int,
        amount: Decimal,
        tokens: Decimal,
        transaction_id: int,
    ) -> Investment:
        """Atomic increment of amount and tokens; relinks the latest transaction"""
        result = await self.session.execute(
            update(InvestmentModel)
            .where(
                InvestmentModel.id == investment_id,
                InvestmentModel.investment_status == InvestmentStatus.ACTIVE,
            )
            .values(
                amount=InvestmentModel.amount + amount,
                no_tokens=InvestmentModel.no_tokens + tokens,
                transaction_id=transaction_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise MissingInvestment(investment_id)

        return await self.get(investment_id)

    async def find_due_dividends(self, now: datetime) -> List[Investment]:
        """ACTIVE FLEXIBLE investments whose next monthly dividend is due"""
        result = await self.session.execute(
            select(InvestmentModel)
            .where(
                InvestmentModel.investment_category == InvestmentCategory.FLEXIBLE,
                InvestmentModel.investment_status == InvestmentStatus.ACTIVE,
                InvestmentModel.next_dividends_date.is_not(None),
                InvestmentModel.next_dividends_date <= now,
                InvestmentModel.dividends_count < InvestmentModel.duration,
                InvestmentModel.start_date <= now,
                InvestmentModel.end_date >= now,
            )
            .order_by(InvestmentModel.next_dividends_date, InvestmentModel.id)
        )
        return [self._to_domain(m) for m in result.scalars().all()]

    async def record_dividend(
        self,
        investment: Investment,
        amount: Decimal,
        paid_at: datetime,
        next_dividends_date: datetime,
    ) -> Investment:
        """
        Book one paid dividend, only if nobody booked it first

        Args:
            investment: Investment as seen when the payout was decided
            amount: Dividend amount
            paid_at: New accrual checkpoint
            next_dividends_date: When the following dividend falls due

        Returns:
            Updated Investment

        Raises:
            ConcurrencyConflict: Row changed since ``investment`` was read
        """
        result = await self.session.execute(
            update(InvestmentModel)
            .where(
                InvestmentModel.id == investment.id,
                InvestmentModel.investment_status == InvestmentStatus.ACTIVE,
                InvestmentModel.dividends_count == investment.dividends_count,
                InvestmentModel.dividends_count < InvestmentModel.duration,
                InvestmentModel.next_dividends_date == investment.next_dividends_date,
            )
            .values(
                cash_dividend=InvestmentModel.cash_dividend + amount,
                dividends_count=InvestmentModel.dividends_count + 1,
                last_dividends_date=paid_at,
                next_dividends_date=next_dividends_date,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyConflict(
                f"Dividend {investment.dividends_count + 1} of investment "
                f"{investment.id} already booked"
            )

        return await self.get(investment.id)

    @staticmethod
    def _to_domain(model: Optional[InvestmentModel]) -> Optional[Investment]:
        """Convert database model to domain entity"""
        if model is None:
            return None

        return Investment(
            id=model.id,
            user_id=model.user_id,
            listing_id=model.listing_id,
            investment_category=InvestmentCategory(model.investment_category),
            investment_status=InvestmentStatus(model.investment_status),
            amount=Decimal(str(model.amount)),
            no_tokens=Decimal(str(model.no_tokens)),
            duration=model.duration,
            start_date=model.start_date,
            end_date=model.end_date,
            portfolio_id=model.portfolio_id,
            transaction_id=model.transaction_id,
            last_dividends_date=model.last_dividends_date,
            next_dividends_date=model.next_dividends_date,
            dividends_count=model.dividends_count,
            cash_dividend=Decimal(str(model.cash_dividend)),
        )
