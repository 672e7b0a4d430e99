"""
Listing Repository
Listing lookup and the token pool compare-and-decrement
"""

from decimal import Decimal
from typing import Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from keble.domain.errors import ConcurrencyConflict
from keble.domain.models import Listing, ListingStatus
from keble.infrastructure.db.models import ListingInvestorModel, ListingModel


def _dialect_insert(session: AsyncSession):
    """INSERT construct supporting ON CONFLICT DO NOTHING for the bound dialect"""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Investor set-add not supported on {dialect}")
    return insert


class ListingRepository:
    """Repository for Listing"""

    def __init__(self, session: AsyncSession):
        """Initialize with database session"""
        self.session = session

    async def create(
        self,
        *,
        project_name: str,
        holding_period: int,
        available_tokens: Decimal,
        returns: Optional[Decimal] = None,
        fixed_returns: Optional[Decimal] = None,
        flexible_returns: Optional[Decimal] = None,
        status: ListingStatus = ListingStatus.ACTIVE,
    ) -> Listing:
        model = ListingModel(
            project_name=project_name,
            holding_period=holding_period,
            available_tokens=available_tokens,
            returns=returns,
            fixed_returns=fixed_returns,
            flexible_returns=flexible_returns,
            status=status,
            total_investments_made=0,
            total_investment_amount=Decimal('0'),
            total_tokens_bought=Decimal('0'),
        )
        self.session.add(model)
        await self.session.flush()

        return self._to_domain(model, frozenset())

    async def get(self, listing_id: int) -> Optional[Listing]:
        result = await self.session.execute(
            select(ListingModel)
            .where(ListingModel.id == listing_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        if model is None:
            return None

        return self._to_domain(model, await self._investor_ids(model.id))

    async def get_many(self, listing_ids: Iterable[int]) -> Dict[int, Listing]:
        """
        Fetch several listings at once (investor sets are not loaded)

        Args:
            listing_ids: Listing IDs

        Returns:
            Mapping of listing id to Listing; unknown ids are absent
        """
        ids = set(listing_ids)
        if not ids:
            return {}

        result = await self.session.execute(
            select(ListingModel).where(ListingModel.id.in_(ids))
        )
        return {
            model.id: self._to_domain(model, frozenset())
            for model in result.scalars().all()
        }

    async def get_oldest_active(self, holding_period: int) -> Optional[Listing]:
        """Oldest ACTIVE listing for a holding period (months)"""
        result = await self.session.execute(
            select(ListingModel)
            .where(
                ListingModel.status == ListingStatus.ACTIVE,
                ListingModel.holding_period == holding_period,
            )
            .order_by(ListingModel.created_at, ListingModel.id)
            .limit(1)
        )
        model = result.scalar_one_or_none()
        if model is None:
            return None

        return self._to_domain(model, await self._investor_ids(model.id))

    async def reserve_tokens(
        self,
        listing_id: int,
        tokens: Decimal,
        amount: Decimal,
        investor_id: int,
    ) -> Listing:
        """
        Take tokens from the pool and bump the listing counters

        The decrement only applies while the pool still covers ``tokens``, so
        concurrent fundings can never drive available_tokens below zero.

        Raises:
            ConcurrencyConflict: Listing inactive or not enough tokens left
        """
        result = await self.session.execute(
            update(ListingModel)
            .where(
                ListingModel.id == listing_id,
                ListingModel.status == ListingStatus.ACTIVE,
                ListingModel.available_tokens >= tokens,
            )
            .values(
                available_tokens=ListingModel.available_tokens - tokens,
                total_investments_made=ListingModel.total_investments_made + 1,
                total_investment_amount=ListingModel.total_investment_amount + amount,
                total_tokens_bought=ListingModel.total_tokens_bought + tokens,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyConflict(
                f"Listing {listing_id} cannot supply {tokens} tokens"
            )

        insert = _dialect_insert(self.session)
        await self.session.execute(
            insert(ListingInvestorModel)
            .values(listing_id=listing_id, user_id=investor_id)
            .on_conflict_do_nothing(index_elements=["listing_id", "user_id"])
        )

        return await self.get(listing_id)

    async def _investor_ids(self, listing_id: int) -> frozenset:
        result = await self.session.execute(
            select(ListingInvestorModel.user_id)
            .where(ListingInvestorModel.listing_id == listing_id)
        )
        return frozenset(result.scalars().all())

    @staticmethod
    def _to_domain(model: ListingModel, investor_ids: frozenset) -> Listing:
        """Convert database model to domain entity"""

        def _rate(value) -> Optional[Decimal]:
            return Decimal(str(value)) if value is not None else None

        return Listing(
            id=model.id,
            project_name=model.project_name,
            holding_period=model.holding_period,
            status=ListingStatus(model.status),
            available_tokens=Decimal(str(model.available_tokens)),
            returns=_rate(model.returns),
            fixed_returns=_rate(model.fixed_returns),
            flexible_returns=_rate(model.flexible_returns),
            total_investments_made=model.total_investments_made,
            total_investment_amount=Decimal(str(model.total_investment_amount)),
            total_tokens_bought=Decimal(str(model.total_tokens_bought)),
            investor_ids=investor_ids,
            created_at=model.created_at,
        )
