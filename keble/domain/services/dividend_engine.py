"""
DIVIDEND ENGINE - ASYNC
Monthly cash dividends for FLEXIBLE investments

RESPONSIBILITIES:
- Find ACTIVE FLEXIBLE investments whose next dividend is due
- Credit the monthly dividend to the owner's wallet
- Advance the accrual checkpoint (last_dividends_date)

RULES:
✅ One transaction per investment; one failure never stops the run
✅ last_dividends_date never moves backwards and never passes end_date
✅ At most ``duration`` dividends per investment
✅ A month is booked once; an overlapping run skips it
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, List, Optional, Protocol

from keble.domain.errors import ConcurrencyConflict, MissingListing
from keble.domain.models import (
    DividendPayout,
    DividendRunSummary,
    Investment,
    InvestmentCategory,
    InvestmentStatus,
    TransactionType,
)
from keble.domain.services.duration import add_months
from keble.domain.services.funding_engine import (
    ListingRepository,
    TransactionRepository,
    WalletRepository,
    generate_reference,
)
from keble.domain.services.returns import monthly_dividend, to_display
from keble.domain.services.valuation_engine import ValuationEngine
from keble.utils.time import now_utc_naive

logger = logging.getLogger(__name__)


class DividendInvestmentRepository(Protocol):
    """Investment access needed by the dividend run - ASYNC"""

    async def find_due_dividends(self, now: datetime) -> List[Investment]:
        ...

    async def record_dividend(
        self,
        investment: Investment,
        amount: Decimal,
        paid_at: datetime,
        next_dividends_date: datetime,
    ) -> Investment:
        ...


class DividendUnitOfWork(Protocol):
    """Transactional scope used by a dividend payout"""

    wallets: WalletRepository
    listings: ListingRepository
    transactions: TransactionRepository
    investments: DividendInvestmentRepository

    async def __aenter__(self) -> "DividendUnitOfWork":
        ...

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]:
        ...


class DividendEngine:
    """
    Dividend Engine - ASYNC
    Pays out accrued FLEXIBLE returns month by month
    """

    def __init__(self, uow_factory: Callable[[], DividendUnitOfWork]):
        self.uow_factory = uow_factory

    @staticmethod
    def is_due(investment: Investment, now: datetime) -> bool:
        """Check whether an investment should be paid at ``now``"""
        if investment.investment_category != InvestmentCategory.FLEXIBLE:
            return False
        if investment.investment_status != InvestmentStatus.ACTIVE:
            return False
        if investment.dividends_count >= investment.duration:
            return False
        if not (investment.start_date <= now <= investment.end_date):
            return False
        if investment.next_dividends_date is None:
            return False
        return investment.next_dividends_date <= now

    @staticmethod
    def next_checkpoint(investment: Investment, now: datetime) -> datetime:
        """New last_dividends_date: monotonic and bounded by [start_date, end_date]"""
        previous = investment.last_dividends_date or investment.start_date
        return min(max(now, previous), investment.end_date)

    async def disburse_due(self, now: Optional[datetime] = None) -> DividendRunSummary:
        """
        Pay every due dividend

        Args:
            now: Run instant (defaults to current UTC time)

        Returns:
            DividendRunSummary with paid, skipped and failed investments
        """
        now = now or now_utc_naive()
        summary = DividendRunSummary(run_at=now)

        async with self.uow_factory() as uow:
            candidates = await uow.investments.find_due_dividends(now)

        logger.info("Dividend run | candidates=%d at=%s", len(candidates), now.isoformat())

        for investment in candidates:
            if not self.is_due(investment, now):
                summary.skipped.append(investment.id)
                continue

            try:
                payout = await self._pay(investment, now)
            except ConcurrencyConflict:
                logger.info("Dividend already booked elsewhere | investment=%s", investment.id)
                summary.skipped.append(investment.id)
                continue
            except Exception as exc:
                logger.exception("Dividend payout failed | investment=%s", investment.id)
                summary.failed.append((investment.id, str(exc)))
                continue

            summary.paid.append(payout)

        logger.info(
            "Dividend run complete | paid=%d skipped=%d failed=%d total=%s",
            len(summary.paid),
            len(summary.skipped),
            len(summary.failed),
            summary.total_paid,
        )
        return summary

    async def _pay(self, investment: Investment, now: datetime) -> DividendPayout:
        async with self.uow_factory() as uow:
            listing = await uow.listings.get(investment.listing_id)
            if listing is None:
                raise MissingListing(investment.listing_id)

            rate = ValuationEngine.select_rate(InvestmentCategory.FLEXIBLE, listing)
            # wallets hold whole cents
            amount = to_display(monthly_dividend(investment.amount, rate, investment.duration))

            # claim the month before moving money; a lost race rolls back here
            paid_at = self.next_checkpoint(investment, now)
            await uow.investments.record_dividend(
                investment,
                amount=amount,
                paid_at=paid_at,
                next_dividends_date=add_months(investment.next_dividends_date, 1),
            )

            wallet = await uow.wallets.credit(investment.user_id, amount)
            transaction = await uow.transactions.create(
                user_id=investment.user_id,
                amount=amount,
                transaction_type=TransactionType.CREDIT,
                reference=generate_reference(),
                description=f"Dividends received from {listing.project_name}",
                balance_before=wallet.balance - amount,
                balance_after=wallet.balance,
            )

        return DividendPayout(
            investment_id=investment.id,
            user_id=investment.user_id,
            amount=amount,
            paid_at=paid_at,
            transaction_id=transaction.id,
        )
