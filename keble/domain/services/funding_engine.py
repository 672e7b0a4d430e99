"""
FUNDING ENGINE - ASYNC
Wallet-funded investment creation and top-up

STATE MACHINE:
VALIDATING -> DEBITING -> WRITING_INVESTMENT -> ADJUSTING_LISTING -> COMMITTED
(ABORTED reachable from every non-terminal state)

RULES:
✅ Validation runs before any transaction and performs no writes
✅ Debit, investment write and listing adjustment commit together or not at all
✅ Wallet balance and listing token pool only change through conditional updates
✅ Notification happens after commit and can never undo the funding
❌ No read-modify-write on shared counters
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from typing import Callable, Dict, Iterable, List, Optional, Protocol

from keble.domain.errors import (
    BelowMinimumInvestment,
    FundingAborted,
    InsufficientFunds,
    InvalidAmount,
    KycIncomplete,
    MissingListing,
    MissingPortfolio,
    MissingUser,
    MissingWallet,
    UnsupportedPlan,
)
from keble.domain.models import (
    FundingRequest,
    FundingResult,
    FundingState,
    Investment,
    InvestmentCategory,
    Listing,
    PlanOccurrence,
    Portfolio,
    Transaction,
    TransactionType,
    User,
    Wallet,
)
from keble.domain.services.duration import add_months
from keble.utils.time import now_utc_naive

logger = logging.getLogger(__name__)

# matches the Numeric(18, 6) token columns
TOKEN_QUANTUM = Decimal('0.000001')


# ------------------------------------------------------------------
# Repository ports
# ------------------------------------------------------------------

class UserRepository(Protocol):
    """Protocol for user data access - ASYNC"""

    async def get(self, user_id: int) -> Optional[User]:
        ...

    async def increment_total_invested(self, user_id: int, amount: Decimal) -> None:
        ...


class WalletRepository(Protocol):
    """Protocol for wallet data access - ASYNC"""

    async def get_by_user_id(self, user_id: int) -> Optional[Wallet]:
        ...

    async def debit(self, user_id: int, amount: Decimal) -> Wallet:
        """Decrement balance only if it covers ``amount``; raises ConcurrencyConflict otherwise"""
        ...

    async def credit(self, user_id: int, amount: Decimal) -> Wallet:
        ...


class ListingRepository(Protocol):
    """Protocol for listing data access - ASYNC"""

    async def get(self, listing_id: int) -> Optional[Listing]:
        ...

    async def get_many(self, listing_ids: Iterable[int]) -> Dict[int, Listing]:
        ...

    async def get_oldest_active(self, holding_period: int) -> Optional[Listing]:
        ...

    async def reserve_tokens(
        self,
        listing_id: int,
        tokens: Decimal,
        amount: Decimal,
        investor_id: int,
    ) -> Listing:
        """Compare-and-decrement available tokens; raises ConcurrencyConflict when short"""
        ...


class PortfolioRepository(Protocol):
    """Protocol for portfolio data access - ASYNC"""

    async def get(self, portfolio_id: int) -> Optional[Portfolio]:
        ...

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
        ...

    async def add_funds(
        self,
        portfolio_id: int,
        amount: Decimal,
        tokens: Decimal,
        new_investment: bool,
    ) -> Portfolio:
        ...


class InvestmentRepository(Protocol):
    """Protocol for investment data access - ASYNC"""

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
        transaction_id: Optional[int],
        last_dividends_date: Optional[datetime],
        next_dividends_date: Optional[datetime],
    ) -> Investment:
        ...

    async def find_active_in_portfolio(
        self,
        portfolio_id: int,
        listing_id: int,
    ) -> Optional[Investment]:
        ...

    async def top_up(
        self,
        investment_id: int,
        amount: Decimal,
        tokens: Decimal,
        transaction_id: int,
    ) -> Investment:
        ...


class TransactionRepository(Protocol):
    """Protocol for payment transaction records - ASYNC"""

    async def create(
        self,
        *,
        user_id: int,
        amount: Decimal,
        transaction_type: TransactionType,
        reference: str,
        description: str,
        balance_before: Optional[Decimal] = None,
        balance_after: Optional[Decimal] = None,
    ) -> Transaction:
        ...


class UnitOfWork(Protocol):
    """
    Transactional scope over all repositories.

    Exiting normally commits; exiting with an exception rolls every write back.
    """

    users: UserRepository
    wallets: WalletRepository
    listings: ListingRepository
    portfolios: PortfolioRepository
    investments: InvestmentRepository
    transactions: TransactionRepository

    async def __aenter__(self) -> "UnitOfWork":
        ...

    async def __aexit__(self, exc_type, exc, tb) -> Optional[bool]:
        ...


class FundingNotifier(Protocol):
    """Best-effort post-commit notification"""

    async def investment_funded(
        self,
        user: User,
        listing: Listing,
        result: FundingResult,
    ) -> bool:
        ...


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------

@dataclass(frozen=True)
class _ValidatedFunding:
    user: User
    wallet: Wallet
    listing: Listing
    duration: int
    portfolio: Optional[Portfolio]


def generate_reference() -> str:
    return f"KBL-{uuid.uuid4().hex[:20].upper()}"


class FundingEngine:
    """
    Funding Engine - ASYNC
    Moves money from a wallet into an investment as one atomic unit
    """

    def __init__(
        self,
        uow_factory: Callable[[], UnitOfWork],
        notifier: Optional[FundingNotifier] = None,
        *,
        minimum_investment: Decimal,
        token_value: Decimal,
    ):
        """
        Initialize funding engine

        Args:
            uow_factory: Returns a fresh unit of work per call
            notifier: Post-commit notifier (optional)
            minimum_investment: Smallest accepted amount
            token_value: Price of one listing token
        """
        if token_value <= Decimal('0'):
            raise ValueError("Token value must be positive")

        self.uow_factory = uow_factory
        self.notifier = notifier
        self.minimum_investment = minimum_investment
        self.token_value = token_value

    def tokens_for(self, amount: Decimal) -> Decimal:
        """Tokens bought by ``amount``, floored to the stored precision"""
        return (amount / self.token_value).quantize(TOKEN_QUANTUM, rounding=ROUND_DOWN)

    async def fund_investment(
        self,
        request: FundingRequest,
        now: Optional[datetime] = None,
    ) -> FundingResult:
        """
        Create a new portfolio investment or top up an existing portfolio

        Args:
            request: Validated funding request
            now: Funding instant (defaults to current UTC time)

        Returns:
            FundingResult for the committed funding

        Raises:
            ValidationError: Request rejected before any write
            NotFoundError: User, wallet, portfolio or listing missing
            FundingAborted: A write failed; everything was rolled back
        """
        now = now or now_utc_naive()
        history: List[FundingState] = [FundingState.VALIDATING]

        async with self.uow_factory() as uow:
            validated = await self._validate(uow, request)

        amount = request.amount
        tokens = self.tokens_for(amount)
        reference = generate_reference()
        state = FundingState.VALIDATING

        try:
            async with self.uow_factory() as uow:
                state = FundingState.DEBITING
                history.append(state)
                wallet = await uow.wallets.debit(request.user_id, amount)
                transaction = await uow.transactions.create(
                    user_id=request.user_id,
                    amount=amount,
                    transaction_type=TransactionType.DEBIT,
                    reference=reference,
                    description=self._describe(request, validated),
                    balance_before=wallet.balance + amount,
                    balance_after=wallet.balance,
                )

                state = FundingState.WRITING_INVESTMENT
                history.append(state)
                investment, portfolio = await self._write_investment(
                    uow, request, validated, tokens, transaction, now
                )

                state = FundingState.ADJUSTING_LISTING
                history.append(state)
                await uow.listings.reserve_tokens(
                    validated.listing.id,
                    tokens=tokens,
                    amount=amount,
                    investor_id=request.user_id,
                )
                await uow.users.increment_total_invested(request.user_id, amount)
        except Exception as exc:
            history.append(FundingState.ABORTED)
            logger.error(
                "Funding aborted | user=%s amount=%s state=%s error=%s",
                request.user_id,
                amount,
                state.value,
                exc,
            )
            raise FundingAborted(state, [str(exc)], [exc], history) from exc

        history.append(FundingState.COMMITTED)
        logger.info(
            "Funding committed | user=%s investment=%s portfolio=%s amount=%s tokens=%s top_up=%s",
            request.user_id,
            investment.id,
            portfolio.id,
            amount,
            tokens,
            request.is_top_up,
        )

        result = FundingResult(
            investment_id=investment.id,
            portfolio_id=portfolio.id,
            transaction_id=transaction.id,
            listing_id=validated.listing.id,
            amount=amount,
            tokens=tokens,
            is_top_up=request.is_top_up,
            wallet_balance_after=wallet.balance,
            history=tuple(history),
        )

        notified = await self._notify(validated, result)
        return replace(result, notified=notified)

    async def _validate(self, uow: UnitOfWork, request: FundingRequest) -> _ValidatedFunding:
        user = await uow.users.get(request.user_id)
        if user is None:
            raise MissingUser(request.user_id)

        if not user.kyc_completed:
            raise KycIncomplete("Please complete your KYC to proceed.")

        wallet = await uow.wallets.get_by_user_id(user.id)
        if wallet is None:
            raise MissingWallet(user.id)

        amount = request.amount
        if amount <= Decimal('0'):
            raise InvalidAmount("Invalid amount. Amount must be greater than zero.")

        if amount < self.minimum_investment:
            raise BelowMinimumInvestment(amount, self.minimum_investment)

        if request.plan_occurrence == PlanOccurrence.RECURRING:
            raise UnsupportedPlan("Recurring plans are not available for wallet payments.")

        portfolio = None
        if request.is_top_up:
            portfolio = await uow.portfolios.get(request.portfolio_id)
            if portfolio is None or portfolio.user_id != user.id:
                raise MissingPortfolio(request.portfolio_id)
            duration = portfolio.duration
        else:
            if not request.duration or request.duration <= 0:
                raise InvalidAmount("Duration (months) must be a positive whole number.")
            duration = request.duration

        if wallet.balance < amount:
            raise InsufficientFunds(wallet.balance, amount)

        listing = await uow.listings.get_oldest_active(duration)
        if listing is None:
            raise MissingListing(
                duration,
                message=f"No active listing of {duration} months is available",
            )

        return _ValidatedFunding(
            user=user,
            wallet=wallet,
            listing=listing,
            duration=duration,
            portfolio=portfolio,
        )

    async def _write_investment(
        self,
        uow: UnitOfWork,
        request: FundingRequest,
        validated: _ValidatedFunding,
        tokens: Decimal,
        transaction: Transaction,
        now: datetime,
    ):
        listing = validated.listing
        amount = request.amount

        if validated.portfolio is not None:
            portfolio = validated.portfolio
            existing = await uow.investments.find_active_in_portfolio(portfolio.id, listing.id)

            if existing is not None:
                investment = await uow.investments.top_up(
                    existing.id,
                    amount=amount,
                    tokens=tokens,
                    transaction_id=transaction.id,
                )
            else:
                investment = await uow.investments.create(
                    **self._new_investment_fields(
                        request.user_id,
                        listing.id,
                        portfolio.id,
                        portfolio.investment_category,
                        amount,
                        tokens,
                        portfolio.duration,
                        transaction.id,
                        now,
                    )
                )

            portfolio = await uow.portfolios.add_funds(
                portfolio.id,
                amount=amount,
                tokens=tokens,
                new_investment=existing is None,
            )
            return investment, portfolio

        portfolio = await uow.portfolios.create(
            user_id=request.user_id,
            plan_name=request.plan_name or f"{request.investment_category.value.title()} plan",
            investment_category=request.investment_category,
            plan_occurrence=request.plan_occurrence,
            duration=validated.duration,
            amount=amount,
            tokens=tokens,
            listing_id=listing.id,
            start_date=now,
            end_date=add_months(now, validated.duration),
        )
        investment = await uow.investments.create(
            **self._new_investment_fields(
                request.user_id,
                listing.id,
                portfolio.id,
                request.investment_category,
                amount,
                tokens,
                validated.duration,
                transaction.id,
                now,
            )
        )
        return investment, portfolio

    @staticmethod
    def _new_investment_fields(
        user_id: int,
        listing_id: int,
        portfolio_id: int,
        category: InvestmentCategory,
        amount: Decimal,
        tokens: Decimal,
        duration: int,
        transaction_id: int,
        now: datetime,
    ) -> dict:
        flexible = category == InvestmentCategory.FLEXIBLE
        return {
            "user_id": user_id,
            "listing_id": listing_id,
            "portfolio_id": portfolio_id,
            "investment_category": category,
            "amount": amount,
            "no_tokens": tokens,
            "duration": duration,
            "start_date": now,
            "end_date": add_months(now, duration),
            "transaction_id": transaction_id,
            "last_dividends_date": now,
            "next_dividends_date": add_months(now, 1) if flexible else None,
        }

    @staticmethod
    def _describe(request: FundingRequest, validated: _ValidatedFunding) -> str:
        if validated.portfolio is not None:
            return f"${request.amount} added to {validated.portfolio.plan_name} portfolio."
        plan = request.plan_name or validated.listing.project_name
        return f"Transfer to {plan}."

    async def _notify(self, validated: _ValidatedFunding, result: FundingResult) -> bool:
        if self.notifier is None:
            return False
        try:
            return await self.notifier.investment_funded(validated.user, validated.listing, result)
        except Exception:
            logger.exception(
                "Investment notification failed (funding already committed) | investment=%s",
                result.investment_id,
            )
            return False
