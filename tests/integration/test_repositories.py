from datetime import datetime
from decimal import Decimal

import pytest

from keble.domain.errors import ConcurrencyConflict, MissingUser
from keble.domain.models import (
    InvestmentCategory,
    InvestmentStatus,
    ListingStatus,
    PlanOccurrence,
    TransactionType,
)
from keble.infrastructure.db.repositories.investment_repository import InvestmentRepository
from keble.infrastructure.db.repositories.listing_repository import ListingRepository
from keble.infrastructure.db.repositories.portfolio_repository import PortfolioRepository
from keble.infrastructure.db.repositories.transaction_repository import TransactionRepository
from keble.infrastructure.db.repositories.user_repository import UserRepository
from keble.infrastructure.db.repositories.wallet_repository import WalletRepository


START = datetime(2026, 1, 1, 12, 0)
END = datetime(2027, 1, 1, 12, 0)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_wallet_debit_is_conditional(db_session):
    user = await UserRepository(db_session).create(
        email="ada@example.com", first_name="Ada", last_name="Obi", kyc_completed=True
    )
    wallets = WalletRepository(db_session)
    await wallets.create(user.id, Decimal("100"))

    wallet = await wallets.debit(user.id, Decimal("60"))
    assert wallet.balance == Decimal("40")

    with pytest.raises(ConcurrencyConflict):
        await wallets.debit(user.id, Decimal("40.01"))

    wallet = await wallets.credit(user.id, Decimal("10"))
    assert wallet.balance == Decimal("50")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_user_total_invested_increment(db_session):
    users = UserRepository(db_session)
    user = await users.create(email="ada@example.com", first_name="Ada", last_name="Obi")
    assert user.kyc_completed is False

    await users.increment_total_invested(user.id, Decimal("25.50"))
    await users.increment_total_invested(user.id, Decimal("4.50"))

    assert (await users.get(user.id)).total_amount_invested == Decimal("30")

    with pytest.raises(MissingUser):
        await users.increment_total_invested(9999, Decimal("1"))


@pytest.mark.asyncio
@pytest.mark.integration
async def test_listing_oldest_active_and_reserve(db_session):
    user = await UserRepository(db_session).create(
        email="ada@example.com", first_name="Ada", last_name="Obi"
    )
    listings = ListingRepository(db_session)
    await listings.create(
        project_name="Closed", holding_period=12, available_tokens=Decimal("10"),
        status=ListingStatus.CLOSED,
    )
    first = await listings.create(
        project_name="First", holding_period=12, available_tokens=Decimal("100"),
        fixed_returns=Decimal("12"),
    )
    await listings.create(project_name="Second", holding_period=12, available_tokens=Decimal("100"))
    await listings.create(project_name="Short", holding_period=6, available_tokens=Decimal("100"))

    oldest = await listings.get_oldest_active(12)
    assert oldest.id == first.id
    assert oldest.fixed_returns == Decimal("12")
    assert await listings.get_oldest_active(24) is None

    updated = await listings.reserve_tokens(first.id, Decimal("40"), Decimal("40"), user.id)
    updated = await listings.reserve_tokens(first.id, Decimal("10"), Decimal("10"), user.id)

    assert updated.available_tokens == Decimal("50")
    assert updated.total_investments_made == 2
    assert updated.total_investment_amount == Decimal("50")
    assert updated.total_tokens_bought == Decimal("50")
    assert updated.investor_ids == frozenset({user.id})

    with pytest.raises(ConcurrencyConflict):
        await listings.reserve_tokens(first.id, Decimal("50.5"), Decimal("50.5"), user.id)

    many = await listings.get_many([first.id, 12345])
    assert list(many) == [first.id]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_portfolio_and_investment_roundtrip(db_session):
    user = await UserRepository(db_session).create(
        email="ada@example.com", first_name="Ada", last_name="Obi"
    )
    listing = await ListingRepository(db_session).create(
        project_name="Lekki", holding_period=12, available_tokens=Decimal("1000")
    )
    transaction = await TransactionRepository(db_session).create(
        user_id=user.id,
        amount=Decimal("100"),
        transaction_type=TransactionType.DEBIT,
        reference="KBL-TEST-1",
        description="Transfer to Lekki.",
    )

    portfolios = PortfolioRepository(db_session)
    portfolio = await portfolios.create(
        user_id=user.id,
        plan_name="Flexible plan",
        investment_category=InvestmentCategory.FLEXIBLE,
        plan_occurrence=PlanOccurrence.ONE_TIME,
        duration=12,
        amount=Decimal("100"),
        tokens=Decimal("100"),
        listing_id=listing.id,
        start_date=START,
        end_date=END,
    )

    investments = InvestmentRepository(db_session)
    investment = await investments.create(
        user_id=user.id,
        listing_id=listing.id,
        portfolio_id=portfolio.id,
        investment_category=InvestmentCategory.FLEXIBLE,
        amount=Decimal("100"),
        no_tokens=Decimal("100"),
        duration=12,
        start_date=START,
        end_date=END,
        transaction_id=transaction.id,
        last_dividends_date=START,
        next_dividends_date=datetime(2026, 2, 1, 12, 0),
    )

    found = await investments.find_active_in_portfolio(portfolio.id, listing.id)
    assert found.id == investment.id

    topped = await investments.top_up(investment.id, Decimal("50"), Decimal("50"), transaction.id)
    assert topped.amount == Decimal("150")
    assert topped.no_tokens == Decimal("150")

    portfolio = await portfolios.add_funds(portfolio.id, Decimal("50"), Decimal("50"), new_investment=False)
    assert portfolio.total_amount == Decimal("150")
    assert portfolio.counts == 1

    assert [i.id for i in await investments.find_for_user(user.id)] == [investment.id]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_due_dividends_and_record(db_session):
    user = await UserRepository(db_session).create(
        email="ada@example.com", first_name="Ada", last_name="Obi"
    )
    listing = await ListingRepository(db_session).create(
        project_name="Lekki", holding_period=12, available_tokens=Decimal("1000")
    )
    investments = InvestmentRepository(db_session)

    flexible = await investments.create(
        user_id=user.id, listing_id=listing.id, portfolio_id=None,
        investment_category=InvestmentCategory.FLEXIBLE,
        amount=Decimal("100"), no_tokens=Decimal("100"), duration=12,
        start_date=START, end_date=END,
        last_dividends_date=START, next_dividends_date=datetime(2026, 2, 1, 12, 0),
    )
    await investments.create(
        user_id=user.id, listing_id=listing.id, portfolio_id=None,
        investment_category=InvestmentCategory.FIXED,
        amount=Decimal("100"), no_tokens=Decimal("100"), duration=12,
        start_date=START, end_date=END,
    )
    await investments.create(
        user_id=user.id, listing_id=listing.id, portfolio_id=None,
        investment_category=InvestmentCategory.FLEXIBLE,
        investment_status=InvestmentStatus.MATURED,
        amount=Decimal("100"), no_tokens=Decimal("100"), duration=12,
        start_date=START, end_date=END,
        next_dividends_date=datetime(2026, 2, 1, 12, 0),
    )

    assert await investments.find_due_dividends(datetime(2026, 1, 31)) == []

    due = await investments.find_due_dividends(datetime(2026, 2, 2))
    assert [i.id for i in due] == [flexible.id]

    paid_at = datetime(2026, 2, 2)
    updated = await investments.record_dividend(
        flexible, Decimal("0.66"), paid_at, datetime(2026, 3, 1, 12, 0)
    )
    assert updated.dividends_count == 1
    assert updated.cash_dividend == Decimal("0.66")
    assert updated.last_dividends_date == paid_at
    assert await investments.find_due_dividends(datetime(2026, 2, 3)) == []

    # a second booking from the same snapshot matches no row
    with pytest.raises(ConcurrencyConflict):
        await investments.record_dividend(
            flexible, Decimal("0.66"), paid_at, datetime(2026, 3, 1, 12, 0)
        )
    assert (await investments.get(flexible.id)).dividends_count == 1
