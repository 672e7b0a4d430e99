import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["NOTIFICATIONS_ENABLED"] = "false"

from dataclasses import replace
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from keble.api.dependencies import get_notifier
from keble.api.routes import dividends, health, investments, portfolio
from keble.domain.errors import ConcurrencyConflict, MissingWallet
from keble.domain.models import (
    Investment,
    InvestmentStatus,
    ListingStatus,
    Portfolio,
    Transaction,
)
from keble.infrastructure.db import models  # noqa: F401
from keble.infrastructure.db.database import Base, get_db, get_session_factory
from keble.infrastructure.db.repositories.listing_repository import ListingRepository
from keble.infrastructure.db.repositories.user_repository import UserRepository
from keble.infrastructure.db.repositories.wallet_repository import WalletRepository
from keble.infrastructure.db.unit_of_work import unit_of_work_factory


class RecordingNotifier:
    """Notifier double that records events instead of posting them"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.funded = []
        self.runs = []

    async def investment_funded(self, user, listing, result) -> bool:
        if self.fail:
            raise RuntimeError("webhook unreachable")
        self.funded.append((user.id, listing.id, result.investment_id))
        return True

    async def dividends_disbursed(self, summary) -> bool:
        self.runs.append(summary)
        return True


@pytest.fixture()
async def db_engine(tmp_path):
    db_path = tmp_path / "test.db"
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
def uow_factory(session_factory):
    return unit_of_work_factory(session_factory)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def seed_account(session_factory):
    """Factory: commit a user with a wallet and return (user, wallet)"""

    async def _seed(
        balance: Decimal = Decimal("5000"),
        kyc_completed: bool = True,
        email: str = "ada@example.com",
    ):
        async with session_factory() as session:
            user = await UserRepository(session).create(
                email=email,
                first_name="Ada",
                last_name="Obi",
                kyc_completed=kyc_completed,
            )
            wallet = await WalletRepository(session).create(user.id, balance)
            await session.commit()
        return user, wallet

    return _seed


@pytest.fixture()
def seed_listing(session_factory):
    """Factory: commit a listing and return it"""

    async def _seed(
        holding_period: int = 12,
        available_tokens: Decimal = Decimal("100000"),
        fixed_returns: Optional[Decimal] = Decimal("12"),
        flexible_returns: Optional[Decimal] = Decimal("8"),
        returns: Optional[Decimal] = None,
        status: ListingStatus = ListingStatus.ACTIVE,
        project_name: str = "Lekki Gardens",
    ):
        async with session_factory() as session:
            listing = await ListingRepository(session).create(
                project_name=project_name,
                holding_period=holding_period,
                available_tokens=available_tokens,
                returns=returns,
                fixed_returns=fixed_returns,
                flexible_returns=flexible_returns,
                status=status,
            )
            await session.commit()
        return listing

    return _seed


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
async def app(session_factory, notifier) -> FastAPI:
    app = FastAPI()
    app.include_router(health.router, tags=["Health"])
    app.include_router(investments.router, prefix="/api/v1/investments", tags=["Investments"])
    app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["Portfolio"])
    app.include_router(dividends.router, prefix="/api/v1/dividends", tags=["Dividends"])

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_notifier] = lambda: notifier

    return app


@pytest.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ------------------------------------------------------------------
# In-memory unit of work for engine unit tests
# ------------------------------------------------------------------

class InMemoryStore:
    """Committed state shared by every FakeUnitOfWork built from it"""

    TABLES = ("users", "wallets", "listings", "portfolios", "investments", "transactions", "investors")

    def __init__(self):
        self.users = {}
        self.wallets = {}
        self.listings = {}
        self.portfolios = {}
        self.investments = {}
        self.transactions = {}
        self.investors = {}
        self.next_id = 100
        self.writes = []
        self.fail_on = set()
        self.commits = 0
        self.rollbacks = 0

    def new_id(self) -> int:
        self.next_id += 1
        return self.next_id

    def write(self, name: str):
        if name in self.fail_on:
            raise RuntimeError(f"storage failure in {name}")
        self.writes.append(name)

    def snapshot(self):
        state = {table: dict(getattr(self, table)) for table in self.TABLES}
        state["investors"] = {k: set(v) for k, v in self.investors.items()}
        return state, self.next_id

    def restore(self, snapshot):
        state, next_id = snapshot
        for table in self.TABLES:
            setattr(self, table, state[table])
        self.next_id = next_id


class _FakeUsers:
    def __init__(self, store):
        self.store = store

    async def get(self, user_id):
        return self.store.users.get(user_id)

    async def increment_total_invested(self, user_id, amount):
        self.store.write("users.increment_total_invested")
        user = self.store.users[user_id]
        self.store.users[user_id] = replace(
            user, total_amount_invested=user.total_amount_invested + amount
        )


class _FakeWallets:
    def __init__(self, store):
        self.store = store

    async def get_by_user_id(self, user_id):
        return self.store.wallets.get(user_id)

    async def debit(self, user_id, amount):
        self.store.write("wallets.debit")
        wallet = self.store.wallets[user_id]
        if wallet.balance < amount:
            raise ConcurrencyConflict("balance too low")
        self.store.wallets[user_id] = replace(wallet, balance=wallet.balance - amount)
        return self.store.wallets[user_id]

    async def credit(self, user_id, amount):
        self.store.write("wallets.credit")
        wallet = self.store.wallets.get(user_id)
        if wallet is None:
            raise MissingWallet(user_id)
        self.store.wallets[user_id] = replace(wallet, balance=wallet.balance + amount)
        return self.store.wallets[user_id]


class _FakeListings:
    def __init__(self, store):
        self.store = store

    def _with_investors(self, listing):
        return replace(listing, investor_ids=frozenset(self.store.investors.get(listing.id, set())))

    async def get(self, listing_id):
        listing = self.store.listings.get(listing_id)
        return self._with_investors(listing) if listing else None

    async def get_many(self, listing_ids):
        return {i: self.store.listings[i] for i in listing_ids if i in self.store.listings}

    async def get_oldest_active(self, holding_period):
        for listing in sorted(self.store.listings.values(), key=lambda l: l.id):
            if listing.status == ListingStatus.ACTIVE and listing.holding_period == holding_period:
                return self._with_investors(listing)
        return None

    async def reserve_tokens(self, listing_id, tokens, amount, investor_id):
        self.store.write("listings.reserve_tokens")
        listing = self.store.listings[listing_id]
        if listing.available_tokens < tokens or listing.status != ListingStatus.ACTIVE:
            raise ConcurrencyConflict("not enough tokens")
        self.store.listings[listing_id] = replace(
            listing,
            available_tokens=listing.available_tokens - tokens,
            total_investments_made=listing.total_investments_made + 1,
            total_investment_amount=listing.total_investment_amount + amount,
            total_tokens_bought=listing.total_tokens_bought + tokens,
        )
        self.store.investors.setdefault(listing_id, set()).add(investor_id)
        return await self.get(listing_id)


class _FakePortfolios:
    def __init__(self, store):
        self.store = store

    async def get(self, portfolio_id):
        return self.store.portfolios.get(portfolio_id)

    async def create(self, *, user_id, plan_name, investment_category, plan_occurrence,
                     duration, amount, tokens, listing_id, start_date, end_date):
        self.store.write("portfolios.create")
        portfolio = Portfolio(
            id=self.store.new_id(),
            user_id=user_id,
            plan_name=plan_name,
            investment_category=investment_category,
            plan_occurrence=plan_occurrence,
            duration=duration,
            total_amount=amount,
            no_tokens=tokens,
            start_date=start_date,
            end_date=end_date,
            listing_id=listing_id,
            counts=1,
        )
        self.store.portfolios[portfolio.id] = portfolio
        return portfolio

    async def add_funds(self, portfolio_id, amount, tokens, new_investment):
        self.store.write("portfolios.add_funds")
        portfolio = self.store.portfolios[portfolio_id]
        self.store.portfolios[portfolio_id] = replace(
            portfolio,
            total_amount=portfolio.total_amount + amount,
            no_tokens=portfolio.no_tokens + tokens,
            counts=portfolio.counts + (1 if new_investment else 0),
        )
        return self.store.portfolios[portfolio_id]


class _FakeInvestments:
    def __init__(self, store):
        self.store = store

    async def get(self, investment_id):
        return self.store.investments.get(investment_id)

    async def create(self, **fields):
        self.store.write("investments.create")
        investment = Investment(
            id=self.store.new_id(),
            investment_status=fields.pop("investment_status", InvestmentStatus.ACTIVE),
            **fields,
        )
        self.store.investments[investment.id] = investment
        return investment

    async def find_active_in_portfolio(self, portfolio_id, listing_id):
        for investment in self.store.investments.values():
            if (investment.portfolio_id == portfolio_id
                    and investment.listing_id == listing_id
                    and investment.investment_status == InvestmentStatus.ACTIVE):
                return investment
        return None

    async def top_up(self, investment_id, amount, tokens, transaction_id):
        self.store.write("investments.top_up")
        investment = self.store.investments[investment_id]
        self.store.investments[investment_id] = replace(
            investment,
            amount=investment.amount + amount,
            no_tokens=investment.no_tokens + tokens,
            transaction_id=transaction_id,
        )
        return self.store.investments[investment_id]

    async def find_due_dividends(self, now):
        return [
            i for i in self.store.investments.values()
            if i.next_dividends_date is not None
            and i.next_dividends_date <= now
        ]

    async def record_dividend(self, investment, amount, paid_at, next_dividends_date):
        self.store.write("investments.record_dividend")
        current = self.store.investments[investment.id]
        if (current.investment_status != InvestmentStatus.ACTIVE
                or current.dividends_count != investment.dividends_count
                or current.dividends_count >= current.duration
                or current.next_dividends_date != investment.next_dividends_date):
            raise ConcurrencyConflict("dividend already booked")
        self.store.investments[investment.id] = replace(
            current,
            cash_dividend=current.cash_dividend + amount,
            dividends_count=current.dividends_count + 1,
            last_dividends_date=paid_at,
            next_dividends_date=next_dividends_date,
        )
        return self.store.investments[investment.id]


class _FakeTransactions:
    def __init__(self, store):
        self.store = store

    async def create(self, *, user_id, amount, transaction_type, reference, description,
                     balance_before=None, balance_after=None):
        self.store.write("transactions.create")
        transaction = Transaction(
            id=self.store.new_id(),
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type,
            reference=reference,
            description=description,
            balance_before=balance_before,
            balance_after=balance_after,
        )
        self.store.transactions[transaction.id] = transaction
        return transaction


class FakeUnitOfWork:
    """Snapshot on enter, restore on exception"""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.users = _FakeUsers(store)
        self.wallets = _FakeWallets(store)
        self.listings = _FakeListings(store)
        self.portfolios = _FakePortfolios(store)
        self.investments = _FakeInvestments(store)
        self.transactions = _FakeTransactions(store)

    async def __aenter__(self):
        self._snapshot = self.store.snapshot()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.store.commits += 1
        else:
            self.store.rollbacks += 1
            self.store.restore(self._snapshot)
        return None


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def fake_uow_factory(store):
    return lambda: FakeUnitOfWork(store)
