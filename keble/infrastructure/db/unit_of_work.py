"""
SQLAlchemy Unit of Work
One session, one transaction, every repository bound to it
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keble.infrastructure.db.repositories.investment_repository import InvestmentRepository
from keble.infrastructure.db.repositories.listing_repository import ListingRepository
from keble.infrastructure.db.repositories.portfolio_repository import PortfolioRepository
from keble.infrastructure.db.repositories.transaction_repository import TransactionRepository
from keble.infrastructure.db.repositories.user_repository import UserRepository
from keble.infrastructure.db.repositories.wallet_repository import WalletRepository

logger = logging.getLogger(__name__)


class SqlAlchemyUnitOfWork:
    """
    Async context manager: commit on normal exit, rollback on exception.

    A unit of work is single-use; build a new one per transaction.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SqlAlchemyUnitOfWork":
        if self.session is not None:
            raise RuntimeError("Unit of work already entered")

        self.session = self.session_factory()
        self.users = UserRepository(self.session)
        self.wallets = WalletRepository(self.session)
        self.listings = ListingRepository(self.session)
        self.portfolios = PortfolioRepository(self.session)
        self.investments = InvestmentRepository(self.session)
        self.transactions = TransactionRepository(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                await self.session.commit()
            else:
                logger.debug("Rolling back unit of work: %s", exc)
                await self.session.rollback()
        except Exception:
            await self.session.rollback()
            raise
        finally:
            await self.session.close()


def unit_of_work_factory(session_factory: async_sessionmaker):
    """Callable returning a fresh SqlAlchemyUnitOfWork per call"""

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(session_factory)

    return factory
