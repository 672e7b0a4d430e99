"""FastAPI dependencies wiring engines to the database"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from keble.config import settings
from keble.domain.services.dividend_engine import DividendEngine
from keble.domain.services.funding_engine import FundingEngine
from keble.infrastructure.db.database import get_session_factory
from keble.infrastructure.db.unit_of_work import unit_of_work_factory
from keble.services.notification_service import InvestmentNotifier
from keble.services.portfolio_service import PortfolioService


def get_notifier() -> InvestmentNotifier:
    return InvestmentNotifier()


def get_funding_engine(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    notifier: InvestmentNotifier = Depends(get_notifier),
) -> FundingEngine:
    return FundingEngine(
        unit_of_work_factory(session_factory),
        notifier=notifier,
        minimum_investment=settings.MINIMUM_INVESTMENT,
        token_value=settings.INVESTMENT_TOKEN_VALUE,
    )


def get_dividend_engine(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> DividendEngine:
    return DividendEngine(unit_of_work_factory(session_factory))


def get_portfolio_service(
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> PortfolioService:
    return PortfolioService(unit_of_work_factory(session_factory))
