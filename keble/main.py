"""
FastAPI Main Application
Investment funding, valuation and dividend API
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from keble import __version__
from keble.api.routes import dividends, health, investments, portfolio
from keble.config import settings
from keble.core.logging import setup_logging
from keble.infrastructure.db.database import close_db, init_db

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager
    Handles startup and shutdown of the database
    """
    logger.info("=" * 60)
    logger.info("Starting Keble Investment Core (%s)", settings.APP_ENV)
    logger.info("=" * 60)

    await init_db()
    logger.info("Database initialized")
    logger.info(
        "Minimum investment: $%s | token value: $%s | notifications: %s",
        settings.MINIMUM_INVESTMENT,
        settings.INVESTMENT_TOKEN_VALUE,
        "enabled" if settings.NOTIFICATIONS_ENABLED else "disabled",
    )
    logger.info("API Server: http://%s:%s", settings.API_HOST, settings.API_PORT)

    yield

    logger.info("Shutting down Keble Investment Core...")
    await close_db()
    logger.info("Database connections closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Keble Investment Core",
        description="Wallet-funded investments, return accrual and valuation",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(investments.router, prefix="/api/v1/investments", tags=["Investments"])
    app.include_router(portfolio.router, prefix="/api/v1/portfolio", tags=["Portfolio"])
    app.include_router(dividends.router, prefix="/api/v1/dividends", tags=["Dividends"])
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("keble.main:app", host=settings.API_HOST, port=settings.API_PORT, reload=settings.DEBUG)
