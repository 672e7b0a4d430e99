"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    FundingState,
    InvestmentCategory,
    InvestmentStatus,
    ListingStatus,
    PlanOccurrence,
    TransactionType,

    # Entities
    Investment,
    Listing,
    Portfolio,
    Transaction,
    User,
    Wallet,

    # Valuation
    AggregateValuation,
    InvestmentValuation,
    PortfolioValuation,

    # Funding / dividends
    DividendPayout,
    DividendRunSummary,
    FundingRequest,
    FundingResult,
)

__all__ = [
    # Enums
    "FundingState",
    "InvestmentCategory",
    "InvestmentStatus",
    "ListingStatus",
    "PlanOccurrence",
    "TransactionType",

    # Entities
    "Investment",
    "Listing",
    "Portfolio",
    "Transaction",
    "User",
    "Wallet",

    # Valuation
    "AggregateValuation",
    "InvestmentValuation",
    "PortfolioValuation",

    # Funding / dividends
    "DividendPayout",
    "DividendRunSummary",
    "FundingRequest",
    "FundingResult",
]
