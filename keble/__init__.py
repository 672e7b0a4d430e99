"""Keble investment core: returns accrual, portfolio valuation and funding."""

__version__ = "1.0.0"
