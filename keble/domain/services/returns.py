"""
RETURN FORMULAS
Simple-interest returns on a listing rate (percent per full term)

RULES:
✅ Decimal in, Decimal out
✅ No rounding here (see to_display for the output boundary)
❌ Zero or negative duration is a contract violation, never Infinity/NaN
"""

import logging
from decimal import Decimal, ROUND_FLOOR
from typing import Union

from keble.domain.errors import DivisionByZero

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, str]

HUNDRED = Decimal('100')
DIVIDEND_PERIOD_MONTHS = Decimal('3')
DISPLAY_QUANTUM = Decimal('0.01')


def _dec(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _require_positive_duration(duration: Number) -> Decimal:
    duration = _dec(duration)
    if duration <= Decimal('0'):
        logger.error("Return math received non-positive duration: %s", duration)
        raise DivisionByZero(f"Duration must be positive, got {duration}")
    return duration


def simple_return(amount: Number, rate_percent: Number) -> Decimal:
    """Full-term return: amount * rate / 100"""
    return _dec(amount) * _dec(rate_percent) / HUNDRED


def expected_payout(amount: Number, rate_percent: Number) -> Decimal:
    """Principal plus full-term return"""
    return _dec(amount) + simple_return(amount, rate_percent)


def accumulated_return(
    amount: Number,
    rate_percent: Number,
    elapsed_fraction: Number,
) -> Decimal:
    """Full-term return prorated by the elapsed fraction of the term"""
    return simple_return(amount, rate_percent) * _dec(elapsed_fraction)


def periodic_dividend(amount: Number, rate_percent: Number, duration: Number) -> Decimal:
    """
    Quarterly dividend derived from the full-term return.

    Args:
        amount: Principal
        rate_percent: Listing rate for the full term
        duration: Term length in months

    Raises:
        DivisionByZero: If duration <= 0
    """
    duration = _require_positive_duration(duration)
    return simple_return(amount, rate_percent) * DIVIDEND_PERIOD_MONTHS / duration


def monthly_dividend(amount: Number, rate_percent: Number, duration: Number) -> Decimal:
    """Monthly cash dividend: full-term return spread over the term's months"""
    duration = _require_positive_duration(duration)
    return simple_return(amount, rate_percent) / duration


def to_display(value: Number) -> Decimal:
    """Truncate to 2 decimal places for presentation (never used mid-calculation)"""
    return _dec(value).quantize(DISPLAY_QUANTUM, rounding=ROUND_FLOOR)
