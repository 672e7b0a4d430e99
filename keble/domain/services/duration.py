"""
DURATION MATH
Elapsed and total term lengths for return accrual

RULES:
✅ One unit everywhere (ACT/365 years) so ratios never mix units
✅ Exact: computed from whole microseconds, no float seconds
✅ Pure: never reads the clock
❌ Never raises for reversed instants (returns a negative value)
"""

import calendar
import logging
from datetime import datetime, timedelta
from decimal import Decimal

from keble.domain.errors import DivisionByZero

logger = logging.getLogger(__name__)

MICROSECONDS_PER_YEAR = 365 * 24 * 3600 * 1_000_000  # ACT/365

_ZERO = Decimal('0')
_ONE = Decimal('1')


def _microseconds(delta: timedelta) -> int:
    return delta // timedelta(microseconds=1)


def duration_difference(start: datetime, end: datetime) -> Decimal:
    """
    Return ``end - start`` in fractional years.

    Antisymmetric: duration_difference(a, b) == -duration_difference(b, a).
    """
    return Decimal(_microseconds(end - start)) / Decimal(MICROSECONDS_PER_YEAR)


def proration_ratio(
    elapsed_from: datetime,
    now: datetime,
    term_start: datetime,
    term_end: datetime,
) -> Decimal:
    """
    Fraction of the term elapsed between ``elapsed_from`` and ``now``.

    The result is clamped to [0, 1]: nothing accrues before the checkpoint and
    nothing beyond the full term.

    Raises:
        DivisionByZero: If the term has zero or negative length
    """
    total = _microseconds(term_end - term_start)
    if total <= 0:
        logger.error("Proration over non-positive term: %s -> %s", term_start, term_end)
        raise DivisionByZero(
            f"Investment term has non-positive length ({term_start} -> {term_end})"
        )

    elapsed = _microseconds(now - elapsed_from)
    ratio = Decimal(elapsed) / Decimal(total)

    return min(max(ratio, _ZERO), _ONE)


def add_months(moment: datetime, months: int) -> datetime:
    """
    Shift ``moment`` by whole calendar months, clamping the day to the
    target month's length (Jan 31 + 1 month -> Feb 28/29).
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)
