"""
VALUATION ENGINE
Current value and accrued returns of investments

RESPONSIBILITIES:
- Pick the listing rate that applies to an investment
- Prorate the full-term return by elapsed time
- Aggregate per user and per portfolio

RULES:
❌ No I/O, no clock reads (``now`` is always passed in)
❌ No rounding between intermediate sums
✅ MATURED investments realize the full-term return
✅ Proration ratio clamped to [0, 1]
"""

import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional

from keble.domain.errors import MissingListing
from keble.domain.models import (
    AggregateValuation,
    Investment,
    InvestmentCategory,
    InvestmentValuation,
    Listing,
    PortfolioValuation,
)
from keble.domain.services import returns
from keble.domain.services.duration import proration_ratio

logger = logging.getLogger(__name__)

_ZERO = Decimal('0')
_ONE = Decimal('1')


class ValuationEngine:
    """
    Valuation Engine
    Single shared implementation of the current-value / expected-payout branching
    """

    @staticmethod
    def select_rate(category: InvestmentCategory, listing: Listing) -> Decimal:
        """
        Rate (percent per term) that applies to an investment category.

        The category-specific rate wins; a null or zero value falls back to the
        listing's legacy ``returns`` field.
        """
        if category == InvestmentCategory.FIXED:
            specific = listing.fixed_returns
        else:
            specific = listing.flexible_returns

        if specific:
            return Decimal(str(specific))
        return Decimal(str(listing.returns or 0))

    def compute_valuation(
        self,
        investment: Investment,
        listing: Optional[Listing],
        now: datetime,
    ) -> InvestmentValuation:
        """
        Value one investment at ``now``

        Args:
            investment: Investment record
            listing: Listing the investment references
            now: Valuation instant

        Returns:
            InvestmentValuation (unrounded)

        Raises:
            MissingListing: If the listing is absent or does not match
            DivisionByZero: If the investment term has no length
        """
        if listing is None or listing.id != investment.listing_id:
            raise MissingListing(investment.listing_id)

        rate = self.select_rate(investment.investment_category, listing)
        amount = investment.amount

        if investment.is_matured:
            elapsed_fraction = _ONE
        else:
            elapsed_fraction = proration_ratio(
                elapsed_from=investment.accrual_checkpoint,
                now=now,
                term_start=investment.start_date,
                term_end=investment.end_date,
            )

        accrued = returns.accumulated_return(amount, rate, elapsed_fraction)

        dividend = None
        if investment.investment_category == InvestmentCategory.FLEXIBLE:
            dividend = returns.periodic_dividend(amount, rate, investment.duration)

        return InvestmentValuation(
            investment_id=investment.id,
            listing_id=listing.id,
            portfolio_id=investment.portfolio_id,
            rate=rate,
            amount=amount,
            elapsed_fraction=elapsed_fraction,
            accumulated_return=accrued,
            current_value=amount + accrued,
            expected_payout=returns.expected_payout(amount, rate),
            periodic_dividend=dividend,
        )

    def aggregate_valuation(
        self,
        investments: Iterable[Investment],
        listings_by_id: Mapping[int, Listing],
        now: datetime,
        strict: bool = True,
    ) -> AggregateValuation:
        """
        Sum current value and accrued returns across a set of investments

        Args:
            investments: Investments to value (one user's or one portfolio's)
            listings_by_id: Listing lookup
            now: Valuation instant
            strict: Fail with MissingListing instead of skipping

        Returns:
            AggregateValuation (unrounded; call .rounded() for display)
        """
        investments = list(investments)

        total_value = _ZERO
        total_returns = _ZERO
        total_invested = _ZERO
        total_tokens = _ZERO
        listing_ids = set()
        skipped = []

        for investment in investments:
            total_invested += investment.amount
            total_tokens += investment.no_tokens
            listing_ids.add(investment.listing_id)

            listing = listings_by_id.get(investment.listing_id)
            if listing is None:
                if strict:
                    raise MissingListing(investment.listing_id)
                logger.warning(
                    "Listing %s missing; investment %s excluded from valuation",
                    investment.listing_id,
                    investment.id,
                )
                skipped.append(investment.id)
                continue

            valuation = self.compute_valuation(investment, listing, now)
            total_value += valuation.current_value
            total_returns += valuation.accumulated_return

        return AggregateValuation(
            total_current_value=total_value,
            total_accumulated_return=total_returns,
            total_amount_invested=total_invested,
            total_tokens=total_tokens,
            unique_asset_count=len(listing_ids),
            skipped_investment_ids=tuple(skipped),
        )

    def aggregate_by_portfolio(
        self,
        investments: Iterable[Investment],
        listings_by_id: Mapping[int, Listing],
        now: datetime,
        strict: bool = True,
    ) -> List[PortfolioValuation]:
        """
        Group investments by portfolio and total each group.

        Investments without a portfolio are grouped under ``None``. Groups keep
        the order in which their first investment appears.
        """
        groups: Dict[Optional[int], List[Investment]] = OrderedDict()
        for investment in investments:
            groups.setdefault(investment.portfolio_id, []).append(investment)

        results = []
        for portfolio_id, members in groups.items():
            totals = self.aggregate_valuation(members, listings_by_id, now, strict=strict)
            results.append(
                PortfolioValuation(
                    portfolio_id=portfolio_id,
                    investment_count=len(members),
                    amount_invested=totals.total_amount_invested,
                    current_value=totals.total_current_value,
                    accumulated_return=totals.total_accumulated_return,
                )
            )
        return results
