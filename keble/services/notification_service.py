"""
NOTIFICATION SERVICE

Thin Discord notification sender for investment events.
No DB access. No business logic.
"""

import logging

import httpx

from keble.domain.errors import NotificationFailure
from keble.domain.models import DividendRunSummary, FundingResult, Listing, User
from keble.domain.services.returns import to_display
from keble.utils.notifications import send_tiered_discord_message

logger = logging.getLogger(__name__)


class InvestmentNotifier:
    """Posts investment events to the configured webhook"""

    async def investment_funded(
        self,
        user: User,
        listing: Listing,
        result: FundingResult,
    ) -> bool:
        """
        Announce a committed funding

        Returns:
            True when a message was delivered, False when notifications are off

        Raises:
            NotificationFailure: Webhook unreachable or rejected the message
        """
        action = "topped up" if result.is_top_up else "invested"
        body = (
            f"{user.full_name} {action} ${to_display(result.amount)} "
            f"in {listing.project_name}.\n"
            f"Tokens: {result.tokens}\n"
            f"Portfolio: {result.portfolio_id}\n"
            f"Wallet balance: ${to_display(result.wallet_balance_after)}"
        )
        return await self._send("SUCCESS", "Investment funded", body)

    async def dividends_disbursed(self, summary: DividendRunSummary) -> bool:
        tier = "ERROR" if summary.failed else "SUCCESS"
        body = (
            f"Paid: {len(summary.paid)} (${to_display(summary.total_paid)})\n"
            f"Skipped: {len(summary.skipped)}\n"
            f"Failed: {len(summary.failed)}"
        )
        return await self._send(tier, "Monthly dividends", body)

    async def _send(self, tier: str, title: str, body: str) -> bool:
        try:
            return await send_tiered_discord_message(tier=tier, title=title, body=body)
        except httpx.HTTPError as exc:
            raise NotificationFailure(f"{title} notification not delivered: {exc}") from exc
