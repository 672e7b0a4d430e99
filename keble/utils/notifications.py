"""Notification helpers (Discord webhook)."""

import logging
from typing import Optional

import httpx

from keble.config import settings

logger = logging.getLogger(__name__)


def format_tiered_message(tier: str, title: str, body: str) -> str:
    tier_u = (tier or "INFO").upper()
    if tier_u == "SUCCESS":
        prefix = "SUCCESS"
    elif tier_u == "ERROR":
        prefix = "ERROR"
    else:
        prefix = "INFO"
    return f"[{prefix}] {title}\n\n{body}".strip()


async def send_discord_message(text: str, webhook_url: Optional[str] = None) -> bool:
    """
    Post a message to the configured Discord webhook.

    Returns False when notifications are not configured. Transport and HTTP
    errors propagate to the caller.
    """
    url = webhook_url or settings.DISCORD_WEBHOOK_URL

    if not settings.NOTIFICATIONS_ENABLED or not url:
        logger.info("Discord alert skipped (notifications disabled or DISCORD_WEBHOOK_URL missing)")
        return False

    async with httpx.AsyncClient(timeout=15.0) as client:
        resp = await client.post(url, json={"content": text})
        resp.raise_for_status()
    return True


async def send_tiered_discord_message(
    tier: str,
    title: str,
    body: str,
    extra_text: Optional[str] = None,
) -> bool:
    text = format_tiered_message(tier=tier, title=title, body=body)
    if extra_text:
        text = f"{text}\n\n{extra_text}"
    return await send_discord_message(text)
