"""
Reply dispatcher.

A ReplyMessage reaches the requester through exactly one channel:

  1. The webhook's own HTTP response body (synchronous platforms).
  2. An authenticated follow-up POST to the platform's callback URL, when the
     inbound event carries a bot token plus a bot or chat identifier.

resolve_callback_target() decides which channel applies. deliver_reply()
performs channel 2 and never raises: by the time it runs the inbound request
has already been answered, so a delivery failure is logged and reported as
False instead.
"""

import logging
from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel

from food_relay.config import RelaySettings
from food_relay.models.chat_event import InboundEvent
from food_relay.models.reply import ReplyMessage

logger = logging.getLogger(__name__)


class DispatchFailed(Exception):
    """Raised when the platform callback could not be delivered."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CallbackTarget(BaseModel):
    """Where and how to POST a follow-up reply."""
    model_config = {"frozen": True}

    url: str
    token: str
    auth_scheme: str = "Zoho-oauthtoken"

    @property
    def authorization(self) -> str:
        return f"{self.auth_scheme} {self.token}"


def resolve_callback_target(
    event: InboundEvent,
    settings: RelaySettings,
) -> Optional[CallbackTarget]:
    """
    Build the callback target from the event, or None for a synchronous reply.

    Priority:
      1. bot.unique_name  → {base}/bots/{unique_name}/message
      2. chat.id          → {base}/chats/{chat_id}/message

    A bearer token (bot.token) is required for either.
    """
    bot = event.bot
    token = (bot.token or "").strip() if bot else ""
    if not token:
        return None

    base = settings.callback_base_url.rstrip("/")
    if bot.unique_name:
        url = f"{base}/bots/{quote(bot.unique_name, safe='')}/message"
    elif event.chat and event.chat.id:
        url = f"{base}/chats/{quote(str(event.chat.id), safe='')}/message"
    else:
        return None

    return CallbackTarget(url=url, token=token, auth_scheme=settings.callback_auth_scheme)


async def post_callback(
    reply: ReplyMessage,
    target: CallbackTarget,
    timeout: float = 60.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """
    POST one reply to the platform callback.

    Raises:
        DispatchFailed: on transport errors or a non-2xx response
    """
    headers = {
        "Authorization": target.authorization,
        "Content-Type": "application/json",
    }
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport) as client:
            response = await client.post(target.url, json=reply.to_body(), headers=headers)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise DispatchFailed(f"Callback request failed: {type(e).__name__}: {e}") from e

    if not response.is_success:
        raise DispatchFailed(
            f"Callback rejected with HTTP {response.status_code}: {response.text[:500]}",
            status_code=response.status_code,
        )


async def deliver_reply(
    reply: ReplyMessage,
    target: Optional[CallbackTarget],
    timeout: float = 60.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """
    Fire-and-forget delivery through the callback channel.

    Returns True when the platform accepted the reply. A missing target is a
    logged no-op; delivery errors are logged and return False.
    """
    if target is None:
        logger.warning("No callback target for reply; dropping it")
        return False

    try:
        await post_callback(reply, target, timeout=timeout, transport=transport)
    except DispatchFailed as e:
        logger.error(f"Failed to deliver reply to {target.url}: {e}")
        return False

    logger.info(f"Reply delivered to {target.url}")
    return True
