"""
Telegram Bot API client.

Outbound delivery is best-effort: a failed send is logged and reported
as False, never raised into the message pipeline. The bot token is part
of the request URL, so URLs are never logged.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from clixen.config import DEFAULT_TELEGRAM_API_BASE

logger = logging.getLogger(__name__)

# Telegram rejects sendMessage text above this length
MAX_MESSAGE_LENGTH = 4096


class TelegramClient:
    """Sends replies and chat actions through the Bot API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        bot_token: str,
        api_base: str = DEFAULT_TELEGRAM_API_BASE,
        timeout_seconds: float = 5.0,
    ):
        self._http = http_client
        self._bot_token = bot_token
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout_seconds

    async def send_message(self, chat_id, text: str) -> bool:
        """Send a plain-text message. Returns True if Telegram accepted it."""
        if not text:
            return False
        return await self._call(
            "sendMessage",
            {
                "chat_id": chat_id,
                "text": text[:MAX_MESSAGE_LENGTH],
                "disable_web_page_preview": True,
            },
        )

    async def send_chat_action(self, chat_id, action: str = "typing") -> bool:
        return await self._call("sendChatAction", {"chat_id": chat_id, "action": action})

    async def _call(self, method: str, payload: Dict[str, Any]) -> bool:
        if not self._bot_token:
            logger.error("Telegram bot token not configured", extra={"method": method})
            return False

        url = f"{self._api_base}/bot{self._bot_token}/{method}"
        try:
            response = await self._http.post(url, json=payload, timeout=self._timeout)
        except httpx.HTTPError as e:
            logger.warning(
                "Telegram request failed",
                extra={"method": method, "error_type": type(e).__name__},
            )
            return False

        if response.status_code != 200:
            logger.warning(
                "Telegram API error",
                extra={
                    "method": method,
                    "status_code": response.status_code,
                    "description": _description(response),
                },
            )
            return False
        return True


def _description(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("description") if isinstance(body, dict) else None
