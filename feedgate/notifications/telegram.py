"""
feedgate Telegram Notifier

Best-effort cycle notifications through the Telegram Bot API.
"""

import asyncio
import logging
from typing import Optional

import httpx

from ..config import NotificationsConfig

logger = logging.getLogger(__name__)

API_URL = "https://api.telegram.org/bot{token}/sendMessage"
MAX_ATTEMPTS = 3
RETRY_DELAY = 3.0
TIMEOUT = 15.0


class TelegramNotifier:
    """
    Send HTML-formatted messages to one chat.

    Failures are logged and never raised to the caller.
    """

    def __init__(
        self,
        config: NotificationsConfig,
        proxy_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_delay: float = RETRY_DELAY,
    ):
        self.config = config
        self.proxy_url = proxy_url or None
        self.transport = transport
        self.retry_delay = retry_delay

    @property
    def enabled(self) -> bool:
        return bool(self.config.telegram_bot_token and self.config.telegram_chat_id)

    def _client(self) -> httpx.AsyncClient:
        if self.transport is not None:
            return httpx.AsyncClient(timeout=TIMEOUT, transport=self.transport)
        if self.proxy_url:
            return httpx.AsyncClient(timeout=TIMEOUT, proxy=self.proxy_url)
        return httpx.AsyncClient(timeout=TIMEOUT)

    async def send(self, text: str) -> bool:
        """
        Post a message.

        Transport errors are retried; an HTTP error status is not.

        Returns:
            True if Telegram accepted the message
        """
        if not self.enabled:
            return False

        url = API_URL.format(token=self.config.telegram_bot_token)
        payload = {
            "chat_id": self.config.telegram_chat_id,
            "text": text,
            "parse_mode": "HTML",
        }

        async with self._client() as client:
            for attempt in range(1, MAX_ATTEMPTS + 1):
                try:
                    response = await client.post(url, json=payload)
                except httpx.TransportError as e:
                    logger.warning(f"Telegram send failed (attempt {attempt}/{MAX_ATTEMPTS}): {e}")
                    if attempt < MAX_ATTEMPTS:
                        await asyncio.sleep(self.retry_delay)
                    continue

                if response.status_code != 200:
                    logger.warning(f"Telegram API returned status {response.status_code}")
                    return False
                return True

        return False

    async def notify_start(self, text: str) -> bool:
        if not self.config.notify_on_start:
            return False
        return await self.send(text)

    async def notify_success(self, text: str) -> bool:
        if not self.config.notify_on_success:
            return False
        return await self.send(text)

    async def notify_error(self, text: str) -> bool:
        if not self.config.notify_on_error:
            return False
        return await self.send(text)
