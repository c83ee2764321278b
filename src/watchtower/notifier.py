"""
Best-effort notification delivery.

Messages go to every configured channel:
- Slack incoming webhook (``{"text": ...}``)
- Discord webhook (``{"content": ...}``)
- Telegram bot ``sendMessage``

Delivery failures of any kind, including a malformed channel URL, are
logged and dropped; they never reach the poll loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from watchtower.config import WatchtowerConfig
from watchtower.constants import NOTIFIER_TIMEOUT_S

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


@dataclass(frozen=True)
class WebhookChannel:
    """A single delivery target."""

    name: str
    url: str
    body_key: str
    extra: Optional[Dict[str, Any]] = None

    def payload(self, message: str) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extra or {})
        data[self.body_key] = message
        return data


class Notifier:
    """Send a message to the configured webhooks."""

    def __init__(
        self,
        channels: Optional[List[WebhookChannel]] = None,
        source: str = "watchtower",
        timeout_seconds: float = NOTIFIER_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.channels = list(channels or [])
        self.source = source
        self.timeout = timeout_seconds
        self._transport = transport

    @classmethod
    def from_config(
        cls, config: WatchtowerConfig, transport: Optional[httpx.BaseTransport] = None
    ) -> "Notifier":
        channels: List[WebhookChannel] = []
        if config.slack_webhook:
            channels.append(WebhookChannel("slack", config.slack_webhook, "text"))
        if config.discord_webhook:
            channels.append(WebhookChannel("discord", config.discord_webhook, "content"))
        if config.telegram_bot_token and config.telegram_chat_id:
            channels.append(
                WebhookChannel(
                    "telegram",
                    f"{TELEGRAM_API_URL}/bot{config.telegram_bot_token}/sendMessage",
                    "text",
                    extra={"chat_id": config.telegram_chat_id},
                )
            )
        elif config.telegram_bot_token or config.telegram_chat_id:
            logger.warning("Telegram needs both a bot token and a chat id, channel disabled")
        return cls(channels, source=config.notification_source, transport=transport)

    @property
    def enabled(self) -> bool:
        return bool(self.channels)

    def send(self, message: str) -> None:
        """Deliver ``message`` to every channel, prefixed with the source name."""
        text = f"{self.source}: {message}" if self.source else message
        if not self.channels:
            logger.info(f"No notification channel configured: {text}")
            return

        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            for channel in self.channels:
                try:
                    response = client.post(channel.url, json=channel.payload(text))
                    response.raise_for_status()
                except Exception as e:
                    logger.warning(f"Failed to send {channel.name} notification: {e}")
