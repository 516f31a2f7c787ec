"""Telegram delivery channel."""

from __future__ import annotations

import logging

from telegram import Bot
from telegram.request import HTTPXRequest

from newsdesk.config import get_telegram_config
from newsdesk.deliver import register_channel
from newsdesk.deliver.base import BaseDelivery

logger = logging.getLogger(__name__)


@register_channel("telegram")
class TelegramDelivery(BaseDelivery):
    """Send news messages via a Telegram bot."""

    def __init__(self, config: dict):
        super().__init__(config)
        self.settings = get_telegram_config(config)
        self.max_message_length = self.settings["max_message_length"]
        self._bot: Bot | None = None

    @property
    def name(self) -> str:
        return "telegram"

    @property
    def configured(self) -> bool:
        return bool(self.settings["bot_token"] and self.settings["chat_id"])

    def _get_bot(self) -> tuple[Bot, str]:
        if not self.configured:
            raise ValueError("Telegram bot_token and chat_id must be configured")
        if self._bot is None:
            timeout = self.settings["timeout"]
            request = HTTPXRequest(
                connect_timeout=10.0,
                read_timeout=timeout,
                write_timeout=timeout,
                pool_timeout=10.0,
            )
            self._bot = Bot(token=self.settings["bot_token"], request=request)
        return self._bot, self.settings["chat_id"]

    async def send(self, text: str) -> str:
        """Send an HTML message. Telegram errors propagate to the caller."""
        bot, chat_id = self._get_bot()
        message = await bot.send_message(
            chat_id=chat_id,
            text=text,
            parse_mode="HTML",
            disable_web_page_preview=False,
        )
        logger.debug("Sent Telegram message %s", message.message_id)
        return str(message.message_id)

    async def send_test(self) -> bool:
        """Send a test message to verify Telegram configuration."""
        try:
            await self.send("<b>newsdesk</b>: test message. Configuration OK.")
            logger.info("Telegram test message sent successfully")
            return True
        except Exception:
            logger.exception("Telegram test failed")
            return False
