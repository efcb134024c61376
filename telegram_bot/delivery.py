"""
This module adapts the Telegram bot to the delivery channel used by the
notification scheduler.
"""
import logging

from telegram import Bot
from telegram.error import Forbidden, TelegramError

from waste_calendar.exceptions import (PermanentDeliveryError,
                                       TransientDeliveryError)

logger = logging.getLogger(__name__)


class TelegramDeliveryChannel:
    """Sends plain text messages and classifies Telegram failures."""

    def __init__(self, bot: Bot):
        self.bot = bot

    async def send(self, chat_id: int, text: str) -> None:
        """
        Sends a single notification message to a chat.

        Raises:
            PermanentDeliveryError: If the user blocked the bot or was deactivated.
            TransientDeliveryError: For every other Telegram error.
        """
        try:
            await self.bot.send_message(chat_id=chat_id, text=text)
        except Forbidden as e:
            raise PermanentDeliveryError(chat_id, str(e)) from e
        except TelegramError as e:
            raise TransientDeliveryError(chat_id, str(e)) from e
