"""
This module defines a custom context class for the Telegram bot.
"""
from telegram.ext import CallbackContext, ExtBot

from waste_calendar.facade import WasteCalendarFacade

FACADE_KEY = "facade"


class CustomContext(CallbackContext[ExtBot, dict, dict, dict]):
    """
    A custom context class that exposes the WasteCalendarFacade stored in
    the application's bot_data.
    """

    @property
    def facade(self) -> WasteCalendarFacade:
        """
        The WasteCalendarFacade instance.
        """
        return self.bot_data[FACADE_KEY]
