"""
This script runs the Telegram bot together with the notification and iCal update schedulers.
"""
import asyncio

from pickup_notifier.app_factory import create_facade, initialize_app
from telegram_bot.bot import main as bot_main

if __name__ == "__main__":
    initialize_app()
    asyncio.run(bot_main(create_facade()))
