"""
This module contains configuration settings for the application.
"""
import os
import logging

# Telegram Bot Token
TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN")

# Logging level
LOG_LEVEL = logging.INFO

# Database path
WASTE_SCHEDULE_DB_PATH = os.environ.get("WASTE_SCHEDULE_DB_PATH", "waste_schedule.db")
DB_BUSY_TIMEOUT_SECONDS = float(os.environ.get("DB_BUSY_TIMEOUT_SECONDS", 30))

# All dates and notification slots are evaluated in this zone
LOCAL_TIMEZONE = os.environ.get("LOCAL_TIMEZONE", "Europe/Berlin")

# iCal feed
ICAL_API_URL = os.environ.get("ICAL_API_URL", "https://stadtplan.dresden.de/project/cardo3Apps/IDU_DDStadtplan/abfall/ical.ashx")
FEED_TIMEOUT_SECONDS = int(os.environ.get("FEED_TIMEOUT_SECONDS", 30))
FEED_DAYS_AHEAD = int(os.environ.get("FEED_DAYS_AHEAD", 90))
FEED_REQUEST_DELAY_SECONDS = float(os.environ.get("FEED_REQUEST_DELAY_SECONDS", 1))
FEED_UPDATE_HOUR = int(os.environ.get("FEED_UPDATE_HOUR", 4))
EVENT_INSERT_CHUNK_SIZE = int(os.environ.get("EVENT_INSERT_CHUNK_SIZE", 250))

# Schedule service retry settings
SCHEDULE_SERVICE_MAX_RETRIES = int(os.environ.get("SCHEDULE_SERVICE_MAX_RETRIES", 1))
SCHEDULE_SERVICE_RETRY_DELAY = int(os.environ.get("SCHEDULE_SERVICE_RETRY_DELAY", 10))

# Notification defaults and delivery
DEFAULT_NOTIFY_TIME = "18:00"
DEFAULT_NOTIFY_OFFSET = 1
NOTIFICATION_CONCURRENCY = int(os.environ.get("NOTIFICATION_CONCURRENCY", 15))

# Telegram bot rate limiting
TELEGRAM_RATE_LIMIT_OVERALL = int(os.environ.get("TELEGRAM_RATE_LIMIT_OVERALL", 30))
TELEGRAM_RATE_LIMIT_GROUP = float(os.environ.get("TELEGRAM_RATE_LIMIT_GROUP", 20 / 60))

# Idle subscribe dialogues are reset after this many seconds
CONVERSATION_TIMEOUT_SECONDS = int(os.environ.get("CONVERSATION_TIMEOUT_SECONDS", 600))
