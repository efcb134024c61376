"""
This module sets up a database logging handler for the application.
"""
import logging
import sqlite3
import sys
from logging import Handler, LogRecord

from waste_calendar.config import (DB_BUSY_TIMEOUT_SECONDS, LOG_LEVEL,
                                   WASTE_SCHEDULE_DB_PATH)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class SQLiteHandler(Handler):
    """
    A logging handler that writes records to the logs table of an SQLite database.
    """

    def __init__(self, db_path: str = WASTE_SCHEDULE_DB_PATH):
        super().__init__()
        self.db_path = db_path

    def emit(self, record: LogRecord) -> None:
        """
        Writes the log record to the database.
        """
        try:
            conn = sqlite3.connect(self.db_path, timeout=DB_BUSY_TIMEOUT_SECONDS)
            try:
                conn.execute(
                    "INSERT INTO logs (level, message, logger_name) VALUES (?, ?, ?)",
                    (record.levelname, self.format(record), record.name),
                )
                conn.commit()
            finally:
                conn.close()
        except Exception:
            # A log record must never crash the caller
            self.handleError(record)


def setup_database_logging(db_path: str = WASTE_SCHEDULE_DB_PATH, level: int = LOG_LEVEL) -> None:
    """
    Configures the root logger to write to the database and the console.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove any existing handlers to avoid duplicates
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    db_handler = SQLiteHandler(db_path)
    db_handler.setLevel(level)
    db_handler.setFormatter(formatter)
    logger.addHandler(db_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # The HTTP clients log every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logging.info("Logging configured to use database and console.")
