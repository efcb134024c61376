"""
This module provides a factory for creating and configuring the application's core components.
"""

from waste_calendar.config import WASTE_SCHEDULE_DB_PATH
from waste_calendar.facade import WasteCalendarFacade
from waste_calendar.services.notification_service import NotificationService
from waste_calendar.services.persistence_service import PersistenceService
from waste_calendar.services.schedule_service import ScheduleService
from waste_calendar.services.subscription_service import SubscriptionService
from waste_calendar.services.sync_service import SyncService

from .logging_config import setup_database_logging


def initialize_app(db_path: str = WASTE_SCHEDULE_DB_PATH) -> None:
    """
    Initializes the application by creating the database schema and setting up logging.
    """
    # The logs table must exist before the database handler writes to it
    PersistenceService(db_path).init_db()
    setup_database_logging(db_path)


def create_facade(db_path: str = WASTE_SCHEDULE_DB_PATH) -> WasteCalendarFacade:
    """
    Initializes and returns the WasteCalendarFacade with all its dependencies.
    """
    persistence_service = PersistenceService(db_path)
    schedule_service = ScheduleService()
    subscription_service = SubscriptionService(persistence_service)
    notification_service = NotificationService(persistence_service)
    sync_service = SyncService(
        persistence_service=persistence_service, schedule_service=schedule_service
    )

    return WasteCalendarFacade(
        persistence_service=persistence_service,
        subscription_service=subscription_service,
        notification_service=notification_service,
        sync_service=sync_service,
    )
