"""
This module defines the central facade for the waste calendar application.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from .clock import local_now, local_today
from .exceptions import DownloadError, ParsingError
from .models import LocationBinding, NotificationTask, WasteType
from .services.notification_service import NotificationService
from .services.persistence_service import PersistenceService
from .services.subscription_service import (SubscriptionService,
                                            next_notify_time)
from .services.sync_service import SyncService

logger = logging.getLogger(__name__)


class WasteCalendarFacade:
    """
    The central entry point for the bot and the dashboard.
    It orchestrates the various services to perform high-level operations.

    Store failures are logged here and reported to callers as False, None
    or an empty list, so that the front-end can show a friendly message.
    """

    def __init__(
        self,
        persistence_service: PersistenceService,
        subscription_service: SubscriptionService,
        notification_service: NotificationService,
        sync_service: SyncService,
    ):
        self.persistence_service = persistence_service
        self.subscription_service = subscription_service
        self.notification_service = notification_service
        self.sync_service = sync_service

    # --- Locations ---

    def add_location(
        self, chat_id: int, location_id: str, alias: Optional[str] = None
    ) -> Optional[int]:
        """
        Adds a location for a chat and subscribes it to the default waste types.

        Adding a location the chat already has only renames it.

        Returns:
            The id of the location binding, or None if it could not be stored.

        Raises:
            ValueError: If the location code is not valid.
        """
        try:
            known = {
                location.id for location in self.subscription_service.get_locations(chat_id)
            }
            binding_id = self.subscription_service.add_location(chat_id, location_id, alias)
            if binding_id not in known:
                self.subscription_service.subscribe_defaults(binding_id)
            logger.info(f"Chat {chat_id} added location {location_id} ('{alias}').")
            return binding_id
        except ValueError:
            raise
        except Exception as e:
            logger.exception(f"Failed to add location {location_id} for chat {chat_id}: {e}")
            return None

    def refresh_location_if_missing(self, location_id: str) -> bool:
        """
        Fetches the schedule of a location that has no upcoming events yet.

        This blocks on the network and should run in a worker thread.

        Returns:
            True if events are available afterwards.
        """
        today = local_today()
        try:
            if self.persistence_service.has_future_events(location_id, today):
                return True
            return self.sync_service.update_location(location_id, today=today) > 0
        except (DownloadError, ParsingError) as e:
            logger.warning(f"Initial schedule download failed for location {location_id}: {e}")
            return False
        except Exception as e:
            logger.exception(f"Failed to refresh location {location_id}: {e}")
            return False

    def get_locations(self, chat_id: int) -> List[LocationBinding]:
        try:
            return self.subscription_service.get_locations(chat_id)
        except Exception as e:
            logger.exception(f"Failed to get locations for chat {chat_id}: {e}")
            return []

    def get_location(self, chat_id: int, binding_id: int) -> Optional[LocationBinding]:
        try:
            return self.subscription_service.get_location(chat_id, binding_id)
        except Exception as e:
            logger.exception(f"Failed to get location {binding_id} for chat {chat_id}: {e}")
            return None

    def delete_location(self, chat_id: int, binding_id: int) -> bool:
        try:
            return self.subscription_service.delete_location_by_id(chat_id, binding_id)
        except Exception as e:
            logger.exception(f"Failed to delete location {binding_id} for chat {chat_id}: {e}")
            return False

    def cycle_notify_time(self, chat_id: int, binding_id: int) -> Optional[str]:
        """Moves a location's notification one hour later and returns the new slot."""
        try:
            location = self.subscription_service.get_location(chat_id, binding_id)
            if location is None:
                return None
            new_time = next_notify_time(location.notify_time)
            self.subscription_service.set_notify_time(chat_id, binding_id, new_time)
            return new_time
        except Exception as e:
            logger.exception(f"Failed to update notify time of location {binding_id}: {e}")
            return None

    def toggle_notify_offset(self, chat_id: int, binding_id: int) -> Optional[int]:
        """Switches a location between same-day and day-before notifications."""
        try:
            location = self.subscription_service.get_location(chat_id, binding_id)
            if location is None:
                return None
            new_offset = 0 if location.notify_offset == 1 else 1
            self.subscription_service.set_notify_offset(chat_id, binding_id, new_offset)
            return new_offset
        except Exception as e:
            logger.exception(f"Failed to update notify offset of location {binding_id}: {e}")
            return None

    # --- Categories ---

    def get_subscriptions(self, binding_id: int) -> List[WasteType]:
        try:
            return self.subscription_service.get_subscriptions(binding_id)
        except Exception as e:
            logger.exception(f"Failed to get subscriptions of location {binding_id}: {e}")
            return []

    def set_subscription(
        self, chat_id: int, binding_id: int, waste_type: WasteType, subscribed: bool
    ) -> bool:
        """Subscribes or unsubscribes one waste type of a chat's location."""
        try:
            if self.subscription_service.get_location(chat_id, binding_id) is None:
                return False
            if subscribed:
                self.subscription_service.add_subscription(binding_id, waste_type)
            else:
                self.subscription_service.remove_subscription(binding_id, waste_type)
            return True
        except Exception as e:
            logger.exception(
                f"Failed to change subscription {waste_type.value} of location {binding_id}: {e}"
            )
            return False

    # --- Subscribers ---

    def unsubscribe_all(self, chat_id: int) -> bool:
        """Deletes a chat with all of its data."""
        try:
            self.subscription_service.delete_subscriber(chat_id)
            logger.info(f"Deleted all data of chat {chat_id}.")
            return True
        except Exception as e:
            logger.exception(f"Failed to delete chat {chat_id}: {e}")
            return False

    def get_next_pickups(self, chat_id: int) -> List[dict]:
        """Gets the next subscribed pickups for each location of a chat."""
        try:
            return self.persistence_service.get_next_pickups(chat_id, local_today())
        except Exception as e:
            logger.exception(f"Failed to get next pickups for chat {chat_id}: {e}")
            return []

    # --- Notification Cycle Methods ---

    def get_due_notifications(
        self, slot_time: str, today: date, tomorrow: date
    ) -> List[NotificationTask]:
        """Gets all notifications that are due in a slot."""
        try:
            return self.notification_service.get_due_notifications(slot_time, today, tomorrow)
        except Exception:
            logger.exception(f"Failed to get due notifications for {slot_time}.")
            return []

    def format_notification(self, task: NotificationTask) -> str:
        return self.notification_service.format_message(task)

    def remove_subscriber(self, chat_id: int) -> bool:
        """Removes a chat that can no longer receive messages."""
        try:
            return self.subscription_service.delete_subscriber(chat_id)
        except Exception:
            logger.exception(f"Failed to remove unreachable chat {chat_id}.")
            return False

    # --- Operations ---

    def record_bot_start_time(self, started_at: Optional[datetime] = None) -> None:
        try:
            self.persistence_service.record_system_info(
                "bot_start_time", (started_at or local_now()).isoformat()
            )
        except Exception as e:
            logger.error(f"Failed to record bot start time: {e}")

    def get_dashboard_data(self) -> dict:
        """Retrieves all necessary data for the dashboard."""
        try:
            return {
                "counts": self.persistence_service.get_counts(local_today()),
                "bot_start_time": self.persistence_service.get_system_info("bot_start_time"),
                "logs": self.persistence_service.get_all_logs(),
            }
        except Exception as e:
            logger.exception("Failed to retrieve dashboard data.")
            return {"counts": {}, "bot_start_time": None, "logs": [], "error": str(e)}
