"""
This module defines the SubscriptionService for managing user subscriptions.
"""
import re
from typing import Iterable, List, Optional

from ..models import (LocationBinding, Subscriber, WasteType,
                      default_waste_types)
from .persistence_service import PersistenceService

NOTIFY_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):00$")
LOCATION_ID_MAX_LENGTH = 20
VALID_OFFSETS = (0, 1)


def is_valid_location_id(location_id: str) -> bool:
    """Location codes are short alphanumeric strings."""
    return (
        0 < len(location_id) <= LOCATION_ID_MAX_LENGTH
        and location_id.isascii()
        and location_id.isalnum()
    )


def next_notify_time(notify_time: str) -> str:
    """Returns the slot one hour after `notify_time`, wrapping at midnight."""
    if not NOTIFY_TIME_PATTERN.match(notify_time):
        return "18:00"
    hour = (int(notify_time[:2]) + 1) % 24
    return f"{hour:02d}:00"


class SubscriptionService:
    """Handles business logic for subscribers, their locations and categories."""

    def __init__(self, persistence_service: PersistenceService):
        self.persistence = persistence_service

    # --- Subscribers ---

    def create_subscriber(self, chat_id: int) -> None:
        self.persistence.create_user(chat_id)

    def find_subscriber(self, chat_id: int) -> Optional[Subscriber]:
        return self.persistence.find_user(chat_id)

    def delete_subscriber(self, chat_id: int) -> bool:
        """Deletes a subscriber with all of its locations and subscriptions."""
        return self.persistence.delete_user(chat_id)

    # --- Locations ---

    def add_location(
        self, chat_id: int, location_id: str, alias: Optional[str] = None
    ) -> int:
        """
        Adds a location for a chat, or renames it if the chat already has it.

        Raises:
            ValueError: If the location code is not valid.
        """
        location_id = location_id.strip()
        if not is_valid_location_id(location_id):
            raise ValueError(f"Invalid location ID: {location_id!r}")
        alias = alias.strip() if alias else None
        return self.persistence.upsert_user_location(chat_id, location_id, alias or None)

    def get_locations(self, chat_id: int) -> List[LocationBinding]:
        return self.persistence.get_user_locations(chat_id)

    def get_location(self, chat_id: int, binding_id: int) -> Optional[LocationBinding]:
        return self.persistence.get_user_location(chat_id, binding_id)

    def delete_location(self, chat_id: int, alias_or_id: str) -> bool:
        return self.persistence.delete_user_location(chat_id, alias_or_id)

    def delete_location_by_id(self, chat_id: int, binding_id: int) -> bool:
        return self.persistence.delete_user_location_by_id(chat_id, binding_id)

    def set_notify_time(self, chat_id: int, binding_id: int, notify_time: str) -> bool:
        """
        Sets the hourly slot ("HH:00") at which a location is notified.

        Raises:
            ValueError: If `notify_time` is not a full hour.
        """
        if not NOTIFY_TIME_PATTERN.match(notify_time):
            raise ValueError(f"Notification time must be HH:00, got {notify_time!r}")
        return self.persistence.update_notify_time(chat_id, binding_id, notify_time)

    def set_notify_offset(self, chat_id: int, binding_id: int, notify_offset: int) -> bool:
        """
        Sets whether a location is notified on the pickup day (0) or the day
        before (1).
        """
        if notify_offset not in VALID_OFFSETS:
            raise ValueError(f"Notification offset must be 0 or 1, got {notify_offset!r}")
        return self.persistence.update_notify_offset(chat_id, binding_id, notify_offset)

    def get_subscribed_location_ids(self) -> List[str]:
        return self.persistence.get_distinct_location_ids()

    # --- Categories ---

    def add_subscription(self, binding_id: int, waste_type: WasteType) -> None:
        self.persistence.add_subscriptions(binding_id, [waste_type])

    def subscribe_defaults(self, binding_id: int, waste_types: Optional[Iterable[WasteType]] = None) -> None:
        self.persistence.add_subscriptions(
            binding_id, waste_types if waste_types is not None else default_waste_types()
        )

    def remove_subscription(self, binding_id: int, waste_type: WasteType) -> bool:
        return self.persistence.remove_subscription(binding_id, waste_type)

    def get_subscriptions(self, binding_id: int) -> List[WasteType]:
        return self.persistence.get_subscriptions(binding_id)
