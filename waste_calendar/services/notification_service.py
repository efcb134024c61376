"""
This module defines the NotificationService for handling notifications.
"""

from datetime import date, datetime, timedelta
from typing import List

from ..clock import slot_for
from ..models import NotificationTask, WasteKind, WasteType
from .persistence_service import PersistenceService

_EMOJIS = {
    WasteKind.BIO: "🟤",
    WasteKind.REST: "⚫",
    WasteKind.PAPER: "🔵",
    WasteKind.YELLOW: "🟡",
    WasteKind.CHRISTMAS_TREE: "🎄",
}


def get_waste_type_emoji(waste_type: WasteType) -> str:
    """Returns an emoji for a given waste type."""
    return _EMOJIS.get(waste_type, "🗑️")


class NotificationService:
    """Decides which notifications are due in a slot and phrases them."""

    def __init__(self, persistence_service: PersistenceService):
        self.persistence = persistence_service

    def get_due_notifications(
        self, slot_time: str, today: date, tomorrow: date
    ) -> List[NotificationTask]:
        """
        Gathers all notifications that are due in the given slot.

        A location notified on the pickup day is matched against `today`, one
        notified the day before against `tomorrow`. The result is unordered and
        nothing is written, so the call can be repeated freely.

        Args:
            slot_time: The slot being processed, formatted "HH:00".
            today: The local date of the slot.
            tomorrow: The day after `today`.

        Returns:
            One task per chat, location and waste type to notify.
        """
        return self.persistence.get_users_to_notify(
            slot_time, today.isoformat(), tomorrow.isoformat()
        )

    def get_due_notifications_at(self, moment: datetime) -> List[NotificationTask]:
        """Same as get_due_notifications for the slot `moment` falls into."""
        today = moment.date()
        return self.get_due_notifications(slot_for(moment), today, today + timedelta(days=1))

    @staticmethod
    def format_message(task: NotificationTask) -> str:
        day = "Morgen" if task.is_day_before else "Heute"
        waste = task.waste_type.value
        emoji = get_waste_type_emoji(task.waste_type)
        return f"📅 {day} bei {task.label}: {emoji} {waste}-Abholung."
