"""
Unit tests for the NotificationService.
"""
from datetime import date, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from waste_calendar.models import NotificationTask, OtherWaste, PickupEvent, WasteKind
from waste_calendar.services.notification_service import (
    NotificationService, get_waste_type_emoji)
from waste_calendar.services.persistence_service import PersistenceService

TODAY = date(2024, 5, 10)
TOMORROW = TODAY + timedelta(days=1)


@pytest.fixture
def persistence_service(tmp_path):
    service = PersistenceService(db_path=str(tmp_path / "test.db"))
    service.init_db()
    return service


@pytest.fixture
def notification_service(persistence_service):
    return NotificationService(persistence_service)


def _bind(persistence_service, chat_id, location_id, notify_time, offset, waste_types):
    binding_id = persistence_service.upsert_user_location(chat_id, location_id, None)
    persistence_service.update_notify_time(chat_id, binding_id, notify_time)
    persistence_service.update_notify_offset(chat_id, binding_id, offset)
    persistence_service.add_subscriptions(binding_id, waste_types)
    return binding_id


def test_get_waste_type_emoji():
    assert get_waste_type_emoji(WasteKind.BIO) == "🟤"
    assert get_waste_type_emoji(WasteKind.CHRISTMAS_TREE) == "🎄"
    assert get_waste_type_emoji(OtherWaste("Sperrmüll")) == "🗑️"


def test_due_notifications_exact_match(persistence_service, notification_service):
    _bind(persistence_service, 1, "L1", "18:00", 1, [WasteKind.BIO])
    _bind(persistence_service, 2, "L1", "18:00", 0, [WasteKind.BIO])
    _bind(persistence_service, 3, "L1", "19:00", 1, [WasteKind.BIO])
    _bind(persistence_service, 4, "L1", "18:00", 1, [WasteKind.PAPER])
    _bind(persistence_service, 5, "L2", "18:00", 1, [WasteKind.BIO])
    persistence_service.replace_future_events(
        "L1", [PickupEvent("L1", TOMORROW, WasteKind.BIO)], today=TODAY
    )

    tasks = notification_service.get_due_notifications("18:00", TODAY, TOMORROW)

    assert tasks == [NotificationTask(1, WasteKind.BIO, "L1", None, 1)]


def test_due_notifications_same_day(persistence_service, notification_service):
    _bind(persistence_service, 1, "L1", "06:00", 0, [WasteKind.REST, WasteKind.YELLOW])
    persistence_service.replace_future_events(
        "L1",
        [
            PickupEvent("L1", TODAY, WasteKind.REST),
            PickupEvent("L1", TODAY, WasteKind.YELLOW),
            PickupEvent("L1", TOMORROW, WasteKind.BIO),
        ],
        today=TODAY,
    )

    tasks = notification_service.get_due_notifications("06:00", TODAY, TOMORROW)

    assert sorted(task.waste_type.value for task in tasks) == ["Gelb", "Rest"]


def test_due_notifications_is_repeatable(persistence_service, notification_service):
    _bind(persistence_service, 1, "L1", "18:00", 1, [WasteKind.BIO])
    persistence_service.replace_future_events(
        "L1", [PickupEvent("L1", TOMORROW, WasteKind.BIO)], today=TODAY
    )

    first = notification_service.get_due_notifications("18:00", TODAY, TOMORROW)
    second = notification_service.get_due_notifications("18:00", TODAY, TOMORROW)
    assert first == second


def test_due_notifications_at_uses_slot_of_moment():
    persistence_service = MagicMock()
    persistence_service.get_users_to_notify.return_value = []
    service = NotificationService(persistence_service)

    service.get_due_notifications_at(datetime(2024, 5, 31, 18, 0, 5))

    persistence_service.get_users_to_notify.assert_called_once_with(
        "18:00", "2024-05-31", "2024-06-01"
    )


def test_format_message_day_before():
    task = NotificationTask(1, WasteKind.BIO, "L1", "Zuhause", 1)
    assert NotificationService.format_message(task) == "📅 Morgen bei Zuhause: 🟤 Bio-Abholung."


def test_format_message_same_day_without_alias():
    task = NotificationTask(1, OtherWaste("Sperrmüll"), "L1", None, 0)
    assert NotificationService.format_message(task) == "📅 Heute bei L1: 🗑️ Sperrmüll-Abholung."
