"""
Unit tests for the SyncService.
"""
import asyncio
from datetime import date, timedelta
from unittest.mock import MagicMock, patch

import pytest

from waste_calendar.exceptions import DownloadError, ParsingError, StoreError
from waste_calendar.models import PickupEvent, WasteKind
from waste_calendar.services.persistence_service import PersistenceService
from waste_calendar.services.sync_service import SyncService

TODAY = date(2024, 5, 10)


@pytest.fixture
def persistence_service(tmp_path):
    service = PersistenceService(db_path=str(tmp_path / "test.db"))
    service.init_db()
    return service


@pytest.fixture
def schedule_service():
    return MagicMock()


@pytest.fixture
def sync_service(persistence_service, schedule_service):
    return SyncService(
        persistence_service, schedule_service, days_ahead=30, request_delay=0.5
    )


def test_update_location_replaces_future_events(sync_service, persistence_service, schedule_service):
    schedule_service.download_and_parse_schedule.return_value = [
        PickupEvent("L1", TODAY - timedelta(days=1), WasteKind.BIO),
        PickupEvent("L1", TODAY + timedelta(days=1), WasteKind.BIO),
    ]

    stored = sync_service.update_location("L1", today=TODAY)

    assert stored == 1
    schedule_service.download_and_parse_schedule.assert_called_once_with(
        "L1", TODAY, TODAY + timedelta(days=30)
    )
    assert persistence_service.get_events_for_location("L1") == [
        PickupEvent("L1", TODAY + timedelta(days=1), WasteKind.BIO)
    ]


def test_update_location_failure_keeps_previous_events(sync_service, persistence_service, schedule_service):
    existing = [PickupEvent("L1", TODAY, WasteKind.REST)]
    persistence_service.replace_future_events("L1", existing, today=TODAY)
    schedule_service.download_and_parse_schedule.side_effect = DownloadError("offline")

    with pytest.raises(DownloadError):
        sync_service.update_location("L1", today=TODAY)

    assert persistence_service.get_events_for_location("L1") == existing


@patch("waste_calendar.services.sync_service.local_today", return_value=TODAY)
@patch("waste_calendar.services.sync_service.time.sleep")
def test_update_all_locations_isolates_failures(mock_sleep, mock_today, sync_service, persistence_service, schedule_service):
    for chat_id, location_id in enumerate(["A", "B", "C"], start=1):
        persistence_service.upsert_user_location(chat_id, location_id, None)

    def download(location_id, start_date, end_date):
        if location_id == "B":
            raise ParsingError("broken feed")
        return [PickupEvent(location_id, TODAY, WasteKind.BIO)]

    schedule_service.download_and_parse_schedule.side_effect = download

    summary = sync_service.update_all_locations()

    assert summary.updated == ["A", "C"]
    assert summary.failed == ["B"]
    assert persistence_service.has_future_events("C", TODAY)
    # one pause between each pair of consecutive locations
    assert mock_sleep.call_count == 2
    mock_sleep.assert_called_with(0.5)


@patch("waste_calendar.services.sync_service.time.sleep")
def test_update_all_locations_stops_between_locations(mock_sleep, sync_service, persistence_service, schedule_service):
    persistence_service.upsert_user_location(1, "A", None)
    persistence_service.upsert_user_location(2, "B", None)
    schedule_service.download_and_parse_schedule.return_value = []

    calls = []

    def should_stop():
        calls.append(True)
        return len(calls) > 1

    summary = sync_service.update_all_locations(should_stop=should_stop)

    assert summary.updated == ["A"]
    assert schedule_service.download_and_parse_schedule.call_count == 1


def test_update_all_locations_store_unavailable(schedule_service):
    persistence_service = MagicMock()
    persistence_service.get_distinct_location_ids.side_effect = StoreError("locked")
    service = SyncService(persistence_service, schedule_service)

    summary = service.update_all_locations()

    assert summary.updated == [] and summary.failed == []
    schedule_service.download_and_parse_schedule.assert_not_called()


def test_update_all_locations_without_locations(sync_service, schedule_service):
    summary = sync_service.update_all_locations()
    assert summary.updated == []
    schedule_service.download_and_parse_schedule.assert_not_called()


@pytest.mark.asyncio
async def test_run_scheduler_runs_once_and_stops(sync_service):
    stop_event = asyncio.Event()

    def update_all(should_stop):
        stop_event.set()
        return MagicMock()

    with patch.object(sync_service, "update_all_locations", side_effect=update_all) as mock_update:
        await asyncio.wait_for(sync_service.run_scheduler(stop_event), timeout=5)

    mock_update.assert_called_once()
