"""
This module defines the SyncService that keeps the stored pickup events of
every followed location in line with the iCal feed.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, List, Optional

from ..clock import local_now, local_today, next_feed_update, seconds_between
from ..config import (EVENT_INSERT_CHUNK_SIZE, FEED_DAYS_AHEAD,
                      FEED_REQUEST_DELAY_SECONDS, FEED_UPDATE_HOUR)
from ..exceptions import DownloadError, ParsingError, StoreError
from .persistence_service import PersistenceService
from .schedule_service import ScheduleService

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    updated: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class SyncService:
    """
    Fetches the schedule of each followed location and replaces its future
    events in the store.
    """

    def __init__(
        self,
        persistence_service: PersistenceService,
        schedule_service: ScheduleService,
        days_ahead: int = FEED_DAYS_AHEAD,
        request_delay: float = FEED_REQUEST_DELAY_SECONDS,
        update_hour: int = FEED_UPDATE_HOUR,
        chunk_size: int = EVENT_INSERT_CHUNK_SIZE,
    ):
        self.persistence_service = persistence_service
        self.schedule_service = schedule_service
        self.days_ahead = days_ahead
        self.request_delay = request_delay
        self.update_hour = update_hour
        self.chunk_size = chunk_size

    def update_location(self, location_id: str, today: Optional[date] = None) -> int:
        """
        Downloads, parses and stores the schedule of one location.

        Returns:
            The number of events stored for today and later.

        Raises:
            DownloadError: If the feed could not be fetched or is not a calendar.
            ParsingError: If the calendar could not be parsed.
            StoreError: If the events could not be stored.
        """
        today = today or local_today()
        end_date = today + timedelta(days=self.days_ahead)
        events = self.schedule_service.download_and_parse_schedule(
            location_id, today, end_date
        )
        if not events:
            logger.warning(
                f"No events found for location {location_id}. It might be a holiday period or an issue with the source."
            )
        stored = self.persistence_service.replace_future_events(
            location_id, events, today=today, chunk_size=self.chunk_size
        )
        logger.info(f"Stored {stored} upcoming events for location {location_id}.")
        return stored

    def update_all_locations(
        self, should_stop: Optional[Callable[[], bool]] = None
    ) -> SyncSummary:
        """
        Updates every location at least one user follows.

        A failing location is logged and skipped; the others are still
        updated. `should_stop` is polled between locations.
        """
        logger.info("Starting iCal update for all subscribed locations.")
        summary = SyncSummary()
        try:
            location_ids = self.persistence_service.get_distinct_location_ids()
        except StoreError as e:
            logger.error(f"Could not load subscribed locations: {e}")
            return summary

        if not location_ids:
            logger.info("No subscribed locations found. Skipping schedule update.")
            return summary

        for index, location_id in enumerate(location_ids):
            if should_stop and should_stop():
                logger.info("iCal update interrupted by shutdown.")
                break
            if index:
                time.sleep(self.request_delay)

            logger.info(f"Updating iCal for location: {location_id}")
            try:
                self.update_location(location_id)
                summary.updated.append(location_id)
            except (DownloadError, ParsingError, StoreError) as e:
                logger.error(f"Failed to update schedule for location {location_id}: {e}")
                summary.failed.append(location_id)
            except Exception as e:
                logger.exception(
                    f"An unexpected error occurred while updating schedule for location {location_id}: {e}"
                )
                summary.failed.append(location_id)

        logger.info(
            f"iCal update finished: {len(summary.updated)} updated, {len(summary.failed)} failed."
        )
        return summary

    async def run_scheduler(self, stop_event: asyncio.Event) -> None:
        """
        Runs the update once right away and then on the first Saturday of
        every month, until `stop_event` is set.
        """
        while not stop_event.is_set():
            try:
                await asyncio.to_thread(self.update_all_locations, stop_event.is_set)
            except Exception as e:
                logger.exception(f"An error occurred during the iCal update: {e}")

            now = local_now()
            next_run = next_feed_update(now, self.update_hour)
            logger.info(f"Next iCal update scheduled for {next_run.isoformat()}.")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=seconds_between(now, next_run))
            except asyncio.TimeoutError:
                pass
        logger.info("iCal update scheduler stopped.")
