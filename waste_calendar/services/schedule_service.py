"""
This module defines the ScheduleService for downloading and parsing iCal files.
"""
import logging
import time
from datetime import date
from typing import List

import requests

from ..config import (FEED_TIMEOUT_SECONDS, ICAL_API_URL,
                      SCHEDULE_SERVICE_MAX_RETRIES,
                      SCHEDULE_SERVICE_RETRY_DELAY)
from ..exceptions import DownloadError, ParsingError
from ..ics_parser import parse_ics
from ..models import PickupEvent

# Get a logger instance for this module
logger = logging.getLogger(__name__)

CALENDAR_MARKER = "BEGIN:VCALENDAR"


class ScheduleService:
    """Handles downloading and parsing of waste schedules."""

    def __init__(
        self,
        api_url: str = ICAL_API_URL,
        timeout: int = FEED_TIMEOUT_SECONDS,
        max_retries: int = SCHEDULE_SERVICE_MAX_RETRIES,
        retry_delay: float = SCHEDULE_SERVICE_RETRY_DELAY,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay

    def download_and_parse_schedule(
        self, location_id: str, start_date: date, end_date: date
    ) -> List[PickupEvent]:
        """
        Downloads and parses the iCal file for a given location and date range.

        Args:
            location_id: The ID of the location (STANDORT).
            start_date: The start date of the date range.
            end_date: The end date of the date range.

        Returns:
            A list of PickupEvent objects.

        Raises:
            DownloadError: If the iCal file cannot be downloaded after retries.
            ParsingError: If the downloaded iCal content cannot be parsed.
        """
        for attempt in range(self.max_retries):
            try:
                ics_text = self.download_schedule(location_id, start_date, end_date)
                return parse_ics(ics_text, location_id)
            except (DownloadError, ParsingError) as e:
                logger.warning(
                    f"Attempt {attempt + 1} failed for location {location_id}. Error: {e}"
                )
                if attempt + 1 == self.max_retries:
                    raise
                time.sleep(self.retry_delay)
        return []  # Should be unreachable

    def download_schedule(self, location_id: str, start_date: date, end_date: date) -> str:
        """
        Downloads the iCal content as a string.

        Raises:
            DownloadError: On network errors, timeouts, non-success status codes
                or a body that is not a calendar document.
        """
        params = {
            "STANDORT": location_id,
            "DATUM_VON": start_date.strftime("%d.%m.%Y"),
            "DATUM_BIS": end_date.strftime("%d.%m.%Y"),
        }
        try:
            response = requests.get(self.api_url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise DownloadError(
                f"Error downloading iCal file for STANDORT {location_id}: {e}"
            ) from e

        if CALENDAR_MARKER not in response.text:
            raise DownloadError(f"Invalid iCal response for STANDORT {location_id}")

        logger.info(f"Successfully downloaded iCal data for STANDORT {location_id}")
        return response.text
