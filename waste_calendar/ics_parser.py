"""
This module provides functionality for parsing iCal files.

It uses the icalendar library to parse the iCal files into PickupEvents.
A single broken entry fails the whole document.
"""
import logging
from datetime import date, datetime
from typing import List

from icalendar import Calendar

from .exceptions import (InvalidDateError, MissingDateError,
                         MissingSummaryError, ParsingError)
from .models import PickupEvent, normalize_waste_types

# Get a logger instance for this module
logger = logging.getLogger(__name__)


def _event_date(component, uid: str) -> date:
    """Extracts the collection date from an event's DTSTART."""
    # icalendar records values it cannot decode here, whether or not it keeps the property
    for name, message in getattr(component, "errors", []):
        if str(name).upper() == "DTSTART":
            raise InvalidDateError(message)

    dt_start = component.get("DTSTART")
    if dt_start is None:
        raise MissingDateError(uid)

    try:
        value = getattr(dt_start, "dt", None)
    except ValueError as e:
        raise InvalidDateError(str(e)) from e
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidDateError(str(value))


def parse_ics(ics_text: str, location_id: str) -> List[PickupEvent]:
    """
    Parse an ICS document and return one PickupEvent per date and waste type.

    Args:
        ics_text: The raw calendar document.
        location_id: The location the document was fetched for.

    Returns:
        The events in document order. An empty calendar yields an empty list.

    Raises:
        ParsingError: If the document or one of its events cannot be read.
    """
    try:
        cal = Calendar.from_ical(ics_text)
    except ValueError as e:
        raise ParsingError(f"Failed to parse ICS file: {e}") from e

    events = []
    for component in cal.walk("VEVENT"):
        uid = str(component.get("UID", ""))
        event_date = _event_date(component, uid)

        summary = str(component.get("SUMMARY", "")).strip()
        if not summary:
            raise MissingSummaryError(uid)

        for waste_type in normalize_waste_types(summary):
            events.append(PickupEvent(location_id, event_date, waste_type))

    logger.debug(f"Parsed {len(events)} pickup events for location {location_id}.")
    return events
