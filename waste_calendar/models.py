"""
This module defines the data models for the waste calendar.
"""

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Optional, Union


class WasteKind(str, Enum):
    """The waste categories the bot knows by name."""

    BIO = "Bio"
    REST = "Rest"
    PAPER = "Papier"
    YELLOW = "Gelb"
    CHRISTMAS_TREE = "Weihnachtsbaum"


@dataclass(frozen=True)
class OtherWaste:
    """A category the feed reported that is not one of the known kinds."""

    label: str

    @property
    def value(self) -> str:
        return self.label


WasteType = Union[WasteKind, OtherWaste]

_SYNONYMS = {
    "bio": WasteKind.BIO,
    "biotonne": WasteKind.BIO,
    "bio-tonne": WasteKind.BIO,
    "bioabfall": WasteKind.BIO,
    "rest": WasteKind.REST,
    "restmüll": WasteKind.REST,
    "restabfall": WasteKind.REST,
    "rest-tonne": WasteKind.REST,
    "resttonne": WasteKind.REST,
    "papier": WasteKind.PAPER,
    "pappe": WasteKind.PAPER,
    "blaue tonne": WasteKind.PAPER,
    "papier-tonne": WasteKind.PAPER,
    "papiertonne": WasteKind.PAPER,
    "gelb": WasteKind.YELLOW,
    "gelbe tonne": WasteKind.YELLOW,
    "gelbe-tonne": WasteKind.YELLOW,
    "gelber sack": WasteKind.YELLOW,
    "leichtverpackungen": WasteKind.YELLOW,
    "weihnachtsbaum": WasteKind.CHRISTMAS_TREE,
    "weihnachtsbäume": WasteKind.CHRISTMAS_TREE,
}

_WHITESPACE = re.compile(r"\s+")


def canonical_waste_type(label: str) -> WasteType:
    """
    Maps a free-text category label to a WasteType.

    Matching ignores case and surrounding or repeated whitespace. Labels that
    match no synonym are kept verbatim (trimmed) as OtherWaste.
    """
    trimmed = label.strip()
    key = _WHITESPACE.sub(" ", trimmed).lower()
    return _SYNONYMS.get(key, OtherWaste(trimmed))


def normalize_waste_types(summary: str) -> List[WasteType]:
    """Splits a comma-separated SUMMARY into its waste types."""
    return [
        canonical_waste_type(fragment)
        for fragment in (part.strip() for part in summary.split(","))
        if fragment
    ]


def supported_waste_types() -> List[WasteKind]:
    """The categories a user can toggle in the settings keyboard."""
    return list(WasteKind)


def default_waste_types() -> List[WasteKind]:
    """The categories every new location is subscribed to."""
    return [WasteKind.BIO, WasteKind.REST, WasteKind.PAPER, WasteKind.YELLOW]


@dataclass(frozen=True)
class PickupEvent:
    """A single waste collection at a location on a date."""

    location_id: str
    date: date
    waste_type: WasteType


@dataclass
class Subscriber:
    chat_id: int
    created_at: Optional[str] = None


@dataclass
class LocationBinding:
    """A location a chat follows, with its own notification schedule."""

    id: int
    chat_id: int
    location_id: str
    notify_time: str
    notify_offset: int
    alias: Optional[str] = None

    @property
    def label(self) -> str:
        return self.alias or self.location_id


@dataclass
class NotificationTask:
    """One message due in the current slot; never persisted."""

    chat_id: int
    waste_type: WasteType
    location_id: str
    alias: Optional[str]
    notify_offset: int

    @property
    def label(self) -> str:
        return self.alias or self.location_id

    @property
    def is_day_before(self) -> bool:
        return self.notify_offset == 1
