"""
Inline keyboards for the location list and the per-location settings.

Callback data has the form "<action>:<location id>[:<waste type>]".
"""
from typing import List

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from waste_calendar.models import (LocationBinding, WasteType,
                                   supported_waste_types)


def offset_label(notify_offset: int) -> str:
    return "am Vortag" if notify_offset == 1 else "am Abholtag"


def build_locations_keyboard(locations: List[LocationBinding]) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(location.label, callback_data=f"edit:{location.id}")]
            for location in locations
        ]
    )


def build_settings_keyboard(
    location: LocationBinding, subscriptions: List[WasteType]
) -> InlineKeyboardMarkup:
    keyboard = []
    for waste_type in supported_waste_types():
        subscribed = waste_type in subscriptions
        action = "unsub" if subscribed else "sub"
        keyboard.append(
            [
                InlineKeyboardButton(
                    f"{'✅' if subscribed else '❌'} {waste_type.value}",
                    callback_data=f"{action}:{location.id}:{waste_type.value}",
                )
            ]
        )

    keyboard.append(
        [
            InlineKeyboardButton(
                f"🕒 Uhrzeit: {location.notify_time}", callback_data=f"time:{location.id}"
            )
        ]
    )
    keyboard.append(
        [
            InlineKeyboardButton(
                f"📆 Erinnerung {offset_label(location.notify_offset)}",
                callback_data=f"offset:{location.id}",
            )
        ]
    )
    keyboard.append(
        [InlineKeyboardButton("🗑️ Standort löschen", callback_data=f"delloc:{location.id}")]
    )
    keyboard.append([InlineKeyboardButton("🔙 Zurück zu den Standorten", callback_data="back")])
    return InlineKeyboardMarkup(keyboard)
