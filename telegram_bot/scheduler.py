"""
This module handles the scheduling and sending of notifications using the WasteCalendarFacade.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from waste_calendar.clock import (local_now, next_hour_boundary,
                                  seconds_between, slot_for)
from waste_calendar.config import NOTIFICATION_CONCURRENCY
from waste_calendar.exceptions import PermanentDeliveryError
from waste_calendar.facade import WasteCalendarFacade

logger = logging.getLogger(__name__)

SLOT_SECONDS = 3600


@dataclass
class DispatchSummary:
    sent: int = 0
    failed: int = 0
    removed: int = 0


async def check_and_send_notifications(
    facade: WasteCalendarFacade,
    channel,
    now: datetime,
    max_concurrency: int = NOTIFICATION_CONCURRENCY,
) -> DispatchSummary:
    """
    Sends every notification due in the slot of `now`.

    Deliveries run concurrently, at most `max_concurrency` at a time, and each
    task is attempted exactly once. Chats that blocked the bot are deleted.
    """
    slot_time = slot_for(now)
    today = now.date()
    tomorrow = today + timedelta(days=1)
    logger.info(f"Dispatching notifications for time: {slot_time}")

    notification_tasks = await asyncio.to_thread(
        facade.get_due_notifications, slot_time, today, tomorrow
    )
    summary = DispatchSummary()
    if not notification_tasks:
        logger.info("No notifications are due.")
        return summary

    logger.info(f"Found {len(notification_tasks)} notifications to send.")
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def deliver(task) -> None:
        message = facade.format_notification(task)
        async with semaphore:
            try:
                await channel.send(task.chat_id, message)
            except PermanentDeliveryError as e:
                summary.failed += 1
                logger.info(
                    f"Chat {task.chat_id} blocked the bot or is deactivated ({e}). Removing..."
                )
                if await asyncio.to_thread(facade.remove_subscriber, task.chat_id):
                    summary.removed += 1
                return
            except Exception as e:
                summary.failed += 1
                logger.error(f"Failed to send notification to chat_id {task.chat_id}: {e}")
                return
        summary.sent += 1

    await asyncio.gather(*(deliver(task) for task in notification_tasks))
    logger.info(
        f"Notifications for {slot_time}: {summary.sent} sent, {summary.failed} failed, "
        f"{summary.removed} chats removed."
    )
    return summary


async def _wait_for_stop(stop_event: asyncio.Event, timeout: float) -> bool:
    """Sleeps up to `timeout` seconds; returns True if stop was requested."""
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=max(0.0, timeout))
        return True
    except asyncio.TimeoutError:
        return False


async def scheduler(
    facade: WasteCalendarFacade,
    channel,
    stop_event: asyncio.Event,
    max_concurrency: int = NOTIFICATION_CONCURRENCY,
) -> None:
    """
    The notification loop: fires once at every top of the hour until
    `stop_event` is set.

    A wake-up that is a full slot late (e.g. after the machine was suspended)
    skips that slot; missed slots are not caught up. A local slot fires at
    most once per day, so the hour repeated when DST ends is not notified twice.
    """
    logger.info("Notification scheduler started.")
    last_slot = None
    while not stop_event.is_set():
        now = local_now()
        boundary = next_hour_boundary(now)
        if await _wait_for_stop(stop_event, seconds_between(now, boundary)):
            break

        woke_at = local_now()
        if seconds_between(boundary, woke_at) >= SLOT_SECONDS:
            logger.warning(f"Missed notification slot {slot_for(boundary)}; skipping it.")
            continue
        slot_key = (boundary.date(), slot_for(boundary))
        if slot_key == last_slot:
            continue
        last_slot = slot_key

        try:
            await check_and_send_notifications(facade, channel, boundary, max_concurrency)
        except Exception as e:
            logger.exception(f"An error occurred in the notification scheduler loop: {e}")
    logger.info("Notification scheduler stopped.")
