"""
This module contains the main logic for the Telegram bot, built on the WasteCalendarFacade.
"""

import asyncio
import logging
import signal

from telegram import Update
from telegram.error import BadRequest
from telegram.ext import (AIORateLimiter, Application, CallbackQueryHandler,
                          CommandHandler, ContextTypes, ConversationHandler,
                          MessageHandler, filters)

from waste_calendar.config import (CONVERSATION_TIMEOUT_SECONDS,
                                   TELEGRAM_BOT_TOKEN,
                                   TELEGRAM_RATE_LIMIT_GROUP,
                                   TELEGRAM_RATE_LIMIT_OVERALL)
from waste_calendar.facade import WasteCalendarFacade
from waste_calendar.models import canonical_waste_type
from waste_calendar.services.subscription_service import is_valid_location_id

from .context import FACADE_KEY, CustomContext
from .delivery import TelegramDeliveryChannel
from .keyboards import (build_locations_keyboard, build_settings_keyboard,
                        offset_label)
from .scheduler import scheduler

logger = logging.getLogger(__name__)

# States for the add-location conversation
LOCATION_ID, LOCATION_ALIAS = range(2)

Context = CustomContext

GENERIC_ERROR = "Ein unerwarteter Fehler ist aufgetreten. Bitte versuche es später erneut."


async def start(update: Update, context: Context) -> int:
    """Greets the user and asks for the first location."""
    await update.message.reply_text(
        "Hallo! Ich bin der DumpDate-Bot und erinnere dich an die Müllabfuhr.\n"
        "Bitte gib deine Standort-ID ein. Du findest sie auf der Abfall-Webseite der Stadt Dresden."
    )
    return LOCATION_ID


async def add_location(update: Update, context: Context) -> int:
    """Starts the conversation for adding another location."""
    await update.message.reply_text("Bitte gib die Standort-ID ein (z.B. 54367).")
    return LOCATION_ID


async def receive_location_id(update: Update, context: Context) -> int:
    """Validates the location ID and asks for an alias."""
    location_id = update.message.text.strip()
    if not is_valid_location_id(location_id):
        await update.message.reply_text(
            "Ungültige Standort-ID. Sie darf nur aus Buchstaben und Ziffern bestehen "
            "und höchstens 20 Zeichen lang sein."
        )
        return LOCATION_ID

    context.user_data["location_id"] = location_id
    await update.message.reply_text(
        "Bitte gib diesem Standort einen kurzen Namen (z.B. 'Zuhause', 'Büro')."
    )
    return LOCATION_ALIAS


async def receive_alias(update: Update, context: Context) -> int:
    """Stores the location with its default subscriptions and ends the conversation."""
    alias = update.message.text.strip()
    chat_id = update.message.chat_id
    location_id = context.user_data.get("location_id")
    if not location_id:
        await update.message.reply_text("Bitte starte erneut mit /addlocation.")
        return ConversationHandler.END

    try:
        binding_id = context.facade.add_location(chat_id, location_id, alias or None)
    except ValueError as e:
        await update.message.reply_text(f"Fehler: {e}")
        context.user_data.clear()
        return ConversationHandler.END

    context.user_data.clear()
    if binding_id is None:
        await update.message.reply_text(
            "Ein interner Fehler hat das Hinzufügen verhindert. Bitte versuche es später erneut."
        )
        return ConversationHandler.END

    await update.message.reply_text(
        f"Standort '{alias or location_id}' ({location_id}) mit Standard-Abos hinzugefügt."
    )

    has_events = await asyncio.to_thread(
        context.facade.refresh_location_if_missing, location_id
    )
    if not has_events:
        await update.message.reply_text(
            "Für diesen Standort wurden noch keine Abholtermine gefunden. "
            "Ich versuche es beim nächsten Kalender-Update erneut."
        )

    await send_locations(update, context)
    return ConversationHandler.END


async def cancel(update: Update, context: Context) -> int:
    """Cancels and ends the conversation."""
    await update.message.reply_text("Vorgang abgebrochen.")
    context.user_data.clear()
    return ConversationHandler.END


async def conversation_timeout(update: Update, context: Context) -> None:
    """Resets an abandoned dialogue."""
    context.user_data.clear()
    if update and update.effective_message:
        await update.effective_message.reply_text(
            "Die Eingabe ist abgelaufen. Starte mit /addlocation erneut."
        )


async def send_locations(update: Update, context: Context) -> None:
    """Displays the user's locations as an inline keyboard."""
    locations = context.facade.get_locations(update.message.chat_id)
    if not locations:
        await update.message.reply_text(
            "Du hast noch keine Standorte eingerichtet. Nutze /addlocation."
        )
        return
    await update.message.reply_text(
        "Deine Standorte:", reply_markup=build_locations_keyboard(locations)
    )


async def stop(update: Update, context: Context) -> None:
    """Deletes all data of the user."""
    if context.facade.unsubscribe_all(update.message.chat_id):
        await update.message.reply_text(
            "Du wurdest abgemeldet und deine Daten wurden gelöscht."
        )
    else:
        await update.message.reply_text(GENERIC_ERROR)


async def next_pickup(update: Update, context: Context) -> None:
    """Displays the next subscribed pickup for each of the user's locations."""
    pickups = context.facade.get_next_pickups(update.message.chat_id)
    if not pickups:
        await update.message.reply_text(
            "Du hast keine aktiven Abonnements oder es stehen keine Abholungen an."
        )
        return

    message = "Nächste Abholungen:\n"
    current_binding = None
    for pickup in pickups:
        if pickup["binding_id"] != current_binding:
            current_binding = pickup["binding_id"]
            label = pickup["alias"] or pickup["location_id"]
            message += f"\n📍 {label} am {pickup['date']}:\n"
        message += f"   • {pickup['waste_type']}\n"
    await update.message.reply_text(message)


async def invalid_state(update: Update, context: Context) -> None:
    await update.message.reply_text("Bitte nutze /start oder /addlocation, um zu beginnen.")


async def _show_settings(query, context: Context, chat_id: int, binding_id: int) -> None:
    location = context.facade.get_location(chat_id, binding_id)
    if location is None:
        await query.edit_message_text("Standort nicht gefunden.")
        return
    subscriptions = context.facade.get_subscriptions(binding_id)
    await query.edit_message_text(
        f"Einstellungen für {location.label} (Erinnerung {offset_label(location.notify_offset)} "
        f"um {location.notify_time}):",
        reply_markup=build_settings_keyboard(location, subscriptions),
    )


async def _show_locations(query, context: Context, chat_id: int) -> None:
    locations = context.facade.get_locations(chat_id)
    if not locations:
        await query.edit_message_text("Keine Standorte mehr vorhanden.")
        return
    await query.edit_message_text(
        "Deine Standorte:", reply_markup=build_locations_keyboard(locations)
    )


async def callback_query_handler(update: Update, context: Context) -> None:
    """Handles the buttons of the location and settings keyboards."""
    query = update.callback_query
    chat_id = update.effective_chat.id
    parts = (query.data or "").split(":")
    action = parts[0]

    try:
        binding_id = int(parts[1]) if len(parts) > 1 else None
    except ValueError:
        await query.answer()
        return

    try:
        if action == "back":
            await query.answer()
            await _show_locations(query, context, chat_id)
        elif action == "edit" and binding_id is not None:
            await query.answer()
            await _show_settings(query, context, chat_id, binding_id)
        elif action in ("sub", "unsub") and binding_id is not None and len(parts) > 2:
            waste_type = canonical_waste_type(parts[2])
            if context.facade.set_subscription(chat_id, binding_id, waste_type, action == "sub"):
                await query.answer("Abonniert!" if action == "sub" else "Abbestellt!")
            else:
                await query.answer("Änderung fehlgeschlagen.")
            await _show_settings(query, context, chat_id, binding_id)
        elif action == "time" and binding_id is not None:
            new_time = context.facade.cycle_notify_time(chat_id, binding_id)
            await query.answer(f"Uhrzeit: {new_time}" if new_time else "Änderung fehlgeschlagen.")
            await _show_settings(query, context, chat_id, binding_id)
        elif action == "offset" and binding_id is not None:
            new_offset = context.facade.toggle_notify_offset(chat_id, binding_id)
            await query.answer(
                f"Erinnerung {offset_label(new_offset)}"
                if new_offset is not None
                else "Änderung fehlgeschlagen."
            )
            await _show_settings(query, context, chat_id, binding_id)
        elif action == "delloc" and binding_id is not None:
            deleted = context.facade.delete_location(chat_id, binding_id)
            await query.answer("Standort gelöscht." if deleted else "Standort nicht gefunden.")
            await _show_locations(query, context, chat_id)
        else:
            await query.answer()
    except BadRequest as e:
        # Telegram refuses edits that leave the message unchanged
        logger.debug(f"Ignoring callback edit error for chat {chat_id}: {e}")


def setup_handlers(application: Application) -> None:
    """Registers all command, conversation and callback handlers."""
    text_input = filters.TEXT & ~filters.COMMAND
    add_location_conv = ConversationHandler(
        entry_points=[
            CommandHandler("start", start),
            CommandHandler("addlocation", add_location),
        ],
        states={
            LOCATION_ID: [MessageHandler(text_input, receive_location_id)],
            LOCATION_ALIAS: [MessageHandler(text_input, receive_alias)],
            ConversationHandler.TIMEOUT: [
                MessageHandler(filters.ALL, conversation_timeout)
            ],
        },
        fallbacks=[CommandHandler("cancel", cancel)],
        conversation_timeout=CONVERSATION_TIMEOUT_SECONDS,
    )

    application.add_handler(add_location_conv)
    application.add_handler(CommandHandler("locations", send_locations))
    application.add_handler(CommandHandler("settings", send_locations))
    application.add_handler(CommandHandler("nextpickup", next_pickup))
    application.add_handler(CommandHandler("stop", stop))
    application.add_handler(CallbackQueryHandler(callback_query_handler))
    application.add_handler(MessageHandler(text_input, invalid_state))


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; Ctrl+C cancels the main task instead
            pass


async def main(facade_instance: WasteCalendarFacade) -> None:
    """Initializes and runs the bot and both schedulers until a stop signal arrives."""
    facade_instance.record_bot_start_time()

    if not TELEGRAM_BOT_TOKEN:
        logger.error("TELEGRAM_BOT_TOKEN environment variable not set.")
        return

    rate_limiter = AIORateLimiter(
        overall_max_rate=TELEGRAM_RATE_LIMIT_OVERALL,
        group_max_rate=TELEGRAM_RATE_LIMIT_GROUP,
    )
    application = (
        Application.builder()
        .token(TELEGRAM_BOT_TOKEN)
        .rate_limiter(rate_limiter)
        .context_types(ContextTypes(context=CustomContext))
        .build()
    )
    application.bot_data[FACADE_KEY] = facade_instance
    setup_handlers(application)

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    await application.initialize()
    await application.start()
    await application.updater.start_polling()
    logger.info("Bot started and polling...")

    channel = TelegramDeliveryChannel(application.bot)
    background_tasks = [
        asyncio.create_task(scheduler(facade_instance, channel, stop_event)),
        asyncio.create_task(facade_instance.sync_service.run_scheduler(stop_event)),
    ]

    try:
        await stop_event.wait()
    except asyncio.CancelledError:
        logger.info("Bot is stopping...")
    finally:
        stop_event.set()
        # Let a running notification slot or feed sync finish before shutting down
        await asyncio.gather(*background_tasks, return_exceptions=True)
        if application.updater.running:
            await application.updater.stop()
        if application.running:
            await application.stop()
        await application.shutdown()
        logger.info("Bot stopped.")
