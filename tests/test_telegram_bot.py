"""
Unit tests for the Telegram bot logic.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import CallbackQuery, Chat, InlineKeyboardMarkup, Message, Update, User
from telegram.ext import ConversationHandler

from telegram_bot.bot import (LOCATION_ALIAS, LOCATION_ID, add_location,
                              callback_query_handler, cancel, next_pickup,
                              receive_alias, receive_location_id,
                              send_locations, start, stop)
from waste_calendar.models import LocationBinding, WasteKind

# Mock constants
CHAT_ID = 12345
USER_ID = 67890
TEST_LOCATION_ID = "54367"


@pytest.fixture
def update():
    """Creates a mock Update object."""
    update = MagicMock(spec=Update)
    update.message = MagicMock(spec=Message)
    update.message.chat_id = CHAT_ID
    update.message.from_user = MagicMock(spec=User)
    update.message.from_user.id = USER_ID
    update.message.reply_text = AsyncMock()
    update.effective_chat = MagicMock(spec=Chat)
    update.effective_chat.id = CHAT_ID
    return update


@pytest.fixture
def context():
    """Creates a mock Context object with the facade."""
    context = MagicMock()
    context.user_data = {}
    context.facade = MagicMock()
    context.facade.get_locations.return_value = []
    return context


@pytest.fixture
def callback_update(update):
    update.callback_query = MagicMock(spec=CallbackQuery)
    update.callback_query.answer = AsyncMock()
    update.callback_query.edit_message_text = AsyncMock()
    return update


def binding(binding_id=1, alias="Zuhause"):
    return LocationBinding(binding_id, CHAT_ID, TEST_LOCATION_ID, "18:00", 1, alias)


@pytest.mark.asyncio
async def test_start(update, context):
    """Tests the start command."""
    state = await start(update, context)
    assert state == LOCATION_ID
    assert "DumpDate-Bot" in update.message.reply_text.call_args[0][0]


@pytest.mark.asyncio
async def test_add_location_starts_conversation(update, context):
    state = await add_location(update, context)
    assert state == LOCATION_ID
    assert "Standort-ID" in update.message.reply_text.call_args[0][0]


@pytest.mark.asyncio
async def test_receive_location_id_valid(update, context):
    update.message.text = f" {TEST_LOCATION_ID} "

    state = await receive_location_id(update, context)

    assert state == LOCATION_ALIAS
    assert context.user_data["location_id"] == TEST_LOCATION_ID


@pytest.mark.asyncio
async def test_receive_location_id_invalid(update, context):
    update.message.text = "Chemnitzer Straße 42"

    state = await receive_location_id(update, context)

    assert state == LOCATION_ID
    assert "Ungültige Standort-ID" in update.message.reply_text.call_args[0][0]
    assert "location_id" not in context.user_data


@pytest.mark.asyncio
async def test_receive_alias_adds_location(update, context):
    update.message.text = "Zuhause"
    context.user_data["location_id"] = TEST_LOCATION_ID
    context.facade.add_location.return_value = 7
    context.facade.refresh_location_if_missing.return_value = True
    context.facade.get_locations.return_value = [binding(7)]

    state = await receive_alias(update, context)

    assert state == ConversationHandler.END
    context.facade.add_location.assert_called_once_with(CHAT_ID, TEST_LOCATION_ID, "Zuhause")
    context.facade.refresh_location_if_missing.assert_called_once_with(TEST_LOCATION_ID)
    assert "hinzugefügt" in update.message.reply_text.call_args_list[0][0][0]
    assert isinstance(
        update.message.reply_text.call_args_list[-1][1]["reply_markup"], InlineKeyboardMarkup
    )
    assert len(context.user_data) == 0  # cleared


@pytest.mark.asyncio
async def test_receive_alias_warns_when_no_events(update, context):
    update.message.text = "Zuhause"
    context.user_data["location_id"] = TEST_LOCATION_ID
    context.facade.add_location.return_value = 7
    context.facade.refresh_location_if_missing.return_value = False

    await receive_alias(update, context)

    messages = [call[0][0] for call in update.message.reply_text.call_args_list]
    assert any("noch keine Abholtermine" in message for message in messages)


@pytest.mark.asyncio
async def test_receive_alias_store_failure(update, context):
    update.message.text = "Zuhause"
    context.user_data["location_id"] = TEST_LOCATION_ID
    context.facade.add_location.return_value = None

    state = await receive_alias(update, context)

    assert state == ConversationHandler.END
    context.facade.refresh_location_if_missing.assert_not_called()
    assert "interner Fehler" in update.message.reply_text.call_args[0][0]


@pytest.mark.asyncio
async def test_cancel_clears_state(update, context):
    context.user_data["location_id"] = TEST_LOCATION_ID
    state = await cancel(update, context)
    assert state == ConversationHandler.END
    assert context.user_data == {}


@pytest.mark.asyncio
async def test_send_locations_without_locations(update, context):
    await send_locations(update, context)
    assert "/addlocation" in update.message.reply_text.call_args[0][0]


@pytest.mark.asyncio
async def test_stop_deletes_user(update, context):
    context.facade.unsubscribe_all.return_value = True
    await stop(update, context)
    context.facade.unsubscribe_all.assert_called_once_with(CHAT_ID)
    assert "abgemeldet" in update.message.reply_text.call_args[0][0]


@pytest.mark.asyncio
async def test_next_pickup_groups_by_location(update, context):
    context.facade.get_next_pickups.return_value = [
        {"binding_id": 1, "location_id": TEST_LOCATION_ID, "alias": "Zuhause", "date": "2024-05-12", "waste_type": "Bio"},
        {"binding_id": 1, "location_id": TEST_LOCATION_ID, "alias": "Zuhause", "date": "2024-05-12", "waste_type": "Papier"},
        {"binding_id": 2, "location_id": "11111", "alias": None, "date": "2024-05-14", "waste_type": "Rest"},
    ]

    await next_pickup(update, context)

    message = update.message.reply_text.call_args[0][0]
    assert "Zuhause am 2024-05-12" in message
    assert "11111 am 2024-05-14" in message
    assert message.count("•") == 3


@pytest.mark.asyncio
async def test_next_pickup_without_pickups(update, context):
    context.facade.get_next_pickups.return_value = []
    await next_pickup(update, context)
    assert "keine aktiven Abonnements" in update.message.reply_text.call_args[0][0]


@pytest.mark.asyncio
async def test_callback_edit_shows_settings(callback_update, context):
    callback_update.callback_query.data = "edit:1"
    context.facade.get_location.return_value = binding()
    context.facade.get_subscriptions.return_value = [WasteKind.BIO]

    await callback_query_handler(callback_update, context)

    context.facade.get_location.assert_called_once_with(CHAT_ID, 1)
    args, kwargs = callback_update.callback_query.edit_message_text.call_args
    assert "Zuhause" in args[0]
    buttons = [row[0].callback_data for row in kwargs["reply_markup"].inline_keyboard]
    assert "unsub:1:Bio" in buttons
    assert "sub:1:Papier" in buttons
    assert "delloc:1" in buttons


@pytest.mark.asyncio
async def test_callback_subscribe(callback_update, context):
    callback_update.callback_query.data = "sub:1:Weihnachtsbaum"
    context.facade.set_subscription.return_value = True
    context.facade.get_location.return_value = binding()
    context.facade.get_subscriptions.return_value = []

    await callback_query_handler(callback_update, context)

    context.facade.set_subscription.assert_called_once_with(
        CHAT_ID, 1, WasteKind.CHRISTMAS_TREE, True
    )
    callback_update.callback_query.answer.assert_awaited_once_with("Abonniert!")


@pytest.mark.asyncio
async def test_callback_time_cycles(callback_update, context):
    callback_update.callback_query.data = "time:1"
    context.facade.cycle_notify_time.return_value = "19:00"
    context.facade.get_location.return_value = binding()
    context.facade.get_subscriptions.return_value = []

    await callback_query_handler(callback_update, context)

    context.facade.cycle_notify_time.assert_called_once_with(CHAT_ID, 1)
    callback_update.callback_query.answer.assert_awaited_once_with("Uhrzeit: 19:00")


@pytest.mark.asyncio
async def test_callback_offset_toggles(callback_update, context):
    callback_update.callback_query.data = "offset:1"
    context.facade.toggle_notify_offset.return_value = 0
    context.facade.get_location.return_value = binding()
    context.facade.get_subscriptions.return_value = []

    await callback_query_handler(callback_update, context)

    callback_update.callback_query.answer.assert_awaited_once_with("Erinnerung am Abholtag")


@pytest.mark.asyncio
async def test_callback_delete_location(callback_update, context):
    callback_update.callback_query.data = "delloc:1"
    context.facade.delete_location.return_value = True

    await callback_query_handler(callback_update, context)

    context.facade.delete_location.assert_called_once_with(CHAT_ID, 1)
    callback_update.callback_query.edit_message_text.assert_awaited_once_with(
        "Keine Standorte mehr vorhanden."
    )


@pytest.mark.asyncio
async def test_callback_ignores_garbage(callback_update, context):
    callback_update.callback_query.data = "edit:abc"

    await callback_query_handler(callback_update, context)

    callback_update.callback_query.answer.assert_awaited_once()
    context.facade.get_location.assert_not_called()
