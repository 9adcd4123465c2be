"""Callback query handlers for inline buttons."""

import logging
from html import escape

from telegram import Update
from telegram.ext import ContextTypes

from carenudge.engine.core import Engine
from carenudge.errors import ValidationError
from carenudge.utils.time_utils import format_duration

logger = logging.getLogger(__name__)


async def handle_close_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, reminder_id: int, action: str
) -> None:
    """Handle 'Done' and 'Skip' button presses."""
    query = update.callback_query
    if not query:
        return

    engine: Engine = context.bot_data["engine"]
    if action == "done":
        reminder = await engine.acknowledge(reminder_id)
        label = "Taken"
    else:
        reminder = await engine.skip(reminder_id)
        label = "Skipped"

    if reminder is None:
        await query.answer("Reminder not found.")
        return

    text = f"✓ <b>{label}:</b> <s>{escape(reminder.title)}</s>"
    if reminder.is_recurring and reminder.status == "pending":
        text += "\n\n🔁 Next occurrence scheduled"

    if query.message:
        await query.message.edit_text(text, parse_mode="HTML")
    await query.answer(f"{label}!")


async def handle_snooze_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, reminder_id: int, minutes: int
) -> None:
    """Handle 'Snooze' button press."""
    query = update.callback_query
    if not query:
        return

    engine: Engine = context.bot_data["engine"]
    reminder = await engine.snooze_reminder(reminder_id, minutes)

    if reminder is None:
        await query.answer("Could not snooze this reminder.")
        return

    if query.message:
        await query.message.edit_text(
            f"⏸ <b>Snoozed:</b> {escape(reminder.title)}\n\n"
            f"Will remind you again in {format_duration(minutes)}.",
            parse_mode="HTML",
        )
    await query.answer(f"⏸ Snoozed for {format_duration(minutes)}")


async def handle_anchor_prompt_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE, accepted: bool, payload: str
) -> None:
    """Handle the adaptive anchor prompt's Update / Not now buttons."""
    query = update.callback_query
    if not query:
        return

    anchor, _, time_of_day = payload.partition("|")
    if not accepted:
        if query.message:
            await query.message.edit_text(f"OK, keeping {anchor} as it is.")
        await query.answer()
        return

    engine: Engine = context.bot_data["engine"]
    try:
        anchors = await engine.accept_anchor_prompt(anchor, time_of_day)
    except ValidationError as e:
        await query.answer(str(e))
        return

    if query.message:
        await query.message.edit_text(
            f"✓ {anchor} moved to <b>{anchors[anchor][:5]}</b>. "
            f"Reminders tied to {anchor.lower()} were rescheduled.",
            parse_mode="HTML",
        )
    await query.answer("Routine updated")


async def callback_router(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Route callback queries to appropriate handlers."""
    if not update.callback_query:
        return

    query = update.callback_query
    data = query.data

    if not data:
        return

    # Parse callback data
    action, _, rest = data.partition(":")

    if action in ("done", "skip"):
        await handle_close_callback(update, context, int(rest), action)

    elif action == "snooze":
        reminder_id, _, minutes = rest.partition(":")
        await handle_snooze_callback(update, context, int(reminder_id), int(minutes))

    elif action in ("anchor_yes", "anchor_no"):
        await handle_anchor_prompt_callback(update, context, action == "anchor_yes", rest)

    else:
        await query.answer("Unknown action")
