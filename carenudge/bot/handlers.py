"""Command handlers."""

import logging
from html import escape

from telegram import Update
from telegram.ext import ContextTypes

from carenudge.bot.formatters import (
    format_anchor_list,
    format_help_message,
    format_reminder,
    format_reminder_list,
    format_tier_list,
    format_welcome_message,
)
from carenudge.bot.keyboards import reminder_alert_keyboard
from carenudge.engine.core import Engine
from carenudge.errors import ValidationError
from carenudge.utils.time_utils import format_duration

logger = logging.getLogger(__name__)

DEFAULT_SNOOZE_MINUTES = 15


def parse_remind_args(text: str) -> dict:
    """Split "/remind <title> | <time> | <category>" arguments into a payload."""
    parts = [part.strip() for part in text.split("|")]
    payload = {"title": parts[0] if parts else ""}
    if len(parts) > 1 and parts[1]:
        payload["reminder_time"] = parts[1]
    if len(parts) > 2 and parts[2]:
        payload["category"] = parts[2]
    return payload


def _parse_reminder_id(args: list[str] | None) -> int | None:
    if not args:
        return None
    try:
        return int(args[0])
    except ValueError:
        return None


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command."""
    if not update.message:
        return

    await update.message.reply_html(format_welcome_message())


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command."""
    if not update.message:
        return

    await update.message.reply_html(format_help_message())


async def anchors_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /anchors command - show routine anchor times."""
    if not update.message:
        return

    engine: Engine = context.bot_data["engine"]
    await update.message.reply_html(format_anchor_list(await engine.get_anchors()))


async def setanchor_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /setanchor <name> <time> command."""
    if not update.message:
        return

    if not context.args or len(context.args) < 2:
        await update.message.reply_html(
            "Usage: <code>/setanchor &lt;breakfast|lunch|dinner|bedtime&gt; &lt;time&gt;</code>\n"
            "Example: <code>/setanchor breakfast 07:30</code>"
        )
        return

    name = context.args[0]
    time_text = " ".join(context.args[1:])

    engine: Engine = context.bot_data["engine"]
    try:
        anchors = await engine.set_anchor(name, time_text)
    except ValidationError as e:
        await update.message.reply_text(f"❌ {e}")
        return

    canonical = name.strip().capitalize()
    await update.message.reply_html(
        f"✓ {canonical} is now <b>{anchors[canonical][:5]}</b>. "
        f"Reminders tied to it have been rescheduled."
    )


async def remind_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /remind <title> [| <time>] [| <category>] command."""
    if not update.message:
        return

    payload = parse_remind_args(" ".join(context.args or []))
    if not payload["title"]:
        await update.message.reply_html(
            "Usage: <code>/remind Take vitamins | breakfast | medications</code>"
        )
        return

    engine: Engine = context.bot_data["engine"]
    try:
        reminder = await engine.create_reminder(payload)
    except ValidationError as e:
        await update.message.reply_text(f"❌ {e}")
        return

    now = engine.clock.now()
    due_at = await engine.scheduler.resolve_due_time(reminder)
    message = format_reminder(reminder, due_at, now)

    if due_at is None:
        message += "\n\n⚠️ I couldn't work out a time for this one, so it won't fire."
    elif due_at <= now:
        message += "\n\n⚠️ That time has already passed today, so no alert was scheduled."

    await update.message.reply_html(
        f"✓ <b>Reminder created!</b>\n\n{message}",
        reply_markup=reminder_alert_keyboard(reminder.id),  # type: ignore
    )


async def list_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /list command - show all open reminders."""
    if not update.message:
        return

    engine: Engine = context.bot_data["engine"]
    entries = await engine.list_with_due_times()
    await update.message.reply_html(format_reminder_list(entries, engine.clock.now()))


async def done_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <id> command."""
    await _close_command(update, context, "done")


async def skip_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /skip <id> command."""
    await _close_command(update, context, "skip")


async def _close_command(update: Update, context: ContextTypes.DEFAULT_TYPE, action: str) -> None:
    if not update.message:
        return

    reminder_id = _parse_reminder_id(context.args)
    if reminder_id is None:
        await update.message.reply_text(f"Usage: /{action} <reminder_id>")
        return

    engine: Engine = context.bot_data["engine"]
    if action == "done":
        reminder = await engine.acknowledge(reminder_id)
    else:
        reminder = await engine.skip(reminder_id)

    if reminder is None:
        await update.message.reply_text("Reminder not found.")
        return

    label = "Marked taken" if action == "done" else "Skipped"
    await update.message.reply_html(
        f"✓ {label}: <b>{escape(reminder.title)}</b>"
        + ("\n\n🔁 Next occurrence scheduled" if reminder.is_recurring else "")
    )


async def snooze_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /snooze <id> [minutes] command."""
    if not update.message:
        return

    reminder_id = _parse_reminder_id(context.args)
    if reminder_id is None:
        await update.message.reply_text("Usage: /snooze <reminder_id> [minutes]")
        return

    minutes = DEFAULT_SNOOZE_MINUTES
    if len(context.args) > 1:
        try:
            minutes = int(context.args[1])
        except ValueError:
            await update.message.reply_text("Minutes must be a number.")
            return
        if minutes <= 0:
            await update.message.reply_text("Minutes must be positive.")
            return

    engine: Engine = context.bot_data["engine"]
    reminder = await engine.snooze_reminder(reminder_id, minutes)
    if reminder is None:
        await update.message.reply_text("Could not snooze that reminder.")
        return

    await update.message.reply_html(
        f"⏸ Snoozed <b>{escape(reminder.title)}</b> for {format_duration(minutes)}."
    )


async def delete_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete <id> command."""
    if not update.message:
        return

    reminder_id = _parse_reminder_id(context.args)
    if reminder_id is None:
        await update.message.reply_text("Usage: /delete <reminder_id>")
        return

    engine: Engine = context.bot_data["engine"]
    if not await engine.delete_reminder(reminder_id):
        await update.message.reply_text("Reminder not found.")
        return

    await update.message.reply_text(f"🗑 Deleted reminder {reminder_id}")


async def tiers_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /tiers command - show notification tiers and their categories."""
    if not update.message:
        return

    engine: Engine = context.bot_data["engine"]
    await update.message.reply_html(
        format_tier_list(engine.tiers.all_tier_profiles(), engine.tiers.category_map())
    )
