"""Message text formatters."""

from datetime import datetime
from html import escape
from typing import Dict, List, Tuple

from carenudge.db.models import AnchorPrompt, Reminder
from carenudge.utils.constants import ANCHOR_ORDER, TierProfile
from carenudge.utils.time_utils import format_relative_time

STATUS_EMOJI = {
    "pending": "🔔",
    "snoozed": "⏸",
    "taken": "✓",
    "skipped": "⏭",
    "missed": "⚠️",
}

TIER_EMOJI = {"T1": "🚨", "T2": "🔔", "T3": "📝"}


def _due_line(due_at: datetime | None, now: datetime) -> str:
    if due_at is None:
        return "No time set"
    return f"{due_at.strftime('%b %d at %I:%M %p')} ({format_relative_time(due_at, now)})"


def format_reminder(
    reminder: Reminder, due_at: datetime | None, now: datetime, show_id: bool = True
) -> str:
    """Format a reminder as a message."""
    title = escape(reminder.title)
    lines = [f"<b>{title}</b> (ID: {reminder.id})" if show_id else f"<b>{title}</b>"]

    lines.append(f"📅 Due: {_due_line(due_at, now)}")
    if reminder.routine_anchor:
        lines.append(f"🕗 Anchor: {reminder.routine_anchor}")
    if reminder.is_recurring:
        lines.append(f"🔁 Repeats: {reminder.frequency_type}")
    lines.append(f"🏷 Category: {reminder.category}")

    if reminder.description:
        lines.append(f"\n{escape(reminder.description)}")

    return "\n".join(lines)


def format_reminder_list(
    entries: List[Tuple[Reminder, datetime | None]], now: datetime
) -> str:
    """Format (reminder, due time) pairs."""
    if not entries:
        return "You have no active reminders."

    lines = [f"<b>Your Reminders ({len(entries)})</b>\n"]
    for reminder, due_at in entries:
        emoji = STATUS_EMOJI.get(reminder.status, "")
        lines.append(
            f"{emoji} <b>{escape(reminder.title)}</b> (ID: {reminder.id})\n"
            f"   Due: {_due_line(due_at, now)}"
        )

    return "\n\n".join(lines)


def format_alert_message(content: dict) -> str:
    """Format a fired local notification."""
    data = content.get("data", {})
    tier = data.get("tier", "T3")
    emoji = TIER_EMOJI.get(tier, "🔔")

    escalation = data.get("escalation")
    if escalation:
        header = f"{emoji} <b>Reminder still open (level {escalation['level']})</b> {emoji}"
    else:
        header = f"{emoji} <b>Reminder</b>"

    lines = [header, "", f"<b>{escape(content.get('title') or 'Reminder')}</b>"]
    if content.get("body"):
        lines.append(escape(content["body"]))
    return "\n".join(lines)


def format_anchor_list(anchors: Dict[str, str]) -> str:
    lines = ["<b>Routine anchors</b>\n"]
    for name in ANCHOR_ORDER:
        lines.append(f"• {name}: <code>{anchors.get(name, '-')}</code>")
    lines.append("\nChange one with <code>/setanchor breakfast 07:30</code>")
    return "\n".join(lines)


def format_anchor_prompt(prompt: AnchorPrompt) -> str:
    return (
        f"💡 You've snoozed your {prompt.anchor.lower()} reminders to "
        f"<b>{prompt.time_of_day[:5]}</b> three days running.\n\n"
        f"Move {prompt.anchor} to {prompt.time_of_day[:5]}?"
    )


def format_tier_list(profiles: Dict[str, TierProfile], category_map: Dict[str, str]) -> str:
    lines = ["<b>Notification tiers</b>\n"]
    for tier_id, profile in profiles.items():
        categories = sorted(c for c, t in category_map.items() if t == tier_id)
        lines.append(
            f"{TIER_EMOJI.get(tier_id, '')} <b>{profile.name}</b>\n"
            f"   {profile.description}\n"
            f"   Categories: {', '.join(categories) or 'none'}"
        )
    return "\n\n".join(lines)


def format_welcome_message() -> str:
    """Format the welcome message for /start."""
    return """
<b>Welcome to CareNudge!</b> 💊

I'll remind you about medications, appointments and important dates, and I'll keep nudging on the important ones until you confirm.

<b>Quick Start:</b>
• /remind Take vitamins | breakfast | medications
• /anchors - See your daily routine times
• /list - See all your reminders
• /help - Full command list
""".strip()


def format_help_message() -> str:
    """Format the help message."""
    return """
<b>CareNudge Commands</b>

<b>Creating Reminders:</b>
/remind &lt;title&gt; [| &lt;time&gt;] [| &lt;category&gt;]
Time can be <code>14:30</code>, <code>friday</code>, <code>2026-05-01 09:00</code> or a routine like <code>lunch</code>. Leave it out to use the next routine slot.
Categories: medications, appointments, important_dates, other

<b>Managing Reminders:</b>
/list - All open reminders
/done &lt;id&gt; - Mark as taken
/skip &lt;id&gt; - Skip this time
/snooze &lt;id&gt; [mins] - Snooze (default 15)
/delete &lt;id&gt; - Delete a reminder

<b>Routine:</b>
/anchors - Show breakfast, lunch, dinner and bedtime times
/setanchor &lt;name&gt; &lt;time&gt; - e.g. <code>/setanchor dinner 18:30</code>
/tiers - How each category is delivered

<b>Tips:</b>
• Medication reminders keep nudging at +15, +45 and +60 minutes until you tap Done
• Recurring reminders roll forward automatically
• Snooze to the same time a few days running and I'll offer to move your routine
""".strip()
