"""Inline keyboard builders."""

from telegram import InlineKeyboardButton, InlineKeyboardMarkup


def reminder_alert_keyboard(reminder_id: int) -> InlineKeyboardMarkup:
    """Keyboard for fired reminders: Done, Skip, Snooze options."""
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("✓ Done", callback_data=f"done:{reminder_id}"),
                InlineKeyboardButton("⏭ Skip", callback_data=f"skip:{reminder_id}"),
            ],
            [
                InlineKeyboardButton("Snooze 15m", callback_data=f"snooze:{reminder_id}:15"),
                InlineKeyboardButton("Snooze 1h", callback_data=f"snooze:{reminder_id}:60"),
            ],
        ]
    )


def anchor_prompt_keyboard(anchor: str, time_of_day: str) -> InlineKeyboardMarkup:
    """Keyboard for the adaptive anchor prompt: Update, Not now.

    Times contain colons, so the anchor fields are joined with "|".
    """
    payload = f"{anchor}|{time_of_day}"
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("✓ Update", callback_data=f"anchor_yes:{payload}"),
                InlineKeyboardButton("Not now", callback_data=f"anchor_no:{payload}"),
            ]
        ]
    )
