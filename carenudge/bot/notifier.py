"""Telegram-backed local notifications.

Each scheduled notification is a one-shot JobQueue job whose name is the
notification id. Jobs live in memory only; the startup reschedule_all()
recreates them from the database.
"""

import logging
import uuid
from datetime import datetime

from telegram.error import TelegramError
from telegram.ext import Application, ContextTypes

from carenudge.bot.formatters import format_alert_message, format_anchor_prompt
from carenudge.bot.keyboards import anchor_prompt_keyboard, reminder_alert_keyboard
from carenudge.db.models import AnchorPrompt
from carenudge.errors import NotFoundError, TransientIOError

logger = logging.getLogger(__name__)


async def deliver_notification(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Job callback: send the notification content to the chat."""
    job = context.job
    content: dict = job.data["content"]
    reminder_id = content.get("data", {}).get("reminder_id")

    reply_markup = reminder_alert_keyboard(reminder_id) if reminder_id is not None else None
    try:
        await context.bot.send_message(
            chat_id=job.chat_id,
            text=format_alert_message(content),
            parse_mode="HTML",
            reply_markup=reply_markup,
        )
        logger.info(f"Delivered notification {job.name} for reminder {reminder_id}")
    except TelegramError as e:
        logger.error(f"Failed to deliver notification {job.name}: {e}")


class TelegramNotificationScheduler:
    """LocalNotificationScheduler over python-telegram-bot's JobQueue."""

    def __init__(self, application: Application, chat_id: int | str):
        self.application = application
        self.chat_id = int(chat_id)

    async def schedule_at(self, content: dict, when: datetime) -> str:
        job_queue = self.application.job_queue
        if job_queue is None:
            raise TransientIOError("JobQueue is not available")

        notification_id = uuid.uuid4().hex
        try:
            job_queue.run_once(
                deliver_notification,
                when=when,
                data={"content": content},
                name=notification_id,
                chat_id=self.chat_id,
            )
        except (RuntimeError, ValueError) as e:
            raise TransientIOError(f"Could not schedule notification: {e}") from e

        return notification_id

    async def cancel(self, notification_id: str) -> None:
        job_queue = self.application.job_queue
        if job_queue is None:
            raise TransientIOError("JobQueue is not available")

        jobs = job_queue.get_jobs_by_name(notification_id)
        if not jobs:
            raise NotFoundError(f"No scheduled notification {notification_id}")
        for job in jobs:
            job.schedule_removal()


class TelegramPromptDelivery:
    """Sends the anchor prompt with Update / Not now buttons.

    The answer arrives later as a callback query, so this never reports a
    synchronous acceptance.
    """

    def __init__(self, application: Application, chat_id: int | str):
        self.application = application
        self.chat_id = int(chat_id)

    async def offer_anchor_update(self, prompt: AnchorPrompt) -> bool:
        try:
            await self.application.bot.send_message(
                chat_id=self.chat_id,
                text=format_anchor_prompt(prompt),
                parse_mode="HTML",
                reply_markup=anchor_prompt_keyboard(prompt.anchor, prompt.time_of_day),
            )
        except TelegramError as e:
            raise TransientIOError(f"Could not send anchor prompt: {e}") from e
        return False
