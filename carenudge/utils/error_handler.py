"""Global error handler for the bot."""

import logging
import traceback

from telegram import Update
from telegram.ext import ContextTypes

from carenudge.errors import NotFoundError, TransientIOError, ValidationError

logger = logging.getLogger(__name__)


def user_message_for(error: BaseException | None) -> str:
    """Friendly text for an error that escaped a handler."""
    if isinstance(error, ValidationError):
        return f"❌ {error}\n\nUse /help for examples."
    if isinstance(error, NotFoundError):
        return "❌ That reminder no longer exists. Use /list to see current reminders."
    if isinstance(error, TransientIOError):
        return "💾 Storage is busy right now. Please try again in a moment."

    text = str(error)
    if "Forbidden" in text or "Unauthorized" in text:
        return "❌ I don't have permission to send you messages.\n\nPlease /start the bot first."
    if "Bad Request" in text:
        return "❌ Invalid request.\n\nPlease check your command syntax and try again. Use /help for examples."
    if "Timed out" in text or "Timeout" in text:
        return "⏱️ Request timed out.\n\nPlease try again in a moment."
    if "Network" in text:
        return "🌐 Network error.\n\nPlease check your connection and try again."

    return (
        "😅 Oops! Something went wrong.\n\n"
        "The error has been logged. Please try again or use /help for assistance."
    )


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle errors in the bot."""
    logger.error("Exception while handling an update:", exc_info=context.error)

    if context.error is not None:
        tb_string = "".join(
            traceback.format_exception(None, context.error, context.error.__traceback__)
        )
        logger.debug(f"Traceback:\n{tb_string}")

    # Try to notify the user
    if isinstance(update, Update) and update.effective_message:
        try:
            await update.effective_message.reply_text(user_message_for(context.error))
        except Exception as e:
            logger.error(f"Failed to send error message to user: {e}")
