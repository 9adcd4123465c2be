"""Main entry point for the CareNudge bot."""

import logging
import sys

from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    filters,
)

from carenudge.bot.callbacks import callback_router
from carenudge.bot.handlers import (
    anchors_command,
    delete_command,
    done_command,
    help_command,
    list_command,
    remind_command,
    setanchor_command,
    skip_command,
    snooze_command,
    start_command,
    tiers_command,
)
from carenudge.bot.notifier import TelegramNotificationScheduler, TelegramPromptDelivery
from carenudge.config import Config
from carenudge.db.kv_store import SqliteKeyValueStore
from carenudge.db.migrations import run_migrations
from carenudge.db.repository import ReminderRepository
from carenudge.engine.core import Engine
from carenudge.utils.clock import SystemClock
from carenudge.utils.error_handler import error_handler

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
    stream=sys.stdout,
)
# httpx logs every Telegram poll at INFO
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def reschedule_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Job callback for the periodic consistency sweep."""
    engine: Engine = context.bot_data["engine"]
    outcome = await engine.reschedule_all()
    if not outcome.ok:
        logger.warning(f"Reschedule sweep finished with {len(outcome.diagnostics)} failures")


async def post_init(application: Application) -> None:
    """Initialize bot resources after application is created."""
    # Initialize database
    await run_migrations(Config.DATABASE_PATH)

    repo = ReminderRepository(Config.DATABASE_PATH)
    await repo.connect()
    application.bot_data["repo"] = repo

    engine = Engine(
        store=SqliteKeyValueStore(repo.db),
        reminders=repo,
        notifier=TelegramNotificationScheduler(application, Config.TELEGRAM_CHAT_ID),
        clock=SystemClock(Config.TIMEZONE),
        timezone=Config.TIMEZONE,
        prompt_delivery=TelegramPromptDelivery(application, Config.TELEGRAM_CHAT_ID),
        tier_config=Config.tier_config(),
        default_caregiver_id=Config.DEFAULT_CAREGIVER_ID or None,
    )
    application.bot_data["engine"] = engine

    await engine.initialize()

    # Jobs are in memory only, so rebuild them from the database
    outcome = await engine.reschedule_all()
    logger.info(f"Startup reschedule: {outcome.value} reminders scheduled")

    job_queue = application.job_queue
    if job_queue:
        job_queue.run_repeating(
            reschedule_job,
            interval=Config.RESCHEDULE_INTERVAL,
            first=Config.RESCHEDULE_INTERVAL,
            name="reschedule_sweep",
        )
        logger.info(f"Reschedule sweep scheduled (interval: {Config.RESCHEDULE_INTERVAL}s)")

    logger.info("CareNudge initialized successfully")


async def post_shutdown(application: Application) -> None:
    """Cleanup resources on shutdown."""
    repo: ReminderRepository = application.bot_data.get("repo")
    if repo:
        await repo.close()

    logger.info("CareNudge shut down")


def main() -> None:
    """Start the bot."""
    # Validate configuration
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    # Create application
    application = (
        Application.builder()
        .token(Config.TELEGRAM_BOT_TOKEN)
        .post_init(post_init)
        .post_shutdown(post_shutdown)
        .build()
    )

    # Only the configured chat may drive the bot
    owner = filters.Chat(chat_id=int(Config.TELEGRAM_CHAT_ID))

    # Commands
    application.add_handler(CommandHandler("start", start_command, filters=owner))
    application.add_handler(CommandHandler("help", help_command, filters=owner))
    application.add_handler(CommandHandler("anchors", anchors_command, filters=owner))
    application.add_handler(CommandHandler("setanchor", setanchor_command, filters=owner))
    application.add_handler(CommandHandler("remind", remind_command, filters=owner))
    application.add_handler(CommandHandler("list", list_command, filters=owner))
    application.add_handler(CommandHandler("done", done_command, filters=owner))
    application.add_handler(CommandHandler("skip", skip_command, filters=owner))
    application.add_handler(CommandHandler("snooze", snooze_command, filters=owner))
    application.add_handler(CommandHandler("delete", delete_command, filters=owner))
    application.add_handler(CommandHandler("tiers", tiers_command, filters=owner))

    # Callback queries (buttons)
    application.add_handler(CallbackQueryHandler(callback_router))

    # Error handler
    application.add_error_handler(error_handler)

    # Start the bot
    logger.info("Starting CareNudge bot...")
    application.run_polling(allowed_updates=["message", "callback_query"])


if __name__ == "__main__":
    main()
