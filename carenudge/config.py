"""Configuration management from environment variables."""

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from carenudge.engine.tiers import TierConfig

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    TELEGRAM_CHAT_ID: str = os.getenv("TELEGRAM_CHAT_ID", "")

    # Database
    DATABASE_PATH: Path = Path(os.getenv("DATABASE_PATH", "./data/carenudge.db"))

    # Local time used for anchors, weekdays and calendar days
    TIMEZONE: str = os.getenv("TIMEZONE", "UTC")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Engine
    CATEGORY_TIER_OVERRIDES: str = os.getenv("CATEGORY_TIER_OVERRIDES", "")
    DEFAULT_CAREGIVER_ID: str = os.getenv("DEFAULT_CAREGIVER_ID", "")
    RESCHEDULE_INTERVAL: int = int(os.getenv("RESCHEDULE_INTERVAL", "900"))

    @classmethod
    def tier_config(cls) -> TierConfig:
        return TierConfig.from_string(cls.CATEGORY_TIER_OVERRIDES)

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration."""
        if not cls.TELEGRAM_BOT_TOKEN:
            raise ValueError("TELEGRAM_BOT_TOKEN environment variable is required")

        if not cls.TELEGRAM_CHAT_ID:
            raise ValueError("TELEGRAM_CHAT_ID environment variable is required")

        try:
            ZoneInfo(cls.TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown TIMEZONE: {cls.TIMEZONE}")

        if cls.RESCHEDULE_INTERVAL <= 0:
            raise ValueError("RESCHEDULE_INTERVAL must be positive")

        # Ensure database directory exists
        cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
