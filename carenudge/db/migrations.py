"""Database migration runner."""

import logging
from pathlib import Path
from typing import Awaitable, Callable, List

import aiosqlite

logger = logging.getLogger(__name__)


async def _apply_schema(db: aiosqlite.Connection) -> None:
    schema_path = Path(__file__).parent / "schema.sql"
    with open(schema_path) as f:
        schema_sql = f.read()
    await db.executescript(schema_sql)


async def _backfill_routine_anchor(db: aiosqlite.Connection) -> None:
    """Bind token-based rows ("routine:breakfast") to their anchor name."""
    await db.execute(
        """
        UPDATE reminders
        SET routine_anchor = upper(substr(reminder_time, 9, 1)) || lower(substr(reminder_time, 10))
        WHERE routine_anchor IS NULL
        AND reminder_time LIKE 'routine:_%'
        """
    )


# Index + 1 is the schema version the migration brings the database to
MIGRATIONS: List[Callable[[aiosqlite.Connection], Awaitable[None]]] = [
    _apply_schema,
    _backfill_routine_anchor,
]


async def run_migrations(db_path: Path) -> None:
    """Apply every migration newer than the database's user_version."""
    async with aiosqlite.connect(db_path) as db:
        async with db.execute("PRAGMA user_version") as cursor:
            row = await cursor.fetchone()
            version = row[0] if row else 0

        for index, migration in enumerate(MIGRATIONS[version:], start=version + 1):
            await migration(db)
            await db.execute(f"PRAGMA user_version = {index}")
            await db.commit()
            logger.info(f"Applied migration {index} ({migration.__name__})")

        logger.info(f"Database ready at {db_path} (version {len(MIGRATIONS)})")
