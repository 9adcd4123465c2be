"""Database repository - all SQL queries."""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import List

import aiosqlite

from carenudge.db.models import CaregiverEscalation, Reminder
from carenudge.errors import TransientIOError
from carenudge.utils.constants import MAX_SCHEDULABLE_REMINDERS, SCHEDULABLE_STATUSES

logger = logging.getLogger(__name__)


def _parse_db_time(value: str | None) -> datetime | None:
    """SQLite datetime('now') values are naive UTC."""
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class ReminderRepository:
    """Reminder rows and the caregiver escalation event table."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection."""
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        logger.info(f"Connected to database at {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed")

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if self._db is None:
            raise RuntimeError("Database not connected")
        return self._db

    @asynccontextmanager
    async def _io(self, action: str):
        try:
            yield
        except aiosqlite.Error as e:
            raise TransientIOError(f"{action} failed: {e}") from e

    # Reminder operations

    async def create_reminder(self, reminder: Reminder) -> Reminder:
        """Create a new reminder."""
        async with self._io("create_reminder"):
            async with self.db.execute(
                """
                INSERT INTO reminders (
                    title, description, category, reminder_time, status,
                    frequency_type, repeat_days, times_per_day,
                    notify_before_minutes, routine_anchor, caregiver_id,
                    caregiver, metadata
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                RETURNING *
                """,
                (
                    reminder.title,
                    reminder.description,
                    reminder.category,
                    reminder.reminder_time,
                    reminder.status,
                    reminder.frequency_type,
                    json.dumps(reminder.repeat_days) if reminder.repeat_days else None,
                    reminder.times_per_day,
                    reminder.notify_before_minutes,
                    reminder.routine_anchor,
                    reminder.caregiver_id,
                    json.dumps(reminder.caregiver) if reminder.caregiver else None,
                    json.dumps(reminder.metadata or {}),
                ),
            ) as cursor:
                row = await cursor.fetchone()
            await self.db.commit()

        created = self._row_to_reminder(row)
        logger.info(f"Created reminder {created.id} ({created.title})")
        return created

    async def get_reminder(self, reminder_id: int) -> Reminder | None:
        """Get a reminder by ID (deleted rows included)."""
        async with self._io("get_reminder"):
            async with self.db.execute(
                "SELECT * FROM reminders WHERE id = ?", (reminder_id,)
            ) as cursor:
                row = await cursor.fetchone()
        if row:
            return self._row_to_reminder(row)
        return None

    async def list_reminders(self, include_done: bool = False) -> List[Reminder]:
        """All non-deleted reminders, soonest first."""
        query = "SELECT * FROM reminders WHERE is_deleted = 0"
        params: tuple = ()
        if not include_done:
            query += f" AND status IN ({', '.join('?' for _ in SCHEDULABLE_STATUSES)})"
            params = SCHEDULABLE_STATUSES
        query += " ORDER BY reminder_time"

        async with self._io("list_reminders"):
            async with self.db.execute(query, params) as cursor:
                rows = await cursor.fetchall()
        return [self._row_to_reminder(row) for row in rows]

    async def list_schedulable(self) -> List[Reminder]:
        """Non-deleted reminders that still need a notification."""
        async with self._io("list_schedulable"):
            async with self.db.execute(
                f"""
                SELECT * FROM reminders
                WHERE is_deleted = 0
                AND status IN ({', '.join('?' for _ in SCHEDULABLE_STATUSES)})
                ORDER BY reminder_time
                LIMIT ?
                """,
                (*SCHEDULABLE_STATUSES, MAX_SCHEDULABLE_REMINDERS),
            ) as cursor:
                rows = await cursor.fetchall()
        return [self._row_to_reminder(row) for row in rows]

    async def list_by_anchor(self, anchor: str) -> List[Reminder]:
        """Non-deleted reminders bound to a routine anchor."""
        async with self._io("list_by_anchor"):
            async with self.db.execute(
                """
                SELECT * FROM reminders
                WHERE is_deleted = 0 AND routine_anchor = ?
                ORDER BY reminder_time
                """,
                (anchor,),
            ) as cursor:
                rows = await cursor.fetchall()
        return [self._row_to_reminder(row) for row in rows]

    async def update_reminder(self, reminder: Reminder) -> Reminder | None:
        """Write every mutable field back; None if the row no longer exists."""
        async with self._io("update_reminder"):
            async with self.db.execute(
                """
                UPDATE reminders SET
                    title = ?,
                    description = ?,
                    category = ?,
                    reminder_time = ?,
                    status = ?,
                    frequency_type = ?,
                    repeat_days = ?,
                    times_per_day = ?,
                    notify_before_minutes = ?,
                    routine_anchor = ?,
                    caregiver_id = ?,
                    caregiver = ?,
                    metadata = ?,
                    is_deleted = ?,
                    updated_at = datetime('now')
                WHERE id = ?
                RETURNING *
                """,
                (
                    reminder.title,
                    reminder.description,
                    reminder.category,
                    reminder.reminder_time,
                    reminder.status,
                    reminder.frequency_type,
                    json.dumps(reminder.repeat_days) if reminder.repeat_days else None,
                    reminder.times_per_day,
                    reminder.notify_before_minutes,
                    reminder.routine_anchor,
                    reminder.caregiver_id,
                    json.dumps(reminder.caregiver) if reminder.caregiver else None,
                    json.dumps(reminder.metadata or {}),
                    1 if reminder.is_deleted else 0,
                    reminder.id,
                ),
            ) as cursor:
                row = await cursor.fetchone()
            await self.db.commit()

        if row is None:
            return None
        return self._row_to_reminder(row)

    async def soft_delete_reminder(self, reminder_id: int) -> bool:
        """Flag a reminder as deleted. Returns False if it is missing or already deleted."""
        async with self._io("soft_delete_reminder"):
            cursor = await self.db.execute(
                "UPDATE reminders SET is_deleted = 1, updated_at = datetime('now') "
                "WHERE id = ? AND is_deleted = 0",
                (reminder_id,),
            )
            await self.db.commit()
        return cursor.rowcount > 0

    # Caregiver escalation events (insert-only)

    async def insert_caregiver_escalation(
        self, event: CaregiverEscalation
    ) -> CaregiverEscalation:
        """Record a request for the backend to contact a caregiver."""
        async with self._io("insert_caregiver_escalation"):
            async with self.db.execute(
                """
                INSERT INTO caregiver_escalations (
                    reminder_id, caregiver_id, scheduled_at, payload, status
                ) VALUES (?, ?, ?, ?, ?)
                RETURNING *
                """,
                (
                    event.reminder_id,
                    event.caregiver_id,
                    event.scheduled_at.isoformat(),
                    json.dumps(event.payload),
                    event.status,
                ),
            ) as cursor:
                row = await cursor.fetchone()
            await self.db.commit()

        return self._row_to_caregiver_escalation(row)

    async def get_caregiver_escalations(self, reminder_id: int) -> List[CaregiverEscalation]:
        """Escalation events recorded for a reminder, oldest first."""
        async with self._io("get_caregiver_escalations"):
            async with self.db.execute(
                "SELECT * FROM caregiver_escalations WHERE reminder_id = ? ORDER BY id",
                (reminder_id,),
            ) as cursor:
                rows = await cursor.fetchall()
        return [self._row_to_caregiver_escalation(row) for row in rows]

    # Helper methods

    def _row_to_reminder(self, row: aiosqlite.Row) -> Reminder:
        """Convert a database row to a Reminder object."""
        return Reminder(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            category=row["category"],
            reminder_time=row["reminder_time"],
            status=row["status"],  # type: ignore
            frequency_type=row["frequency_type"],  # type: ignore
            repeat_days=json.loads(row["repeat_days"]) if row["repeat_days"] else None,
            times_per_day=row["times_per_day"],
            notify_before_minutes=row["notify_before_minutes"] or 0,
            routine_anchor=row["routine_anchor"],
            caregiver_id=row["caregiver_id"],
            caregiver=json.loads(row["caregiver"]) if row["caregiver"] else None,
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            is_deleted=bool(row["is_deleted"]),
            created_at=_parse_db_time(row["created_at"]),
            updated_at=_parse_db_time(row["updated_at"]),
        )

    def _row_to_caregiver_escalation(self, row: aiosqlite.Row) -> CaregiverEscalation:
        return CaregiverEscalation(
            id=row["id"],
            reminder_id=row["reminder_id"],
            caregiver_id=row["caregiver_id"],
            scheduled_at=datetime.fromisoformat(row["scheduled_at"]),
            payload=json.loads(row["payload"]),
            status=row["status"],
            created_at=_parse_db_time(row["created_at"]),
        )
