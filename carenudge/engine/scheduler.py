"""Local notification scheduling for reminders.

Keeps at most one live platform notification per reminder: every schedule
call cancels the previously mapped notification first, so repeated calls are
latest-wins and reschedule_all() can be re-run at any time.
"""

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from carenudge.db.models import Outcome, Reminder
from carenudge.db.repository import ReminderRepository
from carenudge.db.stores import NotificationMapRepository
from carenudge.engine.anchors import RoutineAnchorStore
from carenudge.engine.notifier import LocalNotificationScheduler
from carenudge.engine.recurrence import get_next_occurrence
from carenudge.engine.resolver import parse_routine_token
from carenudge.engine.tiers import TierProfileRegistry
from carenudge.errors import NotFoundError, TransientIOError, ValidationError
from carenudge.utils.clock import Clock
from carenudge.utils.constants import SCHEDULABLE_STATUSES
from carenudge.utils.time_utils import (
    at_time_of_day,
    combine_date_with_time_of_day,
    next_time_of_day_after,
    parse_timestamp,
    to_local,
)

if TYPE_CHECKING:
    from carenudge.engine.escalation import EscalationStateMachine
    from carenudge.engine.snooze_patterns import SnoozePatternDetector

logger = logging.getLogger(__name__)


class NotificationScheduler:
    """Owns the reminder -> platform notification mapping."""

    def __init__(
        self,
        notifier: LocalNotificationScheduler,
        mapping: NotificationMapRepository,
        reminders: ReminderRepository,
        anchors: RoutineAnchorStore,
        tiers: TierProfileRegistry,
        clock: Clock,
        timezone: str,
    ):
        self.notifier = notifier
        self.mapping = mapping
        self.reminders = reminders
        self.anchors = anchors
        self.tiers = tiers
        self.clock = clock
        self.timezone = timezone
        # Wired by the engine after construction
        self.escalation: "EscalationStateMachine | None" = None
        self.snooze_patterns: "SnoozePatternDetector | None" = None

    # Time resolution

    async def resolve_due_time(self, reminder: Reminder) -> datetime | None:
        """When the reminder is due.

        Routine tokens resolve to the anchor's next occurrence after now;
        anything else must be an explicit timestamp.
        """
        raw = reminder.reminder_time
        anchor = parse_routine_token(raw) if isinstance(raw, str) else None
        if anchor is None:
            return parse_timestamp(raw, self.timezone)

        time_of_day = await self.anchors.get_anchor(anchor)
        if time_of_day is None:
            logger.warning(f"Reminder {reminder.id} references unknown anchor {anchor!r}")
            return None
        return next_time_of_day_after(self.clock.now(), time_of_day, self.timezone)

    async def _recurrence_base(self, reminder: Reminder) -> datetime | None:
        """Current occurrence used as the starting point for recurrence.

        For routine tokens that is today's occurrence of the anchor, so the
        next one is tomorrow's rather than the day after.
        """
        raw = reminder.reminder_time
        anchor = parse_routine_token(raw) if isinstance(raw, str) else None
        if anchor is None:
            return parse_timestamp(raw, self.timezone)

        time_of_day = await self.anchors.get_anchor(anchor)
        if time_of_day is None:
            return None
        today = to_local(self.clock.now(), self.timezone).date()
        return at_time_of_day(today, time_of_day, self.timezone)

    def build_notification_content(self, reminder: Reminder) -> dict:
        content = {
            "title": reminder.title or "Reminder",
            "body": reminder.description or "",
            "data": {"reminder_id": reminder.id},
        }
        tier = self.tiers.resolve_tier_for_category(reminder.category)
        return self.tiers.attach_tier_to_content(content, tier)

    # Scheduling

    async def _cancel_notification(self, notification_id: str) -> str | None:
        """Cancel a platform notification; returns an error message or None."""
        try:
            await self.notifier.cancel(notification_id)
        except NotFoundError:
            logger.debug(f"Notification {notification_id} already gone")
        except TransientIOError as e:
            logger.warning(f"Failed to cancel notification {notification_id}: {e}")
            return str(e)
        return None

    async def schedule_reminder(
        self, reminder: Reminder, override_date: datetime | None = None
    ) -> str | None:
        """Schedule the single local notification for a reminder.

        Returns:
            The platform notification id, or None when nothing was scheduled
            (unparseable time, time already passed, or a platform failure)
        """
        if reminder.id is None:
            raise ValidationError("Cannot schedule a reminder without an id")

        try:
            existing = await self.mapping.get(reminder.id)
            if existing:
                await self._cancel_notification(existing)
                await self.mapping.remove(reminder.id)

            due_at = (
                to_local(override_date, self.timezone)
                if override_date is not None
                else await self.resolve_due_time(reminder)
            )
            if due_at is None:
                logger.warning(
                    f"Reminder {reminder.id} has invalid reminder_time "
                    f"{reminder.reminder_time!r}, skipping"
                )
                return None

            target = due_at
            if reminder.notify_before_minutes and reminder.notify_before_minutes > 0:
                target = due_at - timedelta(minutes=reminder.notify_before_minutes)

            if target <= self.clock.now():
                logger.info(f"Reminder {reminder.id} target {target} is in the past, not scheduling")
                return None

            content = self.build_notification_content(reminder)
            notification_id = await self.notifier.schedule_at(content, target)
            await self.mapping.set(reminder.id, notification_id)

        except TransientIOError as e:
            logger.error(f"Failed to schedule reminder {reminder.id}: {e}")
            return None

        logger.info(f"Scheduled reminder {reminder.id} at {target} ({notification_id})")

        if self.escalation is not None and self.tiers.is_tier_one(reminder.category):
            # A fired routine occurrence keeps escalating until acknowledged
            if (
                override_date is None
                and parse_routine_token(reminder.reminder_time or "")
                and await self.escalation.is_escalating_before(reminder.id, due_at)
            ):
                logger.info(f"Reminder {reminder.id} still escalating its previous occurrence")
                return notification_id

            outcome = await self.escalation.start(reminder, due_at=due_at)
            for diagnostic in outcome.diagnostics:
                logger.warning(
                    f"Escalation step {diagnostic.step} failed for reminder "
                    f"{reminder.id}: {diagnostic.message}"
                )

        return notification_id

    async def cancel_scheduled_reminder(self, reminder_id) -> None:
        """Cancel the mapped notification and forget the mapping."""
        notification_id = await self.mapping.get(reminder_id)
        if not notification_id:
            return

        await self._cancel_notification(notification_id)
        await self.mapping.remove(reminder_id)
        logger.info(f"Cancelled notification for reminder {reminder_id}")

    async def clear_all_scheduled(self) -> Outcome[int]:
        """Cancel every mapped notification and empty the mapping."""
        outcome: Outcome[int] = Outcome(0)
        for reminder_id, notification_id in (await self.mapping.all()).items():
            error = await self._cancel_notification(notification_id)
            if error:
                outcome.add("cancel_notification", error, reminder_id)
            else:
                outcome.value += 1
        await self.mapping.clear()
        logger.info(f"Cleared {outcome.value} scheduled notifications")
        return outcome

    # Recurrence

    async def compute_next_occurrence(self, reminder: Reminder) -> datetime | None:
        """Next due time for daily/weekly reminders; None otherwise."""
        current = await self._recurrence_base(reminder)
        if current is None:
            return None
        return get_next_occurrence(
            current, reminder.frequency_type, reminder.repeat_days, self.clock.now()
        )

    async def schedule_next_occurrence(self, reminder: Reminder) -> Reminder | None:
        """Move a recurring reminder to its next occurrence and schedule it."""
        if reminder.id is None:
            return None

        next_due = await self.compute_next_occurrence(reminder)
        if next_due is None:
            return None

        is_token = isinstance(reminder.reminder_time, str) and parse_routine_token(
            reminder.reminder_time
        )
        if not is_token:
            reminder.reminder_time = next_due.isoformat()
        reminder.status = "pending"

        try:
            updated = await self.reminders.update_reminder(reminder)
        except TransientIOError as e:
            logger.error(f"Failed to persist next occurrence of reminder {reminder.id}: {e}")
            return None
        if updated is None:
            logger.warning(f"Reminder {reminder.id} vanished before rolling forward")
            return None

        # Token reminders keep their token; pin the computed occurrence instead
        await self.schedule_reminder(updated, override_date=next_due if is_token else None)
        logger.info(f"Reminder {updated.id} rolled forward to {next_due}")
        return updated

    # Snooze

    async def snooze_reminder(self, reminder_id: int, minutes: int) -> Reminder | None:
        """Push a reminder back by minutes and reschedule its notification."""
        try:
            reminder = await self.reminders.get_reminder(reminder_id)
        except TransientIOError as e:
            logger.warning(f"Could not load reminder {reminder_id} to snooze: {e}")
            return None
        if reminder is None or reminder.is_deleted:
            logger.warning(f"Reminder {reminder_id} not found, cannot snooze")
            return None

        # Routine tokens snooze from today's occurrence, even once it has fired
        current = await self._recurrence_base(reminder)
        if current is None:
            logger.warning(f"Reminder {reminder_id} has no usable time, cannot snooze")
            return None

        new_time = current + timedelta(minutes=minutes)
        reminder.reminder_time = new_time.isoformat()
        reminder.status = "snoozed"

        try:
            updated = await self.reminders.update_reminder(reminder)
        except TransientIOError as e:
            logger.warning(f"Failed to snooze reminder {reminder_id}: {e}")
            return None
        if updated is None:
            return None

        if self.snooze_patterns is not None:
            try:
                outcome = await self.snooze_patterns.record_snooze(updated, new_time)
                for diagnostic in outcome.diagnostics:
                    logger.warning(f"Snooze pattern step {diagnostic.step} failed: {diagnostic.message}")
            except Exception as e:
                logger.warning(f"Recording snooze for reminder {reminder_id} failed: {e}")

        await self.schedule_reminder(updated)
        logger.info(f"Snoozed reminder {reminder_id} by {minutes} minutes to {new_time}")
        return updated

    # Bulk operations

    async def reschedule_all(self) -> Outcome[int]:
        """Schedule every pending/snoozed reminder from persisted state.

        One reminder failing never stops the rest.
        """
        outcome: Outcome[int] = Outcome(0)
        try:
            reminders = await self.reminders.list_schedulable()
        except TransientIOError as e:
            logger.warning(f"reschedule_all: could not fetch reminders: {e}")
            outcome.add("list_schedulable", str(e))
            return outcome

        for reminder in reminders:
            try:
                if await self.schedule_reminder(reminder):
                    outcome.value += 1
            except Exception as e:
                logger.error(f"reschedule_all: scheduling failed for reminder {reminder.id}: {e}")
                outcome.add("schedule_reminder", str(e), reminder.id)

        logger.info(f"reschedule_all: {outcome.value}/{len(reminders)} reminders scheduled")
        return outcome

    async def reschedule_for_anchor_change(self, anchor: str, time_of_day: str) -> Outcome[int]:
        """Move future reminders bound to an anchor onto its new time.

        Only the time-of-day changes; each reminder keeps its date. Rows are
        processed one at a time and the pass ends with reschedule_all().
        """
        outcome: Outcome[int] = Outcome(0)
        now = self.clock.now()

        try:
            candidates = await self.reminders.list_by_anchor(anchor)
        except TransientIOError as e:
            logger.warning(f"Could not load reminders for anchor {anchor}: {e}")
            outcome.add("list_by_anchor", str(e))
            candidates = []

        for reminder in candidates:
            if reminder.status not in SCHEDULABLE_STATUSES:
                continue
            due_at = parse_timestamp(reminder.reminder_time, self.timezone)
            if due_at is None or due_at < now:
                # Routine tokens resolve on their own; past rows stay put
                continue

            moved = combine_date_with_time_of_day(due_at, time_of_day, self.timezone)
            if moved is None:
                continue

            reminder.reminder_time = moved.isoformat()
            reminder.status = "pending"
            try:
                updated = await self.reminders.update_reminder(reminder)
                if updated is None:
                    continue
                outcome.value += 1
                await self.schedule_reminder(updated)
            except Exception as e:
                logger.warning(f"Anchor reschedule failed for reminder {reminder.id}: {e}")
                outcome.add("update_reminder", str(e), reminder.id)

        sweep = await self.reschedule_all()
        outcome.diagnostics.extend(sweep.diagnostics)

        logger.info(f"Anchor {anchor} moved to {time_of_day}: {outcome.value} reminders updated")
        return outcome
