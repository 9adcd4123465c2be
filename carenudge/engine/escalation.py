"""Escalation chains for unacknowledged Tier-1 reminders.

A chain is a set of follow-up notifications at fixed offsets after the due
time. The last milestone also files a caregiver escalation request that an
external backend is expected to deliver.
"""

import logging
from datetime import datetime, timedelta
from typing import List

from carenudge.db.models import (
    CaregiverEscalation,
    EscalationChain,
    EscalationMilestone,
    Outcome,
    Reminder,
)
from carenudge.db.repository import ReminderRepository
from carenudge.db.stores import CaregiverLinkRepository, EscalationChainRepository
from carenudge.engine.notifier import LocalNotificationScheduler
from carenudge.engine.tiers import TierProfileRegistry
from carenudge.errors import NotFoundError, TransientIOError
from carenudge.utils.clock import Clock
from carenudge.utils.constants import (
    CAREGIVER_ESCALATION_LEVEL,
    ESCALATION_BODIES,
    ESCALATION_STEPS,
)
from carenudge.utils.time_utils import parse_timestamp

logger = logging.getLogger(__name__)


class EscalationStateMachine:
    """Idle -> Active (1-3 milestones) -> Idle, keyed by reminder id."""

    def __init__(
        self,
        chains: EscalationChainRepository,
        caregiver_links: CaregiverLinkRepository,
        reminders: ReminderRepository,
        notifier: LocalNotificationScheduler,
        tiers: TierProfileRegistry,
        clock: Clock,
        timezone: str,
        default_caregiver_id: str | None = None,
    ):
        self.chains = chains
        self.caregiver_links = caregiver_links
        self.reminders = reminders
        self.notifier = notifier
        self.tiers = tiers
        self.clock = clock
        self.timezone = timezone
        self.default_caregiver_id = default_caregiver_id

    def _milestone_content(self, reminder: Reminder, level: int, due_at: datetime) -> dict:
        content = {
            "title": reminder.title or "Reminder",
            "body": reminder.description or ESCALATION_BODIES[level],
            "data": {
                "reminder_id": reminder.id,
                "escalation": {
                    "level": level,
                    "original_reminder_time": due_at.isoformat(),
                },
            },
        }
        tier = self.tiers.resolve_tier_for_category(reminder.category)
        return self.tiers.attach_tier_to_content(content, tier)

    async def start(
        self, reminder: Reminder, due_at: datetime | None = None
    ) -> Outcome[List[EscalationMilestone]]:
        """Schedule the escalation chain for a Tier-1 reminder.

        Any existing chain for the reminder is stopped first. Milestones
        that would already be in the past are left out.

        Args:
            reminder: The reminder to escalate
            due_at: Resolved due time; defaults to parsing reminder_time
        """
        outcome: Outcome[List[EscalationMilestone]] = Outcome([])
        if reminder.id is None or not self.tiers.is_tier_one(reminder.category):
            return outcome

        reminder_id = str(reminder.id)
        stopped = await self.stop(reminder_id)
        outcome.diagnostics.extend(stopped.diagnostics)

        if reminder.caregiver:
            try:
                await self.store_caregiver_link(reminder_id, reminder.caregiver)
            except TransientIOError as e:
                outcome.add("caregiver_link", str(e), reminder_id)

        if due_at is None:
            due_at = parse_timestamp(reminder.reminder_time, self.timezone)
        if due_at is None:
            logger.warning(f"Cannot escalate reminder {reminder_id}: no usable due time")
            outcome.add("invalid_due_time", f"unparseable {reminder.reminder_time!r}", reminder_id)
            return outcome

        now = self.clock.now()
        for step in ESCALATION_STEPS:
            fire_at = due_at + timedelta(minutes=step.minutes)
            if fire_at <= now:
                continue

            content = self._milestone_content(reminder, step.level, due_at)
            try:
                notification_id = await self.notifier.schedule_at(content, fire_at)
            except TransientIOError as e:
                logger.warning(f"Escalation level {step.level} for reminder {reminder_id} failed: {e}")
                outcome.add("schedule_milestone", str(e), reminder_id)
                continue

            outcome.value.append(EscalationMilestone(step.level, fire_at, notification_id))

            if step.level == CAREGIVER_ESCALATION_LEVEL:
                try:
                    await self.send_caregiver_escalation(reminder, fire_at)
                except TransientIOError as e:
                    logger.warning(f"Caregiver escalation for reminder {reminder_id} not recorded: {e}")
                    outcome.add("caregiver_escalation", str(e), reminder_id)

        try:
            if outcome.value:
                await self.chains.put(EscalationChain(reminder_id, outcome.value, now))
            else:
                await self.chains.remove(reminder_id)
        except TransientIOError as e:
            logger.error(f"Failed to persist escalation chain for reminder {reminder_id}: {e}")
            outcome.add("persist_chain", str(e), reminder_id)

        if outcome.value:
            levels = [m.level for m in outcome.value]
            logger.info(f"Escalation started for reminder {reminder_id}: levels {levels}")
        return outcome

    async def stop(self, reminder_id) -> Outcome[bool]:
        """Cancel every milestone and drop the chain. Always succeeds."""
        outcome: Outcome[bool] = Outcome(True)
        reminder_id = str(reminder_id)

        try:
            chain = await self.chains.get(reminder_id)
        except TransientIOError as e:
            outcome.add("load_chain", str(e), reminder_id)
            return outcome
        if chain is None:
            return outcome

        for milestone in chain.milestones:
            try:
                await self.notifier.cancel(milestone.notification_id)
            except NotFoundError:
                pass
            except TransientIOError as e:
                outcome.add("cancel_milestone", str(e), reminder_id)

        try:
            await self.chains.remove(reminder_id)
        except TransientIOError as e:
            outcome.add("remove_chain", str(e), reminder_id)

        logger.info(f"Escalation stopped for reminder {reminder_id}")
        return outcome

    async def is_active(self, reminder_id) -> bool:
        try:
            chain = await self.chains.get(str(reminder_id))
        except TransientIOError:
            return False
        return bool(chain and chain.milestones)

    async def is_escalating_before(self, reminder_id, due_at: datetime) -> bool:
        """Whether a live chain still follows an occurrence earlier than due_at.

        True while an unacknowledged occurrence has milestones left to fire
        and the reminder has already moved on to its next occurrence.
        """
        try:
            chain = await self.chains.get(str(reminder_id))
        except TransientIOError:
            return False
        if chain is None or not chain.milestones:
            return False

        now = self.clock.now()
        earliest = min(m.scheduled_at for m in chain.milestones)
        return earliest < due_at and any(m.scheduled_at > now for m in chain.milestones)

    # Caregiver escalation

    async def store_caregiver_link(self, reminder_id, caregiver: dict) -> None:
        await self.caregiver_links.put(reminder_id, caregiver)

    async def get_caregiver_link(self, reminder_id) -> dict | None:
        return await self.caregiver_links.get(reminder_id)

    async def send_caregiver_escalation(
        self, reminder: Reminder, scheduled_at: datetime
    ) -> CaregiverEscalation:
        """Insert the request for the backend to contact a caregiver.

        The caregiver is the stored link, then the reminder's caregiver_id,
        then the configured default. A request already queued for the same
        reminder and time is returned as is, so periodic rescheduling does
        not queue duplicates.
        """
        for existing in await self.reminders.get_caregiver_escalations(reminder.id):
            if existing.scheduled_at == scheduled_at:
                return existing

        link = await self.get_caregiver_link(reminder.id)
        caregiver_id = (
            (link or {}).get("id") or reminder.caregiver_id or self.default_caregiver_id
        )

        event = CaregiverEscalation(
            reminder_id=reminder.id,
            caregiver_id=str(caregiver_id) if caregiver_id else None,
            scheduled_at=scheduled_at,
            payload={
                "title": reminder.title or "Reminder",
                "body": ESCALATION_BODIES[CAREGIVER_ESCALATION_LEVEL],
                "reminder_time": reminder.reminder_time,
                "reminder_id": reminder.id,
            },
        )
        saved = await self.reminders.insert_caregiver_escalation(event)
        logger.info(
            f"Caregiver escalation queued for reminder {reminder.id} "
            f"(caregiver {saved.caregiver_id or 'unknown'}) at {scheduled_at}"
        )
        return saved
