"""Engine: wires the components together and exposes the public operations."""

import logging
from datetime import datetime
from typing import Dict, List, Tuple

from carenudge.db.kv_store import KeyValueStore
from carenudge.db.models import (
    EscalationMilestone,
    NextSlot,
    Outcome,
    Reminder,
    ReminderDraft,
    RoutineSchedule,
    ScheduleDescriptor,
    SnoozeHistoryEntry,
    SpecificSchedule,
)
from carenudge.db.repository import ReminderRepository
from carenudge.db.stores import (
    AnchorRepository,
    CaregiverLinkRepository,
    EscalationChainRepository,
    NotificationMapRepository,
    SnoozeHistoryRepository,
)
from carenudge.engine.anchors import RoutineAnchorStore, canonical_anchor_name
from carenudge.engine.escalation import EscalationStateMachine
from carenudge.engine.notifier import LocalNotificationScheduler, PromptDelivery
from carenudge.engine.resolver import ScheduleResolver, routine_token
from carenudge.engine.scheduler import NotificationScheduler
from carenudge.engine.snooze_patterns import SnoozePatternDetector
from carenudge.engine.tiers import TierConfig, TierProfileRegistry
from carenudge.errors import ValidationError
from carenudge.utils.clock import Clock
from carenudge.utils.constants import TierProfile

logger = logging.getLogger(__name__)


class Engine:
    """Reminder scheduling and escalation engine.

    Owns every component and the tier configuration; hosts (the bot, tests)
    build one Engine and call its methods.
    """

    def __init__(
        self,
        store: KeyValueStore,
        reminders: ReminderRepository,
        notifier: LocalNotificationScheduler,
        clock: Clock,
        timezone: str = "UTC",
        prompt_delivery: PromptDelivery | None = None,
        tier_config: TierConfig | None = None,
        default_caregiver_id: str | None = None,
    ):
        self.clock = clock
        self.timezone = timezone
        self.reminders = reminders

        self.tiers = TierProfileRegistry(tier_config or TierConfig())
        self.anchors = RoutineAnchorStore(AnchorRepository(store))
        self.resolver = ScheduleResolver(self.anchors, timezone)
        self.scheduler = NotificationScheduler(
            notifier=notifier,
            mapping=NotificationMapRepository(store),
            reminders=reminders,
            anchors=self.anchors,
            tiers=self.tiers,
            clock=clock,
            timezone=timezone,
        )
        self.escalation = EscalationStateMachine(
            chains=EscalationChainRepository(store),
            caregiver_links=CaregiverLinkRepository(store),
            reminders=reminders,
            notifier=notifier,
            tiers=self.tiers,
            clock=clock,
            timezone=timezone,
            default_caregiver_id=default_caregiver_id,
        )
        self.snooze_patterns = SnoozePatternDetector(
            history=SnoozeHistoryRepository(store),
            anchors=self.anchors,
            prompt_delivery=prompt_delivery,
            clock=clock,
            timezone=timezone,
        )

        self.scheduler.escalation = self.escalation
        self.scheduler.snooze_patterns = self.snooze_patterns
        self.anchors.on_anchor_changed = self.scheduler.reschedule_for_anchor_change

    async def initialize(self) -> Dict[str, str]:
        return await self.anchors.initialize()

    # Anchors

    async def get_anchors(self) -> Dict[str, str]:
        return await self.anchors.get_anchors()

    async def set_anchor(self, name: str, time_of_day: str) -> Dict[str, str]:
        return await self.anchors.set_anchor(name, time_of_day)

    # Resolution

    def resolve(self, raw, reference_now: datetime | None = None) -> ScheduleDescriptor:
        return self.resolver.resolve(raw, reference_now or self.clock.now())

    async def compute_next_slot(self, reference_now: datetime | None = None) -> NextSlot | None:
        return await self.resolver.compute_next_slot(reference_now or self.clock.now())

    async def resolve_defaults(
        self, payload: dict, reference_now: datetime | None = None
    ) -> ReminderDraft:
        return await self.resolver.resolve_defaults(payload, reference_now or self.clock.now())

    # Scheduling

    async def schedule_reminder(
        self, reminder: Reminder, override_date: datetime | None = None
    ) -> str | None:
        return await self.scheduler.schedule_reminder(reminder, override_date)

    async def cancel_scheduled_reminder(self, reminder_id) -> None:
        await self.scheduler.cancel_scheduled_reminder(reminder_id)

    async def snooze_reminder(self, reminder_id: int, minutes: int) -> Reminder | None:
        return await self.scheduler.snooze_reminder(reminder_id, minutes)

    async def reschedule_all(self) -> Outcome[int]:
        return await self.scheduler.reschedule_all()

    async def schedule_next_occurrence(self, reminder: Reminder) -> Reminder | None:
        return await self.scheduler.schedule_next_occurrence(reminder)

    async def clear_all_scheduled(self) -> Outcome[int]:
        return await self.scheduler.clear_all_scheduled()

    # Escalation

    async def start_escalation(self, reminder: Reminder) -> Outcome[List[EscalationMilestone]]:
        due_at = await self.scheduler.resolve_due_time(reminder)
        return await self.escalation.start(reminder, due_at=due_at)

    async def stop_escalation(self, reminder_id) -> Outcome[bool]:
        return await self.escalation.stop(reminder_id)

    async def is_escalation_active(self, reminder_id) -> bool:
        return await self.escalation.is_active(reminder_id)

    # Snooze patterns

    async def record_snooze(
        self, reminder: Reminder, new_time: datetime
    ) -> Outcome[SnoozeHistoryEntry | None]:
        return await self.snooze_patterns.record_snooze(reminder, new_time)

    async def accept_anchor_prompt(self, anchor: str, time_of_day: str) -> Dict[str, str]:
        return await self.snooze_patterns.accept_prompt(anchor, time_of_day)

    async def clear_snooze_history(
        self, anchor: str | None = None, time_of_day: str | None = None
    ) -> None:
        await self.snooze_patterns.clear_history(anchor, time_of_day)

    # Tiers

    def resolve_tier_for_category(self, category: str | None) -> TierProfile:
        return self.tiers.resolve_tier_for_category(category)

    def set_category_tier_map(self, overrides: Dict[str, str]) -> Dict[str, str]:
        return self.tiers.set_category_tier_map(overrides)

    # Reminder lifecycle

    async def create_reminder(self, payload: dict) -> Reminder:
        """Resolve defaults, persist, and schedule a new reminder.

        Raises:
            ValidationError: the payload has no title
        """
        draft = await self.resolve_defaults(payload)
        if not draft.title:
            raise ValidationError("Reminder title is required")

        reminder_time = None
        routine_anchor = canonical_anchor_name(payload.get("routine_anchor"))
        if isinstance(draft.schedule, SpecificSchedule):
            reminder_time = draft.schedule.timestamp.isoformat()
            routine_anchor = draft.schedule.resolved_anchor or routine_anchor
        elif isinstance(draft.schedule, RoutineSchedule):
            reminder_time = routine_token(draft.schedule.anchor)
            routine_anchor = draft.schedule.anchor

        metadata = dict(draft.metadata)
        metadata["notification_profile"] = draft.notification_profile
        metadata["notification_types"] = draft.notification_types

        caregiver = payload.get("caregiver")
        reminder = Reminder(
            title=draft.title,
            description=draft.description or None,
            category=draft.category,
            reminder_time=reminder_time,
            frequency_type=draft.repeat.frequency_type,  # type: ignore
            repeat_days=draft.repeat.repeat_days,
            times_per_day=draft.repeat.times_per_day,
            notify_before_minutes=draft.notify_before_minutes,
            routine_anchor=routine_anchor,
            caregiver=caregiver if isinstance(caregiver, dict) else None,
            caregiver_id=payload.get("caregiver_id"),
            metadata=metadata,
        )

        saved = await self.reminders.create_reminder(reminder)
        logger.info(f"Created reminder {saved.id}: {saved.title} at {saved.reminder_time}")
        await self.schedule_reminder(saved)
        return saved

    async def _close(self, reminder_id: int, status: str) -> Reminder | None:
        reminder = await self.reminders.get_reminder(reminder_id)
        if reminder is None or reminder.is_deleted:
            return None

        reminder.status = status  # type: ignore
        updated = await self.reminders.update_reminder(reminder)
        if updated is None:
            return None

        await self.cancel_scheduled_reminder(reminder_id)
        await self.stop_escalation(reminder_id)
        logger.info(f"Reminder {reminder_id} marked {status}")

        if updated.is_recurring:
            rolled = await self.schedule_next_occurrence(updated)
            if rolled is not None:
                return rolled
        return updated

    async def acknowledge(self, reminder_id: int) -> Reminder | None:
        """Mark taken and stop nagging; recurring reminders roll forward."""
        return await self._close(reminder_id, "taken")

    async def skip(self, reminder_id: int) -> Reminder | None:
        return await self._close(reminder_id, "skipped")

    async def list_with_due_times(
        self, include_done: bool = False
    ) -> List[Tuple[Reminder, datetime | None]]:
        """Reminders paired with their resolved due time, soonest first."""
        entries = []
        for reminder in await self.reminders.list_reminders(include_done=include_done):
            entries.append((reminder, await self.scheduler.resolve_due_time(reminder)))

        # Reminders without a usable time go last
        entries.sort(key=lambda entry: (entry[1] is None, entry[1].timestamp() if entry[1] else 0.0))
        return entries

    async def delete_reminder(self, reminder_id: int) -> bool:
        deleted = await self.reminders.soft_delete_reminder(reminder_id)
        if deleted:
            await self.cancel_scheduled_reminder(reminder_id)
            await self.stop_escalation(reminder_id)
            logger.info(f"Reminder {reminder_id} deleted")
        return deleted
