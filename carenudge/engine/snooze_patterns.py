"""Adaptive anchors from repeated snoozes.

If a reminder bound to an anchor keeps getting snoozed to the same time of
day, offer to move the anchor there. The check looks at the three calendar
days before today and prompts at most once per entry per day.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict

from carenudge.db.models import AnchorPrompt, Outcome, Reminder, SnoozeHistoryEntry
from carenudge.db.stores import SnoozeHistoryRepository
from carenudge.engine.anchors import RoutineAnchorStore, canonical_anchor_name
from carenudge.engine.notifier import PromptDelivery
from carenudge.errors import TransientIOError
from carenudge.utils.clock import Clock
from carenudge.utils.constants import SNOOZE_HISTORY_LIMIT, SNOOZE_PATTERN_DAYS
from carenudge.utils.time_utils import local_date_str, time_of_day_str, to_local

logger = logging.getLogger(__name__)


class SnoozePatternDetector:
    def __init__(
        self,
        history: SnoozeHistoryRepository,
        anchors: RoutineAnchorStore,
        prompt_delivery: PromptDelivery | None,
        clock: Clock,
        timezone: str,
    ):
        self.history = history
        self.anchors = anchors
        self.prompt_delivery = prompt_delivery
        self.clock = clock
        self.timezone = timezone

    def _preceding_days(self, now: datetime) -> list[str]:
        today = to_local(now, self.timezone).date()
        return [
            (today - timedelta(days=offset)).isoformat()
            for offset in range(1, SNOOZE_PATTERN_DAYS + 1)
        ]

    async def record_snooze(
        self, reminder: Reminder, new_time: datetime
    ) -> Outcome[SnoozeHistoryEntry | None]:
        """Remember a snooze and prompt when the pattern holds.

        Returns the updated history entry, or None when the reminder is not
        bound to a routine anchor.
        """
        outcome: Outcome[SnoozeHistoryEntry | None] = Outcome(None)
        anchor = canonical_anchor_name(reminder.routine_anchor)
        if anchor is None:
            return outcome

        now = self.clock.now()
        today = local_date_str(now, self.timezone)
        time_of_day = time_of_day_str(new_time, self.timezone)

        try:
            entry = await self.history.get(anchor, time_of_day)
            if entry is None:
                entry = SnoozeHistoryEntry(anchor=anchor, time_of_day=time_of_day)

            if today not in entry.dates:
                entry.dates.append(today)
            entry.dates = sorted(set(entry.dates))[-SNOOZE_HISTORY_LIMIT:]

            pattern_found = all(day in entry.dates for day in self._preceding_days(now))
            should_prompt = pattern_found and entry.last_prompted != today
            if should_prompt:
                entry.last_prompted = today

            await self.history.put(entry)
        except TransientIOError as e:
            logger.warning(f"Could not update snooze history for {anchor} {time_of_day}: {e}")
            outcome.add("record_history", str(e), reminder.id)
            return outcome

        outcome.value = entry
        if not should_prompt:
            return outcome

        logger.info(f"Snooze pattern detected: {anchor} -> {time_of_day}")
        if self.prompt_delivery is None:
            return outcome

        prompt = AnchorPrompt(anchor=anchor, time_of_day=time_of_day, reminder_id=reminder.id)
        try:
            accepted = await self.prompt_delivery.offer_anchor_update(prompt)
        except Exception as e:
            logger.warning(f"Anchor prompt delivery failed: {e}")
            outcome.add("prompt_delivery", str(e), reminder.id)
            return outcome

        if accepted:
            try:
                await self.accept_prompt(anchor, time_of_day)
            except Exception as e:
                logger.error(f"Updating {anchor} after accepted prompt failed: {e}")
                outcome.add("anchor_update", str(e), reminder.id)

        return outcome

    async def accept_prompt(self, anchor: str, time_of_day: str) -> Dict[str, str]:
        """Apply an accepted prompt; reschedules like any anchor change."""
        return await self.anchors.set_anchor(anchor, time_of_day)

    async def clear_history(self, anchor: str | None = None, time_of_day: str | None = None) -> None:
        await self.history.clear(anchor, time_of_day)
        logger.info(f"Snooze history cleared ({anchor or 'all anchors'})")
