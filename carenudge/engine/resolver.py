"""Normalize raw reminder-time input into a schedule descriptor."""

import logging
from datetime import datetime
from typing import Any

from carenudge.db.models import (
    NextSlot,
    ReminderDraft,
    RepeatRule,
    RoutineSchedule,
    ScheduleDescriptor,
    SpecificSchedule,
    UnspecifiedSchedule,
)
from carenudge.engine.anchors import RoutineAnchorStore, canonical_anchor_name
from carenudge.utils.constants import (
    ANCHOR_ORDER,
    DEFAULT_APPOINTMENT_BUFFERS,
    NOTIFICATION_PROFILES,
    ROUTINE_TOKEN_PREFIX,
    WEEKDAY_NAMES,
)
from carenudge.utils.time_utils import (
    combine_date_with_time_of_day,
    is_bare_time_of_day,
    looks_like_iso,
    next_time_of_day_after,
    next_weekday_on_or_after,
    normalize_time_of_day,
    parse_timestamp,
    parse_weekday,
    to_local,
)

logger = logging.getLogger(__name__)

WEEKDAY_BY_INDEX = {index: name for name, index in WEEKDAY_NAMES.items()}


def parse_routine_token(value: str) -> str | None:
    """Anchor named by a routine token, e.g. routine:breakfast -> Breakfast."""
    text = value.strip()
    if not text.lower().startswith(ROUTINE_TOKEN_PREFIX):
        return None
    name = text[len(ROUTINE_TOKEN_PREFIX):].strip()
    if not name:
        return None
    return name.capitalize()


def routine_token(anchor: str) -> str:
    return f"{ROUTINE_TOKEN_PREFIX}{anchor.lower()}"


def normalize_category(raw: Any) -> str:
    """Map free-form category text onto the known categories."""
    if not raw:
        return "other"
    text = str(raw).strip().lower()
    if "med" in text:
        return "medications"
    if "appoint" in text:
        return "appointments"
    if "date" in text or "important" in text:
        return "important_dates"
    if "other" in text:
        return "other"
    return text


class ScheduleResolver:
    """Classifies raw time input and applies the next-slot rule."""

    def __init__(self, anchors: RoutineAnchorStore, timezone: str):
        self.anchors = anchors
        self.timezone = timezone

    def resolve(self, raw: Any, reference_now: datetime) -> ScheduleDescriptor:
        """Classify raw input; first matching rule wins.

        Order:
        1. "routine:<name>" token
        2. weekday name or abbreviation -> next such day at 09:00
        3. ISO-like timestamp
        4. bare HH:MM[:SS] -> today at that time
        5. anchor name ("lunch")
        6. anything else -> unspecified
        """
        if raw is None:
            return UnspecifiedSchedule()
        if isinstance(raw, datetime):
            return SpecificSchedule(timestamp=to_local(raw, self.timezone))

        text = str(raw).strip()
        if not text:
            return UnspecifiedSchedule(raw=raw)

        anchor = parse_routine_token(text)
        if anchor:
            return RoutineSchedule(anchor=anchor)

        weekday = parse_weekday(text)
        if weekday is not None:
            return SpecificSchedule(
                timestamp=next_weekday_on_or_after(reference_now, weekday, self.timezone),
                parsed_day=WEEKDAY_BY_INDEX[weekday],
            )

        if looks_like_iso(text):
            parsed = parse_timestamp(text, self.timezone)
            if parsed is not None:
                return SpecificSchedule(timestamp=parsed)

        if is_bare_time_of_day(text):
            normalized = normalize_time_of_day(text)
            if normalized is not None:
                return SpecificSchedule(
                    timestamp=combine_date_with_time_of_day(reference_now, normalized, self.timezone),
                    original_time_of_day=text,
                )

        anchor = canonical_anchor_name(text)
        if anchor:
            return RoutineSchedule(anchor=anchor)

        return UnspecifiedSchedule(raw=raw)

    async def compute_next_slot(self, reference_now: datetime) -> NextSlot | None:
        """Earliest anchor occurrence strictly after reference_now.

        Anchors are evaluated in priority order; on an exact tie the earlier
        anchor in that order wins.
        """
        anchors = await self.anchors.get_anchors()
        if not anchors:
            return None

        chosen: NextSlot | None = None
        for name in ANCHOR_ORDER:
            time_of_day = anchors.get(name)
            if not time_of_day:
                continue
            candidate = next_time_of_day_after(reference_now, time_of_day, self.timezone)
            if candidate is None:
                continue
            if chosen is None or candidate < chosen.timestamp:
                chosen = NextSlot(anchor=name, timestamp=candidate, anchor_time_of_day=time_of_day)

        return chosen

    async def resolve_defaults(self, payload: dict, reference_now: datetime) -> ReminderDraft:
        """Turn a UI payload into a draft with every default filled in."""
        category = normalize_category(payload.get("category"))

        schedule = self.resolve(
            payload.get("reminder_time") or payload.get("time"), reference_now
        )
        if isinstance(schedule, UnspecifiedSchedule):
            slot = await self.compute_next_slot(reference_now)
            if slot is not None:
                logger.info(f"No time given, next slot is {slot.anchor} at {slot.timestamp}")
                schedule = SpecificSchedule(
                    timestamp=slot.timestamp, resolved_anchor=slot.anchor
                )

        repeat = RepeatRule(
            frequency_type=str(payload.get("frequency_type") or "none").strip().lower(),
            times_per_day=payload.get("times_per_day"),
            repeat_days=payload.get("repeat_days"),
        )
        if category == "medications" and repeat.frequency_type in ("", "none"):
            repeat.frequency_type = "daily"
            dose_times = payload.get("dose_times")
            repeat.times_per_day = repeat.times_per_day or (len(dose_times) if dose_times else 1)

        if payload.get("notification_profile"):
            profile = dict(payload["notification_profile"])
        elif category == "medications":
            profile = dict(NOTIFICATION_PROFILES["gentle_chime"])
        elif category == "appointments":
            profile = dict(NOTIFICATION_PROFILES["appointment_default"])
        else:
            profile = dict(NOTIFICATION_PROFILES["default"])

        metadata = dict(payload.get("metadata") or {})
        if category == "appointments" and not isinstance(metadata.get("buffers"), list):
            metadata["buffers"] = list(DEFAULT_APPOINTMENT_BUFFERS)

        notification_types = payload.get("notification_types") or ["push"]
        if isinstance(notification_types, str):
            notification_types = [notification_types]

        return ReminderDraft(
            title=str(payload.get("title") or "").strip(),
            description=str(payload.get("description") or "").strip(),
            category=category,
            schedule=schedule,
            repeat=repeat,
            notification_profile=profile,
            notify_before_minutes=int(payload.get("notify_before_minutes") or 0),
            notification_types=list(notification_types),
            metadata=metadata,
        )
