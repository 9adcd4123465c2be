"""Constants and default values."""

from dataclasses import dataclass, field
from typing import List


# Routine anchors (24-hour, HH:MM:SS)
DEFAULT_ANCHORS = {
    "Breakfast": "08:00:00",
    "Lunch": "12:30:00",
    "Dinner": "18:00:00",
    "Bedtime": "21:00:00",
}

# Priority order for the next-slot rule
ANCHOR_ORDER = ["Breakfast", "Lunch", "Dinner", "Bedtime"]

ROUTINE_TOKEN_PREFIX = "routine:"


@dataclass(frozen=True)
class EscalationStep:
    """A follow-up notification offset for Tier-1 reminders."""

    minutes: int
    level: int


ESCALATION_STEPS = [
    EscalationStep(15, 1),  # repeat alert
    EscalationStep(45, 2),  # nudge
    EscalationStep(60, 3),  # caregiver escalation
]

CAREGIVER_ESCALATION_LEVEL = 3

ESCALATION_BODIES = {
    1: "Still due - please acknowledge.",
    2: "Reminder still outstanding - please check.",
    3: "Unacknowledged Tier-1 reminder - caregiver escalation initiated.",
}


@dataclass(frozen=True)
class TierProfile:
    """Notification intensity profile."""

    id: str
    name: str
    sound: str
    vibration_pattern: List[int]  # ms on/off, advisory
    priority: str
    full_screen_intent: bool
    channels: List[str] = field(default_factory=list)
    description: str = ""


TIER_PROFILES = {
    "T1": TierProfile(
        id="T1",
        name="Tier 1 - High Interruptiveness",
        sound="alarm",
        vibration_pattern=[500, 200, 500],
        priority="max",
        full_screen_intent=True,
        channels=["push", "in_app", "voice"],
        description="Highest interruptiveness: sound, vibration and full-screen when feasible.",
    ),
    "T2": TierProfile(
        id="T2",
        name="Tier 2 - Medium Interruptiveness",
        sound="gentle_chime",
        vibration_pattern=[200, 150, 200],
        priority="high",
        full_screen_intent=False,
        channels=["push", "in_app"],
        description="Noticeable sound and vibration, no full-screen.",
    ),
    "T3": TierProfile(
        id="T3",
        name="Tier 3 - Low / Non-intrusive",
        sound="default",
        vibration_pattern=[],
        priority="low",
        full_screen_intent=False,
        channels=["push"],
        description="Badge or list only when feasible, no vibration.",
    ),
}

DEFAULT_CATEGORY_TIERS = {
    "medications": "T1",
    "appointments": "T2",
    "important_dates": "T3",
    "other": "T3",
}

IOS_INTERRUPTION_LEVELS = {
    "T1": "time-sensitive",
    "T2": "active",
    "T3": "passive",
}

NOTIFICATION_PROFILES = {
    "gentle_chime": {"name": "gentle_chime", "tier": "T2", "sound": "gentle_chime", "channels": ["push"]},
    "appointment_default": {"name": "appointment_default", "tier": "T3", "sound": "default", "channels": ["push"]},
    "default": {"name": "default", "tier": "T3", "sound": "default", "channels": ["push"]},
}

# Appointment buffer reminders, minutes before the appointment
DEFAULT_APPOINTMENT_BUFFERS = [120, 1440]

# Weekday-only input ("Friday") resolves to this local hour
DEFAULT_WEEKDAY_HOUR = 9

# Snooze pattern detection
SNOOZE_HISTORY_LIMIT = 14
SNOOZE_PATTERN_DAYS = 3

# Cap for the bulk reschedule query
MAX_SCHEDULABLE_REMINDERS = 2000

SCHEDULABLE_STATUSES = ("pending", "snoozed")

# Key-value store keys
ANCHORS_KEY = "carenudge:routine_anchors"
LEGACY_ANCHORS_KEY = "carenudge:anchors"
NOTIFICATION_MAP_KEY = "carenudge:reminder_notification_map"
ESCALATION_MAP_KEY = "carenudge:escalation_map"
SNOOZE_PATTERNS_KEY = "carenudge:snooze_patterns"
CAREGIVER_LINKS_KEY = "carenudge:caregiver_links"

# Weekday names (Monday=0, matching datetime.weekday())
WEEKDAY_NAMES = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}
