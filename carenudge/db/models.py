"""Data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, List, Literal, TypeVar, Union


ReminderStatus = Literal["pending", "snoozed", "taken", "skipped", "missed"]
FrequencyType = Literal["none", "daily", "weekly", "once", "custom"]

T = TypeVar("T")


@dataclass
class Reminder:
    """A reminder row as stored by the persistence collaborator."""

    title: str
    reminder_time: str | None  # ISO timestamp or "routine:<anchor>" token
    category: str = "other"
    status: ReminderStatus = "pending"
    description: str | None = None
    frequency_type: FrequencyType = "none"
    repeat_days: List[str] | None = None
    times_per_day: int | None = None
    notify_before_minutes: int = 0
    routine_anchor: str | None = None
    caregiver_id: str | None = None
    caregiver: dict | None = None
    metadata: dict = field(default_factory=dict)
    is_deleted: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    id: int | None = None

    @property
    def is_recurring(self) -> bool:
        return self.frequency_type in ("daily", "weekly")


@dataclass
class RepeatRule:
    """Recurrence settings attached to a new reminder."""

    frequency_type: str = "none"
    times_per_day: int | None = None
    repeat_days: List[str] | None = None


# Schedule descriptors


@dataclass(frozen=True)
class SpecificSchedule:
    """Fire at an explicit timestamp."""

    timestamp: datetime
    resolved_anchor: str | None = None  # set when chosen by the next-slot rule
    original_time_of_day: str | None = None
    parsed_day: str | None = None


@dataclass(frozen=True)
class RoutineSchedule:
    """Fire at the next occurrence of a routine anchor."""

    anchor: str


@dataclass(frozen=True)
class UnspecifiedSchedule:
    """No usable time was supplied."""

    raw: Any = None


ScheduleDescriptor = Union[SpecificSchedule, RoutineSchedule, UnspecifiedSchedule]


@dataclass(frozen=True)
class NextSlot:
    """Result of the next-slot rule."""

    anchor: str
    timestamp: datetime
    anchor_time_of_day: str


@dataclass
class ReminderDraft:
    """A UI payload after defaults resolution, ready to persist."""

    title: str
    description: str
    category: str
    schedule: ScheduleDescriptor
    repeat: RepeatRule
    notification_profile: dict
    notify_before_minutes: int = 0
    notification_types: List[str] = field(default_factory=lambda: ["push"])
    metadata: dict = field(default_factory=dict)


# Escalation


@dataclass
class EscalationMilestone:
    """One scheduled follow-up notification."""

    level: int
    scheduled_at: datetime
    notification_id: str

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "scheduled_at": self.scheduled_at.isoformat(),
            "notification_id": self.notification_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "EscalationMilestone":
        return cls(
            level=int(data["level"]),
            scheduled_at=datetime.fromisoformat(data["scheduled_at"]),
            notification_id=str(data["notification_id"]),
        )


@dataclass
class EscalationChain:
    """Escalation milestones scheduled for one Tier-1 reminder."""

    reminder_id: str
    milestones: List[EscalationMilestone]
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "notifications": [m.to_dict() for m in self.milestones],
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, reminder_id: str, data: dict) -> "EscalationChain":
        return cls(
            reminder_id=reminder_id,
            milestones=[EscalationMilestone.from_dict(n) for n in data.get("notifications", [])],
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class CaregiverEscalation:
    """Request for the backend to notify a caregiver."""

    reminder_id: int
    scheduled_at: datetime
    payload: dict
    caregiver_id: str | None = None
    status: str = "scheduled"
    created_at: datetime | None = None
    id: int | None = None


# Snooze patterns


@dataclass
class SnoozeHistoryEntry:
    """Calendar days on which an anchor was snoozed to the same time."""

    anchor: str
    time_of_day: str  # HH:MM:SS
    dates: List[str] = field(default_factory=list)  # YYYY-MM-DD
    last_prompted: str | None = None

    def to_dict(self) -> dict:
        return {"dates": list(self.dates), "last_prompted": self.last_prompted}

    @classmethod
    def from_dict(cls, anchor: str, time_of_day: str, data: dict) -> "SnoozeHistoryEntry":
        return cls(
            anchor=anchor,
            time_of_day=time_of_day,
            dates=list(data.get("dates", [])),
            last_prompted=data.get("last_prompted"),
        )


@dataclass(frozen=True)
class AnchorPrompt:
    """Offer to move a routine anchor to a repeatedly snoozed-to time."""

    anchor: str
    time_of_day: str
    reminder_id: int | None = None


# Best-effort results


@dataclass(frozen=True)
class Diagnostic:
    """A best-effort step that failed without aborting the primary operation."""

    step: str
    message: str
    reminder_id: Any = None


@dataclass
class Outcome(Generic[T]):
    """A value plus the diagnostics collected while producing it."""

    value: T
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics

    def failed(self, step: str) -> bool:
        """Whether any diagnostic was recorded for the given step."""
        return any(d.step == step for d in self.diagnostics)

    def add(self, step: str, message: str, reminder_id: Any = None) -> None:
        self.diagnostics.append(Diagnostic(step, message, reminder_id))
