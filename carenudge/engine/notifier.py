"""Interfaces the engine needs from its host platform."""

from datetime import datetime
from typing import Protocol

from carenudge.db.models import AnchorPrompt


class LocalNotificationScheduler(Protocol):
    """Platform scheduler for one-shot local notifications.

    Implementations raise TransientIOError when the platform call fails and
    NotFoundError from cancel() when the notification is already gone.
    """

    async def schedule_at(self, content: dict, when: datetime) -> str:
        """Schedule content to fire at when; returns the notification id."""
        ...

    async def cancel(self, notification_id: str) -> None: ...


class PromptDelivery(Protocol):
    """Shows the adaptive anchor prompt to the user."""

    async def offer_anchor_update(self, prompt: AnchorPrompt) -> bool:
        """Return True only if the user accepted synchronously.

        Hosts that collect the answer later return False and apply the
        answer through SnoozePatternDetector.accept_prompt().
        """
        ...
