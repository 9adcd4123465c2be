"""Routine anchors: the four named daily reference times.

Anchors are stored as HH:MM:SS strings. Every read merges the stored map over
DEFAULT_ANCHORS, so all four names always resolve. Changing an anchor calls
the registered reschedule hook before set_anchor() returns.
"""

import logging
from typing import Awaitable, Callable, Dict

from carenudge.db.stores import AnchorRepository
from carenudge.errors import TransientIOError, ValidationError
from carenudge.utils.constants import DEFAULT_ANCHORS
from carenudge.utils.time_utils import normalize_time_of_day

logger = logging.getLogger(__name__)

AnchorChangedHook = Callable[[str, str], Awaitable[object]]


def canonical_anchor_name(name: str | None) -> str | None:
    """Map "breakfast" / "BREAKFAST" to "Breakfast"; None if not an anchor."""
    if not name or not isinstance(name, str):
        return None
    candidate = name.strip().capitalize()
    return candidate if candidate in DEFAULT_ANCHORS else None


def _normalize_map(stored: dict | None) -> Dict[str, str]:
    stored = stored or {}
    return {
        name: normalize_time_of_day(stored.get(name)) or default
        for name, default in DEFAULT_ANCHORS.items()
    }


class RoutineAnchorStore:
    """Get and set routine anchors."""

    def __init__(
        self,
        repo: AnchorRepository,
        on_anchor_changed: AnchorChangedHook | None = None,
    ):
        self.repo = repo
        self.on_anchor_changed = on_anchor_changed

    async def initialize(self) -> Dict[str, str]:
        """Migrate the legacy key once and make sure defaults are stored.

        Safe to call on every start.
        """
        try:
            migrated = await self._migrate_legacy()
            if migrated is not None:
                return migrated

            stored = await self.repo.load()
            if stored is None:
                defaults = dict(DEFAULT_ANCHORS)
                await self.repo.save(defaults)
                logger.info("Routine anchors initialized with defaults")
                return defaults

            normalized = _normalize_map(stored)
            if normalized != stored:
                await self.repo.save(normalized)
                logger.info("Routine anchors normalized")
            return normalized

        except TransientIOError as e:
            logger.warning(f"Anchor initialization failed, using defaults: {e}")
            return dict(DEFAULT_ANCHORS)

    async def _migrate_legacy(self) -> Dict[str, str] | None:
        legacy = await self.repo.load_legacy()
        if not legacy:
            return None

        candidate = {
            name: normalize_time_of_day(legacy[name]) or default
            for name, default in DEFAULT_ANCHORS.items()
            if legacy.get(name)
        }
        if not candidate:
            return None

        merged = {**DEFAULT_ANCHORS, **candidate}
        await self.repo.save(merged)
        try:
            await self.repo.remove_legacy()
        except TransientIOError as e:
            logger.warning(f"Could not remove legacy anchors key: {e}")

        logger.info(f"Migrated legacy routine anchors: {sorted(candidate)}")
        return merged

    async def get_anchors(self) -> Dict[str, str]:
        """All four anchors; malformed or missing values fall back to defaults."""
        try:
            stored = await self.repo.load()
        except TransientIOError as e:
            logger.warning(f"Failed to load anchors, returning defaults: {e}")
            return dict(DEFAULT_ANCHORS)
        return _normalize_map(stored)

    async def get_anchor(self, name: str) -> str | None:
        canonical = canonical_anchor_name(name)
        if canonical is None:
            return None
        return (await self.get_anchors())[canonical]

    async def set_anchor(self, name: str, time_of_day: str) -> Dict[str, str]:
        """Persist a new anchor time and reschedule reminders bound to it.

        Raises:
            ValidationError: unknown anchor name or unparseable time
        """
        canonical = canonical_anchor_name(name)
        if canonical is None:
            raise ValidationError(f"Invalid anchor name: {name!r}")

        normalized = normalize_time_of_day(time_of_day)
        if normalized is None:
            raise ValidationError(f"Invalid time format: {time_of_day!r}")

        anchors = await self.get_anchors()
        anchors[canonical] = normalized
        await self.repo.save(anchors)
        logger.info(f"Anchor {canonical} set to {normalized}")

        if self.on_anchor_changed is not None:
            try:
                await self.on_anchor_changed(canonical, normalized)
            except Exception as e:
                logger.error(f"Reschedule after {canonical} change failed: {e}")

        return anchors
