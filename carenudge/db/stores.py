"""Per-entity repositories over the key-value store.

Each repository owns one key and stores a JSON document under it, so tests
can fake the key-value store without caring about the layout of the others.
"""

import json
import logging
from typing import Dict

from carenudge.db.kv_store import KeyValueStore
from carenudge.db.models import EscalationChain, SnoozeHistoryEntry
from carenudge.utils.constants import (
    ANCHORS_KEY,
    CAREGIVER_LINKS_KEY,
    ESCALATION_MAP_KEY,
    LEGACY_ANCHORS_KEY,
    NOTIFICATION_MAP_KEY,
    SNOOZE_PATTERNS_KEY,
)

logger = logging.getLogger(__name__)


class _JsonDocument:
    """A JSON object stored under a single key."""

    def __init__(self, store: KeyValueStore, key: str):
        self.store = store
        self.key = key

    async def read(self) -> dict | None:
        raw = await self.store.get(self.key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Corrupt JSON under {self.key}, treating as empty")
            return None
        return data if isinstance(data, dict) else None

    async def write(self, data: dict) -> None:
        await self.store.set(self.key, json.dumps(data))

    async def delete(self) -> None:
        await self.store.remove(self.key)


class AnchorRepository:
    """Routine anchor map, plus the legacy key it may be migrated from."""

    def __init__(self, store: KeyValueStore):
        self._current = _JsonDocument(store, ANCHORS_KEY)
        self._legacy = _JsonDocument(store, LEGACY_ANCHORS_KEY)

    async def load(self) -> dict | None:
        return await self._current.read()

    async def save(self, anchors: Dict[str, str]) -> None:
        await self._current.write(anchors)

    async def load_legacy(self) -> dict | None:
        return await self._legacy.read()

    async def remove_legacy(self) -> None:
        await self._legacy.delete()


class NotificationMapRepository:
    """reminder id -> platform notification id."""

    def __init__(self, store: KeyValueStore):
        self._doc = _JsonDocument(store, NOTIFICATION_MAP_KEY)

    async def all(self) -> Dict[str, str]:
        return await self._doc.read() or {}

    async def get(self, reminder_id) -> str | None:
        return (await self.all()).get(str(reminder_id))

    async def set(self, reminder_id, notification_id: str) -> None:
        mapping = await self.all()
        mapping[str(reminder_id)] = notification_id
        await self._doc.write(mapping)

    async def remove(self, reminder_id) -> None:
        mapping = await self.all()
        if mapping.pop(str(reminder_id), None) is not None:
            await self._doc.write(mapping)

    async def clear(self) -> None:
        await self._doc.write({})


class EscalationChainRepository:
    """reminder id -> escalation chain."""

    def __init__(self, store: KeyValueStore):
        self._doc = _JsonDocument(store, ESCALATION_MAP_KEY)

    async def _map(self) -> dict:
        return await self._doc.read() or {}

    async def all(self) -> Dict[str, EscalationChain]:
        return {
            reminder_id: EscalationChain.from_dict(reminder_id, data)
            for reminder_id, data in (await self._map()).items()
        }

    async def get(self, reminder_id) -> EscalationChain | None:
        data = (await self._map()).get(str(reminder_id))
        if data is None:
            return None
        return EscalationChain.from_dict(str(reminder_id), data)

    async def put(self, chain: EscalationChain) -> None:
        chains = await self._map()
        chains[str(chain.reminder_id)] = chain.to_dict()
        await self._doc.write(chains)

    async def remove(self, reminder_id) -> None:
        chains = await self._map()
        if chains.pop(str(reminder_id), None) is not None:
            await self._doc.write(chains)


class SnoozeHistoryRepository:
    """anchor -> time-of-day -> snooze history entry."""

    def __init__(self, store: KeyValueStore):
        self._doc = _JsonDocument(store, SNOOZE_PATTERNS_KEY)

    async def get(self, anchor: str, time_of_day: str) -> SnoozeHistoryEntry | None:
        patterns = await self._doc.read() or {}
        data = patterns.get(anchor, {}).get(time_of_day)
        if data is None:
            return None
        return SnoozeHistoryEntry.from_dict(anchor, time_of_day, data)

    async def put(self, entry: SnoozeHistoryEntry) -> None:
        patterns = await self._doc.read() or {}
        patterns.setdefault(entry.anchor, {})[entry.time_of_day] = entry.to_dict()
        await self._doc.write(patterns)

    async def clear(self, anchor: str | None = None, time_of_day: str | None = None) -> None:
        """Clear one entry, one anchor, or everything."""
        if anchor is None:
            await self._doc.write({})
            return

        patterns = await self._doc.read() or {}
        if time_of_day is None:
            patterns.pop(anchor, None)
        else:
            patterns.get(anchor, {}).pop(time_of_day, None)
        await self._doc.write(patterns)


class CaregiverLinkRepository:
    """reminder id -> caregiver contact dict."""

    def __init__(self, store: KeyValueStore):
        self._doc = _JsonDocument(store, CAREGIVER_LINKS_KEY)

    async def get(self, reminder_id) -> dict | None:
        return (await self._doc.read() or {}).get(str(reminder_id))

    async def put(self, reminder_id, caregiver: dict) -> None:
        links = await self._doc.read() or {}
        links[str(reminder_id)] = caregiver
        await self._doc.write(links)
