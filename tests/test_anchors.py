"""Tests for routine anchors."""

import json
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from carenudge.db.stores import AnchorRepository
from carenudge.engine.anchors import RoutineAnchorStore, canonical_anchor_name
from carenudge.errors import ValidationError
from carenudge.utils.constants import ANCHORS_KEY, DEFAULT_ANCHORS, LEGACY_ANCHORS_KEY

UTC = ZoneInfo("UTC")


def test_canonical_anchor_name():
    assert canonical_anchor_name("breakfast") == "Breakfast"
    assert canonical_anchor_name(" BEDTIME ") == "Bedtime"
    assert canonical_anchor_name("brunch") is None
    assert canonical_anchor_name(None) is None


@pytest.mark.asyncio
async def test_initialize_stores_defaults(kv):
    store = RoutineAnchorStore(AnchorRepository(kv))

    anchors = await store.initialize()

    assert anchors == DEFAULT_ANCHORS
    assert json.loads(kv.data[ANCHORS_KEY]) == DEFAULT_ANCHORS
    # Safe to call again
    assert await store.initialize() == DEFAULT_ANCHORS


@pytest.mark.asyncio
async def test_initialize_migrates_legacy_key(kv):
    """The old key is merged over defaults, normalized and removed."""
    kv.data[LEGACY_ANCHORS_KEY] = json.dumps({"Breakfast": "7:15", "Dinner": "7:00 pm"})
    store = RoutineAnchorStore(AnchorRepository(kv))

    anchors = await store.initialize()

    assert anchors["Breakfast"] == "07:15:00"
    assert anchors["Dinner"] == "19:00:00"
    assert anchors["Lunch"] == DEFAULT_ANCHORS["Lunch"]
    assert LEGACY_ANCHORS_KEY not in kv.data


@pytest.mark.asyncio
async def test_get_anchors_repairs_malformed_values(kv):
    kv.data[ANCHORS_KEY] = json.dumps({"Breakfast": "garbage", "Lunch": "13:00"})
    store = RoutineAnchorStore(AnchorRepository(kv))

    anchors = await store.get_anchors()

    assert anchors["Breakfast"] == DEFAULT_ANCHORS["Breakfast"]
    assert anchors["Lunch"] == "13:00:00"
    assert set(anchors) == set(DEFAULT_ANCHORS)


@pytest.mark.asyncio
async def test_get_anchors_survives_corrupt_json_and_io_errors(kv):
    kv.data[ANCHORS_KEY] = "{not json"
    store = RoutineAnchorStore(AnchorRepository(kv))
    assert await store.get_anchors() == DEFAULT_ANCHORS

    kv.fail = True
    assert await store.get_anchors() == DEFAULT_ANCHORS


@pytest.mark.asyncio
async def test_set_anchor_validates(kv):
    store = RoutineAnchorStore(AnchorRepository(kv))

    with pytest.raises(ValidationError):
        await store.set_anchor("Brunch", "10:00")
    with pytest.raises(ValidationError):
        await store.set_anchor("Breakfast", "25:00")


@pytest.mark.asyncio
async def test_set_anchor_calls_reschedule_hook_before_returning(kv):
    calls = []

    async def hook(anchor, time_of_day):
        calls.append((anchor, time_of_day))

    store = RoutineAnchorStore(AnchorRepository(kv), on_anchor_changed=hook)
    anchors = await store.set_anchor("breakfast", "9:00")

    assert anchors["Breakfast"] == "09:00:00"
    assert calls == [("Breakfast", "09:00:00")]
    assert (await store.get_anchors())["Breakfast"] == "09:00:00"


@pytest.mark.asyncio
async def test_set_anchor_reschedules_bound_reminders(engine, make_reminder, notifier):
    """Future reminders bound to the anchor keep their date and take the new time."""
    tomorrow_8am = datetime(2026, 3, 3, 8, 0, tzinfo=UTC)
    bound = await make_reminder(reminder_time=tomorrow_8am.isoformat(), routine_anchor="Breakfast")
    other = await make_reminder(reminder_time=tomorrow_8am.isoformat(), routine_anchor="Lunch")
    past = await make_reminder(
        reminder_time=datetime(2026, 3, 1, 8, 0, tzinfo=UTC).isoformat(),
        routine_anchor="Breakfast",
    )

    anchors = await engine.set_anchor("Breakfast", "09:00")

    assert anchors["Breakfast"] == "09:00:00"
    assert (await engine.get_anchors())["Breakfast"] == "09:00:00"

    moved = await engine.reminders.get_reminder(bound.id)
    assert datetime.fromisoformat(moved.reminder_time) == datetime(2026, 3, 3, 9, 0, tzinfo=UTC)
    assert moved.status == "pending"

    untouched = await engine.reminders.get_reminder(other.id)
    assert untouched.reminder_time == other.reminder_time
    stale = await engine.reminders.get_reminder(past.id)
    assert stale.reminder_time == past.reminder_time

    [(_, when)] = notifier.live_for(bound.id)
    assert when == datetime(2026, 3, 3, 9, 0, tzinfo=UTC)
