"""Tests for the notification scheduler."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from carenudge.db.models import Reminder
from carenudge.errors import ValidationError

UTC = ZoneInfo("UTC")
NINE_AM = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_schedule_twice_leaves_one_live_notification(engine, make_reminder, notifier):
    reminder = await make_reminder(reminder_time=NINE_AM.isoformat())

    first = await engine.schedule_reminder(reminder)
    second = await engine.schedule_reminder(reminder)

    assert first and second and first != second
    assert first in notifier.cancelled
    assert len(notifier.live_for(reminder.id)) == 1
    assert await engine.scheduler.mapping.get(reminder.id) == second


@pytest.mark.asyncio
async def test_past_target_is_skipped(engine, make_reminder, notifier):
    reminder = await make_reminder(reminder_time=(NINE_AM - timedelta(hours=2)).isoformat())

    assert await engine.schedule_reminder(reminder) is None
    assert notifier.live == {}
    assert await engine.scheduler.mapping.get(reminder.id) is None


@pytest.mark.asyncio
async def test_notify_before_shifts_target(engine, make_reminder, notifier):
    reminder = await make_reminder(reminder_time=NINE_AM.isoformat(), notify_before_minutes=10)

    await engine.schedule_reminder(reminder)

    [(content, when)] = notifier.live_for(reminder.id)
    assert when == NINE_AM - timedelta(minutes=10)
    assert content["title"] == "Take vitamins"
    assert content["data"]["tier"] == "T3"


@pytest.mark.asyncio
async def test_notify_before_can_push_target_into_past(engine, make_reminder, notifier):
    """Due at 09:00 with 45 minutes notice is 08:15, already gone at 08:30."""
    reminder = await make_reminder(reminder_time=NINE_AM.isoformat(), notify_before_minutes=45)

    assert await engine.schedule_reminder(reminder) is None


@pytest.mark.asyncio
async def test_routine_token_resolves_to_next_anchor(engine, make_reminder, notifier):
    """Breakfast at 08:00 has passed at 08:30, so it fires tomorrow."""
    breakfast = await make_reminder(reminder_time="routine:breakfast")
    dinner = await make_reminder(reminder_time="routine:dinner")

    await engine.schedule_reminder(breakfast)
    await engine.schedule_reminder(dinner)

    [(_, breakfast_at)] = notifier.live_for(breakfast.id)
    [(_, dinner_at)] = notifier.live_for(dinner.id)
    assert breakfast_at == datetime(2026, 3, 3, 8, 0, tzinfo=UTC)
    assert dinner_at == datetime(2026, 3, 2, 18, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_override_date_wins(engine, make_reminder, notifier):
    reminder = await make_reminder(reminder_time=NINE_AM.isoformat())
    override = NINE_AM + timedelta(days=3)

    await engine.schedule_reminder(reminder, override_date=override)

    [(_, when)] = notifier.live_for(reminder.id)
    assert when == override


@pytest.mark.asyncio
async def test_invalid_time_and_missing_id(engine, make_reminder, notifier):
    reminder = await make_reminder(reminder_time="sometime soon")
    assert await engine.schedule_reminder(reminder) is None

    with pytest.raises(ValidationError):
        await engine.schedule_reminder(Reminder(title="unsaved", reminder_time=NINE_AM.isoformat()))


@pytest.mark.asyncio
async def test_platform_failure_returns_none(engine, make_reminder, notifier):
    reminder = await make_reminder(reminder_time=NINE_AM.isoformat())
    notifier.fail_schedule = True

    assert await engine.schedule_reminder(reminder) is None
    assert await engine.scheduler.mapping.get(reminder.id) is None


@pytest.mark.asyncio
async def test_cancel_scheduled_reminder(engine, make_reminder, notifier):
    reminder = await make_reminder(reminder_time=NINE_AM.isoformat())
    notification_id = await engine.schedule_reminder(reminder)

    await engine.cancel_scheduled_reminder(reminder.id)

    assert notification_id in notifier.cancelled
    assert await engine.scheduler.mapping.get(reminder.id) is None
    # No mapping: no-op
    await engine.cancel_scheduled_reminder(reminder.id)


@pytest.mark.asyncio
async def test_cancel_tolerates_already_gone(engine, make_reminder, notifier):
    reminder = await make_reminder(reminder_time=NINE_AM.isoformat())
    notification_id = await engine.schedule_reminder(reminder)
    del notifier.live[notification_id]  # fired and cleared by the platform

    await engine.cancel_scheduled_reminder(reminder.id)

    assert await engine.scheduler.mapping.get(reminder.id) is None


@pytest.mark.asyncio
async def test_snooze_moves_reminder(engine, make_reminder, notifier):
    """Snoozing a 09:00 reminder by 15 minutes moves it to 09:15."""
    reminder = await make_reminder(reminder_time=NINE_AM.isoformat())
    await engine.schedule_reminder(reminder)

    snoozed = await engine.snooze_reminder(reminder.id, 15)

    assert snoozed.status == "snoozed"
    assert datetime.fromisoformat(snoozed.reminder_time) == NINE_AM + timedelta(minutes=15)
    [(_, when)] = notifier.live_for(reminder.id)
    assert when == NINE_AM + timedelta(minutes=15)


@pytest.mark.asyncio
async def test_snooze_unknown_reminder(engine):
    assert await engine.snooze_reminder(9999, 15) is None


@pytest.mark.asyncio
async def test_compute_next_occurrence(engine, make_reminder, clock):
    daily = await make_reminder(reminder_time=NINE_AM.isoformat(), frequency_type="daily")
    weekly = await make_reminder(
        reminder_time=NINE_AM.isoformat(), frequency_type="weekly", repeat_days=["Mon"]
    )
    once = await make_reminder(reminder_time=NINE_AM.isoformat(), frequency_type="once")

    assert await engine.scheduler.compute_next_occurrence(daily) == NINE_AM + timedelta(days=1)
    assert await engine.scheduler.compute_next_occurrence(weekly) == NINE_AM + timedelta(days=7)
    assert await engine.scheduler.compute_next_occurrence(once) is None


@pytest.mark.asyncio
async def test_schedule_next_occurrence_persists_and_schedules(engine, make_reminder, notifier):
    reminder = await make_reminder(
        reminder_time=NINE_AM.isoformat(), frequency_type="daily", status="taken"
    )

    updated = await engine.schedule_next_occurrence(reminder)

    assert updated.status == "pending"
    assert datetime.fromisoformat(updated.reminder_time) == NINE_AM + timedelta(days=1)
    [(_, when)] = notifier.live_for(reminder.id)
    assert when == NINE_AM + timedelta(days=1)


@pytest.mark.asyncio
async def test_schedule_next_occurrence_keeps_routine_token(engine, make_reminder, notifier):
    """Token reminders keep the token and are pinned to tomorrow's anchor."""
    reminder = await make_reminder(reminder_time="routine:dinner", frequency_type="daily")

    updated = await engine.schedule_next_occurrence(reminder)

    assert updated.reminder_time == "routine:dinner"
    [(_, when)] = notifier.live_for(reminder.id)
    assert when == datetime(2026, 3, 3, 18, 0, tzinfo=UTC)


@pytest.mark.asyncio
async def test_schedule_next_occurrence_non_recurring(engine, make_reminder):
    reminder = await make_reminder(reminder_time=NINE_AM.isoformat())
    assert await engine.schedule_next_occurrence(reminder) is None


@pytest.mark.asyncio
async def test_reschedule_all_is_idempotent(engine, make_reminder, notifier):
    future = [await make_reminder(reminder_time=(NINE_AM + timedelta(hours=i)).isoformat()) for i in range(3)]
    await make_reminder(reminder_time=(NINE_AM - timedelta(hours=3)).isoformat())
    await make_reminder(reminder_time=NINE_AM.isoformat(), status="taken")

    first = await engine.reschedule_all()
    second = await engine.reschedule_all()

    assert first.value == second.value == 3
    assert first.ok and second.ok
    assert len(notifier.live) == 3
    for reminder in future:
        assert len(notifier.live_for(reminder.id)) == 1


@pytest.mark.asyncio
async def test_reschedule_all_continues_past_failures(engine, make_reminder, notifier, monkeypatch):
    """One reminder raising does not stop the rest."""
    good = await make_reminder(reminder_time=NINE_AM.isoformat())
    bad = await make_reminder(reminder_time=NINE_AM.isoformat(), title="broken")

    original = engine.scheduler.build_notification_content

    def flaky(reminder):
        if reminder.id == bad.id:
            raise RuntimeError("boom")
        return original(reminder)

    monkeypatch.setattr(engine.scheduler, "build_notification_content", flaky)
    outcome = await engine.reschedule_all()

    assert outcome.value == 1
    assert outcome.failed("schedule_reminder")
    assert outcome.diagnostics[0].reminder_id == bad.id
    assert len(notifier.live_for(good.id)) == 1


@pytest.mark.asyncio
async def test_clear_all_scheduled(engine, make_reminder, notifier):
    for hours in (1, 2):
        await engine.schedule_reminder(
            await make_reminder(reminder_time=(NINE_AM + timedelta(hours=hours)).isoformat())
        )

    outcome = await engine.clear_all_scheduled()

    assert outcome.value == 2
    assert notifier.live == {}
    assert await engine.scheduler.mapping.all() == {}


@pytest.mark.asyncio
async def test_snooze_fired_routine_reminder_uses_todays_occurrence(engine, make_reminder, notifier, clock):
    """Breakfast fired at 08:00; snoozing at 08:02 moves it to 08:15 today, not tomorrow."""
    reminder = await make_reminder(reminder_time="routine:breakfast", routine_anchor="Breakfast")
    clock.set(datetime(2026, 3, 2, 8, 2, tzinfo=UTC))

    snoozed = await engine.snooze_reminder(reminder.id, 15)

    quarter_past = datetime(2026, 3, 2, 8, 15, tzinfo=UTC)
    assert datetime.fromisoformat(snoozed.reminder_time) == quarter_past
    [(_, when)] = notifier.live_for(reminder.id)
    assert when == quarter_past
    entry = await engine.snooze_patterns.history.get("Breakfast", "08:15:00")
    assert entry.dates == ["2026-03-02"]
