"""Shared fixtures: fixed clock, in-memory stores and recording fakes."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

from carenudge.db.migrations import run_migrations
from carenudge.db.models import AnchorPrompt, Reminder
from carenudge.db.repository import ReminderRepository
from carenudge.engine.core import Engine
from carenudge.errors import NotFoundError, TransientIOError

TZ = "UTC"

# Monday 2 March 2026, 08:30 local
START = datetime(2026, 3, 2, 8, 30, tzinfo=ZoneInfo(TZ))


class FixedClock:
    def __init__(self, now: datetime = START):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class InMemoryKeyValueStore:
    def __init__(self):
        self.data: dict[str, str] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise TransientIOError("store unavailable")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._check()
        self.data[key] = value

    async def remove(self, key: str) -> None:
        self._check()
        self.data.pop(key, None)


class FakeNotifier:
    """Records scheduled notifications; live holds the ones not cancelled."""

    def __init__(self):
        self.live: dict[str, tuple[dict, datetime]] = {}
        self.history: list[tuple[str, dict, datetime]] = []
        self.cancelled: list[str] = []
        self.fail_schedule = False
        self.fail_cancel = False
        self._counter = 0

    async def schedule_at(self, content: dict, when: datetime) -> str:
        if self.fail_schedule:
            raise TransientIOError("scheduler unavailable")
        self._counter += 1
        notification_id = f"n{self._counter}"
        self.live[notification_id] = (content, when)
        self.history.append((notification_id, content, when))
        return notification_id

    async def cancel(self, notification_id: str) -> None:
        if self.fail_cancel:
            raise TransientIOError("cancel failed")
        if notification_id not in self.live:
            raise NotFoundError(notification_id)
        del self.live[notification_id]
        self.cancelled.append(notification_id)

    def live_for(self, reminder_id) -> list[tuple[dict, datetime]]:
        return [
            (content, when)
            for content, when in self.live.values()
            if content.get("data", {}).get("reminder_id") == reminder_id
        ]


class RecordingPromptDelivery:
    def __init__(self, accept: bool = False):
        self.prompts: list[AnchorPrompt] = []
        self.accept = accept
        self.fail = False

    async def offer_anchor_update(self, prompt: AnchorPrompt) -> bool:
        if self.fail:
            raise TransientIOError("prompt not delivered")
        self.prompts.append(prompt)
        return self.accept


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def prompts():
    return RecordingPromptDelivery()


@pytest_asyncio.fixture
async def repo(tmp_path):
    db_path = tmp_path / "carenudge.db"
    await run_migrations(db_path)
    repository = ReminderRepository(db_path)
    await repository.connect()
    yield repository
    await repository.close()


@pytest_asyncio.fixture
async def engine(kv, repo, notifier, clock, prompts):
    instance = Engine(
        store=kv,
        reminders=repo,
        notifier=notifier,
        clock=clock,
        timezone=TZ,
        prompt_delivery=prompts,
        default_caregiver_id="caregiver-default",
    )
    await instance.initialize()
    return instance


@pytest.fixture
def make_reminder(repo):
    """Persist a reminder row; keyword arguments override the defaults."""

    async def _make(**fields) -> Reminder:
        values = {
            "title": "Take vitamins",
            "reminder_time": (START + timedelta(hours=2)).isoformat(),
            "category": "other",
        }
        values.update(fields)
        return await repo.create_reminder(Reminder(**values))

    return _make
