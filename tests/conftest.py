"""Shared test fixtures for the notification queue processor."""
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any

from channels.base import NotificationSender
from config.settings import reset_settings
from database.store_memory import InMemoryNotificationStore, InMemoryRecipientDirectory
from models.schemas import (
    Delivered, HorseNotificationResult, NotificationJob, NotificationStatus,
)

T0 = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


class FakeSender(NotificationSender):
    """
    Records every call. Outcomes are looked up per horse id, falling back
    to `default`; an exception instance is raised instead of returned.
    """

    def __init__(self, default=None, outcomes: dict[str, Any] = None):
        self.default = default or Delivered(message_id="msg_test")
        self.outcomes = dict(outcomes or {})
        self.calls: list[tuple] = []

    async def send_horse_notification(self, notification_type, horse_id, payload):
        self.calls.append((notification_type, horse_id, payload))
        outcome = self.outcomes.get(horse_id, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, HorseNotificationResult):
            return outcome
        return HorseNotificationResult(owner=outcome)


class SleepRecorder:
    """Delay strategy that returns immediately and remembers what it was asked."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture(autouse=True)
def _isolate_singletons(monkeypatch):
    for var in ("PROD_DATABASE_URL", "DATABASE_URL", "RESEND_API_KEY",
                "RESEND_FROM_EMAIL", "APP_URL", "NEXT_PUBLIC_APP_URL", "NOTIFIER_CONFIG"):
        monkeypatch.delenv(var, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def race_data() -> dict[str, Any]:
    return {
        "horseId": "h1",
        "horseName": "Bold Ruler",
        "raceDate": "2025-03-12T13:30:00.000Z",
        "position": 1,
        "city": "İstanbul",
        "distance": 1400,
        "prizeMoney": 125000,
    }


@pytest.fixture
def make_job(race_data):
    """Build a NotificationJob; `minutes` offsets created_at from a fixed start."""
    def _make(job_id: str = "job-1", minutes: int = 0, **fields) -> NotificationJob:
        values = {
            "id": job_id,
            "type": "newRace",
            "horse_id": "h1",
            "data": dict(race_data),
            "created_at": T0 + timedelta(minutes=minutes),
        }
        values.update(fields)
        return NotificationJob(**values)
    return _make


@pytest.fixture
def store() -> InMemoryNotificationStore:
    return InMemoryNotificationStore(horse_names={"h1": "Bold Ruler", "h2": "Secretariat"})


@pytest.fixture
def directory() -> InMemoryRecipientDirectory:
    return InMemoryRecipientDirectory()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_sender():
    return FakeSender
