"""
InMemory stores — Dict-backed job store and recipient directory for
development and testing.

Features:
  - Zero dependencies (no database)
  - Full interface compatibility with the SQL stores
  - Safe within a single event loop (no awaits inside a mutation)
  - All data lost on process restart

Best for: unit tests, local dry runs.
"""
from __future__ import annotations

import uuid
import structlog
from datetime import datetime, timezone
from typing import Any, Optional

from database.store_base import BaseNotificationStore, BaseRecipientDirectory
from models.schemas import (
    HorseRecord, NotificationJob, NotificationSettings, NotificationStatus,
    RecipientProfile,
)

logger = structlog.get_logger()

_UPDATABLE_FIELDS = {"status", "retry_count", "error", "processed_at", "claimed_at"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:16]


class InMemoryNotificationStore(BaseNotificationStore):
    """
    Job store over a dict of NotificationJob models.
    Returns copies, so callers never mutate stored state by accident.
    """

    def __init__(self, horse_names: dict[str, str] = None):
        self._jobs: dict[str, NotificationJob] = {}     # id → job
        self._horse_names: dict[str, str] = dict(horse_names or {})
        self.fetch_sizes: list[int] = []                 # one entry per fetch, for inspection
        logger.info("inmemory_notification_store_initialized")

    def register_horse(self, horse_id: str, name: str) -> None:
        self._horse_names[horse_id] = name

    def _copy(self, job: NotificationJob) -> NotificationJob:
        return job.model_copy(
            deep=True,
            update={"horse_name": self._horse_names.get(job.horse_id, job.horse_name)},
        )

    # ── Processor operations ──────────────────────────────

    async def fetch_eligible_batch(
        self,
        limit: int,
        max_retries: int,
        after: Optional[tuple[datetime, str]] = None,
    ) -> list[NotificationJob]:
        eligible = [
            j for j in self._jobs.values()
            if j.status == NotificationStatus.PENDING
            and j.retry_count < max_retries
            and (after is None or j.cursor > after)
        ]
        eligible.sort(key=lambda j: j.cursor)
        batch = [self._copy(j) for j in eligible[:limit]]
        self.fetch_sizes.append(len(batch))
        return batch

    async def claim(self, job_id: str, max_retries: int) -> bool:
        job = self._jobs.get(job_id)
        if (
            job is None
            or job.status != NotificationStatus.PENDING
            or job.retry_count >= max_retries
        ):
            return False
        job.status = NotificationStatus.PROCESSING
        job.claimed_at = _utcnow()
        return True

    async def update_status(
        self,
        job_id: str,
        expected_status: Optional[NotificationStatus] = None,
        **fields: Any,
    ) -> bool:
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        job = self._jobs.get(job_id)
        if job is None:
            return False
        if expected_status is not None and job.status != expected_status:
            return False
        if "status" in fields:
            fields["status"] = NotificationStatus(fields["status"])
        for key, value in fields.items():
            setattr(job, key, value)
        return True

    async def find_stale_claims(self, older_than: datetime) -> list[NotificationJob]:
        stale = [
            j for j in self._jobs.values()
            if j.status == NotificationStatus.PROCESSING
            and (j.claimed_at is None or j.claimed_at < older_than)
        ]
        stale.sort(key=lambda j: j.cursor)
        return [self._copy(j) for j in stale]

    # ── Producer / inspection operations ──────────────────

    async def enqueue(
        self,
        notification_type: str,
        horse_id: str,
        data: dict[str, Any] = None,
        job_id: str = "",
        created_at: Optional[datetime] = None,
    ) -> NotificationJob:
        job = NotificationJob(
            id=job_id or _new_id(),
            type=notification_type,
            horse_id=horse_id,
            data=data or {},
            created_at=created_at or _utcnow(),
        )
        if job.id in self._jobs:
            raise ValueError(f"Notification job '{job.id}' already exists.")
        self._jobs[job.id] = job
        return self._copy(job)

    def put(self, job: NotificationJob) -> None:
        """Insert a job as-is, in any status (test setup)."""
        self._jobs[job.id] = job.model_copy(deep=True)

    async def get_job(self, job_id: str) -> Optional[NotificationJob]:
        job = self._jobs.get(job_id)
        return self._copy(job) if job else None

    async def count_by_status(self) -> dict[str, int]:
        counts = {s.value: 0 for s in NotificationStatus}
        for job in self._jobs.values():
            counts[job.status.value] += 1
        return counts


class InMemoryRecipientDirectory(BaseRecipientDirectory):
    """Horses, stablemates and trainers kept in plain dicts."""

    def __init__(self):
        self._horses: dict[str, HorseRecord] = {}
        self._stablemates: dict[str, RecipientProfile] = {}
        self._trainers: dict[str, RecipientProfile] = {}

    def add_stablemate(
        self, stablemate_id: str, email: Optional[str] = None, name: str = "",
        settings: NotificationSettings = None,
    ) -> RecipientProfile:
        profile = RecipientProfile(
            id=stablemate_id, email=email, name=name or None,
            settings=settings or NotificationSettings(),
        )
        self._stablemates[stablemate_id] = profile
        return profile

    def add_trainer(
        self, trainer_id: str, email: Optional[str] = None, name: str = "",
        settings: NotificationSettings = None,
    ) -> RecipientProfile:
        profile = RecipientProfile(
            id=trainer_id, email=email, name=name or None,
            settings=settings or NotificationSettings(),
        )
        self._trainers[trainer_id] = profile
        return profile

    def add_horse(
        self, horse_id: str, name: str, stablemate_id: str, trainer_id: Optional[str] = None,
    ) -> HorseRecord:
        horse = HorseRecord(id=horse_id, name=name, stablemate_id=stablemate_id, trainer_id=trainer_id)
        self._horses[horse_id] = horse
        return horse

    async def get_horse(self, horse_id: str) -> Optional[HorseRecord]:
        return self._horses.get(horse_id)

    async def get_stablemate(self, stablemate_id: str) -> Optional[RecipientProfile]:
        return self._stablemates.get(stablemate_id)

    async def get_trainer(self, trainer_id: str) -> Optional[RecipientProfile]:
        return self._trainers.get(trainer_id)
